######################################################################
#
# File: b2client/_internal/raw_simulator.py
#
# Copyright 2021 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import dataclasses
import io
import itertools
import logging
import re
import threading
import time
import uuid

from requests.structures import CaseInsensitiveDict

from .b2http import ResponseContextManager
from .encryption.setting import EncryptionSetting
from .encryption.types import EncryptionMode
from .exception import (
    AccessDenied,
    BadJson,
    BadRequest,
    BadUploadUrl,
    ChecksumMismatch,
    Conflict,
    DuplicateBucketName,
    FileNotPresent,
    FileSha1Mismatch,
    InvalidAuthToken,
    MissingPart,
    NonExistentBucket,
    PartSha1Mismatch,
    ResourceNotFound,
    RetentionWriteError,
    SSECKeyError,
    Unauthorized,
    UnsatisfiableRange,
)
from .file_lock import FileRetentionSetting, LegalHold, RetentionMode
from .http_constants import (
    FILE_INFO_HEADER_PREFIX,
    NO_CONTENT_SHA1,
    SSE_B2_ALGORITHM_HEADER,
    SSE_C_ALGORITHM_HEADER,
    SSE_C_KEY_MD5_HEADER,
)
from .raw_api import (
    ALL_CAPABILITIES,
    AbstractRawApi,
    LifecycleRule,
    MetadataDirectiveMode,
    NotificationRule,
)
from .utils import b2_url_decode, b2_url_encode, current_time_millis, hex_sha1_of_bytes

logger = logging.getLogger(__name__)

# file info keys which a download returns as plain HTTP headers
SPECIAL_FILE_INFOS = {
    'b2-cache-control': 'Cache-Control',
    'b2-content-disposition': 'Content-Disposition',
    'b2-content-encoding': 'Content-Encoding',
    'b2-content-language': 'Content-Language',
    'b2-expires': 'Expires',
}


def get_bytes_range(data_bytes: bytes, bytes_range: tuple[int, int] | None) -> bytes:
    """
    Cut an inclusive ``(start, end)`` range out of ``data_bytes``.
    """
    if bytes_range is None:
        return data_bytes
    start, end = bytes_range
    if not 0 <= start <= end <= len(data_bytes):
        raise UnsatisfiableRange()
    return data_bytes[start:end + 1]


@dataclasses.dataclass
class KeySimulator:
    """
    An application key known to the simulator: the master key of an account,
    or one made by ``create_key``.
    """
    account_id: str
    name: str
    application_key_id: str
    key: str
    capabilities: list[str]
    expires_at: int | None = None  # seconds since epoch
    bucket_id: str | None = None
    bucket_name: str | None = None
    name_prefix: str | None = None

    @property
    def expiration_timestamp_millis(self) -> int | None:
        if self.expires_at is None:
            return None
        return self.expires_at * 1000

    def as_key(self) -> dict:
        return {
            'accountId': self.account_id,
            'applicationKeyId': self.application_key_id,
            'bucketId': self.bucket_id,
            'capabilities': self.capabilities,
            'expirationTimestamp': self.expiration_timestamp_millis,
            'keyName': self.name,
            'namePrefix': self.name_prefix,
        }

    def create_key_response(self) -> dict:
        # the secret is returned only when the key is created
        return {**self.as_key(), 'applicationKey': self.key}

    def allows(self, capability: str, bucket_id: str | None, file_name: str | None) -> bool:
        if capability not in self.capabilities:
            return False
        if self.bucket_id is not None and self.bucket_id != bucket_id:
            return False
        if self.name_prefix is not None and file_name is not None:
            return file_name.startswith(self.name_prefix)
        return True


@dataclasses.dataclass
class PartSimulator:
    file_id: str
    part_number: int
    content_length: int
    content_sha1: str
    part_data: bytes

    def as_list_parts_dict(self) -> dict:
        return {
            'fileId': self.file_id,
            'partNumber': self.part_number,
            'contentLength': self.content_length,
            'contentSha1': self.content_sha1,
        }


class FileSimulator:
    """
    A single entry of a simulated bucket.

    The ``action`` tells what it is: ``start`` for an unfinished large file,
    ``upload`` for a file with content, ``hide`` for a marker hiding older versions.
    """

    def __init__(
        self,
        account_id,
        bucket,
        file_id,
        action,
        name,
        content_type,
        content_sha1,
        file_info,
        data_bytes,
        upload_timestamp,
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
    ):
        if content_sha1 not in (None, NO_CONTENT_SHA1) and len(content_sha1) != 40:
            raise ValueError(content_sha1)
        self.account_id = account_id
        self.bucket = bucket
        self.file_id = file_id
        self.action = action
        self.name = name
        self.content_type = content_type
        self.content_sha1 = content_sha1
        self.file_info = file_info
        self.data_bytes = data_bytes
        self.upload_timestamp = upload_timestamp
        self.server_side_encryption = server_side_encryption
        self.file_retention = file_retention
        self.legal_hold = LegalHold.UNSET if legal_hold is None else legal_hold
        self.parts: dict[int, PartSimulator] = {}

    @property
    def content_length(self) -> int:
        if self.data_bytes is None:
            return 0
        return len(self.data_bytes)

    def name_and_id(self) -> tuple[str, str]:
        # newer versions of a name get smaller ids, so they come first
        return self.name, self.file_id

    def is_visible(self) -> bool:
        return self.action == 'upload'

    def as_download_headers(self, range_: tuple[int, int] | None = None) -> CaseInsensitiveDict:
        size = self.content_length
        if range_ is None:
            content_length = size
        else:
            content_length = min(range_[1] + 1, size) - range_[0]
        headers = CaseInsensitiveDict(
            {
                'content-length': str(content_length),
                'content-type': self.content_type,
                'x-bz-content-sha1': self.content_sha1,
                'x-bz-upload-timestamp': str(self.upload_timestamp),
                'x-bz-file-id': self.file_id,
                'x-bz-file-name': b2_url_encode(self.name),
            }
        )
        for key, value in self.file_info.items():
            special_header = SPECIAL_FILE_INFOS.get(key.lower())
            if special_header is not None:
                headers[special_header] = value
            else:
                headers[FILE_INFO_HEADER_PREFIX + key] = b2_url_encode(value)
        if self.bucket.is_file_lock_enabled:
            if self.file_retention is not None:
                self.file_retention.add_to_upload_headers(headers)
            self.legal_hold.add_to_upload_headers(headers)
        self._add_encryption_headers(headers)
        if range_ is not None:
            last = range_[0] + content_length - 1
            headers['Content-Range'] = f'bytes {range_[0]}-{last}/{size}'
        return headers

    def _add_encryption_headers(self, headers):
        sse = self.server_side_encryption
        if sse is None:
            return
        if sse.mode == EncryptionMode.SSE_B2:
            headers[SSE_B2_ALGORITHM_HEADER] = sse.algorithm.value
        elif sse.mode == EncryptionMode.SSE_C:
            headers[SSE_C_ALGORITHM_HEADER] = sse.algorithm.value
            headers[SSE_C_KEY_MD5_HEADER] = sse.key.key_md5()

    def upload_response(self) -> dict:
        result = {
            'accountId': self.account_id,
            'action': self.action,
            'bucketId': self.bucket.bucket_id,
            'contentLength': self.content_length,
            'contentSha1': self.content_sha1,
            'contentType': self.content_type,
            'fileId': self.file_id,
            'fileInfo': self.file_info,
            'fileName': self.name,
            'uploadTimestamp': self.upload_timestamp,
            'fileRetention': {
                'isClientAuthorizedToRead': True,
                'value': self._retention_value(),
            },
            'legalHold': {
                'isClientAuthorizedToRead': True,
                'value': self.legal_hold.value,
            },
        }
        if self.server_side_encryption is not None:
            result['serverSideEncryption'] = self.server_side_encryption.as_dict()
        return result

    def list_response(self) -> dict:
        return self.upload_response()

    def start_large_file_response(self) -> dict:
        result = self.upload_response()
        del result['contentLength']
        return result

    def _retention_value(self) -> dict:
        if self.file_retention is None:
            return {'mode': None}
        value = {'mode': self.file_retention.mode.value}
        if self.file_retention.retain_until is not None:
            value['retainUntilTimestamp'] = self.file_retention.retain_until
        return value

    def add_part(self, part: PartSimulator):
        self.parts[part.part_number] = part

    def list_parts(self, start_part_number=None, max_part_count=None) -> dict:
        start_part_number = start_part_number or 1
        max_part_count = max_part_count or 100
        parts = [
            self.parts[part_number].as_list_parts_dict()
            for part_number in sorted(self.parts) if part_number >= start_part_number
        ]
        next_part_number = None
        if len(parts) > max_part_count:
            next_part_number = parts[max_part_count]['partNumber']
            parts = parts[:max_part_count]
        return {'parts': parts, 'nextPartNumber': next_part_number}

    def finish(self, part_sha1_array: list[str]):
        part_count = max(self.parts, default=0)
        for part_number in range(1, part_count + 1):
            if part_number not in self.parts:
                raise MissingPart(part_number)
        parts = [self.parts[part_number] for part_number in range(1, part_count + 1)]
        uploaded_sha1_array = [part.content_sha1 for part in parts]
        if part_sha1_array != uploaded_sha1_array:
            raise ChecksumMismatch(
                'sha1', expected=str(part_sha1_array), actual=str(uploaded_sha1_array)
            )
        self.data_bytes = b''.join(part.part_data for part in parts)
        self.action = 'upload'

    def is_deletion_blocked(self, bypass_governance: bool) -> bool:
        retention = self.file_retention
        if retention is None or not retention.retain_until:
            return False
        if retention.retain_until <= current_time_millis():
            return False
        if retention.mode == RetentionMode.COMPLIANCE:
            return True
        return retention.mode == RetentionMode.GOVERNANCE and not bypass_governance

    def check_retention_update(self, file_retention: FileRetentionSetting, bypass_governance: bool):
        """
        Raise :class:`RetentionWriteError` if ``file_retention`` may not replace the active one.

        Compliance can only be extended. Governance can be shortened or removed
        with ``bypass_governance``.
        """
        current = self.file_retention
        if current is None or not current.retain_until:
            return
        if current.retain_until <= current_time_millis():
            return
        shortened = (
            file_retention.mode is RetentionMode.NONE or
            file_retention.retain_until < current.retain_until
        )
        if current.mode == RetentionMode.COMPLIANCE:
            if shortened or file_retention.mode != RetentionMode.COMPLIANCE:
                raise RetentionWriteError()
        elif shortened and not bypass_governance:
            raise RetentionWriteError()

    def check_encryption(self, request_encryption: EncryptionSetting | None):
        """
        Raise :class:`SSECKeyError` unless the request has the customer key of the file.
        """
        sse = self.server_side_encryption
        if sse is None or sse.mode != EncryptionMode.SSE_C:
            return
        if request_encryption is None or request_encryption.mode != EncryptionMode.SSE_C:
            raise SSECKeyError()
        if request_encryption.key is None or request_encryption.key.secret != sse.key.secret:
            raise SSECKeyError()


class FakeResponse:
    """
    The part of :class:`requests.Response` which downloads use, serving bytes from memory.
    """

    def __init__(self, file_sim: FileSimulator, url: str, range_=None):
        self.url = url
        self.headers = file_sim.as_download_headers(range_)
        if range_ is None:
            self.status_code = 200
        else:
            self.status_code = 206
            range_ = range_[0], min(range_[1], file_sim.content_length - 1)
        self.data_bytes = get_bytes_range(file_sim.data_bytes, range_)
        self._stream = io.BytesIO(self.data_bytes)
        self.closed = False

    def iter_content(self, chunk_size=1):
        return iter(lambda: self._stream.read(chunk_size), b'')

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class BucketSimulator:
    """
    Files of one simulated bucket.
    """

    # ids are decimal strings which count down, so that a newer version sorts first
    FIRST_FILE_NUMBER = 9999
    FIRST_FILE_ID = str(FIRST_FILE_NUMBER)

    FILE_SIMULATOR_CLASS = FileSimulator
    RESPONSE_CLASS = FakeResponse

    def __init__(
        self,
        api,
        account_id,
        bucket_id,
        bucket_name,
        bucket_type,
        bucket_info=None,
        cors_rules=None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        options=None,
        default_server_side_encryption=None,
        is_file_lock_enabled: bool | None = None,
    ):
        assert bucket_type in ('allPrivate', 'allPublic'), bucket_type
        self.api = api
        self.account_id = account_id
        self.bucket_id = bucket_id
        self.bucket_name = bucket_name
        self.bucket_type = bucket_type
        self.bucket_info = bucket_info or {}
        self.cors_rules = cors_rules or []
        self.lifecycle_rules = lifecycle_rules or []
        self.options = options or set()
        self.revision = 1
        self.default_server_side_encryption = (
            default_server_side_encryption or EncryptionSetting(mode=EncryptionMode.NONE)
        )
        self.is_file_lock_enabled = is_file_lock_enabled
        self.notification_rules: list[NotificationRule] = []
        self.files_by_id: dict[str, FileSimulator] = {}
        self.files_by_name_and_id: dict[tuple[str, str], FileSimulator] = {}
        self.lock = threading.Lock()
        self._file_numbers = itertools.count(self.FIRST_FILE_NUMBER, -1)
        self._upload_timestamps = itertools.count(5000)
        self._upload_url_numbers = itertools.count()

    def bucket_dict(self) -> dict:
        return {
            'accountId': self.account_id,
            'bucketId': self.bucket_id,
            'bucketInfo': self.bucket_info,
            'bucketName': self.bucket_name,
            'bucketType': self.bucket_type,
            'corsRules': self.cors_rules,
            'defaultServerSideEncryption': {
                'isClientAuthorizedToRead': True,
                'value': self.default_server_side_encryption.as_dict(),
            },
            'fileLockConfiguration': {
                'isClientAuthorizedToRead': True,
                'value': {
                    'defaultRetention': {'mode': None, 'period': None},
                    'isFileLockEnabled': bool(self.is_file_lock_enabled),
                },
            },
            'lifecycleRules': self.lifecycle_rules,
            'options': sorted(self.options),
            'revision': self.revision,
        }  # yapf: disable

    def update(
        self,
        bucket_type=None,
        bucket_info=None,
        cors_rules=None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        if_revision_is: int | None = None,
        default_server_side_encryption: EncryptionSetting | None = None,
        is_file_lock_enabled: bool | None = None,
    ) -> dict:
        if if_revision_is is not None and self.revision != if_revision_is:
            raise Conflict(f'bucket revision is {self.revision}, not {if_revision_is}')
        if is_file_lock_enabled is not None:
            if self.is_file_lock_enabled and not is_file_lock_enabled:
                raise BadRequest('file lock cannot be disabled', 'bad_request')
            self.is_file_lock_enabled = is_file_lock_enabled
        if bucket_type is not None:
            self.bucket_type = bucket_type
        if bucket_info is not None:
            self.bucket_info = bucket_info
        if cors_rules is not None:
            self.cors_rules = cors_rules
        if lifecycle_rules is not None:
            self.lifecycle_rules = lifecycle_rules
        if default_server_side_encryption is not None:
            self.default_server_side_encryption = default_server_side_encryption
        self.revision += 1
        return self.bucket_dict()

    def get_notification_rules(self) -> list[NotificationRule]:
        return self.notification_rules

    def set_notification_rules(self, rules: list[NotificationRule]) -> list[NotificationRule]:
        """
        Replace all the rules of the bucket.

        A rule keeps the suspension state and the target fields which the new
        version of the same name leaves out.
        """
        old_rules_by_name = {rule['name']: rule for rule in self.notification_rules}
        new_rules = []
        for rule in rules:
            rule = {
                key: value
                for key, value in rule.items() if key not in ('isSuspended', 'suspensionReason')
            }
            old_rule = old_rules_by_name.get(rule['name'], {})
            new_rules.append(
                {
                    'isSuspended': False,
                    'suspensionReason': '',
                    **old_rule,
                    **rule,
                    'targetConfiguration': {
                        **old_rule.get('targetConfiguration', {}),
                        **rule.get('targetConfiguration', {}),
                    },
                }
            )
        self.notification_rules = new_rules
        return self.notification_rules

    def simulate_notification_rule_suspension(self, rule_name: str, reason: str):
        for rule in self.notification_rules:
            if rule['name'] == rule_name:
                rule['isSuspended'] = bool(reason)
                rule['suspensionReason'] = reason
                return
        raise ResourceNotFound(f'Rule {rule_name} not found')

    def get_file(self, file_id, file_name) -> FileSimulator:
        file_sim = self.files_by_name_and_id.get((file_name, file_id))
        if file_sim is None:
            raise FileNotPresent(file_id_or_name=file_id)
        return file_sim

    def _check_file_lock_enabled(self):
        if not self.is_file_lock_enabled:
            raise BadRequest('file lock is not enabled for this bucket', 'bad_request')

    def update_file_retention(
        self,
        file_id,
        file_name,
        file_retention: FileRetentionSetting,
        bypass_governance: bool = False,
    ):
        self._check_file_lock_enabled()
        file_sim = self.get_file(file_id, file_name)
        file_sim.check_retention_update(file_retention, bypass_governance)
        file_sim.file_retention = file_retention
        return {
            'fileId': file_id,
            'fileName': file_name,
            'fileRetention': file_retention.as_dict(),
        }

    def update_file_legal_hold(self, file_id, file_name, legal_hold: LegalHold):
        self._check_file_lock_enabled()
        file_sim = self.get_file(file_id, file_name)
        file_sim.legal_hold = legal_hold
        return {'fileId': file_id, 'fileName': file_name, 'legalHold': legal_hold.to_server()}

    def get_source_file(self, file_id, source_server_side_encryption) -> FileSimulator:
        file_sim = self.files_by_id.get(file_id)
        if file_sim is None or not file_sim.is_visible():
            raise FileNotPresent(file_id_or_name=file_id)
        file_sim.check_encryption(source_server_side_encryption)
        return file_sim

    def copy_file(
        self,
        file_id,
        new_file_name,
        destination_bucket: BucketSimulator,
        bytes_range=None,
        metadata_directive: MetadataDirectiveMode | None = None,
        content_type=None,
        file_info=None,
        destination_server_side_encryption: EncryptionSetting | None = None,
        source_server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
    ):
        source = self.get_source_file(file_id, source_server_side_encryption)
        data_bytes = get_bytes_range(source.data_bytes, bytes_range)
        if metadata_directive is not MetadataDirectiveMode.REPLACE:
            content_type = source.content_type
            file_info = dict(source.file_info)
        copy_sim = destination_bucket._add_file(
            'upload',
            new_file_name,
            content_type,
            hex_sha1_of_bytes(data_bytes),
            file_info or {},
            data_bytes,
            next(destination_bucket._upload_timestamps),
            server_side_encryption=(
                destination_server_side_encryption or
                destination_bucket.default_server_side_encryption
            ),
            file_retention=file_retention,
            legal_hold=legal_hold,
        )
        # stored as an upload, but reported as a copy
        return {**copy_sim.upload_response(), 'action': 'copy'}

    def _forget(self, file_sim: FileSimulator):
        with self.lock:
            del self.files_by_name_and_id[file_sim.name_and_id()]
            del self.files_by_id[file_sim.file_id]

    def cancel_large_file(self, file_id):
        file_sim = self.files_by_id.get(file_id)
        if file_sim is None or file_sim.action != 'start':
            raise FileNotPresent(file_id_or_name=file_id)
        self._forget(file_sim)
        return {
            'accountId': self.account_id,
            'bucketId': self.bucket_id,
            'fileId': file_id,
            'fileName': file_sim.name,
        }

    def delete_file_version(self, file_id, file_name, bypass_governance: bool = False):
        file_sim = self.get_file(file_id, file_name)
        if file_sim.is_deletion_blocked(bypass_governance):
            raise AccessDenied()
        self._forget(file_sim)
        return {'fileId': file_id, 'fileName': file_name}

    def download_file_by_id(self, file_id, url, range_=None, encryption=None):
        file_sim = self.files_by_id.get(file_id)
        if file_sim is None or not file_sim.is_visible():
            raise FileNotPresent(file_id_or_name=file_id)
        return self._download(file_sim, url, range_, encryption)

    def download_file_by_name(self, file_name, url, range_=None, encryption=None):
        files = self.list_file_names(file_name, 1)['files']
        if not files or files[0]['fileName'] != file_name:
            raise FileNotPresent(file_id_or_name=file_name, bucket_name=self.bucket_name)
        return self._download(self.files_by_id[files[0]['fileId']], url, range_, encryption)

    def _download(self, file_sim: FileSimulator, url, range_, encryption):
        file_sim.check_encryption(encryption)
        if range_ is not None and range_[0] >= file_sim.content_length:
            raise UnsatisfiableRange()
        return ResponseContextManager(self.RESPONSE_CLASS(file_sim, url, range_))

    def finish_large_file(self, file_id, part_sha1_array):
        file_sim = self.files_by_id[file_id]
        file_sim.finish(part_sha1_array)
        return file_sim.upload_response()

    def get_file_info_by_id(self, file_id):
        file_sim = self.files_by_id.get(file_id)
        if file_sim is None:
            raise FileNotPresent(file_id_or_name=file_id)
        return file_sim.upload_response()

    def get_upload_url(self, account_auth_token):
        # the simulator accepts the url itself as the upload token
        upload_url = (
            f'https://upload.example.com/{self.bucket_id}/'
            f'{next(self._upload_url_numbers)}/{account_auth_token}'
        )
        return {
            'bucketId': self.bucket_id,
            'uploadUrl': upload_url,
            'authorizationToken': upload_url,
        }

    def get_upload_part_url(self, account_auth_token, file_id):
        upload_url = (
            f'https://upload.example.com/part/{file_id}/{uuid.uuid4().hex}/{account_auth_token}'
        )
        return {'fileId': file_id, 'uploadUrl': upload_url, 'authorizationToken': upload_url}

    def hide_file(self, file_name):
        file_sim = self._add_file(
            'hide', file_name, None, NO_CONTENT_SHA1, {}, b'', next(self._upload_timestamps)
        )
        return file_sim.list_response()

    def list_file_names(
        self,
        start_file_name=None,
        max_file_count=None,
        prefix=None,
        delimiter=None,
    ):
        start_file_name = start_file_name or ''
        max_file_count = max_file_count or 100
        prefix = prefix or ''
        entries = []
        latest_name = None
        for (file_name, file_id), file_sim in sorted(self.files_by_name_and_id.items()):
            # only the newest version of a name decides whether the name is listed
            if file_name < start_file_name or file_name == latest_name:
                continue
            if not file_name.startswith(prefix):
                continue
            latest_name = file_name
            if not file_sim.is_visible():
                logger.debug('not listing %s, its newest version is %s', file_name, file_sim.action)
                continue
            folder_name = self._folder_name(file_name, prefix, delimiter)
            if folder_name is None:
                entry = file_sim.list_response()
            elif entries and entries[-1]['fileName'] == folder_name:
                continue
            else:
                entry = self._folder_dict(folder_name)
            if len(entries) == max_file_count:
                return {'files': entries, 'nextFileName': entry['fileName']}
            entries.append(entry)
        return {'files': entries, 'nextFileName': None}

    @classmethod
    def _folder_name(cls, file_name, prefix, delimiter):
        if delimiter is None:
            return None
        position = file_name.find(delimiter, len(prefix))
        if position == -1:
            return None
        return file_name[:position + len(delimiter)]

    def _folder_dict(self, folder_name):
        return {
            'accountId': self.account_id,
            'action': 'folder',
            'bucketId': self.bucket_id,
            'contentLength': 0,
            'contentSha1': None,
            'contentType': None,
            'fileId': None,
            'fileInfo': {},
            'fileName': folder_name,
            'uploadTimestamp': 0,
        }

    def list_file_versions(
        self,
        start_file_name=None,
        start_file_id=None,
        max_file_count=None,
        prefix=None,
        delimiter=None,
    ):
        # a start file id only counts together with its file name
        start_key = (start_file_name or '', (start_file_name and start_file_id) or '')
        max_file_count = max_file_count or 100
        prefix = prefix or ''
        entries = []
        for key, file_sim in sorted(self.files_by_name_and_id.items()):
            file_name, _ = key
            if key < start_key or not file_name.startswith(prefix):
                continue
            folder_name = self._folder_name(file_name, prefix, delimiter)
            if folder_name is None:
                entry = file_sim.list_response()
            elif entries and entries[-1]['fileName'] == folder_name:
                continue
            else:
                entry = self._folder_dict(folder_name)
            if len(entries) == max_file_count:
                return {
                    'files': entries,
                    'nextFileName': entry['fileName'],
                    'nextFileId': entry['fileId'],
                }
            entries.append(entry)
        return {'files': entries, 'nextFileName': None, 'nextFileId': None}

    def list_parts(self, file_id, start_part_number=None, max_part_count=None):
        file_sim = self.files_by_id.get(file_id)
        if file_sim is None or file_sim.action != 'start':
            raise FileNotPresent(file_id_or_name=file_id)
        return file_sim.list_parts(start_part_number, max_part_count)

    def list_unfinished_large_files(self, start_file_id=None, max_file_count=None, prefix=None):
        start_number = int(start_file_id or self.FIRST_FILE_ID)
        max_file_count = max_file_count or 100
        unfinished_ids = sorted(
            (
                file_id for file_id, file_sim in self.files_by_id.items()
                if file_sim.action == 'start' and int(file_id) <= start_number and
                file_sim.name.startswith(prefix or '')
            ),
            key=int,
            reverse=True,
        )
        next_file_id = None
        if len(unfinished_ids) > max_file_count:
            next_file_id = unfinished_ids[max_file_count]
        return {
            'files': [
                self.files_by_id[file_id].start_large_file_response()
                for file_id in unfinished_ids[:max_file_count]
            ],
            'nextFileId': next_file_id,
        }

    def start_large_file(
        self,
        file_name,
        content_type,
        file_info,
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ):
        file_sim = self._add_file(
            'start',
            file_name,
            content_type,
            NO_CONTENT_SHA1,
            file_info,
            None,
            self._upload_timestamp(custom_upload_timestamp),
            server_side_encryption=server_side_encryption or self.default_server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
        )
        return file_sim.start_large_file_response()

    def upload_file(
        self,
        file_name: str,
        content_length: int,
        content_type: str,
        content_sha1: str,
        file_info: dict,
        data_stream,
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ):
        data_bytes = self._simulate_post(data_stream, content_length)
        if len(content_sha1) != 40:
            raise ValueError(content_sha1)
        if content_sha1 != hex_sha1_of_bytes(data_bytes):
            raise FileSha1Mismatch(file_name)
        file_sim = self._add_file(
            'upload',
            file_name,
            content_type,
            content_sha1,
            file_info,
            data_bytes,
            self._upload_timestamp(custom_upload_timestamp),
            server_side_encryption=server_side_encryption or self.default_server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
        )
        return file_sim.upload_response()

    def upload_part(
        self,
        file_id,
        part_number,
        content_length,
        sha1_sum,
        input_stream,
        server_side_encryption: EncryptionSetting | None = None,
    ):
        part_data = self._simulate_post(input_stream, content_length)
        if sha1_sum != hex_sha1_of_bytes(part_data):
            raise PartSha1Mismatch(file_id)
        file_sim = self.files_by_id[file_id]
        with self.lock:
            file_sim.add_part(
                PartSimulator(file_id, part_number, content_length, sha1_sum, part_data)
            )
        result = {
            'contentLength': content_length,
            'contentSha1': sha1_sum,
            'fileId': file_id,
            'partNumber': part_number,
        }
        if server_side_encryption is not None:
            result['serverSideEncryption'] = server_side_encryption.as_dict()
        return result

    def _upload_timestamp(self, custom_upload_timestamp: int | None) -> int:
        generated = next(self._upload_timestamps)
        if custom_upload_timestamp is not None:
            return custom_upload_timestamp
        return generated

    @classmethod
    def _simulate_post(cls, stream, content_length, chunk_size=8096) -> bytes:
        """
        Consume the request body like the HTTP transport does: from the start, chunk by chunk.
        """
        stream.seek(0)
        data_bytes = b''.join(iter(lambda: stream.read(chunk_size), b''))
        assert len(data_bytes) == content_length, (len(data_bytes), content_length)
        return data_bytes

    def _add_file(
        self, action, file_name, content_type, content_sha1, file_info, data_bytes,
        upload_timestamp, **kwargs
    ) -> FileSimulator:
        with self.lock:
            file_id = str(next(self._file_numbers))
            file_sim = self.FILE_SIMULATOR_CLASS(
                self.account_id, self, file_id, action, file_name, content_type, content_sha1,
                file_info, data_bytes, upload_timestamp, **kwargs
            )
            self.files_by_id[file_id] = file_sim
            self.files_by_name_and_id[file_sim.name_and_id()] = file_sim
        self.api.bucket_id_by_file_id[file_id] = self.bucket_id
        return file_sim


class RawSimulator(AbstractRawApi):
    """
    In-memory stand-in for :class:`B2RawHTTPApi`.

    It keeps accounts, keys, buckets and files in dictionaries, checks auth tokens and
    key restrictions like the server does, and can be told to fail uploads
    (:meth:`set_upload_errors`) or to expire tokens (:meth:`expire_auth_token`).
    """

    BUCKET_SIMULATOR_CLASS = BucketSimulator
    API_URL = 'http://api.example.com'
    S3_API_URL = 'http://s3.api.example.com'
    DOWNLOAD_URL = 'http://download.example.com'

    MIN_PART_SIZE = 200
    MAX_PART_ID = 10000

    # 1000 days
    MAX_DURATION_IN_SECONDS = 86400000
    # one week
    MAX_DOWNLOAD_AUTHORIZATION_SECONDS = 604800

    UPLOAD_PART_MATCHER = re.compile('https://upload.example.com/part/([^/]*)')
    UPLOAD_URL_MATCHER = re.compile(r'https://upload.example.com/([^/]*)/([^/]*)')
    DOWNLOAD_URL_MATCHER = re.compile(
        re.escape(DOWNLOAD_URL) + '(?:'
        r'/b2api/v[0-9]+/b2_download_file_by_id\?fileId=(?P<file_id>[^/]+)'
        '|'
        '/file/(?P<bucket_name>[^/]+)/(?P<file_name>.+)'
        ')$'
    )

    def __init__(self, b2_http=None):
        self.keys_by_id: dict[str, KeySimulator] = {}
        self.keys_by_auth_token: dict[str, KeySimulator] = {}
        self.expired_tokens: set[str] = set()
        self.buckets_by_name: dict[str, BucketSimulator] = {}
        self.buckets_by_id: dict[str, BucketSimulator] = {}
        self.bucket_id_by_file_id: dict[str, str] = {}
        self.upload_errors = []
        self._upload_errors_lock = threading.Lock()
        self._account_numbers = itertools.count()
        self._auth_token_numbers = itertools.count()
        self._bucket_numbers = itertools.count()
        self._app_key_numbers = itertools.count()

    def create_account(self):
        """
        Make a new account and return ``(account_id, master_application_key)``.

        The account id doubles as the id of its master key.
        """
        number = next(self._account_numbers)
        account_id = f'account-{number}'
        master_key = f'masterKey-{number}'
        self.keys_by_id[account_id] = KeySimulator(
            account_id=account_id,
            name='master',
            application_key_id=account_id,
            key=master_key,
            capabilities=ALL_CAPABILITIES,
        )
        return account_id, master_key

    def expire_auth_token(self, auth_token):
        """
        Make every later call with ``auth_token`` fail with ``expired_auth_token``.
        """
        assert auth_token in self.keys_by_auth_token
        self.expired_tokens.add(auth_token)

    def set_upload_errors(self, errors):
        """
        Make the next uploads fail, one error per upload, in the given order.

        File uploads and part uploads take from the same list. The request body is not
        read by an upload which fails this way.
        """
        assert not self.upload_errors
        self.upload_errors = list(errors)

    def _raise_upload_error_if_any(self):
        with self._upload_errors_lock:
            if not self.upload_errors:
                return
            error = self.upload_errors.pop(0)
        raise error

    def authorize_account(self, realm_url, application_key_id, application_key):
        key_sim = self.keys_by_id.get(application_key_id)
        if key_sim is None:
            raise InvalidAuthToken('application key ID not valid', 'bad_auth_token')
        if application_key != key_sim.key:
            raise InvalidAuthToken('secret key is wrong', 'bad_auth_token')
        auth_token = f'auth_token_{next(self._auth_token_numbers)}'
        self.keys_by_auth_token[auth_token] = key_sim
        bucket_name = None
        if key_sim.bucket_id in self.buckets_by_id:
            bucket_name = self.buckets_by_id[key_sim.bucket_id].bucket_name
        storage_api = {
            'absoluteMinimumPartSize': self.MIN_PART_SIZE,
            'apiUrl': self.API_URL,
            'bucketId': key_sim.bucket_id,
            'bucketName': bucket_name,
            'capabilities': key_sim.capabilities,
            'downloadUrl': self.DOWNLOAD_URL,
            'infoType': 'storageApi',
            'namePrefix': key_sim.name_prefix,
            'recommendedPartSize': self.MIN_PART_SIZE,
            's3ApiUrl': self.S3_API_URL,
        }
        return {
            'accountId': key_sim.account_id,
            'apiInfo': {'storageApi': storage_api},
            'applicationKeyExpirationTimestamp': key_sim.expiration_timestamp_millis,
            'authorizationToken': auth_token,
        }

    def cancel_large_file(self, api_url, account_auth_token, file_id):
        bucket = self._authorize_for_file(api_url, account_auth_token, file_id, 'writeFiles')
        return bucket.cancel_large_file(file_id)

    def copy_file(
        self,
        api_url,
        account_auth_token,
        source_file_id,
        new_file_name,
        bytes_range=None,
        metadata_directive=None,
        content_type=None,
        file_info=None,
        destination_bucket_id=None,
        destination_server_side_encryption=None,
        source_server_side_encryption=None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
    ):
        self.check_metadata_directive(metadata_directive, content_type, file_info)
        self.check_b2_filename(new_file_name)
        source_bucket = self._authorize_for_file(
            api_url, account_auth_token, source_file_id, 'writeFiles'
        )
        destination_bucket = source_bucket
        if destination_bucket_id is not None:
            destination_bucket = self._bucket_by_id(destination_bucket_id)
        self._check_account_auth(
            api_url, account_auth_token, destination_bucket.account_id, 'writeFiles',
            destination_bucket.bucket_id, new_file_name
        )
        return source_bucket.copy_file(
            source_file_id,
            new_file_name,
            destination_bucket,
            bytes_range=bytes_range,
            metadata_directive=metadata_directive,
            content_type=content_type,
            file_info=file_info,
            destination_server_side_encryption=destination_server_side_encryption,
            source_server_side_encryption=source_server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
        )

    def copy_part(
        self,
        api_url,
        account_auth_token,
        source_file_id,
        large_file_id,
        part_number,
        bytes_range=None,
        destination_server_side_encryption: EncryptionSetting | None = None,
        source_server_side_encryption: EncryptionSetting | None = None,
    ):
        if not 1 <= part_number <= self.MAX_PART_ID:
            raise BadRequest(f'Part number must be in range 1 - {self.MAX_PART_ID}', 'bad_request')
        source_bucket = self._authorize_for_file(
            api_url, account_auth_token, source_file_id, 'writeFiles'
        )
        destination_bucket = self._authorize_for_file(
            api_url, account_auth_token, large_file_id, 'writeFiles'
        )
        source = source_bucket.get_source_file(source_file_id, source_server_side_encryption)
        data_bytes = get_bytes_range(source.data_bytes, bytes_range)
        return destination_bucket.upload_part(
            large_file_id,
            part_number,
            len(data_bytes),
            hex_sha1_of_bytes(data_bytes),
            io.BytesIO(data_bytes),
            destination_server_side_encryption,
        )

    def create_bucket(
        self,
        api_url,
        account_auth_token,
        account_id,
        bucket_name,
        bucket_type,
        bucket_info=None,
        cors_rules=None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        default_server_side_encryption: EncryptionSetting | None = None,
        is_file_lock_enabled: bool | None = None,
    ):
        if not re.match(r'^[-a-zA-Z0-9]*$', bucket_name):
            raise BadJson('illegal bucket name: ' + bucket_name)
        self._check_account_auth(api_url, account_auth_token, account_id, 'writeBuckets')
        if bucket_name in self.buckets_by_name:
            raise DuplicateBucketName(bucket_name)
        bucket_id = f'bucket_{next(self._bucket_numbers)}'
        bucket = self.BUCKET_SIMULATOR_CLASS(
            self,
            account_id,
            bucket_id,
            bucket_name,
            bucket_type,
            bucket_info,
            cors_rules,
            lifecycle_rules,
            default_server_side_encryption=default_server_side_encryption,
            is_file_lock_enabled=is_file_lock_enabled,
        )
        self.buckets_by_name[bucket_name] = bucket
        self.buckets_by_id[bucket_id] = bucket
        return bucket.bucket_dict()

    def create_key(
        self,
        api_url,
        account_auth_token,
        account_id,
        capabilities,
        key_name,
        valid_duration_seconds,
        bucket_id,
        name_prefix,
    ):
        if not re.match(r'^[A-Za-z0-9-]{1,100}$', key_name):
            raise BadJson('illegal key name: ' + key_name)
        expires_at = None
        if valid_duration_seconds is not None:
            if not 1 <= valid_duration_seconds <= self.MAX_DURATION_IN_SECONDS:
                raise BadJson(
                    'valid duration must be greater than 0, and less than 1000 days in seconds'
                )
            expires_at = int(time.time() + valid_duration_seconds)
        self._check_account_auth(api_url, account_auth_token, account_id, 'writeKeys')
        # a key may outlive its bucket, so the bucket name is optional
        bucket_name = None
        if bucket_id in self.buckets_by_id:
            bucket_name = self.buckets_by_id[bucket_id].bucket_name
        number = next(self._app_key_numbers)
        key_sim = KeySimulator(
            account_id=account_id,
            name=key_name,
            application_key_id=f'appKeyId{number}',
            key=f'appKey{number}',
            capabilities=capabilities,
            expires_at=expires_at,
            bucket_id=bucket_id,
            bucket_name=bucket_name,
            name_prefix=name_prefix,
        )
        self.keys_by_id[key_sim.application_key_id] = key_sim
        return key_sim.create_key_response()

    def delete_bucket(self, api_url, account_auth_token, account_id, bucket_id):
        self._check_account_auth(
            api_url, account_auth_token, account_id, 'deleteBuckets', bucket_id
        )
        bucket = self._bucket_by_id(bucket_id)
        del self.buckets_by_name[bucket.bucket_name]
        del self.buckets_by_id[bucket_id]
        return bucket.bucket_dict()

    def delete_file_version(
        self, api_url, account_auth_token, file_id, file_name, bypass_governance: bool = False
    ):
        bucket = self._authorize_for_file(
            api_url, account_auth_token, file_id, 'deleteFiles', file_name
        )
        return bucket.delete_file_version(file_id, file_name, bypass_governance)

    def delete_key(self, api_url, account_auth_token, application_key_id):
        assert api_url == self.API_URL
        key_sim = self.keys_by_id.pop(application_key_id, None)
        if key_sim is None:
            raise BadRequest(f'application key does not exist: {application_key_id}', 'bad_request')
        return key_sim.as_key()

    def download_file_from_url(
        self,
        account_auth_token_or_none: str | None,
        url: str,
        range_: tuple[int, int] | None = None,
        encryption: EncryptionSetting | None = None,
    ):
        url_match = self.DOWNLOAD_URL_MATCHER.match(url)
        assert url_match is not None, url
        file_id = url_match.group('file_id')
        if file_id is not None:
            bucket = self._get_bucket_by_file_id(file_id)
            file_name = None
        else:
            bucket = self._bucket_by_name(url_match.group('bucket_name'))
            file_name = b2_url_decode(url_match.group('file_name'))
        # public buckets can be read without a token
        if bucket.bucket_type != 'allPublic' or account_auth_token_or_none is not None:
            self._check_account_auth(
                self.API_URL, account_auth_token_or_none, bucket.account_id, 'readFiles',
                bucket.bucket_id, file_name
            )
        if file_id is not None:
            return bucket.download_file_by_id(file_id, url, range_=range_, encryption=encryption)
        return bucket.download_file_by_name(file_name, url, range_=range_, encryption=encryption)

    def finish_large_file(self, api_url, account_auth_token, file_id, part_sha1_array):
        bucket = self._authorize_for_file(api_url, account_auth_token, file_id, 'writeFiles')
        return bucket.finish_large_file(file_id, part_sha1_array)

    def get_bucket_notification_rules(self, api_url, account_auth_token, bucket_id):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'readBucketNotifications'
        )
        return bucket.get_notification_rules()

    def set_bucket_notification_rules(self, api_url, account_auth_token, bucket_id, rules):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'writeBucketNotifications'
        )
        return bucket.set_notification_rules(rules)

    def get_download_authorization(
        self,
        api_url,
        account_auth_token,
        bucket_id,
        file_name_prefix,
        valid_duration_in_seconds,
        content_disposition=None,
        content_language=None,
        expires=None,
        cache_control=None,
        content_encoding=None,
        content_type=None,
    ):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'shareFiles', file_name_prefix
        )
        if not 1 <= valid_duration_in_seconds <= self.MAX_DOWNLOAD_AUTHORIZATION_SECONDS:
            raise BadRequest(
                'valid duration must be between 1 and '
                f'{self.MAX_DOWNLOAD_AUTHORIZATION_SECONDS} seconds', 'bad_request'
            )
        return {
            'bucketId': bucket.bucket_id,
            'fileNamePrefix': file_name_prefix,
            'authorizationToken': (
                f'download_auth_token_{bucket.bucket_id}_{b2_url_encode(file_name_prefix)}_'
                f'{valid_duration_in_seconds}'
            ),
        }

    def get_file_info_by_id(self, api_url, account_auth_token, file_id):
        bucket = self._authorize_for_file(api_url, account_auth_token, file_id, 'readFiles')
        return bucket.get_file_info_by_id(file_id)

    def get_upload_url(self, api_url, account_auth_token, bucket_id):
        bucket = self._authorize_for_bucket(api_url, account_auth_token, bucket_id, 'writeFiles')
        return bucket.get_upload_url(account_auth_token)

    def get_upload_part_url(self, api_url, account_auth_token, file_id):
        bucket = self._authorize_for_file(api_url, account_auth_token, file_id, 'writeFiles')
        return bucket.get_upload_part_url(account_auth_token, file_id)

    def hide_file(self, api_url, account_auth_token, bucket_id, file_name):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'writeFiles', file_name
        )
        return bucket.hide_file(file_name)

    def list_buckets(
        self,
        api_url,
        account_auth_token,
        account_id,
        bucket_id=None,
        bucket_name=None,
        bucket_types=None,
    ):
        # a key restricted to a bucket may list it by name as well as by id
        bucket_id_for_auth = bucket_id
        if bucket_name is not None:
            bucket = self.buckets_by_name.get(bucket_name)
            bucket_id_for_auth = bucket and bucket.bucket_id
        self._check_account_auth(
            api_url, account_auth_token, account_id, 'listBuckets', bucket_id_for_auth
        )
        return {
            'buckets': [
                bucket.bucket_dict()
                for _, bucket in sorted(self.buckets_by_name.items())
                if self._bucket_matches(bucket, bucket_id, bucket_name, bucket_types)
            ]
        }

    @classmethod
    def _bucket_matches(cls, bucket, bucket_id, bucket_name, bucket_types):
        if bucket_id is not None and bucket.bucket_id != bucket_id:
            return False
        if bucket_name is not None and bucket.bucket_name != bucket_name:
            return False
        return not bucket_types or 'all' in bucket_types or bucket.bucket_type in bucket_types

    def list_file_names(
        self,
        api_url,
        account_auth_token,
        bucket_id,
        start_file_name=None,
        max_file_count=None,
        prefix=None,
        delimiter=None,
    ):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'listFiles', prefix
        )
        return bucket.list_file_names(start_file_name, max_file_count, prefix, delimiter)

    def list_file_versions(
        self,
        api_url,
        account_auth_token,
        bucket_id,
        start_file_name=None,
        start_file_id=None,
        max_file_count=None,
        prefix=None,
        delimiter=None,
    ):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'listFiles', prefix
        )
        return bucket.list_file_versions(
            start_file_name, start_file_id, max_file_count, prefix, delimiter
        )

    def list_keys(
        self,
        api_url,
        account_auth_token,
        account_id,
        max_key_count=None,
        start_application_key_id=None,
    ):
        self._check_account_auth(api_url, account_auth_token, account_id, 'listKeys')
        max_key_count = max_key_count or 100
        keys = sorted(
            (
                key_sim for key_sim in self.keys_by_id.values()
                if key_sim.account_id == account_id and
                key_sim.application_key_id >= (start_application_key_id or '')
            ),
            key=lambda key_sim: key_sim.application_key_id,
        )
        next_application_key_id = None
        if len(keys) > max_key_count:
            next_application_key_id = keys[max_key_count].application_key_id
        return {
            'keys': [key_sim.as_key() for key_sim in keys[:max_key_count]],
            'nextApplicationKeyId': next_application_key_id,
        }

    def list_parts(
        self, api_url, account_auth_token, file_id, start_part_number=None, max_part_count=None
    ):
        bucket = self._authorize_for_file(api_url, account_auth_token, file_id, 'writeFiles')
        return bucket.list_parts(file_id, start_part_number, max_part_count)

    def list_unfinished_large_files(
        self,
        api_url,
        account_auth_token,
        bucket_id,
        start_file_id=None,
        max_file_count=None,
        prefix=None,
    ):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'listFiles', prefix
        )
        return bucket.list_unfinished_large_files(start_file_id, max_file_count, prefix)

    def start_large_file(
        self,
        api_url,
        account_auth_token,
        bucket_id,
        file_name,
        content_type,
        file_info,
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ):
        bucket = self._authorize_for_bucket(
            api_url, account_auth_token, bucket_id, 'writeFiles', file_name
        )
        self.check_b2_filename(file_name)
        return bucket.start_large_file(
            file_name,
            content_type,
            file_info,
            server_side_encryption,
            file_retention,
            legal_hold,
            custom_upload_timestamp=custom_upload_timestamp,
        )

    def update_bucket(
        self,
        api_url,
        account_auth_token,
        account_id,
        bucket_id,
        bucket_type=None,
        bucket_info=None,
        cors_rules=None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        if_revision_is: int | None = None,
        default_server_side_encryption: EncryptionSetting | None = None,
        is_file_lock_enabled: bool | None = None,
    ):
        self._check_account_auth(
            api_url, account_auth_token, account_id, 'writeBuckets', bucket_id
        )
        bucket = self._bucket_by_id(bucket_id)
        return bucket.update(
            bucket_type=bucket_type,
            bucket_info=bucket_info,
            cors_rules=cors_rules,
            lifecycle_rules=lifecycle_rules,
            if_revision_is=if_revision_is,
            default_server_side_encryption=default_server_side_encryption,
            is_file_lock_enabled=is_file_lock_enabled,
        )

    def update_file_legal_hold(
        self, api_url, account_auth_token, file_id, file_name, legal_hold: LegalHold
    ):
        bucket = self._authorize_for_file(
            api_url, account_auth_token, file_id, 'writeFileLegalHolds', file_name
        )
        return bucket.update_file_legal_hold(file_id, file_name, legal_hold)

    def update_file_retention(
        self,
        api_url,
        account_auth_token,
        file_id,
        file_name,
        file_retention: FileRetentionSetting,
        bypass_governance: bool = False,
    ):
        bucket = self._authorize_for_file(
            api_url, account_auth_token, file_id, 'writeFileRetentions', file_name
        )
        return bucket.update_file_retention(file_id, file_name, file_retention, bypass_governance)

    def upload_file(
        self,
        upload_url: str,
        upload_auth_token: str,
        file_name: str,
        content_length: int,
        content_type: str,
        content_sha1: str,
        file_info: dict,
        data_stream,
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ):
        assert upload_url == upload_auth_token
        url_match = self.UPLOAD_URL_MATCHER.match(upload_url)
        if url_match is None:
            raise BadUploadUrl(upload_url)
        self._raise_upload_error_if_any()
        self.check_b2_filename(file_name)
        bucket = self._bucket_by_id(url_match.group(1))
        # built for the sake of its validation only
        self.get_upload_file_headers(
            upload_auth_token=upload_auth_token,
            file_name=file_name,
            content_length=content_length,
            content_type=content_type,
            content_sha1=content_sha1,
            file_info=file_info,
            server_side_encryption=server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
            custom_upload_timestamp=custom_upload_timestamp,
        )
        return bucket.upload_file(
            file_name,
            content_length,
            content_type,
            content_sha1,
            file_info,
            data_stream,
            server_side_encryption,
            file_retention,
            legal_hold,
            custom_upload_timestamp,
        )

    def upload_part(
        self,
        upload_url,
        upload_auth_token,
        part_number,
        content_length,
        sha1_sum,
        input_stream,
        server_side_encryption: EncryptionSetting | None = None,
    ):
        url_match = self.UPLOAD_PART_MATCHER.match(upload_url)
        if url_match is None:
            raise BadUploadUrl(upload_url)
        if not 1 <= part_number <= self.MAX_PART_ID:
            raise BadRequest(f'Part number must be in range 1 - {self.MAX_PART_ID}', 'bad_request')
        self._raise_upload_error_if_any()
        file_id = url_match.group(1)
        bucket = self._get_bucket_by_file_id(file_id)
        return bucket.upload_part(
            file_id, part_number, content_length, sha1_sum, input_stream, server_side_encryption
        )

    def _authorize_for_bucket(
        self, api_url, account_auth_token, bucket_id, capability, file_name=None
    ) -> BucketSimulator:
        bucket = self._bucket_by_id(bucket_id)
        self._check_account_auth(
            api_url, account_auth_token, bucket.account_id, capability, bucket_id, file_name
        )
        return bucket

    def _authorize_for_file(
        self, api_url, account_auth_token, file_id, capability, file_name=None
    ) -> BucketSimulator:
        bucket = self._get_bucket_by_file_id(file_id)
        self._check_account_auth(
            api_url, account_auth_token, bucket.account_id, capability, bucket.bucket_id,
            file_name
        )
        return bucket

    def _check_account_auth(
        self, api_url, account_auth_token, account_id, capability, bucket_id=None, file_name=None
    ):
        key_sim = self.keys_by_auth_token.get(account_auth_token)
        if key_sim is None:
            raise InvalidAuthToken('invalid auth token', 'bad_auth_token')
        assert api_url == self.API_URL, api_url
        assert account_id == key_sim.account_id, account_id
        if account_auth_token in self.expired_tokens:
            raise InvalidAuthToken('auth token expired', 'expired_auth_token')
        if not key_sim.allows(capability, bucket_id, file_name):
            raise Unauthorized('', 'unauthorized')

    def _bucket_by_id(self, bucket_id) -> BucketSimulator:
        bucket = self.buckets_by_id.get(bucket_id)
        if bucket is None:
            raise NonExistentBucket(bucket_id)
        return bucket

    def _bucket_by_name(self, bucket_name) -> BucketSimulator:
        bucket = self.buckets_by_name.get(bucket_name)
        if bucket is None:
            raise NonExistentBucket(bucket_name)
        return bucket

    def _get_bucket_by_file_id(self, file_id) -> BucketSimulator:
        bucket_id = self.bucket_id_by_file_id.get(file_id)
        if bucket_id is None:
            raise FileNotPresent(file_id_or_name=file_id)
        return self._bucket_by_id(bucket_id)
