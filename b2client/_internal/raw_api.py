######################################################################
#
# File: b2client/_internal/raw_api.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import base64
from abc import ABCMeta, abstractmethod
from enum import Enum
from typing import Any, BinaryIO

from typing_extensions import NotRequired, TypedDict

from .encryption.setting import EncryptionMode, EncryptionSetting
from .exception import (
    AccessDenied,
    InvalidMetadataDirective,
    RetentionWriteError,
    SSECKeyError,
    UnusableFileName,
    WrongEncryptionModeForBucketDefault,
)
from .file_lock import FileRetentionSetting, LegalHold
from .http_constants import (
    FILE_INFO_HEADER_PREFIX,
    MAX_FILE_NAME_BYTES,
    MAX_FILE_NAME_SEGMENT_BYTES,
)
from .utils import b2_url_encode
from .utils.typing import JSON

# where to authorize for each realm; any other realm name is taken to be an url
REALM_URLS = {
    'production': 'https://api.backblazeb2.com',
    'dev': 'http://api.backblazeb2.xyz:8180',
    'staging': 'https://api.backblaze.net',
}

# everything an application key may be allowed to do
ALL_CAPABILITIES = [
    'listKeys',
    'writeKeys',
    'deleteKeys',
    'listBuckets',
    'listAllBucketNames',
    'readBuckets',
    'writeBuckets',
    'deleteBuckets',
    'readBucketEncryption',
    'writeBucketEncryption',
    'readBucketRetentions',
    'writeBucketRetentions',
    'readFileRetentions',
    'writeFileRetentions',
    'readFileLegalHolds',
    'writeFileLegalHolds',
    'readBucketReplications',
    'writeBucketReplications',
    'bypassGovernance',
    'listFiles',
    'readFiles',
    'shareFiles',
    'writeFiles',
    'deleteFiles',
    'readBucketNotifications',
    'writeBucketNotifications',
    'readBucketLogging',
    'writeBucketLogging',
]

API_VERSION = 'v3'


class LifecycleRule(TypedDict):
    """
    When files under ``fileNamePrefix`` get hidden, and when hidden ones get deleted.
    """
    fileNamePrefix: str
    daysFromHidingToDeleting: NotRequired[int | None]
    daysFromUploadingToHiding: NotRequired[int | None]
    daysFromStartingToCancelingUnfinishedLargeFiles: NotRequired[int | None]


class MetadataDirectiveMode(Enum):
    """ Where a copy takes its content type and file info from """
    COPY = 401  #: copy metadata from the source file
    REPLACE = 402  #: ignore the source file metadata and set it to provided values


class NotificationRule(TypedDict):
    """
    Which events in a bucket are sent to a webhook.
    """
    name: str
    eventTypes: list[str]
    isEnabled: bool
    objectNamePrefix: str
    targetConfiguration: dict
    isSuspended: NotRequired[bool]
    suspensionReason: NotRequired[str]


class AbstractRawApi(metaclass=ABCMeta):
    """
    The B2 endpoints used by the session, one method per endpoint.

    Implemented over HTTP by :class:`B2RawHTTPApi` and in memory by ``RawSimulator``.
    Account calls take the api url and the account token first; uploads take the
    upload url and its own token instead.
    """

    # account and keys

    @abstractmethod
    def authorize_account(
        self, realm_url: str, application_key_id: str, application_key: str
    ) -> JSON:
        pass

    @abstractmethod
    def create_key(
        self,
        api_url: str,
        account_auth_token: str,
        account_id: str,
        capabilities: list[str],
        key_name: str,
        valid_duration_seconds: int | None,
        bucket_id: str | None,
        name_prefix: str | None,
    ) -> JSON:
        pass

    @abstractmethod
    def delete_key(self, api_url: str, account_auth_token: str, application_key_id: str) -> JSON:
        pass

    @abstractmethod
    def list_keys(
        self,
        api_url: str,
        account_auth_token: str,
        account_id: str,
        max_key_count: int | None = None,
        start_application_key_id: str | None = None,
    ) -> JSON:
        pass

    # buckets

    @abstractmethod
    def create_bucket(
        self,
        api_url: str,
        account_auth_token: str,
        account_id: str,
        bucket_name: str,
        bucket_type: str,
        bucket_info: dict | None = None,
        cors_rules: list | None = None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        default_server_side_encryption: EncryptionSetting | None = None,
        is_file_lock_enabled: bool | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def delete_bucket(
        self, api_url: str, account_auth_token: str, account_id: str, bucket_id: str
    ) -> JSON:
        pass

    @abstractmethod
    def list_buckets(
        self,
        api_url: str,
        account_auth_token: str,
        account_id: str,
        bucket_id: str | None = None,
        bucket_name: str | None = None,
        bucket_types: list[str] | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def update_bucket(
        self,
        api_url: str,
        account_auth_token: str,
        account_id: str,
        bucket_id: str,
        bucket_type: str | None = None,
        bucket_info: dict | None = None,
        cors_rules: list | None = None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        if_revision_is: int | None = None,
        default_server_side_encryption: EncryptionSetting | None = None,
        is_file_lock_enabled: bool | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def get_bucket_notification_rules(
        self, api_url: str, account_auth_token: str, bucket_id: str
    ) -> list[NotificationRule]:
        pass

    @abstractmethod
    def set_bucket_notification_rules(
        self, api_url: str, account_auth_token: str, bucket_id: str, rules: list[NotificationRule]
    ) -> list[NotificationRule]:
        pass

    # files

    @abstractmethod
    def delete_file_version(
        self,
        api_url: str,
        account_auth_token: str,
        file_id: str,
        file_name: str,
        bypass_governance: bool = False,
    ) -> JSON:
        pass

    @abstractmethod
    def get_file_info_by_id(self, api_url: str, account_auth_token: str, file_id: str) -> JSON:
        pass

    @abstractmethod
    def hide_file(
        self, api_url: str, account_auth_token: str, bucket_id: str, file_name: str
    ) -> JSON:
        pass

    @abstractmethod
    def list_file_names(
        self,
        api_url: str,
        account_auth_token: str,
        bucket_id: str,
        start_file_name: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def list_file_versions(
        self,
        api_url: str,
        account_auth_token: str,
        bucket_id: str,
        start_file_name: str | None = None,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def update_file_retention(
        self,
        api_url: str,
        account_auth_token: str,
        file_id: str,
        file_name: str,
        file_retention: FileRetentionSetting,
        bypass_governance: bool = False,
    ) -> JSON:
        pass

    @abstractmethod
    def update_file_legal_hold(
        self,
        api_url: str,
        account_auth_token: str,
        file_id: str,
        file_name: str,
        legal_hold: LegalHold,
    ) -> JSON:
        pass

    @abstractmethod
    def copy_file(
        self,
        api_url: str,
        account_auth_token: str,
        source_file_id: str,
        new_file_name: str,
        bytes_range: tuple[int, int] | None = None,
        metadata_directive: MetadataDirectiveMode | None = None,
        content_type: str | None = None,
        file_info: dict | None = None,
        destination_bucket_id: str | None = None,
        destination_server_side_encryption: EncryptionSetting | None = None,
        source_server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def get_download_authorization(
        self,
        api_url: str,
        account_auth_token: str,
        bucket_id: str,
        file_name_prefix: str,
        valid_duration_in_seconds: int,
        content_disposition: str | None = None,
        content_language: str | None = None,
        expires: str | None = None,
        cache_control: str | None = None,
        content_encoding: str | None = None,
        content_type: str | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def download_file_from_url(
        self,
        account_auth_token_or_none: str | None,
        url: str,
        range_: tuple[int, int] | None = None,
        encryption: EncryptionSetting | None = None,
    ):
        pass

    def get_download_url_by_id(self, download_url: str, file_id: str) -> str:
        return f'{download_url}/b2api/{API_VERSION}/b2_download_file_by_id?fileId={file_id}'

    def get_download_url_by_name(self, download_url: str, bucket_name: str, file_name: str) -> str:
        return f'{download_url}/file/{bucket_name}/{b2_url_encode(file_name)}'

    # uploads

    @abstractmethod
    def get_upload_url(self, api_url: str, account_auth_token: str, bucket_id: str) -> JSON:
        pass

    @abstractmethod
    def upload_file(
        self,
        upload_url: str,
        upload_auth_token: str,
        file_name: str,
        content_length: int,
        content_type: str,
        content_sha1: str,
        file_info: dict[str, str],
        data_stream: BinaryIO,
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def start_large_file(
        self,
        api_url: str,
        account_auth_token: str,
        bucket_id: str,
        file_name: str,
        content_type: str,
        file_info: dict[str, str],
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def get_upload_part_url(self, api_url: str, account_auth_token: str, file_id: str) -> JSON:
        pass

    @abstractmethod
    def upload_part(
        self,
        upload_url: str,
        upload_auth_token: str,
        part_number: int,
        content_length: int,
        content_sha1: str,
        data_stream: BinaryIO,
        server_side_encryption: EncryptionSetting | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def copy_part(
        self,
        api_url: str,
        account_auth_token: str,
        source_file_id: str,
        large_file_id: str,
        part_number: int,
        bytes_range: tuple[int, int] | None = None,
        destination_server_side_encryption: EncryptionSetting | None = None,
        source_server_side_encryption: EncryptionSetting | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def list_parts(
        self,
        api_url: str,
        account_auth_token: str,
        file_id: str,
        start_part_number: int | None = None,
        max_part_count: int | None = None,
    ) -> JSON:
        pass

    @abstractmethod
    def finish_large_file(
        self, api_url: str, account_auth_token: str, file_id: str, part_sha1_array: list[str]
    ) -> JSON:
        pass

    @abstractmethod
    def cancel_large_file(self, api_url: str, account_auth_token: str, file_id: str) -> JSON:
        pass

    @abstractmethod
    def list_unfinished_large_files(
        self,
        api_url: str,
        account_auth_token: str,
        bucket_id: str,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
    ) -> JSON:
        pass

    # shared by the implementations

    @classmethod
    def get_upload_file_headers(
        cls,
        upload_auth_token: str,
        file_name: str,
        content_length: int,
        content_type: str,
        content_sha1: str,
        file_info: dict,
        server_side_encryption: EncryptionSetting | None,
        file_retention: FileRetentionSetting | None,
        legal_hold: LegalHold | None,
        custom_upload_timestamp: int | None = None,
    ) -> dict:
        headers = cls._common_upload_headers(upload_auth_token, content_length, content_sha1)
        headers['X-Bz-File-Name'] = b2_url_encode(file_name)
        headers['Content-Type'] = content_type
        headers.update(
            (FILE_INFO_HEADER_PREFIX + name, b2_url_encode(value))
            for name, value in file_info.items()
        )
        for setting in (server_side_encryption, legal_hold, file_retention):
            if setting is not None:
                setting.add_to_upload_headers(headers)
        if custom_upload_timestamp is not None:
            headers['X-Bz-Custom-Upload-Timestamp'] = str(custom_upload_timestamp)
        return headers

    @classmethod
    def get_upload_part_headers(
        cls,
        upload_auth_token: str,
        part_number: int,
        content_length: int,
        content_sha1: str,
        server_side_encryption: EncryptionSetting | None = None,
    ) -> dict:
        headers = cls._common_upload_headers(upload_auth_token, content_length, content_sha1)
        headers['X-Bz-Part-Number'] = str(part_number)
        if server_side_encryption is not None:
            server_side_encryption.add_to_part_upload_headers(headers)
        return headers

    @classmethod
    def _common_upload_headers(cls, upload_auth_token, content_length, content_sha1) -> dict:
        return {
            'Authorization': upload_auth_token,
            'Content-Length': str(content_length),
            'X-Bz-Content-Sha1': content_sha1,
        }

    @classmethod
    def check_metadata_directive(
        cls,
        metadata_directive: MetadataDirectiveMode | None,
        content_type: str | None,
        file_info: dict | None,
    ) -> None:
        """
        Raise :class:`InvalidMetadataDirective` if copy metadata does not fit the directive.

        ``COPY`` takes content type and file info from the source, so neither may be given;
        ``REPLACE`` needs at least the content type.
        """
        if metadata_directive is MetadataDirectiveMode.COPY:
            if content_type is not None or file_info is not None:
                raise InvalidMetadataDirective(
                    'content_type and file_info should be None when metadata_directive is COPY'
                )
        elif metadata_directive is MetadataDirectiveMode.REPLACE:
            if content_type is None:
                raise InvalidMetadataDirective(
                    'content_type cannot be None when metadata_directive is REPLACE'
                )

    @classmethod
    def check_b2_filename(cls, filename: str) -> None:
        """
        Raise :class:`UnusableFileName` if B2 would refuse ``filename``.

        The rules are listed in https://www.backblaze.com/docs/cloud-storage-files
        """
        encoded = filename.encode('utf-8')
        if not encoded:
            raise UnusableFileName('Filename must be at least 1 character.')
        if len(encoded) > MAX_FILE_NAME_BYTES:
            raise UnusableFileName(
                f'Filename is too long (can be at most {MAX_FILE_NAME_BYTES} bytes).'
            )
        lowest = ord(min(filename))
        if lowest < 32:
            raise UnusableFileName(
                f'Filename {filename!r} contains code {lowest} (hex {lowest:02x}), less than 32.'
            )
        if '\x7f' in filename:
            raise UnusableFileName('DEL character (0x7f) not allowed.')
        if filename[0] == '/' or filename[-1] == '/':
            raise UnusableFileName("Filename may not start or end with '/'.")
        segments = filename.split('/')
        if '' in segments:
            raise UnusableFileName('Filename may not contain "//".')
        if max(len(segment.encode('utf-8')) for segment in segments) > MAX_FILE_NAME_SEGMENT_BYTES:
            raise UnusableFileName(
                f'Filename segment too long (maximum {MAX_FILE_NAME_SEGMENT_BYTES} bytes in utf-8).'
            )


class B2RawHTTPApi(AbstractRawApi):
    """
    Map every B2 endpoint to one method call.

    Nothing is remembered between calls: the caller passes the api url and the auth
    token every time, and gets the decoded JSON of the response back. Retries and
    error translation are done by the ``b2_http`` object underneath.

    Endpoint reference: https://www.backblaze.com/apidocs/introduction-to-the-b2-native-api
    """

    def __init__(self, b2_http):
        self.b2_http = b2_http

    def _endpoint_url(self, base_url: str, endpoint: str) -> str:
        return f'{base_url}/b2api/{API_VERSION}/{endpoint}'

    def _post(self, base_url: str, endpoint: str, auth: str, **params) -> JSON:
        """
        POST ``params`` as a JSON body to ``endpoint`` (e.g. ``b2_create_bucket``).
        """
        url = self._endpoint_url(base_url, endpoint)
        return self.b2_http.post_json_return_json(url, {'Authorization': auth}, params)

    def _get(self, base_url: str, endpoint: str, auth: str, **params) -> JSON:
        url = self._endpoint_url(base_url, endpoint)
        return self.b2_http.get_json_return_json(url, {'Authorization': auth}, params)

    def authorize_account(self, realm_url, application_key_id, application_key):
        key_pair = f'{application_key_id}:{application_key}'.encode()
        basic_auth = 'Basic ' + base64.b64encode(key_pair).decode()
        return self._get(realm_url, 'b2_authorize_account', basic_auth)

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
        optional = _without_none(
            validDurationInSeconds=valid_duration_seconds,
            bucketId=bucket_id,
            namePrefix=name_prefix,
        )
        return self._post(
            api_url,
            'b2_create_key',
            account_auth_token,
            accountId=account_id,
            capabilities=capabilities,
            keyName=key_name,
            **optional,
        )

    def delete_key(self, api_url, account_auth_token, application_key_id):
        return self._post(
            api_url, 'b2_delete_key', account_auth_token, applicationKeyId=application_key_id
        )

    def list_keys(
        self,
        api_url,
        account_auth_token,
        account_id,
        max_key_count=None,
        start_application_key_id=None,
    ):
        return self._get(
            api_url,
            'b2_list_keys',
            account_auth_token,
            accountId=account_id,
            maxKeyCount=max_key_count,
            startApplicationKeyId=start_application_key_id,
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
        lifecycle_rules=None,
        default_server_side_encryption=None,
        is_file_lock_enabled=None,
    ):
        sse = default_server_side_encryption
        if sse is not None and not sse.mode.can_be_set_as_bucket_default():
            raise WrongEncryptionModeForBucketDefault(sse.mode)
        optional = _without_none(
            bucketInfo=bucket_info,
            corsRules=cors_rules,
            lifecycleRules=lifecycle_rules,
            defaultServerSideEncryption=sse and sse.serialize_to_json_for_request(),
            fileLockEnabled=is_file_lock_enabled,
        )
        return self._post(
            api_url,
            'b2_create_bucket',
            account_auth_token,
            accountId=account_id,
            bucketName=bucket_name,
            bucketType=bucket_type,
            **optional,
        )

    def delete_bucket(self, api_url, account_auth_token, account_id, bucket_id):
        return self._post(
            api_url,
            'b2_delete_bucket',
            account_auth_token,
            accountId=account_id,
            bucketId=bucket_id,
        )

    def list_buckets(
        self,
        api_url,
        account_auth_token,
        account_id,
        bucket_id=None,
        bucket_name=None,
        bucket_types=None,
    ):
        return self._post(
            api_url,
            'b2_list_buckets',
            account_auth_token,
            accountId=account_id,
            bucketTypes=bucket_types or ['all'],
            **_without_none(bucketId=bucket_id, bucketName=bucket_name),
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
        lifecycle_rules=None,
        if_revision_is=None,
        default_server_side_encryption=None,
        is_file_lock_enabled=None,
    ):
        sse = default_server_side_encryption
        if sse is not None and not sse.mode.can_be_set_as_bucket_default():
            raise WrongEncryptionModeForBucketDefault(sse.mode)
        kwargs = _without_none(
            bucketType=bucket_type,
            bucketInfo=bucket_info,
            corsRules=cors_rules,
            lifecycleRules=lifecycle_rules,
            ifRevisionIs=if_revision_is,
            defaultServerSideEncryption=sse and sse.serialize_to_json_for_request(),
            fileLockEnabled=is_file_lock_enabled,
        )
        assert kwargs, 'nothing to update'
        return self._post(
            api_url,
            'b2_update_bucket',
            account_auth_token,
            accountId=account_id,
            bucketId=bucket_id,
            **kwargs,
        )

    def get_bucket_notification_rules(self, api_url, account_auth_token, bucket_id):
        return self._get(
            api_url,
            'b2_get_bucket_notification_rules',
            account_auth_token,
            bucketId=bucket_id,
        )['eventNotificationRules']

    def set_bucket_notification_rules(self, api_url, account_auth_token, bucket_id, rules):
        return self._post(
            api_url,
            'b2_set_bucket_notification_rules',
            account_auth_token,
            bucketId=bucket_id,
            eventNotificationRules=rules,
        )['eventNotificationRules']

    def delete_file_version(
        self, api_url, account_auth_token, file_id, file_name, bypass_governance=False
    ):
        return self._post(
            api_url,
            'b2_delete_file_version',
            account_auth_token,
            fileId=file_id,
            fileName=file_name,
            bypassGovernance=bypass_governance,
        )

    def get_file_info_by_id(self, api_url, account_auth_token, file_id):
        return self._get(api_url, 'b2_get_file_info', account_auth_token, fileId=file_id)

    def hide_file(self, api_url, account_auth_token, bucket_id, file_name):
        return self._post(
            api_url, 'b2_hide_file', account_auth_token, bucketId=bucket_id, fileName=file_name
        )

    # b2_http leaves the None parameters of a GET out of the query string

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
        return self._get(
            api_url,
            'b2_list_file_names',
            account_auth_token,
            bucketId=bucket_id,
            startFileName=start_file_name,
            maxFileCount=max_file_count,
            prefix=prefix,
            delimiter=delimiter,
        )

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
        return self._get(
            api_url,
            'b2_list_file_versions',
            account_auth_token,
            bucketId=bucket_id,
            startFileName=start_file_name,
            startFileId=start_file_id,
            maxFileCount=max_file_count,
            prefix=prefix,
            delimiter=delimiter,
        )

    def update_file_retention(
        self,
        api_url,
        account_auth_token,
        file_id,
        file_name,
        file_retention,
        bypass_governance=False,
    ):
        try:
            return self._post(
                api_url,
                'b2_update_file_retention',
                account_auth_token,
                fileId=file_id,
                fileName=file_name,
                fileRetention=file_retention.serialize_to_json_for_request(),
                bypassGovernance=bypass_governance,
            )
        except AccessDenied:
            raise RetentionWriteError()

    def update_file_legal_hold(self, api_url, account_auth_token, file_id, file_name, legal_hold):
        return self._post(
            api_url,
            'b2_update_file_legal_hold',
            account_auth_token,
            fileId=file_id,
            fileName=file_name,
            legalHold=legal_hold.to_server(),
        )

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
        file_retention=None,
        legal_hold=None,
    ):
        """
        Make a new file out of (a range of) an existing one, without downloading it.

        :param bytes_range: inclusive ``(start, end)`` byte offsets of the source to copy
        :param metadata_directive: ``COPY`` to keep the source metadata, ``REPLACE`` to use
                                   ``content_type`` and ``file_info`` instead
        :param destination_bucket_id: the bucket of the new file, the source bucket if ``None``
        :param source_server_side_encryption: needed for a source encrypted with a customer key
        :raises InvalidMetadataDirective: if metadata and directive disagree, before sending
        :raises SSECKeyError: if the server refuses the customer key
        """
        self.check_metadata_directive(metadata_directive, content_type, file_info)
        for sse in (destination_server_side_encryption, source_server_side_encryption):
            if sse is not None:
                assert sse.mode in _REQUEST_ENCRYPTION_MODES, sse.mode
        optional = _without_none(
            range=bytes_range and _range_header_value(bytes_range),
            metadataDirective=metadata_directive and metadata_directive.name,
            contentType=content_type,
            fileInfo=file_info,
            destinationBucketId=destination_bucket_id,
            destinationServerSideEncryption=destination_server_side_encryption and
            destination_server_side_encryption.serialize_to_json_for_request(),
            sourceServerSideEncryption=source_server_side_encryption and
            source_server_side_encryption.serialize_to_json_for_request(),
            fileRetention=file_retention and file_retention.serialize_to_json_for_request(),
            legalHold=legal_hold and legal_hold.to_server(),
        )
        try:
            return self._post(
                api_url,
                'b2_copy_file',
                account_auth_token,
                sourceFileId=source_file_id,
                fileName=new_file_name,
                **optional,
            )
        except AccessDenied:
            raise SSECKeyError()

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
        optional = _without_none(
            b2ContentDisposition=content_disposition,
            b2ContentLanguage=content_language,
            b2Expires=expires,
            b2CacheControl=cache_control,
            b2ContentEncoding=content_encoding,
            b2ContentType=content_type,
        )
        return self._post(
            api_url,
            'b2_get_download_authorization',
            account_auth_token,
            bucketId=bucket_id,
            fileNamePrefix=file_name_prefix,
            validDurationInSeconds=valid_duration_in_seconds,
            **optional,
        )

    def download_file_from_url(
        self,
        account_auth_token_or_none,
        url,
        range_=None,
        encryption=None,
    ):
        """
        Start a streaming GET of ``url``.

        :param account_auth_token_or_none: sent as ``Authorization`` unless ``None``
        :param url: the download url, by id or by name
        :param range_: inclusive ``(start, end)`` byte offsets to fetch
        :param encryption: needed to read files encrypted with a customer key
        :return: a context manager yielding the streaming response
        """
        headers = {}
        if range_ is not None:
            headers['Range'] = _range_header_value(range_)
        if encryption is not None:
            assert encryption.mode in _REQUEST_ENCRYPTION_MODES, encryption.mode
            encryption.add_to_download_headers(headers)
        if account_auth_token_or_none is not None:
            headers['Authorization'] = account_auth_token_or_none
        try:
            return self.b2_http.get_content(url, headers)
        except AccessDenied:
            # the only way to be denied a download with a valid token is a wrong SSE-C key
            raise SSECKeyError()

    def get_upload_url(self, api_url, account_auth_token, bucket_id):
        return self._get(api_url, 'b2_get_upload_url', account_auth_token, bucketId=bucket_id)

    def upload_file(
        self,
        upload_url,
        upload_auth_token,
        file_name,
        content_length,
        content_type,
        content_sha1,
        file_info,
        data_stream,
        server_side_encryption=None,
        file_retention=None,
        legal_hold=None,
        custom_upload_timestamp=None,
    ):
        """
        Send the whole content of a small file in one request.

        This is tried exactly once. After a failure the upload url may be unusable,
        so the caller should get a new one before trying again.

        :param upload_url: from ``b2_get_upload_url``
        :param upload_auth_token: from ``b2_get_upload_url``, not the account token
        :param data_stream: file-like object with exactly ``content_length`` bytes
        :return: the new file version, as returned by the server
        :raises UnusableFileName: before anything is sent, if B2 would reject the name
        """
        self.check_b2_filename(file_name)
        headers = self.get_upload_file_headers(
            upload_auth_token,
            file_name,
            content_length,
            content_type,
            content_sha1,
            file_info,
            server_side_encryption,
            file_retention,
            legal_hold,
            custom_upload_timestamp,
        )
        return self.b2_http.post_content_return_json(upload_url, headers, data_stream, try_count=1)

    def start_large_file(
        self,
        api_url,
        account_auth_token,
        bucket_id,
        file_name,
        content_type,
        file_info,
        server_side_encryption=None,
        file_retention=None,
        legal_hold=None,
        custom_upload_timestamp=None,
    ):
        sse = server_side_encryption
        if sse is not None:
            assert sse.mode in _REQUEST_ENCRYPTION_MODES, sse.mode
        optional = _without_none(
            serverSideEncryption=sse and sse.serialize_to_json_for_request(),
            legalHold=legal_hold and legal_hold.to_server(),
            fileRetention=file_retention and file_retention.serialize_to_json_for_request(),
            customUploadTimestamp=custom_upload_timestamp,
        )
        return self._post(
            api_url,
            'b2_start_large_file',
            account_auth_token,
            bucketId=bucket_id,
            fileName=file_name,
            fileInfo=file_info,
            contentType=content_type,
            **optional,
        )

    def get_upload_part_url(self, api_url, account_auth_token, file_id):
        return self._get(api_url, 'b2_get_upload_part_url', account_auth_token, fileId=file_id)

    def upload_part(
        self,
        upload_url,
        upload_auth_token,
        part_number,
        content_length,
        content_sha1,
        data_stream,
        server_side_encryption=None,
    ):
        headers = self.get_upload_part_headers(
            upload_auth_token, part_number, content_length, content_sha1, server_side_encryption
        )
        return self.b2_http.post_content_return_json(upload_url, headers, data_stream, try_count=1)

    def copy_part(
        self,
        api_url,
        account_auth_token,
        source_file_id,
        large_file_id,
        part_number,
        bytes_range=None,
        destination_server_side_encryption=None,
        source_server_side_encryption=None,
    ):
        for sse in (destination_server_side_encryption, source_server_side_encryption):
            if sse is not None:
                assert sse.mode in _REQUEST_ENCRYPTION_MODES, sse.mode
        optional = _without_none(
            range=bytes_range and _range_header_value(bytes_range),
            destinationServerSideEncryption=destination_server_side_encryption and
            destination_server_side_encryption.serialize_to_json_for_request(),
            sourceServerSideEncryption=source_server_side_encryption and
            source_server_side_encryption.serialize_to_json_for_request(),
        )
        try:
            return self._post(
                api_url,
                'b2_copy_part',
                account_auth_token,
                sourceFileId=source_file_id,
                largeFileId=large_file_id,
                partNumber=part_number,
                **optional,
            )
        except AccessDenied:
            raise SSECKeyError()

    def list_parts(
        self,
        api_url,
        account_auth_token,
        file_id,
        start_part_number=None,
        max_part_count=None,
    ):
        return self._get(
            api_url,
            'b2_list_parts',
            account_auth_token,
            fileId=file_id,
            startPartNumber=start_part_number,
            maxPartCount=max_part_count,
        )

    def finish_large_file(self, api_url, account_auth_token, file_id, part_sha1_array):
        return self._post(
            api_url,
            'b2_finish_large_file',
            account_auth_token,
            fileId=file_id,
            partSha1Array=part_sha1_array,
        )

    def cancel_large_file(self, api_url, account_auth_token, file_id):
        return self._post(api_url, 'b2_cancel_large_file', account_auth_token, fileId=file_id)

    def list_unfinished_large_files(
        self,
        api_url,
        account_auth_token,
        bucket_id,
        start_file_id=None,
        max_file_count=None,
        prefix=None,
    ):
        return self._get(
            api_url,
            'b2_list_unfinished_large_files',
            account_auth_token,
            bucketId=bucket_id,
            startFileId=start_file_id,
            maxFileCount=max_file_count,
            namePrefix=prefix,
        )


_REQUEST_ENCRYPTION_MODES = (EncryptionMode.NONE, EncryptionMode.SSE_B2, EncryptionMode.SSE_C)


def _range_header_value(range_: tuple[int, int]) -> str:
    first, last = range_
    assert 0 <= first <= last, range_
    return f'bytes={first}-{last}'


def _without_none(**params) -> dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}
