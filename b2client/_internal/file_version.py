######################################################################
#
# File: b2client/_internal/file_version.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from requests.structures import CaseInsensitiveDict

from .encryption.setting import EncryptionSetting, EncryptionSettingFactory
from .file_lock import NO_RETENTION_FILE_SETTING, FileRetentionSetting, LegalHold
from .http_constants import FILE_INFO_HEADER_PREFIX_LOWER, NO_CONTENT_SHA1, SRC_LAST_MODIFIED_MILLIS
from .utils import Sha1HexDigest, b2_url_decode

if TYPE_CHECKING:
    from .client import B2Client
    from .download import DownloadedFile

_CONTENT_RANGE_RE = re.compile(r'^bytes (?P<start>\d+)-(?P<end>\d+)/(?P<size>\d+)$')

# download headers with an attribute of their own, looked up case-insensitively
_HEADER_ATTRIBUTES = {
    'content-disposition': 'content_disposition',
    'content-language': 'content_language',
    'content-encoding': 'content_encoding',
    'cache-control': 'cache_control',
    'expires': 'expires',
}
_PARSED_DOWNLOAD_HEADERS = frozenset(
    (
        'x-bz-file-id',
        'x-bz-file-name',
        'x-bz-content-sha1',
        'x-bz-upload-timestamp',
        'content-type',
        'content-length',
        'content-range',
        *_HEADER_ATTRIBUTES,
    )
)


class BaseFileVersion:
    """
    What B2 knows about one version of a file.

    ``api`` is the client which produced the object; it is what the convenience
    methods call, and it does not take part in comparisons.
    """

    __slots__ = [
        'api',
        'id_',
        'file_name',
        'size',
        'content_type',
        'content_sha1',
        'file_info',
        'upload_timestamp',
        'server_side_encryption',
        'legal_hold',
        'file_retention',
        'mod_time_millis',
    ]

    # (key, attribute) of the entries of as_dict() left out when the attribute is None
    _OPTIONAL_FIELDS: tuple[tuple[str, str], ...] = (
        ('size', 'size'),
        ('uploadTimestamp', 'upload_timestamp'),
        ('contentType', 'content_type'),
        ('contentSha1', 'content_sha1'),
    )

    def __init__(
        self,
        *,
        api: B2Client | None,
        id_: str,
        file_name: str,
        size: int,
        content_type: str | None,
        content_sha1: str | None,
        file_info: dict[str, str] | None,
        upload_timestamp: int | None,
        server_side_encryption: EncryptionSetting,
        file_retention: FileRetentionSetting = NO_RETENTION_FILE_SETTING,
        legal_hold: LegalHold = LegalHold.UNSET,
    ):
        self.api = api
        self.id_ = id_
        self.file_name = file_name
        self.size = size
        self.content_type = content_type
        # large files have no checksum of the whole content
        self.content_sha1 = None if content_sha1 == NO_CONTENT_SHA1 else content_sha1
        self.file_info = file_info or {}
        self.upload_timestamp = upload_timestamp
        self.server_side_encryption = server_side_encryption
        self.file_retention = file_retention
        self.legal_hold = legal_hold
        src_last_modified = self.file_info.get(SRC_LAST_MODIFIED_MILLIS)
        self.mod_time_millis = (
            int(src_last_modified) if src_last_modified is not None else upload_timestamp
        )

    def as_dict(self) -> dict[str, Any]:
        """
        Return the version in the shape the server uses in upload and list answers.
        """
        result = {
            'fileId': self.id_,
            'fileName': self.file_name,
            'fileInfo': self.file_info,
            'serverSideEncryption': self.server_side_encryption.as_dict(),
            'legalHold': self.legal_hold.value,
            'fileRetention': self.file_retention.as_dict(),
        }
        for key, attribute in self._OPTIONAL_FIELDS:
            value = getattr(self, attribute)
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def _compared_slots(cls) -> list[str]:
        slots = []
        for klass in reversed(cls.__mro__):
            slots.extend(slot for slot in getattr(klass, '__slots__', ()) if slot != 'api')
        return slots

    def __eq__(self, other):
        if not isinstance(other, BaseFileVersion):
            return NotImplemented
        return all(
            getattr(self, slot) == getattr(other, slot, None) for slot in self._compared_slots()
        )

    def __repr__(self):
        values = ', '.join(repr(getattr(self, slot)) for slot in self._compared_slots())
        return f'{self.__class__.__name__}({values})'

    def get_content_sha1(self) -> Sha1HexDigest | None:
        """
        Return the hex SHA1 of the content, or None for large files.
        """
        return Sha1HexDigest(self.content_sha1) if self.content_sha1 else None

    def delete(self, bypass_governance: bool = False) -> FileIdAndName:
        return self.api.delete_file_version(self.id_, self.file_name, bypass_governance)


class FileVersion(BaseFileVersion):
    """
    A version of a file as listed or uploaded.

    :ivar str ~.action: ``"upload"``, ``"start"``, ``"hide"`` or ``"folder"``
    :ivar ~.upload_timestamp: milliseconds since the epoch, ``None`` if unknown
    """

    __slots__ = [
        'account_id',
        'bucket_id',
        'content_md5',
        'action',
    ]

    _OPTIONAL_FIELDS = BaseFileVersion._OPTIONAL_FIELDS + (
        ('action', 'action'),
        ('contentMd5', 'content_md5'),
    )

    def __init__(
        self,
        *,
        account_id: str | None,
        bucket_id: str | None,
        action: str | None,
        content_md5: str | None,
        **kwargs,
    ):
        self.account_id = account_id
        self.bucket_id = bucket_id
        self.content_md5 = content_md5
        self.action = action
        super().__init__(**kwargs)

    # headers which were given on upload are kept among the file info with a b2- prefix

    @property
    def cache_control(self) -> str | None:
        return self.file_info.get('b2-cache-control')

    @property
    def expires(self) -> str | None:
        return self.file_info.get('b2-expires')

    @property
    def content_disposition(self) -> str | None:
        return self.file_info.get('b2-content-disposition')

    @property
    def content_encoding(self) -> str | None:
        return self.file_info.get('b2-content-encoding')

    @property
    def content_language(self) -> str | None:
        return self.file_info.get('b2-content-language')

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), 'accountId': self.account_id, 'bucketId': self.bucket_id}

    def get_fresh_state(self) -> FileVersion:
        """
        Ask the server about this version again and return a new object.
        """
        return self.api.get_file_info(self.id_)

    def download(
        self,
        range_: tuple[int, int] | None = None,
        encryption: EncryptionSetting | None = None,
    ) -> DownloadedFile:
        return self.api.download_file_by_id(self.id_, range_=range_, encryption=encryption)


class DownloadVersion(BaseFileVersion):
    """
    A version of a file as described by the headers of a download.

    :ivar range_: inclusive ``(start, end)`` of the bytes in the response
    :ivar content_length: how many bytes the response carries
    :ivar remaining_headers: headers which no other attribute stands for
    """

    __slots__ = [
        'range_',
        'content_length',
        'remaining_headers',
        *_HEADER_ATTRIBUTES.values(),
    ]

    _OPTIONAL_FIELDS = BaseFileVersion._OPTIONAL_FIELDS + (
        ('cacheControl', 'cache_control'),
        ('expires', 'expires'),
        ('contentDisposition', 'content_disposition'),
        ('contentEncoding', 'content_encoding'),
        ('contentLanguage', 'content_language'),
    )

    def __init__(
        self,
        *,
        range_: tuple[int, int] | None,
        content_length: int,
        content_disposition: str | None = None,
        content_language: str | None = None,
        content_encoding: str | None = None,
        cache_control: str | None = None,
        expires: str | None = None,
        remaining_headers: dict[str, str] | None = None,
        **kwargs,
    ):
        self.range_ = range_
        self.content_length = content_length
        self.content_disposition = content_disposition
        self.content_language = content_language
        self.content_encoding = content_encoding
        self.cache_control = cache_control
        self.expires = expires
        self.remaining_headers = remaining_headers or {}
        super().__init__(**kwargs)


class FileVersionFactory:
    """
    Build :class:`FileVersion` objects out of api answers, e.g.

    .. code-block:: python

       {
           "accountId": "4aa9865d6f00",
           "action": "upload",
           "bucketId": "547a2a395826655d561f0010",
           "contentLength": 1350,
           "contentSha1": "753ca1c2d0f3e8748320b38f5da057767029a036",
           "contentType": "application/octet-stream",
           "fileId": "4_z547a2a395826655d561f0010_f106d4ca95f8b5b78_d20160104_m003906_c001_v0001013_t0005",
           "fileInfo": {},
           "fileName": "randomdata",
           "serverSideEncryption": {"algorithm": "AES256", "mode": "SSE-B2"},
           "uploadTimestamp": 1451444477000
       }

    Hide markers come with ``size`` instead of ``contentLength``.
    """

    FILE_VERSION_CLASS = FileVersion

    def __init__(self, api: B2Client | None = None):
        self.api = api

    def from_api_response(self, file_version_dict: dict, force_action: str | None = None):
        assert file_version_dict.get('action') is None or force_action is None, \
            'action was provided by both info_dict and function argument'
        size = file_version_dict.get('size', file_version_dict.get('contentLength'))
        if size is None:
            raise ValueError('no size or contentLength')
        return self.FILE_VERSION_CLASS(
            api=self.api,
            id_=file_version_dict['fileId'],
            file_name=file_version_dict['fileName'],
            size=size,
            content_type=file_version_dict.get('contentType'),
            content_sha1=file_version_dict.get('contentSha1'),
            file_info=file_version_dict.get('fileInfo'),
            upload_timestamp=file_version_dict.get('uploadTimestamp'),
            account_id=file_version_dict.get('accountId'),
            bucket_id=file_version_dict.get('bucketId'),
            action=file_version_dict.get('action') or force_action,
            content_md5=file_version_dict.get('contentMd5'),
            server_side_encryption=EncryptionSettingFactory.from_file_version_dict(
                file_version_dict
            ),
            file_retention=FileRetentionSetting.from_file_version_dict(file_version_dict),
            legal_hold=LegalHold.from_file_version_dict(file_version_dict),
        )


class DownloadVersionFactory:
    """
    Build :class:`DownloadVersion` objects out of the headers of a download.
    """

    def __init__(self, api: B2Client | None = None):
        self.api = api

    @classmethod
    def range_and_size_from_header(cls, header: str) -> tuple[tuple[int, int], int]:
        """
        Parse a ``Content-Range`` header, e.g. ``bytes 0-99/1000``.
        """
        match = _CONTENT_RANGE_RE.match(header)
        if match is None:
            raise ValueError(f'Invalid Content-Range header: {header}')
        start, end, size = (int(match.group(name)) for name in ('start', 'end', 'size'))
        return (start, end), size

    @classmethod
    def file_info_from_headers(cls, headers: dict) -> dict:
        prefix_len = len(FILE_INFO_HEADER_PREFIX_LOWER)
        return {
            name[prefix_len:]: b2_url_decode(value)
            for name, value in headers.items()
            if name.lower().startswith(FILE_INFO_HEADER_PREFIX_LOWER)
        }

    @classmethod
    def remaining_headers_from_headers(cls, headers: dict) -> dict:
        return {
            name: value
            for name, value in headers.items()
            if name.lower() not in _PARSED_DOWNLOAD_HEADERS and
            not name.lower().startswith(FILE_INFO_HEADER_PREFIX_LOWER)
        }

    def from_response_headers(self, headers) -> DownloadVersion:
        headers = CaseInsensitiveDict(headers)
        content_length = int(headers['Content-Length'])
        if headers.get('Content-Range'):
            range_, size = self.range_and_size_from_header(headers['Content-Range'])
        else:
            size = content_length
            range_ = (0, size - 1) if size else None
        return DownloadVersion(
            api=self.api,
            id_=headers['x-bz-file-id'],
            file_name=b2_url_decode(headers['x-bz-file-name']),
            size=size,
            content_type=headers.get('content-type'),
            content_sha1=headers.get('x-bz-content-sha1'),
            file_info=self.file_info_from_headers(headers),
            upload_timestamp=int(headers['x-bz-upload-timestamp']),
            server_side_encryption=EncryptionSettingFactory.from_response_headers(headers),
            file_retention=FileRetentionSetting.from_response_headers(headers),
            legal_hold=LegalHold.from_response_headers(headers),
            range_=range_,
            content_length=content_length,
            remaining_headers=self.remaining_headers_from_headers(headers),
            **{
                attribute: headers.get(header)
                for header, attribute in _HEADER_ATTRIBUTES.items()
            },
        )


class FileIdAndName:
    """
    The answer of ``b2_delete_file_version`` and ``b2_cancel_large_file``.
    """

    def __init__(self, file_id: str, file_name: str):
        self.file_id = file_id
        self.file_name = file_name

    @classmethod
    def from_cancel_or_delete_response(cls, response):
        return cls(response['fileId'], response['fileName'])

    def as_dict(self):
        return {'action': 'delete', 'fileId': self.file_id, 'fileName': self.file_name}

    def __eq__(self, other):
        return (self.file_id, self.file_name) == (other.file_id, other.file_name)

    def __repr__(self):
        return f'{self.__class__.__name__}({self.file_id!r}, {self.file_name!r})'
