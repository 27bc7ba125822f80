######################################################################
#
# File: b2client/_internal/bucket.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO, Iterator

from .encryption.setting import EncryptionSetting, EncryptionSettingFactory
from .encryption.types import EncryptionMode
from .file_version import FileVersion
from .progress import AbstractProgressListener
from .raw_api import LifecycleRule
from .upload.file_upload import FileUpload
from .upload.options import FileUploadOptions

if TYPE_CHECKING:
    from .client import B2Client


class Bucket:
    """
    A bucket as last seen in a listing, with shortcuts to the :class:`B2Client` calls
    which work on it.

    The attributes are not refreshed; list the buckets again to see changes.
    """

    def __init__(
        self,
        api: B2Client,
        id_: str,
        name: str | None = None,
        type_: str | None = None,
        *,
        bucket_info: dict | None = None,
        cors_rules: list | None = None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        revision: int | None = None,
        options: set[str] | None = None,
        default_server_side_encryption: EncryptionSetting | None = None,
        is_file_lock_enabled: bool | None = None,
    ):
        self.api = api
        self.id_ = id_
        self.name = name
        self.type_ = type_
        self.bucket_info = bucket_info or {}
        self.cors_rules = cors_rules or []
        self.lifecycle_rules = lifecycle_rules or []
        self.revision = revision
        self.options = options or set()
        if default_server_side_encryption is None:
            default_server_side_encryption = EncryptionSetting(EncryptionMode.UNKNOWN)
        self.default_server_side_encryption = default_server_side_encryption
        # None when the key may not read the file lock configuration
        self.is_file_lock_enabled = is_file_lock_enabled

    def get_id(self) -> str:
        return self.id_

    def ls(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        fetch_count: int | None = None,
    ) -> Iterator[list[FileVersion]]:
        """
        Yield pages of the current file versions in this bucket, see :meth:`B2Client.ls`.
        """
        return self.api.ls(self.id_, prefix=prefix, delimiter=delimiter, fetch_count=fetch_count)

    def create_upload(
        self,
        file: BinaryIO | str,
        file_name: str,
        file_info: dict[str, str] | None = None,
        file_size: int | None = None,
        options: FileUploadOptions | None = None,
        progress_listener: AbstractProgressListener | None = None,
    ) -> FileUpload:
        """
        Prepare a tracked upload of a file to this bucket, see :meth:`B2Client.create_upload`.
        """
        return self.api.create_upload(
            file,
            file_name,
            self.id_,
            file_info=file_info,
            file_size=file_size,
            options=options,
            progress_listener=progress_listener,
        )

    def download_file_by_name(self, file_name: str, range_: tuple[int, int] | None = None):
        return self.api.download_file_by_name(self.name, file_name, range_=range_)

    def as_dict(self) -> dict:
        """
        The bucket in the shape ``b2_list_buckets`` returns it, as far as it is known.
        """
        result = {
            'accountId': self.api.account_info.get_account_id(),
            'bucketId': self.id_,
            'bucketInfo': self.bucket_info,
            'corsRules': self.cors_rules,
            'lifecycleRules': self.lifecycle_rules,
            'revision': self.revision,
            'options': self.options,
            'defaultServerSideEncryption': self.default_server_side_encryption.as_dict(),
            'isFileLockEnabled': self.is_file_lock_enabled,
        }
        for key, value in (('bucketName', self.name), ('bucketType', self.type_)):
            if value is not None:
                result[key] = value
        return result

    def __repr__(self):
        return f'Bucket<{self.id_},{self.name},{self.type_}>'


class BucketFactory:
    """
    Make :class:`Bucket` objects out of ``b2_list_buckets`` responses.
    """

    BUCKET_CLASS = staticmethod(Bucket)

    @classmethod
    def from_api_response(cls, api, response) -> list[Bucket]:
        return [cls.from_api_bucket_dict(api, bucket_dict) for bucket_dict in response['buckets']]

    @classmethod
    def from_api_bucket_dict(cls, api, bucket_dict: dict) -> Bucket:
        """
        Read one bucket of the listing, e.g.

        .. code-block:: python

            {
                "accountId": "4aa9865d6f00",
                "bucketId": "a4ba6a39d8b6b5fd561f0010",
                "bucketName": "backups",
                "bucketType": "allPrivate",
                "bucketInfo": {},
                "options": [],
                "revision": 1,
                "defaultServerSideEncryption": {
                    "isClientAuthorizedToRead": true,
                    "value": {"algorithm": "AES256", "mode": "SSE-B2"}
                },
                "fileLockConfiguration": {
                    "isClientAuthorizedToRead": true,
                    "value": {"defaultRetention": {"mode": null}, "isFileLockEnabled": false}
                }
            }
        """
        file_lock = bucket_dict.get('fileLockConfiguration') or {}
        is_file_lock_enabled = None
        if file_lock.get('isClientAuthorizedToRead'):
            is_file_lock_enabled = file_lock['value']['isFileLockEnabled']
        return cls.BUCKET_CLASS(
            api,
            bucket_dict['bucketId'],
            bucket_dict['bucketName'],
            bucket_dict['bucketType'],
            bucket_info=bucket_dict.get('bucketInfo'),
            cors_rules=bucket_dict.get('corsRules'),
            lifecycle_rules=bucket_dict.get('lifecycleRules'),
            revision=bucket_dict.get('revision'),
            options=set(bucket_dict.get('options', [])),
            default_server_side_encryption=EncryptionSettingFactory.from_bucket_dict(bucket_dict),
            is_file_lock_enabled=is_file_lock_enabled,
        )
