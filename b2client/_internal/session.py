######################################################################
#
# File: b2client/_internal/session.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from b2client._internal.account_info.abstract import AbstractAccountInfo
from b2client._internal.account_info.exception import MissingAccountData
from b2client._internal.account_info.in_memory import InMemoryAccountInfo
from b2client._internal.api_config import DEFAULT_HTTP_API_CONFIG, B2HttpApiConfig
from b2client._internal.b2http import B2Http
from b2client._internal.encryption.setting import EncryptionSetting
from b2client._internal.exception import InvalidAuthToken, MissingCapability, Unauthorized
from b2client._internal.file_lock import FileRetentionSetting, LegalHold
from b2client._internal.raw_api import (
    ALL_CAPABILITIES,
    REALM_URLS,
    LifecycleRule,
    MetadataDirectiveMode,
    NotificationRule,
)
from b2client._internal.utils import B2TraceMeta, limit_trace_arguments

logger = logging.getLogger(__name__)

T = TypeVar('T')


class B2Session(metaclass=B2TraceMeta):
    """
    Calls the raw api on behalf of an authorized account.

    Fills in the api url and the account auth token, refuses calls the application
    key has no capability for before anything is sent, and when the server rejects
    the token, authorizes again with the stored key and repeats the call once.
    """

    B2HTTP_CLASS = staticmethod(B2Http)

    def __init__(
        self,
        account_info: AbstractAccountInfo | None = None,
        api_config: B2HttpApiConfig = DEFAULT_HTTP_API_CONFIG,
    ):
        """
        :param account_info: keeps the authorization, in memory if not given
        :param api_config: HTTP configuration, see :class:`~b2client.v1.B2HttpApiConfig`
        """
        self.b2_http = self.B2HTTP_CLASS(api_config)
        self.raw_api = api_config.raw_api_class(self.b2_http)
        self.account_info = account_info if account_info is not None else InMemoryAccountInfo()

    def authorize_automatically(self) -> bool:
        """
        Authorize again with the realm and the key kept in the account info.

        :return: ``False`` if no key is kept
        """
        try:
            realm = self.account_info.get_realm()
            application_key_id = self.account_info.get_application_key_id()
            application_key = self.account_info.get_application_key()
        except MissingAccountData:
            return False
        self.authorize_account(realm, application_key_id, application_key)
        return True

    @limit_trace_arguments(skip=('application_key',))
    def authorize_account(self, realm, application_key_id, application_key):
        """
        :param str realm: a name from ``REALM_URLS`` (usually "production") or an url
        :param str application_key_id: :term:`application key ID`
        :param str application_key: user's :term:`application key`
        """
        response = self.raw_api.authorize_account(
            REALM_URLS.get(realm, realm), application_key_id, application_key
        )
        storage_api = response['apiInfo']['storageApi']
        self.account_info.set_auth_data(
            account_id=response['accountId'],
            auth_token=response['authorizationToken'],
            api_url=storage_api['apiUrl'],
            download_url=storage_api['downloadUrl'],
            absolute_minimum_part_size=storage_api['absoluteMinimumPartSize'],
            recommended_part_size=storage_api['recommendedPartSize'],
            application_key=application_key,
            realm=realm,
            s3_api_url=storage_api['s3ApiUrl'],
            allowed={
                'bucketId': storage_api.get('bucketId'),
                'bucketName': storage_api.get('bucketName'),
                'capabilities': storage_api['capabilities'],
                'namePrefix': storage_api.get('namePrefix'),
            },
            application_key_id=application_key_id,
            application_key_expiration_timestamp=response.get('applicationKeyExpirationTimestamp'),
        )
        logger.info('authorized application key %s in realm %s', application_key_id, realm)

    def close(self):
        self.b2_http.close()

    # buckets

    def create_bucket(
        self,
        account_id,
        bucket_name,
        bucket_type,
        bucket_info=None,
        cors_rules=None,
        lifecycle_rules: list[LifecycleRule] | None = None,
        default_server_side_encryption: EncryptionSetting | None = None,
        is_file_lock_enabled: bool | None = None,
    ):
        self._require_capability('writeBuckets')
        if is_file_lock_enabled:
            self._require_capability('writeBucketRetentions')
        if default_server_side_encryption is not None:
            self._require_capability('writeBucketEncryption')
        return self._call_api(
            self.raw_api.create_bucket,
            account_id,
            bucket_name,
            bucket_type,
            bucket_info=bucket_info,
            cors_rules=cors_rules,
            lifecycle_rules=lifecycle_rules,
            default_server_side_encryption=default_server_side_encryption,
            is_file_lock_enabled=is_file_lock_enabled,
        )

    def delete_bucket(self, account_id, bucket_id):
        self._require_capability('deleteBuckets')
        return self._call_api(self.raw_api.delete_bucket, account_id, bucket_id)

    def list_buckets(self, account_id, bucket_id=None, bucket_name=None, bucket_types=None):
        self._require_capability('listBuckets')
        return self._call_api(
            self.raw_api.list_buckets,
            account_id,
            bucket_id=bucket_id,
            bucket_name=bucket_name,
            bucket_types=bucket_types,
        )

    def update_bucket(
        self,
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
        self._require_capability('writeBuckets')
        if is_file_lock_enabled:
            self._require_capability('writeBucketRetentions')
        if default_server_side_encryption is not None:
            self._require_capability('writeBucketEncryption')
        return self._call_api(
            self.raw_api.update_bucket,
            account_id,
            bucket_id,
            bucket_type=bucket_type,
            bucket_info=bucket_info,
            cors_rules=cors_rules,
            lifecycle_rules=lifecycle_rules,
            if_revision_is=if_revision_is,
            default_server_side_encryption=default_server_side_encryption,
            is_file_lock_enabled=is_file_lock_enabled,
        )

    def get_bucket_notification_rules(self, bucket_id: str) -> list[NotificationRule]:
        self._require_capability('readBucketNotifications')
        return self._call_api(self.raw_api.get_bucket_notification_rules, bucket_id)

    def set_bucket_notification_rules(
        self, bucket_id: str, rules: list[NotificationRule]
    ) -> list[NotificationRule]:
        self._require_capability('writeBucketNotifications')
        return self._call_api(self.raw_api.set_bucket_notification_rules, bucket_id, rules)

    # keys

    def create_key(
        self, account_id, capabilities, key_name, valid_duration_seconds, bucket_id, name_prefix
    ):
        self._require_capability('writeKeys')
        return self._call_api(
            self.raw_api.create_key,
            account_id,
            capabilities,
            key_name,
            valid_duration_seconds,
            bucket_id,
            name_prefix,
        )

    def delete_key(self, application_key_id):
        self._require_capability('writeKeys')
        return self._call_api(self.raw_api.delete_key, application_key_id)

    def list_keys(self, account_id, max_key_count=None, start_application_key_id=None):
        self._require_capability('listKeys')
        return self._call_api(
            self.raw_api.list_keys,
            account_id,
            max_key_count=max_key_count,
            start_application_key_id=start_application_key_id,
        )

    # files

    def delete_file_version(self, file_id, file_name, bypass_governance: bool = False):
        self._require_capability('deleteFiles')
        return self._call_api(
            self.raw_api.delete_file_version, file_id, file_name, bypass_governance
        )

    def get_file_info_by_id(self, file_id: str) -> dict[str, Any]:
        self._require_capability('readFiles')
        return self._call_api(self.raw_api.get_file_info_by_id, file_id)

    def hide_file(self, bucket_id, file_name):
        self._require_capability('writeFiles')
        return self._call_api(self.raw_api.hide_file, bucket_id, file_name)

    def list_file_names(
        self,
        bucket_id,
        start_file_name=None,
        max_file_count=None,
        prefix=None,
        delimiter=None,
    ):
        self._require_capability('listFiles')
        return self._call_api(
            self.raw_api.list_file_names,
            bucket_id,
            start_file_name=start_file_name,
            max_file_count=max_file_count,
            prefix=prefix,
            delimiter=delimiter,
        )

    def list_file_versions(
        self,
        bucket_id,
        start_file_name=None,
        start_file_id=None,
        max_file_count=None,
        prefix=None,
        delimiter=None,
    ):
        self._require_capability('listFiles')
        return self._call_api(
            self.raw_api.list_file_versions,
            bucket_id,
            start_file_name=start_file_name,
            start_file_id=start_file_id,
            max_file_count=max_file_count,
            prefix=prefix,
            delimiter=delimiter,
        )

    def update_file_retention(
        self,
        file_id,
        file_name,
        file_retention: FileRetentionSetting,
        bypass_governance: bool = False,
    ):
        self._require_capability('writeFileRetentions')
        if bypass_governance:
            self._require_capability('bypassGovernance')
        return self._call_api(
            self.raw_api.update_file_retention,
            file_id,
            file_name,
            file_retention,
            bypass_governance=bypass_governance,
        )

    def update_file_legal_hold(self, file_id, file_name, legal_hold: LegalHold):
        self._require_capability('writeFileLegalHolds')
        return self._call_api(self.raw_api.update_file_legal_hold, file_id, file_name, legal_hold)

    def copy_file(
        self,
        source_file_id,
        new_file_name,
        bytes_range: tuple[int, int] | None = None,
        metadata_directive: MetadataDirectiveMode | None = None,
        content_type: str | None = None,
        file_info: dict | None = None,
        destination_bucket_id: str | None = None,
        destination_server_side_encryption: EncryptionSetting | None = None,
        source_server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
    ):
        self._require_capability('writeFiles')
        if file_retention is not None:
            self._require_capability('writeFileRetentions')
        if legal_hold is not None:
            self._require_capability('writeFileLegalHolds')
        return self._call_api(
            self.raw_api.copy_file,
            source_file_id,
            new_file_name,
            bytes_range=bytes_range,
            metadata_directive=metadata_directive,
            content_type=content_type,
            file_info=file_info,
            destination_bucket_id=destination_bucket_id,
            destination_server_side_encryption=destination_server_side_encryption,
            source_server_side_encryption=source_server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
        )

    def get_download_authorization(
        self, bucket_id, file_name_prefix, valid_duration_in_seconds, **content_overrides
    ):
        """
        Get a token which lets anyone download the files under ``file_name_prefix`` for a while.

        ``content_overrides`` (``content_disposition``, ``cache_control`` and the like) are
        headers the server will put on downloads made with the token.
        """
        self._require_capability('shareFiles')
        return self._call_api(
            self.raw_api.get_download_authorization,
            bucket_id,
            file_name_prefix,
            valid_duration_in_seconds,
            **content_overrides,
        )

    def download_file_from_url(
        self,
        url: str,
        range_: tuple[int, int] | None = None,
        encryption: EncryptionSetting | None = None,
    ):
        # download urls are complete, only the token is added
        return self._with_reauthorization(
            lambda: self.raw_api.download_file_from_url(
                self.account_info.get_account_auth_token(),
                url,
                range_=range_,
                encryption=encryption,
            )
        )

    def get_download_url_by_id(self, file_id):
        return self.raw_api.get_download_url_by_id(self.account_info.get_download_url(), file_id)

    def get_download_url_by_name(self, bucket_name, file_name):
        return self.raw_api.get_download_url_by_name(
            self.account_info.get_download_url(), bucket_name, file_name
        )

    # uploads

    def get_upload_url(self, bucket_id):
        self._require_capability('writeFiles')
        return self._call_api(self.raw_api.get_upload_url, bucket_id)

    @limit_trace_arguments(skip=('data_stream',))
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
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ):
        """
        Send a small file to an upload url obtained from :meth:`get_upload_url`.

        The upload url comes with its own token, so a rejected token is not solved by
        authorizing the account again; the caller gets a new upload url instead.
        """
        return self.raw_api.upload_file(
            upload_url,
            upload_auth_token,
            file_name,
            content_length,
            content_type,
            content_sha1,
            file_info,
            data_stream,
            server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
            custom_upload_timestamp=custom_upload_timestamp,
        )

    def start_large_file(
        self,
        bucket_id,
        file_name,
        content_type,
        file_info,
        server_side_encryption: EncryptionSetting | None = None,
        file_retention: FileRetentionSetting | None = None,
        legal_hold: LegalHold | None = None,
        custom_upload_timestamp: int | None = None,
    ):
        self._require_capability('writeFiles')
        if file_retention is not None:
            self._require_capability('writeFileRetentions')
        if legal_hold is not None:
            self._require_capability('writeFileLegalHolds')
        return self._call_api(
            self.raw_api.start_large_file,
            bucket_id,
            file_name,
            content_type,
            file_info,
            server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
            custom_upload_timestamp=custom_upload_timestamp,
        )

    def get_upload_part_url(self, file_id):
        self._require_capability('writeFiles')
        return self._call_api(self.raw_api.get_upload_part_url, file_id)

    @limit_trace_arguments(skip=('data_stream',))
    def upload_part(
        self,
        upload_url,
        upload_auth_token,
        part_number,
        content_length,
        sha1_sum,
        data_stream,
        server_side_encryption: EncryptionSetting | None = None,
    ):
        return self.raw_api.upload_part(
            upload_url,
            upload_auth_token,
            part_number,
            content_length,
            sha1_sum,
            data_stream,
            server_side_encryption,
        )

    def copy_part(
        self,
        source_file_id,
        large_file_id,
        part_number,
        bytes_range: tuple[int, int] | None = None,
        destination_server_side_encryption: EncryptionSetting | None = None,
        source_server_side_encryption: EncryptionSetting | None = None,
    ):
        self._require_capability('writeFiles')
        return self._call_api(
            self.raw_api.copy_part,
            source_file_id,
            large_file_id,
            part_number,
            bytes_range=bytes_range,
            destination_server_side_encryption=destination_server_side_encryption,
            source_server_side_encryption=source_server_side_encryption,
        )

    def list_parts(self, file_id, start_part_number=None, max_part_count=None):
        self._require_capability('writeFiles')
        return self._call_api(
            self.raw_api.list_parts,
            file_id,
            start_part_number=start_part_number,
            max_part_count=max_part_count,
        )

    def finish_large_file(self, file_id, part_sha1_array):
        self._require_capability('writeFiles')
        return self._call_api(self.raw_api.finish_large_file, file_id, part_sha1_array)

    def cancel_large_file(self, file_id):
        self._require_capability('writeFiles')
        return self._call_api(self.raw_api.cancel_large_file, file_id)

    def list_unfinished_large_files(
        self,
        bucket_id,
        start_file_id=None,
        max_file_count=None,
        prefix=None,
    ):
        self._require_capability('listFiles')
        return self._call_api(
            self.raw_api.list_unfinished_large_files,
            bucket_id,
            start_file_id=start_file_id,
            max_file_count=max_file_count,
            prefix=prefix,
        )

    def _require_capability(self, capability):
        if not self.account_info.has_capability(capability):
            raise MissingCapability(capability)

    def _call_api(self, raw_api_method: Callable[..., T], *args, **kwargs) -> T:
        """
        Call an endpoint with the current api url and account token.
        """
        return self._with_reauthorization(
            lambda: raw_api_method(
                self.account_info.get_api_url(),
                self.account_info.get_account_auth_token(),
                *args,
                **kwargs,
            )
        )

    def _with_reauthorization(self, call: Callable[[], T]) -> T:
        try:
            return self._explain_unauthorized(call)
        except InvalidAuthToken:
            logger.info('auth token rejected, reauthorizing')
            if not self.authorize_automatically():
                raise
        return self._explain_unauthorized(call)

    def _explain_unauthorized(self, call: Callable[[], T]) -> T:
        try:
            return call()
        except InvalidAuthToken:
            raise
        except Unauthorized as e:
            raise self._add_app_key_info_to_unauthorized(e)

    def _add_app_key_info_to_unauthorized(self, unauthorized: Unauthorized) -> Unauthorized:
        """
        Return a copy of the error whose message tells how the application key is restricted.
        """
        allowed = self.account_info.get_allowed()
        restrictions = []
        if set(allowed['capabilities']) != set(ALL_CAPABILITIES):
            restrictions.append(f"with capabilities '{','.join(allowed['capabilities'])}'")
        if allowed['bucketName'] is not None:
            restrictions.append(f"restricted to bucket '{allowed['bucketName']}'")
        if allowed['namePrefix'] is not None:
            restrictions.append(f"restricted to files that start with '{allowed['namePrefix']}'")
        description = ', '.join(restrictions) or 'with no restrictions'

        error = Unauthorized(
            f"{unauthorized.message or 'unauthorized'} for application key {description}",
            unauthorized.code,
        )
        error.status = unauthorized.status
        return error
