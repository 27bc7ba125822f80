######################################################################
#
# File: b2client/_internal/client.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import logging
import threading
from enum import Enum, unique
from typing import BinaryIO, Iterator

from .account_info.abstract import AbstractAccountInfo
from .api_config import DEFAULT_HTTP_API_CONFIG, B2HttpApiConfig
from .bucket import Bucket, BucketFactory
from .download import DownloadedFile
from .encryption.setting import EncryptionSetting
from .exception import B2Error, NonExistentBucket
from .file_version import (
    DownloadVersionFactory,
    FileIdAndName,
    FileVersion,
    FileVersionFactory,
)
from .progress import AbstractProgressListener
from .session import B2Session
from .upload.file_upload import FileUpload
from .upload.options import FileUploadOptions
from .utils import current_time_millis, disable_trace, limit_trace_arguments
from .utils.thread_pool import ThreadPoolMixin

logger = logging.getLogger(__name__)


@unique
class ClientStatus(Enum):
    AUTHORIZED = 'authorized'  #: the client works
    KEY_EXPIRED = 'key_expired'  #: the key expired, make a new client with a valid key


class B2Client(ThreadPoolMixin):
    """
    Provide file-level access to B2 services.

    The client authorizes when it is created and keeps the authorization fresh
    in a background thread, until the application key expires. Calls made with an
    expired token are reauthorized by the :class:`~b2client.v1.B2Session` anyway.

    Uploads are created with :meth:`create_upload` and tracked until they stop,
    so that they can be listed and aborted from anywhere:

    .. code-block:: python

       client = B2Client(application_key_id, application_key)
       bucket = client.get_bucket_by_name('backups')
       upload = client.create_upload('/var/backups/db.tar', 'db.tar', bucket.id_)
       future = client.start_upload(upload)
       ...
       for upload in client.get_current_tracked_uploads():
           print(upload.file_name, upload.stats.current_stats())
       ...
       client.close()
    """
    SESSION_CLASS = staticmethod(B2Session)
    BUCKET_FACTORY_CLASS = staticmethod(BucketFactory)
    FILE_VERSION_FACTORY_CLASS = staticmethod(FileVersionFactory)
    DOWNLOAD_VERSION_FACTORY_CLASS = staticmethod(DownloadVersionFactory)
    FILE_UPLOAD_CLASS = staticmethod(FileUpload)

    REAUTHORIZE_INTERVAL_SECONDS = 85800  # 23h50m, tokens are valid for 24 hours

    @limit_trace_arguments(skip=('application_key',))
    def __init__(
        self,
        application_key_id: str,
        application_key: str,
        realm: str = 'production',
        api_config: B2HttpApiConfig = DEFAULT_HTTP_API_CONFIG,
        account_info: AbstractAccountInfo | None = None,
        max_upload_workers: int = 10,
        check_download_hash: bool = True,
    ):
        """
        Authorize with the given application key and start the background reauthorization.

        :param application_key_id: :term:`application key ID`
        :param application_key: user's :term:`application key`
        :param realm: a realm to authorize account in, usually just "production"
        :param api_config: HTTP configuration
        :param account_info: where to keep the account data, in memory if not given
        :param max_upload_workers: how many uploads :meth:`start_upload` runs at once
        :param check_download_hash: whether to check the sha1 of downloaded files
        """
        super().__init__(max_workers=max_upload_workers)
        self.session = self.SESSION_CLASS(account_info=account_info, api_config=api_config)
        self.api_config = api_config
        self.check_download_hash = check_download_hash
        self.file_version_factory = self.FILE_VERSION_FACTORY_CLASS(self)
        self.download_version_factory = self.DOWNLOAD_VERSION_FACTORY_CLASS(self)

        self._status = ClientStatus.AUTHORIZED
        self._uploads: dict[str, FileUpload] = {}
        self._uploads_lock = threading.Lock()
        self._closed = threading.Event()

        self.session.authorize_account(realm, application_key_id, application_key)

        self._reauthorization_thread = threading.Thread(
            target=self._reauthorize_periodically,
            name='b2-reauthorization',
            daemon=True,
        )
        self._reauthorization_thread.start()

    @property
    def account_info(self) -> AbstractAccountInfo:
        return self.session.account_info

    @property
    def status(self) -> ClientStatus:
        return self._status

    def get_account_id(self) -> str:
        return self.account_info.get_account_id()

    def close(self) -> None:
        """
        Stop the background reauthorization and release the connections and threads.

        Uploads which are still running are not aborted.
        """
        self._closed.set()
        self._thread_pool.shutdown(wait=False)
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # authorization

    def _reauthorize_periodically(self):
        while True:
            wait, expiring = self._time_to_next_reauthorization()
            if self._closed.wait(wait):
                return
            if expiring:
                self._status = ClientStatus.KEY_EXPIRED
                logger.warning(
                    'application key %s has expired, create a new client with a valid key',
                    self.account_info.get_application_key_id(),
                )
                return
            try:
                self.session.authorize_automatically()
            except B2Error:
                logger.exception('periodic reauthorization failed, retrying in %d seconds', wait)

    def _time_to_next_reauthorization(self) -> tuple[float, bool]:
        """
        :return: how long to wait and whether the key expires by then
        """
        wait = self.REAUTHORIZE_INTERVAL_SECONDS
        expiration_millis = self.account_info.get_application_key_expiration_timestamp()
        if expiration_millis is not None:
            until_expiration = (expiration_millis - current_time_millis()) / 1000
            if until_expiration < wait:
                return max(until_expiration, 0), True
        return wait, False

    # uploads

    def create_upload(
        self,
        file: BinaryIO | str,
        file_name: str,
        bucket_id: str,
        file_info: dict[str, str] | None = None,
        file_size: int | None = None,
        options: FileUploadOptions | None = None,
        progress_listener: AbstractProgressListener | None = None,
    ) -> FileUpload:
        """
        Create an upload and track it until it stops. The upload is not started.

        :param file: a seekable binary file-like object, or a path to a local file
        :param file_name: the name of the file in the bucket
        :param bucket_id: the bucket to upload to
        :param file_info: custom file info
        :param file_size: the number of bytes to upload, taken from the file if not given
        :param options: upload options, defaults apply if not given
        :param progress_listener: receives the total number of bytes uploaded so far
        """
        upload = self.FILE_UPLOAD_CLASS(
            self.session,
            file,
            file_name,
            bucket_id,
            file_info=file_info,
            file_size=file_size,
            options=options,
            progress_listener=progress_listener,
            file_version_factory=self.file_version_factory,
        )
        with self._uploads_lock:
            self._uploads[upload.id] = upload
        upload.add_finish_callback(self._untrack_upload)
        return upload

    def start_upload(self, upload: FileUpload):
        """
        Start an upload in the thread pool of this client.

        :return: a future of the :meth:`FileUpload.start` result
        """
        return upload.start_in_background(self._thread_pool)

    @disable_trace
    def get_current_tracked_uploads(self) -> list[FileUpload]:
        with self._uploads_lock:
            return list(self._uploads.values())

    def abort_upload(self, upload_id: str) -> bool:
        """
        Abort a tracked upload and stop tracking it.

        :return: ``False`` if no upload with the given id is tracked
        """
        upload = self._untrack_upload_by_id(upload_id)
        if upload is None:
            return False
        upload.abort()
        return True

    def _untrack_upload(self, upload: FileUpload):
        self._untrack_upload_by_id(upload.id)

    def _untrack_upload_by_id(self, upload_id: str) -> FileUpload | None:
        with self._uploads_lock:
            return self._uploads.pop(upload_id, None)

    # buckets

    def list_buckets(self, bucket_name=None, bucket_id=None, bucket_types=None) -> list[Bucket]:
        """
        List the buckets of the account, or only the one with the given name or id.

        A key restricted to a single bucket may only list that bucket, by name or id.

        :param str bucket_name: the name of the bucket to list
        :param str bucket_id: the id of the bucket to list
        :param list bucket_types: e.g. ``['allPublic']``, all types if not given
        """
        if None not in (bucket_name, bucket_id):
            raise ValueError('bucket_name and bucket_id cannot be used together')
        response = self.session.list_buckets(
            self.get_account_id(),
            bucket_id=bucket_id,
            bucket_name=bucket_name,
            bucket_types=bucket_types,
        )
        return self.BUCKET_FACTORY_CLASS.from_api_response(self, response)

    def get_bucket_by_name(self, bucket_name: str) -> Bucket:
        """
        :raises b2client.v1.exception.NonExistentBucket: if the account has no such bucket
        """
        buckets = self.list_buckets(bucket_name=bucket_name)
        if not buckets:
            raise NonExistentBucket(bucket_name)
        return buckets[0]

    # files

    def list_file_names(
        self,
        bucket_id: str,
        start_file_name: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> tuple[list[FileVersion], str | None]:
        """
        Return one page of the current file versions in a bucket, sorted by name.

        :return: the file versions and the name to start the next page from,
                 ``None`` on the last page
        """
        response = self.session.list_file_names(
            bucket_id,
            start_file_name=start_file_name,
            max_file_count=max_file_count,
            prefix=prefix,
            delimiter=delimiter,
        )
        file_versions = [
            self.file_version_factory.from_api_response(file_version_dict)
            for file_version_dict in response['files']
        ]
        return file_versions, response['nextFileName']

    def ls(
        self,
        bucket_id: str,
        prefix: str | None = None,
        delimiter: str | None = None,
        fetch_count: int | None = None,
    ) -> Iterator[list[FileVersion]]:
        """
        Yield pages of the current file versions in a bucket, until the last page.

        With a ``delimiter``, files deeper than the prefix are folded into
        entries with the ``folder`` action.

        :param bucket_id: the bucket to list
        :param prefix: only list files with names starting with it
        :param delimiter: usually ``/``
        :param fetch_count: at most how many files to fetch in a single request
        """
        start_file_name = None
        while True:
            file_versions, start_file_name = self.list_file_names(
                bucket_id,
                start_file_name=start_file_name,
                max_file_count=fetch_count,
                prefix=prefix,
                delimiter=delimiter,
            )
            yield file_versions
            if start_file_name is None:
                return

    def get_file_info(self, file_id: str) -> FileVersion:
        file_version_dict = self.session.get_file_info_by_id(file_id)
        return self.file_version_factory.from_api_response(file_version_dict)

    def delete_file_version(
        self, file_id: str, file_name: str, bypass_governance: bool = False
    ) -> FileIdAndName:
        """
        Delete one version of a file for good.

        Versions under a governance retention which has not ended yet can only be
        deleted with ``bypass_governance``, by a key with the ``bypassGovernance`` capability.
        """
        response = self.session.delete_file_version(file_id, file_name, bypass_governance)
        return FileIdAndName.from_cancel_or_delete_response(response)

    # downloads

    def download_file_by_id(
        self,
        file_id: str,
        range_: tuple[int, int] | None = None,
        encryption: EncryptionSetting | None = None,
        progress_listener: AbstractProgressListener | None = None,
    ) -> DownloadedFile:
        """
        Start downloading a file version; the content is read from the returned object.

        :param str file_id: the file version to download
        :param range_: the first and the last byte to download, both inclusive
        :param encryption: the customer key of files encrypted with SSE-C
        :param progress_listener: told how many bytes were read so far
        """
        url = self.session.get_download_url_by_id(file_id)
        return self._download_file_from_url(url, range_, encryption, progress_listener)

    def download_file_by_name(
        self,
        bucket_name: str,
        file_name: str,
        range_: tuple[int, int] | None = None,
        encryption: EncryptionSetting | None = None,
        progress_listener: AbstractProgressListener | None = None,
    ) -> DownloadedFile:
        """
        Download the current version of a file by its bucket and file names.
        """
        url = self.session.get_download_url_by_name(bucket_name, file_name)
        return self._download_file_from_url(url, range_, encryption, progress_listener)

    def _download_file_from_url(self, url, range_, encryption, progress_listener):
        response = self.session.download_file_from_url(
            url, range_=range_, encryption=encryption
        ).response
        download_version = self.download_version_factory.from_response_headers(response.headers)
        return DownloadedFile(
            download_version,
            response,
            range_=range_,
            progress_listener=progress_listener,
            check_hash=self.check_download_hash,
        )
