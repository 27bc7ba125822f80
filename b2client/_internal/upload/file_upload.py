######################################################################
#
# File: b2client/_internal/upload/file_upload.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import contextlib
import io
import logging
import os
import threading
import time
import uuid
from concurrent.futures import FIRST_EXCEPTION, Executor, Future, ThreadPoolExecutor, wait
from enum import Enum, unique
from functools import partial
from typing import TYPE_CHECKING, BinaryIO, Callable

from ..exception import (
    AlreadyFailed,
    B2Error,
    FailedToReadFile,
    MaxRetriesExceeded,
    UploadAborted,
    UploadAlreadyStarted,
)
from ..file_version import FileVersion, FileVersionFactory
from ..http_constants import UPLOAD_FILE_CHUNK_SIZE, UPLOAD_PART_CHUNK_SIZE
from ..progress import AbstractProgressListener, DoNothingProgressListener
from ..stream.progress import ReadingStreamWithProgress
from ..utils import choose_part_ranges, hex_sha1_of_bytes
from .options import FileUploadOptions
from .stats import FileNetworkStats

if TYPE_CHECKING:
    from ..session import B2Session

logger = logging.getLogger(__name__)


@unique
class FileStatus(Enum):
    PENDING = 'pending'  #: created, not started yet
    WORKING = 'working'  #: transferring data
    RETRYING = 'retrying'  #: waiting before the next attempt
    FINISHED = 'finished'  #: stopped on its own, successfully or not
    ABORTED = 'aborted'  #: stopped by :meth:`FileUpload.abort`


_RUNNING_STATUSES = frozenset((FileStatus.WORKING, FileStatus.RETRYING))
_STOPPED_STATUSES = frozenset((FileStatus.FINISHED, FileStatus.ABORTED))


class FileUpload:
    """
    Upload of a single file, which can be aborted from another thread.

    A file no bigger than ``options.large_file_cutoff`` is sent in one request,
    a bigger one is sent as a large file, in parts uploaded at the same time.
    Transfer speed and progress are tracked in :attr:`stats`.

    Use like this:

    .. code-block:: python

       upload = FileUpload(session, open('data.bin', 'rb'), 'backups/data.bin', bucket_id)
       future = upload.start_in_background()
       ...
       print(upload.stats.current_stats())
       ...
       if future.result() is FileStatus.FINISHED:
           print(upload.file_version.id_)
    """

    MAX_PART_UPLOAD_ATTEMPTS = 5
    PART_RETRY_WAIT_SECONDS = 0.2

    def __init__(
        self,
        session: B2Session,
        file: BinaryIO | str | os.PathLike,
        file_name: str,
        bucket_id: str,
        file_info: dict[str, str] | None = None,
        file_size: int | None = None,
        options: FileUploadOptions | None = None,
        progress_listener: AbstractProgressListener | None = None,
        file_version_factory: FileVersionFactory | None = None,
    ):
        """
        :param session: the session to upload with
        :param file: a seekable binary file-like object, or a path to a local file
        :param file_name: the name of the file in the bucket
        :param bucket_id: the bucket to upload to
        :param file_info: custom file info
        :param file_size: the number of bytes to upload, taken from the file if not given
        :param options: upload options, defaults apply if not given
        :param progress_listener: receives the total number of bytes uploaded so far
        :param file_version_factory: builds :attr:`file_version` from the server response
        """
        self.id = uuid.uuid4().hex
        self.session = session
        self.file_name = file_name
        self.bucket_id = bucket_id
        self.file_info = file_info or {}
        self.options = options or FileUploadOptions()
        self.progress_listener = progress_listener or DoNothingProgressListener()
        self.file_version_factory = file_version_factory or FileVersionFactory()

        if isinstance(file, (str, os.PathLike)):
            self._path = file
            self._file = None
            if file_size is None:
                file_size = os.path.getsize(file)
        else:
            self._path = None
            self._file = file
            if file_size is None:
                file_size = self._size_of_stream(file)
        self.file_size = file_size
        self.stats = FileNetworkStats(file_size)
        self.file_version: FileVersion | None = None
        self.large_file_id: str | None = None

        self._status = FileStatus.PENDING
        self._lock = threading.Lock()
        self._file_lock = threading.Lock()
        self._abort_event = threading.Event()
        self._finish_callbacks: list[Callable[[FileUpload], None]] = []

    @classmethod
    def _size_of_stream(cls, stream) -> int:
        position = stream.tell()
        size = stream.seek(0, io.SEEK_END) - position
        stream.seek(position)
        return size

    @property
    def status(self) -> FileStatus:
        return self._status

    @property
    def has_stopped(self) -> bool:
        """
        ``True`` when the upload has finished or has been aborted.
        """
        return self._status in _STOPPED_STATUSES

    def add_finish_callback(self, callback: Callable[[FileUpload], None]) -> None:
        """
        Register a callback called with this upload once it stops, whatever the outcome.
        """
        self._finish_callbacks.append(callback)

    def start_in_background(self, executor: Executor | None = None) -> Future:
        """
        Run :meth:`start` in another thread.

        :param executor: where to run the upload, a new thread if not given
        :return: a future of the :meth:`start` result
        """
        if executor is not None:
            return executor.submit(self.start)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f'b2-upload-{self.id}')
        try:
            return executor.submit(self.start)
        finally:
            executor.shutdown(wait=False)

    def start(self) -> FileStatus:
        """
        Upload the file, blocking until it is uploaded or aborted.

        Failed attempts are retried according to ``options.retry_strategy``.

        :return: :attr:`FileStatus.FINISHED`, then the new file version is in :attr:`file_version`,
                 or :attr:`FileStatus.ABORTED`
        :raises UploadAlreadyStarted: if the upload is not pending
        :raises InvalidUploadOption: if the options cannot be used
        :raises MaxRetriesExceeded: if all the attempts failed
        """
        with self._lock:
            if self._status is not FileStatus.PENDING:
                raise UploadAlreadyStarted()
            self._status = FileStatus.WORKING

        logger.info('starting upload %s of %s (%d bytes)', self.id, self.file_name, self.file_size)
        try:
            # unusable options end the upload as finished
            self.options.validate(self.file_size)
            with self._opened_file():
                self.progress_listener.set_total_bytes(self.file_size)
                self._upload_with_retries()
        finally:
            with self._lock:
                if self._status in _RUNNING_STATUSES:
                    self._status = FileStatus.FINISHED
            if self._status is FileStatus.ABORTED:
                self._cancel_large_file()
            self.progress_listener.close()
            self._call_finish_callbacks()
        return self._status

    def abort(self) -> bool:
        """
        Stop an upload which is running, i.e. working or retrying; do nothing otherwise.

        Data stops flowing at the next chunk and a started large file is cancelled.

        :return: ``True`` if the upload was running
        """
        with self._lock:
            if self._status not in _RUNNING_STATUSES:
                return False
            self._status = FileStatus.ABORTED
        self._abort_event.set()
        logger.info('upload %s of %s aborted', self.id, self.file_name)
        self._cancel_large_file()
        return True

    def _upload_with_retries(self):
        retry_strategy = self.options.retry_strategy
        exception_list = []
        for attempt in range(1, retry_strategy.count + 1):
            try:
                if self.file_size <= self.options.large_file_cutoff:
                    response = self._upload_small_file()
                else:
                    response = self._upload_large_file()
            except UploadAborted:
                return
            except B2Error as e:
                if self._status is FileStatus.ABORTED:
                    return
                self._cancel_large_file()
                if not e.should_retry_upload():
                    raise
                exception_list.append(e)
                if attempt == retry_strategy.count:
                    break
                if not self._wait_before_retry(retry_strategy.wait(attempt), e):
                    return
                continue
            self.file_version = self.file_version_factory.from_api_response(response)
            logger.info('upload %s of %s finished', self.id, self.file_name)
            return

        raise MaxRetriesExceeded(retry_strategy.count, exception_list)

    def _wait_before_retry(self, seconds, error) -> bool:
        """
        :return: ``False`` if the upload was aborted while waiting
        """
        with self._lock:
            if self._status is not FileStatus.WORKING:
                return False
            self._status = FileStatus.RETRYING
        logger.warning(
            'upload %s of %s failed (%s), retrying in %.1f seconds', self.id, self.file_name,
            error, seconds
        )
        if self._abort_event.wait(seconds):
            return False
        with self._lock:
            if self._status is not FileStatus.RETRYING:
                return False
            self._status = FileStatus.WORKING
        return True

    def _upload_small_file(self):
        data = self._read(0, self.file_size)
        content_sha1 = hex_sha1_of_bytes(data)
        upload_data = self.session.get_upload_url(self.bucket_id)
        self._check_abort()

        input_stream = self._stream_for(data, UPLOAD_FILE_CHUNK_SIZE, self._check_abort)
        self.stats.start_timer()
        try:
            return self.session.upload_file(
                upload_url=upload_data['uploadUrl'],
                upload_auth_token=upload_data['authorizationToken'],
                file_name=self.file_name,
                content_length=len(input_stream),
                content_sha1=content_sha1,
                data_stream=input_stream,
                **self.options.settings.upload_file_kwargs(self.file_info),
            )
        except B2Error:
            self._forget_progress(input_stream)
            raise

    def _upload_large_file(self):
        strategy = self.options.get_load_strategy(self.file_size)
        response = self.session.start_large_file(
            self.bucket_id,
            self.file_name,
            **self.options.settings.start_large_file_kwargs(self.file_info),
        )
        file_id = response['fileId']
        with self._lock:
            self.large_file_id = file_id
        self._check_abort()

        parts = list(enumerate(choose_part_ranges(self.file_size, strategy.part_size), 1))
        part_sha1_array = [None] * len(parts)
        pending_parts = iter(parts)
        pending_parts_lock = threading.Lock()
        failed = threading.Event()

        def next_part():
            with pending_parts_lock:
                return next(pending_parts, None)

        self.stats.start_timer()
        worker_count = min(strategy.concurrency, len(parts))
        logger.debug(
            'uploading %s as large file %s in %d parts, %d at once', self.file_name, file_id,
            len(parts), worker_count
        )
        with ThreadPoolExecutor(
            max_workers=worker_count, thread_name_prefix=f'b2-upload-{self.id}-part'
        ) as executor:
            futures = [
                executor.submit(self._upload_parts, file_id, next_part, part_sha1_array, failed)
                for _ in range(worker_count)
            ]
            wait(futures, return_when=FIRST_EXCEPTION)
            # the first failure stops the sibling workers
            failed.set()
        self._raise_first_part_error(futures)
        self._check_abort()

        response = self.session.finish_large_file(file_id, part_sha1_array)
        with self._lock:
            self.large_file_id = None
        return response

    @classmethod
    def _raise_first_part_error(cls, futures):
        errors = [future.exception() for future in futures if future.exception() is not None]
        for error in errors:
            if not isinstance(error, AlreadyFailed):
                raise error
        if errors:
            raise errors[0]

    def _upload_parts(self, file_id, next_part, part_sha1_array, failed):
        """
        Upload parts until there are none left, reusing one upload URL lease.
        """
        upload_data = None
        abort_check = partial(self._check_part_abort, failed)
        while True:
            abort_check()
            part = next_part()
            if part is None:
                return
            part_number, (offset, length) = part
            data = self._read(offset, length)
            content_sha1 = hex_sha1_of_bytes(data)
            part_sha1_array[part_number - 1] = content_sha1
            upload_data = self._upload_part(
                file_id, part_number, data, content_sha1, upload_data, abort_check
            )

    def _upload_part(self, file_id, part_number, data, content_sha1, upload_data, abort_check):
        exception_list = []
        for _ in range(self.MAX_PART_UPLOAD_ATTEMPTS):
            if upload_data is None:
                upload_data = self.session.get_upload_part_url(file_id)
            input_stream = self._stream_for(data, UPLOAD_PART_CHUNK_SIZE, abort_check)
            try:
                self.session.upload_part(
                    upload_data['uploadUrl'],
                    upload_data['authorizationToken'],
                    part_number,
                    len(input_stream),
                    content_sha1,
                    input_stream,
                    **self.options.settings.upload_part_kwargs(),
                )
                return upload_data
            except B2Error as e:
                self._forget_progress(input_stream)
                if not e.should_retry_upload():
                    raise
                exception_list.append(e)
                logger.info(
                    'upload of part %d of %s failed (%s), retrying with a new upload url',
                    part_number, file_id, e
                )
                upload_data = None
                time.sleep(self.PART_RETRY_WAIT_SECONDS)

        raise MaxRetriesExceeded(self.MAX_PART_UPLOAD_ATTEMPTS, exception_list)

    def _stream_for(self, data, chunk_size, abort_check):
        return ReadingStreamWithProgress(
            io.BytesIO(data),
            length=len(data),
            progress_callback=self._report_progress,
            chunk_size=chunk_size,
            throttle=self.options.speed_throttle,
            abort_check=abort_check,
        )

    def _report_progress(self, delta):
        if delta >= 0:
            done = self.stats.add_bytes(delta)
        else:
            done = self.stats.subtract_bytes(-delta)
        self.progress_listener.bytes_completed(done)

    def _forget_progress(self, input_stream):
        if input_stream.bytes_completed:
            self._report_progress(-input_stream.bytes_completed)
            input_stream.bytes_completed = 0

    def _check_abort(self):
        if self._status is FileStatus.ABORTED:
            raise UploadAborted()

    def _check_part_abort(self, failed):
        self._check_abort()
        if failed.is_set():
            raise AlreadyFailed('another part of the file failed to upload')

    def _read(self, offset, length) -> bytes:
        with self._file_lock:
            try:
                self._file.seek(offset)
                data = self._file.read(length)
            except OSError as e:
                raise FailedToReadFile(e) from e
        if len(data) != length:
            raise FailedToReadFile(
                f'expected {length} bytes at offset {offset}, got {len(data)}'
            )
        return data

    @contextlib.contextmanager
    def _opened_file(self):
        """
        Keep the local file of the upload open while the upload runs.
        """
        if self._path is None:
            yield self._file
            return
        try:
            file = open(self._path, 'rb')
        except OSError as e:
            raise FailedToReadFile(e) from e
        with file:
            self._file = file
            try:
                yield file
            finally:
                self._file = None

    def _cancel_large_file(self):
        with self._lock:
            file_id, self.large_file_id = self.large_file_id, None
        if file_id is None:
            return
        try:
            self.session.cancel_large_file(file_id)
        except B2Error:
            logger.exception('failed to cancel large file %s of upload %s', file_id, self.id)

    def _call_finish_callbacks(self):
        for callback in self._finish_callbacks:
            callback(self)

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.id} {self.file_name!r} {self._status.name}>'
