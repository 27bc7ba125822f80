######################################################################
#
# File: b2client/_internal/download.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import hashlib
import logging
import os
import pathlib
from typing import BinaryIO, Callable, Iterator

from .exception import ChecksumMismatch, TruncatedOutput
from .file_version import DownloadVersion
from .http_constants import KIBIBYTE
from .progress import AbstractProgressListener, DoNothingProgressListener

logger = logging.getLogger(__name__)

DownloadMiddleware = Callable[[bytes], None]


class DownloadedFile:
    """
    Result of a successful download initialization. Holds information about file's metadata
    and allows to read the content, which is streamed from the open response.

    Middleware callbacks registered with :meth:`add_middleware` see every chunk of data,
    in the order of registration, before it is handed to the caller.

    Can be used as a context manager, which closes the response on exit.
    """
    DEFAULT_CHUNK_SIZE = 64 * KIBIBYTE

    def __init__(
        self,
        download_version: DownloadVersion,
        response,
        range_: tuple[int, int] | None = None,
        progress_listener: AbstractProgressListener | None = None,
        check_hash: bool = True,
    ):
        self.download_version = download_version
        self.response = response
        self.range_ = range_
        self.progress_listener = progress_listener or DoNothingProgressListener()
        self.check_hash = check_hash
        self._middlewares: list[DownloadMiddleware] = []
        self._consumed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.response.close()

    def add_middleware(self, middleware: DownloadMiddleware) -> DownloadedFile:
        """
        Register a callback which is called with every downloaded chunk.

        :return: self, so that calls can be chained
        """
        self._middlewares.append(middleware)
        return self

    def iter_content(self, chunk_size: int | None = None) -> Iterator[bytes]:
        """
        Yield the content of the file chunk by chunk.

        The content is validated against the size and, for whole file downloads,
        against the sha1 reported by the server, once the last chunk was read.
        The response can be consumed only once.
        """
        if self._consumed:
            raise ValueError('the content of this download was already consumed')
        self._consumed = True

        digest = hashlib.sha1()
        bytes_read = 0
        self.progress_listener.set_total_bytes(self._expected_length())
        for chunk in self.response.iter_content(chunk_size=chunk_size or self.DEFAULT_CHUNK_SIZE):
            if not chunk:
                continue
            for middleware in self._middlewares:
                middleware(chunk)
            digest.update(chunk)
            bytes_read += len(chunk)
            self.progress_listener.bytes_completed(bytes_read)
            yield chunk
        self.progress_listener.close()
        self._validate_download(bytes_read, digest.hexdigest())

    def read_all(self) -> bytes:
        """
        Read the whole content into memory.
        """
        return b''.join(self.iter_content())

    def save(self, file: BinaryIO, chunk_size: int | None = None) -> None:
        """
        Read data from B2 cloud and write it to a file-like object.

        :param file: a file-like object
        :param chunk_size: size of chunks read from the network
        """
        for chunk in self.iter_content(chunk_size):
            file.write(chunk)

    def save_to(self, path_: str | pathlib.Path, mode: str = 'wb+') -> None:
        """
        Open a local file and write data from B2 cloud to it, also update the mod_time.

        :param path_: path to file to be opened
        :param mode: mode in which the file should be opened
        """
        path_ = pathlib.Path(path_)
        with open(path_, mode) as file:
            self.save(file)
        mod_time = self.download_version.mod_time_millis
        if mod_time is not None:
            mod_time_seconds = mod_time / 1000.0
            os.utime(path_, (mod_time_seconds, mod_time_seconds))

    def _expected_length(self) -> int:
        # the server clips a range which reaches past the end of the file
        return self.download_version.content_length

    def _validate_download(self, bytes_read, actual_sha1):
        expected_length = self._expected_length()
        if bytes_read != expected_length:
            raise TruncatedOutput(bytes_read, expected_length)

        if self.range_ is None and self.check_hash:
            expected_sha1 = self.download_version.get_content_sha1()
            if expected_sha1 is not None and actual_sha1 != expected_sha1:
                raise ChecksumMismatch(
                    checksum_type='sha1',
                    expected=expected_sha1,
                    actual=actual_sha1,
                )
        logger.debug('downloaded %d bytes of %s', bytes_read, self.download_version.file_name)
