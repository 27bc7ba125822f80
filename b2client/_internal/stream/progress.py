######################################################################
#
# File: b2client/_internal/stream/progress.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from typing import Callable

from ..throttle import Throttle
from .wrapper import StreamWithLengthWrapper


class ReadingStreamWithProgress(StreamWithLengthWrapper):
    """
    Wrap the body of an upload request, reporting every chunk read from it.

    Data is handed out in chunks of at most ``chunk_size`` bytes. Before a chunk is
    returned it goes through the speed throttle and the abort check, which is expected
    to raise to stop the transfer, and then its size is reported to ``progress_callback``.

    Seeking is only used to rewind the body before a retry, so it reports a negative
    delta for the bytes which will be read again.
    """

    def __init__(
        self,
        stream,
        length: int,
        progress_callback: Callable[[int], None],
        chunk_size: int | None = None,
        throttle: Throttle | None = None,
        abort_check: Callable[[], None] | None = None,
    ):
        super().__init__(stream, length=length)
        self.progress_callback = progress_callback
        self.chunk_size = chunk_size
        self.throttle = throttle
        self.abort_check = abort_check
        self.bytes_completed = 0

    def read(self, size=None):
        """
        Read data from the stream.

        :param int size: number of bytes to read, everything that is left if not given
        :return: data read from the stream
        """
        if size is None or size < 0:
            return b''.join(iter(lambda: self._read_chunk(self.chunk_size), b''))
        return self._read_chunk(size)

    def _read_chunk(self, size):
        if self.chunk_size is not None and (size is None or size > self.chunk_size):
            size = self.chunk_size
        data = super().read(size)
        if not data:
            return data
        if self.throttle is not None:
            self.throttle.advance_by(len(data))
        if self.abort_check is not None:
            self.abort_check()
        self.bytes_completed += len(data)
        self.progress_callback(len(data))
        return data

    def seek(self, pos, whence=0):
        pos = super().seek(pos, whence=whence)
        if pos != self.bytes_completed:
            self.progress_callback(pos - self.bytes_completed)
            self.bytes_completed = pos
        return pos

    def __str__(self):
        return str(self.stream)
