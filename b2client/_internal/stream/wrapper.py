######################################################################
#
# File: b2client/_internal/stream/wrapper.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import io


class StreamWrapper(io.IOBase):
    """
    Read-only view of another binary stream; subclasses hook into :meth:`read` and :meth:`seek`.
    """

    def __init__(self, stream):
        self.stream = stream
        super().__init__()

    def readable(self):
        return True

    def writable(self):
        return False

    def seekable(self):
        return self.stream.seekable()

    def tell(self):
        return self.stream.tell()

    def seek(self, pos, whence=io.SEEK_SET):
        return self.stream.seek(pos, whence)

    def read(self, size=None):
        # not every stream accepts None
        if size is None or size < 0:
            return self.stream.read()
        return self.stream.read(size)


class StreamWithLengthWrapper(StreamWrapper):
    """
    A :class:`StreamWrapper` which knows its length.

    ``requests`` sets the ``Content-Length`` of a streamed body from ``len()``.
    """

    def __init__(self, stream, length: int | None = None):
        super().__init__(stream)
        self.length = length

    def __len__(self):
        return self.length
