######################################################################
#
# File: b2client/_internal/stream/__init__.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from .progress import ReadingStreamWithProgress
from .wrapper import StreamWithLengthWrapper, StreamWrapper

__all__ = [
    'ReadingStreamWithProgress',
    'StreamWithLengthWrapper',
    'StreamWrapper',
]
