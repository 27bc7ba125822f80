######################################################################
#
# File: b2client/_internal/utils/__init__.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import base64
import hashlib
import re
import time
from typing import NewType
from urllib.parse import quote, unquote_plus

from logfury.v1 import (
    DefaultTraceAbstractMeta,
    DefaultTraceMeta,
    disable_trace,
    limit_trace_arguments,
    trace_call,
)

Sha1HexDigest = NewType('Sha1HexDigest', str)

_CAMELCASE_BOUNDARY_RE = re.compile('((?<=[a-z0-9])[A-Z]|(?!^)[A-Z](?=[a-z]))')


def b2_url_encode(s: str) -> str:
    """
    Percent-encode a file name for a header or an url path. ``/`` is left as is.
    """
    return quote(s.encode('utf-8'))


def b2_url_decode(s: str) -> str:
    """
    Decode what B2 sends in headers; it may use ``+`` for a space.
    """
    return unquote_plus(s)


def choose_part_ranges(content_length: int, part_size: int) -> list[tuple[int, int]]:
    """
    Split ``content_length`` bytes into ``(offset, length)`` parts of ``part_size`` bytes,
    except for the last one, which gets what remains.
    """
    assert part_size > 0
    return [
        (offset, min(part_size, content_length - offset))
        for offset in range(0, content_length, part_size)
    ]


def hex_sha1_of_bytes(data: bytes) -> Sha1HexDigest:
    return Sha1HexDigest(hashlib.sha1(data).hexdigest())


def md5_of_bytes(data: bytes) -> bytes:
    return hashlib.md5(data).digest()


def b64_of_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode()


def camelcase_to_underscore(input_: str) -> str:
    """
    ``FileNotPresent`` -> ``file_not_present``
    """
    return _CAMELCASE_BOUNDARY_RE.sub(r'_\1', input_).lower()


def current_time_millis() -> int:
    """
    Now, in the integer milliseconds B2 uses for timestamps.
    """
    return int(round(time.time() * 1000))


class B2TraceMeta(DefaultTraceMeta):
    """
    Logs the calls of public methods at debug level.
    """


class B2TraceMetaAbstract(DefaultTraceAbstractMeta):
    """
    :class:`B2TraceMeta` for abstract base classes.
    """


__all__ = [
    'B2TraceMeta',
    'B2TraceMetaAbstract',
    'Sha1HexDigest',
    'b2_url_decode',
    'b2_url_encode',
    'b64_of_bytes',
    'camelcase_to_underscore',
    'choose_part_ranges',
    'current_time_millis',
    'disable_trace',
    'hex_sha1_of_bytes',
    'limit_trace_arguments',
    'md5_of_bytes',
    'trace_call',
]
