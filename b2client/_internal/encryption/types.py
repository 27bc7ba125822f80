######################################################################
#
# File: b2client/_internal/encryption/types.py
#
# Copyright 2021 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from enum import Enum, unique


@unique
class EncryptionAlgorithm(Enum):
    AES256 = 'AES256'


@unique
class EncryptionMode(Enum):
    """How a file is encrypted at rest."""

    UNKNOWN = None  #: the application key may not know
    NONE = 'none'  #: plaintext
    SSE_B2 = 'SSE-B2'  #: the key is kept by B2
    SSE_C = 'SSE-C'  #: the key is sent by the client with every request

    def can_be_set_as_bucket_default(self):
        return self in BUCKET_DEFAULT_ENCRYPTION_MODES


ENCRYPTION_MODES_WITH_MANDATORY_ALGORITHM = frozenset((EncryptionMode.SSE_B2, EncryptionMode.SSE_C))
ENCRYPTION_MODES_WITH_MANDATORY_KEY = frozenset((EncryptionMode.SSE_C,))
BUCKET_DEFAULT_ENCRYPTION_MODES = frozenset((EncryptionMode.NONE, EncryptionMode.SSE_B2))
