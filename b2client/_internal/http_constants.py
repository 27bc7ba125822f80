######################################################################
#
# File: b2client/_internal/http_constants.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

# These constants are needed in different modules, so they are stored in this module, that
# imports nothing, thus avoiding circular imports

FILE_INFO_HEADER_PREFIX = 'X-Bz-Info-'
FILE_INFO_HEADER_PREFIX_LOWER = FILE_INFO_HEADER_PREFIX.lower()

# Standard names for file info entries
SRC_LAST_MODIFIED_MILLIS = 'src_last_modified_millis'

# Content type that lets the server guess the type from the file name
AUTO_CONTENT_TYPE = 'b2/x-auto'

# Value of X-Bz-Content-Sha1 for large files, which have no whole-file checksum
NO_CONTENT_SHA1 = 'none'

# https://www.backblaze.com/docs/cloud-storage-files#file-names
MAX_FILE_NAME_BYTES = 1024
MAX_FILE_NAME_SEGMENT_BYTES = 250

# Size units
KIBIBYTE = 1024
MEBIBYTE = 1024 * KIBIBYTE
GIBIBYTE = 1024 * MEBIBYTE

# Large file limits, https://www.backblaze.com/docs/cloud-storage-large-files
MIN_PART_SIZE = 5 * MEBIBYTE
MAX_PART_SIZE = 5 * GIBIBYTE
MAX_PART_COUNT = 10000
DEFAULT_LARGE_FILE_CUTOFF = 200 * MEBIBYTE

# Streaming chunk sizes
UPLOAD_FILE_CHUNK_SIZE = 80 * KIBIBYTE
UPLOAD_PART_CHUNK_SIZE = 160 * KIBIBYTE

SSE_B2_ALGORITHM_HEADER = 'X-Bz-Server-Side-Encryption'
SSE_C_ALGORITHM_HEADER = 'X-Bz-Server-Side-Encryption-Customer-Algorithm'
SSE_C_KEY_HEADER = 'X-Bz-Server-Side-Encryption-Customer-Key'
SSE_C_KEY_MD5_HEADER = 'X-Bz-Server-Side-Encryption-Customer-Key-Md5'
