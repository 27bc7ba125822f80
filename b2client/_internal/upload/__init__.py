######################################################################
#
# File: b2client/_internal/upload/__init__.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from .file_upload import FileStatus, FileUpload
from .options import (
    AbstractLargeFileLoadStrategy,
    AbstractRetryStrategy,
    B2FileUploadSettings,
    ConstantLargeFileLoadStrategy,
    ConstantRetryStrategy,
    DefaultLargeFileLoadStrategy,
    DefaultRetryStrategy,
    FileUploadOptions,
)
from .stats import CurrentFileNetworkStats, FileNetworkStats, RollingTimeSeries, SizeUnit

__all__ = [
    'FileStatus',
    'FileUpload',
    'AbstractLargeFileLoadStrategy',
    'AbstractRetryStrategy',
    'B2FileUploadSettings',
    'ConstantLargeFileLoadStrategy',
    'ConstantRetryStrategy',
    'DefaultLargeFileLoadStrategy',
    'DefaultRetryStrategy',
    'FileUploadOptions',
    'CurrentFileNetworkStats',
    'FileNetworkStats',
    'RollingTimeSeries',
    'SizeUnit',
]
