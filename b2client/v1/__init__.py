######################################################################
#
# File: b2client/v1/__init__.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

# Set default logging handler to avoid "No handler found" warnings.
import logging as _logging

_logging.getLogger("b2client").addHandler(_logging.NullHandler())


class UrllibWarningFilter:
    def filter(self, record):
        return record.msg != "Connection pool is full, discarding connection: %s"


_logging.getLogger('urllib3.connectionpool').addFilter(UrllibWarningFilter())

# this file maps the external interface into internal interface
# it will come handy if we ever need to move something

# core

from b2client._internal.client import B2Client
from b2client._internal.client import ClientStatus
from b2client._internal.bucket import Bucket
from b2client._internal.bucket import BucketFactory
from b2client._internal.raw_api import ALL_CAPABILITIES, REALM_URLS, API_VERSION

# encryption

from b2client._internal.encryption.setting import EncryptionSetting
from b2client._internal.encryption.setting import EncryptionSettingFactory
from b2client._internal.encryption.setting import EncryptionKey
from b2client._internal.encryption.setting import SSE_NONE, SSE_B2_AES
from b2client._internal.encryption.types import EncryptionAlgorithm
from b2client._internal.encryption.types import EncryptionMode

# account info

from b2client._internal.account_info.abstract import AbstractAccountInfo
from b2client._internal.account_info.in_memory import InMemoryAccountInfo

# version & version utils

from b2client.version import VERSION, USER_AGENT

# utils

from b2client._internal.utils import (
    b2_url_encode,
    b2_url_decode,
    choose_part_ranges,
    current_time_millis,
    hex_sha1_of_bytes,
)
from b2client._internal.utils import B2TraceMeta
from b2client._internal.utils import B2TraceMetaAbstract
from b2client._internal.utils.thread_pool import LazyThreadPool
from b2client._internal.utils.thread_pool import ThreadPoolMixin

# data classes

from b2client._internal.file_version import DownloadVersion
from b2client._internal.file_version import DownloadVersionFactory
from b2client._internal.file_version import FileIdAndName
from b2client._internal.file_version import FileVersion
from b2client._internal.file_version import FileVersionFactory

# downloads

from b2client._internal.download import DownloadedFile

# uploads

from b2client._internal.upload.file_upload import FileStatus
from b2client._internal.upload.file_upload import FileUpload
from b2client._internal.upload.options import AbstractLargeFileLoadStrategy
from b2client._internal.upload.options import AbstractRetryStrategy
from b2client._internal.upload.options import B2FileUploadSettings
from b2client._internal.upload.options import ConstantLargeFileLoadStrategy
from b2client._internal.upload.options import ConstantRetryStrategy
from b2client._internal.upload.options import DefaultLargeFileLoadStrategy
from b2client._internal.upload.options import DefaultRetryStrategy
from b2client._internal.upload.options import FileUploadOptions
from b2client._internal.upload.stats import CurrentFileNetworkStats
from b2client._internal.upload.stats import FileNetworkStats
from b2client._internal.upload.stats import RollingTimeSeries
from b2client._internal.upload.stats import SizeUnit
from b2client._internal.throttle import Throttle

# progress reporting

from b2client._internal.progress import AbstractProgressListener
from b2client._internal.progress import DoNothingProgressListener
from b2client._internal.progress import ProgressListenerForTest
from b2client._internal.progress import SimpleProgressListener
from b2client._internal.progress import TqdmProgressListener
from b2client._internal.progress import make_progress_listener

# raw_api

from b2client._internal.raw_api import AbstractRawApi
from b2client._internal.raw_api import B2RawHTTPApi
from b2client._internal.raw_api import LifecycleRule
from b2client._internal.raw_api import MetadataDirectiveMode
from b2client._internal.raw_api import NotificationRule

# stream

from b2client._internal.stream.progress import ReadingStreamWithProgress
from b2client._internal.stream.wrapper import StreamWrapper
from b2client._internal.stream.wrapper import StreamWithLengthWrapper

# other

from b2client._internal.b2http import B2Http
from b2client._internal.b2http import ClockSkewHook
from b2client._internal.b2http import HttpCallback
from b2client._internal.api_config import B2HttpApiConfig
from b2client._internal.api_config import DEFAULT_HTTP_API_CONFIG
from b2client._internal.file_lock import FileRetentionSetting
from b2client._internal.file_lock import LegalHold
from b2client._internal.file_lock import NO_RETENTION_FILE_SETTING
from b2client._internal.file_lock import RetentionMode
from b2client._internal.raw_simulator import BucketSimulator
from b2client._internal.raw_simulator import FakeResponse
from b2client._internal.raw_simulator import FileSimulator
from b2client._internal.raw_simulator import KeySimulator
from b2client._internal.raw_simulator import PartSimulator
from b2client._internal.raw_simulator import RawSimulator
from b2client._internal.session import B2Session
