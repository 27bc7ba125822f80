######################################################################
#
# File: b2client/_internal/upload/options.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import dataclasses
from abc import ABCMeta, abstractmethod

from ..encryption.setting import EncryptionSetting
from ..exception import InvalidUploadOption
from ..file_lock import FileRetentionSetting, LegalHold
from ..http_constants import (
    AUTO_CONTENT_TYPE,
    DEFAULT_LARGE_FILE_CUTOFF,
    MAX_PART_COUNT,
    MAX_PART_SIZE,
    MEBIBYTE,
    MIN_PART_SIZE,
    SRC_LAST_MODIFIED_MILLIS,
)
from ..throttle import Throttle
from .stats import SizeUnit

_PART_SIZE_RANGE = '5 MiB - 5 GiB'


@dataclasses.dataclass
class B2FileUploadSettings:
    """
    The settings B2 lets you attach to an uploaded file.

    The ``b2_*`` values are stored in the file info, under the names which make B2
    send them back as the respective headers when the file is downloaded.
    """
    content_type: str = AUTO_CONTENT_TYPE
    src_last_modified_millis: int | None = None
    b2_content_disposition: str | None = None
    b2_content_language: str | None = None
    b2_expires: str | None = None
    b2_cache_control: str | None = None
    b2_content_encoding: str | None = None
    custom_upload_timestamp: int | None = None
    legal_hold: LegalHold | None = None
    file_retention: FileRetentionSetting | None = None
    server_side_encryption: EncryptionSetting | None = None

    def file_info(self, file_info: dict[str, str] | None = None) -> dict[str, str]:
        """
        Return a copy of ``file_info`` with the settings which travel as file info added.
        """
        result = dict(file_info or {})
        if self.src_last_modified_millis is not None:
            result[SRC_LAST_MODIFIED_MILLIS] = str(self.src_last_modified_millis)
        for key, value in (
            ('b2-content-disposition', self.b2_content_disposition),
            ('b2-content-language', self.b2_content_language),
            ('b2-expires', self.b2_expires),
            ('b2-cache-control', self.b2_cache_control),
            ('b2-content-encoding', self.b2_content_encoding),
        ):
            if value is not None:
                result[key] = value
        return result

    def upload_file_kwargs(self, file_info: dict[str, str] | None = None) -> dict:
        """
        Keyword arguments of ``upload_file``, which sends the settings as headers.
        """
        return dict(
            content_type=self.content_type,
            file_info=self.file_info(file_info),
            server_side_encryption=self.server_side_encryption,
            file_retention=self.file_retention,
            legal_hold=self.legal_hold,
            custom_upload_timestamp=self.custom_upload_timestamp,
        )

    def start_large_file_kwargs(self, file_info: dict[str, str] | None = None) -> dict:
        """
        Keyword arguments of ``start_large_file``, which sends the settings in the request body.
        """
        return self.upload_file_kwargs(file_info)

    def upload_part_kwargs(self) -> dict:
        """
        Keyword arguments of ``upload_part``. Of the encryption, only an SSE-C key is sent per part.
        """
        return dict(server_side_encryption=self.server_side_encryption)


@dataclasses.dataclass(frozen=True)
class ConstantLargeFileLoadStrategy:
    """
    Dictates how the parts of a large file are uploaded.

    The file is split into parts of ``part_size`` bytes (the last one can be shorter)
    and ``concurrency`` parts are uploaded at the same time, each one read into memory
    while it is being sent. The memory used is therefore about ``part_size * concurrency``.
    """
    part_size: int = 5 * MEBIBYTE
    concurrency: int = 3

    def get_load_strategy(self, file_size: int) -> ConstantLargeFileLoadStrategy:
        return self

    def validate(self, file_size: int | None = None) -> None:
        if self.concurrency < 1:
            raise InvalidUploadOption(
                self.__class__.__name__, 'concurrency', self.concurrency, 'at least 1'
            )
        if self.part_size < MIN_PART_SIZE or self.part_size > MAX_PART_SIZE:
            raise InvalidUploadOption(
                self.__class__.__name__,
                'part_size',
                SizeUnit.from_bytes(self.part_size),
                _PART_SIZE_RANGE,
            )
        if file_size is not None:
            part_count = -(-file_size // self.part_size)
            if part_count > MAX_PART_COUNT:
                raise InvalidUploadOption(
                    self.__class__.__name__,
                    'part_size',
                    SizeUnit.from_bytes(self.part_size),
                    f'at most {MAX_PART_COUNT} parts for a file of '
                    f'{SizeUnit.from_bytes(file_size)}',
                )


class AbstractLargeFileLoadStrategy(metaclass=ABCMeta):
    """
    Chooses how to upload a large file, depending on its size.
    """

    @abstractmethod
    def get_load_strategy(self, file_size: int) -> ConstantLargeFileLoadStrategy:
        pass


class DefaultLargeFileLoadStrategy(AbstractLargeFileLoadStrategy):
    """
    Parts of 5 MiB, more of them at once for bigger files.
    """
    MAX_CONCURRENCY = 65535

    def get_load_strategy(self, file_size: int) -> ConstantLargeFileLoadStrategy:
        concurrency = max(file_size // MIN_PART_SIZE // 200, 3)
        return ConstantLargeFileLoadStrategy(
            part_size=MIN_PART_SIZE,
            concurrency=min(concurrency, self.MAX_CONCURRENCY),
        )

    def __repr__(self):
        return f'{self.__class__.__name__}()'


class AbstractRetryStrategy(metaclass=ABCMeta):
    """
    Dictates how many times an upload is attempted and how long to wait between the attempts.
    """

    @property
    @abstractmethod
    def count(self) -> int:
        """
        Total number of attempts, at least 1.
        """

    @abstractmethod
    def wait(self, attempt: int) -> float:
        """
        Seconds to wait after the given (1-based) attempt failed.
        """


@dataclasses.dataclass(frozen=True)
class ConstantRetryStrategy(AbstractRetryStrategy):
    count: int = 3
    wait_seconds: float = 1.0

    def wait(self, attempt: int) -> float:
        return self.wait_seconds


class DefaultRetryStrategy(AbstractRetryStrategy):
    """
    5 attempts, waiting a bit longer after every failure.
    """

    @property
    def count(self) -> int:
        return 5

    def wait(self, attempt: int) -> float:
        return attempt * 2 / 1.2

    def __repr__(self):
        return f'{self.__class__.__name__}()'


@dataclasses.dataclass
class FileUploadOptions:
    """
    Options of a :class:`~b2client.v1.FileUpload`.

    :ivar large_file_cutoff: files bigger than this are uploaded in parts, from 5 MiB to 5 GiB
    :ivar load_strategy: how the parts of a large file are uploaded
    :ivar speed_throttle: upload speed limit, e.g. ``Throttle.per_second(5 * MEBIBYTE)``
    :ivar retry_strategy: how failed uploads are retried
    :ivar settings: what is attached to the uploaded file
    """
    large_file_cutoff: int = DEFAULT_LARGE_FILE_CUTOFF
    load_strategy: ConstantLargeFileLoadStrategy | AbstractLargeFileLoadStrategy = (
        dataclasses.field(default_factory=DefaultLargeFileLoadStrategy)
    )
    speed_throttle: Throttle | None = None
    retry_strategy: AbstractRetryStrategy = dataclasses.field(default_factory=DefaultRetryStrategy)
    settings: B2FileUploadSettings = dataclasses.field(default_factory=B2FileUploadSettings)

    def get_load_strategy(self, file_size: int) -> ConstantLargeFileLoadStrategy:
        return self.load_strategy.get_load_strategy(file_size)

    def validate(self, file_size: int | None = None) -> None:
        """
        Raise :class:`~b2client.v1.exception.InvalidUploadOption` if the options cannot be used.

        When ``file_size`` is given and the file would be uploaded in parts,
        the part layout is validated as well.
        """
        if self.large_file_cutoff < MIN_PART_SIZE or self.large_file_cutoff > MAX_PART_SIZE:
            raise InvalidUploadOption(
                self.__class__.__name__,
                'large_file_cutoff',
                SizeUnit.from_bytes(self.large_file_cutoff),
                _PART_SIZE_RANGE,
            )
        if self.retry_strategy.count < 1:
            raise InvalidUploadOption(
                self.__class__.__name__, 'retry_strategy.count', self.retry_strategy.count,
                'at least 1'
            )
        if file_size is not None and file_size > self.large_file_cutoff:
            self.get_load_strategy(file_size).validate(file_size)
