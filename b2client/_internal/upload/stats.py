######################################################################
#
# File: b2client/_internal/upload/stats.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import dataclasses
import datetime as dt
import threading
import time

from ..http_constants import GIBIBYTE, KIBIBYTE, MEBIBYTE


@dataclasses.dataclass(frozen=True)
class SizeUnit:
    """
    An amount of bytes, displayed in the biggest unit which keeps it above 1,
    e.g. ``SizeUnit.from_bytes(3 * 1024 ** 2)`` is displayed as ``3.00 MiB``.
    """
    value: float
    unit: str

    _UNITS = {
        'KiB': KIBIBYTE,
        'MiB': MEBIBYTE,
        'GiB': GIBIBYTE,
    }

    @classmethod
    def from_bytes(cls, byte_count: float) -> SizeUnit:
        if byte_count > GIBIBYTE:
            return cls(byte_count / GIBIBYTE, 'GiB')
        elif byte_count > MEBIBYTE:
            return cls(byte_count / MEBIBYTE, 'MiB')
        return cls(byte_count / KIBIBYTE, 'KiB')

    def as_bytes(self) -> float:
        return self.value * self._UNITS[self.unit]

    def __str__(self):
        return f'{self.value:.2f} {self.unit}'


@dataclasses.dataclass
class TimeSeriesDataPoint:
    value: float
    time: float = dataclasses.field(default_factory=time.monotonic)

    def age(self, now: float | None = None) -> float:
        if now is None:
            now = time.monotonic()
        return now - self.time


class RollingTimeSeries:
    """
    A fixed number of slots holding the most recent values, together with the time they were added.

    Values older than ``max_age`` seconds are expired and not reported.
    Not thread safe, the owner has to synchronize access.
    """

    def __init__(self, size: int = 5000, max_age: float = 10):
        assert size > 0
        self.max_age = max_age
        self._slots: list[TimeSeriesDataPoint | None] = [None] * size

    def add_value(self, value: float) -> None:
        """
        Store the value in the first empty or expired slot, or, when all slots
        hold valid points, in place of the oldest one.
        """
        now = time.monotonic()
        oldest_index = None
        for index, point in enumerate(self._slots):
            if point is None or point.age(now) >= self.max_age:
                self._slots[index] = TimeSeriesDataPoint(value, now)
                return
            if oldest_index is None or point.time < self._slots[oldest_index].time:
                oldest_index = index
        self._slots[oldest_index] = TimeSeriesDataPoint(value, now)

    def get_valid_points(self) -> list[TimeSeriesDataPoint]:
        now = time.monotonic()
        return [
            point for point in self._slots if point is not None and point.age(now) < self.max_age
        ]


@dataclasses.dataclass(frozen=True)
class CurrentFileNetworkStats:
    """
    A snapshot of the transfer statistics of a file.

    :ivar bps: transfer speed, per second
    :ivar eta: estimated time left
    :ivar percentage: completion, from 0.0 to 1.0
    :ivar done: transferred so far
    :ivar total: size of the file
    :ivar elapsed: time since the transfer started
    """
    bps: SizeUnit
    eta: dt.timedelta
    percentage: float
    done: SizeUnit
    total: SizeUnit
    elapsed: dt.timedelta

    def __str__(self):
        return 'Speed: {}PS | ETA: {} | Progress: {}/{} ({:.2f}%) | Elapsed: {}'.format(
            self.bps,
            _whole_seconds(self.eta),
            self.done,
            self.total,
            self.percentage * 100,
            _whole_seconds(self.elapsed),
        )


def _whole_seconds(delta: dt.timedelta) -> dt.timedelta:
    return dt.timedelta(seconds=round(delta.total_seconds()))


class FileNetworkStats:
    """
    Transfer statistics of a single file, shared by all threads working on it.
    """

    def __init__(self, total: int, time_series: RollingTimeSeries | None = None):
        self.total = total
        self._done = 0
        self._lock = threading.Lock()
        self._speed_buffer = time_series or RollingTimeSeries()
        self._start_time = time.monotonic()

    def start_timer(self) -> None:
        with self._lock:
            self._start_time = time.monotonic()

    @property
    def bytes_done(self) -> int:
        return self._done

    def add_bytes(self, byte_count: int) -> int:
        """
        Count transferred bytes.

        :return: the number of bytes transferred so far
        """
        with self._lock:
            self._done += byte_count
            self._speed_buffer.add_value(byte_count)
            return self._done

    def subtract_bytes(self, byte_count: int) -> int:
        """
        Forget bytes which have to be transferred again.

        :return: the number of bytes transferred so far
        """
        with self._lock:
            self._done = max(self._done - byte_count, 0)
            return self._done

    def bytes_per_second(self) -> float:
        """
        Bytes recently transferred, divided by the age of the oldest of those samples.
        """
        with self._lock:
            return self._bytes_per_second()

    def estimated_time_left(self) -> float:
        """
        Estimated time to finish, in seconds.
        """
        with self._lock:
            return self._estimated_time_left(self._done)

    def percentage(self) -> float:
        """
        Completion, from 0.0 to 1.0; an empty file is complete from the start.
        """
        if not self.total:
            return 1.0
        return self._done / self.total

    def current_stats(self) -> CurrentFileNetworkStats:
        with self._lock:
            done = self._done
            bps = self._bytes_per_second()
            eta = max(self._estimated_time_left(done), 0)
            elapsed = time.monotonic() - self._start_time
        return CurrentFileNetworkStats(
            bps=SizeUnit.from_bytes(bps),
            eta=dt.timedelta(seconds=eta),
            percentage=done / self.total if self.total else 1.0,
            done=SizeUnit.from_bytes(done),
            total=SizeUnit.from_bytes(self.total),
            elapsed=dt.timedelta(seconds=elapsed),
        )

    def _bytes_per_second(self) -> float:
        points = self._speed_buffer.get_valid_points()
        if not points:
            return 0.0
        now = time.monotonic()
        oldest_age = max(point.age(now) for point in points)
        if oldest_age <= 0:
            return 0.0
        return sum(point.value for point in points) / oldest_age

    def _estimated_time_left(self, done: int) -> float:
        bytes_per_second = self._bytes_per_second() or 1.0
        return (self.total - done) / bytes_per_second
