######################################################################
#
# File: b2client/_internal/throttle.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import logging
import threading
import time

logger = logging.getLogger(__name__)


class Throttle:
    """
    Limit the amount of something (bytes, requests...) used per period of time.

    The budget of ``max_per_period`` is renewed when ``period`` seconds have passed since
    the current period started. Taking from an exhausted budget blocks until the period ends.

    A single throttle can be shared by many threads, e.g. by all parts of a large file.
    """

    def __init__(self, max_per_period: int, period: float):
        assert max_per_period > 0
        assert period > 0
        self.max_per_period = max_per_period
        self.period = period
        self._lock = threading.Lock()
        self._count_start = time.monotonic()
        self._current_count = 0

    @classmethod
    def per_second(cls, max_per_period: int) -> Throttle:
        return cls(max_per_period, 1)

    @classmethod
    def per_minute(cls, max_per_period: int) -> Throttle:
        return cls(max_per_period, 60)

    def advance(self) -> int:
        """
        Advance the throttle by 1, waiting if the throttle has been exhausted.
        """
        return self.advance_by(1)

    def advance_by(self, amount: int) -> int:
        """
        Advance the throttle by the given amount, waiting if the throttle has been exhausted.

        The amount is taken whole even if it is larger than what is left in the period,
        so the budget may go over; the next call then waits for the period to end.

        :return: what is left of the budget in the current period, never negative
        """
        while True:
            with self._lock:
                self._reset_if_period_elapsed()
                if self._current_count < self.max_per_period:
                    self._current_count += amount
                    return max(self.max_per_period - self._current_count, 0)
                wait = self._time_left_in_period()
            logger.debug('throttle exhausted, waiting %.3f seconds', wait)
            time.sleep(wait)

    def wait_if_exhausted(self) -> None:
        """
        If the budget of the current period has been exhausted, wait for the period to end,
        otherwise return immediately.
        """
        with self._lock:
            self._reset_if_period_elapsed()
            if self._current_count < self.max_per_period:
                return
            wait = self._time_left_in_period()
        time.sleep(wait)

    @property
    def remaining(self) -> int:
        """
        The remaining budget of the current period.
        """
        with self._lock:
            if time.monotonic() - self._count_start >= self.period:
                return self.max_per_period
            return max(self.max_per_period - self._current_count, 0)

    def copy(self) -> Throttle:
        """
        Return a throttle with the same limits and a fresh budget.
        """
        return self.__class__(self.max_per_period, self.period)

    def _reset_if_period_elapsed(self):
        now = time.monotonic()
        if now - self._count_start >= self.period:
            self._count_start = now
            self._current_count = 0

    def _time_left_in_period(self) -> float:
        return max(self.period - (time.monotonic() - self._count_start), 0)

    def __repr__(self):
        return f'{self.__class__.__name__}({self.max_per_period}, {self.period})'
