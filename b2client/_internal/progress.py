######################################################################
#
# File: b2client/_internal/progress.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import logging
import time
from abc import ABCMeta, abstractmethod

try:
    from tqdm import tqdm  # displays a nice progress bar
except ImportError:
    tqdm = None  # noqa

logger = logging.getLogger(__name__)


class AbstractProgressListener(metaclass=ABCMeta):
    """
    Receives the progress of one upload or download.

    :meth:`bytes_completed` gets the running total, not a delta. The total may go
    down when a part is sent again. The parts of a large file are sent by several
    threads, so implementations may be called concurrently.

    Listeners are context managers which close on exit; a listener may be closed once.
    """

    def __init__(self, description: str = ''):
        self.description = description
        self._closed = False

    @abstractmethod
    def set_total_bytes(self, total_byte_count: int) -> None:
        """
        Called before the transfer starts, and again if it is started over.
        """

    @abstractmethod
    def bytes_completed(self, byte_count: int) -> None:
        pass

    def close(self) -> None:
        assert not self._closed, 'progress listener was closed twice!'
        self._closed = True

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class TqdmProgressListener(AbstractProgressListener):
    """
    Draws a progress bar on the terminal. Needs the optional ``tqdm`` package.
    """

    def __init__(self, *args, **kwargs):
        if tqdm is None:
            raise ModuleNotFoundError("No module named 'tqdm' found")
        self.tqdm = None
        self.prev_value = 0
        super().__init__(*args, **kwargs)

    def set_total_bytes(self, total_byte_count: int) -> None:
        if self.tqdm is not None:
            return
        self.tqdm = tqdm(
            desc=self.description,
            total=total_byte_count,
            unit='B',
            unit_scale=True,
            leave=True,
            miniters=1,
            smoothing=0.1,
            mininterval=0.2,
        )

    def bytes_completed(self, byte_count: int) -> None:
        # the bar cannot go back, after a retry it waits until the old position is passed
        if byte_count > self.prev_value:
            self.tqdm.update(byte_count - self.prev_value)
            self.prev_value = byte_count

    def close(self) -> None:
        if self.tqdm is not None:
            self.tqdm.close()
        super().close()


class SimpleProgressListener(AbstractProgressListener):
    """
    Logs the percentage done, no more often than every few seconds.
    """

    REPORT_INTERVAL_SECONDS = 3

    def __init__(self, *args, **kwargs):
        self.last_time = time.monotonic()
        self.any_reported = False
        self.total = 0
        super().__init__(*args, **kwargs)

    def set_total_bytes(self, total_byte_count: int) -> None:
        self.total = total_byte_count

    def bytes_completed(self, byte_count: int) -> None:
        if not self.total:
            return
        now = time.monotonic()
        if now - self.last_time >= self.REPORT_INTERVAL_SECONDS:
            logger.info('%s: %d%%', self.description, 100 * byte_count // self.total)
            self.last_time = now
            self.any_reported = True

    def close(self) -> None:
        if self.any_reported:
            logger.info('%s: done', self.description)
        super().close()


class DoNothingProgressListener(AbstractProgressListener):
    def set_total_bytes(self, total_byte_count: int) -> None:
        pass

    def bytes_completed(self, byte_count: int) -> None:
        pass


class ProgressListenerForTest(AbstractProgressListener):
    """
    Records every call, e.g. ``['set_total_bytes(10)', 'bytes_completed(10)', 'close()']``.
    """

    def __init__(self, *args, **kwargs):
        self.calls: list[str] = []
        self._bytes_completed: list[int] = []
        super().__init__(*args, **kwargs)

    def set_total_bytes(self, total_byte_count: int) -> None:
        self.calls.append(f'set_total_bytes({total_byte_count})')

    def bytes_completed(self, byte_count: int) -> None:
        self.calls.append(f'bytes_completed({byte_count})')
        self._bytes_completed.append(byte_count)

    def close(self) -> None:
        self.calls.append('close()')
        super().close()

    def get_calls(self) -> list[str]:
        return self.calls

    def get_bytes_completed(self) -> list[int]:
        return list(self._bytes_completed)


def make_progress_listener(description: str, quiet: bool) -> AbstractProgressListener:
    """
    Return a silent listener if ``quiet``, else a progress bar if ``tqdm`` is installed,
    else one which logs.
    """
    if quiet:
        return DoNothingProgressListener()
    if tqdm is not None:
        return TqdmProgressListener(description)
    return SimpleProgressListener(description)
