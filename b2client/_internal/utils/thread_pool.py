######################################################################
#
# File: b2client/_internal/utils/thread_pool.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from typing_extensions import Protocol

from b2client._internal.utils import B2TraceMetaAbstract

logger = logging.getLogger(__name__)


class UploadExecutorProtocol(Protocol):
    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        ...

    def set_size(self, max_workers: int) -> None:
        """Change how many tasks run at once."""

    def get_size(self) -> int:
        """Return how many tasks run at once."""

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks and release the worker threads."""


class LazyThreadPool:
    """
    Thread pool which starts its threads with the first submitted task.

    Once shut down, it refuses new tasks.
    """

    _THREAD_POOL_FACTORY = ThreadPoolExecutor

    def __init__(self, max_workers: int, thread_name_prefix: str = 'b2-worker'):
        if max_workers < 1:
            raise ValueError(f'max_workers must be at least 1, got {max_workers}')
        self._max_workers = max_workers
        self._thread_name_prefix = thread_name_prefix
        self._thread_pool: ThreadPoolExecutor | None = None
        self._is_shut_down = False
        self._lock = threading.Lock()

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        with self._lock:
            if self._is_shut_down:
                raise RuntimeError('cannot submit tasks to a pool which was shut down')
            if self._thread_pool is None:
                self._thread_pool = self._new_thread_pool(self._max_workers)
            return self._thread_pool.submit(fn, *args, **kwargs)

    def set_size(self, max_workers: int) -> None:
        """
        Change how many tasks run at once.

        Tasks already submitted finish in the old threads, which are released
        in the background.
        """
        if max_workers < 1:
            raise ValueError(f'max_workers must be at least 1, got {max_workers}')
        with self._lock:
            if max_workers == self._max_workers:
                return
            old_thread_pool, self._thread_pool = self._thread_pool, None
            self._max_workers = max_workers
        if old_thread_pool is not None:
            old_thread_pool.shutdown(wait=False)
        logger.debug('%s pool resized to %d workers', self._thread_name_prefix, max_workers)

    def get_size(self) -> int:
        return self._max_workers

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._is_shut_down = True
            thread_pool, self._thread_pool = self._thread_pool, None
        if thread_pool is not None:
            thread_pool.shutdown(wait=wait)

    def _new_thread_pool(self, max_workers: int) -> ThreadPoolExecutor:
        return self._THREAD_POOL_FACTORY(
            max_workers=max_workers, thread_name_prefix=self._thread_name_prefix
        )


class ThreadPoolMixin(metaclass=B2TraceMetaAbstract):
    """
    Mixin of the classes which run uploads in a thread pool of their own.
    """

    DEFAULT_THREAD_POOL_CLASS = LazyThreadPool

    def __init__(
        self,
        thread_pool: UploadExecutorProtocol | None = None,
        max_workers: int = 10,
        **kwargs,
    ):
        """
        :param thread_pool: the pool to run uploads in
        :param max_workers: how many uploads run at once, ignored if ``thread_pool`` is given
        """
        if thread_pool is None:
            thread_pool = self.DEFAULT_THREAD_POOL_CLASS(
                max_workers=max_workers, thread_name_prefix='b2-upload'
            )
        self._thread_pool = thread_pool
        super().__init__(**kwargs)

    def set_thread_pool_size(self, max_workers: int) -> None:
        self._thread_pool.set_size(max_workers)

    def get_thread_pool_size(self) -> int:
        return self._thread_pool.get_size()
