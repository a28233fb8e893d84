"""Host schedulers — where background database work actually runs.

The embedding application supplies a ``Host``. Two ready-made ones are
provided: a thread pool for plain threaded programs, and an asyncio host
that pushes blocking work to threads via ``asyncio.to_thread`` so the event
loop stays responsive.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Host(Protocol):
    """Anything that can run a unit of work off the caller's thread."""

    def submit(self, fn: Callable[[], T]) -> Future[T]: ...


class ThreadPoolHost:
    """Runs submitted work on a ``ThreadPoolExecutor``."""

    def __init__(self, max_workers: int | None = None, name: str = "sqlutil"):
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        logger.debug("Thread pool host started (max_workers=%s)", max_workers)

    def submit(self, fn: Callable[[], T]) -> Future[T]:
        return self._executor.submit(fn)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; optionally wait for queued work to finish."""
        self._executor.shutdown(wait=wait)
        logger.debug("Thread pool host stopped")


class AsyncioHost:
    """Runs submitted work in a thread scheduled from an asyncio event loop.

    Safe to call from any thread, including the loop's own.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop or asyncio.get_running_loop()

    def submit(self, fn: Callable[[], T]) -> Future[T]:
        return asyncio.run_coroutine_threadsafe(asyncio.to_thread(fn), self.loop)
