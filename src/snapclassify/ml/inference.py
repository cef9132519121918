"""Worker pool for blocking numeric work.

Model loading, image decoding and the ONNX forward pass all block, so they run
on a small thread pool instead of the event loop. At most ``max_concurrent``
jobs run at once. Extra callers wait for a free worker; they are never
rejected and never time out.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from snapclassify.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferencePool:
    """Bounded thread pool with counters for the health endpoint."""

    def __init__(self, settings: Settings) -> None:
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="snapclassify-worker",
        )
        self._running = 0
        self._waiting = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run ``func(*args)`` on a worker thread once a slot is free."""
        with self._counter_lock:
            self._waiting += 1
        waited = self._slots.locked()
        try:
            await self._slots.acquire()
        finally:
            with self._counter_lock:
                self._waiting -= 1
        if waited:
            logger.debug("Worker slot freed for %s", getattr(func, "__qualname__", func))

        try:
            with self._counter_lock:
                self._running += 1
            return await asyncio.get_running_loop().run_in_executor(self._executor, func, *args)
        finally:
            with self._counter_lock:
                self._running -= 1
            self._slots.release()

    @property
    def active_count(self) -> int:
        with self._counter_lock:
            return self._running

    @property
    def queue_depth(self) -> int:
        with self._counter_lock:
            return self._waiting

    def shutdown(self) -> None:
        """Wait for running jobs, then stop the worker threads."""
        self._executor.shutdown(wait=True)
        logger.info("Worker pool shut down")
