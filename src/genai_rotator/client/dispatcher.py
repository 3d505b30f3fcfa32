# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Global request dispatcher.

Every outbound call funnels through one FIFO queue that enforces a minimum
interval between request starts. The external rate limit is shared by all
keys of a project, so the throttle is independent of the credential used.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from ..core.constants import DEFAULT_MIN_REQUEST_INTERVAL

lib_logger = logging.getLogger("genai_rotator")

T = TypeVar("T")


class RequestDispatcher:
    """
    Serializes tasks and throttles their start times.

    Tasks run strictly one at a time in submission order. A failing task
    delivers its exception to its own caller; the next task proceeds once
    the throttle interval has elapsed.
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_REQUEST_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock: Optional[asyncio.Lock] = None
        self._waiting = 0
        self.last_request_started: Optional[float] = None

    @property
    def pending(self) -> int:
        """Number of tasks queued or running."""
        return self._waiting

    def _get_lock(self) -> asyncio.Lock:
        # Created lazily so the dispatcher can be built outside a running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def schedule(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Run a task once it reaches the head of the queue.

        Args:
            task: Zero-argument callable returning an awaitable

        Returns:
            The task's result; its exception propagates to this caller only
        """
        self._waiting += 1
        try:
            async with self._get_lock():
                if self.last_request_started is not None:
                    elapsed = self._clock() - self.last_request_started
                    delay = self.min_interval - elapsed
                    if delay > 0:
                        lib_logger.debug(f"Throttling next request for {delay:.2f}s")
                        await self._sleep(delay)
                self.last_request_started = self._clock()
                return await task()
        finally:
            self._waiting -= 1
