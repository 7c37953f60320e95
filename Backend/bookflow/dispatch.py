"""
Fire-and-forget side effects.

Email and push delivery run after the booking transaction has committed.
They are scheduled as background tasks so they never block the response,
are never retried, and can never roll back a booking: any exception is
logged here and swallowed.
"""

import asyncio
import logging
from typing import Awaitable, Optional

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Schedules best-effort coroutines and keeps references until they finish."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        self._tasks: set[asyncio.Task] = set()

    def fire(self, label: str, coro: Awaitable) -> asyncio.Task:
        task = asyncio.create_task(self._run(label, coro))
        # The event loop only keeps weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled side effect '{label}'")
        return task

    async def _run(self, label: str, coro: Awaitable):
        try:
            if self.timeout_seconds:
                return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
            return await coro
        except asyncio.TimeoutError:
            logger.error(f"Side effect '{label}' timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.exception(f"Side effect '{label}' failed: {e}")
        return None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled side effect. Used on shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
