"""
Local 1 Hz tick for viewer sessions.
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Callable, Optional

from shared.utils.logging import get_logger

logger = get_logger(__name__)


class LocalTicker:
    """
    Repeating asyncio callback that only runs while armed.

    ``arm()`` always restarts the period so the first tick lands one full
    interval after the most recent snapshot. Missed ticks are not replayed.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        interval_s: float = 1.0,
        name: str = "timer-tick",
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._callback = callback
        self._interval_s = interval_s
        self._name = name
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        self.disarm()
        self._task = asyncio.create_task(self._run(), name=self._name)

    def disarm(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def stop(self) -> None:
        """Cancel and wait for the tick task to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                await self._callback()
            except Exception as exc:
                logger.error("tick_callback_failed", ticker=self._name, error=str(exc), exc_info=True)
