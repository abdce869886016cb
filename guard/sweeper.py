"""Background task that periodically reclaims stale client records."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from guard.rate_limit import RateLimiter

LOGGER = logging.getLogger(__name__)


class BanSweeper:
    """Runs ``RateLimiter.sweep`` on a fixed interval inside the event loop.

    A pass never awaits, so cancelling the task can only interrupt the sleep
    between passes.
    """

    def __init__(self, limiter: RateLimiter, interval_seconds: float) -> None:
        self._limiter = limiter
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        return self._limiter.sweep(self._limiter.now())

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        LOGGER.info("sweeper started (every %ss)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        LOGGER.info("sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.run_once()
            except Exception:  # noqa: BLE001
                LOGGER.exception("sweep pass failed")
