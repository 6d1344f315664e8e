"""Debounced, periodic runner for the overdue stacking sweep."""

import asyncio
from typing import Awaitable, Callable, Optional

from components.core.logging import get_logger

logger = get_logger(__name__)

Sweep = Callable[[], Awaitable[int]]


class StackingScheduler:
    """
    Runs ``sweep`` shortly after the installment data changes.

    ``notify()`` (re)arms a debounce timer so a burst of payments triggers a
    single sweep. ``start()`` adds a periodic tick that re-notifies every
    ``interval`` seconds (0 disables it). At most one sweep runs at a time.
    """

    def __init__(self, sweep: Sweep, debounce: float = 1.0, interval: float = 300.0) -> None:
        self._sweep = sweep
        self.debounce = debounce
        self.interval = interval
        self._lock = asyncio.Lock()
        self._pending: Optional[asyncio.Task] = None
        self._ticker: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def notify(self) -> None:
        """Schedule a sweep after the debounce delay, replacing any pending one."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._delayed())

    async def _delayed(self) -> None:
        try:
            await asyncio.sleep(self.debounce)
        except asyncio.CancelledError:
            return
        # Past the debounce: a later notify() must not cancel the sweep itself
        self._pending = None
        await self.run_now()

    async def run_now(self) -> int:
        """Run the sweep immediately and return the number of rows it updated."""
        async with self._lock:
            try:
                updated = await self._sweep()
            except Exception:
                logger.exception("Stacking sweep failed")
                return 0
            self.runs += 1
            if updated:
                logger.info("Stacking sweep updated %d installments", updated)
            else:
                logger.debug("Stacking sweep found nothing to stack")
            return updated

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.notify()

    def start(self) -> None:
        if self.running:
            return
        if self.interval > 0:
            self._ticker = asyncio.get_running_loop().create_task(self._tick())
        logger.info("Stacking scheduler started (debounce %.1fs, interval %.0fs)", self.debounce, self.interval)
        self.notify()

    async def stop(self) -> None:
        for task in (self._ticker, self._pending):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._ticker = None
        self._pending = None
        logger.info("Stacking scheduler stopped")
