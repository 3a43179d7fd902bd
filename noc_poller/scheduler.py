"""
Run poll cycles on a fixed interval.

The first cycle starts immediately. A timer tick that arrives while the
previous cycle is still running is skipped, so two cycles never overlap.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PollScheduler:
    """
    Fire `cycle()` now and then every `interval_ms` until stopped.

    `stop()` ends the timer and cancels an in-flight cycle without waiting
    for it to finish.
    """

    def __init__(self, cycle: Callable[[], Awaitable[Any]], interval_ms: int):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be greater than zero")
        self.cycle = cycle
        self.interval_ms = interval_ms
        self._stopped: Optional[asyncio.Event] = None
        self._current: Optional[asyncio.Task] = None
        self.ticks = 0
        self.skipped = 0

    @property
    def busy(self) -> bool:
        return self._current is not None and not self._current.done()

    @property
    def running(self) -> bool:
        return self._stopped is not None and not self._stopped.is_set()

    def _tick(self) -> None:
        self.ticks += 1
        if self.busy:
            self.skipped += 1
            logger.warning(
                "Previous poll cycle still running, skipping tick %d", self.ticks
            )
            return
        self._current = asyncio.create_task(self._run_cycle())

    async def _run_cycle(self) -> None:
        try:
            await self.cycle()
        except asyncio.CancelledError:
            raise
        except Exception:
            # A broken cycle must not stop the timer
            logger.exception("Poll cycle failed")

    async def run(self) -> None:
        """Tick until `stop()` is called."""
        self._stopped = asyncio.Event()
        interval = self.interval_ms / 1000.0
        loop = asyncio.get_running_loop()
        next_at = loop.time()

        logger.info("Scheduler started, interval %.1fs", interval)
        try:
            while not self._stopped.is_set():
                self._tick()
                next_at += interval
                try:
                    await asyncio.wait_for(
                        self._stopped.wait(), timeout=max(0.0, next_at - loop.time())
                    )
                except asyncio.TimeoutError:
                    pass
                # Fell behind (suspended process, slow loop): realign to now
                if next_at < loop.time():
                    next_at = loop.time()
        finally:
            if self.busy:
                logger.info("Abandoning in-flight poll cycle")
                self._current.cancel()
            logger.info("Scheduler stopped after %d ticks (%d skipped)", self.ticks, self.skipped)

    def stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()
