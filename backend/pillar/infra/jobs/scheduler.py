"""In-process periodic sweep, for deployments without an external cron."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from pillar.services.notification_service import NotificationRunner

logger = logging.getLogger(__name__)


async def worker_loop(
    runner_factory: Callable[[], NotificationRunner],
    interval_seconds: float,
    initial_delay_seconds: float = 0,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    max_cycles: Optional[int] = None,
) -> None:
    """Run a sweep every interval_seconds until cancelled. A failed cycle is logged and the loop continues."""
    if initial_delay_seconds:
        await sleep(initial_delay_seconds)
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        cycles += 1
        try:
            result = await runner_factory().run_sweep()
            logger.debug("Notification worker cycle %s: %s created", cycles, result.total)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Notification worker cycle %s failed", cycles)
        if max_cycles is not None and cycles >= max_cycles:
            break
        await sleep(interval_seconds)


class NotificationWorker:
    """Owns the background task running worker_loop."""

    def __init__(self, runner_factory: Callable[[], NotificationRunner], interval_seconds: float, initial_delay_seconds: float = 0):
        self.runner_factory = runner_factory
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(
            worker_loop(self.runner_factory, self.interval_seconds, self.initial_delay_seconds)
        )
        logger.info("Notification worker started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Notification worker stopped")
