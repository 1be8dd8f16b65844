"""
FileCleanupService for the Import/Export Orchestrator

Periodically removes files whose history rows have expired.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from ..utils.logger import get_logger, set_log_context


class FileCleanupService:
    """
    Background loop that runs an expired-file sweep on a fixed interval.

    The first sweep runs after ``initial_delay`` seconds; a failing sweep is
    logged and the loop keeps going.
    """

    def __init__(self, sweep: Callable[[], Awaitable[int]],
                 interval: float = 6 * 3600, initial_delay: float = 5 * 60):
        """
        Initialize FileCleanupService.

        Args:
            sweep: Coroutine function performing one sweep; returns files removed
            interval: Seconds between sweeps
            initial_delay: Seconds before the first sweep
        """
        self.sweep = sweep
        self.interval = interval
        self.initial_delay = initial_delay

        self._task: Optional[asyncio.Task] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self.runs = 0

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="file_cleanup")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        """Start the cleanup loop."""
        if self.is_running:
            return
        self.logger.info("Starting FileCleanupService", extra={
            "interval_seconds": self.interval,
            "initial_delay_seconds": self.initial_delay
        })
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(self._cleanup_loop())

    async def stop(self):
        """Stop the cleanup loop."""
        self.logger.info("Stopping FileCleanupService")
        if self._shutdown_event is not None:
            self._shutdown_event.set()

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self.logger.info("FileCleanupService stopped")

    async def _cleanup_loop(self):
        if await self._wait(self.initial_delay):
            return

        while not self._shutdown_event.is_set():
            try:
                removed = await self.sweep()
                self.runs += 1
                self.logger.info("Expired file cleanup finished", extra={"files_removed": removed})
            except asyncio.CancelledError:
                raise
            except Exception:
                self.logger.error("Error in file cleanup loop", exc_info=True)

            if await self._wait(self.interval):
                return

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
