"""Refresh scheduler -- asyncio loop that re-runs ingestion on a fixed interval.

The first run happens one interval after start(); the startup refresh (if
any) is done by the entrypoint before the server comes up.
"""

from __future__ import annotations

import asyncio
import logging

from engine.ingestion import IngestionOrchestrator

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Periodic trigger for IngestionOrchestrator.refresh().

    Usage:
        scheduler = RefreshScheduler(orchestrator, interval_seconds=300)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        interval_seconds: float = 0,
        limit: int | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._interval = interval_seconds
        self._limit = limit
        self._running = False
        self._task: asyncio.Task | None = None
        self.run_count = 0

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    async def start(self) -> None:
        """Start the refresh loop (no-op when the interval is 0)."""
        if not self.enabled:
            logger.info("Periodic refresh disabled")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Refresh scheduler started (every %gs)", self._interval)

    async def stop(self) -> None:
        """Stop the refresh loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Refresh scheduler stopped")

    async def _loop(self) -> None:
        """Main scheduler loop."""
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                await self._orchestrator.refresh(self._limit)
            except Exception:
                logger.exception("Error in refresh loop")
            self.run_count += 1
