"""Background trigger that drains the import queue."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from .scheduler import ImportRunResult, ImportScheduler

logger = logging.getLogger(__name__)


class ImportWorker:
    """Run scheduler invocations one at a time, on a timer or when kicked."""

    def __init__(
        self,
        scheduler: ImportScheduler,
        *,
        poll_interval_seconds: float = 60.0,
    ) -> None:
        self._scheduler = scheduler
        self._poll_interval = poll_interval_seconds
        self._processing_lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def scheduler(self) -> ImportScheduler:
        return self._scheduler

    @property
    def is_running(self) -> bool:
        return self._processing_lock.locked()

    @property
    def active_catalog_id(self) -> str | None:
        return self._scheduler.active_catalog_id

    async def start(self) -> None:
        """Launch the background drain loop."""

        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            self.kick()

    async def stop(self) -> None:
        """Stop the background loop, abandoning any in-flight imports."""

        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def kick(self) -> None:
        """Wake the loop so newly queued work starts without waiting for the timer."""

        self._wake.set()

    async def run_once(self) -> ImportRunResult | None:
        """Process the next queued catalog under the processing lock."""

        async with self._processing_lock:
            return await self._scheduler.process_next()

    async def drain(self) -> list[ImportRunResult]:
        """Process catalogs until the queue is idle or a pass makes no progress."""

        results: list[ImportRunResult] = []
        while True:
            result = await self.run_once()
            if result is None:
                return results
            results.append(result)
            if result.timed_out or result.attempted == 0:
                return results

    async def _loop(self) -> None:
        while True:
            self._wake.clear()
            try:
                await self.drain()
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Catalog import pass failed: %s", exc)
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._poll_interval)
