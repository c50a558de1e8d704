"""Drain queued catalogs through the item importer under a concurrency policy."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from ..config import Settings
from ..models import ImportProgress, MediaType, QueuedCatalog
from .importer import ItemImporter
from .queue_store import QueueStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ConcurrencyPolicy:
    """Throttling rules applied per media type.

    Movies run on a bounded worker pool. Series run one at a time with a pause
    between items because each series fans out into many episode lookups.
    """

    max_parallel_movie_imports: int = 2
    series_import_delay_seconds: float = 2.0
    catalog_import_timeout_seconds: float | None = 300.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConcurrencyPolicy":
        return cls(
            max_parallel_movie_imports=settings.max_parallel_movie_imports,
            series_import_delay_seconds=settings.series_import_delay_seconds,
            catalog_import_timeout_seconds=settings.catalog_import_timeout_seconds,
        )

    def parallelism_for(self, media_type: MediaType) -> int:
        if media_type == "series":
            return 1
        return max(1, self.max_parallel_movie_imports)

    def delay_for(self, media_type: MediaType) -> float:
        if media_type == "series":
            return max(0.0, self.series_import_delay_seconds)
        return 0.0


@dataclass(slots=True)
class ImportRunResult:
    """Summary of one scheduler invocation."""

    catalog_id: str
    media_type: MediaType
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    completed: bool = False
    timed_out: bool = False
    abandoned: bool = False


@dataclass(slots=True)
class _CatalogRun:
    catalog_id: str
    collection_id: str
    catalog_name: str
    media_type: MediaType
    queued_at: datetime
    processed: int
    success: int
    failed: int
    deadline: float | None
    result: ImportRunResult
    stopped: bool = False

    @classmethod
    def start(cls, queue: QueuedCatalog, deadline: float | None) -> "_CatalogRun":
        return cls(
            catalog_id=queue.catalog_id,
            collection_id=queue.collection_id,
            catalog_name=queue.display_name,
            media_type=queue.media_type,
            queued_at=queue.queued_at,
            processed=queue.processed_count,
            success=queue.success_count,
            failed=queue.failed_count,
            deadline=deadline,
            result=ImportRunResult(
                catalog_id=queue.catalog_id, media_type=queue.media_type
            ),
        )


class ImportScheduler:
    """Processes one queued catalog per invocation.

    Callers must not run :meth:`process_next` concurrently; the
    :class:`~app.services.worker.ImportWorker` serialises invocations.
    """

    _RECENT_LIMIT = 100

    def __init__(
        self,
        store: QueueStore,
        importer: ItemImporter,
        policy: ConcurrencyPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._importer = importer
        self._policy = policy or ConcurrencyPolicy()
        self._sleep = sleep
        self._active: _CatalogRun | None = None
        self._recent: OrderedDict[str, ImportProgress] = OrderedDict()

    @property
    def policy(self) -> ConcurrencyPolicy:
        return self._policy

    @property
    def active_catalog_id(self) -> str | None:
        return self._active.catalog_id if self._active is not None else None

    def get_progress(self, catalog_id: str) -> ImportProgress:
        """Return the operator-facing progress for a catalog."""

        queue = self._store.get_queue(catalog_id)
        if queue is not None:
            status = "running" if catalog_id == self.active_catalog_id else "queued"
            return ImportProgress.from_queue(queue, status=status)
        finished = self._recent.get(catalog_id)
        if finished is not None:
            return finished.model_copy()
        return ImportProgress.idle(catalog_id)

    def list_progress(self) -> list[ImportProgress]:
        active_id = self.active_catalog_id
        return [
            ImportProgress.from_queue(
                queue,
                status="running" if queue.catalog_id == active_id else "queued",
            )
            for queue in self._store.get_all_queues()
        ]

    async def process_next(self) -> ImportRunResult | None:
        """Import the oldest queued catalog. Returns ``None`` when idle."""

        queue = self._store.peek_next()
        if queue is None or not queue.pending_ids:
            return None

        loop = asyncio.get_running_loop()
        timeout = self._policy.catalog_import_timeout_seconds
        deadline = loop.time() + timeout if timeout else None
        run = _CatalogRun.start(queue, deadline)
        pending = list(queue.pending_ids)
        parallelism = self._policy.parallelism_for(run.media_type)

        if run.media_type == "series":
            logger.info(
                "Processing %d series for '%s' sequentially with %.1fs between items",
                len(pending),
                run.catalog_name,
                self._policy.delay_for(run.media_type),
            )
        else:
            logger.info(
                "Processing %d movies for '%s' with %d parallel imports",
                len(pending),
                run.catalog_name,
                parallelism,
            )

        self._active = run
        try:
            if parallelism == 1:
                await self._drain_sequential(run, pending)
            else:
                await self._drain_parallel(run, pending, parallelism)
        finally:
            self._active = None

        result = run.result
        result.completed = (
            not result.abandoned and self._store.get_queue(run.catalog_id) is None
        )
        if result.completed:
            self._remember(run)
        logger.info(
            "Import pass for '%s' finished: %d attempted, %d succeeded, %d failed%s",
            run.catalog_name,
            result.attempted,
            result.succeeded,
            result.failed,
            " (timed out, will resume)" if result.timed_out else "",
        )
        return result

    async def _drain_sequential(self, run: _CatalogRun, pending: list[str]) -> None:
        delay = self._policy.delay_for(run.media_type)
        for index, item_id in enumerate(pending):
            if index and delay:
                if not self._may_start(run):
                    return
                logger.debug("Waiting %.1fs before next %s import", delay, run.media_type)
                await self._sleep(delay)
            if not self._may_start(run):
                return
            succeeded = await self._attempt(run, item_id)
            self._checkpoint(run, item_id, succeeded)

    async def _drain_parallel(
        self, run: _CatalogRun, pending: list[str], parallelism: int
    ) -> None:
        remaining = iter(pending)

        async def _worker() -> None:
            for item_id in remaining:
                if not self._may_start(run):
                    return
                succeeded = await self._attempt(run, item_id)
                self._checkpoint(run, item_id, succeeded)

        workers = [
            asyncio.create_task(_worker())
            for _ in range(min(parallelism, len(pending)))
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

    def _may_start(self, run: _CatalogRun) -> bool:
        if run.stopped:
            return False
        if run.deadline is not None and asyncio.get_running_loop().time() >= run.deadline:
            if not run.result.timed_out:
                logger.warning(
                    "Import of '%s' hit the catalog timeout; remaining items stay queued",
                    run.catalog_name,
                )
            run.result.timed_out = True
            run.stopped = True
            return False
        if not self._store.is_current(run.catalog_id, run.queued_at):
            self._abandon(run)
            return False
        return True

    async def _attempt(self, run: _CatalogRun, item_id: str) -> bool:
        run.result.attempted += 1
        try:
            succeeded = bool(
                await self._importer.import_item(item_id, run.collection_id)
            )
        except Exception:
            logger.warning(
                "Import of %s for '%s' raised an error",
                item_id,
                run.catalog_name,
                exc_info=True,
            )
            return False
        if not succeeded:
            logger.warning("Failed to import %s for '%s'", item_id, run.catalog_name)
        return succeeded

    def _checkpoint(self, run: _CatalogRun, item_id: str, succeeded: bool) -> None:
        if succeeded:
            run.result.succeeded += 1
        else:
            run.result.failed += 1

        if not self._store.is_current(run.catalog_id, run.queued_at):
            # Cancelled or re-enqueued while this item was in flight.
            self._abandon(run)
            return

        run.processed += 1
        if succeeded:
            run.success += 1
        else:
            run.failed += 1
        self._store.record_item(
            run.catalog_id, item_id, run.processed, run.success, run.failed
        )

    def _abandon(self, run: _CatalogRun) -> None:
        if not run.stopped:
            logger.info(
                "Catalog '%s' changed during import; abandoning this pass",
                run.catalog_name,
            )
        run.stopped = True
        run.result.abandoned = True

    def _remember(self, run: _CatalogRun) -> None:
        self._recent[run.catalog_id] = ImportProgress(
            catalog_id=run.catalog_id,
            catalog_name=run.catalog_name,
            media_type=run.media_type,
            status="complete",
            total=run.processed,
            processed=run.processed,
            success=run.success,
            failed=run.failed,
            queued_at=run.queued_at,
        )
        self._recent.move_to_end(run.catalog_id)
        while len(self._recent) > self._RECENT_LIMIT:
            self._recent.popitem(last=False)
