"""File-backed persistent queue of pending catalog imports."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from pydantic import TypeAdapter, ValidationError

from ..models import QueuedCatalog
from ..utils import normalize_item_ids, normalize_media_type, utcnow

logger = logging.getLogger(__name__)

_QUEUE_ADAPTER = TypeAdapter(list[QueuedCatalog])


class QueueStore:
    """Durable mapping of catalog id to :class:`QueuedCatalog`.

    The in-memory mapping is authoritative while the process runs. Every
    mutation rewrites the whole queue file so a restart resumes from the last
    successful write. Write failures are logged and never undo the in-memory
    change; an unreadable file at startup yields an empty queue.
    """

    def __init__(
        self,
        queue_file: str | os.PathLike[str],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._path = Path(queue_file)
        self._clock = clock
        self._lock = threading.RLock()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("Unable to create queue directory %s", self._path.parent)
        self._queues: dict[str, QueuedCatalog] = self._load()
        logger.info(
            "Import queue initialised with %d pending catalogs from %s",
            len(self._queues),
            self._path,
        )

    @property
    def path(self) -> Path:
        return self._path

    def enqueue(
        self,
        catalog_id: str,
        collection_id: object,
        item_ids: Iterable[object],
        media_type: str,
        catalog_name: str,
    ) -> QueuedCatalog | None:
        """Queue a catalog, replacing any existing entry and its progress."""

        pending = normalize_item_ids(item_ids)
        if not pending:
            logger.debug("No items to queue for catalog %s", catalog_id)
            return None

        queue = QueuedCatalog(
            catalog_id=catalog_id,
            collection_id=collection_id,
            pending_ids=pending,
            media_type=normalize_media_type(media_type),
            catalog_name=catalog_name or "",
            queued_at=self._clock(),
        )
        with self._lock:
            self._queues.pop(catalog_id, None)
            self._queues[catalog_id] = queue
            self._save()
            snapshot = queue.model_copy(deep=True)

        logger.info(
            "Queued %d %s items for catalog '%s' (%s)",
            len(pending),
            queue.media_type,
            queue.display_name,
            catalog_id,
        )
        return snapshot

    def peek_next(self) -> QueuedCatalog | None:
        """Return the oldest queued catalog that still has pending items."""

        with self._lock:
            candidates = [queue for queue in self._queues.values() if queue.pending_ids]
            if not candidates:
                return None
            oldest = min(candidates, key=lambda queue: queue.queued_at)
            return oldest.model_copy(deep=True)

    def get_queue(self, catalog_id: str) -> QueuedCatalog | None:
        with self._lock:
            queue = self._queues.get(catalog_id)
            return queue.model_copy(deep=True) if queue is not None else None

    def get_all_queues(self) -> list[QueuedCatalog]:
        """Return every queued catalog ordered by enqueue time."""

        with self._lock:
            ordered = sorted(self._queues.values(), key=lambda queue: queue.queued_at)
            return [queue.model_copy(deep=True) for queue in ordered]

    def update_progress(
        self,
        catalog_id: str,
        processed_count: int,
        success_count: int,
        failed_count: int,
    ) -> None:
        with self._lock:
            queue = self._queues.get(catalog_id)
            if queue is None:
                return
            queue.processed_count = processed_count
            queue.success_count = success_count
            queue.failed_count = failed_count
            queue.last_updated = self._clock()
            self._save()

    def remove_completed_id(self, catalog_id: str, item_id: str) -> None:
        """Drop a processed identifier, completing the catalog once it empties."""

        with self._lock:
            queue = self._queues.get(catalog_id)
            if queue is None:
                return
            if item_id in queue.pending_ids:
                queue.pending_ids.remove(item_id)
            if not queue.pending_ids:
                self.mark_complete(catalog_id)
            else:
                self._save()

    def record_item(
        self,
        catalog_id: str,
        item_id: str,
        processed_count: int,
        success_count: int,
        failed_count: int,
    ) -> None:
        """Store new counters and drop ``item_id`` with a single write.

        Equivalent to :meth:`update_progress` followed by
        :meth:`remove_completed_id`, without the intermediate file state.
        """

        with self._lock:
            queue = self._queues.get(catalog_id)
            if queue is None:
                return
            queue.processed_count = processed_count
            queue.success_count = success_count
            queue.failed_count = failed_count
            queue.last_updated = self._clock()
            if item_id in queue.pending_ids:
                queue.pending_ids.remove(item_id)
            if not queue.pending_ids:
                self.mark_complete(catalog_id)
            else:
                self._save()

    def is_current(self, catalog_id: str, queued_at: datetime) -> bool:
        """Whether ``catalog_id`` is still queued from the enqueue at ``queued_at``."""

        with self._lock:
            queue = self._queues.get(catalog_id)
            return queue is not None and queue.queued_at == queued_at

    def mark_complete(self, catalog_id: str) -> None:
        """Remove a finished catalog from the queue. Absent ids are ignored."""

        with self._lock:
            removed = self._queues.pop(catalog_id, None)
            if removed is None:
                return
            self._save()

        logger.info(
            "Completed import for catalog '%s' (%s). Success: %d, Failed: %d",
            removed.display_name,
            catalog_id,
            removed.success_count,
            removed.failed_count,
        )

    def cancel(self, catalog_id: str) -> bool:
        """Drop a catalog without finishing it. Returns whether one was removed."""

        with self._lock:
            removed = self._queues.pop(catalog_id, None)
            if removed is None:
                return False
            self._save()

        logger.info(
            "Cancelled import for catalog '%s' (%s) with %d of %d items processed",
            removed.display_name,
            catalog_id,
            removed.processed_count,
            removed.total_count,
        )
        return True

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._queues)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._queues)

    def _load(self) -> dict[str, QueuedCatalog]:
        with self._lock:
            if not self._path.exists():
                return {}
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
                records = _QUEUE_ADAPTER.validate_python(raw or [])
            except (OSError, ValueError, ValidationError):
                logger.warning(
                    "Failed to load import queue from %s, starting fresh",
                    self._path,
                    exc_info=True,
                )
                return {}

            queues: dict[str, QueuedCatalog] = {}
            for record in records:
                if not record.pending_ids:
                    continue
                queues[record.catalog_id] = record
            return queues

    def _save(self) -> None:
        with self._lock:
            payload = [queue.to_storage() for queue in self._queues.values()]
            temp_path = self._path.with_name(f"{self._path.name}.tmp")
            try:
                temp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
                os.replace(temp_path, self._path)
            except (OSError, TypeError, ValueError):
                logger.exception("Failed to save import queue to %s", self._path)
