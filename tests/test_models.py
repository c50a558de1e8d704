from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.models import EnqueueRequest, ImportProgress, QueuedCatalog


def test_queued_catalog_storage_uses_camel_case() -> None:
    queue = QueuedCatalog(
        catalog_id="cat",
        collection_id="coll",
        pending_ids=["tt1", "tt2"],
        media_type="series",
        catalog_name="Shows",
        queued_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        processed_count=3,
        success_count=2,
        failed_count=1,
    )

    payload = queue.to_storage()

    assert payload["catalogId"] == "cat"
    assert payload["pendingIds"] == ["tt1", "tt2"]
    assert payload["mediaType"] == "series"
    assert payload["lastUpdated"] is None
    assert payload["processedCount"] == 3
    assert queue.total_count == 5
    assert QueuedCatalog.model_validate(payload) == queue


def test_queued_catalog_accepts_legacy_keys() -> None:
    queue = QueuedCatalog.model_validate(
        {
            "catalogId": "cat",
            "collectionId": None,
            "imdbIds": ["tt1"],
            "mediaType": "TV",
            "queuedAt": "2024-01-01T00:00:00",
        }
    )

    assert queue.pending_ids == ["tt1"]
    assert queue.media_type == "series"
    assert queue.collection_id == ""
    assert queue.queued_at.tzinfo == timezone.utc
    assert queue.display_name == "cat"


def test_queued_catalog_rejects_unknown_media_type() -> None:
    with pytest.raises(ValidationError):
        QueuedCatalog(catalog_id="cat", collection_id="c", media_type="podcast")


def test_progress_percent_and_payload() -> None:
    progress = ImportProgress(
        catalog_id="cat", status="running", total=3, processed=1, success=1
    )

    payload = progress.to_payload()

    assert progress.percent == 33
    assert payload["catalogId"] == "cat"
    assert payload["percent"] == 33
    assert payload["isComplete"] is False


def test_progress_from_queue() -> None:
    queue = QueuedCatalog(
        catalog_id="cat",
        collection_id="c",
        pending_ids=["b"],
        processed_count=1,
        failed_count=1,
    )

    progress = ImportProgress.from_queue(queue)

    assert progress.status == "queued"
    assert (progress.total, progress.processed, progress.failed) == (2, 1, 1)
    assert ImportProgress.idle("other").percent == 0


def test_enqueue_request_aliases() -> None:
    request = EnqueueRequest.model_validate(
        {
            "catalogId": "cat",
            "collectionId": 42,
            "imdbIds": ["tt1"],
            "mediaType": "shows",
        }
    )

    assert request.item_ids == ["tt1"]
    assert request.collection_id == "42"
    assert request.media_type == "series"
    assert request.catalog_name == ""
