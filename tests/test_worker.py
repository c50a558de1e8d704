"""Tests for the background import worker."""

from __future__ import annotations

import asyncio

import pytest

from app.services.queue_store import QueueStore
from app.services.scheduler import ConcurrencyPolicy, ImportScheduler
from app.services.worker import ImportWorker


class GatedImporter:
    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.calls: list[str] = []

    async def import_item(self, item_id: str, collection_id: str) -> bool:
        self.calls.append(item_id)
        await self.gate.wait()
        return True


def _build(tmp_path, importer) -> tuple[QueueStore, ImportWorker]:
    store = QueueStore(tmp_path / "queue.json")
    scheduler = ImportScheduler(
        store,
        importer,
        ConcurrencyPolicy(
            max_parallel_movie_imports=2,
            series_import_delay_seconds=0,
            catalog_import_timeout_seconds=None,
        ),
    )
    return store, ImportWorker(scheduler, poll_interval_seconds=30)


@pytest.mark.anyio("asyncio")
async def test_run_once_serialises_invocations(tmp_path) -> None:
    importer = GatedImporter()
    store, worker = _build(tmp_path, importer)
    store.enqueue("cat", "coll", ["a"], "movie", "Movies")

    first = asyncio.create_task(worker.run_once())
    second = asyncio.create_task(worker.run_once())
    for _ in range(20):
        await asyncio.sleep(0)

    assert worker.is_running
    assert worker.active_catalog_id == "cat"
    assert importer.calls == ["a"]

    importer.gate.set()
    first_result = await first
    second_result = await second

    assert first_result is not None and first_result.completed
    # The second invocation only started after the first finished.
    assert second_result is None
    assert importer.calls == ["a"]
    assert not worker.is_running


@pytest.mark.anyio("asyncio")
async def test_drain_processes_all_catalogs(tmp_path) -> None:
    importer = GatedImporter()
    importer.gate.set()
    store, worker = _build(tmp_path, importer)
    store.enqueue("one", "coll", ["a", "b"], "movie", "One")
    store.enqueue("two", "coll", ["c"], "series", "Two")

    results = await worker.drain()

    assert [result.catalog_id for result in results] == ["one", "two"]
    assert not store.has_pending


@pytest.mark.anyio("asyncio")
async def test_kick_wakes_background_loop(tmp_path) -> None:
    importer = GatedImporter()
    importer.gate.set()
    store, worker = _build(tmp_path, importer)
    await worker.start()
    try:
        for _ in range(20):
            await asyncio.sleep(0)
        store.enqueue("cat", "coll", ["a", "b"], "movie", "Movies")
        worker.kick()
        for _ in range(100):
            if not store.has_pending:
                break
            await asyncio.sleep(0.005)
    finally:
        await worker.stop()

    assert not store.has_pending
    assert sorted(importer.calls) == ["a", "b"]


@pytest.mark.anyio("asyncio")
async def test_stop_leaves_in_flight_item_queued(tmp_path) -> None:
    importer = GatedImporter()
    store, worker = _build(tmp_path, importer)
    store.enqueue("cat", "coll", ["a"], "series", "Shows")
    await worker.start()
    for _ in range(100):
        if importer.calls:
            break
        await asyncio.sleep(0.001)

    await worker.stop()

    queue = store.get_queue("cat")
    assert queue is not None
    assert queue.pending_ids == ["a"]
    assert queue.processed_count == 0
