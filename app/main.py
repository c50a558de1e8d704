"""Entry point for the FastAPI-powered catalog import service."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .models import EnqueueRequest
from .services.importer import HttpItemImporter
from .services.queue_store import QueueStore
from .services.scheduler import ConcurrencyPolicy, ImportScheduler
from .services.worker import ImportWorker

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.importer_url is None:
        raise RuntimeError("IMPORTER_URL must be configured to import catalogs")

    exit_stack = AsyncExitStack()
    importer_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.importer_timeout_seconds, connect=10.0),
        )
    )
    store = QueueStore(settings.queue_file)
    importer = HttpItemImporter(importer_client, str(settings.importer_url))
    scheduler = ImportScheduler(
        store, importer, ConcurrencyPolicy.from_settings(settings)
    )
    worker = ImportWorker(
        scheduler, poll_interval_seconds=settings.import_poll_interval_seconds
    )

    app.state.queue_store = store
    app.state.import_worker = worker
    await worker.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await worker.stop()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Resumable, rate-limited catalog imports into a media library",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_queue_store(app: FastAPI) -> QueueStore:
    store = getattr(app.state, "queue_store", None)
    if not isinstance(store, QueueStore):
        raise RuntimeError("Import queue not initialised")
    return store


def get_import_worker(app: FastAPI) -> ImportWorker:
    worker = getattr(app.state, "import_worker", None)
    if not isinstance(worker, ImportWorker):
        raise RuntimeError("Import worker not initialised")
    return worker


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/imports")
    async def list_imports() -> dict[str, Any]:
        store = get_queue_store(fastapi_app)
        worker = get_import_worker(fastapi_app)
        return {
            "imports": [
                progress.to_payload() for progress in worker.scheduler.list_progress()
            ],
            "hasPending": store.has_pending,
            "pendingCount": store.pending_count,
            "running": worker.is_running,
            "activeCatalogId": worker.active_catalog_id,
        }

    @fastapi_app.get("/imports/{catalog_id}")
    async def import_progress(catalog_id: str) -> dict[str, Any]:
        worker = get_import_worker(fastapi_app)
        return worker.scheduler.get_progress(catalog_id).to_payload()

    @fastapi_app.post("/imports")
    async def enqueue_import(request: Request) -> JSONResponse:
        store = get_queue_store(fastapi_app)
        worker = get_import_worker(fastapi_app)
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            payload = None
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")

        try:
            body = EnqueueRequest.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400, detail=exc.errors(include_context=False)
            ) from exc

        queued = store.enqueue(
            body.catalog_id,
            body.collection_id,
            body.item_ids,
            body.media_type,
            body.catalog_name,
        )
        if queued is None:
            return JSONResponse({"queued": False, "catalogId": body.catalog_id})

        worker.kick()
        progress = worker.scheduler.get_progress(queued.catalog_id).to_payload()
        return JSONResponse({"queued": True, **progress}, status_code=202)

    @fastapi_app.delete("/imports/{catalog_id}")
    async def cancel_import(catalog_id: str) -> dict[str, Any]:
        store = get_queue_store(fastapi_app)
        if not store.cancel(catalog_id):
            raise HTTPException(
                status_code=404, detail=f"Catalog {catalog_id} is not queued"
            )
        return {"cancelled": True, "catalogId": catalog_id}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
