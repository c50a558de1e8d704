"""Pydantic models describing queued catalog imports."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .utils import normalize_media_type, utcnow

MediaType = Literal["movie", "series"]
ImportStatus = Literal["idle", "queued", "running", "complete"]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class QueuedCatalog(BaseModel):
    """A catalog whose items are waiting to be imported into a collection."""

    model_config = ConfigDict(populate_by_name=True)

    catalog_id: str = Field(alias="catalogId", min_length=1)
    collection_id: str = Field(alias="collectionId")
    pending_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("pendingIds", "imdbIds", "pending_ids"),
        serialization_alias="pendingIds",
    )
    media_type: MediaType = Field(default="movie", alias="mediaType")
    catalog_name: str = Field(default="", alias="catalogName")
    queued_at: datetime = Field(default_factory=utcnow, alias="queuedAt")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")
    processed_count: int = Field(default=0, alias="processedCount", ge=0)
    success_count: int = Field(default=0, alias="successCount", ge=0)
    failed_count: int = Field(default=0, alias="failedCount", ge=0)

    @field_validator("collection_id", mode="before")
    @classmethod
    def _stringify_collection_id(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("media_type", mode="before")
    @classmethod
    def _normalize_media_type(cls, value: object) -> str:
        return normalize_media_type(value)

    @field_validator("queued_at", "last_updated", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def total_count(self) -> int:
        """Total items originally queued for this catalog."""

        return self.processed_count + len(self.pending_ids)

    @property
    def display_name(self) -> str:
        return self.catalog_name.strip() or self.catalog_id

    def to_storage(self) -> dict[str, object]:
        """Return the JSON-compatible payload written to the queue file."""

        return self.model_dump(mode="json", by_alias=True)


class ImportProgress(BaseModel):
    """Operator-facing progress snapshot for a single catalog."""

    model_config = ConfigDict(populate_by_name=True)

    catalog_id: str = Field(alias="catalogId")
    catalog_name: str = Field(default="", alias="catalogName")
    media_type: MediaType | None = Field(default=None, alias="mediaType")
    status: ImportStatus = "idle"
    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0
    queued_at: datetime | None = Field(default=None, alias="queuedAt")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return (self.processed * 100) // self.total

    @property
    def is_complete(self) -> bool:
        return self.status == "complete"

    @classmethod
    def idle(cls, catalog_id: str) -> "ImportProgress":
        return cls(catalog_id=catalog_id)

    @classmethod
    def from_queue(
        cls, queue: QueuedCatalog, *, status: ImportStatus = "queued"
    ) -> "ImportProgress":
        return cls(
            catalog_id=queue.catalog_id,
            catalog_name=queue.catalog_name,
            media_type=queue.media_type,
            status=status,
            total=queue.total_count,
            processed=queue.processed_count,
            success=queue.success_count,
            failed=queue.failed_count,
            queued_at=queue.queued_at,
            last_updated=queue.last_updated,
        )

    def to_payload(self) -> dict[str, object]:
        """Return the JSON payload exposed by the status endpoints."""

        payload = self.model_dump(mode="json", by_alias=True)
        payload["percent"] = self.percent
        payload["isComplete"] = self.is_complete
        return payload


class EnqueueRequest(BaseModel):
    """Body accepted by the enqueue endpoint once identifiers are resolved."""

    model_config = ConfigDict(populate_by_name=True)

    catalog_id: str = Field(alias="catalogId", min_length=1)
    collection_id: str = Field(alias="collectionId")
    item_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("itemIds", "imdbIds", "item_ids"),
    )
    media_type: MediaType = Field(default="movie", alias="mediaType")
    catalog_name: str = Field(default="", alias="catalogName")

    @field_validator("collection_id", mode="before")
    @classmethod
    def _stringify_collection_id(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("media_type", mode="before")
    @classmethod
    def _normalize_media_type(cls, value: object) -> str:
        return normalize_media_type(value)
