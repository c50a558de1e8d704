"""Item importer boundary and its HTTP-backed implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


@runtime_checkable
class ItemImporter(Protocol):
    """Capability that imports one external item into a library collection.

    Implementations must tolerate concurrent calls up to the configured movie
    parallelism. Each call is a single attempt; ``True`` means the item is now
    part of the collection.
    """

    async def import_item(self, item_id: str, collection_id: str) -> bool:
        ...


class HttpItemImporter:
    """Import items by calling a library service's HTTP import endpoint."""

    _IMPORT_PATH = "/items/import"
    _THROTTLED_STATUSES = frozenset({402, 429})

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        *,
        max_attempts: int = 2,
        throttle_backoff_seconds: float = 1.0,
    ) -> None:
        self._client = http_client
        self._base_url = self._normalize_base_url(base_url)
        self._max_attempts = max(1, max_attempts)
        self._throttle_backoff = throttle_backoff_seconds

    @property
    def base_url(self) -> str:
        return self._base_url

    async def import_item(self, item_id: str, collection_id: str) -> bool:
        payload: dict[str, str] = {"itemId": item_id, "collectionId": collection_id}
        url = f"{self._base_url}{self._IMPORT_PATH}"

        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._client.post(url, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status in self._THROTTLED_STATUSES and attempt < self._max_attempts:
                    await asyncio.sleep(self._throttle_backoff * attempt)
                    continue
                logger.warning(
                    "Library import of %s into %s rejected with HTTP %s",
                    item_id,
                    collection_id,
                    status,
                )
                return False
            except httpx.HTTPError as exc:
                logger.warning(
                    "Library import of %s into %s failed: %s",
                    item_id,
                    collection_id,
                    exc,
                )
                return False
            return self._parse_success(response)
        return False

    @staticmethod
    def _parse_success(response: httpx.Response) -> bool:
        if response.status_code == 204 or not response.content:
            return True
        try:
            body = response.json()
        except ValueError:
            return True
        if isinstance(body, dict) and "success" in body:
            return bool(body["success"])
        return True

    @staticmethod
    def _normalize_base_url(value: str) -> str:
        normalized = (value or "").strip().rstrip("/")
        if not normalized:
            raise ValueError("Importer base URL must not be empty")
        return normalized
