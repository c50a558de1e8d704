"""Utility helpers for the catalog import service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable


MEDIA_TYPE_ALIASES: dict[str, str] = {
    "movie": "movie",
    "movies": "movie",
    "film": "movie",
    "series": "series",
    "tv": "series",
    "show": "series",
    "shows": "series",
}


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def normalize_item_ids(item_ids: Iterable[object]) -> list[str]:
    """Strip identifiers and drop blanks and duplicates, keeping first-seen order."""

    cleaned: list[str] = []
    seen: set[str] = set()
    for raw in item_ids:
        if raw is None:
            continue
        value = str(raw).strip()
        if not value or value in seen:
            continue
        seen.add(value)
        cleaned.append(value)
    return cleaned


def normalize_media_type(value: object) -> str:
    """Map loose media type labels onto ``movie`` or ``series``."""

    key = str(value or "").strip().lower()
    try:
        return MEDIA_TYPE_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unsupported media type: {value!r}") from None
