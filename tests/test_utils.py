import pytest

from app.utils import normalize_item_ids, normalize_media_type, utcnow


def test_normalize_item_ids_keeps_first_seen_order():
    assert normalize_item_ids(["tt2", " tt1", None, "", "tt2", 7]) == ["tt2", "tt1", "7"]


def test_normalize_media_type_aliases():
    assert normalize_media_type("Movie") == "movie"
    assert normalize_media_type("tv") == "series"


def test_normalize_media_type_rejects_unknown():
    with pytest.raises(ValueError, match="Unsupported media type"):
        normalize_media_type("audiobook")


def test_utcnow_is_timezone_aware():
    assert utcnow().tzinfo is not None
