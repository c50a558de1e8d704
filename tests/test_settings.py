"""Configuration settings behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from app.config import Settings


def test_defaults_match_conservative_import_policy() -> None:
    """Defaults keep movie imports narrow and series paced."""

    settings = Settings(_env_file=None)

    assert settings.max_parallel_movie_imports == 2
    assert settings.series_import_delay_ms == 2_000
    assert settings.series_import_delay_seconds == 2.0
    assert settings.catalog_import_timeout_seconds == 300.0
    assert settings.queue_file == Path("./import_queue.json")
    assert settings.importer_url is None


def test_zero_timeout_disables_catalog_deadline() -> None:
    settings = Settings(_env_file=None, CATALOG_IMPORT_TIMEOUT=0)

    assert settings.catalog_import_timeout_seconds is None


def test_blank_importer_url_is_unset() -> None:
    settings = Settings(_env_file=None, IMPORTER_URL="  ")

    assert settings.importer_url is None


def test_importer_url_legacy_alias() -> None:
    settings = Settings(_env_file=None, LIBRARY_IMPORT_URL="https://library.example.com")

    assert str(settings.importer_url) == "https://library.example.com/"


def test_parallelism_must_be_positive() -> None:
    """Movie parallelism below one is rejected."""

    with pytest.raises(ValidationError):
        Settings(_env_file=None, MAX_PARALLEL_MOVIE_IMPORTS=0)


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SERIES_IMPORT_DELAY_MS", "250")
    monkeypatch.setenv("QUEUE_FILE", "/tmp/queue.json")

    settings = Settings(_env_file=None)

    assert settings.series_import_delay_seconds == 0.25
    assert settings.queue_file == Path("/tmp/queue.json")
