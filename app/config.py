"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Catalog Importer", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    queue_file: Path = Field(
        default=Path("./import_queue.json"), alias="QUEUE_FILE"
    )

    max_parallel_movie_imports: int = Field(
        default=2, alias="MAX_PARALLEL_MOVIE_IMPORTS", ge=1, le=32
    )
    series_import_delay_ms: int = Field(
        default=2_000, alias="SERIES_IMPORT_DELAY_MS", ge=0, le=600_000
    )
    catalog_import_timeout: float = Field(
        default=300, alias="CATALOG_IMPORT_TIMEOUT", ge=0
    )
    import_poll_interval_seconds: float = Field(
        default=60, alias="IMPORT_POLL_INTERVAL", ge=1
    )

    importer_url: HttpUrl | None = Field(
        default=None,
        alias="IMPORTER_URL",
        validation_alias=AliasChoices("IMPORTER_URL", "LIBRARY_IMPORT_URL"),
    )
    importer_timeout_seconds: float = Field(
        default=120, alias="IMPORTER_TIMEOUT", gt=0
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("importer_url", mode="before")
    @classmethod
    def _blank_importer_url(cls, value: object) -> object:
        """Treat blank importer URLs as unset."""

        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def series_import_delay_seconds(self) -> float:
        """Return the series pacing delay expressed in seconds."""

        return self.series_import_delay_ms / 1000

    @property
    def catalog_import_timeout_seconds(self) -> float | None:
        """Return the drain timeout, or ``None`` when it is disabled."""

        if self.catalog_import_timeout <= 0:
            return None
        return float(self.catalog_import_timeout)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
