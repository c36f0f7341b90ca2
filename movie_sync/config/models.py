"""Pydantic models describing worker configuration."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigurationError

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class CategoryTag(str, Enum):
    """Provider list endpoints mirrored by the worker, in visiting order."""

    POPULAR = "popular"
    TOP_RATED = "top_rated"
    NOW_PLAYING = "now_playing"


class StoreBackend(str, Enum):
    """Store implementations the persister can write to."""

    SUPABASE = "supabase"
    SQLITE = "sqlite"


class ProviderConfig(BaseModel):
    """Remote metadata provider connection settings."""

    api_key: str = ""
    base_url: str = "https://api.themoviedb.org/3"
    language: str = "en-US"
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")


class StoreConfig(BaseModel):
    """Shared store settings; only the fields of the selected backend are used."""

    backend: StoreBackend = StoreBackend.SUPABASE
    supabase_url: str = ""
    supabase_key: str = ""
    table: str = "movies"
    sqlite_path: Path = Field(default=Path("data/movies.db"))
    # When enabled each row carries the category of its first occurrence in a cycle
    category_column: bool = False
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("table")
    @classmethod
    def _validate_table(cls, value: str) -> str:
        if not _TABLE_NAME.match(value):
            raise ValueError(f"Invalid table name: {value!r}")
        return value

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_sqlite_path(self, base_dir: Path) -> Path:
        if not self.sqlite_path.is_absolute():
            return (base_dir / self.sqlite_path).resolve()
        return self.sqlite_path


class ScheduleConfig(BaseModel):
    """Cadence and pacing of synchronization cycles."""

    pages_per_category: int = Field(default=30, ge=1)
    interval_minutes: float = 30.0
    page_delay_ms: int = Field(default=120, ge=0)
    run_once: bool = False
    poll_seconds: float = Field(default=1.0, gt=0)

    @field_validator("interval_minutes", mode="after")
    @classmethod
    def _clamp_interval(cls, value: float) -> float:
        return max(1.0, float(value))

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0

    @property
    def page_delay_seconds(self) -> float:
        return self.page_delay_ms / 1000.0


class WorkerConfig(BaseModel):
    """Complete worker configuration."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    categories: list[CategoryTag] = Field(default_factory=lambda: list(CategoryTag))
    image_base_url: str | None = None

    @model_validator(mode="after")
    def _validate_categories(self) -> "WorkerConfig":
        if not self.categories:
            raise ValueError("At least one category must be configured")
        if len(set(self.categories)) != len(self.categories):
            raise ValueError("Categories must not repeat")
        return self

    def missing_credentials(self) -> list[str]:
        missing: list[str] = []
        if not self.provider.api_key:
            missing.append("TMDB_API_KEY")
        if self.store.backend is StoreBackend.SUPABASE:
            if not self.store.supabase_url:
                missing.append("SUPABASE_URL")
            if not self.store.supabase_key:
                missing.append("SUPABASE_KEY")
        return missing

    def require_credentials(self) -> None:
        """Abort startup when any credential needed by the selected backends is absent."""

        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} must be set")


class EnvironmentOverrides(BaseSettings):
    """Process environment (and optional ``.env`` file) overriding file configuration."""

    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_key: str | None = Field(default=None, alias="SUPABASE_KEY")
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_base_url: str | None = Field(default=None, alias="TMDB_BASE_URL")
    tmdb_language: str | None = Field(default=None, alias="TMDB_LANGUAGE")
    pages_per_category: int | None = Field(default=None, alias="SYNC_PAGES_PER_CATEGORY")
    interval_minutes: float | None = Field(default=None, alias="SYNC_INTERVAL_MINUTES")
    page_delay_ms: int | None = Field(default=None, alias="SYNC_PAGE_DELAY_MS")
    run_once: bool | None = Field(default=None, alias="SYNC_RUN_ONCE")
    store_backend: StoreBackend | None = Field(default=None, alias="SYNC_STORE_BACKEND")
    sqlite_path: Path | None = Field(default=None, alias="SYNC_SQLITE_PATH")
    category_column: bool | None = Field(default=None, alias="SYNC_CATEGORY_COLUMN")
    image_base_url: str | None = Field(default=None, alias="SYNC_IMAGE_BASE_URL")

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    def apply(self, config: WorkerConfig) -> WorkerConfig:
        """Return a validated copy of ``config`` with every set override applied."""

        payload = config.model_dump(mode="python")
        mapping = {
            "supabase_url": ("store", "supabase_url"),
            "supabase_key": ("store", "supabase_key"),
            "store_backend": ("store", "backend"),
            "sqlite_path": ("store", "sqlite_path"),
            "category_column": ("store", "category_column"),
            "tmdb_api_key": ("provider", "api_key"),
            "tmdb_base_url": ("provider", "base_url"),
            "tmdb_language": ("provider", "language"),
            "pages_per_category": ("schedule", "pages_per_category"),
            "interval_minutes": ("schedule", "interval_minutes"),
            "page_delay_ms": ("schedule", "page_delay_ms"),
            "run_once": ("schedule", "run_once"),
        }
        for field_name, (section, key) in mapping.items():
            value = getattr(self, field_name)
            if value is not None:
                payload[section][key] = value
        if self.image_base_url is not None:
            payload["image_base_url"] = self.image_base_url or None
        try:
            return WorkerConfig.model_validate(payload)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid environment override: {exc}") from exc


__all__ = [
    "CategoryTag",
    "EnvironmentOverrides",
    "ProviderConfig",
    "ScheduleConfig",
    "StoreBackend",
    "StoreConfig",
    "WorkerConfig",
]
