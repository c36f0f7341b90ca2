"""Batch persister SPI, implementations and factory."""

from __future__ import annotations

from pathlib import Path

from ...config import StoreBackend, StoreConfig
from ...errors import ConfigurationError
from .base import BaseStore
from .sqlite_store import SQLiteStore
from .supabase_store import SupabaseStore


def build_store(config: StoreConfig, base_dir: Path) -> BaseStore:
    """Instantiate the configured backend; relative SQLite paths resolve against ``base_dir``."""

    if config.backend is StoreBackend.SUPABASE:
        if not config.supabase_url or not config.supabase_key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set")
        return SupabaseStore(
            config.supabase_url,
            config.supabase_key,
            table=config.table,
            category_column=config.category_column,
            timeout=config.timeout_seconds,
        )
    if config.backend is StoreBackend.SQLITE:
        return SQLiteStore(
            config.resolved_sqlite_path(base_dir),
            table=config.table,
            category_column=config.category_column,
        )
    raise ConfigurationError(f"Unsupported store backend: {config.backend}")


__all__ = ["BaseStore", "SQLiteStore", "SupabaseStore", "build_store"]
