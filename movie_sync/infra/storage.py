"""SQLite connection management for the local movie store."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict

MOVIE_COLUMNS = (
    ("id", "INTEGER PRIMARY KEY"),
    ("title", "TEXT NOT NULL"),
    ("overview", "TEXT"),
    ("release_date", "TEXT"),
    ("poster_path", "TEXT"),
    ("backdrop_path", "TEXT"),
    ("vote_average", "REAL"),
)


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
            return self._connections[path]

    def ensure_movies_table(
        self, conn: sqlite3.Connection, table: str, category_column: bool = False
    ) -> None:
        # table is validated as a plain identifier by StoreConfig
        columns = ", ".join(f"{name} {ddl}" for name, ddl in MOVIE_COLUMNS)
        with conn:
            conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({columns})")
            existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
            if category_column and "category" not in existing:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN category TEXT")

    def close(self, path: Path) -> None:
        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()


__all__ = ["MOVIE_COLUMNS", "SQLiteManager"]
