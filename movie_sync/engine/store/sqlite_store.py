"""Upsert normalized records into a local SQLite table."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any

from ...errors import PersistError
from ...infra.storage import SQLiteManager
from .base import BaseStore


class SQLiteStore(BaseStore):
    """Persist rows with ``INSERT ... ON CONFLICT(id) DO UPDATE`` in one transaction."""

    def __init__(
        self,
        path: Path,
        table: str = "movies",
        category_column: bool = False,
        manager: SQLiteManager | None = None,
    ) -> None:
        super().__init__(category_column=category_column)
        self.path = path
        self.table = table
        self.manager = manager or SQLiteManager()
        self.conn = self.manager.connect(path)
        self.manager.ensure_movies_table(self.conn, table, category_column=category_column)
        self._lock = Lock()

    def _write(self, rows: list[dict[str, Any]]) -> None:
        columns = list(rows[0].keys())
        placeholders = ", ".join(f":{name}" for name in columns)
        assignments = ", ".join(f"{name} = excluded.{name}" for name in columns if name != "id")
        statement = (
            f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {assignments}"
        )
        try:
            with self._lock, self.conn:
                self.conn.executemany(statement, rows)
        except sqlite3.Error as exc:
            raise PersistError(str(exc), batch_size=len(rows)) from exc

    def count(self) -> int:
        row = self.conn.execute(f"SELECT count(*) FROM {self.table}").fetchone()
        return int(row[0])

    def close(self) -> None:
        self.manager.close(self.path)


__all__ = ["SQLiteStore"]
