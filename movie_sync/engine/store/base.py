"""Batch persister Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from ..records import NormalizedRecord


class BaseStore(ABC):
    """Uniform upsert-by-identifier contract over the shared store."""

    def __init__(self, category_column: bool = False) -> None:
        self.category_column = category_column

    def upsert(self, records: Sequence[NormalizedRecord]) -> int:
        """Write ``records`` as one all-or-nothing batch and return the row count.

        Rows sharing an identifier within the batch collapse to the last one so
        the store never sees a conflict inside a single statement. Raises
        ``PersistError`` when the store applies nothing.
        """

        if not records:
            return 0
        rows = self._rows(records)
        self._write(rows)
        return len(rows)

    def _rows(self, records: Sequence[NormalizedRecord]) -> list[dict[str, Any]]:
        collapsed: dict[int, dict[str, Any]] = {}
        for record in records:
            collapsed[record.id] = record.to_row(include_category=self.category_column)
        return list(collapsed.values())

    @abstractmethod
    def _write(self, rows: list[dict[str, Any]]) -> None:
        """Apply ``rows`` atomically or raise ``PersistError``."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "BaseStore":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["BaseStore"]
