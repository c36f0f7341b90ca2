"""Cycle-scoped identifier deduplication."""

from __future__ import annotations

from ..config import CategoryTag


class CycleDeduplicator:
    """Admit each record identifier at most once per synchronization cycle.

    Identifiers map to the category in which they were first admitted so the
    store can attribute a row to a single category when its schema asks for
    one. Nothing is evicted during a cycle; a fresh instance (or ``reset``)
    starts the next one.
    """

    def __init__(self) -> None:
        self._seen: dict[int, CategoryTag | None] = {}

    def admit(self, record_id: int, category: CategoryTag | None = None) -> bool:
        if record_id in self._seen:
            return False
        self._seen[record_id] = category
        return True

    def first_category(self, record_id: int) -> CategoryTag | None:
        return self._seen.get(record_id)

    def reset(self) -> None:
        self._seen.clear()

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)


__all__ = ["CycleDeduplicator"]
