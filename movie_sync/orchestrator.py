"""Cycle runner wiring together fetching, dedup, persistence and progress."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol, Sequence

import structlog

from .config import CategoryTag, WorkerConfig
from .engine import BaseStore, CycleDeduplicator, NormalizedRecord, PageFetcher, normalize_record
from .engine.fetcher import CategoryPage
from .errors import FetchError, PersistError
from .logging_conf import get_logger
from .scheduler import CancellationToken


@dataclass(slots=True, frozen=True)
class PageProgress:
    """Facts about one processed page."""

    category: str
    page: int
    ceiling: int
    scanned: int
    persisted: int


@dataclass(slots=True)
class CycleSummary:
    """Totals of one synchronization cycle."""

    started_at: datetime
    finished_at: datetime
    scanned: int
    persisted: int
    failed_pages: int
    failed_batches: int
    duration_seconds: float
    cancelled: bool

    def as_dict(self) -> dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "scanned": self.scanned,
            "persisted": self.persisted,
            "failed_pages": self.failed_pages,
            "failed_batches": self.failed_batches,
            "duration_seconds": round(self.duration_seconds, 1),
            "cancelled": self.cancelled,
        }


class CycleObserver(Protocol):
    def page_processed(self, progress: PageProgress) -> None: ...

    def cycle_completed(self, summary: CycleSummary) -> None: ...


@dataclass(slots=True)
class CycleState:
    """Mutable bookkeeping for a single cycle; discarded once it ends."""

    dedup: CycleDeduplicator = field(default_factory=CycleDeduplicator)
    scanned: int = 0
    persisted: int = 0
    failed_pages: int = 0
    failed_batches: int = 0
    ceilings: dict[CategoryTag, int] = field(default_factory=dict)

    def narrow(self, category: CategoryTag, reported_total: int | None) -> int:
        ceiling = self.ceilings[category]
        if reported_total is not None:
            ceiling = min(ceiling, reported_total)
            self.ceilings[category] = ceiling
        return ceiling


class CycleRunner:
    """Walk every category page by page, persisting each page's unseen records."""

    def __init__(
        self,
        fetcher: PageFetcher,
        store: BaseStore,
        categories: Sequence[CategoryTag],
        max_pages: int,
        page_delay_seconds: float = 0.0,
        image_base_url: str | None = None,
        observers: Iterable[CycleObserver] = (),
        logger: structlog.BoundLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        self.fetcher = fetcher
        self.store = store
        self.categories = list(categories)
        self.max_pages = max_pages
        self.page_delay_seconds = page_delay_seconds
        self.image_base_url = image_base_url
        self.observers = list(observers)
        self.logger = logger or get_logger("cycle_runner")
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: WorkerConfig,
        fetcher: PageFetcher,
        store: BaseStore,
        observers: Iterable[CycleObserver] = (),
        logger: structlog.BoundLogger | None = None,
    ) -> "CycleRunner":
        return cls(
            fetcher,
            store,
            config.categories,
            config.schedule.pages_per_category,
            page_delay_seconds=config.schedule.page_delay_seconds,
            image_base_url=config.image_base_url,
            observers=observers,
            logger=logger,
        )

    # ------------------------------------------------------------------
    def run_cycle(self, token: CancellationToken | None = None) -> CycleSummary:
        token = token or CancellationToken()
        state = CycleState()
        started_at = datetime.now(timezone.utc)
        started = self._clock()
        self.logger.info("cycle_start", started_at=started_at.isoformat())

        for category in self.categories:
            if token.cancelled:
                break
            state.ceilings[category] = self.max_pages
            page = 1
            while page <= state.ceilings[category]:
                if token.cancelled:
                    break
                self._process_page(state, category, page)
                if self.page_delay_seconds > 0 and not token.cancelled:
                    token.wait(self.page_delay_seconds)
                page += 1

        summary = CycleSummary(
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            scanned=state.scanned,
            persisted=state.persisted,
            failed_pages=state.failed_pages,
            failed_batches=state.failed_batches,
            duration_seconds=self._clock() - started,
            cancelled=token.cancelled,
        )
        self.logger.info("cycle_complete", **summary.as_dict())
        self._notify("cycle_completed", summary)
        return summary

    def _process_page(self, state: CycleState, category: CategoryTag, page: int) -> None:
        try:
            payload = self.fetcher.fetch_page(category, page)
        except FetchError as exc:
            state.failed_pages += 1
            self.logger.warning(
                "page_fetch_failed", category=category.value, page=page, error=exc.reason
            )
            return

        ceiling = state.narrow(category, payload.total_pages)
        batch = self._admit(state, payload)
        scanned = len(payload.results)
        state.scanned += scanned

        persisted = 0
        try:
            persisted = self.store.upsert(batch)
        except PersistError as exc:
            state.failed_batches += 1
            self.logger.error(
                "batch_persist_failed",
                category=category.value,
                page=page,
                batch_size=len(batch),
                error=exc.reason,
            )
        state.persisted += persisted

        progress = PageProgress(
            category=category.value,
            page=page,
            ceiling=ceiling,
            scanned=scanned,
            persisted=persisted,
        )
        self.logger.info(
            "page_synced",
            category=progress.category,
            page=progress.page,
            ceiling=progress.ceiling,
            scanned=progress.scanned,
            persisted=progress.persisted,
        )
        self._notify("page_processed", progress)

    def _admit(self, state: CycleState, payload: CategoryPage) -> list[NormalizedRecord]:
        batch: list[NormalizedRecord] = []
        for remote in payload.results:
            if not state.dedup.admit(remote.id, payload.category):
                continue
            batch.append(
                normalize_record(
                    remote,
                    category=payload.category,
                    image_base_url=self.image_base_url,
                )
            )
        return batch

    def _notify(self, hook: str, payload: object) -> None:
        for observer in self.observers:
            try:
                getattr(observer, hook)(payload)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning(
                    "observer_failed",
                    observer=type(observer).__name__,
                    hook=hook,
                    error=str(exc),
                )


__all__ = ["CycleObserver", "CycleRunner", "CycleState", "CycleSummary", "PageProgress"]
