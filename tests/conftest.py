"""Shared fixtures: isolated home directory, fake provider, spy store, recording logger."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from movie_sync.config import CategoryTag, ProviderConfig, ScheduleConfig, StoreConfig, WorkerConfig
from movie_sync.engine import BaseStore, NormalizedRecord, PageFetcher
from movie_sync.errors import PersistError

SYNC_ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "TMDB_API_KEY",
    "TMDB_BASE_URL",
    "TMDB_LANGUAGE",
    "SYNC_PAGES_PER_CATEGORY",
    "SYNC_INTERVAL_MINUTES",
    "SYNC_PAGE_DELAY_MS",
    "SYNC_RUN_ONCE",
    "SYNC_STORE_BACKEND",
    "SYNC_SQLITE_PATH",
    "SYNC_CATEGORY_COLUMN",
    "SYNC_IMAGE_BASE_URL",
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in SYNC_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("MOVIE_SYNC_HOME", str(home))
    return home


class RecordingLogger:
    """Minimal stand-in for a structlog bound logger."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def bind(self, **_kwargs: Any) -> "RecordingLogger":
        return self

    def _record(self, level: str, event: str, **kwargs: Any) -> None:
        self.events.append((level, event, kwargs))

    def debug(self, event: str, **kwargs: Any) -> None:
        self._record("debug", event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._record("warning", event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._record("error", event, **kwargs)

    def named(self, event: str) -> list[dict[str, Any]]:
        return [kwargs for _level, name, kwargs in self.events if name == event]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


def movie(record_id: int, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": record_id,
        "title": f"Movie {record_id}",
        "overview": f"Overview {record_id}",
        "release_date": "2024-05-01",
        "poster_path": f"/poster-{record_id}.jpg",
        "backdrop_path": f"/backdrop-{record_id}.jpg",
        "vote_average": 7.5,
    }
    payload.update(overrides)
    return payload


def page_payload(page: int, total_pages: Any, ids: Iterable[int]) -> dict[str, Any]:
    return {"page": page, "total_pages": total_pages, "results": [movie(i) for i in ids]}


class FakeProvider:
    """Route ``/movie/{category}?page=N`` requests to canned responses."""

    def __init__(self) -> None:
        self.pages: dict[tuple[str, int], httpx.Response | dict[str, Any] | Exception] = {}
        self.requests: list[tuple[str, int]] = []
        self.params: list[dict[str, str]] = []
        self.on_request: Callable[[str, int], None] | None = None

    def add(self, category: str, page: int, total_pages: Any, ids: Iterable[int]) -> None:
        self.pages[(category, page)] = page_payload(page, total_pages, ids)

    def fail(self, category: str, page: int, status: int = 500) -> None:
        self.pages[(category, page)] = httpx.Response(status, json={"status_message": "boom"})

    def raise_error(self, category: str, page: int, error: Exception) -> None:
        self.pages[(category, page)] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        category = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        page = int(request.url.params["page"])
        self.requests.append((category, page))
        self.params.append(dict(request.url.params))
        if self.on_request is not None:
            self.on_request(category, page)
        entry = self.pages.get((category, page))
        if entry is None:
            return httpx.Response(200, json=page_payload(page, 500, []))
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, httpx.Response):
            return entry
        return httpx.Response(200, json=entry)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(api_key="tmdb-key", base_url="https://provider.test/3")


@pytest.fixture
def fetcher(provider: FakeProvider, provider_config: ProviderConfig) -> Iterable[PageFetcher]:
    client = provider.client()
    page_fetcher = PageFetcher(provider_config, client=client)
    yield page_fetcher
    client.close()


class SpyStore(BaseStore):
    """Collect every upsert batch; optionally fail chosen calls."""

    def __init__(self, category_column: bool = False) -> None:
        super().__init__(category_column=category_column)
        self.batches: list[list[NormalizedRecord]] = []
        self.fail_calls: set[int] = set()
        self.calls = 0
        self.closed = False

    def upsert(self, records):
        self.calls += 1
        if self.calls in self.fail_calls:
            raise PersistError("store unavailable", batch_size=len(records))
        self.batches.append(list(records))
        return super().upsert(records)

    def _write(self, rows: list[dict[str, Any]]) -> None:
        return

    def close(self) -> None:
        self.closed = True

    @property
    def persisted_ids(self) -> list[int]:
        return [record.id for batch in self.batches for record in batch]


@pytest.fixture
def spy_store() -> SpyStore:
    return SpyStore()


@pytest.fixture
def worker_config() -> Callable[..., WorkerConfig]:
    def _builder(**schedule_overrides: Any) -> WorkerConfig:
        schedule = {"pages_per_category": 30, "page_delay_ms": 0}
        schedule.update(schedule_overrides)
        return WorkerConfig(
            provider=ProviderConfig(api_key="tmdb-key", base_url="https://provider.test/3"),
            store=StoreConfig(backend="sqlite", sqlite_path="data/movies.db"),
            schedule=ScheduleConfig(**schedule),
            categories=list(CategoryTag),
        )

    return _builder
