from __future__ import annotations

import json

import httpx
import pytest

from movie_sync.config import CategoryTag
from movie_sync.engine import SupabaseStore
from movie_sync.orchestrator import CycleRunner, CycleSummary, PageProgress
from movie_sync.scheduler import CancellationToken


class CountingToken(CancellationToken):
    """Token whose waits return immediately but are recorded."""

    def __init__(self) -> None:
        super().__init__()
        self.waits: list[float] = []

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        return self.cancelled


class ListObserver:
    def __init__(self) -> None:
        self.pages: list[PageProgress] = []
        self.summaries: list[CycleSummary] = []

    def page_processed(self, progress: PageProgress) -> None:
        self.pages.append(progress)

    def cycle_completed(self, summary: CycleSummary) -> None:
        self.summaries.append(summary)


@pytest.fixture
def make_runner(fetcher, spy_store, recording_logger):
    def _builder(categories=(CategoryTag.POPULAR,), max_pages=30, **kwargs) -> CycleRunner:
        return CycleRunner(
            fetcher,
            spy_store,
            list(categories),
            max_pages,
            logger=recording_logger,
            **kwargs,
        )

    return _builder


def test_reported_total_pages_narrows_the_walk(provider, make_runner):
    for page in (1, 2, 3):
        provider.add("popular", page, 3, [page * 10 + i for i in range(3)])

    summary = make_runner(max_pages=30).run_cycle()

    assert provider.requests == [("popular", 1), ("popular", 2), ("popular", 3)]
    assert summary.scanned == 9
    assert summary.persisted == 9
    assert summary.cancelled is False


def test_configured_maximum_caps_the_walk(provider, make_runner):
    provider.add("popular", 1, 500, [1])

    make_runner(max_pages=2).run_cycle()

    assert provider.requests == [("popular", 1), ("popular", 2)]


def test_categories_are_visited_in_order(provider, make_runner):
    make_runner(categories=list(CategoryTag), max_pages=1).run_cycle()

    assert provider.requests == [("popular", 1), ("top_rated", 1), ("now_playing", 1)]


def test_failed_page_is_logged_and_skipped(provider, make_runner, recording_logger):
    provider.add("popular", 1, 3, [1, 2])
    provider.fail("popular", 2)
    provider.add("popular", 3, 3, [3])

    summary = make_runner().run_cycle()

    assert ("popular", 3) in provider.requests
    assert summary.failed_pages == 1
    assert summary.persisted == 3
    (failure,) = recording_logger.named("page_fetch_failed")
    assert failure["category"] == "popular"
    assert failure["page"] == 2


def test_shared_identifier_is_persisted_once_under_first_category(provider, make_runner, spy_store):
    provider.add("popular", 1, 1, [42, 1])
    provider.add("top_rated", 1, 1, [42, 2])

    summary = make_runner(categories=[CategoryTag.POPULAR, CategoryTag.TOP_RATED]).run_cycle()

    assert sorted(spy_store.persisted_ids) == [1, 2, 42]
    (record,) = [r for batch in spy_store.batches for r in batch if r.id == 42]
    assert record.category == "popular"
    assert summary.scanned == 4
    assert summary.persisted == 3


def test_no_identifier_is_upserted_twice_in_a_cycle(provider, make_runner, spy_store):
    provider.add("popular", 1, 2, [1, 2, 3])
    provider.add("popular", 2, 2, [3, 4, 1])
    provider.add("now_playing", 1, 1, [4, 5])

    summary = make_runner(categories=[CategoryTag.POPULAR, CategoryTag.NOW_PLAYING]).run_cycle()

    ids = spy_store.persisted_ids
    assert len(ids) == len(set(ids))
    assert summary.persisted <= summary.scanned


def test_next_cycle_starts_with_fresh_dedup_state(provider, make_runner, spy_store):
    provider.add("popular", 1, 1, [7])
    runner = make_runner()

    runner.run_cycle()
    runner.run_cycle()

    assert spy_store.persisted_ids == [7, 7]


def test_persist_failure_is_counted_and_cycle_continues(provider, make_runner, spy_store, recording_logger):
    provider.add("popular", 1, 2, [1, 2])
    provider.add("popular", 2, 2, [2, 3])
    spy_store.fail_calls = {1}

    summary = make_runner().run_cycle()

    assert summary.failed_batches == 1
    assert summary.persisted == 1
    assert spy_store.persisted_ids == [3]
    (failure,) = recording_logger.named("batch_persist_failed")
    assert failure["batch_size"] == 2


@pytest.mark.parametrize("bad_total", [None, -4, "many", 2.5, True])
def test_invalid_total_pages_leaves_ceiling_unchanged(provider, make_runner, bad_total):
    provider.add("popular", 1, bad_total, [1])
    provider.add("popular", 2, bad_total, [2])
    provider.add("popular", 3, bad_total, [3])

    make_runner(max_pages=3).run_cycle()

    assert provider.requests == [("popular", 1), ("popular", 2), ("popular", 3)]


def test_empty_category_stops_after_first_page(provider, make_runner, spy_store):
    provider.add("popular", 1, 0, [])

    summary = make_runner(max_pages=30).run_cycle()

    assert provider.requests == [("popular", 1)]
    assert summary.scanned == 0
    assert spy_store.persisted_ids == []


def test_ceiling_never_grows_after_narrowing(provider, make_runner):
    provider.add("popular", 1, 2, [1])
    provider.add("popular", 2, 9, [2])

    make_runner(max_pages=5).run_cycle()

    assert provider.requests == [("popular", 1), ("popular", 2)]


def test_cancellation_stops_before_next_page(provider, make_runner):
    token = CountingToken()
    provider.add("popular", 1, 10, [1])
    provider.add("popular", 2, 10, [2])
    provider.on_request = lambda category, page: token.cancel("SIGTERM") if page == 2 else None

    summary = make_runner(categories=list(CategoryTag)).run_cycle(token)

    assert provider.requests == [("popular", 1), ("popular", 2)]
    assert summary.cancelled is True
    assert summary.persisted == 2


def test_page_delay_paces_requests(provider, make_runner):
    token = CountingToken()
    provider.add("popular", 1, 2, [1])

    make_runner(page_delay_seconds=0.12).run_cycle(token)

    assert token.waits == [0.12, 0.12]


def test_zero_delay_skips_pacing(provider, make_runner):
    token = CountingToken()
    provider.add("popular", 1, 2, [1])

    make_runner(page_delay_seconds=0.0).run_cycle(token)

    assert token.waits == []


def test_observers_receive_progress_and_summary(provider, make_runner):
    observer = ListObserver()
    provider.add("popular", 1, 2, [1, 2])
    provider.add("popular", 2, 2, [2, 3])

    summary = make_runner(observers=[observer]).run_cycle()

    assert [(p.page, p.ceiling, p.scanned, p.persisted) for p in observer.pages] == [
        (1, 2, 2, 2),
        (2, 2, 2, 1),
    ]
    assert observer.summaries == [summary]


def test_failing_observer_does_not_break_cycle(provider, make_runner, recording_logger):
    class Broken:
        def page_processed(self, progress):
            raise RuntimeError("render failed")

        def cycle_completed(self, summary):
            raise RuntimeError("render failed")

    provider.add("popular", 1, 1, [1])

    summary = make_runner(observers=[Broken()]).run_cycle()

    assert summary.persisted == 1
    assert len(recording_logger.named("observer_failed")) == 2


def test_cycle_logs_start_and_completion(provider, make_runner, recording_logger):
    provider.add("popular", 1, 1, [1, 2])

    make_runner().run_cycle()

    assert recording_logger.named("cycle_start")
    (complete,) = recording_logger.named("cycle_complete")
    assert complete["scanned"] == 2
    assert complete["persisted"] == 2
    assert complete["failed_pages"] == 0


def test_image_base_url_is_applied(provider, make_runner, spy_store):
    provider.add("popular", 1, 1, [1])

    make_runner(image_base_url="https://image.tmdb.org/t/p/w500").run_cycle()

    (record,) = spy_store.batches[0]
    assert record.poster_path == "https://image.tmdb.org/t/p/w500/poster-1.jpg"


def test_max_pages_must_be_positive(fetcher, spy_store, recording_logger):
    with pytest.raises(ValueError):
        CycleRunner(fetcher, spy_store, [CategoryTag.POPULAR], 0, logger=recording_logger)


def test_from_config_uses_schedule_settings(fetcher, spy_store, recording_logger, worker_config):
    config = worker_config(pages_per_category=4, page_delay_ms=250)

    runner = CycleRunner.from_config(config, fetcher, spy_store, logger=recording_logger)

    assert runner.max_pages == 4
    assert runner.page_delay_seconds == 0.25
    assert runner.categories == list(CategoryTag)


def test_non_finite_rating_fails_page_not_worker(provider, fetcher, recording_logger):
    provider.pages[("popular", 1)] = httpx.Response(
        200,
        content=b'{"total_pages": 2, "results": [{"id": 1, "title": "t", "vote_average": NaN}]}',
        headers={"Content-Type": "application/json"},
    )
    provider.add("popular", 2, 2, [2])
    posted: list[httpx.Request] = []

    def supabase(request: httpx.Request) -> httpx.Response:
        posted.append(request)
        return httpx.Response(201)

    store = SupabaseStore(
        "https://project.supabase.test",
        "service-key",
        client=httpx.Client(transport=httpx.MockTransport(supabase)),
    )
    runner = CycleRunner(fetcher, store, [CategoryTag.POPULAR], 30, logger=recording_logger)

    summary = runner.run_cycle()

    assert summary.failed_pages == 1
    assert summary.persisted == 1
    assert [row["id"] for row in json.loads(posted[0].content)] == [2]
