from __future__ import annotations

import threading
import time

import pytest

from feed_search.config import CacheConfig
from feed_search.engine.cache import CacheState, CacheStatus, FeedCache
from feed_search.engine.errors import FeedUnavailableError, FetchError, ParseError


def _cache(loader, clock, **overrides) -> FeedCache:
    config = CacheConfig(**{"ttl": 60, "failure_backoff": 0, **overrides})
    return FeedCache(loader, config, clock=clock)


def test_state_transitions(snapshot_factory, fake_clock) -> None:
    state = CacheState(ttl=10)
    assert state.status(fake_clock()) is CacheStatus.EMPTY
    assert state.age(fake_clock()) is None
    state.replace(snapshot_factory(("1", {"name": "x"})), fake_clock())
    assert state.status(fake_clock()) is CacheStatus.FRESH
    fake_clock.advance(10)
    assert state.status(fake_clock()) is CacheStatus.STALE
    assert state.age(fake_clock()) == 10


def test_queries_within_ttl_reuse_snapshot(stub_loader, snapshot_factory, fake_clock) -> None:
    snapshot = snapshot_factory(("1", {"name": "x"}))
    loader = stub_loader([snapshot])
    cache = _cache(loader, fake_clock)
    first = cache.ensure_fresh()
    fake_clock.advance(59)
    second = cache.ensure_fresh()
    assert first is second is snapshot
    assert loader.calls == 1


def test_expired_snapshot_is_replaced(stub_loader, snapshot_factory, fake_clock) -> None:
    old = snapshot_factory(("1", {"name": "old"}))
    new = snapshot_factory(("1", {"name": "new"}))
    loader = stub_loader([old, new])
    cache = _cache(loader, fake_clock)
    assert cache.ensure_fresh() is old
    fake_clock.advance(61)
    assert cache.status() is CacheStatus.STALE
    assert cache.ensure_fresh() is new
    assert cache.status() is CacheStatus.FRESH
    assert loader.calls == 2
    assert cache.state.refresh_count == 2


def test_failed_refresh_serves_stale(stub_loader, snapshot_factory, fake_clock) -> None:
    old = snapshot_factory(("1", {"name": "old"}))
    loader = stub_loader([old, FetchError("down")])
    cache = _cache(loader, fake_clock)
    cache.ensure_fresh()
    fake_clock.advance(120)
    assert cache.ensure_fresh() is old
    assert cache.ensure_fresh() is old
    assert cache.status() is CacheStatus.STALE
    assert isinstance(cache.state.last_error, FetchError)
    assert cache.state.failure_count == 2


def test_failure_backoff_skips_refetch(stub_loader, snapshot_factory, fake_clock) -> None:
    old = snapshot_factory(("1", {"name": "old"}))
    new = snapshot_factory(("1", {"name": "new"}))
    loader = stub_loader([old, ParseError("bad"), new])
    cache = _cache(loader, fake_clock, failure_backoff=30)
    cache.ensure_fresh()
    fake_clock.advance(61)
    assert cache.ensure_fresh() is old
    fake_clock.advance(10)
    assert cache.ensure_fresh() is old
    assert loader.calls == 2
    fake_clock.advance(30)
    assert cache.ensure_fresh() is new
    assert loader.calls == 3
    assert cache.state.last_error is None


def test_empty_cache_failure_raises(stub_loader, snapshot_factory, fake_clock) -> None:
    snapshot = snapshot_factory(("1", {"name": "x"}))
    loader = stub_loader([FetchError("down"), snapshot])
    cache = _cache(loader, fake_clock, failure_backoff=300)
    with pytest.raises(FeedUnavailableError) as excinfo:
        cache.ensure_fresh()
    assert isinstance(excinfo.value.__cause__, FetchError)
    assert cache.status() is CacheStatus.EMPTY
    # nothing to serve, so the next query retries immediately
    assert cache.ensure_fresh() is snapshot


def test_unexpected_loader_crash_is_contained(stub_loader, snapshot_factory, fake_clock) -> None:
    old = snapshot_factory(("1", {"name": "old"}))
    loader = stub_loader([old, RuntimeError("bug")])
    cache = _cache(loader, fake_clock)
    cache.ensure_fresh()
    fake_clock.advance(61)
    assert cache.ensure_fresh() is old


def test_forced_refresh(stub_loader, snapshot_factory, fake_clock) -> None:
    old = snapshot_factory(("1", {"name": "old"}))
    new = snapshot_factory(("1", {"name": "new"}))
    loader = stub_loader([old, new, FetchError("down")])
    cache = _cache(loader, fake_clock)
    cache.ensure_fresh()
    assert cache.refresh() is new
    assert cache.refresh() is new
    assert loader.calls == 3


def test_forced_refresh_without_snapshot_raises(stub_loader, fake_clock) -> None:
    cache = _cache(stub_loader([FetchError("down")]), fake_clock)
    with pytest.raises(FeedUnavailableError):
        cache.refresh()


class _BlockingLoader:
    """Loader that blocks inside ``load`` until released."""

    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls = 0
        self.entered = threading.Event()
        self.release = threading.Event()
        self.source = "https://feeds.example.com/catalogue.xml"

    def load(self):
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=5)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_single_flight_on_empty_cache(snapshot_factory) -> None:
    snapshot = snapshot_factory(("1", {"name": "x"}))
    loader = _BlockingLoader(snapshot)
    cache = FeedCache(loader, CacheConfig(ttl=60))
    results: list = []

    def worker() -> None:
        results.append(cache.ensure_fresh())

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    assert loader.entered.wait(timeout=5)
    time.sleep(0.05)
    loader.release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert loader.calls == 1
    assert len(results) == 5
    assert all(result is snapshot for result in results)


def test_waiters_share_failure_of_inflight_load() -> None:
    loader = _BlockingLoader(FetchError("down"))
    cache = FeedCache(loader, CacheConfig(ttl=60))
    errors: list = []

    def worker() -> None:
        try:
            cache.ensure_fresh()
        except FeedUnavailableError as exc:
            errors.append(exc)

    first = threading.Thread(target=worker)
    first.start()
    assert loader.entered.wait(timeout=5)
    others = [threading.Thread(target=worker) for _ in range(3)]
    for thread in others:
        thread.start()
    time.sleep(0.05)
    loader.release.set()
    for thread in [first, *others]:
        thread.join(timeout=5)

    assert loader.calls == 1
    assert len(errors) == 4


def test_stale_readers_do_not_wait_for_inflight_refresh(snapshot_factory, fake_clock) -> None:
    old = snapshot_factory(("1", {"name": "old"}))
    new = snapshot_factory(("1", {"name": "new"}))
    loader = _BlockingLoader(new)
    cache = FeedCache(loader, CacheConfig(ttl=60), clock=fake_clock)
    cache.state.replace(old, fake_clock())
    fake_clock.advance(61)

    refresher = threading.Thread(target=cache.ensure_fresh)
    refresher.start()
    assert loader.entered.wait(timeout=5)
    assert cache.ensure_fresh() is old
    loader.release.set()
    refresher.join(timeout=5)

    assert loader.calls == 1
    assert cache.ensure_fresh() is new
