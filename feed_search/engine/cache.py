"""Snapshot cache with time-to-live, single-flight refresh and stale serving."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable

import structlog

from ..config import CacheConfig
from .errors import FeedUnavailableError, LoaderError
from .loader import FeedLoader
from .models import Snapshot


class CacheStatus(str, Enum):
    """Lifecycle states of the cached snapshot."""

    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    snapshot: Snapshot
    loaded_at: float


class CacheState:
    """At most one live snapshot plus the bookkeeping needed to judge its age.

    Times are values of the owning cache's monotonic clock. The snapshot and
    its load time are swapped as a single ``CacheEntry`` so readers never
    observe a half-updated state.
    """

    def __init__(self, ttl: float) -> None:
        self.ttl = ttl
        self._entry: CacheEntry | None = None
        self.last_error: Exception | None = None
        self.last_failure_at: float | None = None
        self.refresh_count = 0
        self.failure_count = 0

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    @property
    def snapshot(self) -> Snapshot | None:
        entry = self._entry
        return entry.snapshot if entry else None

    def age(self, now: float) -> float | None:
        entry = self._entry
        if entry is None:
            return None
        return max(0.0, now - entry.loaded_at)

    def status(self, now: float) -> CacheStatus:
        age = self.age(now)
        if age is None:
            return CacheStatus.EMPTY
        return CacheStatus.FRESH if age < self.ttl else CacheStatus.STALE

    def replace(self, snapshot: Snapshot, now: float) -> None:
        self._entry = CacheEntry(snapshot=snapshot, loaded_at=now)
        self.refresh_count += 1
        self.last_error = None
        self.last_failure_at = None

    def record_failure(self, error: Exception, now: float) -> None:
        self.last_error = error
        self.last_failure_at = now
        self.failure_count += 1


class FeedCache:
    """Own a ``CacheState`` and keep it populated through a ``FeedLoader``."""

    def __init__(
        self,
        loader: FeedLoader,
        config: CacheConfig,
        state: CacheState | None = None,
        clock: Callable[[], float] = time.monotonic,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.loader = loader
        self.config = config
        self.state = state or CacheState(config.ttl)
        self.logger = logger or structlog.get_logger("feed_search.cache")
        self._clock = clock
        self._refresh_lock = Lock()

    def now(self) -> float:
        return self._clock()

    def status(self) -> CacheStatus:
        return self.state.status(self._clock())

    def ensure_fresh(self) -> Snapshot:
        """Return a usable snapshot, loading or refreshing it when needed."""

        now = self._clock()
        entry = self.state.entry
        if entry is not None:
            if self.state.status(now) is CacheStatus.FRESH:
                return entry.snapshot
            if self._in_backoff(now):
                return entry.snapshot
            if not self._refresh_lock.acquire(blocking=False):
                self.logger.debug("refresh_in_flight_serving_current")
                return entry.snapshot
            try:
                return self._refresh_locked(force=False, failures_seen=self.state.failure_count)
            finally:
                self._refresh_lock.release()

        failures_seen = self.state.failure_count
        with self._refresh_lock:
            return self._refresh_locked(force=False, failures_seen=failures_seen)

    def refresh(self) -> Snapshot:
        """Force a load regardless of age; stale data is kept if it fails."""

        with self._refresh_lock:
            return self._refresh_locked(force=True, failures_seen=self.state.failure_count)

    def _in_backoff(self, now: float) -> bool:
        failed_at = self.state.last_failure_at
        if failed_at is None or self.config.failure_backoff <= 0:
            return False
        return now - failed_at < self.config.failure_backoff

    def _refresh_locked(self, *, force: bool, failures_seen: int) -> Snapshot:
        state = self.state
        entry = state.entry
        if not force:
            now = self._clock()
            if entry is not None and (
                state.status(now) is CacheStatus.FRESH or self._in_backoff(now)
            ):
                return entry.snapshot
            if entry is None and state.failure_count > failures_seen:
                # the load we waited for has just failed
                raise FeedUnavailableError(str(state.last_error)) from state.last_error

        started = self._clock()
        try:
            snapshot = self.loader.load()
        except Exception as exc:  # noqa: BLE001
            state.record_failure(exc, self._clock())
            if not isinstance(exc, LoaderError):
                self.logger.error("refresh_crashed", error=repr(exc), exc_info=True)
            if entry is not None:
                self.logger.warning(
                    "refresh_failed_serving_stale",
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                    stale_age=round(state.age(self._clock()) or 0.0, 3),
                )
                return entry.snapshot
            self.logger.error(
                "refresh_failed_no_snapshot",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            raise FeedUnavailableError(str(exc)) from exc

        state.replace(snapshot, self._clock())
        self.logger.info(
            "snapshot_swapped",
            records=len(snapshot),
            refresh_count=state.refresh_count,
            duration=round(self._clock() - started, 3),
        )
        return snapshot


__all__ = ["CacheEntry", "CacheState", "CacheStatus", "FeedCache"]
