"""Shared fixtures: sample feeds, configs and fake HTTP transports."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from feed_search.config import ConfigLocator, ConfigRepository, GlobalConfig
from feed_search.engine import FeedParser, Fetcher, Record, Snapshot

FEED_URL = "https://feeds.example.com/catalogue.xml"

SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<catalog xmlns="http://example.com/ns/catalog">
  <products>
    <product>
      <id>42</id>
      <name>Rioja Reserva</name>
      <price currency="EUR">12.50</price>
      <link>https://shop.example.com/p/42</link>
    </product>
    <product>
      <id>43</id>
      <name>Albarino</name>
      <price currency="EUR">9.90</price>
      <image>https://cdn.example.com/43-a.jpg</image>
      <image>https://cdn.example.com/43-b.jpg</image>
    </product>
    <product>
      <id>44</id>
      <name>Cava Brut</name>
      <region>Penedes</region>
      <price currency="EUR">7.00</price>
    </product>
  </products>
</catalog>
"""


def make_feed(*entries: str, root: str = "catalog") -> str:
    return f"<{root}>{''.join(entries)}</{root}>"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class StubLoader:
    """Loader double returning queued snapshots or raising queued errors."""

    def __init__(self, outcomes: Iterable[Snapshot | Exception] = ()) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0
        self.source = FEED_URL

    def load(self) -> Snapshot:
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        return


def make_snapshot(*records: tuple[str, dict[str, Any]], source: str = FEED_URL) -> Snapshot:
    return Snapshot(
        records=tuple(Record(id=record_id, fields=fields) for record_id, fields in records),
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        source=source,
    )


@pytest.fixture
def sample_feed() -> str:
    return SAMPLE_FEED


@pytest.fixture
def sample_global_config() -> Callable[..., GlobalConfig]:
    def _builder(**sections: dict[str, Any]) -> GlobalConfig:
        base: dict[str, dict[str, Any]] = {
            "feed": {"url": FEED_URL, "retry_on_fail": 0, "retry_delay": 0},
            "flatten": {},
            "cache": {"ttl": 60, "failure_backoff": 0},
            "search": {},
        }
        for name, overrides in sections.items():
            base[name].update(overrides)
        return GlobalConfig.model_validate(base)

    return _builder


@pytest.fixture
def make_fetcher(sample_global_config) -> Callable[..., tuple[Fetcher, list[httpx.Request]]]:
    """Build a ``Fetcher`` whose client answers through ``httpx.MockTransport``."""

    def _builder(
        handler: Callable[[httpx.Request], httpx.Response],
        config: GlobalConfig | None = None,
    ) -> tuple[Fetcher, list[httpx.Request]]:
        cfg = config or sample_global_config()
        seen: list[httpx.Request] = []

        def _recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        client = httpx.Client(transport=httpx.MockTransport(_recording), follow_redirects=True)
        return Fetcher(cfg.feed, client=client, sleep=lambda _seconds: None), seen

    return _builder


@pytest.fixture
def feed_parser(sample_global_config) -> Callable[..., FeedParser]:
    def _builder(**flatten: Any) -> FeedParser:
        return FeedParser(sample_global_config(flatten=flatten).flatten)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("FEED_SEARCH_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator, environ={})
    yield repository


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub_loader() -> Callable[..., StubLoader]:
    return StubLoader


@pytest.fixture
def snapshot_factory() -> Callable[..., Snapshot]:
    return make_snapshot


@pytest.fixture
def feed_builder() -> Callable[..., str]:
    return make_feed
