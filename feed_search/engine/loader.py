"""Feed loader: fetch, parse and flatten one generation of the catalogue."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog

from ..config import GlobalConfig
from .fetcher import Fetcher, redact_url
from .models import Snapshot
from .parser import FeedParser


class FeedLoader:
    """Produce a complete ``Snapshot`` or raise a ``LoaderError``."""

    def __init__(
        self,
        config: GlobalConfig,
        fetcher: Fetcher | None = None,
        parser: FeedParser | None = None,
        logger: structlog.BoundLogger | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher or Fetcher(config.feed)
        self.parser = parser or FeedParser(config.flatten)
        self.logger = logger or structlog.get_logger("feed_search.loader")
        self._now = now or (lambda: datetime.now(timezone.utc))

    @property
    def source(self) -> str:
        return redact_url(self.config.feed.url)

    def load(self) -> Snapshot:
        response = self.fetcher.fetch()
        root = self.parser.parse(response.content)
        entries = self.parser.locate_entries(root)
        total = len(entries)
        cap = self.config.flatten.max_records
        if total > cap:
            self.logger.warning("ingest_cap_applied", total_entries=total, max_records=cap)
            entries = entries[:cap]
        records = self.parser.build_records(entries)
        snapshot = Snapshot(
            records=tuple(records),
            created_at=self._now(),
            source=self.source,
            total_entries=total,
            truncated=total > cap,
        )
        self.logger.info(
            "snapshot_loaded",
            records=len(snapshot),
            total_entries=total,
            truncated=snapshot.truncated,
        )
        return snapshot

    def close(self) -> None:
        self.fetcher.close()


__all__ = ["FeedLoader"]
