"""Search and lookup over the cached snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import structlog

from ..config import FlattenConfig, SearchConfig
from .cache import FeedCache
from .errors import InvalidQueryError
from .models import Record

ELLIPSIS = "…"
SNIPPET_SEPARATOR = " | "


@dataclass(frozen=True, slots=True)
class SearchHit:
    id: str
    title: str
    snippet: str


@dataclass(frozen=True, slots=True)
class RecordDetail:
    id: str
    text: str
    source: str


@dataclass(frozen=True, slots=True)
class NotFound:
    """Valid lookup that matched nothing; returned, never raised."""

    id: str
    message: str = "Not found"


FetchOutcome = Union[RecordDetail, NotFound]


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, marking the cut with an ellipsis."""

    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(ELLIPSIS))].rstrip() + ELLIPSIS


class QueryEngine:
    """Answer ``search`` and ``fetch_by_id`` against whatever snapshot the cache serves."""

    def __init__(
        self,
        cache: FeedCache,
        search_config: SearchConfig,
        flatten_config: FlattenConfig,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.cache = cache
        self.search_config = search_config
        self.flatten_config = flatten_config
        self.logger = logger or structlog.get_logger("feed_search.query")

    def search(self, query: str) -> list[SearchHit]:
        if not isinstance(query, str):
            raise InvalidQueryError("query must be a string")
        if not query.strip():
            return []
        needle = query.casefold()
        snapshot = self.cache.ensure_fresh()
        limit = self.search_config.max_results
        hits: list[SearchHit] = []
        for record in snapshot.matching(needle):
            hits.append(self._to_hit(record))
            if len(hits) >= limit:
                break
        self.logger.debug("search_completed", query=query, hits=len(hits))
        return hits

    def fetch_by_id(self, record_id: str) -> FetchOutcome:
        if not isinstance(record_id, str) or not record_id.strip():
            raise InvalidQueryError("id must be a non-empty string")
        snapshot = self.cache.ensure_fresh()
        record = snapshot.get(record_id)
        if record is None:
            return NotFound(id=record_id)
        return RecordDetail(id=record.id, text="\n".join(record.as_lines()), source=snapshot.source)

    def title_for(self, record: Record) -> str:
        title = record.first_value(self.flatten_config.title_fields)
        if title is not None:
            return title
        for value in record.values_text():
            return value
        return record.id

    def snippet_for(self, record: Record) -> str:
        text = SNIPPET_SEPARATOR.join(record.as_lines())
        return truncate(text, self.search_config.snippet_length)

    def _to_hit(self, record: Record) -> SearchHit:
        return SearchHit(id=record.id, title=self.title_for(record), snippet=self.snippet_for(record))


__all__ = ["FetchOutcome", "NotFound", "QueryEngine", "RecordDetail", "SearchHit", "truncate"]
