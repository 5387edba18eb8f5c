"""Operation facade exposing ``search`` and ``fetch`` with plain-dict payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import structlog

from .config import GlobalConfig
from .engine import (
    FeedCache,
    FeedLoader,
    FeedParser,
    FeedUnavailableError,
    Fetcher,
    InvalidQueryError,
    NotFound,
    QueryEngine,
)


@dataclass(slots=True)
class OperationResult:
    """Payload of one operation plus the flag telling callers it describes an error."""

    content: dict[str, Any] = field(default_factory=dict)
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "is_error": self.is_error}

    @classmethod
    def error(cls, message: str) -> "OperationResult":
        return cls(content={"error": message}, is_error=True)


def _require_string(arguments: Mapping[str, Any] | None, key: str) -> str:
    if not isinstance(arguments, Mapping):
        raise InvalidQueryError("arguments must be an object")
    if key not in arguments:
        raise InvalidQueryError(f"missing required field '{key}'")
    value = arguments[key]
    if not isinstance(value, str):
        raise InvalidQueryError(f"field '{key}' must be a string, got {type(value).__name__}")
    return value


class FeedService:
    """Translate operation inputs into engine calls and engine outcomes into payloads."""

    def __init__(
        self,
        config: GlobalConfig,
        engine: QueryEngine,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.engine = engine
        self.logger = logger or structlog.get_logger("feed_search.service")

    @property
    def cache(self) -> FeedCache:
        return self.engine.cache

    def search(self, arguments: Mapping[str, Any] | None) -> OperationResult:
        try:
            query = _require_string(arguments, "q")
            hits = self.engine.search(query)
        except InvalidQueryError as exc:
            self.logger.info("search_rejected", reason=str(exc))
            return OperationResult.error(f"Invalid arguments: {exc}")
        except FeedUnavailableError as exc:
            self.logger.warning("search_unavailable", reason=str(exc))
            return OperationResult.error(f"Feed unavailable: {exc}")
        results = [{"id": hit.id, "title": hit.title, "snippet": hit.snippet} for hit in hits]
        return OperationResult(content={"results": results})

    def fetch(self, arguments: Mapping[str, Any] | None) -> OperationResult:
        try:
            record_id = _require_string(arguments, "id")
            outcome = self.engine.fetch_by_id(record_id)
        except InvalidQueryError as exc:
            self.logger.info("fetch_rejected", reason=str(exc))
            return OperationResult.error(f"Invalid arguments: {exc}")
        except FeedUnavailableError as exc:
            self.logger.warning("fetch_unavailable", reason=str(exc))
            return OperationResult.error(f"Feed unavailable: {exc}")
        if isinstance(outcome, NotFound):
            return OperationResult.error(outcome.message)
        return OperationResult(
            content={
                "id": outcome.id,
                "text": outcome.text,
                "metadata": {"source": outcome.source},
            }
        )

    def status(self) -> dict[str, Any]:
        cache = self.cache
        state = cache.state
        now = cache.now()
        snapshot = state.snapshot
        age = state.age(now)
        return {
            "status": state.status(now).value,
            "source": cache.loader.source,
            "ttl": state.ttl,
            "age": round(age, 3) if age is not None else None,
            "records": len(snapshot) if snapshot is not None else 0,
            "total_entries": snapshot.total_entries if snapshot is not None else 0,
            "truncated": snapshot.truncated if snapshot is not None else False,
            "created_at": snapshot.created_at.isoformat() if snapshot is not None else None,
            "refresh_count": state.refresh_count,
            "failure_count": state.failure_count,
            "last_error": str(state.last_error) if state.last_error is not None else None,
        }

    def close(self) -> None:
        self.cache.loader.close()


def build_service(config: GlobalConfig, logger: structlog.BoundLogger | None = None) -> FeedService:
    """Wire fetcher, parser, loader, cache and query engine from ``config``."""

    fetcher = Fetcher(config.feed)
    parser = FeedParser(config.flatten)
    loader = FeedLoader(config, fetcher=fetcher, parser=parser)
    cache = FeedCache(loader, config.cache)
    engine = QueryEngine(cache, config.search, config.flatten)
    return FeedService(config, engine, logger=logger)


__all__ = ["FeedService", "OperationResult", "build_service"]
