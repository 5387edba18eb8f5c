"""Engine components wiring fetch → parse → flatten → cache → query."""

from .cache import CacheState, CacheStatus, FeedCache
from .errors import (
    FeedError,
    FeedUnavailableError,
    FetchError,
    InvalidQueryError,
    LoaderError,
    ParseError,
    ShapeError,
)
from .fetcher import FetchRequest, FetchResponse, Fetcher, redact_url
from .loader import FeedLoader
from .models import Record, Snapshot
from .parser import FeedParser
from .query import NotFound, QueryEngine, RecordDetail, SearchHit

__all__ = [
    "CacheState",
    "CacheStatus",
    "FeedCache",
    "FeedError",
    "FeedLoader",
    "FeedParser",
    "FeedUnavailableError",
    "FetchError",
    "FetchRequest",
    "FetchResponse",
    "Fetcher",
    "InvalidQueryError",
    "LoaderError",
    "NotFound",
    "ParseError",
    "QueryEngine",
    "Record",
    "RecordDetail",
    "SearchHit",
    "ShapeError",
    "Snapshot",
    "redact_url",
]
