"""feed-search: cached search and lookup over a remote XML product catalogue."""

from .service import FeedService, OperationResult, build_service

__version__ = "0.1.0"

__all__ = ["FeedService", "OperationResult", "build_service", "__version__"]
