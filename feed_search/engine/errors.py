"""Exception taxonomy shared by the loader, the cache and the service facade."""

from __future__ import annotations


class FeedError(Exception):
    """Base class for every error raised by the feed engine."""


class LoaderError(FeedError):
    """A refresh cycle (fetch, parse or flatten) did not produce a snapshot."""


class FetchError(LoaderError):
    """Network failure or non-success HTTP status while retrieving the feed."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(LoaderError):
    """The response body is not well-formed XML."""


class ShapeError(LoaderError):
    """The document no longer matches the expected catalogue structure."""


class FeedUnavailableError(FeedError):
    """No snapshot has ever been loaded and the latest load attempt failed."""


class InvalidQueryError(FeedError, ValueError):
    """Operation input is missing or of the wrong type."""


__all__ = [
    "FeedError",
    "FeedUnavailableError",
    "FetchError",
    "InvalidQueryError",
    "LoaderError",
    "ParseError",
    "ShapeError",
]
