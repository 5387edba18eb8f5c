"""Pydantic models describing the feed, flattening, cache and search settings."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_FEED_URL = "https://feeds.example.com/catalogue.xml"


class FeedSourceConfig(BaseModel):
    """Where and how the remote catalogue is retrieved."""

    url: str = DEFAULT_FEED_URL
    timeout: float = 15.0
    retry_on_fail: int = 0
    retry_delay: float = 1.0
    headers: dict[str, str] = Field(default_factory=dict)
    user_agent: str | None = "feed-search/0.1"

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Feed url must be an absolute http(s) address")
        return value

    @model_validator(mode="after")
    def _validate_numbers(self) -> "FeedSourceConfig":
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.retry_on_fail < 0:
            raise ValueError("retry_on_fail must be >= 0")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        return self


class FlattenConfig(BaseModel):
    """Fixed traversal contract used to turn the XML tree into records."""

    entry_tag: str = "product"
    id_fields: list[str] = Field(
        default_factory=lambda: ["id", "@id", "sku", "@sku", "product_id", "gtin", "ean"]
    )
    title_fields: list[str] = Field(
        default_factory=lambda: ["name", "title", "product_name", "@name"]
    )
    max_records: int = 5000

    @field_validator("entry_tag")
    @classmethod
    def _validate_entry_tag(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("entry_tag cannot be empty")
        return value

    @field_validator("id_fields", "title_fields", mode="before")
    @classmethod
    def _coerce_field_list(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("Field lists expect a list of names or a comma separated string")
        return [str(item).strip() for item in value if str(item).strip()]

    @model_validator(mode="after")
    def _validate_cap(self) -> "FlattenConfig":
        if self.max_records < 1:
            raise ValueError("max_records must be >= 1")
        return self


class CacheConfig(BaseModel):
    """Time-to-live and refresh behaviour of the snapshot cache (seconds)."""

    ttl: float = 300.0
    failure_backoff: float = 30.0
    refresh_interval: float | None = None

    @model_validator(mode="after")
    def _validate_durations(self) -> "CacheConfig":
        if self.ttl < 0:
            raise ValueError("ttl must be >= 0")
        if self.failure_backoff < 0:
            raise ValueError("failure_backoff must be >= 0")
        if self.refresh_interval is not None and self.refresh_interval <= 0:
            raise ValueError("refresh_interval must be > 0 when set")
        return self


class SearchConfig(BaseModel):
    """Result shaping for search queries."""

    max_results: int = 20
    snippet_length: int = 200

    @model_validator(mode="after")
    def _validate_limits(self) -> "SearchConfig":
        if self.max_results < 1:
            raise ValueError("max_results must be >= 1")
        if self.snippet_length < 10:
            raise ValueError("snippet_length must be >= 10")
        return self


class GlobalConfig(BaseModel):
    """Complete service configuration."""

    feed: FeedSourceConfig = Field(default_factory=FeedSourceConfig)
    flatten: FlattenConfig = Field(default_factory=FlattenConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)


__all__ = [
    "CacheConfig",
    "DEFAULT_FEED_URL",
    "FeedSourceConfig",
    "FlattenConfig",
    "GlobalConfig",
    "SearchConfig",
]
