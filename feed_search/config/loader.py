"""Configuration loading helpers for feed-search."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

from .models import GlobalConfig

CONFIG_FILENAME = "feed_search.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "FEED_SEARCH_URL": ("feed", "url"),
    "FEED_SEARCH_TTL": ("cache", "ttl"),
    "FEED_SEARCH_MAX_RECORDS": ("flatten", "max_records"),
    "FEED_SEARCH_MAX_RESULTS": ("search", "max_results"),
}


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def apply_env_overrides(payload: dict, environ: Mapping[str, str] | None = None) -> dict:
    """Return a copy of ``payload`` with environment overrides merged in."""

    environ = os.environ if environ is None else environ
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in payload.items()}
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or not value.strip():
            continue
        section_payload = merged.get(section)
        if not isinstance(section_payload, dict):
            section_payload = {}
        section_payload[key] = value.strip()
        merged[section] = section_payload
    return merged


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("FEED_SEARCH_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO, env overrides and schema validation."""

    def __init__(
        self,
        locator: ConfigLocator | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.locator = locator or ConfigLocator()
        self.environ = environ
        self._cache: GlobalConfig | None = None

    def load_global_config(self) -> GlobalConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            payload = _read_file(path)
        else:
            payload = GlobalConfig().model_dump(mode="json")
            _write_file(path, payload)
        config = GlobalConfig.model_validate(apply_env_overrides(payload, self.environ))
        self._cache = config
        return config

    def save_global_config(self, config: GlobalConfig) -> Path:
        path = self.locator.config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._cache = None
        return path

    def reload(self) -> GlobalConfig:
        self._cache = None
        return self.load_global_config()


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_FILENAME", "ENV_OVERRIDES", "apply_env_overrides"]
