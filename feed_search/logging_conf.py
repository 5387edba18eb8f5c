"""structlog setup for feed-search and helpers behind the ``log`` CLI commands.

Events are rendered as JSON by python-json-logger and written to the console,
``feed_search.log`` and ``error.log`` under the log directory. The directory is
``$FEED_SEARCH_HOME/logs`` when that variable is set, ``logs/`` next to the
package otherwise.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Iterable, Mapping

import structlog

SERVICE_LOG = "feed_search.log"
ERROR_LOG = "error.log"
LOG_LEVEL_ENV = "FEED_SEARCH_LOG_LEVEL"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured_dir: Path | None = None


def log_dir(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    home = env.get("FEED_SEARCH_HOME")
    if home:
        return Path(home).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def _resolve_level(verbose: bool, environ: Mapping[str, str]) -> str:
    if verbose:
        return "DEBUG"
    level = environ.get(LOG_LEVEL_ENV, "").strip().upper()
    return level if isinstance(logging.getLevelName(level), int) else "INFO"


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "encoding": "utf-8",
        "formatter": "json",
    }


def configure_logging(
    verbose: bool = False,
    directory: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> structlog.BoundLogger:
    """Route ``feed_search.*`` loggers to JSON handlers; later calls only adjust the level."""

    global _configured_dir
    env = os.environ if environ is None else environ
    target = directory or log_dir(env)
    level = _resolve_level(verbose, env)

    if _configured_dir == target:
        logging.getLogger("feed_search").setLevel(level)
        return structlog.get_logger("feed_search")

    target.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "fmt": JSON_FORMAT,
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "json",
                },
                "service_file": _file_handler(target / SERVICE_LOG, "INFO"),
                "error_file": _file_handler(target / ERROR_LOG, "ERROR"),
            },
            "loggers": {
                # fetcher, parser, loader, cache, query and scheduler log as feed_search.<component>
                "feed_search": {
                    "handlers": ["console", "service_file", "error_file"],
                    "level": level,
                    "propagate": False,
                },
                "apscheduler": {"handlers": ["error_file"], "level": "WARNING"},
            },
        }
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured_dir = target
    return structlog.get_logger("feed_search")


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last ``line_count`` lines of ``path``."""

    if line_count <= 0 or not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_logs(directory: Path | None = None) -> Iterable[Path]:
    target = directory or log_dir()
    if not target.exists():
        return []
    return sorted(target.glob("*.log"))


def find_log(name: str, directory: Path | None = None) -> Path | None:
    """Resolve ``name`` (``error`` or ``error.log``) to an existing log file."""

    filename = name if name.endswith(".log") else f"{name}.log"
    return next((path for path in available_logs(directory) if path.name == filename), None)


__all__ = [
    "ERROR_LOG",
    "SERVICE_LOG",
    "available_logs",
    "configure_logging",
    "find_log",
    "log_dir",
    "tail_log",
]
