"""Structured logging for the sync worker.

Events are emitted through structlog and rendered as JSON lines by the stdlib
handlers configured here:

* console: everything at the selected level;
* ``sync.log``: the worker's INFO trail (``worker_boot``, ``page_synced``,
  ``cycle_complete``, ``worker_stopped`` ...);
* ``error.log``: failures only. Skipped pages (``page_fetch_failed``) and
  rejected batches (``batch_persist_failed``) are warnings and errors
  respectively, and ``worker_crashed`` carries the traceback.

Every component logs through :func:`get_logger`, which binds ``component`` so
the sync and error trails can be filtered per stage.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Iterable

import structlog

_LOGGING_INITIALISED = False

ROOT_LOGGER = "movie_sync"
SYNC_LOG_NAME = "sync.log"
ERROR_LOG_NAME = "error.log"


def default_log_dir() -> Path:
    env_root = os.environ.get("MOVIE_SYNC_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def _dict_config(log_dir: Path, level: str) -> dict[str, Any]:
    def file_handler(name: str, handler_level: str) -> dict[str, Any]:
        return {
            "class": "logging.FileHandler",
            "level": handler_level,
            "filename": str(log_dir / name),
            "formatter": "json",
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "sync_file": file_handler(SYNC_LOG_NAME, "INFO"),
            # page failures are warnings; they belong with the failed batches
            "error_file": file_handler(ERROR_LOG_NAME, "WARNING"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "sync_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers once and return the worker logger.

    Later calls reuse the existing handlers; ``verbose`` still lowers the level
    to DEBUG so ``--verbose`` works even after an earlier default setup.
    """

    global _LOGGING_INITIALISED
    if not _LOGGING_INITIALISED:
        log_dir = log_dir or default_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(_dict_config(log_dir, "DEBUG" if verbose else "INFO"))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    elif verbose:
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(logging.DEBUG)
        for handler in root.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(logging.DEBUG)
    return structlog.get_logger(ROOT_LOGGER)


def get_logger(component: str) -> structlog.BoundLogger:
    """Return the worker logger bound to one pipeline stage."""

    return configure_logging().bind(component=component)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_logs() -> Iterable[Path]:
    log_dir = default_log_dir()
    if not log_dir.exists():
        return []
    return sorted(p for p in log_dir.glob("*.log"))


__all__ = [
    "ERROR_LOG_NAME",
    "ROOT_LOGGER",
    "SYNC_LOG_NAME",
    "available_logs",
    "configure_logging",
    "default_log_dir",
    "get_logger",
    "tail_log",
]
