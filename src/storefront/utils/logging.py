"""Logging for the storefront jobs.

structlog renders every record (JSON in production and staging, console
output elsewhere) and hands it to standard library logging, which fans it
out to:

* the console, on stderr, so a command's own stdout stays parseable
  (``storefront expire-unpaid --json``),
* ``storefront.log`` for everything,
* ``order-expiration.log`` for the expiration sweep only,
* ``storefront_error.log`` for errors.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any, TextIO

import structlog

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}


def _environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """``LOG_LEVEL`` if set, otherwise the level for the current environment."""
    return os.getenv("LOG_LEVEL", _LEVELS.get(_environment(), "INFO")).upper()


def _rotating_file(path: Path, level, only: str | None = None) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    if only:
        handler.addFilter(logging.Filter(only))
    return handler


def setup_stdlib_logging(log_dir: str | Path | None = None, stream: TextIO | None = None) -> None:
    level = get_log_level()
    log_path = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    log_path.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(level)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [
        console,
        _rotating_file(log_path / "storefront.log", level),
        _rotating_file(log_path / "order-expiration.log", level, only="storefront.expiration"),
        _rotating_file(log_path / "storefront_error.log", logging.ERROR),
    ]

    for noisy in ("protean", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _renderer(stream: TextIO):
    if _environment() in ("production", "staging"):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=stream.isatty(),
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
    )


def setup_structlog(stream: TextIO | None = None) -> None:
    """Route structlog through standard library logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            _renderer(stream or sys.stderr),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_dir: str | Path | None = None, stream: TextIO | None = None) -> None:
    setup_stdlib_logging(log_dir, stream)
    setup_structlog(stream)


def add_context(**kwargs: Any) -> None:
    """Bind values that every later log record in this context carries."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
