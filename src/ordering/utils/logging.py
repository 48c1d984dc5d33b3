"""Logging setup for the storefront.

stdlib handlers write to the console and to rotating files under ``LOG_DIR``.
structlog renders JSON in production and staging and a rich console view
everywhere else. Events logged with a ``reconciliation_gap`` key (orders the
processor and the store disagree about) are copied to ``reconciliation.log``
so they can be worked off by hand.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_QUIET_LIBRARIES = ("protean", "httpx", "httpcore", "asyncio")

_MAX_BYTES = 10 * 1024 * 1024


def _environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def log_level(env: str | None = None) -> str:
    """``LOG_LEVEL`` if set, else the default for the environment."""
    return os.getenv("LOG_LEVEL") or _LEVELS.get(env or _environment(), "INFO")


class ReconciliationGapFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return "reconciliation_gap" in record.getMessage()


def _rotating_file(path: Path, level, *filters: logging.Filter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=_MAX_BYTES,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    for log_filter in filters:
        handler.addFilter(log_filter)
    return handler


def _configure_stdlib(level: str) -> None:
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [
        console,
        _rotating_file(log_dir / "storefront.log", level),
        _rotating_file(log_dir / "reconciliation.log", logging.WARNING, ReconciliationGapFilter()),
    ]

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def _renderer(env: str):
    if env in ("production", "staging"):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
    )


def configure_logging(env: str | None = None) -> None:
    env = env or _environment()
    level = log_level(env)
    _configure_stdlib(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            _renderer(env),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_checkout_context(**kwargs: Any) -> None:
    """Bind checkout identifiers to every log line emitted in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_checkout_context() -> None:
    structlog.contextvars.clear_contextvars()
