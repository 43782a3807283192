from __future__ import annotations

import logging
import sys
from typing import Any, Protocol, runtime_checkable

import structlog
from rich.logging import RichHandler
from structlog.contextvars import bind_contextvars, merge_contextvars

# Libraries that log every request or subprocess line at INFO.
CHATTY_LOGGERS = ("httpx", "httpcore", "gnupg")

_CONFIGURED = False


@runtime_checkable
class ILogger(Protocol):
    def debug(self, event: str, **kw: Any) -> Any: ...
    def info(self, event: str, **kw: Any) -> Any: ...
    def warning(self, event: str, **kw: Any) -> Any: ...
    def error(self, event: str, **kw: Any) -> Any: ...
    def exception(self, event: str, **kw: Any) -> Any: ...
    def bind(self, **kw: Any) -> "ILogger": ...


def _handler(fmt: str) -> tuple[logging.Handler, Any]:
    if fmt == "console":
        handler: logging.Handler = RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_time=True,
            show_path=False,
            log_time_format="%H:%M:%S",
        )
        return handler, structlog.processors.KeyValueRenderer(
            key_order=["event"], sort_keys=True
        )
    # CI log collectors ingest one JSON object per line on stdout.
    return logging.StreamHandler(stream=sys.stdout), structlog.processors.JSONRenderer()


def configure_logging(*, level: str = "INFO", fmt: str = "console") -> None:
    """
    Route structlog through the stdlib root logger. Safe to call more than
    once; only the first call installs handlers.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    level = level.upper()
    handler, renderer = _handler(fmt)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelNamesMapping()[level]),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(name: str = "promote_release") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind(**values: Any) -> None:
    """
    Attach run-wide context (run id, channel, action) to every later log line.
    """
    bind_contextvars(**values)
