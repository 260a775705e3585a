from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from rich.logging import RichHandler
from structlog.contextvars import bind_contextvars, merge_contextvars

_CONFIGURED = False


def configure_logging(*, level: str = "INFO", fmt: str = "console") -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    if fmt == "console":
        handler: logging.Handler = RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_time=False,
            show_path=False,
            log_time_format="%H:%M:%S",
            console=None,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        renderer: Any = structlog.processors.KeyValueRenderer(sort_keys=True)
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        renderer = structlog.processors.JSONRenderer()

    processors: list[Any] = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]

    handler.setLevel(level.upper())
    root.addHandler(handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level.upper()),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(name: str = "snippet_runner") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind(**values: Any) -> None:
    bind_contextvars(**values)
