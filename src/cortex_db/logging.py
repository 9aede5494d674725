"""
Structured logging for cortex-db.

Every adapter write, factory decision and relationship repair is emitted as
a structured event, for example::

    logger.info("relationship_repaired", collection="trrs", record_id="T1", field="povId")

so drift in the denormalized record graph can be traced in aggregated logs
without parsing messages.

Processor chain (in order):
    contextvars -> ISO timestamp -> level -> logger name -> service name
    -> connection-string redaction -> console or JSON renderer

Connection strings are redacted before rendering: any event value under a
``*url`` key loses its password.

Usage:
    >>> from cortex_db.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.debug("record_created", collection="povs", record_id="V1")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from structlog.types import EventDict, Processor, WrappedLogger

_service = "cortex-db"


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", _service)
    return event_dict


def redact_url(value: str) -> str:
    """``value`` with the password hidden, when it parses as a database URL."""
    try:
        return make_url(value).render_as_string(hide_password=True)
    except ArgumentError:
        return value


def _redact_urls(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if key.endswith("url") and isinstance(value, str):
            event_dict[key] = redact_url(value)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "cortex-db",
) -> None:
    """Route structlog through stdlib logging with the cortex-db processors.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        json_format: JSON lines when True, coloured console output when
            False, and JSON whenever stdout is not a terminal when None
        service: value of the ``service`` field on every event
    """
    global _service
    _service = service

    numeric_level = getattr(logging, level.upper())
    if json_format is None:
        json_format = not sys.stdout.isatty()

    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            _add_service,
            _redact_urls,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Rendered events go to stderr so stdout stays clean for command output
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    """Structured logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach ``kwargs`` to every event logged from this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Bind context for the duration of a ``with`` block.

    Example:
        with LogContext(project_id="P1"):
            manager.repair_relationships("P1")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "LogContext",
    "redact_url",
]
