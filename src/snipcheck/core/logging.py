"""
Structured logging for snipcheck.

Configures structlog once per process and hands out loggers. Output goes to
stderr so that a JSON report written to stdout stays machine-readable.

Architecture:
    ::

        configure_logging(level="INFO", json_format=True, service="snipcheck")

            ↓
        structlog configured with processor chain:
          1. TimeStamper (iso)
          2. add_log_level
          3. add_service_metadata
          4. JSONRenderer (or ConsoleRenderer for a tty)

        RunContext.log = get_logger("snipcheck").bind(run_id=...)
        ctx.log.info("verifier.session_started", block="guide.md:12")

Guardrails:
    - Components never create module-level loggers; they log through the
      ``RunContext`` they are handed
    - Auto-detects JSON vs console based on TTY when no format is given

Tags:
    logging, structlog, observability, json-logging, snipcheck

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Store service name for metadata
_SERVICE_NAME = "snipcheck"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "WARNING",
    json_format: bool | None = None,
    service: str = "snipcheck",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING

    if json_format is None:
        json_format = not sys.stderr.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    # Third-party libraries logging through the stdlib end up on stderr too
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )


def get_logger(name: str | None = None, **initial_values: Any) -> Any:
    """Get a structured logger, optionally pre-bound with *initial_values*.

    Args:
        name: Logger name
        **initial_values: Key/value pairs bound to every event

    Returns:
        structlog BoundLogger
    """
    if name:
        initial_values.setdefault("logger", name)
    return structlog.get_logger(name).bind(**initial_values)


__all__ = [
    "configure_logging",
    "get_logger",
]
