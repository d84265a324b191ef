"""
Structured logging for dimspine.

Every stage logs through structlog with dotted event names
(``dimension.built``, ``facts.resolved``, ``run.completed``) and keyword
fields, so a run's log can be filtered by ``run_id`` and ``ordering``.

Output goes to stderr; stdout is reserved for CLI results (``--json``).
JSON lines use ECS field names (``@timestamp``, ``log.level``,
``service.name``); an interactive terminal gets the console renderer.

Examples:
    >>> from dimspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("dimension.built", dimension="customer", rows=42)

    >>> with LogContext(run_id="01J...", ordering="etl"):
    ...     logger.info("run.started")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# structlog key -> ECS field name
_ECS_FIELDS = {"timestamp": "@timestamp", "level": "log.level"}


def _service_stamp(service: str) -> Processor:
    def stamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", service)
        return event_dict

    return stamp


def _ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, ecs_key in _ECS_FIELDS.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "dimspine",
) -> None:
    """Configure structlog on top of a stdlib root handler writing to stderr.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: True for JSON lines, False for the console renderer,
            None to pick JSON unless stderr is a terminal
        service: value of the ``service.name`` field
    """
    if json_format is None:
        json_format = not sys.stderr.isatty()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _service_stamp(service),
    ]
    if json_format:
        processors += [_ecs_field_names, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=getattr(logging, level.upper()), force=True)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def clear_context() -> None:
    """Drop every context variable bound so far."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """
    Bind fields (``run_id``, ``ordering``) to every log line inside the block.

    Values bound by an enclosing block are restored on exit.
    """

    def __init__(self, **fields: Any):
        self._fields = fields
        self._bound = None

    def __enter__(self) -> LogContext:
        self._bound = structlog.contextvars.bound_contextvars(**self._fields)
        self._bound.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        self._bound.__exit__(*exc_info)


__all__ = [
    "configure_logging",
    "get_logger",
    "clear_context",
    "LogContext",
]
