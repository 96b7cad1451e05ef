"""
Structured logging for repairdesk.

structlog renders JSON lines in production and a colored console
elsewhere. Two identifiers follow the work through the logs: ``trace_id``
(one per HTTP request, echoed as ``X-Request-ID``) and ``session_id`` (the
chat session a turn belongs to).

Usage:
    from repairdesk.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("task_created", task_id="abc-123", priority="high")
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog

from repairdesk.config import Settings, get_settings

trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

# Client libraries for Gemini (httpx) and the task store (supabase / postgrest).
# Their per-request INFO lines duplicate our own api_request and task events.
QUIET_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "postgrest", "supabase", "uvicorn.access")


def _inject_context_vars(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    trace_id = trace_id_var.get("")
    if trace_id:
        event_dict["trace_id"] = trace_id

    # An explicit session_id kwarg on the call wins over the bound one
    session_id = session_id_var.get("")
    if session_id:
        event_dict.setdefault("session_id", session_id)

    return event_dict


def generate_trace_id() -> str:
    return uuid.uuid4().hex[:12]


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.is_production:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog and route stdlib logging through it.

    Safe to call more than once; the root handler is replaced each time.
    """
    settings = settings or get_settings()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a named, structured logger (``name`` is usually ``__name__``)."""
    return structlog.get_logger(name)
