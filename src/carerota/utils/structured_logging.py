"""
Structured Logging
==================
structlog setup for audit events and operator notifications.

Events carry the workspace context (package and week) bound through
``bind_context``, so every audit record says which rota it concerns.

Usage:
    from carerota.utils.structured_logging import get_structured_logger

    log = get_structured_logger("carerota.audit")
    log.info("audit_event", entity_type="RotaEntry", action="CREATE", outcome="success")
"""
import logging
import sys
from typing import Any, List, Optional, TextIO

import structlog
import structlog.contextvars


def _processors(json_output: bool) -> List[Any]:
    chain: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso" if json_output else "%H:%M:%S"),
    ]
    if json_output:
        chain += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer(sort_keys=True)]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return chain


def configure_structlog(
    json_output: bool = False,
    level: int = logging.INFO,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure structlog once per process.

    Args:
        json_output: One JSON object per event (for log shippers) instead of
            console rendering
        level: Events below this level are dropped
        stream: Destination, stdout by default
    """
    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def get_structured_logger(name: str) -> Any:
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Attach values to every later event in this context.

    ``None`` values are bound too, so switching to "no package" overwrites a
    previous package id.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
