"""Structured logging for the transfer service.

Every log line is a structlog event with a dotted name (``transfer.completed``,
``lock.release_failed``, ``cache.get_failed``) plus fields. The idempotency
key of the request being served is bound into structlog's contextvars by
the HTTP layer, so store adapters that know nothing about the request still
log it.

Standard library loggers (uvicorn, SQLAlchemy, redis) are routed through the
same renderer, so a deployment gets one uniform stream.

Examples:
    Configure once at startup::

        configure_logging(level="INFO", json_output=True)

    Scope a key to the current task::

        with request_context(key="payment-123"):
            logger.info("transfer.completed", amount="10")

    Output (JSON)::

        {"key": "payment-123", "amount": "10", "event": "transfer.completed",
         "level": "info", "logger": "idempotent_transfer.core.orchestrator",
         "timestamp": "2024-01-01T00:00:00.000000Z"}
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore")


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines when True, coloured console output otherwise
    """
    numeric_level = getattr(logging, level.upper())
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module)
    """
    return structlog.get_logger(name)


@contextmanager
def request_context(**fields: Any) -> Iterator[None]:
    """Bind fields to every log line emitted by the current task."""
    tokens = structlog.contextvars.bind_contextvars(**fields)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
