"""
Logging configuration using structlog for structured logging.

Every module obtains its logger with ``structlog.get_logger(__name__)`` and
logs snake_case events with key/value context::

    log.info("commit_inserted", commit=commit.key, tasks=len(tasks))

``configure_logging`` is called once by the CLI or the webhook server.
"""

from typing import Any

import structlog


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog processors and output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines (for log collectors) instead of the
            human-readable console format
    """
    renderer: Any = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.upper()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_event_context(**context: Any) -> None:
    """Replace the per-request log context (event name, delivery id).

    Context bound for a previous request is dropped first.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)
