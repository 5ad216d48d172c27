"""Structured logging setup for the recommender CLI and services."""

import logging
import sys
from typing import TextIO

import structlog


def _renderer(json_format: bool) -> structlog.types.Processor:
    if json_format:
        return structlog.processors.JSONRenderer(sort_keys=True, ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog and route stdlib logging to the same stream.

    Every event carries the bound request context, an ISO timestamp and
    its level. Work titles are Japanese, so JSON output keeps non-ASCII
    characters as-is.

    Args:
        level: Minimum level emitted.
        output: Stream that receives log lines; stdout stays free for results.
        json_format: JSON lines when True, plain console lines otherwise.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(json_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=output, level=level)


def bind_request_context(request_id: str, reader_id: str | None = None) -> None:
    """Attach request and reader ids to every subsequent log event.

    Args:
        request_id: Unique request identifier.
        reader_id: Signed-in reader; guests are logged as ``guest``.
    """
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        reader_id=reader_id or "guest",
    )


def clear_request_context() -> None:
    """Drop the request context bound by ``bind_request_context``."""
    structlog.contextvars.unbind_contextvars("request_id", "reader_id")
