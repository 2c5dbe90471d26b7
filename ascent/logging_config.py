"""
Structured logging for the behavior engine, using structlog over stdlib logging.

The engines only ever call get_logger(); the host application decides how the
output looks by calling setup_logging() once at startup. Console rendering is
the default, JSON is selected with ASCENT_LOG_FORMAT=json.

Per-user context (user id, request id) is carried with contextvars so that
every line emitted while a user document is being processed is tagged:

    from ascent.logging_config import setup_logging, user_log_context

    setup_logging()
    with user_log_context(user_id="alice"):
        report = analytics.generate_report(habits, completions)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Any

import structlog


LOG_LEVEL_ENV = "ASCENT_LOG_LEVEL"
LOG_FORMAT_ENV = "ASCENT_LOG_FORMAT"


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    stream: IO[str] | None = None,
) -> None:
    level = level or os.environ.get(LOG_LEVEL_ENV, "INFO")
    if json_output is None:
        json_output = os.environ.get(LOG_FORMAT_ENV, "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def user_log_context(**values: Any) -> Iterator[None]:
    """Bind key/value pairs to every log line emitted inside the block."""
    tokens = structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


__all__ = ["get_logger", "setup_logging", "user_log_context"]
