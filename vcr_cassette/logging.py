"""structlog setup shared by the CLI and the pytest plugin.

Everything is written to stderr by default, which keeps log events out of the
report text the CLI prints on stdout.
"""

from __future__ import annotations

import sys
from typing import TextIO

import structlog

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
LOG_FORMATS = ("console", "json")


def _renderer(fmt: str, stream: TextIO) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=stream.isatty())
    raise ValueError(f"unknown log format {fmt!r}, expected one of {LOG_FORMATS}")


def setup_logging(
    level: str = "info",
    fmt: str = "console",
    stream: TextIO | None = None,
    cache: bool = True,
) -> None:
    """Configure structlog for cassette maintenance events.

    ``cache=False`` keeps loggers from pinning ``stream``, for callers that
    swap stderr between runs.
    """
    name = level.lower()
    if name not in LOG_LEVELS:
        raise ValueError(f"unknown log level {level!r}, expected one of {LOG_LEVELS}")
    stream = stream or sys.stderr

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _renderer(fmt, stream),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(structlog.stdlib.NAME_TO_LEVEL[name]),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=cache,
    )
