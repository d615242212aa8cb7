"""Structured logging for ExamBank.

One processor chain (context vars, level, stack info, exc_info, ISO
timestamps) ends in a ConsoleRenderer or, in production, a JSONRenderer.
Standard-library records from uvicorn, httpx and the SDKs pass through the
same chain via ``ProcessorFormatter``.

The API logs to stdout.  The CLI passes ``stream=sys.stderr`` so that its
stdout carries only the JSON result.

Ingestion runs bind their context with :func:`ingestion_context` and
:func:`file_context`; every event emitted underneath (chunker, store,
providers) then carries ``batch_id``, ``upload`` and ``file`` without the
callee knowing about them.
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

import structlog

# Chatty at INFO: one line per HTTP request or SQL connection.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "aiosqlite", "multipart")


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
    cache_loggers: bool = True,
) -> structlog.BoundLogger:
    """Configure structlog and route stdlib logging through it.

    Parameters
    ----------
    log_level:
        Minimum level (DEBUG, INFO, WARNING, ERROR).
    json_output:
        Render JSON lines instead of console output; ``main`` sets this
        when ``APP_ENV=production``.
    stream:
        Destination for both structlog and stdlib output (default stdout).
    cache_loggers:
        Passed to ``cache_logger_on_first_use``.  Disable when the stream
        may be replaced later in the same process.
    """
    stream = stream or sys.stdout
    level = logging.getLevelName(log_level.upper())

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=cache_loggers,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound with ``logger_name``; configures defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


# ---------------------------------------------------------------------------
# Run-scoped context
# ---------------------------------------------------------------------------


def new_batch_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def ingestion_context(upload: str, batch_id: str | None = None) -> Iterator[str]:
    """Bind ``batch_id`` and ``upload`` for the duration of one ingestion run.

    Yields the batch id.  Bindings are restored on exit, including when the
    body raises.
    """
    batch_id = batch_id or new_batch_id()
    with structlog.contextvars.bound_contextvars(batch_id=batch_id, upload=upload):
        yield batch_id


@contextmanager
def file_context(filename: str) -> Iterator[None]:
    """Bind ``file`` while one document of a batch is processed."""
    with structlog.contextvars.bound_contextvars(file=filename):
        yield
