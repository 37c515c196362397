# ABOUTME: Structured logging setup with per-invocation correlation IDs
# ABOUTME: Configures structlog to write to stderr so command output stays clean

"""
Structured logging for realm-cli.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

realm-cli prints its RESULTS on stdout (asset lists, diffs, "Successfully
imported ..."). Diagnostics go through structlog to stderr, so piping a
command's output never mixes in log lines.

    realm-cli hosting list ... > assets.txt        # only the listing
    REALM_CLI_LOG_LEVEL=DEBUG realm-cli hosting import ...   # verbose stderr

=============================================================================
CORRELATION IDs
=============================================================================

One CLI invocation can make hundreds of requests from several concurrent
workers. Every log line of an invocation carries the same short
correlation_id, so a JSON log can be filtered down to a single run:

    {"correlation_id": "a1b2c3d4", "event": "Importing hosting assets", ...}
    {"correlation_id": "a1b2c3d4", "event": "Session refreshed", ...}

The ID lives in a ContextVar. asyncio tasks copy the context when they are
created, so workers started by the sync engine inherit the ID of the command
that started them.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping


correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """The invocation's correlation ID (8 hex characters), created on first use."""
    current = correlation_id.get()
    if current:
        return current
    current = uuid.uuid4().hex[:8]
    correlation_id.set(current)
    return current


def set_correlation_id(cid: str) -> None:
    """Set the correlation ID for the current context ("" regenerates lazily)."""
    correlation_id.set(cid)


def new_correlation_id() -> str:
    """Start a fresh correlation ID, called once per CLI invocation."""
    set_correlation_id("")
    return get_correlation_id()


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor adding "correlation_id" to every event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging. Call once per invocation, before any logging.

    PROCESSOR PIPELINE:
    -------------------
    1. merge_contextvars: context bound via structlog.contextvars
    2. add_log_level: "level" field
    3. TimeStamper: ISO-format timestamp
    4. add_correlation_id: the invocation's correlation ID
    5. Renderer: JSON lines or colored console text

    Args:
        level: "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL". The CLI
               defaults to WARNING so normal runs are quiet.
        json_output: JSON lines (for log collection) instead of console text.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.WARNING)
        ),
        context_class=dict,
        # stderr: stdout is reserved for command output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
