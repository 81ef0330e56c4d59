"""
Correlation IDs for Admission Tracing.

Every connection evaluation and every admin command runs inside a
correlation context so that the log lines, audit events and the returned
decision of one attempt can be tied together.

Usage:
    with correlation_context(uuid="abc-123", username="Steve") as cid:
        logger.info("Evaluating connection")  # carries cid

    current_id = get_correlation_id()
"""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Generator

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

_trace_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "trace_context", default={}
)

CORRELATION_HEADER = "X-Correlation-ID"


def get_correlation_id() -> str | None:
    """Get the current correlation ID, or None outside a correlation context."""
    return _correlation_id.get()


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Format: wl-{16 hex chars}
    """
    return f"wl-{uuid.uuid4().hex[:16]}"


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """
    Context manager for correlation ID scope.

    Nested contexts restore the outer ID and trace context on exit.

    Args:
        correlation_id: ID to use (generates new one if None)
        **extra_context: Additional context (e.g. uuid, username, operator)

    Yields:
        The active correlation ID
    """
    cid = correlation_id or generate_correlation_id()

    prev_id = _correlation_id.get()
    prev_context = _trace_context.get()

    _correlation_id.set(cid)
    if extra_context:
        _trace_context.set({**prev_context, **extra_context})

    try:
        yield cid
    finally:
        _correlation_id.set(prev_id)
        _trace_context.set(prev_context)


def get_trace_context() -> dict[str, Any]:
    """Get the trace context including the correlation ID."""
    context = dict(_trace_context.get())
    context["correlation_id"] = _correlation_id.get()
    return context


def extract_correlation_id(headers: dict[str, str]) -> str | None:
    """Extract a correlation ID from request headers (case-insensitive)."""
    normalized = {k.lower(): v for k, v in headers.items()}
    return normalized.get(CORRELATION_HEADER.lower())


class CorrelatedLogger:
    """
    Logger wrapper that automatically includes correlation context.

    Usage:
        logger = CorrelatedLogger(logging.getLogger(__name__))

        with correlation_context(uuid="abc-123"):
            logger.warning("Rejected")
            # record.correlation_id and record.uuid are set
    """

    def __init__(self, logger: Any) -> None:
        self._logger = logger

    def _add_correlation(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        extra = dict(kwargs.get("extra") or {})
        # Trace keys must not collide with LogRecord attributes
        extra.update(get_trace_context())
        kwargs["extra"] = extra
        return kwargs

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **self._add_correlation(kwargs))

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **self._add_correlation(kwargs))

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **self._add_correlation(kwargs))

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **self._add_correlation(kwargs))

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.exception(msg, *args, **self._add_correlation(kwargs))
