"""
Structured logging for MDB_CONNECTION.

Records emitted through ``get_logger`` (and ``log_operation``) carry the
current correlation ID and the connection being worked on (connection id,
database, model) as record attributes, ready for structured formatters.
Both live in context variables, so concurrent tasks keep their own values.
"""

import contextvars
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "mdb_connection_correlation_id", default=None
)

# connection_id, db_name, model_name ...
_connection_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "mdb_connection_context", default=None
)


def get_correlation_id() -> str | None:
    """Correlation ID of the current context, if any."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set the correlation ID of the current context.

    Args:
        correlation_id: ID to use (a new UUID4 when omitted)

    Returns:
        The correlation ID in effect
    """
    correlation_id = correlation_id or str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def set_connection_context(
    connection_id: int | None = None, **fields: Any
) -> contextvars.Token:
    """
    Replace the connection context of the current context.

    Args:
        connection_id: Process-unique id of the connection being worked on
        **fields: Further context (db_name, model_name ...)

    Returns:
        Token restoring the previous context via ``_connection_context.reset``
    """
    return _connection_context.set({"connection_id": connection_id, **fields})


def clear_connection_context() -> None:
    _connection_context.set(None)


@contextmanager
def connection_context(connection_id: int | None = None, **fields: Any) -> Iterator[None]:
    """
    Extend the connection context for the duration of a block.

    Fields given here are layered over the enclosing context and dropped on
    exit.

    Usage:
        with connection_context(connection.id, model_name="User"):
            logger.info("Clearing")
    """
    current = dict(_connection_context.get() or {})
    if connection_id is not None:
        current["connection_id"] = connection_id
    current.update(fields)
    token = _connection_context.set(current)
    try:
        yield
    finally:
        _connection_context.reset(token)


def get_logging_context() -> dict[str, Any]:
    """
    Snapshot of the current logging context.

    Returns:
        Dictionary with a timestamp, the correlation ID (when set) and the
        connection context fields
    """
    context: dict[str, Any] = {"timestamp": datetime.now().isoformat()}
    correlation_id = _correlation_id.get()
    if correlation_id:
        context["correlation_id"] = correlation_id
    context.update(_connection_context.get() or {})
    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter merging the logging context into each record's extra."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**get_logging_context(), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.INFO,
    success: bool = True,
    duration_ms: float | None = None,
    **fields: Any,
) -> None:
    """
    Log the outcome of an operation with structured fields.

    Args:
        logger: Logger to emit on
        operation: Operation name, e.g. "maintenance.clear"
        level: Log level
        success: Whether the operation succeeded
        duration_ms: Duration in milliseconds
        **fields: Additional fields (models, db_name ...)
    """
    extra = get_logging_context()
    extra.update(operation=operation, success=success, **fields)

    message = f"Operation {'completed' if success else 'failed'}: {operation}"
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
        message += f" in {duration_ms:.2f}ms"

    logger.log(level, message, extra=extra)
