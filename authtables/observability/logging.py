"""
Contextual logging for table guard passes.

Every guard pass gets a short check id; the table prefix and dialect under
inspection are kept alongside it. Both are attached as ``extra`` fields to
records emitted through ``get_logger()`` so log aggregation can group the
lines of one boot check.
"""

import contextvars
import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

_check_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "authtables_check_id", default=None
)
_schema_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "authtables_schema_context", default=None
)


def get_check_id() -> str | None:
    """Check id of the guard pass running in this context, if any."""
    return _check_id.get()


def set_check_id(check_id: str | None = None) -> str:
    """
    Start tagging records with a check id.

    Args:
        check_id: Id to use; a 12 character hex id is generated when omitted

    Returns:
        The id now in effect
    """
    check_id = check_id or uuid.uuid4().hex[:12]
    _check_id.set(check_id)
    return check_id


def clear_check_id() -> None:
    _check_id.set(None)


def set_schema_context(table_prefix: str | None = None, **kwargs: Any) -> None:
    """Record the table prefix (and dialect, features...) being inspected."""
    _schema_context.set({"table_prefix": table_prefix, **kwargs})


def clear_schema_context() -> None:
    _schema_context.set(None)


def get_logging_context() -> dict[str, Any]:
    """Fields attached to contextual records: check id plus schema context."""
    context: dict[str, Any] = dict(_schema_context.get() or {})
    check_id = _check_id.get()
    if check_id:
        context["check_id"] = check_id
    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Adds the guard context to ``extra``; explicit extras win."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**get_logging_context(), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """Contextual adapter around ``logging.getLogger(name)``."""
    return ContextualLoggerAdapter(logging.getLogger(name), {})


@contextmanager
def timed_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.DEBUG,
    **details: Any,
) -> Iterator[dict[str, Any]]:
    """
    Time a block and log one structured record when it ends.

    The yielded dict can be filled in by the block (e.g. with the outcome)
    and is logged as ``extra`` together with ``operation``, ``success`` and
    ``duration_ms``. Exceptions are logged as a failure and re-raised.

    Example:
        with timed_operation(log, "table_guard.policy", missing_count=2) as op:
            op["outcome"] = "warn"
    """
    fields = dict(details)
    started = time.perf_counter()
    success = True
    try:
        yield fields
    except Exception as e:
        success = False
        fields["error"] = type(e).__name__
        raise
    finally:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        fields.update(operation=operation, success=success, duration_ms=duration_ms)
        verb = "completed" if success else "failed"
        logger.log(
            level,
            f"{operation} {verb} in {duration_ms:.2f}ms",
            extra={**get_logging_context(), **fields},
        )
