"""
Observability helpers for AUTHTABLES.
"""

from .logging import (ContextualLoggerAdapter, clear_check_id,
                      clear_schema_context, get_check_id, get_logger,
                      get_logging_context, set_check_id,
                      set_schema_context, timed_operation)

__all__ = [
    "ContextualLoggerAdapter",
    "clear_check_id",
    "clear_schema_context",
    "get_check_id",
    "get_logger",
    "get_logging_context",
    "set_check_id",
    "set_schema_context",
    "timed_operation",
]
