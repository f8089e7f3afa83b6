"""
Boot-time presence policy for auth tables.
"""

from .decision import (GuardState, PolicyDecision, PolicyOutcome, TableState,
                       enforce_decision, halt_process)
from .table_guard import TableGuard, run_table_guard

__all__ = [
    "GuardState",
    "PolicyDecision",
    "PolicyOutcome",
    "TableState",
    "TableGuard",
    "enforce_decision",
    "halt_process",
    "run_table_guard",
]
