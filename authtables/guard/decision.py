"""
Presence policy records.

The guard never terminates the process itself: ``halt`` is a decision
returned to the host, which calls ``halt_process()`` (or ``enforce_decision``)
to actually stop.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from ..constants import HALT_EXIT_CODE
from ..core.types import PolicyDecisionDict

logger = logging.getLogger(__name__)


class GuardState(str, Enum):
    """Lifecycle state of a guard pass."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    EVALUATING = "evaluating"
    CONTINUED = "continue"
    WARNED = "warned"
    ERRORED = "errored"
    RAISED = "raised"
    HALTED = "halted"


class PolicyOutcome(str, Enum):
    """Response to missing tables."""

    CONTINUE = "continue"
    WARN = "warn"
    ERROR = "error"
    RAISE = "raise"
    HALT = "halt"


class TableState(str, Enum):
    """Presence of one required table."""

    EXISTS = "exists"
    MISSING = "missing"
    UNKNOWN = "unknown"
    SKIPPED = "skipped"


OUTCOME_STATES: Dict[PolicyOutcome, GuardState] = {
    PolicyOutcome.CONTINUE: GuardState.CONTINUED,
    PolicyOutcome.WARN: GuardState.WARNED,
    PolicyOutcome.ERROR: GuardState.ERRORED,
    PolicyOutcome.RAISE: GuardState.RAISED,
    PolicyOutcome.HALT: GuardState.HALTED,
}


@dataclass
class PolicyDecision:
    """Result of one guard pass."""

    outcome: PolicyOutcome
    message: str = ""
    missing_tables: List[str] = field(default_factory=list)
    unknown_tables: List[str] = field(default_factory=list)
    side_action: Optional[str] = None
    side_action_error: Optional[str] = None
    remaining_tables: Optional[List[str]] = None  # missing after a create side action
    check_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def state(self) -> GuardState:
        return OUTCOME_STATES[self.outcome]

    @property
    def missing_count(self) -> int:
        return len(self.missing_tables)

    @property
    def should_halt(self) -> bool:
        return self.outcome == PolicyOutcome.HALT

    def to_dict(self) -> PolicyDecisionDict:
        """Convert to dictionary."""
        return {
            "outcome": self.outcome.value,
            "state": self.state.value,
            "message": self.message,
            "missing_tables": list(self.missing_tables),
            "unknown_tables": list(self.unknown_tables),
            "side_action": self.side_action,
            "side_action_error": self.side_action_error,
            "remaining_tables": self.remaining_tables,
            "check_id": self.check_id,
            "timestamp": self.timestamp.isoformat(),
        }


def halt_process(exit_code: int = HALT_EXIT_CODE) -> None:
    """Flush logging and terminate the process immediately."""
    logger.critical(f"Halting process (exit code {exit_code}) due to missing auth tables")
    logging.shutdown()
    os._exit(exit_code)


def enforce_decision(decision: PolicyDecision) -> PolicyDecision:
    """Terminate the process on a ``halt`` decision, otherwise return it."""
    if decision.should_halt:
        halt_process()
    return decision
