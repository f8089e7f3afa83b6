"""
Type definitions for AUTHTABLES records.

TypedDict definitions for the structures passed between table discovery,
the table guard and callers (CLI, admin pages).

This module is part of AUTHTABLES.
"""

from typing import Any, Dict, List, Optional, TypedDict


class FeatureDefinitionDict(TypedDict, total=False):
    """Feature registration as accepted by ``FeatureRegistry.register_definition``."""

    name: str
    tables: Dict[str, str]  # accessor -> table name pattern
    template: Optional[str]
    depends_on: List[str]
    columns: Dict[str, List[str]]  # table name pattern -> column names


class MissingTableDict(TypedDict):
    """A required table that does not exist."""

    accessor: Optional[str]
    table: str
    feature: Optional[str]
    verified: bool


class TableStatusDict(TypedDict):
    """Presence record for one required table."""

    accessor: Optional[str]
    table: str
    feature: Optional[str]
    exists: bool
    state: str


class PolicyDecisionDict(TypedDict, total=False):
    """Serialized policy decision."""

    outcome: str
    state: str
    message: str
    missing_tables: List[str]
    unknown_tables: List[str]
    side_action: Optional[str]
    side_action_error: Optional[str]
    remaining_tables: Optional[List[str]]
    check_id: Optional[str]
    timestamp: str


TableConfiguration = Dict[str, Any]
"""Table name -> TableDescriptor mapping computed for one guard pass."""
