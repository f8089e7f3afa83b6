"""
Structural table descriptors.

Descriptors are built on demand from rendered templates (``templated``) or
from the column inference fallback (``inferred``); they are never persisted.

This module is part of AUTHTABLES.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TableSource(str, Enum):
    """Where a table's structure came from."""

    TEMPLATED = "templated"
    INFERRED = "inferred"
    ACCESSOR = "accessor"


@dataclass
class ColumnSpec:
    """One column of a table."""

    name: str
    type: str
    nullable: bool = True
    default: Optional[str] = None
    primary_key: bool = False
    references: Optional[str] = None  # referenced table name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "default": self.default,
            "primary_key": self.primary_key,
            "references": self.references,
        }


@dataclass
class ForeignKeySpec:
    """A foreign key from ``columns`` to ``references_table``."""

    columns: List[str]
    references_table: str
    references_columns: List[str] = field(default_factory=lambda: ["id"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": list(self.columns),
            "references_table": self.references_table,
            "references_columns": list(self.references_columns),
        }


@dataclass
class IndexSpec:
    """A (possibly unique, possibly partial) index."""

    name: str
    columns: List[str]
    unique: bool = False
    where: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "unique": self.unique,
            "where": self.where,
        }


@dataclass
class TableDescriptor:
    """
    Everything known about one required table.

    Attributes:
        table_name: Resolved table name
        owning_feature: Feature that creates the table (None if unknown)
        verified: True when ownership came from the feature registration
            table, False when it was guessed from the accessor name
        accessor: Accessor member exposing the name (None for tables only
            found by rendering templates, like ``account_statuses``)
        source: How the structure was obtained
        template: Template file the table comes from, if any
        template_missing: True when the owning feature ships no template
        warning: Human readable diagnostic (unverified ownership, missing
            template...)
    """

    table_name: str
    owning_feature: Optional[str] = None
    verified: bool = True
    accessor: Optional[str] = None
    primary_key: List[str] = field(default_factory=list)
    columns: List[ColumnSpec] = field(default_factory=list)
    foreign_keys: List[ForeignKeySpec] = field(default_factory=list)
    indexes: List[IndexSpec] = field(default_factory=list)
    source: TableSource = TableSource.ACCESSOR
    template: Optional[str] = None
    template_missing: bool = False
    warning: Optional[str] = None

    def column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def referenced_tables(self) -> List[str]:
        """Tables this table has foreign keys to (excluding itself)."""
        referenced: List[str] = []
        for fk in self.foreign_keys:
            if fk.references_table != self.table_name and fk.references_table not in referenced:
                referenced.append(fk.references_table)
        return referenced

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "owning_feature": self.owning_feature,
            "verified": self.verified,
            "accessor": self.accessor,
            "primary_key": list(self.primary_key),
            "columns": [c.to_dict() for c in self.columns],
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
            "indexes": [i.to_dict() for i in self.indexes],
            "source": self.source.value,
            "template": self.template,
            "template_missing": self.template_missing,
            "warning": self.warning,
        }
