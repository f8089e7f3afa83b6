"""
Column inference fallback.

Used only for required tables whose feature ships no DDL template. Column
types are guessed from column names; descriptors built here are flagged
``source=inferred``.

This module is part of AUTHTABLES.
"""

import logging
from typing import Iterable, List, Optional

from ..constants import DEFAULT_STRING_LENGTH
from ..core.dialects import Dialect
from ..core.models import ColumnSpec, ForeignKeySpec, TableDescriptor, TableSource

logger = logging.getLogger(__name__)

# Column names that must be quoted in DDL
RESERVED_COLUMN_NAMES = frozenset({"key", "order", "group", "user", "number"})


def _id_type(dialect: Dialect) -> str:
    return "INTEGER" if dialect.database_type == "sqlite" else "BIGINT"


def _timestamp_type(dialect: Dialect) -> str:
    return "DATETIME" if dialect.database_type == "mysql" else "TIMESTAMP"


def infer_column(
    name: str,
    table_name: str,
    primary_table: str,
    prefix: str,
    dialect: Dialect,
) -> ColumnSpec:
    """
    Guess a column definition from its name.

    Rules, first match wins:

    - ``id``: primary key; on any table but the primary one it also
      references the primary table
    - ``<prefix>_id``: required id referencing the primary table
    - ``*_id``: nullable integer
    - ``key``: required string
    - ``*_at``, ``*_deadline``, ``deadline``: timestamp
    - ``num_*``, ``*_count``: integer defaulting to 0
    - anything else: nullable string
    """
    if name == "id":
        return ColumnSpec(
            name=name,
            type=_id_type(dialect),
            nullable=False,
            primary_key=True,
            references=None if table_name == primary_table else primary_table,
        )
    if name == f"{prefix}_id":
        return ColumnSpec(name=name, type=_id_type(dialect), nullable=False, references=primary_table)
    if name.endswith("_id"):
        return ColumnSpec(name=name, type="INTEGER")
    if name == "key":
        return ColumnSpec(name=name, type=f"VARCHAR({DEFAULT_STRING_LENGTH})", nullable=False)
    if name == "deadline" or name.endswith("_at") or name.endswith("_deadline"):
        return ColumnSpec(name=name, type=_timestamp_type(dialect))
    if name.startswith("num_") or name.endswith("_count"):
        return ColumnSpec(name=name, type="INTEGER", nullable=False, default="0")
    return ColumnSpec(name=name, type=f"VARCHAR({DEFAULT_STRING_LENGTH})")


def infer_table(
    table_name: str,
    column_names: Iterable[str],
    primary_table: str,
    prefix: str,
    dialect: Dialect,
    owning_feature: Optional[str] = None,
    accessor: Optional[str] = None,
    verified: bool = True,
) -> TableDescriptor:
    """
    Build an inferred descriptor.

    With no known column names the table gets a single ``id`` column.
    """
    names: List[str] = list(column_names) or ["id"]
    columns = [infer_column(n, table_name, primary_table, prefix, dialect) for n in names]

    descriptor = TableDescriptor(
        table_name=table_name,
        owning_feature=owning_feature,
        verified=verified,
        accessor=accessor,
        columns=columns,
        primary_key=[c.name for c in columns if c.primary_key],
        foreign_keys=[
            ForeignKeySpec(columns=[c.name], references_table=c.references)
            for c in columns
            if c.references
        ],
        source=TableSource.INFERRED,
        template_missing=True,
        warning=f"Structure of '{table_name}' inferred from column names",
    )
    logger.debug(f"Inferred {len(columns)} column(s) for table '{table_name}'")
    return descriptor


def _column_definition(column: ColumnSpec, table: TableDescriptor, dialect: Dialect) -> str:
    name = dialect.quote(column.name) if column.name in RESERVED_COLUMN_NAMES else column.name
    # Autoincrementing id of a standalone table
    if column.primary_key and column.references is None and len(table.primary_key) == 1:
        if dialect.database_type == "postgres":
            return f"{name} BIGSERIAL PRIMARY KEY"
        if dialect.database_type == "mysql":
            return f"{name} BIGINT NOT NULL AUTO_INCREMENT PRIMARY KEY"
        return f"{name} INTEGER PRIMARY KEY AUTOINCREMENT"

    parts = [name, column.type]
    if not column.nullable:
        parts.append("NOT NULL")
    if column.default is not None:
        parts.append(f"DEFAULT {column.default}")
    if column.primary_key and len(table.primary_key) == 1:
        parts.append("PRIMARY KEY")
    return " ".join(parts)


def render_table(table: TableDescriptor, dialect: Dialect) -> str:
    """``CREATE TABLE IF NOT EXISTS`` statement (with semicolon) for a descriptor."""
    lines = [_column_definition(c, table, dialect) for c in table.columns]
    if len(table.primary_key) > 1:
        lines.append(f"PRIMARY KEY ({', '.join(table.primary_key)})")
    for fk in table.foreign_keys:
        lines.append(
            f"FOREIGN KEY ({', '.join(fk.columns)}) REFERENCES "
            f"{fk.references_table} ({', '.join(fk.references_columns)})"
        )
    body = ",\n".join(f"    {line}" for line in lines)
    return f"CREATE TABLE IF NOT EXISTS {table.table_name} (\n{body}\n);"
