"""
Rendered DDL parser.

Turns the ``CREATE TABLE`` / ``CREATE INDEX`` statements produced by the
templates into ``TableDescriptor`` records. Only the subset of SQL the
templates emit is understood; anything else is ignored.

This module is part of AUTHTABLES.
"""

import re
from typing import Dict, List, Optional

from ..core.models import (ColumnSpec, ForeignKeySpec, IndexSpec,
                           TableDescriptor, TableSource)
from .templates import split_statements

_IDENT = r"[`\"]?(\w+)[`\"]?"

CREATE_TABLE_PATTERN = re.compile(
    r"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?" + _IDENT,
    re.IGNORECASE,
)
_CREATE_TABLE_STATEMENT = re.compile(
    r"^\s*CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?" + _IDENT + r"\s*\((.*)\)\s*$",
    re.IGNORECASE | re.DOTALL,
)
_CREATE_INDEX_STATEMENT = re.compile(
    r"^\s*CREATE\s+(UNIQUE\s+)?INDEX\s+(?:IF\s+NOT\s+EXISTS\s+)?" + _IDENT
    + r"\s+ON\s+" + _IDENT + r"\s*\(([^)]*)\)(?:\s+WHERE\s+(.+))?\s*$",
    re.IGNORECASE | re.DOTALL,
)
_PRIMARY_KEY = re.compile(r"^PRIMARY\s+KEY\s*\(([^)]*)\)", re.IGNORECASE)
_FOREIGN_KEY = re.compile(
    r"^FOREIGN\s+KEY\s*\(([^)]*)\)\s*REFERENCES\s+" + _IDENT + r"\s*(?:\(([^)]*)\))?",
    re.IGNORECASE,
)
_INLINE_INDEX = re.compile(
    r"^(UNIQUE\s+)?(?:KEY|INDEX)\s+" + _IDENT + r"\s*\(([^)]*)\)", re.IGNORECASE
)
_CONSTRAINT_PREFIX = re.compile(r"^CONSTRAINT\s+" + _IDENT + r"\s+", re.IGNORECASE)
_COLUMN_TYPE = re.compile(r"^(\w+(?:\s*\([^)]*\))?)")
_DEFAULT = re.compile(r"\bDEFAULT\s+('(?:[^']|'')*'|\S+)", re.IGNORECASE)
_INLINE_REFERENCES = re.compile(
    r"\bREFERENCES\s+" + _IDENT + r"\s*(?:\(([^)]*)\))?", re.IGNORECASE
)
_INSERT_STATEMENT = re.compile(
    r"^\s*INSERT\s+(?:IGNORE\s+|OR\s+IGNORE\s+)?INTO\s+" + _IDENT, re.IGNORECASE
)


def table_names_in(sql: str) -> List[str]:
    """Every table named in a ``CREATE TABLE`` statement, first-seen order."""
    names: List[str] = []
    for match in CREATE_TABLE_PATTERN.finditer(sql):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def _split_top_level(body: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    quoted = False
    for char in body:
        if char == "'":
            quoted = not quoted
        elif not quoted and char == "(":
            depth += 1
        elif not quoted and char == ")":
            depth -= 1
        if char == "," and depth == 0 and not quoted:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


def _column_list(text: str) -> List[str]:
    return [c.strip().strip('`"') for c in text.split(",") if c.strip()]


def _parse_column(definition: str) -> Optional[ColumnSpec]:
    match = re.match(_IDENT + r"\s+(.*)$", definition, re.DOTALL)
    if not match:
        return None
    name, rest = match.group(1), match.group(2).strip()
    type_match = _COLUMN_TYPE.match(rest)
    column_type = re.sub(r"\s+", "", type_match.group(1)).upper() if type_match else ""
    upper = rest.upper()
    primary_key = "PRIMARY KEY" in upper
    default_match = _DEFAULT.search(rest)
    references_match = _INLINE_REFERENCES.search(rest)
    return ColumnSpec(
        name=name,
        type=column_type,
        nullable=not (primary_key or "NOT NULL" in upper),
        default=default_match.group(1) if default_match else None,
        primary_key=primary_key,
        references=references_match.group(1) if references_match else None,
    )


def _parse_create_table(name: str, body: str) -> TableDescriptor:
    descriptor = TableDescriptor(table_name=name, source=TableSource.TEMPLATED)
    for element in _split_top_level(body):
        element = _CONSTRAINT_PREFIX.sub("", element)

        pk = _PRIMARY_KEY.match(element)
        if pk:
            descriptor.primary_key = _column_list(pk.group(1))
            continue

        fk = _FOREIGN_KEY.match(element)
        if fk:
            descriptor.foreign_keys.append(
                ForeignKeySpec(
                    columns=_column_list(fk.group(1)),
                    references_table=fk.group(2),
                    references_columns=_column_list(fk.group(3) or "id"),
                )
            )
            continue

        index = _INLINE_INDEX.match(element)
        if index:
            descriptor.indexes.append(
                IndexSpec(
                    name=index.group(2),
                    columns=_column_list(index.group(3)),
                    unique=bool(index.group(1)),
                )
            )
            continue

        column = _parse_column(element)
        if column is None:
            continue
        descriptor.columns.append(column)
        if column.primary_key and column.name not in descriptor.primary_key:
            descriptor.primary_key.append(column.name)
        if column.references:
            ref = _INLINE_REFERENCES.search(element)
            descriptor.foreign_keys.append(
                ForeignKeySpec(
                    columns=[column.name],
                    references_table=column.references,
                    references_columns=_column_list(ref.group(2) or "id") if ref else ["id"],
                )
            )

    # Table-level FOREIGN KEY clauses annotate their columns too
    for fk in descriptor.foreign_keys:
        for column_name in fk.columns:
            column = descriptor.column(column_name)
            if column is not None and column.references is None:
                column.references = fk.references_table
    for column_name in descriptor.primary_key:
        column = descriptor.column(column_name)
        if column is not None:
            column.nullable = False
    return descriptor


def parse_ddl(sql: str) -> List[TableDescriptor]:
    """
    Parse rendered DDL into table descriptors.

    Args:
        sql: Rendered template output (one or more statements)

    Returns:
        One descriptor per created table, in statement order, with indexes
        from ``CREATE INDEX`` statements attached to their table
    """
    tables: Dict[str, TableDescriptor] = {}
    for statement in split_statements(sql):
        table_match = _CREATE_TABLE_STATEMENT.match(statement)
        if table_match:
            name = table_match.group(1)
            if name not in tables:
                tables[name] = _parse_create_table(name, table_match.group(2))
            continue

        index_match = _CREATE_INDEX_STATEMENT.match(statement)
        if index_match and index_match.group(3) in tables:
            where = index_match.group(5)
            tables[index_match.group(3)].indexes.append(
                IndexSpec(
                    name=index_match.group(2),
                    columns=_column_list(index_match.group(4)),
                    unique=bool(index_match.group(1)),
                    where=where.strip() if where else None,
                )
            )
    return list(tables.values())


def statement_target(statement: str) -> Optional[str]:
    """
    Table a rendered statement belongs to.

    ``CREATE TABLE``, ``CREATE INDEX ... ON`` and ``INSERT INTO`` statements
    belong to their table; anything else (``CREATE EXTENSION``...) returns None.
    """
    table_match = CREATE_TABLE_PATTERN.match(statement.strip())
    if table_match:
        return table_match.group(1)
    index_match = _CREATE_INDEX_STATEMENT.match(statement)
    if index_match:
        return index_match.group(3)
    insert_match = _INSERT_STATEMENT.match(statement)
    if insert_match:
        return insert_match.group(1)
    return None
