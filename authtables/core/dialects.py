"""
Dialect capability objects.

A ``Dialect`` is the only view of the target database that templates and
generators get. It can be built from a name (planning without a database)
or from a live SQLAlchemy engine.

This module is part of AUTHTABLES.
"""

import logging
from dataclasses import dataclass
from typing import Any, Union

from ..constants import (CASCADE_DIALECTS, CITEXT_DIALECTS, DEFAULT_DIALECT,
                         DIALECT_ALIASES, DIALECT_MYSQL,
                         PARTIAL_INDEX_DIALECTS)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dialect:
    """Capability flags for one database engine."""

    database_type: str
    supports_partial_indexes: bool
    supports_citext: bool
    supports_cascade: bool

    def quote(self, identifier: str) -> str:
        """Quote an identifier that may collide with a reserved word."""
        if self.database_type == DIALECT_MYSQL:
            return f"`{identifier}`"
        return f'"{identifier}"'

    def __str__(self) -> str:
        return self.database_type


def normalize_dialect_name(name: Any) -> str:
    """
    Map an adapter or driver name to a canonical dialect name.

    Args:
        name: Dialect name such as ``postgresql``, ``sqlite3`` or ``mysql``

    Returns:
        One of ``postgres``, ``mysql``, ``sqlite``

    Raises:
        ConfigurationError: If the dialect is not supported
    """
    key = str(name or "").strip().lower()
    # "postgresql+psycopg2" style driver suffixes
    key = key.split("+", 1)[0]
    if key not in DIALECT_ALIASES:
        raise ConfigurationError(
            f"Unsupported database dialect: {name!r}",
            config_key="dialect",
            config_value=name,
        )
    return DIALECT_ALIASES[key]


def dialect_for(name: Union[str, Dialect, None] = None) -> Dialect:
    """Build the capability object for a dialect name (default: postgres)."""
    if isinstance(name, Dialect):
        return name
    database_type = normalize_dialect_name(name or DEFAULT_DIALECT)
    return Dialect(
        database_type=database_type,
        supports_partial_indexes=database_type in PARTIAL_INDEX_DIALECTS,
        supports_citext=database_type in CITEXT_DIALECTS,
        supports_cascade=database_type in CASCADE_DIALECTS,
    )


def dialect_from_engine(engine: Any) -> Dialect:
    """Build the capability object from a SQLAlchemy engine or connection."""
    return dialect_for(engine.dialect.name)


def resolve_dialect(
    engine: Any = None, dialect: Union[str, Dialect, None] = None
) -> Dialect:
    """
    Pick the dialect for a generation pass.

    An explicit ``dialect`` wins, then the engine's dialect, then the default.
    """
    if dialect is not None:
        return dialect_for(dialect)
    if engine is not None:
        try:
            return dialect_from_engine(engine)
        except (AttributeError, ConfigurationError) as e:
            logger.warning(f"Unable to determine dialect from engine, using default: {e}")
    return dialect_for(DEFAULT_DIALECT)
