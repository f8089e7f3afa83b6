"""
Constants for AUTHTABLES.

This module contains all shared constants used across the codebase to avoid
magic strings and improve maintainability.
"""

from typing import Final

# ============================================================================
# NAMING CONSTANTS
# ============================================================================

DEFAULT_TABLE_PREFIX: Final[str] = "account"
"""Default singular table prefix (tables become ``accounts``, ``account_otp_keys``...)."""

TABLE_ACCESSOR_SUFFIX: Final[str] = "_table"
"""Suffix shared by every table accessor member (``otp_keys_table``...)."""

BASE_FEATURE: Final[str] = "base"
"""Name of the feature owning the primary identity table."""

PRIMARY_ACCESSOR: Final[str] = "accounts_table"
"""Accessor exposing the primary identity table name."""

# ============================================================================
# DIALECT CONSTANTS
# ============================================================================

DIALECT_POSTGRES: Final[str] = "postgres"
DIALECT_MYSQL: Final[str] = "mysql"
DIALECT_SQLITE: Final[str] = "sqlite"

SUPPORTED_DIALECTS: Final[tuple[str, ...]] = (
    DIALECT_POSTGRES,
    DIALECT_MYSQL,
    DIALECT_SQLITE,
)
"""Database engines the templates know how to target."""

DEFAULT_DIALECT: Final[str] = DIALECT_POSTGRES
"""Dialect assumed when no live connection is available."""

DIALECT_ALIASES: Final[dict[str, str]] = {
    "postgres": DIALECT_POSTGRES,
    "postgresql": DIALECT_POSTGRES,
    "psql": DIALECT_POSTGRES,
    "mysql": DIALECT_MYSQL,
    "mysql2": DIALECT_MYSQL,
    "mariadb": DIALECT_MYSQL,
    "sqlite": DIALECT_SQLITE,
    "sqlite3": DIALECT_SQLITE,
}
"""Adapter and driver names mapped to the canonical dialect name."""

PARTIAL_INDEX_DIALECTS: Final[tuple[str, ...]] = (DIALECT_POSTGRES, DIALECT_SQLITE)
"""Dialects supporting ``CREATE INDEX ... WHERE``."""

CITEXT_DIALECTS: Final[tuple[str, ...]] = (DIALECT_POSTGRES,)
"""Dialects providing a case-insensitive text type."""

CASCADE_DIALECTS: Final[tuple[str, ...]] = (DIALECT_POSTGRES, DIALECT_MYSQL)
"""Dialects accepting ``DROP TABLE ... CASCADE``."""

# ============================================================================
# TEMPLATE CONSTANTS
# ============================================================================

TEMPLATE_SUFFIX: Final[str] = ".sql.j2"
"""File suffix of DDL templates (``<feature>.sql.j2``)."""

# ============================================================================
# TABLE GUARD CONSTANTS
# ============================================================================

GUARD_MODE_SILENT: Final[str] = "silent"
GUARD_MODE_SKIP: Final[str] = "skip"
GUARD_MODE_WARN: Final[str] = "warn"
GUARD_MODE_ERROR: Final[str] = "error"
GUARD_MODE_RAISE: Final[str] = "raise"
GUARD_MODE_HALT: Final[str] = "halt"
GUARD_MODE_EXIT: Final[str] = "exit"

GUARD_MODES: Final[tuple[str, ...]] = (
    GUARD_MODE_SILENT,
    GUARD_MODE_SKIP,
    GUARD_MODE_WARN,
    GUARD_MODE_ERROR,
    GUARD_MODE_RAISE,
    GUARD_MODE_HALT,
    GUARD_MODE_EXIT,
)
"""Accepted string values for ``TableGuardConfig.mode``."""

INACTIVE_GUARD_MODES: Final[tuple[str, ...]] = (GUARD_MODE_SILENT, GUARD_MODE_SKIP)
"""Modes that disable validation messages."""

SEQUEL_MODE_LOG: Final[str] = "log"
SEQUEL_MODE_MIGRATION: Final[str] = "migration"
SEQUEL_MODE_CREATE: Final[str] = "create"
SEQUEL_MODE_SYNC: Final[str] = "sync"
SEQUEL_MODE_RECREATE: Final[str] = "recreate"
SEQUEL_MODE_DROP: Final[str] = "drop"

SEQUEL_MODES: Final[tuple[str, ...]] = (
    SEQUEL_MODE_LOG,
    SEQUEL_MODE_MIGRATION,
    SEQUEL_MODE_CREATE,
    SEQUEL_MODE_SYNC,
    SEQUEL_MODE_RECREATE,
    SEQUEL_MODE_DROP,
)
"""Accepted values for ``TableGuardConfig.sequel_mode``."""

DESTRUCTIVE_SEQUEL_MODES: Final[tuple[str, ...]] = (
    SEQUEL_MODE_SYNC,
    SEQUEL_MODE_RECREATE,
    SEQUEL_MODE_DROP,
)
"""Side actions that drop tables and are refused outside non-production environments."""

SCHEMA_WIDE_SEQUEL_MODES: Final[tuple[str, ...]] = (SEQUEL_MODE_RECREATE, SEQUEL_MODE_DROP)
"""Side actions covering every required table; they run even when nothing is missing."""

MIGRATION_TRACKING_TABLES: Final[tuple[str, ...]] = (
    "alembic_version",
    "schema_info",
    "schema_migrations",
)
"""Migration bookkeeping tables dropped by the ``drop`` side action."""

NON_PRODUCTION_ENVIRONMENTS: Final[tuple[str, ...]] = ("dev", "development", "test")
"""Environment name prefixes in which destructive side actions are allowed."""

DEFAULT_MIGRATION_PATH: Final[str] = "db/migrate"
"""Directory receiving generated migration files."""

MIGRATION_TIMESTAMP_FORMAT: Final[str] = "%Y%m%d%H%M%S"
"""strftime format of the migration file name prefix."""

DEFAULT_GUARD_LOGGER: Final[str] = "authtables.guard"
"""Logger name used by the table guard when none is configured."""

HALT_EXIT_CODE: Final[int] = 1
"""Process exit status requested by the ``halt`` outcome."""

# ============================================================================
# COLUMN INFERENCE CONSTANTS
# ============================================================================

DEFAULT_STRING_LENGTH: Final[int] = 255
"""Length of inferred and templated VARCHAR columns."""
