"""
Configuration management for AUTHTABLES.

``TableGuardConfig`` holds the presence policy settings of the table guard.
It can be built directly or from environment variables, and validates its
values on construction.
"""

import os
from typing import Any, Callable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (DEFAULT_GUARD_LOGGER, DEFAULT_MIGRATION_PATH,
                        DESTRUCTIVE_SEQUEL_MODES, GUARD_MODES,
                        INACTIVE_GUARD_MODES, NON_PRODUCTION_ENVIRONMENTS,
                        SCHEMA_WIDE_SEQUEL_MODES, SEQUEL_MODES)
from .core.dialects import normalize_dialect_name
from .exceptions import ConfigurationError

GuardMode = Union[str, Callable[..., Any], None]


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class TableGuardConfig(BaseModel):
    """
    Table guard configuration.

    Example:
        # Using environment variables
        config = TableGuardConfig.from_env()

        # Or direct values
        config = TableGuardConfig(mode="raise", sequel_mode="migration")

        # Or a custom handler
        config = TableGuardConfig(mode=lambda missing: "continue")
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    mode: GuardMode = Field(
        None,
        description="silent, skip, warn, error, raise, halt, exit or a callable handler",
    )
    sequel_mode: Optional[str] = Field(
        None, description="log, migration, create, sync, recreate or drop"
    )
    skip_tables: List[str] = Field(
        default_factory=list, description="Table names never reported as missing"
    )
    migration_path: str = Field(
        DEFAULT_MIGRATION_PATH, description="Directory receiving migration files"
    )
    logger_name: str = Field(DEFAULT_GUARD_LOGGER, description="Logger used by the guard")
    environment: Optional[str] = Field(
        None, description="Application environment (development, test, production...)"
    )
    dialect: Optional[str] = Field(
        None, description="Planning dialect when no engine is available"
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _check_mode(cls, value: Any) -> Any:
        if value is None or callable(value):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if not normalized:
                return None
            if normalized in GUARD_MODES:
                return normalized
        raise ConfigurationError(
            f"Invalid table guard mode: {value!r} "
            f"(expected one of {', '.join(GUARD_MODES)} or a callable)",
            config_key="mode",
            config_value=value,
        )

    @field_validator("sequel_mode", mode="before")
    @classmethod
    def _check_sequel_mode(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        normalized = str(value).strip().lower()
        if not normalized:
            return None
        if normalized not in SEQUEL_MODES:
            raise ConfigurationError(
                f"Invalid sequel mode: {value!r} (expected one of {', '.join(SEQUEL_MODES)})",
                config_key="sequel_mode",
                config_value=value,
            )
        return normalized

    @field_validator("skip_tables", mode="before")
    @classmethod
    def _check_skip_tables(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return _split_list(value)
        return [str(v) for v in value]

    @field_validator("dialect", mode="before")
    @classmethod
    def _check_dialect(cls, value: Any) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return normalize_dialect_name(value)

    @classmethod
    def from_env(cls, **overrides: Any) -> "TableGuardConfig":
        """
        Build a configuration from environment variables.

        Reads ``TABLE_GUARD_MODE``, ``TABLE_GUARD_SEQUEL_MODE``,
        ``TABLE_GUARD_SKIP_TABLES`` (comma separated),
        ``TABLE_GUARD_MIGRATION_PATH``, ``TABLE_GUARD_LOGGER``,
        ``AUTHTABLES_ENV`` (falling back to ``APP_ENV``) and
        ``AUTHTABLES_DIALECT``. Keyword arguments override the environment.
        """
        values: dict = {
            "mode": os.getenv("TABLE_GUARD_MODE") or None,
            "sequel_mode": os.getenv("TABLE_GUARD_SEQUEL_MODE") or None,
            "skip_tables": os.getenv("TABLE_GUARD_SKIP_TABLES", ""),
            "migration_path": os.getenv("TABLE_GUARD_MIGRATION_PATH", DEFAULT_MIGRATION_PATH),
            "logger_name": os.getenv("TABLE_GUARD_LOGGER", DEFAULT_GUARD_LOGGER),
            "environment": os.getenv("AUTHTABLES_ENV") or os.getenv("APP_ENV") or None,
            "dialect": os.getenv("AUTHTABLES_DIALECT") or None,
        }
        values.update(overrides)
        return cls(**values)

    @property
    def validation_enabled(self) -> bool:
        """Whether missing tables are reported (mode set and not silent/skip)."""
        return self.mode is not None and self.mode not in INACTIVE_GUARD_MODES

    @property
    def active(self) -> bool:
        """Whether the guard runs discovery at all."""
        return self.validation_enabled or self.sequel_mode is not None

    def effective_environment(self) -> str:
        """Configured environment, else ``AUTHTABLES_ENV``/``APP_ENV``, else ''."""
        return self.environment or os.getenv("AUTHTABLES_ENV") or os.getenv("APP_ENV") or ""

    def allows_destructive(self) -> bool:
        """Whether sync/recreate/drop side actions may run in this environment."""
        environment = self.effective_environment().lower()
        return any(environment.startswith(name) for name in NON_PRODUCTION_ENVIRONMENTS)

    def is_destructive(self) -> bool:
        return self.sequel_mode in DESTRUCTIVE_SEQUEL_MODES

    def is_schema_wide(self) -> bool:
        """Whether the side action covers every required table (recreate, drop)."""
        return self.sequel_mode in SCHEMA_WIDE_SEQUEL_MODES
