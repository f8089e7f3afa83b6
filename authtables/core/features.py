"""
Feature registration table.

Every optional authentication capability ("feature") registers, once at
module load, the table accessors it defines, the DDL template it ships and
the features it depends on. Table ownership is decided by exact membership
in this table, never by guessing from accessor names.

Table name patterns may use two placeholders:

- ``{prefix}``: the singular table prefix (``account``)
- ``{plural}``: the pluralized prefix (``accounts``)

This module is part of AUTHTABLES.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import (Any, Dict, Iterable, Iterator, List, Mapping, Optional,
                    Tuple, Union)

from jsonschema import SchemaError, ValidationError, validate

from ..constants import BASE_FEATURE, TEMPLATE_SUFFIX
from ..exceptions import ConfigurationError
from ..utils import pluralize
from .types import FeatureDefinitionDict

logger = logging.getLogger(__name__)

# Marker for "use <feature>.sql.j2"
_DEFAULT_TEMPLATE = object()

FEATURE_DEFINITION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {
            "type": "string",
            "pattern": "^[a-z][a-z0-9_]*$",
            "description": "Feature name (lowercase identifier)",
        },
        "tables": {
            "type": "object",
            "propertyNames": {"pattern": "^[a-z][a-z0-9_]*_table$"},
            "additionalProperties": {"type": "string", "minLength": 1},
            "description": "Accessor name -> table name pattern",
        },
        "template": {
            "type": ["string", "null"],
            "description": "DDL template file name, or null when none is shipped",
        },
        "depends_on": {
            "type": "array",
            "items": {"type": "string"},
            "uniqueItems": True,
            "description": "Features whose tables must exist first",
        },
        "columns": {
            "type": "object",
            "additionalProperties": {
                "type": "array",
                "items": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
            },
            "description": "Table name pattern -> column names, used when no template exists",
        },
    },
    "required": ["name"],
    "additionalProperties": False,
}

FEATURE_MANIFEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "features": {"type": "array", "items": FEATURE_DEFINITION_SCHEMA},
    },
    "required": ["features"],
}


def format_table_name(pattern: str, prefix: str) -> str:
    """Expand a table name pattern for a prefix."""
    return pattern.format(prefix=prefix, plural=pluralize(prefix))


@dataclass(frozen=True)
class FeatureDescriptor:
    """Immutable registration of one feature."""

    name: str
    tables: Mapping[str, str] = field(default_factory=dict)
    template: Optional[str] = None
    depends_on: Tuple[str, ...] = ()
    columns: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def defines_accessor(self, accessor: str) -> bool:
        """Whether this feature itself declares ``accessor``."""
        return accessor in self.tables

    def table_name(self, accessor: str, prefix: str) -> str:
        """Default table name for one of this feature's accessors."""
        return format_table_name(self.tables[accessor], prefix)

    def default_table_names(self, prefix: str) -> Dict[str, str]:
        """Accessor -> default table name for every accessor of the feature."""
        return {accessor: format_table_name(p, prefix) for accessor, p in self.tables.items()}

    def column_names(self, table_name: str, prefix: str) -> Tuple[str, ...]:
        """Registered column names for a (resolved) table name, if any."""
        for pattern, names in self.columns.items():
            if format_table_name(pattern, prefix) == table_name:
                return names
        return ()


def validate_feature_definition(
    definition: Dict[str, Any],
) -> Tuple[bool, Optional[str], Optional[List[str]]]:
    """
    Validate a feature definition against the registration schema.

    Args:
        definition: Feature definition dictionary

    Returns:
        Tuple of (is_valid, error_message, error_paths)
    """
    try:
        validate(instance=definition, schema=FEATURE_DEFINITION_SCHEMA)
    except ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path) or "<root>"
        return False, f"Invalid feature definition at '{path}': {e.message}", [path]
    except SchemaError as e:
        logger.error(f"Feature definition schema is invalid: {e}", exc_info=True)
        return False, f"Schema error: {e.message}", None
    return True, None, None


class FeatureRegistry:
    """
    Registration table of known features.

    Registration order is significant: it is the tie-breaking order used
    when features are rendered into a migration.
    """

    def __init__(self) -> None:
        self._features: Dict[str, FeatureDescriptor] = {}

    def register(
        self,
        name: str,
        tables: Optional[Mapping[str, str]] = None,
        template: Any = _DEFAULT_TEMPLATE,
        depends_on: Iterable[str] = (),
        columns: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> FeatureDescriptor:
        """
        Register a feature.

        Args:
            name: Feature name
            tables: Accessor name -> table name pattern
            template: Template file name; defaults to ``<name>.sql.j2``,
                pass None when the feature ships no template
            depends_on: Features that must be created first
            columns: Table name pattern -> column names, used by the
                inference fallback when no template exists

        Returns:
            The registered descriptor

        Raises:
            ConfigurationError: If the definition is invalid, the feature is
                already registered or a dependency is unknown
        """
        if template is _DEFAULT_TEMPLATE:
            template = f"{name}{TEMPLATE_SUFFIX}"

        definition: Dict[str, Any] = {
            "name": name,
            "tables": dict(tables or {}),
            "template": template,
            "depends_on": list(depends_on),
            "columns": {k: list(v) for k, v in (columns or {}).items()},
        }
        return self.register_definition(definition)

    def register_definition(self, definition: FeatureDefinitionDict) -> FeatureDescriptor:
        """Register a feature from a definition dictionary."""
        is_valid, error, error_paths = validate_feature_definition(dict(definition))
        if not is_valid:
            raise ConfigurationError(
                error or "Invalid feature definition",
                config_key="features",
                context={"error_paths": error_paths} if error_paths else None,
            )

        name = definition["name"]
        if name in self._features:
            raise ConfigurationError(
                f"Feature '{name}' is already registered",
                config_key="features",
                config_value=name,
            )

        depends_on = tuple(definition.get("depends_on", ()))
        unknown = [dep for dep in depends_on if dep not in self._features]
        if unknown:
            raise ConfigurationError(
                f"Feature '{name}' depends on unregistered feature(s): {', '.join(unknown)}",
                config_key="depends_on",
                config_value=unknown,
            )

        template = definition.get("template", f"{name}{TEMPLATE_SUFFIX}")
        descriptor = FeatureDescriptor(
            name=name,
            tables=MappingProxyType(dict(definition.get("tables", {}))),
            template=template,
            depends_on=depends_on,
            columns=MappingProxyType(
                {k: tuple(v) for k, v in definition.get("columns", {}).items()}
            ),
        )
        self._features[name] = descriptor
        logger.debug(
            f"Registered feature '{name}' with {len(descriptor.tables)} table accessor(s)"
        )
        return descriptor

    def load_manifest(self, path: Union[str, Path]) -> List[FeatureDescriptor]:
        """
        Register every feature listed in a JSON manifest file.

        The file has the shape ``{"features": [<definition>, ...]}``.

        Raises:
            ConfigurationError: If the file is unreadable or invalid
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                manifest = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Unable to read feature manifest {path}: {e}",
                config_key="feature_manifest",
                config_value=str(path),
            ) from e

        try:
            validate(instance=manifest, schema=FEATURE_MANIFEST_SCHEMA)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid feature manifest {path}: {e.message}",
                config_key="feature_manifest",
                config_value=str(path),
            ) from e

        return [self.register_definition(d) for d in manifest["features"]]

    def get(self, name: str) -> Optional[FeatureDescriptor]:
        return self._features.get(name)

    def __getitem__(self, name: str) -> FeatureDescriptor:
        return self._features[name]

    def __contains__(self, name: object) -> bool:
        return name in self._features

    def __iter__(self) -> Iterator[FeatureDescriptor]:
        return iter(self._features.values())

    def __len__(self) -> int:
        return len(self._features)

    def names(self) -> List[str]:
        return list(self._features)

    def order_index(self, name: str) -> int:
        """Registration position of a feature (unknown features sort last)."""
        try:
            return list(self._features).index(name)
        except ValueError:
            return len(self._features)

    def copy(self) -> "FeatureRegistry":
        """Return an independent registry with the same registrations."""
        clone = FeatureRegistry()
        clone._features = dict(self._features)
        return clone


def _register_builtin_features(registry: FeatureRegistry) -> None:
    registry.register(
        BASE_FEATURE,
        tables={
            "accounts_table": "{plural}",
            "account_password_hash_table": "{prefix}_password_hashes",
        },
    )
    registry.register("remember", tables={"remember_table": "{prefix}_remember_keys"})
    registry.register(
        "verify_account", tables={"verify_account_table": "{prefix}_verification_keys"}
    )
    registry.register(
        "verify_login_change",
        tables={"verify_login_change_table": "{prefix}_login_change_keys"},
    )
    registry.register(
        "reset_password", tables={"reset_password_table": "{prefix}_password_reset_keys"}
    )
    registry.register("email_auth", tables={"email_auth_table": "{prefix}_email_auth_keys"})
    registry.register("otp", tables={"otp_keys_table": "{prefix}_otp_keys"})
    registry.register(
        "otp_unlock",
        tables={"otp_unlock_table": "{prefix}_otp_unlocks"},
        depends_on=["otp"],
    )
    registry.register("sms_codes", tables={"sms_codes_table": "{prefix}_sms_codes"})
    registry.register(
        "recovery_codes", tables={"recovery_codes_table": "{prefix}_recovery_codes"}
    )
    registry.register(
        "webauthn",
        tables={
            "webauthn_user_ids_table": "{prefix}_webauthn_user_ids",
            "webauthn_keys_table": "{prefix}_webauthn_keys",
        },
    )
    registry.register(
        "lockout",
        tables={
            "account_login_failures_table": "{prefix}_login_failures",
            "account_lockouts_table": "{prefix}_lockouts",
        },
    )
    registry.register(
        "active_sessions",
        tables={"active_sessions_table": "{prefix}_active_session_keys"},
    )
    registry.register(
        "audit_logging",
        tables={"audit_logging_table": "{prefix}_authentication_audit_logs"},
    )
    registry.register(
        "jwt_refresh", tables={"jwt_refresh_token_table": "{prefix}_jwt_refresh_keys"}
    )
    registry.register("single_session", tables={"single_session_table": "{prefix}_session_keys"})
    registry.register(
        "account_expiration", tables={"account_activity_table": "{prefix}_activity_times"}
    )
    registry.register(
        "password_expiration",
        tables={"password_expiration_table": "{prefix}_password_change_times"},
    )
    registry.register(
        "disallow_password_reuse",
        tables={"previous_password_hash_table": "{prefix}_previous_password_hashes"},
    )


default_registry = FeatureRegistry()
_register_builtin_features(default_registry)
