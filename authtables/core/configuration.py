"""
Configured auth instance.

``AuthConfiguration`` is the concrete capability registry consumed by table
discovery: it knows which features are enabled and resolves every table
accessor to a table name. Discovery only relies on the two methods of the
``CapabilityRegistry`` protocol, so any object exposing them can stand in.

This module is part of AUTHTABLES.
"""

import logging
from pathlib import Path
from typing import (Any, Callable, Dict, Iterable, List, Mapping, Optional,
                    Protocol, Sequence, Tuple, Union, runtime_checkable)

from ..constants import (BASE_FEATURE, DEFAULT_TABLE_PREFIX,
                         PRIMARY_ACCESSOR, TABLE_ACCESSOR_SUFFIX)
from ..exceptions import ConfigurationError, DiscoveryError
from ..utils import pluralize
from .dialects import Dialect, dialect_for
from .features import FeatureDescriptor, FeatureRegistry, default_registry

logger = logging.getLogger(__name__)

TableNameOverride = Union[str, Callable[["AuthConfiguration"], Any]]


@runtime_checkable
class CapabilityRegistry(Protocol):
    """Introspection surface of a configured auth instance."""

    def enabled_features(self) -> List[str]: ...

    def table_accessors(self) -> List[Tuple[str, Callable[[], Any]]]: ...


class AuthConfiguration:
    """
    A configured set of auth features.

    Example:
        config = AuthConfiguration(
            features=["otp", "remember"],
            prefix="account",
            table_names={"otp_keys_table": "mfa_otp_keys"},
        )
        config.enabled_features()   # ["base", "otp", "remember"]
        config.otp_keys_table       # "mfa_otp_keys"
    """

    def __init__(
        self,
        features: Iterable[str],
        prefix: str = DEFAULT_TABLE_PREFIX,
        table_names: Optional[Mapping[str, TableNameOverride]] = None,
        registry: Optional[FeatureRegistry] = None,
        template_dirs: Optional[Sequence[Union[str, Path]]] = None,
        dialect: Union[str, Dialect, None] = None,
    ) -> None:
        """
        Initialize the configuration.

        Args:
            features: Enabled feature names (``base`` is always enabled when
                the registry defines it)
            prefix: Singular table prefix
            table_names: Accessor -> table name overrides; a callable receives
                this configuration and is evaluated on every lookup
            registry: Feature registry (defaults to the built-in registry)
            template_dirs: Extra template directories searched before the
                built-in templates
            dialect: Planning dialect used when no engine is available

        Raises:
            ConfigurationError: If a feature is unknown or the prefix is empty
        """
        if not prefix or not str(prefix).strip():
            raise ConfigurationError("Table prefix must not be empty", config_key="prefix")

        self.registry = registry if registry is not None else default_registry
        self.prefix = str(prefix)
        self.template_dirs: List[Path] = [Path(d) for d in (template_dirs or [])]
        self.dialect = dialect_for(dialect) if dialect is not None else None
        self._overrides: Dict[str, TableNameOverride] = dict(table_names or {})

        for accessor in self._overrides:
            if not accessor.endswith(TABLE_ACCESSOR_SUFFIX):
                raise ConfigurationError(
                    f"Table accessor names must end with '{TABLE_ACCESSOR_SUFFIX}': {accessor}",
                    config_key="table_names",
                    config_value=accessor,
                )

        enabled: List[str] = []
        if BASE_FEATURE in self.registry:
            enabled.append(BASE_FEATURE)
        for name in features:
            if name not in self.registry:
                raise ConfigurationError(
                    f"Unknown feature: {name}",
                    config_key="features",
                    config_value=name,
                )
            for dependency in self._dependency_chain(name):
                if dependency not in enabled:
                    enabled.append(dependency)
        self._features = enabled

    def _dependency_chain(self, name: str) -> List[str]:
        chain: List[str] = []
        for dependency in self.registry[name].depends_on:
            chain.extend(self._dependency_chain(dependency))
        chain.append(name)
        return chain

    # ------------------------------------------------------------------
    # CapabilityRegistry interface
    # ------------------------------------------------------------------

    def enabled_features(self) -> List[str]:
        """Enabled feature names, dependencies first."""
        return list(self._features)

    def table_accessors(self) -> List[Tuple[str, Callable[[], Any]]]:
        """
        ``(accessor, getter)`` pairs for every enabled feature's accessors,
        followed by overrides for accessors no enabled feature declares.
        """
        accessors: List[str] = []
        for descriptor in self.feature_descriptors():
            for accessor in descriptor.tables:
                if accessor not in accessors:
                    accessors.append(accessor)
        for accessor in self._overrides:
            if accessor not in accessors:
                accessors.append(accessor)
        return [(accessor, self._getter(accessor)) for accessor in accessors]

    def _getter(self, accessor: str) -> Callable[[], Any]:
        return lambda: self.table_name(accessor)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def feature_descriptors(self) -> List[FeatureDescriptor]:
        return [self.registry[name] for name in self._features]

    def table_name(self, accessor: str) -> Any:
        """
        Resolve an accessor to its table name.

        Raises:
            DiscoveryError: If no enabled feature or override defines the accessor
        """
        if accessor in self._overrides:
            override = self._overrides[accessor]
            return override(self) if callable(override) else override
        for descriptor in self.feature_descriptors():
            if descriptor.defines_accessor(accessor):
                return descriptor.table_name(accessor, self.prefix)
        raise DiscoveryError(f"No table accessor named '{accessor}'", accessor=accessor)

    def resolved_table_names(self) -> Dict[str, str]:
        """
        Accessor -> table name for every registered feature, with overrides
        applied. Used as the ``tables`` mapping of template contexts, so
        templates of disabled features still render.
        """
        names: Dict[str, str] = {}
        for descriptor in self.registry:
            names.update(descriptor.default_table_names(self.prefix))
        for accessor, override in self._overrides.items():
            try:
                value = override(self) if callable(override) else override
            except Exception as e:
                logger.debug(f"Table name override for '{accessor}' failed: {e}")
                continue
            if isinstance(value, str):
                names[accessor] = value
        return names

    @property
    def primary_table(self) -> str:
        """Name of the primary identity table."""
        try:
            value = self.table_name(PRIMARY_ACCESSOR)
        except Exception as e:
            logger.debug(f"Primary table accessor unavailable, using prefix: {e}")
            value = None
        return value if isinstance(value, str) else pluralize(self.prefix)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or not name.endswith(TABLE_ACCESSOR_SUFFIX):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        try:
            return self.table_name(name)
        except DiscoveryError as e:
            raise AttributeError(str(e)) from e

    def __dir__(self) -> List[str]:
        return sorted(set(super().__dir__()) | {a for a, _ in self.table_accessors()})

    def __repr__(self) -> str:
        return f"AuthConfiguration(features={self._features!r}, prefix={self.prefix!r})"
