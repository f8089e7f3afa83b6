"""
Template based table discovery.

Accessor discovery only sees tables somebody exposes an accessor for. A
feature's DDL template is the exhaustive source: rendering it against a
planning context (no database needed) reveals every table it creates,
including lookup tables such as ``account_statuses``.

Render failures never escape discovery: they are logged as warnings and the
feature contributes no tables.

This module is part of AUTHTABLES.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..constants import DEFAULT_TABLE_PREFIX
from ..core.dialects import Dialect, dialect_for
from ..core.features import FeatureRegistry, default_registry
from ..core.models import TableDescriptor
from ..exceptions import TemplateRenderError
from .ddl import parse_ddl, table_names_in
from .table_inspector import discover_tables, registry_of
from .templates import TemplateStore, build_context, get_template_store

logger = logging.getLogger(__name__)

DialectLike = Union[str, Dialect, None]


class TemplateInspector:
    """
    Renders feature templates to find the tables they create.

    Example:
        inspector = TemplateInspector.for_instance(config)
        inspector.extract_tables("otp", "account", "postgres")
        # ["account_otp_keys"]
    """

    def __init__(
        self,
        registry: Optional[FeatureRegistry] = None,
        template_dirs: Optional[Iterable[Union[str, Path]]] = None,
        table_names: Optional[Mapping[str, str]] = None,
        store: Optional[TemplateStore] = None,
    ) -> None:
        """
        Initialize the inspector.

        Args:
            registry: Feature registry (defaults to the built-in registry)
            template_dirs: Extra template directories searched first
            table_names: Accessor -> table name overrides placed into the
                ``tables`` context on top of the registry defaults
            store: Template store to use instead of the shared one
        """
        self.registry = registry if registry is not None else default_registry
        self.store = store if store is not None else get_template_store(template_dirs)
        self.table_names: Dict[str, str] = dict(table_names or {})

    @classmethod
    def for_instance(cls, instance: Any) -> "TemplateInspector":
        """Inspector bound to a configured instance's registry, templates and names."""
        return cls(
            registry=registry_of(instance),
            template_dirs=getattr(instance, "template_dirs", None),
            table_names=discover_tables(instance),
        )

    def template_name(self, feature: str) -> Optional[str]:
        descriptor = self.registry.get(feature)
        return descriptor.template if descriptor is not None else None

    def template_exists(self, feature: str) -> bool:
        """Whether the feature ships a template that can be loaded."""
        return self.store.exists(self.template_name(feature))

    def tables_context(self, prefix: str) -> Dict[str, str]:
        """Accessor -> table name for every registered feature at ``prefix``."""
        tables: Dict[str, str] = {}
        for descriptor in self.registry:
            tables.update(descriptor.default_table_names(prefix))
        tables.update(self.table_names)
        return tables

    def render(
        self,
        feature: str,
        prefix: str = DEFAULT_TABLE_PREFIX,
        dialect: DialectLike = None,
    ) -> str:
        """
        Render a feature's template.

        Raises:
            TemplateRenderError: If the feature has no template or rendering fails
        """
        template = self.template_name(feature)
        if not template:
            raise TemplateRenderError(
                f"Feature '{feature}' has no DDL template", feature=feature
            )
        context = build_context(prefix, dialect_for(dialect), self.tables_context(prefix))
        return self.store.render(template, context, feature=feature)

    def extract_tables(
        self,
        feature: str,
        prefix: str = DEFAULT_TABLE_PREFIX,
        dialect: DialectLike = None,
    ) -> List[str]:
        """
        Tables created by a feature's template, in first-seen order.

        Returns [] (with a warning log) when the template is missing or
        cannot be rendered.
        """
        try:
            sql = self.render(feature, prefix, dialect)
        except TemplateRenderError as e:
            logger.warning(f"Unable to extract tables for feature '{feature}': {e}")
            return []
        return table_names_in(sql)

    def all_tables_for_features(
        self,
        features: Iterable[str],
        prefix: str = DEFAULT_TABLE_PREFIX,
        dialect: DialectLike = None,
    ) -> List[str]:
        """Union of ``extract_tables`` over features, de-duplicated, first-seen order."""
        tables: List[str] = []
        for feature in features:
            for table in self.extract_tables(feature, prefix, dialect):
                if table not in tables:
                    tables.append(table)
        return tables

    def describe_tables(
        self,
        feature: str,
        prefix: str = DEFAULT_TABLE_PREFIX,
        dialect: DialectLike = None,
    ) -> List[TableDescriptor]:
        """
        Structural descriptors of the tables a feature's template creates.

        Returns [] (with a warning log) on render failure.
        """
        try:
            sql = self.render(feature, prefix, dialect)
        except TemplateRenderError as e:
            logger.warning(f"Unable to describe tables for feature '{feature}': {e}")
            return []

        accessors = {name: accessor for accessor, name in self.tables_context(prefix).items()}
        descriptor = self.registry.get(feature)
        own_accessors = set(descriptor.tables) if descriptor is not None else set()

        tables = parse_ddl(sql)
        for table in tables:
            table.owning_feature = feature
            table.verified = True
            table.template = self.template_name(feature)
            accessor = accessors.get(table.table_name)
            # Only report accessors the feature itself declares
            table.accessor = accessor if accessor in own_accessors else None
        return tables


def extract_tables(
    feature: str,
    prefix: str = DEFAULT_TABLE_PREFIX,
    dialect: DialectLike = None,
    registry: Optional[FeatureRegistry] = None,
    template_dirs: Optional[Iterable[Union[str, Path]]] = None,
) -> List[str]:
    """Module level shortcut for ``TemplateInspector.extract_tables``."""
    return TemplateInspector(registry, template_dirs).extract_tables(feature, prefix, dialect)


def all_tables_for_features(
    features: Iterable[str],
    prefix: str = DEFAULT_TABLE_PREFIX,
    dialect: DialectLike = None,
    registry: Optional[FeatureRegistry] = None,
    template_dirs: Optional[Iterable[Union[str, Path]]] = None,
) -> List[str]:
    """Module level shortcut for ``TemplateInspector.all_tables_for_features``."""
    return TemplateInspector(registry, template_dirs).all_tables_for_features(
        features, prefix, dialect
    )


def describe_tables(
    feature: str,
    prefix: str = DEFAULT_TABLE_PREFIX,
    dialect: DialectLike = None,
    registry: Optional[FeatureRegistry] = None,
    template_dirs: Optional[Iterable[Union[str, Path]]] = None,
) -> List[TableDescriptor]:
    """Module level shortcut for ``TemplateInspector.describe_tables``."""
    return TemplateInspector(registry, template_dirs).describe_tables(feature, prefix, dialect)


def template_exists(
    feature: str,
    registry: Optional[FeatureRegistry] = None,
    template_dirs: Optional[Iterable[Union[str, Path]]] = None,
) -> bool:
    """Module level shortcut for ``TemplateInspector.template_exists``."""
    return TemplateInspector(registry, template_dirs).template_exists(feature)
