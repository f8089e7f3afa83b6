"""
Accessor based table discovery.

Maps every table accessor of a configured auth instance to its table name
and attributes each table to the feature owning it. Discovery is total: an
accessor that fails or returns something other than a string is logged at
debug level and left out, the scan always completes.

This module is part of AUTHTABLES.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..constants import TABLE_ACCESSOR_SUFFIX
from ..core.features import FeatureRegistry, default_registry
from ..core.models import TableDescriptor, TableSource
from .templates import get_template_store

logger = logging.getLogger(__name__)

AccessorPair = Tuple[str, Callable[[], Any]]


def _reflected_accessors(instance: Any) -> List[AccessorPair]:
    """Accessor pairs for public members named ``*_table``."""
    pairs: List[AccessorPair] = []
    try:
        names = sorted(dir(instance))
    except Exception as e:
        logger.debug(f"Unable to list members of {type(instance).__name__}: {e}")
        return pairs

    for name in names:
        if name.startswith("_") or not name.endswith(TABLE_ACCESSOR_SUFFIX):
            continue

        def read(member: str = name) -> Any:
            value = getattr(instance, member)
            return value() if callable(value) else value

        pairs.append((name, read))
    return pairs


def accessor_pairs(instance: Any) -> List[AccessorPair]:
    """
    ``(accessor, getter)`` pairs of an instance.

    The explicit ``table_accessors()`` interface is preferred; reflection over
    ``*_table`` members is the fallback for objects that do not provide it.
    """
    explicit = getattr(instance, "table_accessors", None)
    if callable(explicit):
        try:
            return list(explicit())
        except Exception as e:
            logger.debug(f"table_accessors() failed, falling back to reflection: {e}")
    return _reflected_accessors(instance)


def enabled_features(instance: Any) -> List[str]:
    """Enabled feature names of an instance ([] if it cannot tell)."""
    getter = getattr(instance, "enabled_features", None)
    if getter is None:
        return []
    try:
        features = getter() if callable(getter) else getter
        return [str(f) for f in features or []]
    except Exception as e:
        logger.debug(f"Unable to read enabled features: {e}")
        return []


def registry_of(instance: Any) -> FeatureRegistry:
    """Feature registry used by an instance (the built-in one by default)."""
    registry = getattr(instance, "registry", None)
    return registry if isinstance(registry, FeatureRegistry) else default_registry


def discover_tables(instance: Any) -> Dict[str, str]:
    """
    Resolve every table accessor of an instance.

    Args:
        instance: Configured auth instance (any object exposing
            ``table_accessors()`` or ``*_table`` members)

    Returns:
        Accessor name -> table name, in accessor order. Accessors that raise
        or return a non-string are excluded.
    """
    tables: Dict[str, str] = {}
    for accessor, getter in accessor_pairs(instance):
        try:
            value = getter()
        except Exception as e:
            logger.debug(f"Table accessor '{accessor}' failed: {e}")
            continue
        if not isinstance(value, str) or not value:
            logger.debug(
                f"Table accessor '{accessor}' returned {type(value).__name__}, ignoring"
            )
            continue
        tables[accessor] = value
    return tables


def infer_feature_from_accessor(accessor: str, instance: Any) -> Tuple[str, bool]:
    """
    Find the feature owning an accessor.

    Ownership is decided by exact membership of the accessor in an enabled
    feature's registered accessors. When no enabled feature claims it, the
    feature name is derived by stripping the ``_table`` suffix and the
    result is flagged unverified.

    Returns:
        Tuple of (feature_name, verified)
    """
    registry = registry_of(instance)
    for name in enabled_features(instance):
        descriptor = registry.get(name)
        if descriptor is not None and descriptor.defines_accessor(accessor):
            return name, True

    if accessor.endswith(TABLE_ACCESSOR_SUFFIX):
        return accessor[: -len(TABLE_ACCESSOR_SUFFIX)], False
    return accessor, False


def table_information(instance: Any) -> Dict[str, TableDescriptor]:
    """
    Describe every discovered table.

    Returns:
        Accessor name -> ``TableDescriptor`` carrying the table name, owning
        feature, verification flag and template availability
    """
    registry = registry_of(instance)
    store = get_template_store(getattr(instance, "template_dirs", None))
    information: Dict[str, TableDescriptor] = {}

    for accessor, table_name in discover_tables(instance).items():
        feature, verified = infer_feature_from_accessor(accessor, instance)
        descriptor = registry.get(feature)
        template = descriptor.template if descriptor is not None else None
        template_missing = not store.exists(template)

        warnings: List[str] = []
        if not verified:
            warnings.append(
                f"No enabled feature registers '{accessor}'; "
                f"owner '{feature}' was guessed from the accessor name"
            )
        if template_missing:
            warnings.append(f"Feature '{feature}' has no DDL template")

        information[accessor] = TableDescriptor(
            table_name=table_name,
            owning_feature=feature,
            verified=verified,
            accessor=accessor,
            source=TableSource.ACCESSOR,
            template=template,
            template_missing=template_missing,
            warning="; ".join(warnings) if warnings else None,
        )
    return information


def accessor_for_table(table_name: str, instance: Any) -> Optional[str]:
    """Reverse lookup of the accessor exposing a table name."""
    for accessor, name in discover_tables(instance).items():
        if name == table_name:
            return accessor
    return None
