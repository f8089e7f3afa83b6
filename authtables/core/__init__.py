"""
Core AUTHTABLES components.

Feature registration, configured instances, dialect capabilities and the
structural records shared by discovery, generation and the table guard.
"""

from .configuration import AuthConfiguration, CapabilityRegistry
from .dialects import (Dialect, dialect_for, dialect_from_engine,
                       normalize_dialect_name, resolve_dialect)
from .features import (FEATURE_DEFINITION_SCHEMA, FEATURE_MANIFEST_SCHEMA,
                       FeatureDescriptor, FeatureRegistry, default_registry,
                       format_table_name, validate_feature_definition)
from .models import (ColumnSpec, ForeignKeySpec, IndexSpec, TableDescriptor,
                     TableSource)

__all__ = [
    # Configuration
    "AuthConfiguration",
    "CapabilityRegistry",
    # Dialects
    "Dialect",
    "dialect_for",
    "dialect_from_engine",
    "normalize_dialect_name",
    "resolve_dialect",
    # Features
    "FeatureDescriptor",
    "FeatureRegistry",
    "default_registry",
    "format_table_name",
    "validate_feature_definition",
    "FEATURE_DEFINITION_SCHEMA",
    "FEATURE_MANIFEST_SCHEMA",
    # Records
    "ColumnSpec",
    "ForeignKeySpec",
    "IndexSpec",
    "TableDescriptor",
    "TableSource",
]
