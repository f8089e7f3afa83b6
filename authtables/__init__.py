"""
AUTHTABLES - schema discovery and migration synthesis for auth features

Discovers the tables a configured set of authentication features requires,
orders them into safe create/drop plans, synthesizes idempotent DDL for
PostgreSQL, MySQL and SQLite, and guards application boot against missing
tables.
"""

# Configuration
from .config import TableGuardConfig
# Core
from .core import (AuthConfiguration, CapabilityRegistry, Dialect,
                   FeatureDescriptor, FeatureRegistry, TableDescriptor,
                   default_registry, dialect_for)
# Discovery
from .discovery import (TemplateInspector, discover_tables, extract_tables,
                        infer_feature_from_accessor, table_information)
# Errors
from .exceptions import (AuthTablesError, ConfigurationError, DiscoveryError,
                         GenerationError, TemplateRenderError)
# Generation
from .generation import (MigrationGenerator, MigrationPlan, SchemaSynthesizer,
                         generate_migration)
# Table guard
from .guard import (PolicyDecision, PolicyOutcome, TableGuard, TableState,
                    enforce_decision, halt_process, run_table_guard)

__version__ = "0.1.0"

__all__ = [
    # Core
    "AuthConfiguration",
    "CapabilityRegistry",
    "Dialect",
    "FeatureDescriptor",
    "FeatureRegistry",
    "TableDescriptor",
    "default_registry",
    "dialect_for",
    # Discovery
    "TemplateInspector",
    "discover_tables",
    "extract_tables",
    "infer_feature_from_accessor",
    "table_information",
    # Generation
    "MigrationGenerator",
    "MigrationPlan",
    "SchemaSynthesizer",
    "generate_migration",
    # Table guard
    "TableGuard",
    "TableGuardConfig",
    "PolicyDecision",
    "PolicyOutcome",
    "TableState",
    "enforce_decision",
    "halt_process",
    "run_table_guard",
    # Errors
    "AuthTablesError",
    "ConfigurationError",
    "DiscoveryError",
    "GenerationError",
    "TemplateRenderError",
]
