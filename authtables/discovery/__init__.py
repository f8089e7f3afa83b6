"""
Table discovery for AUTHTABLES.

Two complementary sources: accessor based discovery over a configured
instance, and template based discovery rendering feature DDL templates.
"""

from .ddl import parse_ddl, statement_target, table_names_in
from .table_inspector import (accessor_for_table, accessor_pairs,
                              discover_tables, enabled_features,
                              infer_feature_from_accessor, registry_of,
                              table_information)
from .template_inspector import (TemplateInspector, all_tables_for_features,
                                 describe_tables, extract_tables,
                                 template_exists)
from .templates import (BUILTIN_TEMPLATE_DIR, TemplateStore, build_context,
                        get_template_store, split_statements)

__all__ = [
    # Accessor discovery
    "accessor_for_table",
    "accessor_pairs",
    "discover_tables",
    "enabled_features",
    "infer_feature_from_accessor",
    "registry_of",
    "table_information",
    # Template discovery
    "TemplateInspector",
    "all_tables_for_features",
    "describe_tables",
    "extract_tables",
    "template_exists",
    # Templates
    "BUILTIN_TEMPLATE_DIR",
    "TemplateStore",
    "build_context",
    "get_template_store",
    "split_statements",
    # DDL parsing
    "parse_ddl",
    "statement_target",
    "table_names_in",
]
