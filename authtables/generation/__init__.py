"""
DDL generation for AUTHTABLES.

Feature migrations, ordered migration plans, the schema synthesizer and the
column inference fallback.
"""

from .inference import infer_column, infer_table, render_table
from .migration import MigrationGenerator
from .plan import (MigrationPlan, order_tables_for_create,
                   order_tables_for_drop, table_tier)
from .synthesizer import SchemaSynthesizer, generate_migration

__all__ = [
    "MigrationGenerator",
    "MigrationPlan",
    "SchemaSynthesizer",
    "generate_migration",
    "order_tables_for_create",
    "order_tables_for_drop",
    "table_tier",
    "infer_column",
    "infer_table",
    "render_table",
]
