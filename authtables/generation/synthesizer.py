"""
Schema synthesizer.

Given the names of missing tables and a configured auth instance, works out
which features must be rendered, orders every table they create into a
migration plan and produces idempotent DDL: as text, as a migration file,
or executed directly on a SQLAlchemy engine.

Tables whose feature ships no template fall back to column inference.

This module is part of AUTHTABLES.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from ..constants import (BASE_FEATURE, DEFAULT_TABLE_PREFIX,
                         MIGRATION_TIMESTAMP_FORMAT, PRIMARY_ACCESSOR)
from ..core.dialects import Dialect, resolve_dialect
from ..core.models import TableDescriptor, TableSource
from ..discovery.ddl import statement_target
from ..discovery.table_inspector import (discover_tables, enabled_features,
                                         registry_of, table_information)
from ..discovery.template_inspector import TemplateInspector
from ..exceptions import GenerationError
from ..utils import pluralize
from .inference import infer_table, render_table
from .migration import MigrationGenerator
from .plan import MigrationPlan

logger = logging.getLogger(__name__)

AUXILIARY_ACCESSORS = ("account_password_hash_table",)

# (table, feature, template, statement)
PlannedStatement = Tuple[Optional[str], Optional[str], Optional[str], str]


def _table_name_of(entry: Any) -> str:
    if isinstance(entry, TableDescriptor):
        return entry.table_name
    if isinstance(entry, dict):
        return str(entry.get("table") or entry.get("table_name"))
    return str(entry)


class SchemaSynthesizer:
    """
    Builds create/drop plans for missing tables.

    Example:
        synthesizer = SchemaSynthesizer(["accounts", "account_otp_keys"], config)
        print(synthesizer.generate_migration())
        synthesizer.execute_creates(engine)
    """

    def __init__(
        self,
        missing_tables: Iterable[Any],
        configuration: Any,
        engine: Any = None,
        dialect: Union[str, Dialect, None] = None,
    ) -> None:
        """
        Initialize the synthesizer.

        Args:
            missing_tables: Table names (or ``MissingTableDict`` records or
                descriptors) that need to be created
            configuration: Configured auth instance
            engine: Optional SQLAlchemy engine (dialect detection and execution)
            dialect: Explicit dialect, overriding the engine's
        """
        self.missing_tables: List[str] = []
        for entry in missing_tables:
            name = _table_name_of(entry)
            if name not in self.missing_tables:
                self.missing_tables.append(name)

        self.configuration = configuration
        self.engine = engine
        if dialect is None and engine is None:
            dialect = getattr(configuration, "dialect", None)
        self.dialect = resolve_dialect(engine, dialect)
        self.prefix = str(getattr(configuration, "prefix", None) or DEFAULT_TABLE_PREFIX)
        self.registry = registry_of(configuration)
        self.inspector = TemplateInspector.for_instance(configuration)
        self._plan: Optional[MigrationPlan] = None
        self._owners: Optional[Dict[str, str]] = None

    # ------------------------------------------------------------------
    # Table ownership
    # ------------------------------------------------------------------

    @property
    def primary_table(self) -> str:
        primary = getattr(self.configuration, "primary_table", None)
        if isinstance(primary, str):
            return primary
        return discover_tables(self.configuration).get(PRIMARY_ACCESSOR) or pluralize(self.prefix)

    def auxiliary_tables(self) -> List[str]:
        names = self.inspector.tables_context(self.prefix)
        return [names[a] for a in AUXILIARY_ACCESSORS if a in names]

    def table_owners(self) -> Dict[str, str]:
        """
        Table name -> owning feature.

        Verified accessor ownership wins, then tables found by rendering the
        enabled features' templates, then unverified accessor guesses.
        """
        if self._owners is not None:
            return dict(self._owners)
        information = table_information(self.configuration)
        owners: Dict[str, str] = {}
        for descriptor in information.values():
            if descriptor.verified and descriptor.owning_feature:
                owners[descriptor.table_name] = descriptor.owning_feature
        for feature in enabled_features(self.configuration):
            for table in self.inspector.extract_tables(feature, self.prefix, self.dialect):
                owners.setdefault(table, feature)
        for descriptor in information.values():
            if descriptor.owning_feature:
                owners.setdefault(descriptor.table_name, descriptor.owning_feature)
        self._owners = owners
        return dict(owners)

    def features_needed(self) -> List[str]:
        """
        Minimal set of templated features covering the missing tables.

        ``base`` is included whenever the primary table is missing. Order:
        ``base`` first, then dependency order (a feature follows every needed
        feature it depends on), then registration order.
        """
        owners = self.table_owners()
        needed: List[str] = []
        for table in self.missing_tables:
            feature = owners.get(table)
            if feature and feature in self.registry and self.inspector.template_exists(feature):
                if feature not in needed:
                    needed.append(feature)

        if (
            self.primary_table in self.missing_tables
            and BASE_FEATURE in self.registry
            and BASE_FEATURE not in needed
        ):
            needed.append(BASE_FEATURE)

        return self._dependency_order(needed)

    def _dependency_order(self, features: List[str]) -> List[str]:
        pending = sorted(features, key=lambda f: (f != BASE_FEATURE, self.registry.order_index(f)))
        ordered: List[str] = []
        while pending:
            for feature in pending:
                descriptor = self.registry.get(feature)
                depends_on = descriptor.depends_on if descriptor is not None else ()
                if all(dep in ordered or dep not in pending for dep in depends_on):
                    break
            else:
                # Cycle: fall back to the remaining registration order
                ordered.extend(pending)
                break
            pending.remove(feature)
            ordered.append(feature)
        return ordered

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _generator(self, features: List[str]) -> Optional[MigrationGenerator]:
        if not features:
            return None
        return MigrationGenerator(
            features, prefix=self.prefix, dialect=self.dialect, inspector=self.inspector
        )

    def templated_tables(self) -> List[TableDescriptor]:
        """Descriptors of every table the needed features' templates create."""
        tables: List[TableDescriptor] = []
        for feature in self.features_needed():
            tables.extend(self.inspector.describe_tables(feature, self.prefix, self.dialect))
        return tables

    def inferred_tables(self, covered: Iterable[str] = ()) -> List[TableDescriptor]:
        """Inferred descriptors for missing tables no template covers."""
        covered = set(covered)
        owners = self.table_owners()
        information = {d.table_name: d for d in table_information(self.configuration).values()}

        inferred: List[TableDescriptor] = []
        for table in self.missing_tables:
            if table in covered:
                continue
            feature = owners.get(table)
            descriptor = self.registry.get(feature) if feature else None
            columns = descriptor.column_names(table, self.prefix) if descriptor else ()
            accessor_info = information.get(table)
            inferred.append(
                infer_table(
                    table,
                    columns,
                    self.primary_table,
                    self.prefix,
                    self.dialect,
                    owning_feature=feature,
                    accessor=accessor_info.accessor if accessor_info else None,
                    verified=accessor_info.verified if accessor_info else descriptor is not None,
                )
            )
            logger.warning(f"No DDL template covers table '{table}', using column inference")
        return inferred

    def build_plan(self) -> MigrationPlan:
        """
        Ordered plan covering the needed features' tables plus inferred tables.

        Raises:
            GenerationError: If the ordering invariants do not hold
        """
        if self._plan is not None:
            return self._plan

        tables: List[TableDescriptor] = []
        seen = set()
        for table in self.templated_tables():
            if table.table_name not in seen:
                seen.add(table.table_name)
                tables.append(table)
        tables.extend(self.inferred_tables(covered=seen))

        plan = MigrationPlan.from_tables(tables, self.primary_table, self.auxiliary_tables())
        plan.validate()
        self._plan = plan
        return plan

    def planned_statements(self) -> List[PlannedStatement]:
        """
        Create statements in plan order.

        Template statements are grouped by the table they target; statements
        targeting no table (extensions) come first.
        """
        plan = self.build_plan()
        by_table: Dict[str, List[PlannedStatement]] = {}
        preamble: List[PlannedStatement] = []

        generator = self._generator(self.features_needed())
        if generator is not None:
            for feature, template, statement in generator.feature_statements():
                target = statement_target(statement)
                entry = (target, feature, template, statement)
                if target is None:
                    if statement not in [p[3] for p in preamble]:
                        preamble.append(entry)
                else:
                    by_table.setdefault(target, []).append(entry)

        statements: List[PlannedStatement] = list(preamble)
        for table in plan.create:
            if table.source == TableSource.INFERRED:
                statement = render_table(table, self.dialect)[:-1]
                statements.append((table.table_name, table.owning_feature, None, statement))
            else:
                statements.extend(by_table.get(table.table_name, []))
        return statements

    def drop_statements(self, cascade: bool = False) -> List[PlannedStatement]:
        """``DROP TABLE IF EXISTS`` statements in drop order."""
        suffix = " CASCADE" if cascade and self.dialect.supports_cascade else ""
        return [
            (
                table.table_name,
                table.owning_feature,
                table.template,
                f"DROP TABLE IF EXISTS {table.table_name}{suffix}",
            )
            for table in self.build_plan().drop
        ]

    # ------------------------------------------------------------------
    # Text output
    # ------------------------------------------------------------------

    def generate_create_statements(self) -> str:
        """Create DDL in plan order, one commented block per table."""
        blocks: List[str] = []
        current: Optional[str] = None
        for table, feature, _, statement in self.planned_statements():
            if table != current:
                if table is not None:
                    origin = f"feature: {feature}" if feature else "inferred"
                    blocks.append(f"\n-- {table} ({origin})")
                current = table
            blocks.append(f"{statement};")
        return "\n".join(blocks).strip() + "\n" if blocks else ""

    def generate_drop_statements(self, cascade: bool = False) -> str:
        """Drop DDL in drop order."""
        lines = [f"{statement};" for _, _, _, statement in self.drop_statements(cascade)]
        return "\n".join(lines) + "\n" if lines else ""

    def generate_migration(self) -> str:
        """
        Full migration text with ``up`` and ``down`` sections.

        The output depends only on the inputs; identical inputs produce
        byte-identical text.
        """
        plan = self.build_plan()
        header = [
            f"-- Auth tables for prefix '{self.prefix}' ({self.dialect.database_type})",
            f"-- Tables: {', '.join(plan.create_order()) or '(none)'}",
        ]
        return (
            "\n".join(header)
            + "\n\n-- migrate:up\n"
            + self.generate_create_statements()
            + "\n-- migrate:down\n"
            + self.generate_drop_statements()
        )

    def migration_filename(self, timestamp: Union[datetime, str, None] = None) -> str:
        if timestamp is None:
            timestamp = datetime.now()
        if isinstance(timestamp, datetime):
            timestamp = timestamp.strftime(MIGRATION_TIMESTAMP_FORMAT)
        return f"{timestamp}_create_{self.prefix}_tables.sql"

    def write_migration_file(
        self,
        directory: Union[str, Path],
        timestamp: Union[datetime, str, None] = None,
    ) -> Path:
        """
        Write the migration under ``directory`` (created if needed).

        Returns:
            Path of the written file
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.migration_filename(timestamp)
        path.write_text(self.generate_migration(), encoding="utf-8")
        logger.info(f"Wrote migration {path}")
        return path

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _execute(self, engine: Any, statements: List[PlannedStatement], action: str) -> List[str]:
        tables: List[str] = []
        try:
            with engine.begin() as connection:
                for table, feature, template, statement in statements:
                    try:
                        connection.exec_driver_sql(statement)
                    except SQLAlchemyError as e:
                        raise GenerationError(
                            f"Failed to {action} table '{table}': {e}",
                            feature=feature,
                            template=template,
                            statement=statement,
                            context={"table": table} if table else None,
                        ) from e
                    if table and table not in tables:
                        tables.append(table)
        except SQLAlchemyError as e:
            features = list(dict.fromkeys(s[1] for s in statements if s[1]))
            templates = list(dict.fromkeys(s[2] for s in statements if s[2]))
            raise GenerationError(
                f"Failed to {action} tables, the DDL transaction did not complete: {e}",
                feature=", ".join(features),
                template=", ".join(templates),
            ) from e
        return tables

    def execute_creates(self, engine: Any = None) -> List[str]:
        """
        Create every planned table on the engine.

        Returns:
            Table names touched, in create order

        Raises:
            GenerationError: If a statement fails
        """
        engine = engine if engine is not None else self.engine
        if engine is None:
            raise GenerationError("An engine is required to execute DDL")
        tables = self._execute(engine, self.planned_statements(), "create")
        logger.info(f"Created tables: {', '.join(tables) or '(none)'}")
        return tables

    def execute_drops(self, engine: Any = None, cascade: bool = False) -> List[str]:
        """
        Drop every planned table on the engine, in drop order.

        Returns:
            Table names dropped

        Raises:
            GenerationError: If a statement fails
        """
        engine = engine if engine is not None else self.engine
        if engine is None:
            raise GenerationError("An engine is required to execute DDL")
        tables = self._execute(engine, self.drop_statements(cascade), "drop")
        logger.info(f"Dropped tables: {', '.join(tables) or '(none)'}")
        return tables


def generate_migration(
    missing_tables: Iterable[Any],
    configuration: Any,
    engine: Any = None,
    dialect: Union[str, Dialect, None] = None,
) -> str:
    """Convenience wrapper around ``SchemaSynthesizer.generate_migration``."""
    return SchemaSynthesizer(missing_tables, configuration, engine, dialect).generate_migration()
