"""
Boot-time table guard.

Computes which required tables are missing on the live database and applies
the configured presence policy:

- ``silent``/``skip`` (or no mode): no validation messages
- ``warn``: warning log, continue
- ``error``: distinctive ``CRITICAL:`` error log, continue
- ``raise``: error log, then ``ConfigurationError``
- ``halt``/``exit``: error log, then a ``halt`` decision for the host
- a callable: custom handler deciding continue or raise

Independently, ``sequel_mode`` can log, write or execute the DDL creating the
missing tables. ``recreate`` and ``drop`` cover every required table and, in
development or test environments with an engine, run on every pass even when
nothing is missing. Existence checks only ever report ``missing`` when the
database answered; no engine or a database error yields ``unknown``.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import inspect as sqlalchemy_inspect
from sqlalchemy.exc import SQLAlchemyError

from ..config import TableGuardConfig
from ..constants import (DEFAULT_TABLE_PREFIX, GUARD_MODE_ERROR,
                         GUARD_MODE_EXIT, GUARD_MODE_HALT, GUARD_MODE_RAISE,
                         GUARD_MODE_WARN, MIGRATION_TRACKING_TABLES,
                         SEQUEL_MODE_CREATE, SEQUEL_MODE_DROP, SEQUEL_MODE_LOG,
                         SEQUEL_MODE_MIGRATION, SEQUEL_MODE_RECREATE,
                         SEQUEL_MODE_SYNC)
from ..core.dialects import resolve_dialect
from ..core.models import TableDescriptor
from ..core.types import MissingTableDict, TableConfiguration, TableStatusDict
from ..discovery.table_inspector import enabled_features, table_information
from ..discovery.template_inspector import TemplateInspector
from ..exceptions import AuthTablesError, ConfigurationError
from ..generation.synthesizer import SchemaSynthesizer
from ..observability import (clear_check_id, clear_schema_context,
                             get_logger, set_check_id, set_schema_context,
                             timed_operation)
from .decision import (PolicyDecision, PolicyOutcome, TableState,
                       enforce_decision)

logger = logging.getLogger(__name__)

_CONTINUE_RESULTS = (None, False, "continue")
_RAISE_RESULTS = (True, "error", "raise")


def _handler_arity(handler: Callable[..., Any]) -> int:
    """Number of positional arguments a custom handler accepts (1 or 2)."""
    try:
        parameters = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return 1
    positional = 0
    for parameter in parameters:
        if parameter.kind == inspect.Parameter.VAR_POSITIONAL:
            return 2
        if parameter.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return 2 if positional >= 2 else 1


class TableGuard:
    """
    Presence policy governor for auth tables.

    Example:
        guard = TableGuard(config, TableGuardConfig(mode="warn"), engine=engine)
        decision = guard.check()
        enforce_decision(decision)  # terminates on a halt decision
    """

    def __init__(
        self,
        configuration: Any,
        guard_config: Optional[TableGuardConfig] = None,
        engine: Any = None,
    ) -> None:
        """
        Initialize the guard.

        Args:
            configuration: Configured auth instance
            guard_config: Presence policy (defaults to fully silent)
            engine: SQLAlchemy engine used for existence checks and DDL
        """
        self.configuration = configuration
        self.guard_config = guard_config if guard_config is not None else TableGuardConfig()
        self.engine = engine
        self.log = get_logger(self.guard_config.logger_name)
        dialect = None if engine is not None else (
            self.guard_config.dialect or getattr(configuration, "dialect", None)
        )
        self.dialect = resolve_dialect(engine, dialect)
        self.prefix = str(getattr(configuration, "prefix", None) or DEFAULT_TABLE_PREFIX)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def table_configuration(self) -> TableConfiguration:
        """
        Table name -> ``TableDescriptor`` for every required table.

        Accessor discovery first, then every table the enabled features'
        templates create; skip-listed tables are left out.
        """
        tables: Dict[str, TableDescriptor] = {}
        for descriptor in table_information(self.configuration).values():
            tables.setdefault(descriptor.table_name, descriptor)

        inspector = TemplateInspector.for_instance(self.configuration)
        for feature in enabled_features(self.configuration):
            for table in inspector.extract_tables(feature, self.prefix, self.dialect):
                if table not in tables:
                    tables[table] = TableDescriptor(
                        table_name=table,
                        owning_feature=feature,
                        template=inspector.template_name(feature),
                    )

        skip = set(self.guard_config.skip_tables)
        return {name: d for name, d in tables.items() if name not in skip}

    def list_all_required_tables(self) -> List[str]:
        """Sorted names of every required (non skip-listed) table."""
        return sorted(self.table_configuration())

    def _existence(self, table_names: List[str]) -> Dict[str, Optional[bool]]:
        if self.engine is None:
            return {name: None for name in table_names}
        try:
            db_inspector = sqlalchemy_inspect(self.engine)
        except SQLAlchemyError as e:
            self.log.warning(f"Unable to inspect database, table existence unknown: {e}")
            return {name: None for name in table_names}

        existence: Dict[str, Optional[bool]] = {}
        for name in table_names:
            try:
                existence[name] = bool(db_inspector.has_table(name))
            except SQLAlchemyError as e:
                self.log.warning(f"Unable to check table existence for {name}: {e}")
                existence[name] = None
        return existence

    def table_exists(self, table_name: str) -> Optional[bool]:
        """True/False when the database answered, None when it cannot tell."""
        return self._existence([table_name])[table_name]

    def table_status(self) -> List[TableStatusDict]:
        """Presence record for every required table, sorted by table name."""
        tables = self.table_configuration()
        existence = self._existence(sorted(tables))
        records: List[TableStatusDict] = []
        for name in sorted(tables):
            exists = existence[name]
            if exists is None:
                state = TableState.UNKNOWN
            else:
                state = TableState.EXISTS if exists else TableState.MISSING
            records.append(
                {
                    "accessor": tables[name].accessor,
                    "table": name,
                    "feature": tables[name].owning_feature,
                    "exists": bool(exists),
                    "state": state.value,
                }
            )
        for name in sorted(self.guard_config.skip_tables):
            records.append(
                {
                    "accessor": None,
                    "table": name,
                    "feature": None,
                    "exists": False,
                    "state": TableState.SKIPPED.value,
                }
            )
        return records

    def _presence(self) -> Tuple[List[MissingTableDict], List[str]]:
        """Missing records and unknown table names, from one existence check."""
        tables = self.table_configuration()
        existence = self._existence(sorted(tables))
        missing: List[MissingTableDict] = [
            {
                "accessor": tables[name].accessor,
                "table": name,
                "feature": tables[name].owning_feature,
                "verified": tables[name].verified,
            }
            for name in sorted(tables)
            if existence[name] is False
        ]
        unknown = [name for name in sorted(tables) if existence[name] is None]
        return missing, unknown

    def missing_tables(self) -> List[MissingTableDict]:
        """Required tables the database confirmed are absent."""
        return self._presence()[0]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def missing_tables_message(self, missing: List[MissingTableDict]) -> str:
        """Human readable report with hints on how to resolve it."""
        table_names = [m["table"] for m in missing]
        lines = ["Missing required auth tables!", ""]
        for info in missing:
            detail = f"feature: {info['feature'] or 'unknown'}"
            if info["accessor"]:
                detail += f", accessor: {info['accessor']}"
            lines.append(f"  - Table: {info['table']} ({detail})")
        lines.append("")
        lines.append("Database operations on these tables will fail until they are created.")
        if self.guard_config.sequel_mode is None:
            lines.append("")
            lines.append("Quick fix for development (creates tables automatically):")
            lines.append("  TableGuardConfig(sequel_mode='create')")
            lines.append("Other options:")
            lines.append("  TableGuardConfig(sequel_mode='log')        # show migration DDL")
            lines.append("  TableGuardConfig(sequel_mode='migration')  # write a migration file")
        lines.append("")
        lines.append("To disable checking: TableGuardConfig(mode='silent')")
        lines.append(f"To skip specific tables: TableGuardConfig(skip_tables={table_names!r})")
        return "\n".join(lines)

    @staticmethod
    def missing_tables_error(missing: List[MissingTableDict]) -> str:
        """Distinctive one-line error for error-level logs."""
        return f"CRITICAL: Missing auth tables - {', '.join(m['table'] for m in missing)}"

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def _apply_mode(self, missing: List[MissingTableDict]) -> Tuple[PolicyOutcome, str]:
        mode = self.guard_config.mode
        names = [m["table"] for m in missing]
        message = self.missing_tables_message(missing)

        if callable(mode):
            if _handler_arity(mode) >= 2:
                result = mode(names, self.table_configuration())
            else:
                result = mode(names)
            if result is True or result in _RAISE_RESULTS:
                raise ConfigurationError(message, missing_tables=names)
            if isinstance(result, str) and result not in _CONTINUE_RESULTS:
                # The handler's own message, unwrapped
                raise ConfigurationError(result, missing_tables=names)
            return PolicyOutcome.CONTINUE, message

        if mode == GUARD_MODE_WARN:
            self.log.warning(message)
            return PolicyOutcome.WARN, message
        if mode == GUARD_MODE_ERROR:
            self.log.error(self.missing_tables_error(missing))
            return PolicyOutcome.ERROR, message
        if mode == GUARD_MODE_RAISE:
            self.log.error(self.missing_tables_error(missing))
            raise ConfigurationError(message, missing_tables=names)
        if mode in (GUARD_MODE_HALT, GUARD_MODE_EXIT):
            self.log.error(self.missing_tables_error(missing))
            return PolicyOutcome.HALT, message

        self.log.debug(f"Discovered {len(missing)} missing table(s), validation disabled")
        return PolicyOutcome.CONTINUE, message

    def check(self) -> PolicyDecision:
        """
        Run one guard pass.

        Returns:
            The policy decision (``halt`` is returned, never performed)

        Raises:
            ConfigurationError: In ``raise`` mode, or when a custom handler
                asks for it
        """
        if not self.guard_config.active:
            return PolicyDecision(outcome=PolicyOutcome.CONTINUE)

        check_id = set_check_id()
        set_schema_context(table_prefix=self.prefix, dialect=self.dialect.database_type)
        try:
            return self._evaluate(check_id)
        finally:
            clear_schema_context()
            clear_check_id()

    evaluate = check

    def _evaluate(self, check_id: str) -> PolicyDecision:
        missing, unknown = self._presence()
        missing_names = [m["table"] for m in missing]

        if unknown:
            logger.debug(f"Existence unknown for {len(unknown)} table(s): {', '.join(unknown)}")

        if self.guard_config.is_schema_wide() and self._destructive_allowed():
            # recreate/drop manage the whole schema every boot, the mode does not apply
            decision = PolicyDecision(
                outcome=PolicyOutcome.CONTINUE,
                missing_tables=missing_names,
                unknown_tables=unknown,
                check_id=check_id,
            )
            self._run_side_action(decision, missing_names)
            return decision

        if not missing_names:
            return PolicyDecision(
                outcome=PolicyOutcome.CONTINUE,
                unknown_tables=unknown,
                check_id=check_id,
            )

        with timed_operation(
            self.log, "table_guard.policy", missing_count=len(missing_names)
        ) as operation:
            outcome, message = self._apply_mode(missing)
            operation["outcome"] = outcome.value
        decision = PolicyDecision(
            outcome=outcome,
            message=message,
            missing_tables=missing_names,
            unknown_tables=unknown,
            check_id=check_id,
        )
        if outcome == PolicyOutcome.HALT:
            return decision

        if self.guard_config.sequel_mode is not None:
            self._run_side_action(decision, missing_names)
        return decision

    # ------------------------------------------------------------------
    # Side actions
    # ------------------------------------------------------------------

    def _synthesizer(self, tables: List[str]) -> SchemaSynthesizer:
        return SchemaSynthesizer(tables, self.configuration, engine=self.engine, dialect=self.dialect)

    def _run_side_action(self, decision: PolicyDecision, missing: List[str]) -> None:
        sequel_mode = self.guard_config.sequel_mode
        decision.side_action = sequel_mode
        try:
            if self.guard_config.is_destructive():
                self._require_destructive(sequel_mode)
            if sequel_mode == SEQUEL_MODE_LOG:
                migration = self._synthesizer(missing).generate_migration()
                self.log.info(f"Migration for missing auth tables:\n{migration}")
            elif sequel_mode == SEQUEL_MODE_MIGRATION:
                path = self._synthesizer(missing).write_migration_file(
                    self.guard_config.migration_path
                )
                self.log.info(f"Wrote migration for missing auth tables: {path}")
            elif sequel_mode == SEQUEL_MODE_CREATE:
                self._require_engine(sequel_mode)
                self._synthesizer(missing).execute_creates(self.engine)
                decision.remaining_tables = self._revalidate()
            elif sequel_mode == SEQUEL_MODE_SYNC:
                synthesizer = self._synthesizer(missing)
                synthesizer.execute_drops(self.engine)
                synthesizer.execute_creates(self.engine)
                decision.remaining_tables = self._revalidate()
            elif sequel_mode == SEQUEL_MODE_RECREATE:
                synthesizer = self._synthesizer(self.list_all_required_tables())
                synthesizer.execute_drops(self.engine)
                synthesizer.execute_creates(self.engine)
                decision.remaining_tables = self._revalidate()
            elif sequel_mode == SEQUEL_MODE_DROP:
                dropped = self._synthesizer(self.list_all_required_tables()).execute_drops(
                    self.engine
                )
                self._drop_migration_tracking()
                self.log.info(
                    f"Dropped {len(dropped)} auth table(s) and migration tracking, "
                    f"migrations will run from scratch"
                )
        except (AuthTablesError, SQLAlchemyError, OSError) as e:
            self.log.error(f"Table generation ({sequel_mode}) failed: {type(e).__name__} - {e}")
            decision.side_action_error = str(e)

    def _require_engine(self, sequel_mode: str) -> None:
        if self.engine is None:
            raise ConfigurationError(
                f"sequel_mode '{sequel_mode}' requires a database engine",
                config_key="sequel_mode",
                config_value=sequel_mode,
            )

    def _destructive_allowed(self) -> bool:
        return self.engine is not None and self.guard_config.allows_destructive()

    def _drop_migration_tracking(self) -> None:
        with self.engine.begin() as connection:
            for table in MIGRATION_TRACKING_TABLES:
                connection.exec_driver_sql(f"DROP TABLE IF EXISTS {self.dialect.quote(table)}")

    def _require_destructive(self, sequel_mode: str) -> None:
        self._require_engine(sequel_mode)
        if not self.guard_config.allows_destructive():
            environment = self.guard_config.effective_environment() or "unset"
            raise ConfigurationError(
                f"sequel_mode '{sequel_mode}' drops tables and is only allowed in "
                f"development or test environments (environment: {environment})",
                config_key="sequel_mode",
                config_value=sequel_mode,
            )

    def _revalidate(self) -> List[str]:
        remaining = [m["table"] for m in self.missing_tables()]
        if remaining:
            self.log.warning(f"Tables still missing after creation: {', '.join(remaining)}")
        else:
            self.log.info("All required auth tables exist")
        return remaining


def run_table_guard(
    configuration: Any,
    guard_config: Optional[TableGuardConfig] = None,
    engine: Any = None,
    enforce: bool = True,
) -> PolicyDecision:
    """
    Boot helper: run the guard once, terminating on ``halt`` when ``enforce``.

    The guard configuration defaults to ``TableGuardConfig.from_env()``.
    """
    guard = TableGuard(
        configuration,
        guard_config if guard_config is not None else TableGuardConfig.from_env(),
        engine=engine,
    )
    decision = guard.check()
    return enforce_decision(decision) if enforce else decision
