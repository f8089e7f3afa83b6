"""
Unit tests for the boot-time table guard.

Tests presence policy outcomes, custom handlers, skip lists, the
missing/unknown distinction and sequel side actions.
"""

import logging
from unittest.mock import patch

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from authtables.config import TableGuardConfig
from authtables.core.configuration import AuthConfiguration
from authtables.exceptions import ConfigurationError, GenerationError
from authtables.generation.migration import MigrationGenerator
from authtables.generation.synthesizer import SchemaSynthesizer
from authtables.guard.decision import PolicyOutcome, TableState
from authtables.guard.table_guard import TableGuard, run_table_guard

ALL_AUTH_TABLES = [
    "account_otp_keys",
    "account_password_hashes",
    "account_remember_keys",
    "account_statuses",
    "accounts",
]


def guard_records(caplog):
    return [r for r in caplog.records if r.name.startswith("authtables.guard")]


def guard(config, engine=None, **settings) -> TableGuard:
    return TableGuard(config, TableGuardConfig(**settings), engine=engine)


class TestRequiredTables:
    """Test required table discovery."""

    def test_accessor_and_template_tables(self, auth_config):
        """Test that template-only tables are required too."""
        assert guard(auth_config).list_all_required_tables() == ALL_AUTH_TABLES

    def test_broken_template_does_not_stop_boot(self, sqlite_engine, tmp_path):
        """Test that a template failing at render time only loses its own tables."""
        (tmp_path / "otp.sql.j2").write_text("CREATE TABLE t{{ 10 // 0 }} (id INT);")
        config = AuthConfiguration(["otp"], dialect="sqlite", template_dirs=[tmp_path])
        decision = guard(config, sqlite_engine, mode="warn").check()
        assert decision.outcome == PolicyOutcome.WARN
        assert "account_otp_keys" in decision.missing_tables
        assert "accounts" in decision.missing_tables

    def test_skip_list(self, auth_config):
        """Test that skip-listed tables are not required."""
        tables = guard(auth_config, skip_tables=["account_statuses"]).list_all_required_tables()
        assert "account_statuses" not in tables

    def test_descriptors(self, auth_config):
        """Test ownership in the table configuration."""
        tables = guard(auth_config).table_configuration()
        assert tables["account_otp_keys"].owning_feature == "otp"
        assert tables["account_otp_keys"].accessor == "otp_keys_table"
        assert tables["account_statuses"].owning_feature == "base"
        assert tables["account_statuses"].accessor is None


class TestExistence:
    """Test the missing/unknown distinction."""

    def test_engine_decides_dialect(self, sqlite_engine):
        """Test that the live engine's dialect beats the configured one."""
        config = AuthConfiguration(["otp"], dialect="mysql")
        assert guard(config, sqlite_engine, dialect="postgres").dialect.database_type == "sqlite"
        assert guard(config).dialect.database_type == "mysql"
        assert guard(config, dialect="postgres").dialect.database_type == "postgres"

    def test_no_engine_is_unknown(self, auth_config):
        """Test that no engine never reports missing tables."""
        table_guard = guard(auth_config, mode="raise")
        assert table_guard.table_exists("accounts") is None
        assert table_guard.missing_tables() == []
        decision = table_guard.check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.missing_count == 0
        assert decision.unknown_tables == ALL_AUTH_TABLES

    def test_inspection_failure_is_unknown(self, auth_config, mock_engine, guard_logs):
        """Test that a database that cannot be inspected yields unknown."""
        error = OperationalError("inspect", {}, Exception("connection refused"))
        with patch("authtables.guard.table_guard.sqlalchemy_inspect", side_effect=error):
            decision = guard(auth_config, mock_engine, mode="raise").check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.unknown_tables == ALL_AUTH_TABLES
        assert any("Unable to inspect" in r.getMessage() for r in guard_records(guard_logs))

    def test_table_status(self, auth_config, sqlite_engine, run_ddl):
        """Test presence records per table."""
        run_ddl(sqlite_engine, "CREATE TABLE accounts (id INTEGER PRIMARY KEY)")
        records = guard(
            auth_config, sqlite_engine, skip_tables=["account_statuses"]
        ).table_status()
        states = {r["table"]: r["state"] for r in records}
        assert states["accounts"] == TableState.EXISTS.value
        assert states["account_otp_keys"] == TableState.MISSING.value
        assert states["account_statuses"] == TableState.SKIPPED.value

    def test_table_status_without_engine(self, auth_config):
        """Test that every table is unknown without an engine."""
        records = guard(auth_config).table_status()
        assert {r["state"] for r in records} == {TableState.UNKNOWN.value}


class TestPolicyOutcomes:
    """Test every built-in mode against the same missing set."""

    def test_inactive_guard(self, primary_only_config, sqlite_engine, guard_logs):
        """Test that an unset mode does nothing."""
        decision = guard(primary_only_config, sqlite_engine).check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.check_id is None
        assert guard_records(guard_logs) == []

    @pytest.mark.parametrize("mode", ["silent", "skip"])
    def test_silent_modes(self, mode, primary_only_config, sqlite_engine):
        """Test that silent modes continue."""
        decision = guard(primary_only_config, sqlite_engine, mode=mode).check()
        assert decision.outcome == PolicyOutcome.CONTINUE

    def test_warn(self, primary_only_config, sqlite_engine, guard_logs):
        """Test warn: warning log, continue."""
        decision = guard(primary_only_config, sqlite_engine, mode="warn").check()
        assert decision.outcome == PolicyOutcome.WARN
        assert decision.missing_tables == ["accounts"]
        warnings = [r for r in guard_records(guard_logs) if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Table: accounts" in warnings[0].getMessage()

    def test_error(self, primary_only_config, sqlite_engine, guard_logs):
        """Test error: distinctive error log, continue."""
        decision = guard(primary_only_config, sqlite_engine, mode="error").check()
        assert decision.outcome == PolicyOutcome.ERROR
        errors = [r.getMessage() for r in guard_records(guard_logs) if r.levelno == logging.ERROR]
        assert errors == ["CRITICAL: Missing auth tables - accounts"]

    def test_raise_names_primary_table(self, primary_only_config, sqlite_engine):
        """Test raise with only the primary table missing."""
        with pytest.raises(ConfigurationError) as exc_info:
            guard(primary_only_config, sqlite_engine, mode="raise").check()
        assert exc_info.value.missing_tables == ["accounts"]
        assert "Table: accounts" in str(exc_info.value)

    @pytest.mark.parametrize("mode", ["halt", "exit"])
    def test_halt_is_returned(self, mode, primary_only_config, sqlite_engine):
        """Test that halt is a decision, not a termination."""
        with patch("authtables.guard.decision.os._exit") as mock_exit:
            decision = guard(primary_only_config, sqlite_engine, mode=mode).check()
        assert decision.outcome == PolicyOutcome.HALT
        assert decision.should_halt
        mock_exit.assert_not_called()

    def test_halt_skips_side_action(self, primary_only_config, sqlite_engine):
        """Test that halt returns before any side action."""
        decision = guard(
            primary_only_config, sqlite_engine, mode="halt", sequel_mode="create"
        ).check()
        assert decision.side_action is None
        assert not inspect(sqlite_engine).has_table("accounts")

    def test_raise_skips_side_action(self, primary_only_config, sqlite_engine):
        """Test that raise happens before any side action."""
        with pytest.raises(ConfigurationError):
            guard(primary_only_config, sqlite_engine, mode="raise", sequel_mode="create").check()
        assert not inspect(sqlite_engine).has_table("accounts")

    def test_evaluate_alias(self, primary_only_config, sqlite_engine):
        """Test the evaluate alias."""
        table_guard = guard(primary_only_config, sqlite_engine, mode="warn")
        assert table_guard.evaluate().outcome == PolicyOutcome.WARN


class TestSkipList:
    """Test skip-list exclusion."""

    def test_skipped_table_never_missing(self, primary_only_config, sqlite_engine):
        """Test that a skipped missing table does not trigger the policy."""
        decision = guard(
            primary_only_config, sqlite_engine, mode="raise", skip_tables=["accounts"]
        ).check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.missing_count == 0


class TestCustomHandlers:
    """Test callable modes."""

    def test_handler_receives_names(self, primary_only_config, sqlite_engine):
        """Test the single argument form."""
        received = []
        decision = guard(
            primary_only_config, sqlite_engine, mode=lambda names: received.append(names)
        ).check()
        assert received == [["accounts"]]
        assert decision.outcome == PolicyOutcome.CONTINUE

    def test_handler_receives_configuration(self, primary_only_config, sqlite_engine):
        """Test the two argument form."""
        received = {}

        def handler(names, tables):
            received.update(tables)
            return "continue"

        guard(primary_only_config, sqlite_engine, mode=handler).check()
        assert received["accounts"].owning_feature == "base"

    def test_varargs_handler(self, primary_only_config, sqlite_engine):
        """Test that *args handlers get both arguments."""
        received = []
        guard(primary_only_config, sqlite_engine, mode=lambda *args: received.append(len(args))).check()
        assert received == [2]

    @pytest.mark.parametrize("result", [True, "error", "raise"])
    def test_raise_results(self, result, primary_only_config, sqlite_engine):
        """Test results asking for the standard error."""
        with pytest.raises(ConfigurationError) as exc_info:
            guard(primary_only_config, sqlite_engine, mode=lambda names: result).check()
        assert "Missing required auth tables" in str(exc_info.value)

    def test_custom_message_is_unwrapped(self, primary_only_config, sqlite_engine):
        """Test that any other string becomes the error message verbatim."""
        with pytest.raises(ConfigurationError) as exc_info:
            guard(primary_only_config, sqlite_engine, mode=lambda names: "deploy blocked").check()
        assert str(exc_info.value) == "deploy blocked"
        assert exc_info.value.missing_tables == ["accounts"]

    @pytest.mark.parametrize("result", [None, False, "continue", 0])
    def test_continue_results(self, result, primary_only_config, sqlite_engine):
        """Test results that let boot continue."""
        decision = guard(primary_only_config, sqlite_engine, mode=lambda names: result).check()
        assert decision.outcome == PolicyOutcome.CONTINUE


class TestNothingMissing:
    """Test a fully migrated database."""

    def test_no_output_and_no_side_effects(self, auth_config, sqlite_engine, guard_logs, tmp_path):
        """Test that an up-to-date database is silent."""
        MigrationGenerator(["base", "otp", "remember"], dialect="sqlite").execute_create_tables(
            sqlite_engine
        )
        guard_logs.clear()
        decision = guard(
            auth_config,
            sqlite_engine,
            mode="raise",
            sequel_mode="migration",
            migration_path=str(tmp_path / "migrate"),
        ).check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.missing_count == 0
        assert decision.side_action is None
        assert guard_records(guard_logs) == []
        assert not (tmp_path / "migrate").exists()

    def test_drop_runs_in_test_environment(self, auth_config, sqlite_engine, guard_logs):
        """Test that drop clears a complete schema outside production."""
        MigrationGenerator(["base", "otp", "remember"], dialect="sqlite").execute_create_tables(
            sqlite_engine
        )
        decision = guard(
            auth_config, sqlite_engine, mode="raise", sequel_mode="drop", environment="test"
        ).check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.side_action == "drop"
        db = inspect(sqlite_engine)
        assert not any(db.has_table(t) for t in ALL_AUTH_TABLES)
        assert any("Dropped" in r.getMessage() for r in guard_records(guard_logs))

    def test_schema_wide_mode_in_production_is_silent(self, auth_config, sqlite_engine, guard_logs):
        """Test that recreate and drop do nothing to a complete production schema."""
        MigrationGenerator(["base", "otp", "remember"], dialect="sqlite").execute_create_tables(
            sqlite_engine
        )
        guard_logs.clear()
        for sequel_mode in ("recreate", "drop"):
            decision = guard(
                auth_config,
                sqlite_engine,
                mode="raise",
                sequel_mode=sequel_mode,
                environment="production",
            ).check()
            assert decision.outcome == PolicyOutcome.CONTINUE
            assert decision.side_action is None
        assert guard_records(guard_logs) == []
        assert inspect(sqlite_engine).has_table("account_otp_keys")


class TestSideActions:
    """Test sequel side actions."""

    def test_log_orders_primary_first(self, sqlite_engine, guard_logs):
        """Test that the logged migration creates the primary table first."""
        config = AuthConfiguration(["otp"], dialect="sqlite")
        decision = guard(config, sqlite_engine, mode="warn", sequel_mode="log").check()
        assert decision.side_action == "log"
        migrations = [
            r.getMessage()
            for r in guard_records(guard_logs)
            if "Migration for missing auth tables" in r.getMessage()
        ]
        assert len(migrations) == 1
        text = migrations[0]
        assert text.index("-- accounts (feature: base)") < text.index(
            "-- account_otp_keys (feature: otp)"
        )
        assert not inspect(sqlite_engine).has_table("accounts")

    def test_log_without_validation(self, primary_only_config, sqlite_engine, guard_logs):
        """Test a side action while validation messages are disabled."""
        decision = guard(
            primary_only_config, sqlite_engine, mode="silent", sequel_mode="log"
        ).check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.side_action == "log"
        assert not [r for r in guard_records(guard_logs) if r.levelno >= logging.WARNING]

    def test_migration_file(self, auth_config, sqlite_engine, tmp_path):
        """Test writing a migration file."""
        decision = guard(
            auth_config,
            sqlite_engine,
            mode="warn",
            sequel_mode="migration",
            migration_path=str(tmp_path / "migrate"),
        ).check()
        assert decision.side_action == "migration"
        files = list((tmp_path / "migrate").glob("*_create_account_tables.sql"))
        assert len(files) == 1
        assert "CREATE TABLE IF NOT EXISTS accounts" in files[0].read_text(encoding="utf-8")

    def test_create(self, auth_config, sqlite_engine):
        """Test creating missing tables and revalidating."""
        decision = guard(auth_config, sqlite_engine, mode="warn", sequel_mode="create").check()
        assert decision.outcome == PolicyOutcome.WARN
        assert decision.side_action == "create"
        assert decision.side_action_error is None
        assert decision.remaining_tables == []
        db = inspect(sqlite_engine)
        assert all(db.has_table(t) for t in ALL_AUTH_TABLES)

    def test_sync_refused_in_production(self, primary_only_config, sqlite_engine, guard_logs):
        """Test that destructive side actions need a non-production environment."""
        decision = guard(
            primary_only_config,
            sqlite_engine,
            mode="warn",
            sequel_mode="sync",
            environment="production",
        ).check()
        assert decision.outcome == PolicyOutcome.WARN
        assert "only allowed" in decision.side_action_error
        assert not inspect(sqlite_engine).has_table("accounts")
        assert any(
            "Table generation (sync) failed" in r.getMessage() for r in guard_records(guard_logs)
        )

    def test_drop_without_engine(self, primary_only_config):
        """Test that drop without an engine applies the mode and reports the refusal."""
        decision = guard(
            primary_only_config, mode="warn", sequel_mode="drop", environment="test"
        ).check()
        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.unknown_tables
        assert decision.side_action is None

    def test_side_action_failure_keeps_outcome(self, primary_only_config, sqlite_engine):
        """Test that a failed side action is reported, not raised."""
        with patch.object(
            SchemaSynthesizer, "execute_creates", side_effect=GenerationError("disk full")
        ):
            decision = guard(
                primary_only_config, sqlite_engine, mode="error", sequel_mode="create"
            ).check()
        assert decision.outcome == PolicyOutcome.ERROR
        assert decision.side_action_error == "disk full"
        assert decision.remaining_tables is None


class TestMessages:
    """Test report messages."""

    def test_hints(self, primary_only_config):
        """Test resolution hints in the report."""
        table_guard = guard(primary_only_config, mode="warn")
        message = table_guard.missing_tables_message(
            [{"accessor": "accounts_table", "table": "accounts", "feature": "base", "verified": True}]
        )
        assert "Table: accounts (feature: base, accessor: accounts_table)" in message
        assert "sequel_mode='create'" in message
        assert "skip_tables=['accounts']" in message

    def test_no_sequel_hints_with_side_action(self, primary_only_config):
        """Test that hints are dropped once a side action is configured."""
        table_guard = guard(primary_only_config, mode="warn", sequel_mode="log")
        message = table_guard.missing_tables_message(
            [{"accessor": None, "table": "accounts", "feature": None, "verified": False}]
        )
        assert "Quick fix" not in message
        assert "feature: unknown" in message


class TestRunTableGuard:
    """Test the boot helper."""

    def test_reads_environment(self, primary_only_config, sqlite_engine, monkeypatch):
        """Test the default configuration from environment variables."""
        monkeypatch.setenv("TABLE_GUARD_MODE", "warn")
        decision = run_table_guard(primary_only_config, engine=sqlite_engine)
        assert decision.outcome == PolicyOutcome.WARN

    @patch("authtables.guard.decision.logging.shutdown")
    @patch("authtables.guard.decision.os._exit")
    def test_enforces_halt(self, mock_exit, mock_shutdown, primary_only_config, sqlite_engine):
        """Test that a halt decision terminates when enforced."""
        run_table_guard(primary_only_config, TableGuardConfig(mode="halt"), engine=sqlite_engine)
        mock_exit.assert_called_once_with(1)

    @patch("authtables.guard.decision.os._exit")
    def test_enforce_disabled(self, mock_exit, primary_only_config, sqlite_engine):
        """Test returning the halt decision to the caller."""
        decision = run_table_guard(
            primary_only_config, TableGuardConfig(mode="halt"), engine=sqlite_engine, enforce=False
        )
        assert decision.should_halt
        mock_exit.assert_not_called()
