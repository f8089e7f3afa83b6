"""
Integration tests for the table guard on a real SQLite database.

These tests create, drop and inspect tables end to end.
"""

import logging

import pytest
from sqlalchemy import inspect

from authtables.config import TableGuardConfig
from authtables.core.configuration import AuthConfiguration
from authtables.core.features import default_registry
from authtables.generation.migration import MigrationGenerator
from authtables.generation.synthesizer import SchemaSynthesizer
from authtables.guard import PolicyOutcome, TableGuard

pytestmark = pytest.mark.integration


@pytest.fixture
def otp_config() -> AuthConfiguration:
    return AuthConfiguration(["otp"], dialect="sqlite")


def account_count(engine) -> int:
    with engine.connect() as connection:
        return connection.exec_driver_sql("SELECT COUNT(*) FROM accounts").scalar()


class TestPartialSchema:
    """Test a database holding only some of the required tables."""

    def test_warning_names_only_missing_table(self, sqlite_engine, guard_logs):
        """Test warn mode with the primary table present and a feature table missing."""
        config = AuthConfiguration(["remember"], dialect="sqlite")
        MigrationGenerator(["base"], dialect="sqlite").execute_create_tables(sqlite_engine)

        decision = TableGuard(config, TableGuardConfig(mode="warn"), engine=sqlite_engine).check()

        assert decision.outcome == PolicyOutcome.WARN
        assert decision.missing_tables == ["account_remember_keys"]
        warnings = [
            r.getMessage()
            for r in guard_logs.records
            if r.name.startswith("authtables.guard") and r.levelno == logging.WARNING
        ]
        assert len(warnings) == 1
        assert "Table: account_remember_keys" in warnings[0]
        assert "Table: accounts " not in warnings[0]


class TestSynthesizerExecution:
    """Test executing synthesized DDL."""

    def test_create_then_drop(self, otp_config, sqlite_engine):
        """Test creating and dropping every planned table."""
        synthesizer = SchemaSynthesizer(["accounts", "account_otp_keys"], otp_config, engine=sqlite_engine)
        created = synthesizer.execute_creates()
        assert created == [
            "account_statuses",
            "accounts",
            "account_password_hashes",
            "account_otp_keys",
        ]
        db = inspect(sqlite_engine)
        assert all(db.has_table(t) for t in created)

        dropped = synthesizer.execute_drops()
        assert dropped == list(reversed(created))
        db = inspect(sqlite_engine)
        assert not any(db.has_table(t) for t in created)

    def test_create_is_idempotent(self, otp_config, sqlite_engine):
        """Test that creating twice succeeds."""
        synthesizer = SchemaSynthesizer(["accounts"], otp_config, engine=sqlite_engine)
        synthesizer.execute_creates()
        synthesizer.execute_creates()
        assert inspect(sqlite_engine).has_table("accounts")


class TestDestructiveSideActions:
    """Test sync, recreate and drop in development and test environments."""

    def test_sync_keeps_existing_tables(self, otp_config, sqlite_engine, run_ddl):
        """Test that sync only rebuilds the missing tables' plan."""
        MigrationGenerator(["base"], dialect="sqlite").execute_create_tables(sqlite_engine)
        run_ddl(sqlite_engine, "INSERT INTO accounts (email) VALUES ('a@example.com')")

        decision = TableGuard(
            otp_config,
            TableGuardConfig(mode="warn", sequel_mode="sync", environment="test"),
            engine=sqlite_engine,
        ).check()

        assert decision.side_action_error is None
        assert decision.remaining_tables == []
        assert inspect(sqlite_engine).has_table("account_otp_keys")
        assert account_count(sqlite_engine) == 1

    def test_recreate_rebuilds_everything(self, otp_config, sqlite_engine, run_ddl):
        """Test that recreate drops and recreates every required table."""
        MigrationGenerator(["base"], dialect="sqlite").execute_create_tables(sqlite_engine)
        run_ddl(sqlite_engine, "INSERT INTO accounts (email) VALUES ('a@example.com')")

        decision = TableGuard(
            otp_config,
            TableGuardConfig(mode="warn", sequel_mode="recreate", environment="development"),
            engine=sqlite_engine,
        ).check()

        assert decision.side_action == "recreate"
        assert decision.side_action_error is None
        assert decision.remaining_tables == []
        assert account_count(sqlite_engine) == 0

    def test_recreate_refused_in_production(self, otp_config, sqlite_engine, run_ddl):
        """Test that recreate leaves a production database alone."""
        MigrationGenerator(["base"], dialect="sqlite").execute_create_tables(sqlite_engine)
        run_ddl(sqlite_engine, "INSERT INTO accounts (email) VALUES ('a@example.com')")

        decision = TableGuard(
            otp_config,
            TableGuardConfig(mode="warn", sequel_mode="recreate", environment="production"),
            engine=sqlite_engine,
        ).check()

        assert decision.side_action_error is not None
        assert account_count(sqlite_engine) == 1
        assert not inspect(sqlite_engine).has_table("account_otp_keys")

    def test_recreate_runs_on_complete_schema(self, otp_config, sqlite_engine, run_ddl):
        """Test that recreate rebuilds the schema even when nothing is missing."""
        MigrationGenerator(["base", "otp"], dialect="sqlite").execute_create_tables(sqlite_engine)
        run_ddl(sqlite_engine, "INSERT INTO accounts (email) VALUES ('a@example.com')")

        decision = TableGuard(
            otp_config,
            TableGuardConfig(mode="raise", sequel_mode="recreate", environment="test"),
            engine=sqlite_engine,
        ).check()

        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.missing_count == 0
        assert decision.side_action == "recreate"
        assert decision.remaining_tables == []
        assert account_count(sqlite_engine) == 0

    def test_drop_removes_tables_and_migration_tracking(self, otp_config, sqlite_engine, run_ddl):
        """Test that drop removes every required table and the migration bookkeeping."""
        MigrationGenerator(["base", "otp"], dialect="sqlite").execute_create_tables(sqlite_engine)
        run_ddl(
            sqlite_engine,
            "CREATE TABLE schema_migrations (version VARCHAR(255))",
            "CREATE TABLE alembic_version (version_num VARCHAR(32))",
            "CREATE TABLE widgets (id INTEGER)",
        )

        decision = TableGuard(
            otp_config,
            TableGuardConfig(mode="raise", sequel_mode="drop", environment="development"),
            engine=sqlite_engine,
        ).check()

        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.side_action == "drop"
        assert decision.side_action_error is None
        assert decision.remaining_tables is None
        remaining = set(inspect(sqlite_engine).get_table_names())
        assert remaining == {"widgets"}

    def test_drop_refused_in_production(self, otp_config, sqlite_engine):
        """Test that drop leaves a complete production schema untouched and silent."""
        MigrationGenerator(["base", "otp"], dialect="sqlite").execute_create_tables(sqlite_engine)

        decision = TableGuard(
            otp_config,
            TableGuardConfig(mode="warn", sequel_mode="drop", environment="production"),
            engine=sqlite_engine,
        ).check()

        assert decision.outcome == PolicyOutcome.CONTINUE
        assert decision.side_action is None
        assert inspect(sqlite_engine).has_table("accounts")
        assert inspect(sqlite_engine).has_table("account_otp_keys")


class TestTemplateExecution:
    """Test that every built-in template runs on SQLite."""

    def test_all_features(self, sqlite_engine):
        """Test creating the tables of every built-in feature."""
        features = default_registry.names()
        MigrationGenerator(features, dialect="sqlite").execute_create_tables(sqlite_engine)
        config = AuthConfiguration(features, dialect="sqlite")
        guard = TableGuard(config, TableGuardConfig(mode="raise"), engine=sqlite_engine)
        assert guard.missing_tables() == []
        assert guard.check().missing_count == 0
