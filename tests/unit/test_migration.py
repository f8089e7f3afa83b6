"""
Unit tests for the feature migration generator.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import OperationalError

from authtables.core.features import FeatureRegistry
from authtables.exceptions import GenerationError
from authtables.generation.migration import MigrationGenerator


def failing_engine() -> MagicMock:
    """Mock engine whose connection fails every statement."""
    engine = MagicMock()
    connection = MagicMock()
    connection.exec_driver_sql.side_effect = OperationalError(
        "CREATE TABLE", {}, Exception("disk I/O error")
    )
    engine.begin.return_value.__enter__.return_value = connection
    engine.begin.return_value.__exit__.return_value = False
    return engine


class TestMigrationGeneratorInit:
    """Test constructor validation."""

    def test_requires_features(self):
        """Test that an empty feature list is rejected."""
        with pytest.raises(ValueError):
            MigrationGenerator([])

    def test_unknown_feature(self):
        """Test that unknown features are rejected."""
        with pytest.raises(ValueError, match="Unknown feature"):
            MigrationGenerator(["teleport"])

    def test_feature_without_template(self):
        """Test that features shipping no template are rejected."""
        registry = FeatureRegistry()
        registry.register("legacy", template=None)
        with pytest.raises(ValueError, match="No migration template"):
            MigrationGenerator(["legacy"], registry=registry)


class TestGenerate:
    """Test migration text generation."""

    def test_feature_blocks_in_order(self):
        """Test one header per feature, in the given order."""
        sql = MigrationGenerator(["otp", "base"], dialect="sqlite").generate()
        assert sql.index("-- Feature: otp") < sql.index("-- Feature: base")
        assert "CREATE TABLE IF NOT EXISTS account_otp_keys" in sql

    def test_dialect_specific_output(self):
        """Test that the same feature renders per dialect."""
        postgres = MigrationGenerator(["base"], dialect="postgres").generate()
        mysql = MigrationGenerator(["base"], dialect="mysql").generate()
        sqlite = MigrationGenerator(["base"], dialect="sqlite").generate()
        assert "CREATE EXTENSION IF NOT EXISTS citext" in postgres
        assert "BIGSERIAL" in postgres
        assert "AUTO_INCREMENT" in mysql
        assert "INSERT IGNORE INTO account_statuses" in mysql
        assert "AUTOINCREMENT" in sqlite
        assert "INSERT OR IGNORE INTO account_statuses" in sqlite
        assert "WHERE status_id IN (1, 2)" in sqlite
        assert "WHERE status_id" not in mysql

    def test_custom_prefix(self):
        """Test table names for a custom prefix."""
        sql = MigrationGenerator(["base", "otp"], prefix="admin").generate()
        assert "CREATE TABLE IF NOT EXISTS admins" in sql
        assert "admin_otp_keys" in sql

    def test_reserved_key_column_is_quoted(self):
        """Test quoting of the key column per dialect."""
        assert '"key"' in MigrationGenerator(["otp"], dialect="postgres").generate()
        assert "`key`" in MigrationGenerator(["otp"], dialect="mysql").generate()

    def test_statements_have_no_semicolons(self):
        """Test executable statement splitting."""
        statements = MigrationGenerator(["base", "otp"], dialect="sqlite").statements()
        assert statements
        assert not any(s.endswith(";") for s in statements)

    def test_feature_statements_are_tagged(self):
        """Test feature and template tags."""
        tagged = MigrationGenerator(["otp"], dialect="sqlite").feature_statements()
        assert tagged == [("otp", "otp.sql.j2", tagged[0][2])]


class TestMigrationName:
    """Test migration naming."""

    def test_default_prefix_is_omitted(self):
        """Test names for the default prefix."""
        assert MigrationGenerator(["otp"]).migration_name() == "create_otp"

    def test_custom_prefix_is_included(self):
        """Test names for a custom prefix."""
        generator = MigrationGenerator(["base", "otp"], prefix="admin")
        assert generator.migration_name() == "create_admin_base_otp"


class TestExecuteCreateTables:
    """Test DDL execution."""

    def test_creates_tables(self, sqlite_engine):
        """Test executing every statement on SQLite."""
        generator = MigrationGenerator(["base", "otp"], dialect="sqlite")
        count = generator.execute_create_tables(sqlite_engine)
        assert count == len(generator.statements())
        db = inspect(sqlite_engine)
        for table in ("account_statuses", "accounts", "account_password_hashes", "account_otp_keys"):
            assert db.has_table(table)

    def test_idempotent(self, sqlite_engine):
        """Test that running twice succeeds."""
        generator = MigrationGenerator(["base"], dialect="sqlite")
        generator.execute_create_tables(sqlite_engine)
        generator.execute_create_tables(sqlite_engine)
        with sqlite_engine.connect() as connection:
            count = connection.exec_driver_sql("SELECT COUNT(*) FROM account_statuses").scalar()
        assert count == 3

    def test_failure_names_feature_and_template(self):
        """Test that statement failures are wrapped."""
        generator = MigrationGenerator(["otp"], dialect="sqlite")
        with pytest.raises(GenerationError) as exc_info:
            generator.execute_create_tables(failing_engine())
        error = exc_info.value
        assert error.feature == "otp"
        assert error.template == "otp.sql.j2"
        assert error.statement.startswith("CREATE TABLE IF NOT EXISTS account_otp_keys")
        assert isinstance(error.__cause__, OperationalError)

    def test_connection_failure_is_wrapped(self, tmp_path):
        """Test that failing to open the database surfaces as GenerationError."""
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'auth.db'}")
        generator = MigrationGenerator(["base", "otp"], dialect="sqlite")
        with pytest.raises(GenerationError) as exc_info:
            generator.execute_create_tables(engine)
        error = exc_info.value
        assert error.feature == "base, otp"
        assert error.template == "base.sql.j2, otp.sql.j2"
        assert error.statement is None
        assert isinstance(error.__cause__, OperationalError)

    def test_commit_failure_is_wrapped(self):
        """Test that a failure while committing is wrapped too."""
        engine = MagicMock()
        engine.begin.return_value.__exit__.side_effect = OperationalError(
            "COMMIT", {}, Exception("database is locked")
        )
        with pytest.raises(GenerationError) as exc_info:
            MigrationGenerator(["otp"], dialect="sqlite").execute_create_tables(engine)
        assert exc_info.value.feature == "otp"
        assert isinstance(exc_info.value.__cause__, OperationalError)
