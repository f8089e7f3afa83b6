"""
Pytest configuration and shared fixtures for AUTHTABLES tests.

This module provides:
- Auth configuration fixtures
- SQLite engine fixtures
- Custom feature registry fixtures
- Common test utilities
"""

import logging
from pathlib import Path
from typing import Iterator
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from authtables.core.configuration import AuthConfiguration
from authtables.core.features import FeatureRegistry

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: tests using a real SQLite database")


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture
def auth_config() -> AuthConfiguration:
    """Configuration with the otp and remember features enabled."""
    return AuthConfiguration(["otp", "remember"], dialect="sqlite")


@pytest.fixture
def base_config() -> AuthConfiguration:
    """Configuration with only the base feature."""
    return AuthConfiguration([], dialect="sqlite")


@pytest.fixture
def primary_only_templates(tmp_path: Path) -> Path:
    """Template directory whose base template creates only the primary table."""
    template_dir = tmp_path / "templates"
    template_dir.mkdir()
    (template_dir / "base.sql.j2").write_text(
        "CREATE TABLE IF NOT EXISTS {{ tables.accounts_table }} (\n"
        "    id INTEGER PRIMARY KEY,\n"
        "    email VARCHAR(255) NOT NULL\n"
        ");\n",
        encoding="utf-8",
    )
    return template_dir


@pytest.fixture
def primary_only_registry() -> FeatureRegistry:
    """Registry with a base feature owning only the primary table."""
    registry = FeatureRegistry()
    registry.register("base", tables={"accounts_table": "{plural}"})
    return registry


@pytest.fixture
def primary_only_config(
    primary_only_registry: FeatureRegistry, primary_only_templates: Path
) -> AuthConfiguration:
    """Configuration enabling only a primary-table base feature."""
    return AuthConfiguration(
        [],
        registry=primary_only_registry,
        template_dirs=[primary_only_templates],
        dialect="sqlite",
    )


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    """File backed SQLite engine, disposed after the test."""
    engine = create_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def mock_engine() -> MagicMock:
    """Mock SQLAlchemy engine reporting a SQLite dialect."""
    engine = MagicMock()
    engine.dialect.name = "sqlite"
    return engine


@pytest.fixture
def run_ddl():
    """Run raw DDL statements on an engine."""

    def run(engine: Engine, *statements: str) -> None:
        with engine.begin() as connection:
            for statement in statements:
                connection.exec_driver_sql(statement)

    return run


# ============================================================================
# LOGGING
# ============================================================================


@pytest.fixture
def guard_logs(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Capture everything logged by the table guard logger."""
    caplog.set_level(logging.DEBUG, logger="authtables.guard")
    return caplog
