"""
Utility functions for CLI commands.

This module provides shared utilities for CLI operations.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import click
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from ..core.configuration import AuthConfiguration
from ..core.features import FeatureRegistry, default_registry
from ..exceptions import ConfigurationError


def build_configuration(
    features: Sequence[str],
    prefix: str,
    dialect: Optional[str] = None,
    template_dirs: Sequence[Path] = (),
    feature_manifest: Optional[Path] = None,
) -> AuthConfiguration:
    """
    Build an auth configuration from command line options.

    Raises:
        click.ClickException: If a feature is unknown or the manifest is invalid
    """
    registry: FeatureRegistry = default_registry
    try:
        if feature_manifest is not None:
            registry = default_registry.copy()
            registry.load_manifest(feature_manifest)
        return AuthConfiguration(
            features,
            prefix=prefix,
            registry=registry,
            template_dirs=list(template_dirs),
            dialect=dialect,
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def open_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for a database URL.

    Raises:
        click.ClickException: If the URL is invalid or the driver is missing
    """
    try:
        return create_engine(database_url)
    except (ArgumentError, SQLAlchemyError, ImportError) as e:
        raise click.ClickException(f"Unable to open database {database_url}: {e}") from e


def format_records(records: List[Dict[str, Any]], format_type: str) -> str:
    """
    Format table records for output.

    Args:
        records: Table records (status or descriptor dictionaries)
        format_type: Output format ('json', 'pretty')

    Returns:
        Formatted string representation
    """
    if format_type == "json":
        return json.dumps(records, indent=2, ensure_ascii=False)

    if not records:
        return "(no tables)"
    columns = list(records[0].keys())
    widths = {
        c: max(len(c), *(len("" if r.get(c) is None else str(r.get(c))) for r in records))
        for c in columns
    }
    lines = ["  ".join(c.upper().ljust(widths[c]) for c in columns)]
    for record in records:
        values = ["" if record.get(c) is None else str(record.get(c)) for c in columns]
        lines.append("  ".join(v.ljust(widths[c]) for v, c in zip(values, columns)).rstrip())
    return "\n".join(lines)


def common_options(func: Any) -> Any:
    """Options shared by every command taking a feature list."""
    func = click.option(
        "--feature-manifest",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="JSON file registering additional features",
    )(func)
    func = click.option(
        "--template-dir",
        "template_dirs",
        multiple=True,
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        help="Extra template directory (searched before the built-in templates)",
    )(func)
    func = click.option(
        "--prefix",
        default="account",
        show_default=True,
        help="Singular table prefix",
    )(func)
    return func
