"""
Tables command for CLI.

Lists every table a feature set requires, with its owning feature.
"""

from pathlib import Path
from typing import Optional, Tuple

import click

from ...config import TableGuardConfig
from ...constants import DIALECT_ALIASES
from ...guard import TableGuard
from ..utils import build_configuration, common_options, format_records


@click.command()
@click.argument("features", nargs=-1)
@common_options
@click.option(
    "--dialect",
    type=click.Choice(sorted(DIALECT_ALIASES), case_sensitive=False),
    default="postgres",
    show_default=True,
    help="Dialect the templates are rendered for",
)
@click.option(
    "--format",
    "format_type",
    type=click.Choice(["json", "pretty"]),
    default="pretty",
    show_default=True,
    help="Output format",
)
def tables(
    features: Tuple[str, ...],
    prefix: str,
    template_dirs: Tuple[Path, ...],
    feature_manifest: Optional[Path],
    dialect: str,
    format_type: str,
) -> None:
    """
    List the tables required by a set of features.

    FEATURES: Feature names (base is always included)

    Examples:
        authtables tables otp lockout
        authtables tables otp --prefix user --format json
    """
    config = build_configuration(features, prefix, dialect, template_dirs, feature_manifest)
    guard = TableGuard(config, TableGuardConfig(dialect=dialect))
    configuration = guard.table_configuration()
    records = [
        {
            "table": name,
            "feature": configuration[name].owning_feature,
            "accessor": configuration[name].accessor,
            "verified": configuration[name].verified,
        }
        for name in sorted(configuration)
    ]
    click.echo(format_records(records, format_type))
