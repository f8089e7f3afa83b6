"""
Status command for CLI.

Reports the presence of every required table on a live database.
"""

from pathlib import Path
from typing import Optional, Tuple

import click

from ...guard import TableGuard
from ..utils import (build_configuration, common_options, format_records,
                     open_engine)


@click.command()
@click.argument("features", nargs=-1)
@common_options
@click.option("--database-url", required=True, envvar="DATABASE_URL", help="SQLAlchemy URL")
@click.option(
    "--format",
    "format_type",
    type=click.Choice(["json", "pretty"]),
    default="pretty",
    show_default=True,
    help="Output format",
)
def status(
    features: Tuple[str, ...],
    prefix: str,
    template_dirs: Tuple[Path, ...],
    feature_manifest: Optional[Path],
    database_url: str,
    format_type: str,
) -> None:
    """
    Show which required tables exist.

    FEATURES: Feature names (base is always included)

    Examples:
        authtables status otp --database-url sqlite:///app.db
        authtables status otp --database-url postgresql://localhost/app --format json
    """
    config = build_configuration(features, prefix, None, template_dirs, feature_manifest)
    engine = open_engine(database_url)
    try:
        records = TableGuard(config, engine=engine).table_status()
    finally:
        engine.dispose()
    click.echo(format_records([dict(r) for r in records], format_type))
