"""
Generate command for CLI.

Renders the migration creating every table of a feature set.
"""

from pathlib import Path
from typing import Optional, Tuple

import click

from ...config import TableGuardConfig
from ...constants import DIALECT_ALIASES
from ...exceptions import AuthTablesError
from ...generation import SchemaSynthesizer
from ...guard import TableGuard
from ..utils import build_configuration, common_options


@click.command()
@click.argument("features", nargs=-1)
@common_options
@click.option(
    "--dialect",
    type=click.Choice(sorted(DIALECT_ALIASES), case_sensitive=False),
    default="postgres",
    show_default=True,
    help="Target database dialect",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Write a timestamped migration file into this directory",
)
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the migration (default)")
def generate(
    features: Tuple[str, ...],
    prefix: str,
    template_dirs: Tuple[Path, ...],
    feature_manifest: Optional[Path],
    dialect: str,
    output_dir: Optional[Path],
    to_stdout: bool,
) -> None:
    """
    Generate the migration for a set of features.

    FEATURES: Feature names (base is always included)

    Examples:
        authtables generate otp remember
        authtables generate otp --dialect sqlite --output-dir db/migrate
    """
    config = build_configuration(features, prefix, dialect, template_dirs, feature_manifest)
    try:
        required = TableGuard(config, TableGuardConfig(dialect=dialect)).list_all_required_tables()
        synthesizer = SchemaSynthesizer(required, config, dialect=dialect)
        if output_dir is not None and not to_stdout:
            path = synthesizer.write_migration_file(output_dir)
            click.echo(click.style(f"✅ Wrote {path}", fg="green"))
        else:
            click.echo(synthesizer.generate_migration(), nl=False)
    except AuthTablesError as e:
        raise click.ClickException(str(e)) from e
