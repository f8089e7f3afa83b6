"""
Check command for CLI.

Runs the table guard once against a live database.
"""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from ...config import TableGuardConfig
from ...constants import GUARD_MODES
from ...exceptions import ConfigurationError
from ...guard import PolicyOutcome, TableGuard
from ..utils import build_configuration, common_options, open_engine


@click.command()
@click.argument("features", nargs=-1)
@common_options
@click.option("--database-url", required=True, envvar="DATABASE_URL", help="SQLAlchemy URL")
@click.option(
    "--mode",
    type=click.Choice(list(GUARD_MODES)),
    default="warn",
    show_default=True,
    help="Presence policy",
)
@click.option("--skip", "skip_tables", multiple=True, help="Table to leave out (repeatable)")
def check(
    features: Tuple[str, ...],
    prefix: str,
    template_dirs: Tuple[Path, ...],
    feature_manifest: Optional[Path],
    database_url: str,
    mode: str,
    skip_tables: Tuple[str, ...],
) -> None:
    """
    Check that every required table exists.

    Exits with status 1 when the policy raises or halts.

    FEATURES: Feature names (base is always included)

    Examples:
        authtables check otp --database-url sqlite:///app.db
        authtables check otp --database-url sqlite:///app.db --mode raise --skip account_otp_keys
    """
    config = build_configuration(features, prefix, None, template_dirs, feature_manifest)
    engine = open_engine(database_url)
    try:
        guard = TableGuard(
            config,
            TableGuardConfig(mode=mode, skip_tables=list(skip_tables)),
            engine=engine,
        )
        decision = guard.check()
    except ConfigurationError as e:
        click.echo(click.style(f"❌ {e.message}", fg="red"), err=True)
        sys.exit(1)
    finally:
        engine.dispose()

    if decision.outcome == PolicyOutcome.HALT:
        click.echo(click.style(f"❌ {decision.message}", fg="red"), err=True)
        sys.exit(1)

    if decision.missing_tables:
        click.echo(
            click.style(
                f"⚠️  Missing tables: {', '.join(decision.missing_tables)}", fg="yellow"
            )
        )
    else:
        click.echo(click.style("✅ All required tables exist", fg="green"))
    if decision.unknown_tables:
        click.echo(f"Unable to verify: {', '.join(decision.unknown_tables)}")
    sys.exit(0)
