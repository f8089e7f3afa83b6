"""
AUTHTABLES command line interface.

Entry point for the ``authtables`` command.
"""

import logging

import click

from .. import __version__
from .commands.check import check
from .commands.generate import generate
from .commands.status import status
from .commands.tables import tables


@click.group()
@click.version_option(__version__, prog_name="authtables")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level",
)
def cli(log_level: str) -> None:
    """Discover, generate and check authentication tables."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(generate)
cli.add_command(tables)
cli.add_command(status)
cli.add_command(check)


if __name__ == "__main__":
    cli()
