"""
guestledger/cli/__init__.py

guestledger CLI: root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    guestledger = "guestledger.cli:cli"

Adding a new command:
    1. Create guestledger/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging
from pathlib import Path
from typing import Optional

import click

from guestledger.cli.guestbook import read_command, sign_command
from guestledger.cli.verify import verify_command
from guestledger.config import load_config
from guestledger.core.exceptions import ConfigError


@click.group()
@click.version_option(package_name="guestledger")
@click.option(
    "--config", "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="PATH",
    help="YAML configuration file.",
)
@click.option(
    "--ledger", "ledger_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="PATH",
    help="Ledger file (overrides config and GUESTLEDGER_LEDGER_PATH).",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logging.")
@click.pass_context
def cli(
    ctx:         click.Context,
    config_file: Optional[Path],
    ledger_path: Optional[Path],
    verbose:     bool,
) -> None:
    """
    guestledger: an append-only guestbook.

    \b
    Commands:
      sign      Submit an entry and wait for settlement.
      read      Print every entry in the ledger.
      verify    Check the ledger's hash chain and signatures.

    \b
    Quick start:
      guestledger sign alice "hello there"
      guestledger read
      guestledger read --format json
      guestledger verify --quiet && echo "clean"
    """
    try:
        config = load_config(
            config_file,
            ledger_path=ledger_path,
            log_level="DEBUG" if verbose else None,
        )
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


cli.add_command(sign_command)
cli.add_command(read_command)
cli.add_command(verify_command)
