"""
SecuredEnv CLI — the secenv command line.

The main Click group is defined here and every command module
registers its commands on it.

Entry point: securedenv.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="secenv")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool):
    """SecuredEnv — encrypted backups for your .env files.

    Back up, restore, export, import, and sync secrets per project.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


# ---------------------------------------------------------------------------
# Register all commands from modular files
# ---------------------------------------------------------------------------

from .backup import register_backup_commands
from .config_cmd import register_config_commands
from .sync_cmd import register_sync_commands

register_backup_commands(main)
register_sync_commands(main)
register_config_commands(main)
