"""Shared utilities for all CLI command modules.

Provides the Rich console instance, the key/project option decorators,
and the error reporter used by every command.
"""

from __future__ import annotations

import logging
from typing import Callable, NoReturn

import click
from rich.console import Console
from rich.markup import escape

from ..engine import SecuredEnv
from ..errors import SecuredEnvError, WeakKeyError

console = Console()
logger = logging.getLogger("securedenv.cli")


def key_options(func: Callable) -> Callable:
    """Add the mutually exclusive --key / --key-file options."""
    func = click.option(
        "--key-file",
        default=None,
        type=click.Path(dir_okay=False),
        help="Binary key file (instead of a password).",
    )(func)
    func = click.option(
        "--key", "-k", "password",
        default=None,
        help="Encryption password.",
    )(func)
    return func


def project_option(func: Callable) -> Callable:
    """Add the --project option."""
    return click.option(
        "--project", "-p",
        default=".",
        type=click.Path(file_okay=False, exists=True),
        help="Project directory. Defaults to the current directory.",
    )(func)


def engine_for(project: str) -> SecuredEnv:
    """Build the engine for a project directory."""
    return SecuredEnv(project_root=project)


def fail(action: str, exc: SecuredEnvError) -> NoReturn:
    """Report a failed operation and exit with status 1.

    Args:
        action: What was being attempted (e.g. "Backup").
        exc: The error that stopped it.
    """
    console.print(f"[bold red]{action} failed:[/] {escape(str(exc))}")
    if isinstance(exc, WeakKeyError):
        console.print("[dim]Use at least 12 characters mixing upper, lower, digits and symbols.[/]")
    logger.debug("%s failed", action, exc_info=exc)
    raise SystemExit(1)
