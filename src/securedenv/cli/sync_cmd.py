"""Remote sync commands: push, pull."""

from __future__ import annotations

from typing import Optional

import click
from rich.markup import escape
from rich.panel import Panel

from ..errors import RemoteConflictError, SecuredEnvError
from ._common import console, engine_for, fail, key_options, project_option


def register_sync_commands(main: click.Group) -> None:
    """Register the push/pull commands."""

    @main.command("push")
    @key_options
    @project_option
    def push(password: Optional[str], key_file: Optional[str], project: str):
        """Back up and upload the container to the remote repository.

        The remote copy lives at <project name>/backup.secenv.

        Examples:

            secenv push --key 'Str0ng!Pass99'
        """
        engine = engine_for(project)
        try:
            result = engine.push(password=password, key_file=key_file)
        except RemoteConflictError as exc:
            console.print("[yellow]Someone else pushed this project since you last read it.[/]")
            fail("Push", exc)
        except SecuredEnvError as exc:
            fail("Push", exc)

        action = "created" if result.created else "updated"
        console.print(Panel(
            f"[bold green]Push completed[/] ({action})\n"
            f"Project: {escape(result.project)}\n"
            f"Files: {escape(', '.join(result.files))}\n"
            f"Remote: [cyan]{escape(result.remote_path)}[/]",
            title="Push",
            border_style="magenta",
        ))

    @main.command("pull")
    @key_options
    @project_option
    def pull(password: Optional[str], key_file: Optional[str], project: str):
        """Download the remote container and restore .env files.

        Examples:

            secenv pull --key 'Str0ng!Pass99'
        """
        engine = engine_for(project)
        try:
            result = engine.pull(password=password, key_file=key_file)
        except SecuredEnvError as exc:
            fail("Pull", exc)

        console.print(Panel(
            f"[bold green]Pull completed[/]\n"
            f"Project: {escape(result.project)}\n"
            f"Backup date: {escape(result.timestamp)}\n"
            f"Files: {escape(', '.join(result.files))}\n"
            f"Stored: [cyan]{escape(str(result.stored_at))}[/]",
            title="Pull",
            border_style="magenta",
        ))
