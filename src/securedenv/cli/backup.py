"""Backup commands: backup, restore, export, import, info, check-password."""

from __future__ import annotations

from typing import Optional

import click
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..errors import SecuredEnvError
from ..validation import Requirement, validate_password
from ._common import console, engine_for, fail, key_options, project_option


def register_backup_commands(main: click.Group) -> None:
    """Register the local backup commands."""

    @main.command("backup")
    @key_options
    @project_option
    def backup(password: Optional[str], key_file: Optional[str], project: str):
        """Back up all .env files in the project.

        Examples:

            secenv backup --key 'Str0ng!Pass99'

            secenv backup --key-file ~/.secenv.key
        """
        engine = engine_for(project)
        console.print(f"\n[cyan]Backing up environment files for {engine.identity().name}...[/]")
        try:
            result = engine.backup(password=password, key_file=key_file)
        except SecuredEnvError as exc:
            fail("Backup", exc)

        console.print(Panel(
            f"[bold green]Backup completed[/]\n"
            f"Project: {escape(result.project)}\n"
            f"Files: {escape(', '.join(result.files))}\n"
            f"Stored: [cyan]{escape(str(result.backup_file))}[/]",
            title="Backup",
            border_style="green",
        ))

    @main.command("restore")
    @key_options
    @project_option
    def restore(password: Optional[str], key_file: Optional[str], project: str):
        """Restore .env files from the local backup.

        Examples:

            secenv restore --key 'Str0ng!Pass99'
        """
        engine = engine_for(project)
        try:
            result = engine.restore(password=password, key_file=key_file)
        except SecuredEnvError as exc:
            fail("Restore", exc)

        console.print(Panel(
            f"[bold green]Restore completed[/]\n"
            f"Project: {escape(result.project)}\n"
            f"Backup date: {escape(result.timestamp)}\n"
            f"Files: {escape(', '.join(result.files))}",
            title="Restore",
            border_style="green",
        ))

    @main.command("export")
    @click.option("--output", "-o", required=True, type=click.Path(dir_okay=False),
                  help="Where to write the backup file (e.g. backup.secenv).")
    @key_options
    @project_option
    def export(output: str, password: Optional[str], key_file: Optional[str], project: str):
        """Copy the local backup file so it can move to another machine.

        Passing a key verifies it opens the backup before exporting.

        Examples:

            secenv export --output backup.secenv
        """
        engine = engine_for(project)
        try:
            result = engine.export(output, password=password, key_file=key_file)
        except SecuredEnvError as exc:
            fail("Export", exc)

        verified = "[green]key verified[/]" if result.verified else "[dim]key not checked[/]"
        console.print(Panel(
            f"[bold green]Export completed[/]\n"
            f"Project: {escape(result.project)}\n"
            f"File: [cyan]{escape(str(result.export_path))}[/]\n"
            f"Entries: {result.file_count} ({verified})",
            title="Export",
            border_style="green",
        ))
        console.print(f"[yellow]Copy {escape(str(result.export_path))} to another machine and run 'secenv import'.[/]")

    @main.command("import")
    @click.argument("file", type=click.Path(dir_okay=False))
    @key_options
    @project_option
    def import_cmd(file: str, password: Optional[str], key_file: Optional[str], project: str):
        """Import a backup file and restore its .env files.

        Examples:

            secenv import backup.secenv --key 'Str0ng!Pass99'
        """
        engine = engine_for(project)
        try:
            result = engine.import_(file, password=password, key_file=key_file)
        except SecuredEnvError as exc:
            fail("Import", exc)

        console.print(Panel(
            f"[bold green]Import completed[/]\n"
            f"Original project: {escape(result.project)}\n"
            f"Backup date: {escape(result.timestamp)}\n"
            f"Files: {escape(', '.join(result.files))}\n"
            f"Stored: [cyan]{escape(str(result.stored_at))}[/]",
            title="Import",
            border_style="green",
        ))
        console.print(f"[yellow]Delete {escape(file)} now that it has been imported.[/]")

    @main.command("info")
    @project_option
    def info(project: str):
        """Show what the local backup holds, without decrypting it."""
        engine = engine_for(project)
        details = engine.backup_info()
        if details is None:
            console.print(f"\n[dim]No backup for {escape(engine.identity().name)}.[/]\n")
            return

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Project", escape(details.project))
        table.add_row("Hash", details.hash)
        table.add_row("Created", escape(details.timestamp))
        table.add_row("Files", escape(", ".join(details.files)))
        table.add_row("Size", f"{details.size} bytes")
        table.add_row("Path", escape(str(details.backup_file)))
        console.print()
        console.print(table)
        console.print()

    @main.command("check-password")
    @click.option("--key", "-k", "password", prompt=True, hide_input=True,
                  help="Password to check.")
    def check_password(password: str):
        """Score a password against the strength policy."""
        report = validate_password(password)
        colour = "green" if report.strong else "red"
        console.print(f"\nScore: [bold {colour}]{report.score}/{len(Requirement)}[/]")
        for req in Requirement:
            mark = "[red]missing[/]" if req in report.unmet else "[green]ok[/]"
            console.print(f"  {req.value}: {mark}")
        console.print(f"[{colour}]{report.message}[/]\n")
        if not report.strong:
            raise SystemExit(1)
