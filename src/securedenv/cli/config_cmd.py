"""Configuration command: remote settings."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.markup import escape
from rich.panel import Panel

from ..config import config_file, load_config, save_config
from ..errors import SecuredEnvError
from ..remote.models import RemoteBackendType
from ._common import console, fail


def _mask(token: Optional[str]) -> str:
    if not token:
        return "[yellow]not set[/]"
    return token[:4] + "…" if len(token) > 8 else "****"


def register_config_commands(main: click.Group) -> None:
    """Register the config command."""

    @main.command("config")
    @click.option("--github-token", default=None, help="GitHub personal access token.")
    @click.option("--github-repo", default=None, help="Repository for backups (owner/repo).")
    @click.option("--branch", default=None, help="Branch to store backups on.")
    @click.option("--local-path", default=None, type=click.Path(file_okay=False),
                  help="Use a plain directory as the remote instead of GitHub.")
    @click.option("--show", is_flag=True, help="Print the current configuration.")
    def config(
        github_token: Optional[str],
        github_repo: Optional[str],
        branch: Optional[str],
        local_path: Optional[str],
        show: bool,
    ):
        """Configure where push and pull send the backup.

        Examples:

            secenv config --github-token ghp_xxx --github-repo me/env-backups

            secenv config --local-path /mnt/usb/secenv
        """
        cfg = load_config(use_env=False)
        changed = False

        if github_token:
            cfg.remote.token = github_token
            cfg.remote.backend = RemoteBackendType.GITHUB
            changed = True
        if github_repo:
            cfg.remote.repo = github_repo
            cfg.remote.backend = RemoteBackendType.GITHUB
            changed = True
        if branch:
            cfg.remote.branch = branch
            changed = True
        if local_path:
            cfg.remote.local_path = Path(local_path).expanduser()
            cfg.remote.backend = RemoteBackendType.LOCAL
            changed = True

        if changed:
            try:
                path = save_config(cfg)
            except SecuredEnvError as exc:
                fail("Config", exc)
            console.print(f"[green]Configuration saved to {escape(str(path))}[/]")

        if show or not changed:
            remote = cfg.remote
            console.print(Panel(
                f"Backend: [cyan]{remote.backend.value}[/]\n"
                f"Repo: {escape(remote.repo or '-')}\n"
                f"Branch: {escape(remote.branch)}\n"
                f"Token: {_mask(remote.token)}\n"
                f"Local path: {escape(str(remote.local_path or '-'))}\n"
                f"File: [dim]{escape(str(config_file()))}[/]",
                title="Remote",
                border_style="cyan",
            ))
