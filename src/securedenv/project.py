"""
Project identity, storage locations, and .env file discovery.

A project is identified by the basename of its root directory, so the
same folder name on another machine (or another path) resolves to the
same identity. Local storage uses only the hash of that name.
"""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Optional, Union

from .models import CONTAINER_EXTENSION, ProjectIdentity

CONTAINER_FILENAME = ".secenv"
REMOTE_FILENAME = "backup.secenv"

ENV_PREFIX = ".env"
ENV_IGNORED = frozenset({".env.example", ".env.template"})


def identify(root: Union[str, Path]) -> ProjectIdentity:
    """Derive the identity of the project rooted at root.

    Args:
        root: Project root directory.

    Returns:
        ProjectIdentity: Name and 16-hex-character hash.
    """
    name = Path(root).expanduser().resolve().name
    return ProjectIdentity.from_name(name)


def storage_root() -> Path:
    """Return the platform directory that holds all SecuredEnv data.

    ``SECENV_HOME`` wins when set. Otherwise:
    Windows ``%APPDATA%\\SecuredEnv``, macOS
    ``~/Library/Application Support/SecuredEnv``, and elsewhere
    ``$XDG_CONFIG_HOME/securedenv``.
    """
    override = os.environ.get("SECENV_HOME")
    if override:
        return Path(override).expanduser()

    system = platform.system()
    if system == "Windows":
        appdata = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(appdata) / "SecuredEnv"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "SecuredEnv"

    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "securedenv"


def project_dir(identity: ProjectIdentity, root: Optional[Path] = None) -> Path:
    """Per-project storage directory, named by the project hash."""
    return (root or storage_root()) / identity.hash


def container_path(identity: ProjectIdentity, root: Optional[Path] = None) -> Path:
    """Path of the local container for a project."""
    return project_dir(identity, root) / CONTAINER_FILENAME


def remote_path(identity: ProjectIdentity) -> str:
    """Remote object path. Uses the literal, human-readable name."""
    return f"{identity.name}/{REMOTE_FILENAME}"


def is_env_file(name: str) -> bool:
    """Check whether a filename is eligible for backup."""
    return (
        name.startswith(ENV_PREFIX)
        and name not in ENV_IGNORED
        and not name.endswith(CONTAINER_EXTENSION)
    )


def find_env_files(root: Union[str, Path]) -> list[str]:
    """List eligible .env files directly inside root.

    Args:
        root: Project root directory.

    Returns:
        list[str]: Sorted filenames relative to root.
    """
    base = Path(root)
    return sorted(
        p.name for p in base.glob(ENV_PREFIX + "*")
        if p.is_file() and is_env_file(p.name)
    )
