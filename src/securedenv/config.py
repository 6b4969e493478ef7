"""
Persistent SecuredEnv configuration.

Lives at ``<storage root>/config/config.yaml``. Only remote settings are
stored; keys and passwords never are.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .container import atomic_write
from .project import storage_root
from .remote.models import RemoteConfig

logger = logging.getLogger("securedenv.config")

TOKEN_ENV_VAR = "SECENV_GITHUB_TOKEN"


class SecEnvConfig(BaseModel):
    """Complete SecuredEnv configuration."""

    remote: RemoteConfig = Field(default_factory=RemoteConfig)


def config_file(root: Optional[Path] = None) -> Path:
    """Path of the configuration file."""
    return (root or storage_root()) / "config" / "config.yaml"


def load_config(
    root: Optional[Path] = None, use_env: bool = True
) -> SecEnvConfig:
    """Load configuration from disk.

    A missing or malformed file yields the defaults. The GitHub token
    falls back to ``SECENV_GITHUB_TOKEN`` when the file has none.

    Args:
        root: Storage root. Defaults to the platform location.
        use_env: Apply the token environment variable.

    Returns:
        SecEnvConfig: The loaded configuration.
    """
    path = config_file(root)
    config = SecEnvConfig()
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            config = SecEnvConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load config %s: %s", path, exc)

    if use_env and not config.remote.token:
        env_token = os.environ.get(TOKEN_ENV_VAR)
        if env_token:
            config.remote.token = env_token
    return config


def save_config(config: SecEnvConfig, root: Optional[Path] = None) -> Path:
    """Persist configuration to disk (owner read/write only).

    Args:
        config: Configuration to save.
        root: Storage root. Defaults to the platform location.

    Returns:
        Path: The written file.

    Raises:
        StorageError: If the file cannot be written.
    """
    path = config_file(root)
    data = config.model_dump(mode="json", exclude_none=True)
    atomic_write(path, yaml.dump(data, default_flow_style=False).encode("utf-8"))

    logger.info("Saved config to %s", path)
    return path
