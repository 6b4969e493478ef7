"""
Remote store data models -- configuration and fetched objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel


class RemoteBackendType(str, Enum):
    """Supported remote transports."""

    GITHUB = "github"
    LOCAL = "local"


class RemoteConfig(BaseModel):
    """Where pushes go and pulls come from."""

    backend: RemoteBackendType = RemoteBackendType.GITHUB

    # GitHub contents API
    token: Optional[str] = None
    repo: Optional[str] = None
    branch: str = "main"
    api_url: str = "https://api.github.com"

    # Plain directory (USB drive, NAS, mounted share)
    local_path: Optional[Path] = None

    @property
    def configured(self) -> bool:
        if self.backend == RemoteBackendType.LOCAL:
            return self.local_path is not None
        return bool(self.token and self.repo)


@dataclass(frozen=True)
class RemoteBlob:
    """A remote object and the revision marker it was read at."""

    data: bytes = field(repr=False)
    revision: str
