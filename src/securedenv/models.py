"""
Pydantic models for SecuredEnv records and operation results.

The container payload is the JSON form of BackupRecord. Field aliases
fix the wire names (``encrypted``, ``iv``, ``authTag``) independently of
the Python attribute names.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONTAINER_EXTENSION = ".secenv"
ENTROPY_TAG = b"securedenv-v1"


class EncryptedBlob(BaseModel):
    """One encrypted file plus everything needed to decrypt it.

    All byte fields are lowercase hex strings.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ciphertext: str = Field(alias="encrypted")
    salt: str
    nonce: str = Field(alias="iv")
    auth_tag: str = Field(alias="authTag")


class BackupRecord(BaseModel):
    """A snapshot of one project's .env files.

    Attributes:
        project: Project name (working directory basename).
        hash: 16-hex-character project hash.
        timestamp: When the snapshot was taken (ISO-8601, UTC).
        files: Relative filename -> encrypted contents.
    """

    project: str
    hash: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    files: dict[str, EncryptedBlob] = Field(default_factory=dict)

    @field_validator("files")
    @classmethod
    def _no_container_entries(
        cls, files: dict[str, EncryptedBlob]
    ) -> dict[str, EncryptedBlob]:
        for name in files:
            if name.endswith(CONTAINER_EXTENSION):
                raise ValueError(f"container file cannot be an entry: {name}")
        return files

    def to_wire(self) -> dict:
        """Return the JSON-ready dict using wire field names."""
        return self.model_dump(by_alias=True)


class ProjectIdentity(BaseModel):
    """Who the current project is, derived from its directory name."""

    model_config = ConfigDict(frozen=True)

    name: str
    hash: str

    @classmethod
    def from_name(cls, name: str) -> "ProjectIdentity":
        """Build the identity for a project name."""
        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()
        return cls(name=name, hash=digest[:16])

    @property
    def entropy(self) -> bytes:
        """Project entropy mixed into key derivation (32 bytes)."""
        h = hashlib.sha256()
        h.update(self.name.encode("utf-8"))
        h.update(ENTROPY_TAG)
        return h.digest()


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

class BackupResult(BaseModel):
    """Outcome of a backup."""

    project: str
    files: list[str]
    backup_file: Path

    @property
    def count(self) -> int:
        return len(self.files)


class RestoreResult(BaseModel):
    """Outcome of a restore, import, or pull."""

    project: str
    timestamp: str
    files: list[str]

    @property
    def count(self) -> int:
        return len(self.files)


class ExportResult(BaseModel):
    """Outcome of an export."""

    project: str
    export_path: Path
    timestamp: str
    file_count: int
    verified: bool = False


class ImportResult(RestoreResult):
    """Outcome of an import."""

    current_project: str
    import_path: Path
    stored_at: Path


class PushResult(BaseModel):
    """Outcome of a push to the remote store."""

    project: str
    files: list[str]
    remote_path: str
    revision: str
    created: bool


class PullResult(RestoreResult):
    """Outcome of a pull from the remote store."""

    remote_path: str
    revision: str
    stored_at: Path


class BackupInfo(BaseModel):
    """Container metadata, readable without any key."""

    project: str
    hash: str
    timestamp: str
    files: list[str]
    backup_file: Path
    size: int = 0
    modified_at: Optional[datetime] = None

    @property
    def file_count(self) -> int:
        return len(self.files)
