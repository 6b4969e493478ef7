"""
Error taxonomy for SecuredEnv.

Every failure the library can report is a subclass of SecuredEnvError,
so callers can catch the whole family or react to one kind. Nothing in
the package inspects error messages to decide what to do.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .validation import PasswordReport


class SecuredEnvError(Exception):
    """Base exception for all SecuredEnv errors."""


class WeakKeyError(SecuredEnvError):
    """The password does not meet the strength policy.

    Attributes:
        report: The validation report listing unmet requirements.
    """

    def __init__(self, report: "PasswordReport"):
        self.report = report
        super().__init__(f"Weak password: {report.message}")


class KeyConfigReason(str, Enum):
    """Why a key specification was rejected."""

    MISSING = "missing"
    CONFLICT = "mutually exclusive"
    UNREADABLE = "unreadable"


class KeyConfigError(SecuredEnvError):
    """Invalid, missing, or conflicting key specification.

    Attributes:
        reason: Which rule was violated.
    """

    def __init__(self, reason: KeyConfigReason, detail: str = ""):
        self.reason = reason
        message = f"Key configuration error ({reason.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DecryptionError(SecuredEnvError):
    """Authentication failed: wrong key, or tampered/corrupted data."""


class FormatError(SecuredEnvError):
    """Bytes are not a valid SecuredEnv container."""


class ProjectMismatchError(FormatError):
    """The local container was written for a different project."""


class NoFilesFoundError(SecuredEnvError):
    """Backup requested but no eligible .env files exist."""


class BackupNotFoundError(SecuredEnvError):
    """No container exists at the expected location."""


class StorageError(SecuredEnvError, OSError):
    """A filesystem or network operation failed.

    Attributes:
        path: The file or remote path involved, when known.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class RemoteError(StorageError):
    """The remote store rejected a request or could not be reached."""


class RemoteNotFoundError(RemoteError):
    """No remote object exists at the requested path."""


class RemoteConflictError(RemoteError):
    """The remote object changed since its revision was read."""
