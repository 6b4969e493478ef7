"""
Key material and key resolution.

An operation is keyed by exactly one of a password or a key file.
Supplying both is an error, never a silent preference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .errors import KeyConfigError, KeyConfigReason

logger = logging.getLogger("securedenv.keys")


@dataclass(frozen=True)
class Password:
    """A human password, subject to the strength policy."""

    value: str = field(repr=False)

    @property
    def secret(self) -> bytes:
        return self.value.encode("utf-8")


@dataclass(frozen=True)
class RawKey:
    """Opaque bytes read from a key file. Any length, no policy."""

    data: bytes = field(repr=False)
    source: Optional[Path] = None

    @property
    def secret(self) -> bytes:
        return self.data


KeyMaterial = Union[Password, RawKey]


def resolve_key(
    password: Optional[str] = None,
    key_file: Optional[Union[str, Path]] = None,
) -> KeyMaterial:
    """Turn the caller's key options into key material.

    Passwords are not validated here; the strength policy is applied
    when a key is derived from them.

    Args:
        password: Password string, if given.
        key_file: Path to a key file, if given.

    Returns:
        KeyMaterial: A Password or a RawKey.

    Raises:
        KeyConfigError: Both or neither option given, or the key file
            cannot be read.
    """
    if password and key_file:
        raise KeyConfigError(
            KeyConfigReason.CONFLICT,
            "use either a password or a key file, not both",
        )

    if key_file:
        path = Path(key_file).expanduser()
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise KeyConfigError(
                KeyConfigReason.UNREADABLE, f"cannot read key file {path}: {exc}"
            ) from exc
        logger.debug("Loaded key file %s (%d bytes)", path, len(data))
        return RawKey(data=data, source=path)

    if password:
        return Password(value=password)

    raise KeyConfigError(
        KeyConfigReason.MISSING, "a password or a key file is required"
    )
