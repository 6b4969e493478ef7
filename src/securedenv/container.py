"""
The SECENV01 container format.

Layout (big-endian):
    magic    : 8 bytes  -> b"SECENV01"
    length   : u32      -> payload length
    payload  : length bytes

The payload is the compact JSON form of a BackupRecord, XOR-ed with a
fixed repeating ASCII key. The XOR only keeps secrets from showing up
in a casual hexdump; it is not encryption. Confidentiality comes from
the AES-GCM blobs inside the record.
"""

from __future__ import annotations

import json
import logging
import os
import struct
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .errors import BackupNotFoundError, FormatError, StorageError
from .models import BackupRecord

logger = logging.getLogger("securedenv.container")

MAGIC = b"SECENV01"
HEADER_FMT = ">8sI"
HEADER_SIZE = struct.calcsize(HEADER_FMT)
OBFUSCATION_KEY = b"SecuredEnvObfuscation2024"


def obfuscate(data: bytes) -> bytes:
    """XOR data with the repeating obfuscation key. Self-inverse."""
    key = OBFUSCATION_KEY
    klen = len(key)
    return bytes(b ^ key[i % klen] for i, b in enumerate(data))


def serialize(record: BackupRecord) -> bytes:
    """Encode a record as container bytes.

    Args:
        record: The snapshot to encode.

    Returns:
        bytes: Header plus obfuscated payload.
    """
    payload = json.dumps(
        record.to_wire(), ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")
    return struct.pack(HEADER_FMT, MAGIC, len(payload)) + obfuscate(payload)


def deserialize(data: bytes) -> BackupRecord:
    """Decode container bytes back into a record.

    Args:
        data: Raw container bytes.

    Returns:
        BackupRecord: The decoded snapshot.

    Raises:
        FormatError: Not a SecuredEnv container, or corrupted.
    """
    if len(data) < HEADER_SIZE:
        raise FormatError("Invalid backup file format: too short")

    magic, length = struct.unpack(HEADER_FMT, data[:HEADER_SIZE])
    if magic != MAGIC:
        raise FormatError("Invalid backup file format: not a SecuredEnv file")
    if len(data) != HEADER_SIZE + length:
        raise FormatError(
            f"Corrupted backup file: header declares {length} bytes, "
            f"found {len(data) - HEADER_SIZE}"
        )

    payload = obfuscate(data[HEADER_SIZE:])
    try:
        obj = json.loads(payload.decode("utf-8"))
        return BackupRecord.model_validate(obj)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        raise FormatError(f"Corrupted backup file: {exc}") from exc


def read_container(path: Path) -> bytes:
    """Read raw container bytes from disk.

    Raises:
        BackupNotFoundError: If the file does not exist.
        StorageError: On any other read failure.
    """
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise BackupNotFoundError(f"No backup found at {path}") from exc
    except OSError as exc:
        raise StorageError(f"Cannot read {path}: {exc}", path=str(path)) from exc


def load_record(path: Path) -> BackupRecord:
    """Read and decode the container at path."""
    return deserialize(read_container(path))


def atomic_write(path: Path, data: bytes) -> None:
    """Atomically replace path with data, readable by the owner only.

    The bytes go to a temporary file in the same directory, are flushed
    to disk, and are then renamed over the target. The temporary file is
    created with mode 0600, so the data is never visible to other users.
    If anything fails the temporary file is removed and the previous
    file is untouched.

    Raises:
        StorageError: If the write or rename fails.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=path.name + ".", suffix=".tmp"
        )
    except OSError as exc:
        raise StorageError(f"Cannot write {path}: {exc}", path=str(path)) from exc

    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise StorageError(f"Cannot write {path}: {exc}", path=str(path)) from exc


def write_container(path: Path, data: bytes) -> None:
    """Atomically replace the container at path.

    Raises:
        StorageError: If the write or rename fails.
    """
    atomic_write(path, data)
    logger.debug("Wrote container %s (%d bytes)", path, len(data))
