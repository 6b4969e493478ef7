"""
SecuredEnv engine -- backup, restore, export, import, push and pull.

This is the command center. It resolves the key, finds the .env files,
seals them, writes the container, and moves it to and from the remote.

    secenv backup   ->  resolve key -> find files -> encrypt -> write container
    secenv restore  ->  read container -> decrypt all -> write files
    secenv push     ->  backup -> read revision -> conditional upload
    secenv pull     ->  download -> store locally -> decrypt all -> write files

Nothing is kept between calls: the project identity is recomputed from
the project root every time.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Optional, Union

from .config import load_config
from .container import deserialize, load_record, read_container, serialize, write_container
from .crypto import decrypt, encrypt
from .errors import (
    BackupNotFoundError,
    FormatError,
    NoFilesFoundError,
    ProjectMismatchError,
    RemoteNotFoundError,
    SecuredEnvError,
    StorageError,
)
from .keys import KeyMaterial, Password, resolve_key
from .models import (
    BackupInfo,
    BackupRecord,
    BackupResult,
    EncryptedBlob,
    ExportResult,
    ImportResult,
    ProjectIdentity,
    PullResult,
    PushResult,
    RestoreResult,
)
from .project import container_path, find_env_files, identify, remote_path
from .project import storage_root as default_storage_root
from .remote import RemoteStore, create_store
from .validation import ensure_strong

logger = logging.getLogger("securedenv.engine")

PathLike = Union[str, Path]


def _check_entry_name(name: str) -> None:
    """Reject entry names that would write outside the project root."""
    if (
        not name
        or "\x00" in name
        or name in (".", "..")
        or len(PurePosixPath(name).parts) != 1
        or len(PureWindowsPath(name).parts) != 1
    ):
        raise FormatError(f"Refusing unsafe entry name in backup: {name!r}")


class SecuredEnv:
    """Backs up and restores the .env files of one project.

    Args:
        project_root: The project directory. Defaults to the current
            working directory.
        storage_root: Where local containers live. Defaults to the
            platform location (see ``project.storage_root``).
        remote: Remote store for push/pull. Built from the saved
            configuration on first use when omitted.
    """

    def __init__(
        self,
        project_root: Optional[PathLike] = None,
        storage_root: Optional[PathLike] = None,
        remote: Optional[RemoteStore] = None,
    ):
        self.project_root = Path(project_root or Path.cwd()).expanduser()
        self._storage_root = Path(storage_root).expanduser() if storage_root else None
        self._remote = remote

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    @property
    def storage_root(self) -> Path:
        return self._storage_root or default_storage_root()

    def identity(self) -> ProjectIdentity:
        """Identity of the project, recomputed on every call."""
        return identify(self.project_root)

    def backup_file(self) -> Path:
        """Path of this project's local container."""
        return container_path(self.identity(), self.storage_root)

    def remote(self) -> RemoteStore:
        """The remote store, created from saved config if needed."""
        if self._remote is None:
            config = load_config(self._storage_root)
            self._remote = create_store(config.remote)
        return self._remote

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _seal_files(
        self, material: KeyMaterial, identity: ProjectIdentity
    ) -> BackupRecord:
        names = find_env_files(self.project_root)
        if not names:
            raise NoFilesFoundError(
                f"No environment files found in {self.project_root}"
            )

        if isinstance(material, Password):
            ensure_strong(material.value)

        files: dict[str, EncryptedBlob] = {}
        for name in names:
            path = self.project_root / name
            try:
                plaintext = path.read_bytes()
            except OSError as exc:
                raise StorageError(f"Cannot read {path}: {exc}", path=str(path)) from exc
            logger.debug("Encrypting %s (%d bytes)", name, len(plaintext))
            files[name] = encrypt(plaintext, material, identity)

        return BackupRecord(project=identity.name, hash=identity.hash, files=files)

    def _open_all(
        self,
        record: BackupRecord,
        material: KeyMaterial,
        identity: ProjectIdentity,
    ) -> dict[str, bytes]:
        """Decrypt every entry. Nothing is written unless all succeed."""
        opened: dict[str, bytes] = {}
        for name, blob in record.files.items():
            _check_entry_name(name)
            logger.debug("Decrypting %s", name)
            opened[name] = decrypt(blob, material, identity)
        return opened

    def _write_files(self, opened: dict[str, bytes]) -> list[str]:
        written = []
        for name, content in opened.items():
            path = self.project_root / name
            try:
                path.write_bytes(content)
            except (OSError, ValueError) as exc:
                raise StorageError(f"Cannot write {path}: {exc}", path=str(path)) from exc
            written.append(name)
        return written

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def backup(
        self,
        password: Optional[str] = None,
        key_file: Optional[PathLike] = None,
    ) -> BackupResult:
        """Encrypt all .env files into the local container.

        Args:
            password: Encryption password.
            key_file: Key file (mutually exclusive with password).

        Returns:
            BackupResult: Project, files, and container path.

        Raises:
            KeyConfigError: Bad key options.
            WeakKeyError: Password fails the strength policy.
            NoFilesFoundError: Nothing to back up.
            StorageError: A file could not be read or written.
        """
        material = resolve_key(password, key_file)
        identity = self.identity()

        record = self._seal_files(material, identity)
        target = container_path(identity, self.storage_root)
        write_container(target, serialize(record))

        logger.info(
            "Backup created: %s (%d files) -> %s",
            identity.name, len(record.files), target,
        )
        return BackupResult(
            project=identity.name, files=list(record.files), backup_file=target
        )

    def restore(
        self,
        password: Optional[str] = None,
        key_file: Optional[PathLike] = None,
    ) -> RestoreResult:
        """Decrypt the local container and rewrite the .env files.

        Raises:
            KeyConfigError: Bad key options.
            BackupNotFoundError: No local container for this project.
            ProjectMismatchError: Container belongs to another project.
            DecryptionError: Wrong key or corrupted data.
        """
        material = resolve_key(password, key_file)
        identity = self.identity()
        source = container_path(identity, self.storage_root)

        try:
            record = load_record(source)
        except BackupNotFoundError as exc:
            raise BackupNotFoundError(
                f'No backup found for project "{identity.name}". '
                "Use 'secenv import' to restore from an external file."
            ) from exc

        if record.hash != identity.hash:
            raise ProjectMismatchError(
                f'Project mismatch. Backup is for project "{record.project}" '
                f'but current project is "{identity.name}"'
            )

        written = self._write_files(self._open_all(record, material, identity))
        logger.info("Restored %d files for %s", len(written), identity.name)
        return RestoreResult(
            project=record.project, timestamp=record.timestamp, files=written
        )

    def export(
        self,
        output: PathLike,
        password: Optional[str] = None,
        key_file: Optional[PathLike] = None,
    ) -> ExportResult:
        """Copy the local container, byte for byte, to output.

        When a key is supplied it is checked against the first entry
        before anything is copied.

        Raises:
            BackupNotFoundError: No local container for this project.
            DecryptionError: The supplied key does not open the backup.
        """
        identity = self.identity()
        source = container_path(identity, self.storage_root)
        target = Path(output).expanduser()

        try:
            record = deserialize(read_container(source))
        except BackupNotFoundError as exc:
            raise BackupNotFoundError(
                f'No backup found for project "{identity.name}". '
                "Run 'secenv backup' first."
            ) from exc

        verified = False
        if password or key_file:
            material = resolve_key(password, key_file)
            first = next(iter(record.files.values()), None)
            if first is not None:
                decrypt(first, material, identity)
                verified = True

        try:
            shutil.copyfile(source, target)
        except OSError as exc:
            raise StorageError(
                f"Cannot export to {target}: {exc}", path=str(target)
            ) from exc

        logger.info("Exported %s backup to %s", identity.name, target)
        return ExportResult(
            project=record.project,
            export_path=target,
            timestamp=record.timestamp,
            file_count=len(record.files),
            verified=verified,
        )

    def import_(
        self,
        source: PathLike,
        password: Optional[str] = None,
        key_file: Optional[PathLike] = None,
    ) -> ImportResult:
        """Adopt an external container and restore its files.

        The container is stored verbatim as this project's local backup,
        replacing any existing one, then every entry is decrypted.

        Raises:
            KeyConfigError: Bad key options.
            BackupNotFoundError: source does not exist.
            FormatError: source is not a SecuredEnv container.
            DecryptionError: Wrong key or corrupted data.
        """
        material = resolve_key(password, key_file)
        identity = self.identity()
        source_path = Path(source).expanduser()

        try:
            data = read_container(source_path)
        except BackupNotFoundError as exc:
            raise BackupNotFoundError(
                f'Backup file not found at "{source_path}"'
            ) from exc
        record = deserialize(data)

        stored_at = container_path(identity, self.storage_root)
        write_container(stored_at, data)

        written = self._write_files(self._open_all(record, material, identity))
        logger.info(
            "Imported %d files from %s into %s",
            len(written), source_path, identity.name,
        )
        return ImportResult(
            project=record.project,
            timestamp=record.timestamp,
            files=written,
            current_project=identity.name,
            import_path=source_path,
            stored_at=stored_at,
        )

    def push(
        self,
        password: Optional[str] = None,
        key_file: Optional[PathLike] = None,
    ) -> PushResult:
        """Back up, then upload the container to the remote store.

        The remote store is built before the backup runs, so a push with
        no usable remote leaves the local container untouched. The
        current remote revision is read first and the upload is
        conditioned on it. A missing remote object is a first push.

        Raises:
            RemoteConflictError: Another machine pushed in between.
            RemoteError: Transport failure.
        """
        store = self.remote()
        result = self.backup(password=password, key_file=key_file)
        identity = self.identity()
        data = read_container(result.backup_file)

        rpath = remote_path(identity)
        try:
            current: Optional[str] = store.get_blob(rpath).revision
        except RemoteNotFoundError:
            current = None
            logger.debug("No remote backup at %s yet", rpath)

        revision = store.put_blob(rpath, data, expected_revision=current)
        logger.info("Pushed %s to %s (%s)", identity.name, store.name, rpath)
        return PushResult(
            project=identity.name,
            files=result.files,
            remote_path=rpath,
            revision=revision,
            created=current is None,
        )

    def pull(
        self,
        password: Optional[str] = None,
        key_file: Optional[PathLike] = None,
    ) -> PullResult:
        """Download the remote container, store it, and restore files.

        Raises:
            KeyConfigError: Bad key options.
            RemoteNotFoundError: Nothing pushed for this project.
            FormatError: The remote object is not a valid container.
            DecryptionError: Wrong key or corrupted data.
        """
        material = resolve_key(password, key_file)
        identity = self.identity()
        store = self.remote()
        rpath = remote_path(identity)

        blob = store.get_blob(rpath)
        record = deserialize(blob.data)

        stored_at = container_path(identity, self.storage_root)
        write_container(stored_at, blob.data)

        written = self._write_files(self._open_all(record, material, identity))
        logger.info("Pulled %d files for %s from %s", len(written), identity.name, store.name)
        return PullResult(
            project=record.project,
            timestamp=record.timestamp,
            files=written,
            remote_path=rpath,
            revision=blob.revision,
            stored_at=stored_at,
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def has_backup(self) -> bool:
        """Check whether a local container exists for this project."""
        return self.backup_file().is_file()

    def backup_info(self) -> Optional[BackupInfo]:
        """Describe the local container without decrypting it.

        Returns:
            BackupInfo, or None if there is no readable container.
        """
        path = self.backup_file()
        try:
            record = load_record(path)
        except BackupNotFoundError:
            return None
        except SecuredEnvError as exc:
            logger.warning("Unreadable backup at %s: %s", path, exc)
            return None

        stat = path.stat()
        return BackupInfo(
            project=record.project,
            hash=record.hash,
            timestamp=record.timestamp,
            files=list(record.files),
            backup_file=path,
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
