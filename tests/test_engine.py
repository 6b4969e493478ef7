"""Tests for the SecuredEnv engine: backup, restore, export, import, push, pull."""

from __future__ import annotations

import shutil
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from securedenv import SecuredEnv
from securedenv.config import SecEnvConfig, save_config
from securedenv.container import deserialize, serialize, write_container
from securedenv.errors import (
    BackupNotFoundError,
    DecryptionError,
    FormatError,
    KeyConfigError,
    NoFilesFoundError,
    ProjectMismatchError,
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    StorageError,
    WeakKeyError,
)
from securedenv.models import EncryptedBlob
from securedenv.remote import LocalDirectoryStore, RemoteBackendType, RemoteConfig
from securedenv.remote.models import RemoteBlob


def _env_files(root: Path) -> dict[str, bytes]:
    return {p.name: p.read_bytes() for p in root.iterdir() if p.name.startswith(".env")}


def _clear_env_files(root: Path) -> None:
    for name in _env_files(root):
        (root / name).unlink()


@pytest.fixture
def engine(project) -> SecuredEnv:
    return SecuredEnv(project_root=project)


@pytest.fixture
def shared_dir(tmp_path) -> Path:
    return tmp_path / "usb-drive"


@pytest.fixture
def local_store(shared_dir) -> LocalDirectoryStore:
    return LocalDirectoryStore(
        RemoteConfig(backend=RemoteBackendType.LOCAL, local_path=shared_dir)
    )


# ---------------------------------------------------------------------------
# Backup / restore
# ---------------------------------------------------------------------------

class TestBackupRestore:
    """Local backup and restore."""

    def test_roundtrip_scenario(self, engine, project, password):
        """Back up .env and .env.prod, delete both, restore them exactly."""
        result = engine.backup(password=password)
        assert result.project == "my-app"
        assert result.files == [".env", ".env.prod"]
        assert result.count == 2
        assert result.backup_file.is_file()

        _clear_env_files(project)
        restored = engine.restore(password=password)

        assert restored.files == [".env", ".env.prod"]
        assert (project / ".env").read_bytes() == b"A=1"
        assert (project / ".env.prod").read_bytes() == b"B=2"

    def test_container_location(self, engine, secenv_home, password):
        result = engine.backup(password=password)
        identity = engine.identity()
        assert result.backup_file == secenv_home / identity.hash / ".secenv"
        assert engine.backup_file() == result.backup_file

    def test_container_holds_no_plaintext(self, engine, project, password):
        (project / ".env").write_bytes(b"API_TOKEN=super-secret-value")
        result = engine.backup(password=password)
        data = result.backup_file.read_bytes()
        assert b"super-secret-value" not in data
        assert b"API_TOKEN" not in data

    def test_example_and_template_skipped(self, engine, project, password):
        (project / ".env.example").write_text("A=")
        (project / ".env.template").write_text("A=")
        assert engine.backup(password=password).files == [".env", ".env.prod"]

    def test_backup_overwrites_previous(self, engine, project, password):
        engine.backup(password=password)
        (project / ".env").write_bytes(b"A=2")
        engine.backup(password=password)
        (project / ".env").write_bytes(b"junk")
        engine.restore(password=password)
        assert (project / ".env").read_bytes() == b"A=2"

    def test_binary_content_preserved(self, engine, project, password):
        content = bytes(range(256)) + "é=ü\r\n".encode("utf-8")
        (project / ".env").write_bytes(content)
        engine.backup(password=password)
        _clear_env_files(project)
        engine.restore(password=password)
        assert (project / ".env").read_bytes() == content

    def test_no_env_files(self, tmp_path, password):
        empty = tmp_path / "empty"
        empty.mkdir()
        (empty / ".env.example").write_text("A=")
        with pytest.raises(NoFilesFoundError):
            SecuredEnv(project_root=empty).backup(password=password)

    def test_weak_password_writes_nothing(self, engine):
        with pytest.raises(WeakKeyError):
            engine.backup(password="Password1")
        assert not engine.has_backup()

    def test_weak_password_rejected_on_restore(self, engine, password):
        engine.backup(password=password)
        with pytest.raises(WeakKeyError):
            engine.restore(password="Password1")

    def test_both_keys_rejected(self, engine, password, key_file):
        with pytest.raises(KeyConfigError):
            engine.backup(password=password, key_file=key_file)
        assert not engine.has_backup()

    def test_restore_without_backup(self, engine, password):
        with pytest.raises(BackupNotFoundError, match="secenv import"):
            engine.restore(password=password)

    def test_wrong_password_leaves_files(self, engine, project, password):
        engine.backup(password=password)
        (project / ".env").write_bytes(b"LOCAL=edit")
        with pytest.raises(DecryptionError):
            engine.restore(password="0ther!Secret77")
        assert (project / ".env").read_bytes() == b"LOCAL=edit"

    def test_tampered_entry_restores_nothing(self, engine, project, password):
        """One bad entry fails the restore before any file is written."""
        result = engine.backup(password=password)
        record = deserialize(result.backup_file.read_bytes())
        blob = record.files[".env.prod"]
        flipped = ("1" if blob.ciphertext[0] == "0" else "0") + blob.ciphertext[1:]
        record.files[".env.prod"] = blob.model_copy(update={"ciphertext": flipped})
        write_container(result.backup_file, serialize(record))

        (project / ".env").write_bytes(b"LOCAL=edit")
        (project / ".env.prod").unlink()

        with pytest.raises(DecryptionError):
            engine.restore(password=password)
        assert (project / ".env").read_bytes() == b"LOCAL=edit"
        assert not (project / ".env.prod").exists()

    def test_key_file_isolation(self, engine, project, key_file, other_key_file):
        """A backup made with K1 opens with K1 only."""
        engine.backup(key_file=key_file)
        _clear_env_files(project)

        with pytest.raises(DecryptionError):
            engine.restore(key_file=other_key_file)
        assert _env_files(project) == {}

        engine.restore(key_file=key_file)
        assert _env_files(project) == {".env": b"A=1", ".env.prod": b"B=2"}

    def test_short_key_file_allowed(self, engine, tmp_path):
        """Key files have no length or content policy."""
        short = tmp_path / "one.key"
        short.write_bytes(b"x")
        engine.backup(key_file=short)
        engine.restore(key_file=short)

    def test_project_mismatch(self, engine, tmp_path, password):
        """A container for another project at this path is refused."""
        other = tmp_path / "elsewhere" / "other-app"
        other.mkdir(parents=True)
        (other / ".env").write_bytes(b"X=1")
        source = SecuredEnv(project_root=other).backup(password=password).backup_file

        target = engine.backup_file()
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)

        with pytest.raises(ProjectMismatchError, match="other-app"):
            engine.restore(password=password)

    def test_unsafe_entry_name_refused(self, engine, project, password):
        result = engine.backup(password=password)
        record = deserialize(result.backup_file.read_bytes())
        record.files["../evil"] = record.files[".env"]
        write_container(result.backup_file, serialize(record))

        with pytest.raises(FormatError, match="unsafe"):
            engine.restore(password=password)
        assert not (project.parent / "evil").exists()

    def test_nul_in_entry_name_refused(self, engine, project, password):
        """A renamed entry with a NUL byte is refused before any write."""
        result = engine.backup(password=password)
        record = deserialize(result.backup_file.read_bytes())
        record.files[".env\x00x"] = record.files[".env"]
        write_container(result.backup_file, serialize(record))
        (project / ".env").write_bytes(b"LOCAL=edit")

        with pytest.raises(FormatError, match="unsafe"):
            engine.restore(password=password)
        assert (project / ".env").read_bytes() == b"LOCAL=edit"

    def test_write_value_error_is_storage_error(self, engine, password):
        engine.backup(password=password)
        with patch.object(Path, "write_bytes", side_effect=ValueError("bad path")):
            with pytest.raises(StorageError, match="bad path") as info:
                engine.restore(password=password)
        assert info.value.path.endswith(".env")

    def test_identity_follows_project_root(self, tmp_path, password):
        root = tmp_path / "svc"
        root.mkdir()
        (root / ".env").write_bytes(b"A=1")
        engine = SecuredEnv(project_root=root)
        engine.backup(password=password)
        renamed = tmp_path / "svc-renamed"
        root.rename(renamed)
        moved = SecuredEnv(project_root=renamed)
        assert not moved.has_backup()
        with pytest.raises(BackupNotFoundError):
            moved.restore(password=password)


# ---------------------------------------------------------------------------
# Export / import
# ---------------------------------------------------------------------------

class TestExportImport:
    """Moving containers between machines by file."""

    def test_export_is_byte_identical(self, engine, tmp_path, password):
        result = engine.backup(password=password)
        out = tmp_path / "export.secenv"
        exported = engine.export(out)
        assert out.read_bytes() == result.backup_file.read_bytes()
        assert exported.file_count == 2
        assert exported.verified is False

    def test_export_verifies_key(self, engine, tmp_path, password):
        engine.backup(password=password)
        exported = engine.export(tmp_path / "out.secenv", password=password)
        assert exported.verified is True

    def test_export_wrong_key_writes_nothing(self, engine, tmp_path, password):
        engine.backup(password=password)
        out = tmp_path / "out.secenv"
        with pytest.raises(DecryptionError):
            engine.export(out, password="0ther!Secret77")
        assert not out.exists()

    def test_export_without_backup(self, engine, tmp_path):
        with pytest.raises(BackupNotFoundError, match="secenv backup"):
            engine.export(tmp_path / "out.secenv")

    def test_export_then_import_same_project(self, engine, project, tmp_path, password):
        """Re-importing an export restores the original contents."""
        engine.backup(password=password)
        out = tmp_path / "out.secenv"
        engine.export(out)
        _clear_env_files(project)

        result = engine.import_(out, password=password)
        assert result.current_project == "my-app"
        assert result.import_path == out
        assert result.stored_at == engine.backup_file()
        assert _env_files(project) == {".env": b"A=1", ".env.prod": b"B=2"}

    def test_import_on_another_machine(self, engine, tmp_path, password):
        """Same folder name, different path and storage root."""
        engine.backup(password=password)
        out = tmp_path / "out.secenv"
        engine.export(out)

        other_root = tmp_path / "laptop" / "my-app"
        other_root.mkdir(parents=True)
        other = SecuredEnv(project_root=other_root, storage_root=tmp_path / "laptop-store")

        other.import_(out, password=password)
        assert _env_files(other_root) == {".env": b"A=1", ".env.prod": b"B=2"}
        assert other.backup_file().read_bytes() == out.read_bytes()

        _clear_env_files(other_root)
        other.restore(password=password)
        assert (other_root / ".env").read_bytes() == b"A=1"

    def test_import_into_differently_named_project_fails(self, engine, tmp_path, password):
        """Keys are bound to the project name, so the import cannot decrypt."""
        engine.backup(password=password)
        out = tmp_path / "out.secenv"
        engine.export(out)

        other_root = tmp_path / "renamed-app"
        other_root.mkdir()
        with pytest.raises(DecryptionError):
            SecuredEnv(project_root=other_root).import_(out, password=password)
        assert _env_files(other_root) == {}

    def test_import_missing_file(self, engine, tmp_path, password):
        with pytest.raises(BackupNotFoundError, match="Backup file not found"):
            engine.import_(tmp_path / "nope.secenv", password=password)

    def test_import_not_a_container(self, engine, tmp_path, password):
        junk = tmp_path / "junk.secenv"
        junk.write_bytes(b"definitely not a container")
        with pytest.raises(FormatError):
            engine.import_(junk, password=password)
        assert not engine.has_backup()

    def test_import_needs_key(self, engine, tmp_path):
        with pytest.raises(KeyConfigError):
            engine.import_(tmp_path / "whatever.secenv")


# ---------------------------------------------------------------------------
# Push / pull
# ---------------------------------------------------------------------------

class TestPushPull:
    """Remote sync with conditional writes."""

    def test_first_push_creates(self, project, local_store, shared_dir, password):
        engine = SecuredEnv(project_root=project, remote=local_store)
        result = engine.push(password=password)

        assert result.created is True
        assert result.remote_path == "my-app/backup.secenv"
        remote = shared_dir / "my-app" / "backup.secenv"
        assert remote.read_bytes() == engine.backup_file().read_bytes()

    def test_second_push_updates(self, project, local_store, password):
        engine = SecuredEnv(project_root=project, remote=local_store)
        first = engine.push(password=password)
        (project / ".env").write_bytes(b"A=2")
        second = engine.push(password=password)

        assert second.created is False
        assert second.revision != first.revision

    def test_pull_on_second_machine(self, project, local_store, tmp_path, password):
        SecuredEnv(project_root=project, remote=local_store).push(password=password)

        laptop = tmp_path / "laptop" / "my-app"
        laptop.mkdir(parents=True)
        other = SecuredEnv(
            project_root=laptop, storage_root=tmp_path / "laptop-store", remote=local_store
        )
        result = other.pull(password=password)

        assert result.remote_path == "my-app/backup.secenv"
        assert result.stored_at == other.backup_file()
        assert _env_files(laptop) == {".env": b"A=1", ".env.prod": b"B=2"}

    def test_pull_nothing_remote(self, engine, local_store, password):
        engine = SecuredEnv(project_root=engine.project_root, remote=local_store)
        with pytest.raises(RemoteNotFoundError):
            engine.pull(password=password)

    def test_pull_wrong_key(self, project, local_store, password):
        engine = SecuredEnv(project_root=project, remote=local_store)
        engine.push(password=password)
        (project / ".env").write_bytes(b"LOCAL=edit")
        with pytest.raises(DecryptionError):
            engine.pull(password="0ther!Secret77")
        assert (project / ".env").read_bytes() == b"LOCAL=edit"

    def test_push_sends_read_revision(self, project, password):
        """The upload is conditioned on the revision just read."""
        store = MagicMock()
        store.name = "mock"
        store.get_blob.return_value = RemoteBlob(data=b"old", revision="rev-1")
        store.put_blob.return_value = "rev-2"

        result = SecuredEnv(project_root=project, remote=store).push(password=password)

        store.get_blob.assert_called_once_with("my-app/backup.secenv")
        path, data = store.put_blob.call_args.args
        assert path == "my-app/backup.secenv"
        assert data[:8] == b"SECENV01"
        assert store.put_blob.call_args.kwargs == {"expected_revision": "rev-1"}
        assert result.revision == "rev-2"
        assert result.created is False

    def test_push_first_time_has_no_revision(self, project, password):
        store = MagicMock()
        store.name = "mock"
        store.get_blob.side_effect = RemoteNotFoundError("absent")
        store.put_blob.return_value = "rev-1"

        result = SecuredEnv(project_root=project, remote=store).push(password=password)

        assert store.put_blob.call_args.kwargs == {"expected_revision": None}
        assert result.created is True

    def test_push_conflict_propagates(self, project, password):
        store = MagicMock()
        store.name = "mock"
        store.get_blob.return_value = RemoteBlob(data=b"old", revision="rev-1")
        store.put_blob.side_effect = RemoteConflictError("changed")

        with pytest.raises(RemoteConflictError):
            SecuredEnv(project_root=project, remote=store).push(password=password)

    def test_unconfigured_remote_leaves_backup_untouched(self, engine, password):
        """Push fails on a missing remote before the backup is rewritten."""
        with pytest.raises(RemoteError, match="not configured"):
            engine.push(password=password)
        assert not engine.has_backup()

        engine.backup(password=password)
        before = engine.backup_file().read_bytes()
        with pytest.raises(RemoteError):
            engine.push(password=password)
        assert engine.backup_file().read_bytes() == before

    def test_remote_built_from_config(self, project, secenv_home, shared_dir, password):
        """Without an explicit store, the saved configuration is used."""
        save_config(
            SecEnvConfig(
                remote=RemoteConfig(backend=RemoteBackendType.LOCAL, local_path=shared_dir)
            ),
            secenv_home,
        )
        engine = SecuredEnv(project_root=project)
        assert isinstance(engine.remote(), LocalDirectoryStore)
        engine.push(password=password)
        assert (shared_dir / "my-app" / "backup.secenv").is_file()


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------

class TestInspection:
    """has_backup and backup_info."""

    def test_no_backup(self, engine):
        assert engine.has_backup() is False
        assert engine.backup_info() is None

    def test_backup_info(self, engine, password):
        result = engine.backup(password=password)
        info = engine.backup_info()
        assert info.project == "my-app"
        assert info.hash == engine.identity().hash
        assert info.files == [".env", ".env.prod"]
        assert info.file_count == 2
        assert info.backup_file == result.backup_file
        assert info.size == result.backup_file.stat().st_size
        assert info.modified_at is not None

    def test_corrupt_backup_info_is_none(self, engine):
        path = engine.backup_file()
        path.parent.mkdir(parents=True)
        path.write_bytes(b"garbage")
        assert engine.has_backup() is True
        assert engine.backup_info() is None

    def test_entries_are_blobs(self, engine, password):
        result = engine.backup(password=password)
        record = deserialize(result.backup_file.read_bytes())
        assert all(isinstance(b, EncryptedBlob) for b in record.files.values())
        assert record.hash == engine.identity().hash
