"""Shared test fixtures for securedenv."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

STRONG_PASSWORD = "Str0ng!Pass99"


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    """Lower the PBKDF2 iteration counts so the suite runs quickly."""
    monkeypatch.setattr("securedenv.crypto.ROUND_ITERATIONS", (1000, 200, 100))


@pytest.fixture(autouse=True)
def secenv_home(tmp_path: Path, monkeypatch) -> Path:
    """Point the storage root at a temporary directory."""
    home = tmp_path / "secenv-home"
    monkeypatch.setenv("SECENV_HOME", str(home))
    monkeypatch.delenv("SECENV_GITHUB_TOKEN", raising=False)
    return home


@pytest.fixture
def password() -> str:
    """A password that satisfies every requirement."""
    return STRONG_PASSWORD


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project directory holding two .env files."""
    root = tmp_path / "work" / "my-app"
    root.mkdir(parents=True)
    (root / ".env").write_bytes(b"A=1")
    (root / ".env.prod").write_bytes(b"B=2")
    return root


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    """A key file holding 32 random bytes."""
    path = tmp_path / "k1.bin"
    path.write_bytes(os.urandom(32))
    return path


@pytest.fixture
def other_key_file(tmp_path: Path) -> Path:
    """A second, different 32-byte key file."""
    path = tmp_path / "k2.bin"
    path.write_bytes(os.urandom(32))
    return path
