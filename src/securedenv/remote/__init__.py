"""
Remote sync -- push the sealed container to a shared repository.

The container is already encrypted, so the remote only ever sees
ciphertext. Every push reads the current revision first and writes
conditionally on it, so two machines cannot silently clobber each other.

Backends: GitHub contents API, plain directory.
"""

from .backends import GitHubStore, LocalDirectoryStore, RemoteStore, create_store
from .models import RemoteBackendType, RemoteBlob, RemoteConfig

__all__ = [
    "GitHubStore",
    "LocalDirectoryStore",
    "RemoteBackendType",
    "RemoteBlob",
    "RemoteConfig",
    "RemoteStore",
    "create_store",
]
