"""
Remote stores -- where the container travels.

Each store reads and writes a single blob by path and reports a
revision marker, so a push can refuse to overwrite a container that
another machine pushed in the meantime.

GitHub: the repository contents API. The blob SHA is the revision.
Local: a plain directory (USB drive, NAS, mounted share). The SHA-256
of the content is the revision.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import requests

from ..container import write_container
from ..errors import (
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
)
from .models import RemoteBackendType, RemoteBlob, RemoteConfig

logger = logging.getLogger("securedenv.remote.backends")

USER_AGENT = "SecuredEnv/1.0"
REQUEST_TIMEOUT = 30


class RemoteStore(ABC):
    """Abstract single-blob remote store."""

    @abstractmethod
    def get_blob(self, path: str) -> RemoteBlob:
        """Fetch the object at path.

        Args:
            path: Remote object path (``<project>/backup.secenv``).

        Returns:
            RemoteBlob: Content and current revision.

        Raises:
            RemoteNotFoundError: If nothing is stored at path.
            RemoteError: On transport failure.
        """

    @abstractmethod
    def put_blob(
        self, path: str, data: bytes, expected_revision: Optional[str] = None
    ) -> str:
        """Store data at path.

        Args:
            path: Remote object path.
            data: Bytes to store.
            expected_revision: Revision the caller last read. Required
                when an object already exists at path.

        Returns:
            str: The new revision.

        Raises:
            RemoteConflictError: If the object changed since
                expected_revision was read.
            RemoteError: On transport failure.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""


class GitHubStore(RemoteStore):
    """GitHub repository contents API store."""

    def __init__(self, config: RemoteConfig):
        if not config.token:
            raise RemoteError(
                "GitHub token not configured. Run: secenv config --github-token <token>"
            )
        if not config.repo:
            raise RemoteError(
                "GitHub repo not configured. Run: secenv config --github-repo owner/repo"
            )
        self.config = config

    @property
    def name(self) -> str:
        return f"github:{self.config.repo}"

    def _url(self, path: str) -> str:
        base = self.config.api_url.rstrip("/")
        return f"{base}/repos/{self.config.repo}/contents/{path}"

    def _api_call(
        self,
        method: str,
        path: str,
        data: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> requests.Response:
        """Make an authenticated contents API call.

        Raises:
            RemoteError: If the request could not be sent.
        """
        headers = {
            "Authorization": f"token {self.config.token}",
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github.v3+json",
        }
        try:
            return requests.request(
                method,
                self._url(path),
                headers=headers,
                json=data,
                params=params,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise RemoteError(
                f"GitHub API {method} {path} failed: {exc}", path=path
            ) from exc

    @staticmethod
    def _json(resp: requests.Response, path: str) -> Any:
        """Decode a response body, mapping bad JSON to RemoteError."""
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteError(
                f"GitHub returned a non-JSON response for {path}", path=path
            ) from exc

    def get_blob(self, path: str) -> RemoteBlob:
        resp = self._api_call("GET", path, params={"ref": self.config.branch})

        if resp.status_code == 404:
            raise RemoteNotFoundError(
                f"No remote backup at {self.config.repo}/{path}", path=path
            )
        if resp.status_code >= 400:
            raise RemoteError(
                f"GitHub API GET {path}: {resp.status_code} {resp.text}", path=path
            )

        body = self._json(resp, path)
        if not isinstance(body, dict) or body.get("type") != "file":
            raise RemoteNotFoundError(
                f"No remote backup at {self.config.repo}/{path}", path=path
            )

        sha = body.get("sha")
        if not isinstance(sha, str) or not sha:
            raise RemoteError(f"GitHub response for {path} has no sha", path=path)
        try:
            content = base64.b64decode(body.get("content") or "")
        except (TypeError, ValueError) as exc:
            raise RemoteError(
                f"GitHub returned undecodable content for {path}", path=path
            ) from exc

        logger.debug("Fetched %s from %s (sha %s)", path, self.name, sha)
        return RemoteBlob(data=content, revision=sha)

    def put_blob(
        self, path: str, data: bytes, expected_revision: Optional[str] = None
    ) -> str:
        project = path.split("/", 1)[0]
        payload: dict[str, Any] = {
            "message": f"Update environment backup for {project}",
            "content": base64.b64encode(data).decode("ascii"),
            "branch": self.config.branch,
        }
        if expected_revision:
            payload["sha"] = expected_revision

        resp = self._api_call("PUT", path, data=payload)

        if resp.status_code in (409, 422):
            raise RemoteConflictError(
                f"Remote backup at {path} changed since it was read "
                f"({resp.status_code}). Pull first, then push again.",
                path=path,
            )
        if resp.status_code >= 400:
            raise RemoteError(
                f"GitHub API PUT {path}: {resp.status_code} {resp.text}", path=path
            )

        body = self._json(resp, path)
        content = body.get("content") if isinstance(body, dict) else None
        revision = content.get("sha") if isinstance(content, dict) else None
        if not isinstance(revision, str) or not revision:
            raise RemoteError(
                f"GitHub accepted {path} but returned no sha", path=path
            )
        logger.info("Uploaded %s to %s", path, self.name)
        return revision


class LocalDirectoryStore(RemoteStore):
    """Remote store backed by a plain directory."""

    def __init__(self, config: RemoteConfig):
        if config.local_path is None:
            raise RemoteError(
                "Local remote path not configured. Run: secenv config --local-path <dir>"
            )
        self.config = config
        self.target = config.local_path.expanduser()

    @property
    def name(self) -> str:
        return f"local:{self.target}"

    @staticmethod
    def _revision(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def get_blob(self, path: str) -> RemoteBlob:
        blob_path = self.target / path
        try:
            data = blob_path.read_bytes()
        except FileNotFoundError as exc:
            raise RemoteNotFoundError(
                f"No remote backup at {blob_path}", path=path
            ) from exc
        except OSError as exc:
            raise RemoteError(f"Cannot read {blob_path}: {exc}", path=path) from exc
        return RemoteBlob(data=data, revision=self._revision(data))

    def put_blob(
        self, path: str, data: bytes, expected_revision: Optional[str] = None
    ) -> str:
        blob_path = self.target / path

        current: Optional[str] = None
        if blob_path.exists():
            current = self.get_blob(path).revision
        if current != expected_revision:
            raise RemoteConflictError(
                f"Remote backup at {blob_path} changed since it was read. "
                "Pull first, then push again.",
                path=path,
            )

        write_container(blob_path, data)
        logger.info("Copied %s to %s", path, self.name)
        return self._revision(data)


def create_store(config: RemoteConfig) -> RemoteStore:
    """Factory function to create the configured remote store.

    Args:
        config: Remote configuration.

    Returns:
        Instantiated RemoteStore.

    Raises:
        ValueError: If the backend type is not supported.
        RemoteError: If the backend is missing required settings.
    """
    factories = {
        RemoteBackendType.GITHUB: GitHubStore,
        RemoteBackendType.LOCAL: LocalDirectoryStore,
    }
    factory = factories.get(config.backend)
    if not factory:
        raise ValueError(f"Unsupported remote backend: {config.backend}")
    return factory(config)
