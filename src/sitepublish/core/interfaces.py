"""Protocols for the collaborators driven by the publish orchestrator."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from .app_warnings import AppWarning, Forbidden
from .events import EventEmitter
from .models import CredentialInfo


class SiteGenerator(Protocol):
    """Turns source content into the files of a static site.

    Emits ``GeneratorEvents.PAGE_GENERATED`` with a partial ``GeneratingProgress`` mapping.
    """

    events: EventEmitter

    async def generate_site(self) -> list[str]:
        """Generate the site and return the produced file paths, in order."""

    async def get_output_dir(self) -> str:
        """Return the directory the generated files are written to."""


class RemoteHostClient(Protocol):
    """Client for the remote repository host. Emits ``RemoteHostEvents.INFO_CHANGED``."""

    events: EventEmitter

    def init(self, info: CredentialInfo) -> None:
        """Adopt a new credential snapshot."""

    def get_default_repository_name(self) -> str:
        """Return the repository name used when no override is configured."""

    def get_repository_name(self) -> str:
        """Return the effective repository name."""

    async def create_repository(self) -> None:
        """Create the remote repository; raises ``RepositoryCreationError``."""


class LocalRepoController(Protocol):
    """Owns the local working copy pushed to the remote.

    Emits ``GitEvents.PROGRESS`` (partial ``PublishingProgress`` mapping),
    ``GitEvents.MESSAGE`` (text) and ``GitEvents.LOCAL_REPO_STATUS_CHANGED``
    (``LocalRepoStatus``).
    """

    events: EventEmitter

    async def init(self, remote: RemoteHostClient, output_dir: str) -> None:
        """Prepare the working copy for ``remote`` and ``output_dir``."""

    async def push(self, files: Sequence[str], force_init: bool) -> None:
        """Publish ``files``; raises ``PublishError`` with a classified outcome."""

    def terminate(self) -> None:
        """Ask an in-flight push to stop. Fire and forget."""


class CredentialStore(Protocol):
    """Persists non-secret credential fields and exposes the secret token."""

    def get_secret_token(self) -> str | None:
        """Return the secret token, or None when none is available."""

    def get_persisted_credential_info(self) -> Mapping[str, Any]:
        """Return the persisted credential fields (never the token)."""

    def save_persisted_credential_info(self, info: Mapping[str, Any]) -> None:
        """Persist credential fields; ``info`` never carries the token."""


class WarningSource(Protocol):
    def get_latest_warning(self, forbidden: Forbidden | None = None) -> AppWarning | None:
        """Return the newest active warning forbidding ``forbidden``."""
