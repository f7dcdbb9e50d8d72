"""Exception taxonomy for generate and publish workflows."""

from __future__ import annotations

from .models import PublishResult


class SitepublishError(Exception):
    """Base class for Sitepublish errors."""


class CredentialError(SitepublishError):
    """Raised when credentials are missing or incomplete at publish time."""


class GenerationError(SitepublishError):
    """Raised by a site generator when it cannot produce the site."""


class GenerationRejectedError(SitepublishError):
    """Raised when a generate request is refused before it starts."""


class RemoteHostError(SitepublishError):
    """Raised when the remote hosting API cannot be queried."""


class RepositoryCreationError(RemoteHostError):
    """Raised when the remote repository cannot be created."""


class PublishError(SitepublishError):
    """Classified outcome of a push.

    ``type`` is one of the ``PublishResult`` members. ``SUCCESS`` is accepted as well so
    every terminal push outcome can travel through the same channel.
    """

    def __init__(self, type: PublishResult, message: str | None = None) -> None:
        type = PublishResult(type)
        super().__init__(message or type.value)
        self.type = type
        self.message = message

    def __repr__(self) -> str:
        return f"PublishError(type={self.type.value!r}, message={self.message!r})"
