"""State records shared by the orchestrator and its collaborators."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any


def is_unset(value: Any) -> bool:
    """Return True for ``None`` and the empty string."""

    return value is None or value == ""


class LocalRepoStatus(str, Enum):
    READY = "ready"
    FAIL = "fail"
    INITIALIZING = "initializing"
    MISSING_REPOSITORY = "missing_repository"


class PublishResult(str, Enum):
    TERMINATED = "terminated"
    FAIL = "fail"
    SUCCESS = "success"


GENERATE_SUCCESS = "success"
GENERATE_FAIL = "fail"

REQUIRED_CREDENTIAL_FIELDS = ("user_name", "email", "token")


@dataclass(slots=True, repr=False)
class CredentialInfo:
    """Account details used to reach the remote host.

    ``repository`` overrides the default repository name when set.
    """

    host_name: str = "github.com"
    user_name: str = ""
    email: str = ""
    token: str = ""
    repository: str | None = None

    @property
    def is_valid(self) -> bool:
        return not any(is_unset(getattr(self, name)) for name in REQUIRED_CREDENTIAL_FIELDS)

    def merge(self, partial: Mapping[str, Any]) -> None:
        """Overlay known fields from ``partial``; ``token`` is never taken from it."""

        for name in _field_names(type(self)):
            if name == "token" or name not in partial:
                continue
            setattr(self, name, partial[name])

    def persisted_fields(self) -> dict[str, Any]:
        """Return every field except the secret token."""

        return {name: getattr(self, name) for name in _field_names(type(self)) if name != "token"}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CredentialInfo":
        known = _field_names(cls)
        return cls(**{key: value for key, value in data.items() if key in known})

    def __repr__(self) -> str:
        token = "***" if self.token else ""
        return (
            f"CredentialInfo(host_name={self.host_name!r}, user_name={self.user_name!r}, "
            f"email={self.email!r}, token={token!r}, repository={self.repository!r})"
        )


DEFAULT_CREDENTIALS: dict[str, Any] = {
    "host_name": "github.com",
    "user_name": "",
    "email": "",
    "repository": None,
}


class _ProgressRecord:
    """Partial-overlay helpers shared by the progress records."""

    __slots__ = ()

    def update(self, **changes: Any) -> None:
        known = _field_names(type(self))
        unknown = set(changes) - known
        if unknown:
            raise TypeError(
                f"{type(self).__name__} has no field(s): {', '.join(sorted(unknown))}"
            )
        for name, value in changes.items():
            setattr(self, name, value)

    def reset(self) -> None:
        initial = type(self)()
        for name in _field_names(type(self)):
            setattr(self, name, getattr(initial, name))


@dataclass(slots=True)
class GeneratingProgress(_ProgressRecord):
    result: str | None = None
    message: str = ""
    generated_pages: int | None = None
    total_pages: int | None = None


@dataclass(slots=True)
class PublishingProgress(_ProgressRecord):
    phase: str = ""
    message: str = ""
    result: PublishResult | None = None
    total_progress: int | None = None


def _field_names(cls: type) -> frozenset[str]:
    return frozenset(item.name for item in fields(cls))
