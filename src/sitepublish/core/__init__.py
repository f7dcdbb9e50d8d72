"""Core orchestration components for Sitepublish."""

from .app_warnings import AppWarning, Forbidden, WarningCenter
from .errors import (
    CredentialError,
    GenerationError,
    GenerationRejectedError,
    PublishError,
    RemoteHostError,
    RepositoryCreationError,
    SitepublishError,
)
from .events import EventEmitter, GeneratorEvents, GitEvents, OrchestratorEvents, RemoteHostEvents
from .models import (
    CredentialInfo,
    GeneratingProgress,
    LocalRepoStatus,
    PublishingProgress,
    PublishResult,
    is_unset,
)
from .orchestrator import OrchestratorSnapshot, PublishOrchestrator

__all__ = [
    "AppWarning",
    "CredentialError",
    "CredentialInfo",
    "EventEmitter",
    "Forbidden",
    "GeneratingProgress",
    "GenerationError",
    "GenerationRejectedError",
    "GeneratorEvents",
    "GitEvents",
    "LocalRepoStatus",
    "OrchestratorEvents",
    "OrchestratorSnapshot",
    "PublishError",
    "PublishOrchestrator",
    "PublishResult",
    "PublishingProgress",
    "RemoteHostError",
    "RemoteHostEvents",
    "RepositoryCreationError",
    "SitepublishError",
    "WarningCenter",
    "is_unset",
]
