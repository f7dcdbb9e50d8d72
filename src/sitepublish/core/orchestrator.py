"""Publish orchestrator: sequences site generation and publishing."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .app_warnings import Forbidden
from .errors import CredentialError, GenerationRejectedError, PublishError
from .events import EventEmitter, GeneratorEvents, GitEvents, OrchestratorEvents, RemoteHostEvents
from .interfaces import (
    CredentialStore,
    LocalRepoController,
    RemoteHostClient,
    SiteGenerator,
    WarningSource,
)
from .models import (
    DEFAULT_CREDENTIALS,
    GENERATE_FAIL,
    GENERATE_SUCCESS,
    CredentialInfo,
    GeneratingProgress,
    LocalRepoStatus,
    PublishingProgress,
    PublishResult,
)

DEFAULT_GRACE_PERIOD_SECONDS = 3.0
LOCAL_REPO_INITIALIZING_PHASE = "Local repository initializing..."

PUBLISH_RESULT_MESSAGES: dict[PublishResult, str] = {
    PublishResult.TERMINATED: "Publishing terminated.",
    PublishResult.FAIL: "This is an unexpected error, you can retry, and report it as an issue",
    PublishResult.SUCCESS: "",
}


@dataclass(slots=True, frozen=True)
class OrchestratorSnapshot:
    """Read-only view of the orchestrator state, sent with every change notification."""

    is_generating: bool
    is_publishing: bool
    output_dir: str
    generating_progress: GeneratingProgress
    publishing_progress: PublishingProgress
    local_repo_status: LocalRepoStatus
    repository_name: str
    is_repository_missing: bool
    is_default_repository: bool
    is_credential_valid: bool
    credentials: CredentialInfo | None


@dataclass(slots=True)
class PublishOrchestrator:
    """Coordinate site generation, credentials and publishing to the remote host.

    Collaborators report through their event emitters; the orchestrator folds those events
    into its progress records and announces every change on ``events`` with
    ``OrchestratorEvents.STATE_CHANGED``.
    """

    generator: SiteGenerator
    git: LocalRepoController
    remote: RemoteHostClient
    credential_store: CredentialStore
    logger: logging.Logger
    warnings: WarningSource | None = None
    grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS
    events: EventEmitter = field(default_factory=EventEmitter, init=False, repr=False)
    _files: list[str] = field(default_factory=list, init=False, repr=False)
    _output_dir: str = field(default="", init=False)
    _credentials: CredentialInfo | None = field(default=None, init=False, repr=False)
    _repository_name: str = field(default="", init=False)
    _local_repo_status: LocalRepoStatus = field(default=LocalRepoStatus.INITIALIZING, init=False)
    _is_generating: bool = field(default=False, init=False)
    _is_publishing: bool = field(default=False, init=False)
    _generating_progress: GeneratingProgress = field(
        default_factory=GeneratingProgress, init=False, repr=False
    )
    _publishing_progress: PublishingProgress = field(
        default_factory=PublishingProgress, init=False, repr=False
    )
    _cancel_event: asyncio.Event | None = field(default=None, init=False, repr=False)
    _unsubscribers: list[Callable[[], None]] = field(default_factory=list, init=False, repr=False)

    async def initialize(self) -> None:
        """Resolve the output directory, load credentials and prepare the collaborators."""

        self._output_dir = await self.generator.get_output_dir()
        self._subscribe()
        self.load_credentials()

        try:
            await self.git.init(self.remote, self._output_dir)
        except Exception as exc:  # pylint: disable=broad-except
            # Status change events are the authoritative error signal.
            self.logger.debug("Local repository initialization failed: %s", exc)

    def close(self) -> None:
        """Stop listening to collaborator events."""

        while self._unsubscribers:
            self._unsubscribers.pop()()

    # -- observable state -------------------------------------------------------------

    @property
    def is_generating(self) -> bool:
        return self._is_generating

    @property
    def is_publishing(self) -> bool:
        return self._is_publishing

    @property
    def output_dir(self) -> str:
        return self._output_dir

    @property
    def files(self) -> tuple[str, ...]:
        return tuple(self._files)

    @property
    def generating_progress(self) -> GeneratingProgress:
        return replace(self._generating_progress)

    @property
    def publishing_progress(self) -> PublishingProgress:
        return replace(self._publishing_progress)

    @property
    def local_repo_status(self) -> LocalRepoStatus:
        return self._local_repo_status

    @property
    def repository_name(self) -> str:
        return self._repository_name

    @property
    def is_repository_missing(self) -> bool:
        return self._local_repo_status is LocalRepoStatus.MISSING_REPOSITORY

    @property
    def is_default_repository(self) -> bool:
        return self._repository_name == self.remote.get_default_repository_name()

    @property
    def is_credential_valid(self) -> bool:
        return self._credentials is not None and self._credentials.is_valid

    @property
    def credentials(self) -> CredentialInfo | None:
        return replace(self._credentials) if self._credentials is not None else None

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            is_generating=self._is_generating,
            is_publishing=self._is_publishing,
            output_dir=self._output_dir,
            generating_progress=self.generating_progress,
            publishing_progress=self.publishing_progress,
            local_repo_status=self._local_repo_status,
            repository_name=self._repository_name,
            is_repository_missing=self.is_repository_missing,
            is_default_repository=self.is_default_repository,
            is_credential_valid=self.is_credential_valid,
            credentials=self.credentials,
        )

    # -- credentials --------------------------------------------------------------------

    def initialize_remote_client(self) -> None:
        """Hand the current credentials to the remote client when they are complete."""

        if self._credentials is None or not self._credentials.is_valid:
            return

        self.remote.init(replace(self._credentials))
        self._repository_name = self.remote.get_repository_name()

    def save_credentials(self, partial: Mapping[str, Any]) -> None:
        """Merge ``partial`` into the credentials (never the token) and persist them."""

        if self._credentials is None:
            self.logger.error("Cannot save credentials: credential info has not been loaded.")
            return

        self._credentials.merge(partial)
        self.credential_store.save_persisted_credential_info(self._credentials.persisted_fields())
        self.initialize_remote_client()
        self._notify()

    def load_credentials(self) -> None:
        """Overlay persisted fields on the secret token and the defaults."""

        info = CredentialInfo.from_mapping(DEFAULT_CREDENTIALS)
        info.token = self.credential_store.get_secret_token() or ""
        info.merge(self.credential_store.get_persisted_credential_info())
        self._credentials = info
        self.initialize_remote_client()
        self._notify()

    # -- generate -----------------------------------------------------------------------

    async def generate_site(self) -> None:
        """Generate the site; failures are recorded in ``generating_progress``."""

        if self._is_generating:
            raise GenerationRejectedError("Site generation is already running.")
        warning = (
            self.warnings.get_latest_warning(Forbidden.GENERATE)
            if self.warnings is not None
            else None
        )
        if warning is not None:
            raise GenerationRejectedError(f"Site generation is forbidden: {warning.message}")

        self._is_generating = True
        self._refresh_generating_progress()

        try:
            files = await self.generator.generate_site()
            self._files = list(files)
            self._generating_progress.update(
                result=GENERATE_SUCCESS,
                message=f"{len(self._files)} files in totals",
            )
            self.logger.info("Generated %d files into %s", len(self._files), self._output_dir)
        except Exception as exc:  # pylint: disable=broad-except
            self._generating_progress.update(result=GENERATE_FAIL, message=str(exc))
            self.logger.warning("Site generation failed: %s", exc)
        finally:
            self._is_generating = False
            self._notify()

    # -- publish ------------------------------------------------------------------------

    async def publish(self, need_to_create_repo: bool = False) -> None:
        """Push the files of the last successful generate to the remote repository.

        ``need_to_create_repo`` must come from an explicit user confirmation; the repository
        is only created when it is also known to be missing.
        """

        if self._is_publishing:
            return

        if not self.is_credential_valid:
            raise CredentialError("Invalid credentials: user name, email and token are required.")

        need_to_init = (
            self._publishing_progress.result is PublishResult.FAIL
            or need_to_create_repo
            or self._local_repo_status is LocalRepoStatus.FAIL
        )
        if need_to_init:
            self._refresh_publishing_progress()

        cancel = asyncio.Event()
        self._cancel_event = cancel
        self._is_publishing = True
        self._notify()
        self.logger.info(
            "Publishing %d files to %s (full init: %s)",
            len(self._files),
            self._repository_name or "<unknown>",
            need_to_init,
        )

        try:
            if need_to_create_repo and self.is_repository_missing:
                await self.remote.create_repository()

            await self._wait_grace_period(cancel)
            await self.git.push(list(self._files), need_to_init)
            self._publishing_progress.result = PublishResult.SUCCESS
            self.logger.info("Publishing finished")
        except PublishError as error:
            message = f"{error.message or ''} {PUBLISH_RESULT_MESSAGES[error.type]}".strip()
            self._publishing_progress.update(result=error.type, message=message)
            self.logger.warning("Publishing ended with %s: %s", error.type.value, message)
        finally:
            if self._cancel_event is cancel:
                self._cancel_event = None
            self._is_publishing = False
            self._notify()

    def stop_publishing(self) -> None:
        """Cancel the current publish attempt; a pending push is never started."""

        self._is_publishing = False
        if self._cancel_event is not None:
            self._cancel_event.set()
        self.git.terminate()
        self.logger.info("Publishing stop requested")
        self._notify()

    async def _wait_grace_period(self, cancel: asyncio.Event) -> None:
        if not cancel.is_set():
            try:
                await asyncio.wait_for(cancel.wait(), timeout=self.grace_period_seconds)
            except TimeoutError:
                pass
        if cancel.is_set():
            raise PublishError(PublishResult.TERMINATED)

    # -- event bridging -----------------------------------------------------------------

    def _subscribe(self) -> None:
        if self._unsubscribers:
            return

        self._unsubscribers.extend(
            [
                self.git.events.on(GitEvents.PROGRESS, self._refresh_publishing_progress),
                self.git.events.on(
                    GitEvents.MESSAGE,
                    lambda message: self._refresh_publishing_progress({"message": message}),
                ),
                self.git.events.on(
                    GitEvents.LOCAL_REPO_STATUS_CHANGED, self._handle_local_repo_status_changed
                ),
                self.remote.events.on(
                    RemoteHostEvents.INFO_CHANGED, lambda: self._refresh_publishing_progress()
                ),
                self.generator.events.on(
                    GeneratorEvents.PAGE_GENERATED, self._refresh_generating_progress
                ),
            ]
        )

    def _handle_local_repo_status_changed(self, status: LocalRepoStatus) -> None:
        self._local_repo_status = LocalRepoStatus(status)
        self.logger.debug("Local repository status: %s", self._local_repo_status.value)

        if self._local_repo_status is LocalRepoStatus.INITIALIZING:
            self._refresh_publishing_progress(
                {"phase": LOCAL_REPO_INITIALIZING_PHASE, "message": ""}
            )
        else:
            self._notify()

    def _refresh_generating_progress(self, progress: Mapping[str, Any] | None = None) -> None:
        if progress is None:
            self._generating_progress.reset()
        else:
            self._generating_progress.update(**progress)
        self._notify()

    def _refresh_publishing_progress(self, progress: Mapping[str, Any] | None = None) -> None:
        if progress is None:
            self._publishing_progress.reset()
        else:
            self._publishing_progress.update(**progress)
        self._notify()

    def _notify(self) -> None:
        if self.events.listener_count(OrchestratorEvents.STATE_CHANGED):
            self.events.emit(OrchestratorEvents.STATE_CHANGED, self.snapshot())
