"""Tests for the publish orchestrator."""

from __future__ import annotations

import asyncio
import logging

import pytest

from sitepublish.core import (
    CredentialError,
    Forbidden,
    GenerationError,
    GenerationRejectedError,
    GitEvents,
    LocalRepoStatus,
    OrchestratorEvents,
    PublishError,
    PublishResult,
    RepositoryCreationError,
)
from sitepublish.core.orchestrator import LOCAL_REPO_INITIALIZING_PHASE, PUBLISH_RESULT_MESSAGES


async def _wait_until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


@pytest.mark.asyncio
async def test_initialize_loads_credentials_and_prepares_collaborators(fakes, build_orchestrator):
    orchestrator = build_orchestrator()

    await orchestrator.initialize()

    assert orchestrator.output_dir == "/srv/site"
    assert fakes.git.init_calls == [(fakes.remote, "/srv/site")]
    credentials = orchestrator.credentials
    assert credentials is not None
    assert credentials.user_name == "octocat"
    assert credentials.token == "secret-token"
    assert credentials.host_name == "github.com"
    assert orchestrator.is_credential_valid is True
    assert len(fakes.remote.init_calls) == 1
    assert orchestrator.repository_name == "octocat.github.io"
    assert orchestrator.is_default_repository is True
    assert orchestrator.local_repo_status is LocalRepoStatus.INITIALIZING


@pytest.mark.asyncio
async def test_initialize_absorbs_local_repository_failure(fakes, build_orchestrator):
    fakes.git.init_error = RuntimeError("no network")
    orchestrator = build_orchestrator()

    await orchestrator.initialize()

    assert orchestrator.is_credential_valid is True


@pytest.mark.asyncio
async def test_persisted_fields_never_override_secret_token(fakes, build_orchestrator):
    fakes.store.persisted["token"] = "stale"
    orchestrator = build_orchestrator()

    await orchestrator.initialize()

    assert orchestrator.credentials.token == "secret-token"


@pytest.mark.asyncio
async def test_incomplete_credentials_skip_remote_initialization(fakes, build_orchestrator):
    fakes.store.token = ""
    fakes.store.persisted = {"user_name": "a", "email": "b@x.com"}
    orchestrator = build_orchestrator()

    await orchestrator.initialize()

    assert orchestrator.is_credential_valid is False
    assert fakes.remote.init_calls == []
    assert orchestrator.repository_name == ""


@pytest.mark.asyncio
async def test_publish_with_invalid_credentials_raises_before_any_change(
    fakes, build_orchestrator
):
    fakes.store.token = ""
    fakes.store.persisted = {"user_name": "a", "email": "b@x.com"}
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    snapshots = []
    orchestrator.events.on(OrchestratorEvents.STATE_CHANGED, snapshots.append)

    with pytest.raises(CredentialError):
        await orchestrator.publish()

    assert snapshots == []
    assert orchestrator.is_publishing is False
    assert fakes.git.push_calls == []


def test_save_credentials_before_loading_logs_error(fakes, build_orchestrator, caplog):
    orchestrator = build_orchestrator()

    with caplog.at_level(logging.ERROR, logger="sitepublish-test"):
        orchestrator.save_credentials({"user_name": "someone"})

    assert "has not been loaded" in caplog.text
    assert fakes.store.saved == []


@pytest.mark.asyncio
async def test_save_credentials_merges_persists_and_reinitializes(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()

    orchestrator.save_credentials({"repository": "blog", "token": "hijacked", "email": "new@x.com"})

    assert fakes.store.saved == [
        {
            "host_name": "github.com",
            "user_name": "octocat",
            "email": "new@x.com",
            "repository": "blog",
        }
    ]
    assert orchestrator.credentials.token == "secret-token"
    assert fakes.remote.init_calls[-1].repository == "blog"
    assert orchestrator.repository_name == "blog"
    assert orchestrator.is_default_repository is False


@pytest.mark.asyncio
async def test_generate_success_records_files(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()

    await orchestrator.generate_site()

    progress = orchestrator.generating_progress
    assert progress.result == "success"
    assert progress.message == "5 files in totals"
    assert orchestrator.files == tuple(fakes.generator.files)
    assert orchestrator.is_generating is False


@pytest.mark.asyncio
async def test_generate_failure_is_recorded_not_raised(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    await orchestrator.generate_site()
    fakes.generator.error = GenerationError("template exploded")

    await orchestrator.generate_site()

    progress = orchestrator.generating_progress
    assert progress.result == "fail"
    assert progress.message == "template exploded"
    assert orchestrator.is_generating is False
    # files keep the last successful generate
    assert len(orchestrator.files) == 5


@pytest.mark.asyncio
async def test_generate_merges_page_events(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    snapshots = []
    orchestrator.events.on(OrchestratorEvents.STATE_CHANGED, snapshots.append)

    await orchestrator.generate_site()

    in_flight = [snap for snap in snapshots if snap.is_generating]
    assert in_flight[0].generating_progress.result is None
    assert in_flight[0].generating_progress.generated_pages is None
    assert [snap.generating_progress.generated_pages for snap in in_flight[1:]] == [1, 2, 3, 4, 5]
    assert snapshots[-1].generating_progress.total_pages == 5


@pytest.mark.asyncio
async def test_generate_rejects_reentrant_call(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.generator.gate = asyncio.Event()

    first = asyncio.create_task(orchestrator.generate_site())
    await _wait_until(lambda: orchestrator.is_generating)

    with pytest.raises(GenerationRejectedError):
        await orchestrator.generate_site()

    fakes.generator.gate.set()
    await first
    assert fakes.generator.calls == 1


@pytest.mark.asyncio
async def test_generate_rejected_by_active_warning(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.warnings.raise_warning("Content folder missing", forbidden=[Forbidden.GENERATE])

    with pytest.raises(GenerationRejectedError, match="Content folder missing"):
        await orchestrator.generate_site()

    assert fakes.generator.calls == 0
    assert orchestrator.is_generating is False


@pytest.mark.asyncio
async def test_publish_pushes_files_from_last_generate(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    await orchestrator.generate_site()

    await orchestrator.publish()

    assert fakes.git.push_calls == [(fakes.generator.files, False)]
    assert orchestrator.publishing_progress.result is PublishResult.SUCCESS
    assert orchestrator.is_publishing is False


@pytest.mark.asyncio
async def test_publish_before_generate_pushes_empty_list(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()

    await orchestrator.publish()

    assert fakes.git.push_calls == [([], False)]


@pytest.mark.asyncio
async def test_publish_is_noop_while_publishing(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.push_gate = asyncio.Event()

    first = asyncio.create_task(orchestrator.publish())
    await _wait_until(lambda: fakes.git.push_calls)
    snapshots = []
    orchestrator.events.on(OrchestratorEvents.STATE_CHANGED, snapshots.append)

    await orchestrator.publish(need_to_create_repo=True)

    assert snapshots == []
    assert fakes.remote.create_calls == 0
    fakes.git.push_gate.set()
    await first
    assert len(fakes.git.push_calls) == 1


@pytest.mark.asyncio
async def test_classified_failure_is_recorded_with_explanation(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.push_error = PublishError(PublishResult.FAIL, "network down")

    await orchestrator.publish()

    progress = orchestrator.publishing_progress
    assert progress.result is PublishResult.FAIL
    assert progress.message == f"network down {PUBLISH_RESULT_MESSAGES[PublishResult.FAIL]}"
    assert orchestrator.is_publishing is False


@pytest.mark.asyncio
async def test_previous_failure_resets_progress_and_forces_full_init(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.push_error = PublishError(PublishResult.FAIL, "network down")
    await orchestrator.publish()

    seen = []
    fakes.git.push_error = None
    fakes.git.on_push = lambda files, force: seen.append(orchestrator.publishing_progress)
    await orchestrator.publish()

    assert fakes.git.push_calls[-1][1] is True
    assert seen[0].result is None
    assert seen[0].message == ""
    assert orchestrator.publishing_progress.result is PublishResult.SUCCESS


@pytest.mark.asyncio
async def test_local_repo_failure_forces_full_init(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.events.emit(GitEvents.PROGRESS, {"phase": "Pushing", "total_progress": 60})
    fakes.git.events.emit(GitEvents.LOCAL_REPO_STATUS_CHANGED, LocalRepoStatus.FAIL)
    assert orchestrator.publishing_progress.phase == "Pushing"

    seen = []
    fakes.git.on_push = lambda files, force: seen.append(orchestrator.publishing_progress)
    await orchestrator.publish(False)

    assert fakes.git.push_calls[-1][1] is True
    assert seen[0].phase == ""
    assert seen[0].total_progress is None


@pytest.mark.asyncio
async def test_stop_during_grace_window_prevents_push(fakes, build_orchestrator):
    orchestrator = build_orchestrator(grace_period_seconds=30.0)
    await orchestrator.initialize()
    await orchestrator.generate_site()

    attempt = asyncio.create_task(orchestrator.publish())
    await _wait_until(lambda: orchestrator.is_publishing)
    orchestrator.stop_publishing()
    await asyncio.wait_for(attempt, timeout=2.0)

    assert fakes.git.push_calls == []
    assert fakes.git.terminate_calls == 1
    progress = orchestrator.publishing_progress
    assert progress.result is PublishResult.TERMINATED
    assert progress.message == "Publishing terminated."
    assert orchestrator.is_publishing is False


@pytest.mark.asyncio
async def test_terminated_push_is_classified(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.push_error = PublishError(PublishResult.TERMINATED)

    await orchestrator.publish()

    assert orchestrator.publishing_progress.result is PublishResult.TERMINATED
    assert orchestrator.publishing_progress.message == "Publishing terminated."


@pytest.mark.asyncio
async def test_success_reported_through_error_channel(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.push_error = PublishError(PublishResult.SUCCESS, "Nothing changed.")

    await orchestrator.publish()

    assert orchestrator.publishing_progress.result is PublishResult.SUCCESS
    assert orchestrator.publishing_progress.message == "Nothing changed."


@pytest.mark.asyncio
async def test_unclassified_push_failure_is_reraised(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.push_error = RuntimeError("disk on fire")

    with pytest.raises(RuntimeError, match="disk on fire"):
        await orchestrator.publish()

    assert orchestrator.publishing_progress.result is None
    assert orchestrator.is_publishing is False


@pytest.mark.asyncio
async def test_creates_repository_only_when_missing(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()

    await orchestrator.publish(need_to_create_repo=True)
    assert fakes.remote.create_calls == 0
    assert fakes.git.push_calls[-1][1] is True

    fakes.git.events.emit(GitEvents.LOCAL_REPO_STATUS_CHANGED, LocalRepoStatus.MISSING_REPOSITORY)
    assert orchestrator.is_repository_missing is True
    await orchestrator.publish(need_to_create_repo=True)
    assert fakes.remote.create_calls == 1


@pytest.mark.asyncio
async def test_repository_creation_failure_propagates(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.events.emit(GitEvents.LOCAL_REPO_STATUS_CHANGED, LocalRepoStatus.MISSING_REPOSITORY)
    fakes.remote.create_error = RepositoryCreationError("name already taken")

    with pytest.raises(RepositoryCreationError):
        await orchestrator.publish(need_to_create_repo=True)

    assert fakes.git.push_calls == []
    assert orchestrator.is_publishing is False


@pytest.mark.asyncio
async def test_git_events_are_merged_into_publishing_progress(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()

    fakes.git.events.emit(GitEvents.PROGRESS, {"phase": "Pushing", "total_progress": 60})
    fakes.git.events.emit(GitEvents.MESSAGE, "Writing objects: 100%")

    progress = orchestrator.publishing_progress
    assert progress.phase == "Pushing"
    assert progress.total_progress == 60
    assert progress.message == "Writing objects: 100%"

    fakes.git.events.emit(GitEvents.LOCAL_REPO_STATUS_CHANGED, LocalRepoStatus.INITIALIZING)
    progress = orchestrator.publishing_progress
    assert progress.phase == LOCAL_REPO_INITIALIZING_PHASE
    assert progress.message == ""
    assert progress.total_progress == 60


@pytest.mark.asyncio
async def test_remote_info_change_resets_publishing_progress(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.git.events.emit(GitEvents.PROGRESS, {"phase": "Pushing"})

    orchestrator.save_credentials({"repository": "docs"})

    assert orchestrator.publishing_progress.phase == ""


@pytest.mark.asyncio
async def test_generate_and_publish_are_not_mutually_exclusive(fakes, build_orchestrator):
    # Independent operations: a publish may run while a generate is still in flight.
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    fakes.generator.gate = asyncio.Event()

    generating = asyncio.create_task(orchestrator.generate_site())
    await _wait_until(lambda: orchestrator.is_generating)
    await orchestrator.publish()

    assert fakes.git.push_calls == [([], False)]
    fakes.generator.gate.set()
    await generating


@pytest.mark.asyncio
async def test_snapshots_are_copies(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    await orchestrator.generate_site()

    snapshot = orchestrator.snapshot()
    snapshot.generating_progress.message = "changed"
    progress = orchestrator.generating_progress
    progress.result = "fail"

    assert orchestrator.generating_progress.message == "5 files in totals"
    assert orchestrator.generating_progress.result == "success"


@pytest.mark.asyncio
async def test_close_stops_event_bridging(fakes, build_orchestrator):
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    orchestrator.close()

    fakes.git.events.emit(GitEvents.PROGRESS, {"phase": "Pushing"})

    assert orchestrator.publishing_progress.phase == ""
