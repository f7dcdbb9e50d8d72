"""Shared fixtures and collaborator fakes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from types import SimpleNamespace
from typing import Any

import pytest

from sitepublish.core import (
    CredentialInfo,
    EventEmitter,
    GeneratorEvents,
    PublishOrchestrator,
    RemoteHostEvents,
    WarningCenter,
)
from sitepublish.logging import LOGGER_NAME


class FakeGenerator:
    def __init__(self, files: Sequence[str] = (), output_dir: str = "/srv/site") -> None:
        self.events = EventEmitter()
        self.files = list(files)
        self.output_dir = output_dir
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls = 0

    async def get_output_dir(self) -> str:
        return self.output_dir

    async def generate_site(self) -> list[str]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        total = len(self.files)
        for index in range(1, total + 1):
            self.events.emit(
                GeneratorEvents.PAGE_GENERATED,
                {"generated_pages": index, "total_pages": total},
            )
        return list(self.files)


class FakeGit:
    def __init__(self) -> None:
        self.events = EventEmitter()
        self.init_calls: list[tuple[Any, str]] = []
        self.push_calls: list[tuple[list[str], bool]] = []
        self.terminate_calls = 0
        self.init_error: Exception | None = None
        self.push_error: BaseException | None = None
        self.push_gate: asyncio.Event | None = None
        self.on_push: Callable[[list[str], bool], None] | None = None

    async def init(self, remote: Any, output_dir: str) -> None:
        self.init_calls.append((remote, output_dir))
        if self.init_error is not None:
            raise self.init_error

    async def push(self, files: Sequence[str], force_init: bool) -> None:
        self.push_calls.append((list(files), force_init))
        if self.on_push is not None:
            self.on_push(list(files), force_init)
        if self.push_gate is not None:
            await self.push_gate.wait()
        if self.push_error is not None:
            raise self.push_error

    def terminate(self) -> None:
        self.terminate_calls += 1


class FakeRemote:
    def __init__(self) -> None:
        self.events = EventEmitter()
        self.info: CredentialInfo | None = None
        self.init_calls: list[CredentialInfo] = []
        self.create_calls = 0
        self.create_error: Exception | None = None

    def init(self, info: CredentialInfo) -> None:
        self.info = info
        self.init_calls.append(info)
        self.events.emit(RemoteHostEvents.INFO_CHANGED)

    def get_default_repository_name(self) -> str:
        if self.info is None:
            return ""
        return f"{self.info.user_name}.github.io"

    def get_repository_name(self) -> str:
        if self.info is not None and self.info.repository:
            return self.info.repository
        return self.get_default_repository_name()

    async def create_repository(self) -> None:
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error


class FakeCredentialStore:
    def __init__(self, token: str | None = "secret-token", persisted: dict | None = None) -> None:
        self.token = token
        self.persisted = dict(persisted or {})
        self.saved: list[dict[str, Any]] = []

    def get_secret_token(self) -> str | None:
        return self.token

    def get_persisted_credential_info(self) -> dict[str, Any]:
        return dict(self.persisted)

    def save_persisted_credential_info(self, info: dict[str, Any]) -> None:
        self.saved.append(dict(info))
        self.persisted = dict(info)


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def logger() -> logging.Logger:
    test_logger = logging.getLogger("sitepublish-test")
    test_logger.addHandler(logging.NullHandler())
    return test_logger


@pytest.fixture
def fakes() -> SimpleNamespace:
    return SimpleNamespace(
        generator=FakeGenerator(files=[f"page-{index}.html" for index in range(5)]),
        git=FakeGit(),
        remote=FakeRemote(),
        store=FakeCredentialStore(
            persisted={"user_name": "octocat", "email": "octocat@example.com"}
        ),
        warnings=WarningCenter(),
    )


@pytest.fixture
def build_orchestrator(fakes, logger) -> Callable[..., PublishOrchestrator]:
    def _build(grace_period_seconds: float = 0.0) -> PublishOrchestrator:
        return PublishOrchestrator(
            generator=fakes.generator,
            git=fakes.git,
            remote=fakes.remote,
            credential_store=fakes.store,
            logger=logger,
            warnings=fakes.warnings,
            grace_period_seconds=grace_period_seconds,
        )

    return _build
