"""Local git working copy that mirrors the generated site and pushes it."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sitepublish.core.errors import PublishError
from sitepublish.core.events import EventEmitter, GitEvents
from sitepublish.core.models import LocalRepoStatus, PublishResult

_CREDENTIALS_IN_URL = re.compile(r"://[^/@\s]+@")


class PushTarget(Protocol):
    """What the controller needs from the remote host client."""

    def get_remote_url(self) -> str:
        """Return the URL to push to."""

    def get_author(self) -> tuple[str, str]:
        """Return the commit author name and email."""

    async def repository_exists(self) -> bool:
        """Return whether the remote repository exists."""


@dataclass(slots=True)
class GitRepoController:
    """Drive the ``git`` executable for the publishing working copy.

    The working copy lives in ``repository_dir`` and only ever contains the files of the
    last push. A push after ``terminate()`` raises ``PublishError(TERMINATED)``.
    """

    repository_dir: Path
    logger: logging.Logger
    branch: str = "main"
    git_executable: str = "git"
    events: EventEmitter = field(default_factory=EventEmitter, init=False, repr=False)
    _remote: PushTarget | None = field(default=None, init=False, repr=False)
    _output_dir: Path | None = field(default=None, init=False)
    _status: LocalRepoStatus = field(default=LocalRepoStatus.INITIALIZING, init=False)
    _process: asyncio.subprocess.Process | None = field(default=None, init=False, repr=False)
    _terminated: bool = field(default=False, init=False)
    _fresh: bool = field(default=False, init=False)

    @property
    def status(self) -> LocalRepoStatus:
        return self._status

    async def init(self, remote: PushTarget, output_dir: str) -> None:
        """Check the remote repository and make sure a working copy exists."""

        self._remote = remote
        self._output_dir = Path(output_dir)
        self._terminated = False
        self._set_status(LocalRepoStatus.INITIALIZING)

        try:
            if not await remote.repository_exists():
                self.logger.info("Remote repository does not exist yet")
                self._set_status(LocalRepoStatus.MISSING_REPOSITORY)
                return
            if not self._has_working_copy():
                await self._create_working_copy()
        except Exception:
            self._set_status(LocalRepoStatus.FAIL)
            raise

        self._set_status(LocalRepoStatus.READY)

    async def push(self, files: Sequence[str], force_init: bool) -> None:
        """Mirror ``files`` from the output directory into the working copy and push."""

        if self._remote is None or self._output_dir is None:
            raise PublishError(PublishResult.FAIL, "Local repository has not been initialized.")

        self._terminated = False
        try:
            if force_init or not self._has_working_copy():
                self._set_status(LocalRepoStatus.INITIALIZING)
                await self._create_working_copy()

            self._progress("Copying files", 10)
            await asyncio.to_thread(self._sync_files, list(files))
            self._check_terminated()

            self._progress("Committing", 40)
            author_name, author_email = self._remote.get_author()
            await self._git("add", "--all")
            await self._git(
                "-c",
                f"user.name={author_name}",
                "-c",
                f"user.email={author_email}",
                "commit",
                "--allow-empty",
                "--quiet",
                "-m",
                f"Publish site at {datetime.now(timezone.utc).isoformat(timespec='seconds')}",
            )

            self._progress("Pushing", 60)
            remote_url = self._remote.get_remote_url()
            await self._git("remote", "set-url", "origin", _strip_credentials(remote_url))
            push_args = ["push", "--porcelain", remote_url, f"HEAD:refs/heads/{self.branch}"]
            if force_init or self._fresh:
                push_args.insert(1, "--force")
            await self._git(*push_args)
        except PublishError as error:
            if error.type is PublishResult.FAIL:
                self._set_status(LocalRepoStatus.FAIL)
            raise
        except OSError as exc:
            self._set_status(LocalRepoStatus.FAIL)
            raise PublishError(PublishResult.FAIL, str(exc)) from exc
        finally:
            self._process = None

        self._fresh = False
        self._progress("Published", 100)
        self._set_status(LocalRepoStatus.READY)

    def terminate(self) -> None:
        self._terminated = True
        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        self.logger.debug("Termination requested for git working copy")

    def _has_working_copy(self) -> bool:
        return (self.repository_dir / ".git").is_dir()

    async def _create_working_copy(self) -> None:
        if self._remote is None:
            raise PublishError(PublishResult.FAIL, "Local repository has not been initialized.")
        self.logger.info("Creating git working copy in %s", self.repository_dir)
        await asyncio.to_thread(_reset_directory, self.repository_dir)
        await self._git("init", "--quiet")
        await self._git("symbolic-ref", "HEAD", f"refs/heads/{self.branch}")
        origin = _strip_credentials(self._remote.get_remote_url())
        await self._git("remote", "add", "origin", origin)
        self._fresh = True

    def _sync_files(self, files: list[str]) -> None:
        if self._output_dir is None:
            raise PublishError(PublishResult.FAIL, "Output directory is not known.")
        for entry in self.repository_dir.iterdir():
            if entry.name == ".git":
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

        for name in files:
            source = Path(name)
            if source.is_absolute():
                relative = source.relative_to(self._output_dir)
            else:
                relative = source
                source = self._output_dir / source
            destination = self.repository_dir / relative
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)

    async def _git(self, *args: str) -> str:
        self._check_terminated()
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        process = await asyncio.create_subprocess_exec(
            self.git_executable,
            *args,
            cwd=self.repository_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        self._process = process
        stdout, stderr = await process.communicate()
        self._process = None
        self._check_terminated()

        error_text = _redact(stderr.decode("utf-8", errors="replace")).strip()
        if process.returncode != 0:
            command = _redact(" ".join(args))
            self.logger.warning(
                "git %s exited with %s: %s", command, process.returncode, error_text
            )
            raise PublishError(
                PublishResult.FAIL,
                f"git {command} failed: {error_text or f'exit code {process.returncode}'}",
            )
        if error_text:
            self.events.emit(GitEvents.MESSAGE, error_text.splitlines()[-1])
        return stdout.decode("utf-8", errors="replace")

    def _check_terminated(self) -> None:
        if self._terminated:
            raise PublishError(PublishResult.TERMINATED)

    def _progress(self, phase: str, total_progress: int) -> None:
        self.events.emit(
            GitEvents.PROGRESS,
            {"phase": phase, "message": "", "total_progress": total_progress},
        )

    def _set_status(self, status: LocalRepoStatus) -> None:
        if status is self._status and status is not LocalRepoStatus.INITIALIZING:
            return
        self._status = status
        self.events.emit(GitEvents.LOCAL_REPO_STATUS_CHANGED, status)


def _reset_directory(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


def _redact(text: str) -> str:
    return _CREDENTIALS_IN_URL.sub("://***@", text)


def _strip_credentials(url: str) -> str:
    return _CREDENTIALS_IN_URL.sub("://", url)
