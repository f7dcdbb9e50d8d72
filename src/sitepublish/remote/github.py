"""GitHub REST client used to look up and create the publishing repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from sitepublish.core.errors import RemoteHostError, RepositoryCreationError
from sitepublish.core.events import EventEmitter, RemoteHostEvents
from sitepublish.core.models import CredentialInfo, is_unset

API_VERSION = "2022-11-28"
USER_AGENT = "sitepublish"


class TransientRemoteError(RemoteHostError):
    """Raised for retryable API failures (transport errors, 5xx responses)."""


@dataclass(slots=True)
class GithubClient:
    """Remote host client for GitHub (or a GitHub-compatible API)."""

    logger: logging.Logger
    api_url: str = "https://api.github.com"
    pages_domain: str = "github.io"
    remote_url: str | None = None
    timeout: float = 30.0
    max_retries: int = 3
    backoff_min_seconds: float = 0.5
    backoff_max_seconds: float = 8.0
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)
    events: EventEmitter = field(default_factory=EventEmitter, init=False, repr=False)
    _info: CredentialInfo | None = field(default=None, init=False, repr=False)

    def init(self, info: CredentialInfo) -> None:
        self._info = info
        self.logger.debug("Remote client configured for %s@%s", info.user_name, info.host_name)
        self.events.emit(RemoteHostEvents.INFO_CHANGED)

    @property
    def info(self) -> CredentialInfo | None:
        return self._info

    def get_default_repository_name(self) -> str:
        if self._info is None or is_unset(self._info.user_name):
            return ""
        return f"{self._info.user_name}.{self.pages_domain}"

    def get_repository_name(self) -> str:
        if self._info is not None and not is_unset(self._info.repository):
            return str(self._info.repository)
        return self.get_default_repository_name()

    def get_remote_url(self) -> str:
        """Return the URL git pushes to, with credentials embedded for https remotes."""

        if self.remote_url:
            return self.remote_url
        info = self._require_info()
        user = quote(info.user_name, safe="")
        token = quote(info.token, safe="")
        repository = self.get_repository_name()
        return f"https://{user}:{token}@{info.host_name}/{info.user_name}/{repository}.git"

    def get_author(self) -> tuple[str, str]:
        info = self._require_info()
        return info.user_name, info.email

    async def repository_exists(self) -> bool:
        """Return whether the configured repository exists on the remote host."""

        info = self._require_info()
        path = f"/repos/{info.user_name}/{self.get_repository_name()}"

        retry_policy = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential_jitter(
                initial=self.backoff_min_seconds,
                max=self.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(TransientRemoteError),
            reraise=True,
        )
        async for attempt in retry_policy:
            with attempt:
                response = await self._request("GET", path)
                if response.status_code == 404:
                    return False
                if response.status_code >= 500:
                    raise TransientRemoteError(
                        f"HTTP {response.status_code} while checking {path}"
                    )
                if response.status_code >= 400:
                    raise RemoteHostError(
                        f"HTTP {response.status_code} while checking {path}: "
                        f"{_error_message(response)}"
                    )
                return True
        raise RemoteHostError(f"Unable to check {path}")  # pragma: no cover - loop returns

    async def create_repository(self) -> None:
        """Create the configured repository under the authenticated user."""

        try:
            self._require_info()
        except RemoteHostError as exc:
            raise RepositoryCreationError(str(exc)) from exc

        name = self.get_repository_name()
        payload: dict[str, Any] = {
            "name": name,
            "description": "Published with sitepublish",
            "private": False,
            "auto_init": False,
        }
        try:
            response = await self._request("POST", "/user/repos", json=payload)
        except TransientRemoteError as exc:
            raise RepositoryCreationError(f"Unable to create repository {name}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise RepositoryCreationError(
                f"Unable to create repository {name}: HTTP {response.status_code} "
                f"{_error_message(response)}".rstrip()
            )
        self.logger.info("Created remote repository %s", name)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        info = self._require_info()
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {info.token}",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": API_VERSION,
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                headers=headers,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientRemoteError(f"Timeout calling {method} {path}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransientRemoteError(f"HTTP error calling {method} {path}: {exc}") from exc

    def _require_info(self) -> CredentialInfo:
        if self._info is None or not self._info.is_valid:
            raise RemoteHostError("Remote client has no valid credentials.")
        return self._info


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(payload, dict):
        return str(payload.get("message", "")).strip()
    return ""
