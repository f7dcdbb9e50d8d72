"""Configuration loading for Sitepublish."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
LOCAL_CONFIG_PATH = Path("config/local.yaml")
PACKAGED_CONFIG = ("sitepublish.config", "default.yaml")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None
    level: str = Field(default="info")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("Logging level must be a string.")
        normalized = value.strip().lower()
        if normalized not in {"debug", "info", "warn", "warning", "error", "critical"}:
            raise ValueError(f"Unsupported logging level: {value!r}")
        return normalized


class GeneratorSettings(BaseModel):
    """Where site content is read from and where generated files land."""

    model_config = ConfigDict(extra="forbid")

    source_dir: Path = Path("content")
    output_dir: Path = Path("dist")


class PublishingSettings(BaseModel):
    """Publishing workflow settings."""

    model_config = ConfigDict(extra="forbid")

    grace_period_seconds: float = Field(default=3.0, ge=0.0)
    repository_dir: Path = Path(".sitepublish/repository")
    branch: str = Field(default="main", min_length=1)

    @field_validator("branch", mode="before")
    @classmethod
    def _strip_branch(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value


class RemoteSettings(BaseModel):
    """Remote hosting API settings."""

    model_config = ConfigDict(extra="forbid")

    api_url: str = "https://api.github.com"
    pages_domain: str = "github.io"
    remote_url: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    max_retries: int = Field(default=3, ge=1)
    backoff_min_seconds: float = Field(default=0.5, ge=0.0)
    backoff_max_seconds: float = Field(default=8.0, ge=0.0)

    @field_validator("api_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value


class StorageSettings(BaseModel):
    """Storage configuration."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None


class CredentialSettings(BaseModel):
    """Where the secret token is read from."""

    model_config = ConfigDict(extra="forbid")

    token_env: str = "SITEPUBLISH_TOKEN"


class ConfigModel(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    generator: GeneratorSettings = Field(default_factory=GeneratorSettings)
    publishing: PublishingSettings = Field(default_factory=PublishingSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)


@dataclass(slots=True)
class Config:
    """Validated configuration with convenience helpers."""

    model: ConfigModel
    loaded_from: tuple[str, ...] = field(default_factory=tuple, repr=False)

    @property
    def logging(self) -> LoggingSettings:
        return self.model.logging

    @property
    def generator(self) -> GeneratorSettings:
        return self.model.generator

    @property
    def publishing(self) -> PublishingSettings:
        return self.model.publishing

    @property
    def remote(self) -> RemoteSettings:
        return self.model.remote

    @property
    def storage(self) -> StorageSettings:
        return self.model.storage

    @property
    def credentials(self) -> CredentialSettings:
        return self.model.credentials

    def resolve_path(self, path: Path) -> Path:
        """Resolve a configured path against the current working directory."""

        return path if path.is_absolute() else Path.cwd() / path


def load_config(path: Path | None = None) -> Config:
    """Load configuration from defaults/local overrides, or from an explicit config document."""

    merged: dict[str, Any] = {}
    loaded_from: list[str] = []

    if path is not None:
        override_path = _resolve_path(path)
        if override_path is None or not override_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        merged = _merge_dicts(merged, _read_yaml(override_path))
        loaded_from.append(str(override_path))
    else:
        default_candidate = _resolve_path(DEFAULT_CONFIG_PATH)
        if default_candidate and default_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(default_candidate))
            loaded_from.append(str(default_candidate))
        else:
            packaged_payload = _read_packaged_yaml(*PACKAGED_CONFIG)
            if packaged_payload is not None:
                merged = _merge_dicts(merged, packaged_payload)
                loaded_from.append(":".join(PACKAGED_CONFIG))

        local_candidate = _resolve_path(LOCAL_CONFIG_PATH)
        if local_candidate and local_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(local_candidate))
            loaded_from.append(str(local_candidate))

    if not merged:
        raise FileNotFoundError("No configuration data could be loaded.")

    try:
        model = ConfigModel.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    return Config(model=model, loaded_from=tuple(loaded_from))


def _resolve_path(path: Path) -> Path | None:
    """Resolve configuration paths relative to the current working directory."""

    if path is None:
        return None
    return path if path.is_absolute() else Path.cwd() / path


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML file into a dictionary."""

    content = path.read_text(encoding="utf-8")
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must define a mapping at the top level.")
    return data


def _read_packaged_yaml(package: str, name: str) -> dict[str, Any] | None:
    """Read YAML embedded in a Python package via importlib.resources."""

    try:
        content = resources.files(package).joinpath(name).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Packaged configuration {package}:{name} must define a mapping at the top level."
        )
    return data


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two dictionaries, with override values taking precedence."""

    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value
    return result
