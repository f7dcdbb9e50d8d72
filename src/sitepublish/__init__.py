"""Sitepublish: generate a static site and publish it to a git-backed host."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path

DISTRIBUTION_NAME = "sitepublish"


def _source_checkout_version(start: Path) -> str | None:
    """Read `[project].version` from the nearest sitepublish pyproject.toml, if any."""

    for candidate in (start, *start.parents):
        pyproject = candidate / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            with pyproject.open("rb") as handle:
                project = tomllib.load(handle).get("project")
        except (OSError, tomllib.TOMLDecodeError):  # pragma: no cover - filesystem errors
            return None
        if not isinstance(project, dict) or project.get("name") != DISTRIBUTION_NAME:
            return None
        version = project.get("version")
        if isinstance(version, str) and version.strip():
            return version.strip()
        return None
    return None


@lru_cache(maxsize=1)
def get_version() -> str:
    """Return the Sitepublish version.

    A source checkout wins over installed metadata so that editable installs report the
    version currently written in `pyproject.toml`.
    """

    version = _source_checkout_version(Path(__file__).resolve().parent)
    if version is not None:
        return version

    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError as exc:  # pragma: no cover - occurs in dev
        raise RuntimeError("Unable to determine Sitepublish version.") from exc


__all__ = ["get_version"]
