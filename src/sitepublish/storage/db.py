"""SQLite persistence for Sitepublish settings."""

from __future__ import annotations

import json
import os
import sqlite3
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
CREDENTIALS_KEY = "credentials"


def _utcnow() -> str:
    """Return the current UTC timestamp in ISO format."""

    return datetime.now(timezone.utc).strftime(ISO_FORMAT)


class SettingsDatabase:
    """SQLite-backed key/value storage for persisted settings."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = (path or Path.cwd() / "sitepublish.sqlite").resolve()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Provide a SQLite connection."""

        connection = sqlite3.connect(self.path)
        connection.row_factory = sqlite3.Row
        try:
            yield connection
        finally:
            connection.close()

    def initialize(self) -> None:
        """Create tables if they do not exist."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as connection:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
            connection.commit()

    def get_setting(self, key: str) -> Optional[Any]:
        """Return the decoded value stored under ``key``."""

        with self.connect() as connection:
            row = connection.execute(
                "SELECT value_json FROM settings WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value_json"])

    def set_setting(self, key: str, value: Any) -> None:
        """Store ``value`` as JSON under ``key``, replacing any previous value."""

        with self.connect() as connection:
            connection.execute(
                """
                INSERT INTO settings (key, value_json, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), _utcnow()),
            )
            connection.commit()


class LocalCredentialStore:
    """Credential store backed by the settings table and an environment-provided token."""

    def __init__(self, database: SettingsDatabase, token_env: str = "SITEPUBLISH_TOKEN") -> None:
        self.database = database
        self.token_env = token_env

    def get_secret_token(self) -> Optional[str]:
        token = os.environ.get(self.token_env, "").strip()
        return token or None

    def get_persisted_credential_info(self) -> dict[str, Any]:
        stored = self.database.get_setting(CREDENTIALS_KEY)
        if not isinstance(stored, dict):
            return {}
        stored.pop("token", None)
        return stored

    def save_persisted_credential_info(self, info: Mapping[str, Any]) -> None:
        payload = {key: value for key, value in info.items() if key != "token"}
        self.database.set_setting(CREDENTIALS_KEY, payload)
