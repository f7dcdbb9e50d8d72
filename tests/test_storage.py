"""Tests for SQLite storage layer."""

from __future__ import annotations

from sitepublish.storage import CREDENTIALS_KEY, LocalCredentialStore, SettingsDatabase


def test_initialize_creates_database(tmp_path):
    db_path = tmp_path / "data" / "sitepublish.sqlite"
    database = SettingsDatabase(db_path)
    database.initialize()

    assert db_path.exists()

    with database.connect() as connection:
        cursor = connection.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in cursor.fetchall()}
        assert "settings" in tables


def test_settings_round_trip_and_overwrite(tmp_path):
    database = SettingsDatabase(tmp_path / "sitepublish.sqlite")
    database.initialize()

    assert database.get_setting("theme") is None

    database.set_setting("theme", {"name": "dark"})
    database.set_setting("theme", {"name": "light", "contrast": 2})

    assert database.get_setting("theme") == {"name": "light", "contrast": 2}
    with database.connect() as connection:
        count = connection.execute("SELECT COUNT(*) FROM settings").fetchone()[0]
    assert count == 1


def test_credential_store_never_persists_token(tmp_path):
    database = SettingsDatabase(tmp_path / "sitepublish.sqlite")
    database.initialize()
    store = LocalCredentialStore(database)

    store.save_persisted_credential_info(
        {"user_name": "octocat", "email": "octocat@example.com", "token": "secret"}
    )

    assert database.get_setting(CREDENTIALS_KEY) == {
        "user_name": "octocat",
        "email": "octocat@example.com",
    }
    assert store.get_persisted_credential_info() == {
        "user_name": "octocat",
        "email": "octocat@example.com",
    }


def test_credential_store_drops_token_written_elsewhere(tmp_path):
    database = SettingsDatabase(tmp_path / "sitepublish.sqlite")
    database.initialize()
    database.set_setting(CREDENTIALS_KEY, {"user_name": "octocat", "token": "leaked"})

    store = LocalCredentialStore(database)

    assert store.get_persisted_credential_info() == {"user_name": "octocat"}


def test_credential_store_reads_token_from_environment(tmp_path, monkeypatch):
    database = SettingsDatabase(tmp_path / "sitepublish.sqlite")
    database.initialize()
    store = LocalCredentialStore(database, token_env="CUSTOM_TOKEN")

    monkeypatch.delenv("CUSTOM_TOKEN", raising=False)
    assert store.get_secret_token() is None

    monkeypatch.setenv("CUSTOM_TOKEN", "   ")
    assert store.get_secret_token() is None

    monkeypatch.setenv("CUSTOM_TOKEN", " ghp_abc \n")
    assert store.get_secret_token() == "ghp_abc"


def test_credential_store_ignores_malformed_payload(tmp_path):
    database = SettingsDatabase(tmp_path / "sitepublish.sqlite")
    database.initialize()
    database.set_setting(CREDENTIALS_KEY, ["not", "a", "mapping"])

    assert LocalCredentialStore(database).get_persisted_credential_info() == {}
