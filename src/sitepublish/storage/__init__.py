"""Storage helpers for Sitepublish."""

from .db import CREDENTIALS_KEY, LocalCredentialStore, SettingsDatabase

__all__ = ["CREDENTIALS_KEY", "LocalCredentialStore", "SettingsDatabase"]
