"""Configuration utilities for Sitepublish."""

from .loader import (
    Config,
    ConfigModel,
    GeneratorSettings,
    PublishingSettings,
    RemoteSettings,
    load_config,
)

__all__ = [
    "Config",
    "ConfigModel",
    "GeneratorSettings",
    "PublishingSettings",
    "RemoteSettings",
    "load_config",
]
