"""Configuration loading utilities.

This package provides the pydantic configuration models and YAML-based
loading with environment overrides.
"""

from .settings import (
    MediaCapConfig,
    SessionSettings,
    CaptureSettings,
    BrowserSettings,
    RelaySettings,
    URLSettings,
)
from .loader import (
    load_config,
    create_default_config,
    save_default_config,
    ConfigLoadError
)

__all__ = [
    "MediaCapConfig",
    "SessionSettings",
    "CaptureSettings",
    "BrowserSettings",
    "RelaySettings",
    "URLSettings",
    "load_config",
    "create_default_config",
    "save_default_config",
    "ConfigLoadError"
]
