"""Configuration loader with YAML support and environment overrides.

This module loads MediaCapConfig from a YAML file, applying the overrides
of the selected environment and any explicit overrides on top.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from pydantic import ValidationError

from .settings import MediaCapConfig


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "mediacap.yaml"


class ConfigLoadError(Exception):
    """Exception raised when configuration loading fails."""
    pass


def load_config(
    config_path: Optional[str] = None,
    environment: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> MediaCapConfig:
    """Load MediaCapConfig from YAML file with environment overrides.

    Args:
        config_path: Path to YAML config file. If None, uses MEDIACAP_CONFIG
            or config/mediacap.yaml; a missing default file yields defaults.
        environment: Environment name for override selection. If None, uses
            MEDIACAP_ENV.
        overrides: Additional configuration overrides to apply.

    Returns:
        Configured MediaCapConfig instance.

    Raises:
        ConfigLoadError: If configuration loading or validation fails.

    Example:
        >>> config = load_config("config/mediacap.yaml", environment="development")
        >>> config.sessions.ttl_ms
        90000
    """
    explicit = config_path is not None or "MEDIACAP_CONFIG" in os.environ
    path = Path(config_path or os.getenv("MEDIACAP_CONFIG") or DEFAULT_CONFIG_PATH)

    config_data: Dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Failed to parse YAML config: {e}")
        except IOError as e:
            raise ConfigLoadError(f"Failed to read config file: {e}")

        if not isinstance(config_data, dict):
            raise ConfigLoadError("Config file must contain a YAML dictionary")
        logger.debug(f"Loaded configuration from {path}")
    elif explicit:
        raise ConfigLoadError(f"Config file not found: {path}")
    else:
        logger.debug(f"No config file at {path}, using defaults")

    if environment is None:
        environment = os.getenv("MEDIACAP_ENV", config_data.get("environment", "production"))

    environments = config_data.pop("environments", None) or {}
    if environment in environments:
        config_data = _deep_merge(config_data, environments[environment])
        logger.info(f"Applied environment overrides for: {environment}")
    config_data["environment"] = environment

    if overrides:
        config_data = _deep_merge(config_data, overrides)
        logger.debug("Applied additional configuration overrides")

    try:
        return MediaCapConfig(**config_data)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid configuration: {e}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Args:
        base: Base configuration dictionary.
        override: Override values to merge in.

    Returns:
        Merged configuration dictionary.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def create_default_config() -> Dict[str, Any]:
    """Create a default configuration dictionary.

    Returns:
        Default configuration values suitable for YAML serialization.
    """
    config_data = MediaCapConfig().model_dump(mode="json")
    config_data["environments"] = {
        "development": {
            "browser": {"headless": False},
            "sessions": {"ttl_ms": 300000},
        },
        "test": {
            "capture": {"dwell_ms": 0, "inject_instrumentation": False},
            "relay": {"probe_enabled": False},
        },
    }
    return config_data


def save_default_config(output_path: str) -> None:
    """Save default configuration to YAML file.

    Args:
        output_path: Path where to save the configuration file.

    Raises:
        ConfigLoadError: If file writing fails.
    """
    config_data = create_default_config()

    try:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            yaml.dump(config_data, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved default configuration to: {output_path}")
    except IOError as e:
        raise ConfigLoadError(f"Failed to write config file: {e}")
