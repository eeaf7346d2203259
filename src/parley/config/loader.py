"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from parley.config.schema import ParleyConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".parley" / "parley.yaml"

# Overrides the default location when no path is given
CONFIG_ENV_VAR = "PARLEY_CONFIG"


class ConfigError(Exception):
    """Configuration loading or validation error."""


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the config file: explicit path, then $PARLEY_CONFIG, then the default."""
    if path is not None:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(path: Optional[Union[str, Path]] = None) -> ParleyConfig:
    """Load and validate parley configuration from a YAML file.

    Args:
        path: Path to config file. If None, uses $PARLEY_CONFIG or the
              default location. A missing file yields the default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    path = resolve_config_path(path)

    # Zero-config mode
    if not path.exists():
        logger.debug("No config at %s, using defaults", path)
        return ParleyConfig()

    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if config_data is None:
        return ParleyConfig()
    if not isinstance(config_data, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping, got {type(config_data).__name__}"
        )

    try:
        return ParleyConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def save_config(config: ParleyConfig, path: Optional[Union[str, Path]] = None) -> Path:
    """Write configuration to a YAML file, creating parent directories.

    Args:
        config: Configuration object to save
        path: Destination path. If None, resolved as in ``load_config``.

    Returns:
        The path written
    """
    path = resolve_config_path(path)
    config_dict = config.model_dump(mode="json", exclude_none=True)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"Cannot write config file {path}: {e}") from e

    logger.info("Saved config to %s", path)
    return path
