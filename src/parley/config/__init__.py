"""Configuration schema and YAML loading."""

from parley.config.loader import ConfigError, load_config, save_config
from parley.config.schema import ParleyConfig

__all__ = ["ConfigError", "ParleyConfig", "load_config", "save_config"]
