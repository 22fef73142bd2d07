"""Configuration loading and validation."""

from bombuscv.config.loader import (
    CONFIG_ENV_VAR,
    ConfigError,
    ConfigErrorCode,
    apply_overrides,
    default_config_path,
    load_config,
    load_config_from_dict,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigError",
    "ConfigErrorCode",
    "apply_overrides",
    "default_config_path",
    "load_config",
    "load_config_from_dict",
]
