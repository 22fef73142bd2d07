"""Configuration loading, validation and command-line overrides."""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from bombuscv.models.config import Config

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BOMBUSCV_CONFIG"
_LIVE_ONLY_OPTIONS = ("framerate", "resolution", "width", "height", "overlay")


class ConfigErrorCode(str, Enum):
    """Stable config error codes."""

    FILE_NOT_FOUND = "CONFIG_FILE_NOT_FOUND"
    YAML_INVALID = "CONFIG_YAML_INVALID"
    ROOT_NOT_MAPPING = "CONFIG_ROOT_NOT_MAPPING"
    VALIDATION_FAILED = "CONFIG_VALIDATION_FAILED"
    UNKNOWN = "CONFIG_UNKNOWN"


class ConfigError(Exception):
    """Configuration loading or validation error."""

    def __init__(
        self,
        message: str,
        *,
        code: ConfigErrorCode = ConfigErrorCode.UNKNOWN,
        path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.path = path
        self.__cause__ = cause


def default_config_path() -> Path:
    """XDG location of the config file: `$XDG_CONFIG_HOME/bombuscv/config.yaml`."""
    base = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(base).expanduser() if base else Path.home() / ".config"
    return config_home / "bombuscv" / "config.yaml"


def resolve_config_path(path: Path | str | None = None) -> tuple[Path, bool]:
    """Return the config path to read and whether it was named explicitly."""
    if path is not None:
        return Path(path).expanduser(), True
    env_value = os.environ.get(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser(), True
    return default_config_path(), False


def load_config(path: Path | str | None = None) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        path: Explicit config path; falls back to `BOMBUSCV_CONFIG`, then the
            default XDG location

    Returns:
        Validated Config instance (defaults when the default file is absent)

    Raises:
        ConfigError: If an explicit file is missing, YAML is invalid, or validation fails
    """
    config_path, explicit = resolve_config_path(path)
    if not config_path.exists():
        if explicit:
            raise ConfigError(
                f"Config file not found: {config_path}",
                code=ConfigErrorCode.FILE_NOT_FOUND,
                path=config_path,
            )
        logger.debug("No config file at %s, using defaults", config_path)
        return load_config_from_dict({})

    try:
        with config_path.open() as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {config_path}: {e}",
            code=ConfigErrorCode.YAML_INVALID,
            path=config_path,
            cause=e,
        ) from e

    if raw is None:
        logger.debug("Config file %s is empty, using defaults", config_path)
        raw = {}

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Config must be a YAML mapping, got {type(raw).__name__}",
            code=ConfigErrorCode.ROOT_NOT_MAPPING,
            path=config_path,
        )

    config = _validate(raw, config_path)
    logger.debug("Config loaded from %s", config_path)
    return config


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load and validate configuration from a dict (useful for testing)."""
    return _validate(data, None)


def apply_overrides(config: Config, overrides: dict[str, Any]) -> Config:
    """Merge command-line options over a loaded config.

    `None` (and `False` for flags) means "not given". With a video input the
    live-only options are ignored and overlay is forced off.
    """
    updates = {
        key: value
        for key, value in overrides.items()
        if value is not None and not (isinstance(value, bool) and value is False)
    }

    video = updates.get("video", config.video)
    if video is not None:
        for key in _LIVE_ONLY_OPTIONS:
            if key in updates:
                logger.warning("Ignoring `%s` while using `video` input", key)
                updates.pop(key)
        if config.overlay:
            logger.warning("Ignoring `overlay` while using `video` input")
            updates["overlay"] = False
        logger.info("Using `video` native resolution and framerate")

    data = config.model_dump()
    data.update(updates)
    return _validate(data, None)


def _validate(data: dict[str, Any], path: Path | None) -> Config:
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            format_validation_error(e, path),
            code=ConfigErrorCode.VALIDATION_FAILED,
            path=path,
            cause=e,
        ) from e


def format_validation_error(e: ValidationError, path: Path | None = None) -> str:
    """Format Pydantic validation error for human readability."""
    prefix = f"Config validation failed ({path}):" if path else "Config validation failed:"
    errors = []
    for err in e.errors():
        loc = " -> ".join(str(x) for x in err["loc"]) or "config"
        msg = err["msg"]
        errors.append(f"  {loc}: {msg}")
    return prefix + "\n" + "\n".join(errors)
