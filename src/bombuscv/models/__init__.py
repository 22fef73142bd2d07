"""Configuration models."""

from bombuscv.models.config import RESOLUTIONS, Config, MotionConfig, RuntimeConfig

__all__ = ["Config", "MotionConfig", "RESOLUTIONS", "RuntimeConfig"]
