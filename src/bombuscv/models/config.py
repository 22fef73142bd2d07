"""Configuration models."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from bombuscv.capture.frame import CaptureRequest
from bombuscv.recording.sink import DEFAULT_OVERLAY_FORMAT, Codec

# Standard 16:9 presets accepted by `resolution`.
RESOLUTIONS: dict[str, tuple[int, int]] = {
    "480p": (854, 480),
    "576p": (1024, 576),
    "720p": (1280, 720),
    "768p": (1366, 768),
    "900p": (1600, 900),
    "1080p": (1920, 1080),
    "1440p": (2560, 1440),
    "2160p": (3840, 2160),
}


class MotionConfig(BaseModel):
    """Motion detection configuration."""

    model_config = {"extra": "forbid"}

    pixel_threshold: int = Field(
        default=30,
        ge=0,
        le=255,
        description="Pixel intensity delta required to count a pixel as changed.",
    )
    min_changed_pct: float = Field(
        default=0.0,
        ge=0.0,
        lt=100.0,
        description="Percent of the frame area that must change to declare motion.",
    )
    blur_kernel: int = Field(
        default=3,
        ge=0,
        description="Gaussian blur kernel size (odd or zero; even values are normalized).",
    )
    dilate_iterations: int = Field(
        default=3,
        ge=0,
        description="Dilation passes applied to the change mask.",
    )
    detect_width: int | None = Field(
        default=640,
        gt=0,
        description="Width frames are downscaled to before comparison (None keeps native size).",
    )
    detect_height: int | None = Field(
        default=480,
        gt=0,
        description="Height frames are downscaled to before comparison.",
    )
    debug: bool = Field(default=False, description="Enable verbose motion detection logging.")

    @model_validator(mode="after")
    def _require_both_detect_dims(self) -> MotionConfig:
        if (self.detect_width is None) != (self.detect_height is None):
            raise ValueError("detect_width and detect_height must be set together")
        return self

    @property
    def detect_size(self) -> tuple[int, int] | None:
        if self.detect_width is None or self.detect_height is None:
            return None
        return (self.detect_width, self.detect_height)


class RuntimeConfig(BaseModel):
    """Pipeline runtime configuration."""

    model_config = {"extra": "forbid"}

    channel_capacity: int = Field(
        default=1,
        ge=1,
        le=2,
        description="Frames buffered between acquisition and processing (oldest is replaced).",
    )
    poll_interval_s: float = Field(
        default=0.1,
        gt=0.0,
        description="Seconds the processing loop waits for a frame before re-checking shutdown.",
    )
    max_consecutive_failures: int = Field(
        default=30,
        ge=1,
        description="Consecutive failed frame reads treated as a device disconnect.",
    )


class Config(BaseModel):
    """Resolved BombusCV configuration."""

    model_config = {"extra": "forbid"}

    index: int = Field(default=0, ge=0, description="/dev/video<index> capture camera index.")
    video: Path | None = Field(default=None, description="Video file used as input.")
    framerate: float | None = Field(default=60.0, ge=1.0, description="Requested framerate.")
    resolution: str | None = Field(
        default="480p", description="Requested resolution preset (standard 16:9 formats)."
    )
    width: int | None = Field(default=None, gt=0, description="Requested width (overrides preset).")
    height: int | None = Field(
        default=None, gt=0, description="Requested height (overrides preset)."
    )
    directory: Path = Field(default_factory=Path.home, description="Output video directory.")
    format: str = Field(
        default="%Y-%m-%dT%H:%M:%S",
        min_length=1,
        description="Output video filename format (strftime specifiers).",
    )
    overlay: bool = Field(default=False, description="Enable date&time video overlay.")
    overlay_format: str = Field(
        default=DEFAULT_OVERLAY_FORMAT, min_length=1, description="Overlay timestamp format."
    )
    quiet: bool = Field(default=False, description="Mute standard output.")
    quiet_duration_s: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds without motion before a recording is finalized.",
    )
    codec: Codec = Field(default=Codec.XVID, description="Output video codec.")
    log_level: str = Field(default="INFO", description="Console logging level.")

    motion: MotionConfig = Field(default_factory=MotionConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @field_validator("video", "directory", mode="before")
    @classmethod
    def _expand_home(cls, value: object) -> object:
        if isinstance(value, (str, Path)):
            return Path(value).expanduser()
        return value

    @field_validator("resolution", mode="before")
    @classmethod
    def _normalize_resolution(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().lower()
            if value not in RESOLUTIONS:
                raise ValueError(f"invalid resolution (expected one of {', '.join(RESOLUTIONS)})")
        return value

    @field_validator("codec", mode="before")
    @classmethod
    def _normalize_codec(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.upper()
            if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                raise ValueError("invalid log level")
        return value

    @model_validator(mode="after")
    def _validate_paths(self) -> Config:
        if not self.directory.is_dir():
            raise ValueError(f"directory is not a directory: {self.directory}")
        if self.video is not None and not self.video.is_file():
            raise ValueError(f"video is not a file: {self.video}")
        return self

    @property
    def is_file_input(self) -> bool:
        return self.video is not None

    def capture_request(self) -> CaptureRequest:
        """Requested mode; empty for file input, which always uses native values."""
        if self.video is not None:
            return CaptureRequest()
        width, height = self.width, self.height
        if self.resolution is not None:
            preset_w, preset_h = RESOLUTIONS[self.resolution]
            width = width or preset_w
            height = height or preset_h
        return CaptureRequest(width=width, height=height, framerate=self.framerate)
