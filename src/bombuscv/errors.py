"""Error hierarchy for BombusCV capture, detection and recording stages."""

from __future__ import annotations

from pathlib import Path


class BombusError(Exception):
    """Base exception for all BombusCV errors.

    Preserves stack traces via exception chaining.
    """

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.__cause__ = cause


class SetupError(BombusError):
    """Pipeline could not be set up; fatal and never retried."""


class SourceOpenError(SetupError):
    """Camera or video file could not be opened."""

    def __init__(self, source: str, cause: Exception | None = None) -> None:
        super().__init__(f"Unable to open capture source: {source}", cause=cause)
        self.source = source


class UnsupportedDeviceError(SetupError):
    """Capture device could not be queried for its supported modes."""

    def __init__(self, device: str, cause: Exception | None = None) -> None:
        super().__init__(f"Unable to query capture modes for device: {device}", cause=cause)
        self.device = device


class CaptureError(BombusError):
    """A frame could not be read.

    Transient unless `fatal` is set (hard device disconnect).
    """

    def __init__(
        self, message: str, *, fatal: bool = False, cause: Exception | None = None
    ) -> None:
        super().__init__(message, cause=cause)
        self.fatal = fatal


class EndOfStream(BombusError):
    """Video file source has no more frames."""

    def __init__(self, source: str) -> None:
        super().__init__(f"End of stream: {source}")
        self.source = source


class SinkError(BombusError):
    """Opening, writing or finalizing an output video failed."""

    def __init__(self, message: str, path: Path | None, cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.path = path
