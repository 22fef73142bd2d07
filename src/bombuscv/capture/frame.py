"""Frame and capture-mode value types shared by sources, detector and sink."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import numpy as np
import numpy.typing as npt


class SourceKind(str, Enum):
    CAMERA = "camera"
    FILE = "file"


@dataclass
class Frame:
    """One decoded image plus its sequence number and capture timestamp.

    Ownership moves with the frame: the acquisition side drops its reference
    once the frame is handed to the channel.
    """

    pixels: npt.NDArray[np.uint8]
    seq: int
    captured_at: datetime

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class CaptureMode:
    """A (width, height, framerate) combination a source can deliver."""

    width: int
    height: int
    framerate: float

    @property
    def area(self) -> int:
        return self.width * self.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height}@{self.framerate:g}fps"


@dataclass(frozen=True)
class CaptureRequest:
    """Requested capture mode; None means unspecified."""

    width: int | None = None
    height: int | None = None
    framerate: float | None = None


@dataclass(frozen=True)
class CaptureConfig:
    """Resolved capture parameters, shared read-only by source and sink."""

    width: int
    height: int
    framerate: float
    kind: SourceKind

    @classmethod
    def from_mode(cls, mode: CaptureMode, kind: SourceKind) -> CaptureConfig:
        return cls(width=mode.width, height=mode.height, framerate=mode.framerate, kind=kind)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def frame_interval_s(self) -> float:
        return 1.0 / self.framerate

    @property
    def allows_overlay(self) -> bool:
        """Timestamp overlay needs a live capture moment."""
        return self.kind is SourceKind.CAMERA

    def mode(self) -> CaptureMode:
        return CaptureMode(self.width, self.height, self.framerate)
