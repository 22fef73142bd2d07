"""Frame sources: live V4L2 cameras and pre-recorded video files.

Both variants expose the same `next()`/`close()` capability; the only
observable difference is that a file source ends with `EndOfStream`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import cv2
import numpy as np
import numpy.typing as npt

from bombuscv.capture.clock import Clock, SystemClock
from bombuscv.capture.frame import CaptureMode, Frame, SourceKind
from bombuscv.capture.probe import probe_video_mode
from bombuscv.errors import CaptureError, EndOfStream, SourceOpenError

logger = logging.getLogger(__name__)

# Common modes tried when the driver cannot enumerate its own.
PROBE_LADDER: tuple[CaptureMode, ...] = (
    CaptureMode(320, 240, 30.0),
    CaptureMode(640, 480, 30.0),
    CaptureMode(800, 600, 30.0),
    CaptureMode(1280, 720, 30.0),
    CaptureMode(1920, 1080, 30.0),
    CaptureMode(640, 480, 60.0),
    CaptureMode(1280, 720, 60.0),
)


class VideoCaptureLike(Protocol):
    """Subset of `cv2.VideoCapture` used by the sources."""

    def isOpened(self) -> bool: ...

    def read(self) -> tuple[bool, Any]: ...

    def get(self, prop_id: int) -> float: ...

    def set(self, prop_id: int, value: float) -> bool: ...

    def release(self) -> None: ...


CaptureFactory = Callable[..., VideoCaptureLike]


class FrameSource(Protocol):
    """Produces frames in capture order.

    `next()` raises `CaptureError` for a failed read (transient unless
    `fatal`) and `EndOfStream` once a file source is exhausted.
    """

    kind: SourceKind
    name: str

    def next(self) -> Frame: ...

    def close(self) -> None: ...


def _read_mode(capture: VideoCaptureLike) -> CaptureMode:
    return CaptureMode(
        int(round(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)),
        int(round(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)),
        float(capture.get(cv2.CAP_PROP_FPS) or 0.0),
    )


def _is_valid_image(pixels: npt.NDArray[np.uint8] | None) -> bool:
    return pixels is not None and getattr(pixels, "size", 0) > 0


class CameraSource:
    """Live camera read through OpenCV's V4L2 backend."""

    kind = SourceKind.CAMERA

    def __init__(self, capture: VideoCaptureLike, *, index: int) -> None:
        self._capture = capture
        self.index = index
        self.name = f"camera{index}"
        self._seq = 0
        self._released = False

    @classmethod
    def open(cls, index: int, *, capture_factory: CaptureFactory | None = None) -> CameraSource:
        factory = capture_factory or cv2.VideoCapture
        try:
            capture = factory(index, cv2.CAP_V4L2)
        except Exception as exc:
            raise SourceOpenError(f"/dev/video{index}", cause=exc) from exc
        if not capture.isOpened():
            capture.release()
            raise SourceOpenError(f"/dev/video{index}")
        logger.info("Opened camera /dev/video%s", index)
        return cls(capture, index=index)

    @property
    def device_path(self) -> str:
        return f"/dev/video{self.index}"

    def current_mode(self) -> CaptureMode:
        return _read_mode(self._capture)

    def apply_mode(self, mode: CaptureMode) -> CaptureMode:
        """Configure the device and return the mode it actually delivers."""
        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, mode.width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, mode.height)
        self._capture.set(cv2.CAP_PROP_FPS, mode.framerate)
        actual = _read_mode(self._capture)
        width = actual.width or mode.width
        height = actual.height or mode.height
        # The delivered frame size wins over whatever the driver reports.
        try:
            ok, pixels = self._capture.read()
        except cv2.error:
            ok, pixels = False, None
        if ok and _is_valid_image(pixels):
            actual_h, actual_w = pixels.shape[:2]
            width, height = int(actual_w), int(actual_h)
        else:
            logger.debug("No frame read after applying %s; trusting reported size", mode)
        framerate = actual.framerate if actual.framerate > 0 else mode.framerate
        resolved = CaptureMode(width, height, framerate)
        if resolved != mode:
            logger.warning("Camera reports %s after requesting %s", resolved, mode)
        return resolved

    def probe_modes(self, candidates: Sequence[CaptureMode] = PROBE_LADDER) -> list[CaptureMode]:
        """Try candidate modes and keep the ones that deliver a frame."""
        original = self.current_mode()
        validated: list[CaptureMode] = []
        for candidate in candidates:
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, candidate.width)
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, candidate.height)
            self._capture.set(cv2.CAP_PROP_FPS, candidate.framerate)
            ok, pixels = self._capture.read()
            if not ok or not _is_valid_image(pixels):
                logger.debug("Mode %s failed: no frame returned", candidate)
                continue
            actual_h, actual_w = pixels.shape[:2]
            fps = float(self._capture.get(cv2.CAP_PROP_FPS) or candidate.framerate)
            mode = CaptureMode(int(actual_w), int(actual_h), round(fps, 1))
            if mode not in validated:
                validated.append(mode)
                logger.debug("Validated mode %s", mode)
        if original.width and original.height:
            self.apply_mode(original)
        return validated

    def next(self) -> Frame:
        if self._released or not self._capture.isOpened():
            raise CaptureError(f"Camera {self.device_path} disconnected", fatal=True)
        try:
            ok, pixels = self._capture.read()
        except cv2.error as exc:
            raise CaptureError(f"Camera {self.device_path} read failed", cause=exc) from exc
        if not ok or not _is_valid_image(pixels):
            raise CaptureError(f"Frame dropped from {self.device_path}")
        frame = Frame(pixels=pixels, seq=self._seq, captured_at=datetime.now())
        self._seq += 1
        return frame

    def close(self) -> None:
        if self._released:
            return
        self._released = True
        self._capture.release()
        logger.debug("Released camera %s", self.device_path)


class VideoFileSource:
    """Pre-recorded video, paced at its native framerate."""

    kind = SourceKind.FILE

    def __init__(
        self,
        capture: VideoCaptureLike,
        *,
        path: Path,
        native_mode: CaptureMode,
        clock: Clock | None = None,
    ) -> None:
        self._capture = capture
        self.path = path
        self.name = path.name
        self._native_mode = native_mode
        self._clock = clock or SystemClock()
        self._interval_s = 1.0 / native_mode.framerate
        self._started_at: float | None = None
        self._seq = 0
        self._released = False

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        capture_factory: CaptureFactory | None = None,
        clock: Clock | None = None,
        metadata_probe: Callable[[Path], CaptureMode | None] = probe_video_mode,
    ) -> VideoFileSource:
        if not path.is_file():
            raise SourceOpenError(str(path))
        factory = capture_factory or cv2.VideoCapture
        try:
            capture = factory(str(path), cv2.CAP_FFMPEG)
        except Exception as exc:
            raise SourceOpenError(str(path), cause=exc) from exc
        if not capture.isOpened():
            capture.release()
            raise SourceOpenError(str(path))

        mode = _read_mode(capture)
        if mode.width <= 0 or mode.height <= 0 or mode.framerate <= 0:
            logger.debug("Decoder metadata incomplete for %s (%s); probing with ffprobe", path, mode)
            probed = metadata_probe(path)
            if probed is None:
                capture.release()
                raise SourceOpenError(str(path))
            mode = probed
        logger.info("Opened video file %s (%s)", path, mode)
        return cls(capture, path=path, native_mode=mode, clock=clock)

    def native_mode(self) -> CaptureMode:
        return self._native_mode

    def next(self) -> Frame:
        if self._released:
            raise EndOfStream(str(self.path))
        self._pace()
        ok, pixels = self._capture.read()
        if not ok or not _is_valid_image(pixels):
            raise EndOfStream(str(self.path))
        frame = Frame(pixels=pixels, seq=self._seq, captured_at=datetime.now())
        self._seq += 1
        return frame

    def _pace(self) -> None:
        now = self._clock.now()
        if self._started_at is None:
            self._started_at = now
            return
        due = self._started_at + self._seq * self._interval_s
        delay = due - now
        if delay > 0:
            self._clock.sleep(delay)

    def close(self) -> None:
        if self._released:
            return
        self._released = True
        self._capture.release()
        logger.debug("Released video file %s", self.path)


def open_source(
    *,
    index: int = 0,
    video: Path | None = None,
    clock: Clock | None = None,
    capture_factory: CaptureFactory | None = None,
) -> CameraSource | VideoFileSource:
    """Open the configured input; a video path takes precedence over a camera index."""
    if video is not None:
        return VideoFileSource.open(video, capture_factory=capture_factory, clock=clock)
    return CameraSource.open(index, capture_factory=capture_factory)
