"""Video output: one OpenCV writer per recording session."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import cv2
import numpy as np
import numpy.typing as npt

from bombuscv.capture.frame import CaptureConfig, Frame
from bombuscv.errors import SinkError

logger = logging.getLogger(__name__)

DEFAULT_OVERLAY_FORMAT = "%Y-%m-%d %H:%M:%S"
CONTAINER_EXTENSION = ".mkv"


class Codec(str, Enum):
    MJPG = "MJPG"
    XVID = "XVID"
    MP4V = "MP4V"
    H264 = "H264"

    @property
    def fourcc(self) -> int:
        code = {"MP4V": "mp4v", "H264": "h264"}.get(self.value, self.value)
        return int(cv2.VideoWriter_fourcc(*code))


class VideoWriterLike(Protocol):
    def isOpened(self) -> bool: ...

    def write(self, image: Any) -> Any: ...

    def release(self) -> None: ...


WriterFactory = Callable[[str, int, float, tuple[int, int]], VideoWriterLike]


def _open_cv_writer(
    path: str, fourcc: int, fps: float, size: tuple[int, int]
) -> VideoWriterLike:
    return cv2.VideoWriter(path, fourcc, fps, size, True)


@dataclass
class RecordingSession:
    """An open output file; exists only while recording."""

    path: Path
    started_at: datetime
    capture: CaptureConfig
    writer: VideoWriterLike = field(repr=False)
    frames_written: int = 0
    closed: bool = False

    @property
    def recording_id(self) -> str:
        return self.path.name


class VideoSink:
    """Opens, writes and finalizes recording sessions.

    With overlay enabled, each frame's capture time is burned into a copy
    of the pixel buffer before encoding.
    """

    def __init__(
        self,
        *,
        codec: Codec = Codec.XVID,
        overlay: bool = False,
        overlay_format: str = DEFAULT_OVERLAY_FORMAT,
        writer_factory: WriterFactory | None = None,
    ) -> None:
        self.codec = codec
        self.overlay = overlay
        self.overlay_format = overlay_format
        self.extension = CONTAINER_EXTENSION
        self._writer_factory = writer_factory or _open_cv_writer

    def open(self, capture: CaptureConfig, path: Path) -> RecordingSession:
        if self.overlay and not capture.allows_overlay:
            raise SinkError("Timestamp overlay is not available for file sources", path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            writer = self._writer_factory(
                str(path), self.codec.fourcc, float(capture.framerate), capture.size
            )
        except Exception as exc:
            raise SinkError(f"Unable to open video output file: {path}", path, cause=exc) from exc
        if not writer.isOpened():
            raise SinkError(f"Unable to open video output file: {path}", path)
        logger.debug(
            "Opened writer %s (%s %sx%s@%s)",
            path,
            self.codec.value,
            capture.width,
            capture.height,
            capture.framerate,
        )
        return RecordingSession(
            path=path,
            started_at=datetime.now(),
            capture=capture,
            writer=writer,
        )

    def write(self, session: RecordingSession, frame: Frame) -> None:
        if session.closed:
            raise SinkError(f"Session already closed: {session.path}", session.path)
        if (frame.width, frame.height) != session.capture.size:
            raise SinkError(
                f"Frame size {frame.width}x{frame.height} does not match output "
                f"{session.capture.width}x{session.capture.height}",
                session.path,
            )
        pixels = frame.pixels
        if self.overlay:
            pixels = self._burn_timestamp(pixels, frame.captured_at)
        try:
            session.writer.write(pixels)
        except Exception as exc:
            raise SinkError(f"Failed to write frame {frame.seq}", session.path, cause=exc) from exc
        session.frames_written += 1

    def close(self, session: RecordingSession) -> None:
        if session.closed:
            return
        session.closed = True
        try:
            session.writer.release()
        except Exception as exc:
            raise SinkError(f"Failed to finalize {session.path}", session.path, cause=exc) from exc
        logger.debug("Finalized %s (%d frames)", session.path, session.frames_written)

    def _burn_timestamp(
        self, pixels: npt.NDArray[np.uint8], captured_at: datetime
    ) -> npt.NDArray[np.uint8]:
        # Draw on a copy: the original buffer is still the detector's reference.
        canvas = pixels.copy()
        cv2.putText(
            canvas,
            captured_at.strftime(self.overlay_format),
            (10, 40),
            cv2.FONT_HERSHEY_DUPLEX,
            1.0,
            (255, 255, 255),
            2,
            cv2.LINE_8,
            False,
        )
        return canvas
