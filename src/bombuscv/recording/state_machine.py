"""Recording lifecycle driven by per-frame motion verdicts.

State flow:
    Idle -> Recording (motion)
    Recording -> Recording (motion resets the quiet timer; quiet frames advance it)
    Recording -> Idle (quiet timer reaches quiet_duration_s, sink failure, or shutdown)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path

from bombuscv.capture.frame import CaptureConfig, Frame
from bombuscv.detection.motion import MotionVerdict
from bombuscv.errors import SinkError
from bombuscv.logging_setup import set_recording_id
from bombuscv.recording.sink import RecordingSession, VideoSink

logger = logging.getLogger(__name__)


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


def quiet_frame_limit(quiet_duration_s: float, frame_interval_s: float) -> int:
    """Number of consecutive quiet frames after which a session closes."""
    if quiet_duration_s <= 0:
        raise ValueError("quiet_duration_s must be positive")
    if frame_interval_s <= 0:
        raise ValueError("frame_interval_s must be positive")
    # Round away float noise so 0.3 / 0.1 counts as 3 frames, not 4.
    return max(1, math.ceil(round(quiet_duration_s / frame_interval_s, 6)))


class RecordingStateMachine:
    """Owns at most one RecordingSession and decides when to write or stop."""

    def __init__(
        self,
        *,
        sink: VideoSink,
        capture: CaptureConfig,
        quiet_duration_s: float,
        path_factory: Callable[[datetime], Path],
    ) -> None:
        self._sink = sink
        self._capture = capture
        self._path_factory = path_factory
        self.quiet_duration_s = float(quiet_duration_s)
        self.quiet_frame_limit = quiet_frame_limit(self.quiet_duration_s, capture.frame_interval_s)

        self._state = RecordingState.IDLE
        self._session: RecordingSession | None = None
        self._quiet_frames = 0
        self._stopped = False
        self.sessions_opened = 0
        self.sessions_failed = 0
        self.frames_rejected = 0

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def session(self) -> RecordingSession | None:
        return self._session

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def quiet_frames(self) -> int:
        return self._quiet_frames

    @property
    def quiet_elapsed_s(self) -> float:
        return self._quiet_frames * self._capture.frame_interval_s

    def on_frame(self, frame: Frame, verdict: MotionVerdict) -> None:
        """Advance the machine by one classified frame."""
        if self._stopped:
            logger.debug("Ignoring frame %s after shutdown", frame.seq)
            return

        if self._state is RecordingState.IDLE:
            if not verdict.motion:
                return
            if not self._fits_capture(frame):
                return
            if not self._open_session(frame, verdict):
                return

        if not self._write(frame):
            return

        if verdict.motion:
            self._quiet_frames = 0
            return

        self._quiet_frames += 1
        if self._quiet_frames >= self.quiet_frame_limit:
            logger.info(
                "No motion for %.2fs >= quiet_duration=%.2fs (last changed_pct=%.3f%%), stopping",
                self.quiet_elapsed_s,
                self.quiet_duration_s,
                verdict.changed_pct,
            )
            self._finalize(reason="quiet")

    def shutdown(self) -> None:
        """Finalize any open session and stop accepting frames. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        if self._state is RecordingState.RECORDING:
            logger.info("Shutdown requested while recording; finalizing")
            self._finalize(reason="shutdown")

    def _fits_capture(self, frame: Frame) -> bool:
        if (frame.width, frame.height) == self._capture.size:
            return True
        self.frames_rejected += 1
        log = logger.warning if self.frames_rejected == 1 else logger.debug
        log(
            "Not recording frame %s: size %sx%s does not match capture %sx%s",
            frame.seq,
            frame.width,
            frame.height,
            self._capture.width,
            self._capture.height,
        )
        return False

    def _open_session(self, frame: Frame, verdict: MotionVerdict) -> bool:
        path = self._path_factory(frame.captured_at)
        try:
            session = self._sink.open(self._capture, path)
        except SinkError as exc:
            self.sessions_failed += 1
            logger.error(
                "Recording failed to start: %s",
                exc,
                extra=self._event_extra(
                    "recording_start_error", recording_id=path.name, recording_path=str(path)
                ),
            )
            return False

        self._session = session
        self._state = RecordingState.RECORDING
        self._quiet_frames = 0
        self.sessions_opened += 1
        set_recording_id(session.recording_id)
        logger.info("Started recording: %s (motion at frame %s)", path, frame.seq)
        logger.info(
            "Recording started",
            extra=self._event_extra(
                "recording_start",
                recording_id=session.recording_id,
                recording_path=str(path),
                frame_seq=frame.seq,
                changed_pct=verdict.changed_pct,
            ),
        )
        return True

    def _write(self, frame: Frame) -> bool:
        session = self._session
        if session is None:
            return False
        try:
            self._sink.write(session, frame)
        except SinkError as exc:
            self.sessions_failed += 1
            logger.error(
                "Write failed, closing session: %s",
                exc,
                extra=self._event_extra(
                    "recording_write_error",
                    recording_id=session.recording_id,
                    recording_path=str(session.path),
                    frame_seq=frame.seq,
                ),
            )
            self._finalize(reason="write_error")
            return False
        return True

    def _finalize(self, *, reason: str) -> None:
        session = self._session
        self._session = None
        self._state = RecordingState.IDLE
        self._quiet_frames = 0
        set_recording_id(None)
        if session is None:
            return

        try:
            self._sink.close(session)
        except SinkError as exc:
            self.sessions_failed += 1
            logger.error("Failed to finalize %s: %s", session.path, exc, exc_info=True)

        duration_s = session.frames_written * self._capture.frame_interval_s
        logger.info(
            "Recording stopped",
            extra=self._event_extra(
                "recording_stop",
                recording_id=session.recording_id,
                recording_path=str(session.path),
                frames_written=session.frames_written,
                duration_s=duration_s,
                reason=reason,
            ),
        )

    def _event_extra(self, event_type: str, **fields: object) -> dict[str, object]:
        extra: dict[str, object] = {
            "kind": "event",
            "event_type": event_type,
            "quiet_duration_s": self.quiet_duration_s,
            "framerate": self._capture.framerate,
        }
        extra.update(fields)
        return extra
