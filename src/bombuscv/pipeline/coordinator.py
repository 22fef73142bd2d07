"""Two-thread capture/detect/record pipeline.

The acquisition thread pulls frames from the source and hands them to a
replace-oldest channel; the processing thread classifies each frame and
drives the recording state machine. A fatal error in either loop stops
both, and the processing loop always finalizes the open recording before
it returns.
"""

from __future__ import annotations

import logging
from enum import Enum
from threading import Event, Lock, Thread

from bombuscv.capture.frame import Frame
from bombuscv.capture.source import FrameSource
from bombuscv.detection.motion import MotionDetector
from bombuscv.errors import CaptureError, EndOfStream
from bombuscv.pipeline.channel import FrameChannel
from bombuscv.pipeline.shutdown import ShutdownToken
from bombuscv.recording.state_machine import RecordingStateMachine

logger = logging.getLogger(__name__)


class ExitStatus(str, Enum):
    SHUTDOWN = "shutdown"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return 1 if self is ExitStatus.FAILED else 0


class PipelineCoordinator:
    """Owns the acquisition and processing threads and the channel between them."""

    def __init__(
        self,
        *,
        source: FrameSource,
        detector: MotionDetector,
        state_machine: RecordingStateMachine,
        token: ShutdownToken,
        channel: FrameChannel | None = None,
        poll_interval_s: float = 0.1,
        max_consecutive_failures: int = 30,
    ) -> None:
        self._source = source
        self._detector = detector
        self._state_machine = state_machine
        self._token = token
        self._channel = channel or FrameChannel(capacity=1)
        self._poll_interval_s = float(poll_interval_s)
        self._max_consecutive_failures = max(1, int(max_consecutive_failures))

        self._abort = Event()
        self._failure_lock = Lock()
        self._failure: BaseException | None = None
        self._failure_stage: str | None = None
        self.end_of_stream = False
        self.frames_captured = 0
        self.frames_processed = 0
        self.capture_failures = 0

    @property
    def channel(self) -> FrameChannel:
        return self._channel

    @property
    def failure(self) -> BaseException | None:
        return self._failure

    def run(self, *, join_poll_s: float = 0.2) -> ExitStatus:
        """Run both loops until shutdown, end of stream or a fatal error."""
        acquisition = Thread(target=self._acquisition_loop, name="acquisition", daemon=True)
        processing = Thread(target=self._processing_loop, name="processing", daemon=True)
        logger.info("Starting pipeline for %s", self._source.name)
        processing.start()
        acquisition.start()

        # Join with a timeout so the main thread keeps servicing signals.
        for thread in (processing, acquisition):
            while thread.is_alive():
                thread.join(timeout=join_poll_s)

        status = self._exit_status()
        logger.info(
            "Pipeline finished: status=%s captured=%d processed=%d dropped=%d capture_failures=%d sessions=%d",
            status.value,
            self.frames_captured,
            self.frames_processed,
            self._channel.dropped,
            self.capture_failures,
            self._state_machine.sessions_opened,
        )
        return status

    def _should_stop(self) -> bool:
        return self._token.is_set() or self._abort.is_set()

    def _fail(self, stage: str, exc: BaseException) -> None:
        with self._failure_lock:
            if self._failure is None:
                self._failure = exc
                self._failure_stage = stage
        self._abort.set()
        logger.error(
            "Pipeline %s loop failed: %s",
            stage,
            exc,
            extra={"kind": "event", "event_type": "pipeline_failed", "stage": stage},
        )

    def _exit_status(self) -> ExitStatus:
        if self._failure is not None:
            return ExitStatus.FAILED
        if self._token.is_set():
            logger.info("Shutdown completed (%s)", self._token.reason)
            return ExitStatus.SHUTDOWN
        return ExitStatus.COMPLETED

    def _acquisition_loop(self) -> None:
        consecutive_failures = 0
        try:
            while not self._should_stop():
                try:
                    frame = self._source.next()
                except EndOfStream:
                    logger.info("End of stream reached after %d frames", self.frames_captured)
                    self.end_of_stream = True
                    return
                except CaptureError as exc:
                    self.capture_failures += 1
                    consecutive_failures += 1
                    if exc.fatal:
                        self._fail("acquisition", exc)
                        return
                    if consecutive_failures >= self._max_consecutive_failures:
                        self._fail(
                            "acquisition",
                            CaptureError(
                                f"{consecutive_failures} consecutive frame reads failed",
                                fatal=True,
                                cause=exc,
                            ),
                        )
                        return
                    logger.warning("Frame dropped (%d consecutive): %s", consecutive_failures, exc)
                    continue

                consecutive_failures = 0
                self.frames_captured += 1
                self._channel.send(frame)
                del frame
        except Exception as exc:
            logger.exception("Acquisition loop crashed")
            self._fail("acquisition", exc)
        finally:
            self._channel.close()
            try:
                self._source.close()
            except Exception:
                logger.exception("Error releasing capture source %s", self._source.name)

    def _processing_loop(self) -> None:
        previous: Frame | None = None
        try:
            while not self._should_stop():
                frame = self._channel.recv(timeout_s=self._poll_interval_s)
                if frame is None:
                    if self._channel.drained():
                        break
                    continue

                self.frames_processed += 1
                if previous is None:
                    previous = frame
                    continue

                verdict = self._detector.detect(previous, frame)
                previous = frame
                self._state_machine.on_frame(frame, verdict)
        except Exception as exc:
            logger.exception("Processing loop crashed")
            self._fail("processing", exc)
        finally:
            self._state_machine.shutdown()
