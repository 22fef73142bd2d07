"""Wires the capture, detection and recording components into one pipeline."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from functools import partial
from pathlib import Path

from bombuscv.capture.negotiator import DeviceNegotiator
from bombuscv.capture.source import CameraSource, VideoFileSource, open_source
from bombuscv.detection.motion import MotionDetector
from bombuscv.errors import SetupError
from bombuscv.logging_setup import set_source_name
from bombuscv.models.config import Config
from bombuscv.pipeline.channel import FrameChannel
from bombuscv.pipeline.coordinator import ExitStatus, PipelineCoordinator
from bombuscv.pipeline.shutdown import ShutdownToken
from bombuscv.recording.naming import make_output_path
from bombuscv.recording.sink import VideoSink, WriterFactory
from bombuscv.recording.state_machine import RecordingStateMachine

logger = logging.getLogger(__name__)

SourceOpener = Callable[[Config], CameraSource | VideoFileSource]


def _open_configured_source(config: Config) -> CameraSource | VideoFileSource:
    return open_source(index=config.index, video=config.video)


def build_detector(config: Config) -> MotionDetector:
    motion = config.motion
    return MotionDetector(
        pixel_threshold=motion.pixel_threshold,
        min_changed_pct=motion.min_changed_pct,
        blur_kernel=motion.blur_kernel,
        dilate_iterations=motion.dilate_iterations,
        detect_size=motion.detect_size,
        debug=motion.debug,
    )


def run(
    config: Config,
    *,
    token: ShutdownToken | None = None,
    open_source_fn: SourceOpener | None = None,
    negotiator: DeviceNegotiator | None = None,
    writer_factory: WriterFactory | None = None,
) -> ExitStatus:
    """Run the pipeline until shutdown, end of file, or a fatal error.

    Setup failures (source cannot be opened, device cannot be queried) are
    reported once and returned as `ExitStatus.FAILED`.
    """
    token = token or ShutdownToken()
    opener = open_source_fn or _open_configured_source
    negotiator = negotiator or DeviceNegotiator()

    try:
        source = opener(config)
    except SetupError as exc:
        logger.error("Setup failed: %s", exc)
        return ExitStatus.FAILED

    set_source_name(source.name)
    try:
        capture = negotiator.negotiate(source, config.capture_request())
    except SetupError as exc:
        logger.error("Setup failed: %s", exc)
        source.close()
        return ExitStatus.FAILED
    except Exception:
        source.close()
        raise

    overlay = config.overlay
    if overlay and not capture.allows_overlay:
        logger.warning("Timestamp overlay disabled for file input")
        overlay = False

    sink = VideoSink(
        codec=config.codec,
        overlay=overlay,
        overlay_format=config.overlay_format,
        writer_factory=writer_factory,
    )
    path_factory: Callable[[datetime], Path] = partial(
        make_output_path, config.directory, config.format, extension=sink.extension
    )
    state_machine = RecordingStateMachine(
        sink=sink,
        capture=capture,
        quiet_duration_s=config.quiet_duration_s,
        path_factory=path_factory,
    )

    logger.info(
        "Capture %sx%s@%.2ffps (%s), output=%s codec=%s overlay=%s quiet_duration=%.1fs",
        capture.width,
        capture.height,
        capture.framerate,
        capture.kind.value,
        config.directory,
        config.codec.value,
        overlay,
        config.quiet_duration_s,
    )

    coordinator = PipelineCoordinator(
        source=source,
        detector=build_detector(config),
        state_machine=state_machine,
        token=token,
        channel=FrameChannel(capacity=config.runtime.channel_capacity),
        poll_interval_s=config.runtime.poll_interval_s,
        max_consecutive_failures=config.runtime.max_consecutive_failures,
    )
    return coordinator.run()
