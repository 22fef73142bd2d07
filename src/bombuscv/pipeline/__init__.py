"""Capture/detect/record pipeline coordination."""

from bombuscv.pipeline.channel import FrameChannel
from bombuscv.pipeline.coordinator import ExitStatus, PipelineCoordinator
from bombuscv.pipeline.shutdown import ShutdownToken, install_signal_handlers

__all__ = [
    "ExitStatus",
    "FrameChannel",
    "PipelineCoordinator",
    "ShutdownToken",
    "install_signal_handlers",
]
