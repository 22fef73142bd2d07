"""Frame sources and capture mode negotiation."""

from bombuscv.capture.frame import CaptureConfig, CaptureMode, CaptureRequest, Frame, SourceKind
from bombuscv.capture.negotiator import DeviceNegotiator, select_mode
from bombuscv.capture.source import CameraSource, FrameSource, VideoFileSource, open_source

__all__ = [
    "CameraSource",
    "CaptureConfig",
    "CaptureMode",
    "CaptureRequest",
    "DeviceNegotiator",
    "Frame",
    "FrameSource",
    "SourceKind",
    "VideoFileSource",
    "open_source",
    "select_mode",
]
