"""Recording sessions and their lifecycle."""

from bombuscv.recording.sink import Codec, RecordingSession, VideoSink
from bombuscv.recording.state_machine import RecordingState, RecordingStateMachine

__all__ = [
    "Codec",
    "RecordingSession",
    "RecordingState",
    "RecordingStateMachine",
    "VideoSink",
]
