"""Hand-written fakes for BombusCV tests."""

from tests.bombuscv.mocks.capture import (
    FakeCapture,
    FakeClock,
    FakeSource,
    make_frame,
    moving_frame,
    still_frame,
)
from tests.bombuscv.mocks.writer import FakeWriter, FakeWriterFactory

__all__ = [
    "FakeCapture",
    "FakeClock",
    "FakeSource",
    "FakeWriter",
    "FakeWriterFactory",
    "make_frame",
    "moving_frame",
    "still_frame",
]
