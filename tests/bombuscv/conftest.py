"""Shared pytest fixtures for BombusCV tests."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to sys.path for imports
src_path = Path(__file__).parent.parent.parent / "src"
if str(src_path.resolve()) not in sys.path:
    sys.path.insert(0, str(src_path.resolve()))

import pytest

import bombuscv.logging_setup as logging_setup
from bombuscv.capture.frame import CaptureConfig, SourceKind


@pytest.fixture(autouse=True)
def reset_logging_state() -> Iterator[None]:
    """Reset injected log context between tests."""
    original_source = logging_setup._CURRENT_SOURCE_NAME
    original_recording = logging_setup._CURRENT_RECORDING_ID

    yield

    logging_setup._CURRENT_SOURCE_NAME = original_source
    logging_setup._CURRENT_RECORDING_ID = original_recording


@pytest.fixture
def camera_capture() -> CaptureConfig:
    """Live 64x48 capture at 10 fps (100ms frame interval)."""
    return CaptureConfig(width=64, height=48, framerate=10.0, kind=SourceKind.CAMERA)


@pytest.fixture
def file_capture() -> CaptureConfig:
    """File 64x48 capture at 10 fps."""
    return CaptureConfig(width=64, height=48, framerate=10.0, kind=SourceKind.FILE)
