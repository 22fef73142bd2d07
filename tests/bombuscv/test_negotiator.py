"""Tests for capture mode negotiation."""

from __future__ import annotations

import subprocess
from pathlib import Path

import cv2
import pytest

from bombuscv.capture.frame import CaptureConfig, CaptureMode, CaptureRequest, SourceKind
from bombuscv.capture.negotiator import (
    DeviceNegotiator,
    list_v4l2_modes,
    parse_v4l2_formats,
    select_mode,
)
from bombuscv.capture.source import CameraSource, VideoFileSource
from bombuscv.errors import UnsupportedDeviceError
from tests.bombuscv.mocks import FakeCapture, FakeClock, still_frame
from tests.bombuscv.mocks.capture import capture_props

V4L2_OUTPUT = """\
ioctl: VIDIOC_ENUM_FMT
\tType: Video Capture

\t[0]: 'MJPG' (Motion-JPEG, compressed)
\t\tSize: Discrete 1280x720
\t\t\tInterval: Discrete 0.017s (60.000 fps)
\t\t\tInterval: Discrete 0.033s (30.000 fps)
\t\tSize: Discrete 640x480
\t\t\tInterval: Discrete 0.033s (30.000 fps)
\t[1]: 'YUYV' (YUYV 4:2:2)
\t\tSize: Discrete 640x480
\t\t\tInterval: Discrete 0.033s (30.000 fps)
"""


def test_parse_v4l2_formats() -> None:
    """Each size/interval pair becomes one mode; duplicates across pixel formats collapse."""
    modes = parse_v4l2_formats(V4L2_OUTPUT)

    assert modes == [
        CaptureMode(1280, 720, 60.0),
        CaptureMode(1280, 720, 30.0),
        CaptureMode(640, 480, 30.0),
    ]


def test_list_v4l2_modes_without_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    """A missing v4l2-ctl binary means the driver could not be asked."""

    def _missing(*_args: object, **_kwargs: object) -> None:
        raise FileNotFoundError("v4l2-ctl")

    monkeypatch.setattr(subprocess, "run", _missing)

    assert list_v4l2_modes("/dev/video0") is None


def test_select_exact_match() -> None:
    """An exactly supported mode is always chosen."""
    modes = parse_v4l2_formats(V4L2_OUTPUT)

    chosen = select_mode(modes, CaptureRequest(1280, 720, 30.0))

    assert chosen == CaptureMode(1280, 720, 30.0)


def test_select_closest_when_unsupported() -> None:
    """An unsupported request resolves to the nearest supported mode."""
    modes = parse_v4l2_formats(V4L2_OUTPUT)

    chosen = select_mode(modes, CaptureRequest(854, 480, 60.0))

    assert chosen == CaptureMode(640, 480, 30.0)


def test_select_tie_prefers_exact_framerate() -> None:
    """Between equally distant modes the one matching the framerate wins."""
    modes = [CaptureMode(100, 100, 33.0), CaptureMode(110, 100, 30.0)]

    chosen = select_mode(modes, CaptureRequest(100, 100, 30.0))

    assert chosen == CaptureMode(110, 100, 30.0)


def test_select_tie_prefers_smaller_area_difference() -> None:
    """Between equally distant modes the closer pixel count wins."""
    modes = [CaptureMode(960, 720, 30.0), CaptureMode(640, 480, 30.0)]

    chosen = select_mode(modes, CaptureRequest(800, 600, 30.0))

    assert chosen == CaptureMode(640, 480, 30.0)


def test_select_without_request_prefers_largest() -> None:
    """With nothing requested the largest, fastest mode is chosen."""
    modes = parse_v4l2_formats(V4L2_OUTPUT)

    assert select_mode(modes, CaptureRequest()) == CaptureMode(1280, 720, 60.0)


def test_select_requires_modes() -> None:
    with pytest.raises(ValueError):
        select_mode([], CaptureRequest(640, 480, 30.0))


def test_negotiate_camera_applies_selected_mode() -> None:
    """The selected mode is applied and the device's reported values returned."""
    # Given: a driver listing the sample modes
    capture = FakeCapture(props=capture_props(640, 480, 30.0))
    camera = CameraSource(capture, index=0)
    negotiator = DeviceNegotiator(list_modes=lambda _device: parse_v4l2_formats(V4L2_OUTPUT))

    # When: requesting 720p at 60 fps
    config = negotiator.negotiate(camera, CaptureRequest(1280, 720, 60.0))

    # Then: the camera was configured and the live config reflects it
    assert config == CaptureConfig(1280, 720, 60.0, SourceKind.CAMERA)
    assert capture.props[cv2.CAP_PROP_FPS] == 60.0


def test_negotiate_camera_probes_when_driver_silent() -> None:
    """Without an enumeration the probe ladder decides the supported modes."""
    # Given: a camera that delivers 64x48 frames for every probed mode
    capture = FakeCapture([still_frame()] * 20, props=capture_props(64, 48, 30.0))
    camera = CameraSource(capture, index=0)
    negotiator = DeviceNegotiator(list_modes=lambda _device: None)

    # When: listing supported modes
    modes = negotiator.supported_modes(camera)

    # Then: the frames' actual size is what counts, per probed framerate
    assert modes == [CaptureMode(64, 48, 30.0), CaptureMode(64, 48, 60.0)]


def test_negotiate_camera_unsupported_device() -> None:
    """A device that neither enumerates nor delivers frames is unsupported."""
    camera = CameraSource(FakeCapture(), index=4)
    negotiator = DeviceNegotiator(list_modes=lambda _device: [])

    with pytest.raises(UnsupportedDeviceError, match="/dev/video4"):
        negotiator.negotiate(camera, CaptureRequest(640, 480, 30.0))


def test_negotiate_file_uses_native_mode() -> None:
    """A file resolves to its own metadata whatever was requested."""
    # Given: a 320x240@25 file
    source = VideoFileSource(
        FakeCapture(),
        path=Path("bees.mkv"),
        native_mode=CaptureMode(320, 240, 25.0),
        clock=FakeClock(),
    )
    negotiator = DeviceNegotiator(list_modes=lambda _device: pytest.fail("not a camera"))

    # When: requesting something else entirely
    config = negotiator.negotiate(source, CaptureRequest(1920, 1080, 60.0))

    # Then: the native values are used
    assert config == CaptureConfig(320, 240, 25.0, SourceKind.FILE)
    assert config.allows_overlay is False
