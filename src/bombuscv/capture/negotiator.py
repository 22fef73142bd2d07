"""Capture mode negotiation.

Live cameras are probed for the supported (width, height, framerate)
combinations and the closest one to the request is applied. File sources
always resolve to the file's own metadata.
"""

from __future__ import annotations

import logging
import math
import re
import subprocess
from collections.abc import Callable, Sequence

from bombuscv.capture.frame import CaptureConfig, CaptureMode, CaptureRequest, SourceKind
from bombuscv.capture.source import CameraSource, VideoFileSource
from bombuscv.errors import UnsupportedDeviceError

logger = logging.getLogger(__name__)

_SIZE_PATTERN = re.compile(r"Size:\s+\w+\s+(\d+)x(\d+)")
_INTERVAL_PATTERN = re.compile(r"Interval:.*\(([\d.]+)\s+fps\)")


def parse_v4l2_formats(output: str) -> list[CaptureMode]:
    """Parse `v4l2-ctl --list-formats-ext` output into unique capture modes."""
    modes: list[CaptureMode] = []
    size: tuple[int, int] | None = None
    for line in output.splitlines():
        if size_match := _SIZE_PATTERN.search(line):
            size = (int(size_match.group(1)), int(size_match.group(2)))
            continue
        if size is None:
            continue
        if interval_match := _INTERVAL_PATTERN.search(line):
            fps = round(float(interval_match.group(1)), 3)
            if fps <= 0:
                continue
            mode = CaptureMode(size[0], size[1], fps)
            if mode not in modes:
                modes.append(mode)
    return modes


def list_v4l2_modes(device_path: str, *, timeout_s: float = 5.0) -> list[CaptureMode] | None:
    """Enumerate modes via v4l2-ctl; None when the tool cannot answer."""
    try:
        result = subprocess.run(
            ["v4l2-ctl", "-d", device_path, "--list-formats-ext"],
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, subprocess.SubprocessError) as exc:
        logger.debug("v4l2-ctl unavailable for %s: %s", device_path, exc)
        return None
    if result.returncode != 0:
        logger.debug("v4l2-ctl failed for %s (exit code %s)", device_path, result.returncode)
        return None
    return parse_v4l2_formats(result.stdout)


def _relative_delta(requested: float | None, actual: float) -> float:
    if requested is None or requested <= 0:
        return 0.0
    return abs(actual - requested) / requested


def mode_distance(mode: CaptureMode, request: CaptureRequest) -> float:
    """Combined relative distance over the requested dimensions."""
    return (
        _relative_delta(request.width, mode.width)
        + _relative_delta(request.height, mode.height)
        + _relative_delta(request.framerate, mode.framerate)
    )


def select_mode(modes: Sequence[CaptureMode], request: CaptureRequest) -> CaptureMode:
    """Pick the supported mode closest to the request.

    Equal distances prefer an exact framerate match, then the smallest area
    difference, then the larger area and higher framerate.
    """
    if not modes:
        raise ValueError("No capture modes to choose from")

    requested_area: int | None = None
    if request.width and request.height:
        requested_area = request.width * request.height

    def _key(mode: CaptureMode) -> tuple[float, bool, int, int, float]:
        fps_exact = request.framerate is None or math.isclose(
            mode.framerate, request.framerate, abs_tol=0.01
        )
        area_diff = abs(mode.area - requested_area) if requested_area is not None else 0
        return (
            round(mode_distance(mode, request), 9),
            not fps_exact,
            area_diff,
            -mode.area,
            -mode.framerate,
        )

    return min(modes, key=_key)


class DeviceNegotiator:
    """Resolve the capture configuration for an opened source."""

    def __init__(
        self,
        *,
        list_modes: Callable[[str], list[CaptureMode] | None] = list_v4l2_modes,
    ) -> None:
        self._list_modes = list_modes

    def supported_modes(self, camera: CameraSource) -> list[CaptureMode]:
        modes = self._list_modes(camera.device_path)
        if modes:
            return modes
        logger.info("Driver did not enumerate modes for %s; probing", camera.device_path)
        try:
            modes = camera.probe_modes()
        except Exception as exc:
            raise UnsupportedDeviceError(camera.device_path, cause=exc) from exc
        if not modes:
            raise UnsupportedDeviceError(camera.device_path)
        return modes

    def negotiate(
        self, source: CameraSource | VideoFileSource, request: CaptureRequest
    ) -> CaptureConfig:
        if isinstance(source, VideoFileSource):
            native = source.native_mode()
            if request != CaptureRequest() and (
                request.width not in (None, native.width)
                or request.height not in (None, native.height)
                or request.framerate not in (None, native.framerate)
            ):
                logger.info(
                    "Using video native mode %s, ignoring requested %sx%s@%s",
                    native,
                    request.width,
                    request.height,
                    request.framerate,
                )
            return CaptureConfig.from_mode(native, SourceKind.FILE)

        modes = self.supported_modes(source)
        chosen = select_mode(modes, request)
        logger.info("Selected capture mode %s from %d supported modes", chosen, len(modes))
        actual = source.apply_mode(chosen)
        return CaptureConfig.from_mode(actual, SourceKind.CAMERA)
