from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import cast

import cv2
import numpy as np
import numpy.typing as npt

from bombuscv.capture.frame import Frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MotionVerdict:
    """Outcome of comparing one frame against its predecessor."""

    motion: bool
    changed_pixels: int
    changed_pct: float

    def __bool__(self) -> bool:
        return self.motion


class MotionDetector:
    """Frame-difference motion classifier.

    Both frames are downscaled, converted to grayscale and blurred; the
    absolute difference is thresholded into a binary mask, dilated, and the
    masked area compared against `min_changed_pct` of the frame area.
    The detector keeps no history: the caller supplies the previous frame.
    """

    def __init__(
        self,
        *,
        pixel_threshold: int,
        min_changed_pct: float,
        blur_kernel: int,
        dilate_iterations: int,
        detect_size: tuple[int, int] | None,
        debug: bool = False,
    ) -> None:
        self._pixel_threshold = int(pixel_threshold)
        self._min_changed_pct = max(0.0, float(min_changed_pct))
        self._blur_kernel = normalize_blur_kernel(blur_kernel)
        self._dilate_iterations = max(0, int(dilate_iterations))
        self._detect_size = detect_size
        self._debug = bool(debug)
        self._debug_frame_count = 0

    @property
    def min_changed_pct(self) -> float:
        return self._min_changed_pct

    def prepare(self, pixels: npt.NDArray[np.uint8]) -> npt.NDArray[np.uint8]:
        """Reduce a frame to the blurred single-channel image used for diffing."""
        image = pixels
        if self._detect_size is not None:
            width, height = self._detect_size
            if image.shape[1] != width or image.shape[0] != height:
                image = cast(
                    npt.NDArray[np.uint8],
                    cv2.resize(image, (width, height), interpolation=cv2.INTER_LINEAR),
                )

        if image.ndim == 3:
            gray = cast(npt.NDArray[np.uint8], cv2.cvtColor(image, cv2.COLOR_BGR2GRAY))
        else:
            gray = image

        if self._blur_kernel > 1:
            gray = cast(
                npt.NDArray[np.uint8],
                cv2.GaussianBlur(gray, (self._blur_kernel, self._blur_kernel), 0),
            )
        return gray

    def compare(
        self, previous: npt.NDArray[np.uint8], current: npt.NDArray[np.uint8]
    ) -> MotionVerdict:
        """Compare two prepared images."""
        if previous.shape != current.shape:
            raise ValueError(
                f"Cannot compare frames of different shapes: {previous.shape} vs {current.shape}"
            )

        diff = cv2.absdiff(previous, current)
        _, mask = cv2.threshold(diff, self._pixel_threshold, 255, cv2.THRESH_BINARY)
        if self._dilate_iterations > 0:
            mask = cv2.dilate(mask, None, iterations=self._dilate_iterations)
        changed_pixels = int(cv2.countNonZero(mask))

        total_pixels = int(current.shape[0]) * int(current.shape[1])
        changed_pct = (changed_pixels / total_pixels * 100.0) if total_pixels else 0.0
        motion = changed_pixels > 0 and changed_pct > self._min_changed_pct

        if self._debug:
            self._debug_frame_count += 1
            if self._debug_frame_count % 100 == 0:
                logger.debug(
                    "Motion check: changed_pct=%.3f%% changed_px=%s pixel_threshold=%s min_changed_pct=%.3f%% blur=%s",
                    changed_pct,
                    changed_pixels,
                    self._pixel_threshold,
                    self._min_changed_pct,
                    self._blur_kernel,
                )

        return MotionVerdict(motion=motion, changed_pixels=changed_pixels, changed_pct=changed_pct)

    def detect(self, previous: Frame, current: Frame) -> MotionVerdict:
        """Return whether `current` moved relative to `previous`."""
        return self.compare(self.prepare(previous.pixels), self.prepare(current.pixels))


def normalize_blur_kernel(blur_kernel: int) -> int:
    kernel = int(blur_kernel)
    if kernel < 0:
        return 0
    if kernel % 2 == 0 and kernel != 0:
        return kernel + 1
    return kernel
