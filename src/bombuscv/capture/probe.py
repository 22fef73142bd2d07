"""ffprobe helpers for reading video file metadata."""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path

from bombuscv.capture.frame import CaptureMode

logger = logging.getLogger(__name__)


def parse_frame_rate(value: object) -> float | None:
    """Parse ffprobe rationals such as ``30000/1001`` into a float."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if "/" in text:
        num_s, den_s = text.split("/", 1)
        try:
            num = float(num_s)
            den = float(den_s)
        except ValueError:
            return None
        if den == 0 or num <= 0:
            return None
        return num / den
    try:
        rate = float(text)
    except ValueError:
        return None
    return rate if rate > 0 else None


def probe_video_mode(path: Path, *, timeout_s: float = 10.0) -> CaptureMode | None:
    """Return the first video stream's native mode, or None when unavailable."""
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=codec_type,width,height,avg_frame_rate",
        "-of",
        "json",
        str(path),
    ]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
        logger.debug("ffprobe unavailable for %s: %s", path, exc)
        return None

    if result.returncode != 0:
        logger.debug("ffprobe failed with exit code %s: %s", result.returncode, result.stderr)
        return None

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse ffprobe output for %s: %s", path, exc, exc_info=True)
        return None

    for stream in data.get("streams") or []:
        if stream.get("codec_type") not in (None, "video"):
            continue
        width = stream.get("width")
        height = stream.get("height")
        framerate = parse_frame_rate(stream.get("avg_frame_rate"))
        if not width or not height or framerate is None:
            logger.warning("ffprobe reported incomplete video stream info for %s", path)
            return None
        return CaptureMode(int(width), int(height), framerate)

    logger.warning("No video stream found in %s", path)
    return None
