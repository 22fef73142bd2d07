from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path


def make_output_path(directory: Path, pattern: str, when: datetime, extension: str) -> Path:
    """Build `<directory>/<when formatted by pattern><extension>` without overwriting.

    When the formatted name already exists a numeric suffix is appended.
    """
    stem = when.strftime(pattern).replace(os.sep, "_").strip()
    if not stem:
        stem = when.strftime("%Y-%m-%dT%H:%M:%S")
    candidate = directory / f"{stem}{extension}"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{extension}"
        counter += 1
    return candidate
