"""Path and filesystem helper functions."""

from __future__ import annotations

import os
from pathlib import Path
from uuid import uuid4


def find_upward(marker: Path, start: Path | None = None) -> Path | None:
    """Return the nearest directory at or above ``start`` that contains ``marker``."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / marker).exists():
            return candidate
    return None


def _atomic_temp_path(target_path: Path) -> Path:
    """Create a temp path in the target directory for atomic replacement."""

    return target_path.parent / f".{target_path.name}.{uuid4().hex}.tmp"


def write_text_atomically(path: Path, content: str) -> Path:
    """Write UTF-8 text so readers never observe a partially written file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = _atomic_temp_path(path)
    try:
        temp_path.write_text(content, encoding="utf-8")
        os.replace(temp_path, path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return path
