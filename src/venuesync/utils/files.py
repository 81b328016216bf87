"""
Local file helpers.

Writes go to a ``.part`` sibling first and are moved into place with
``os.replace`` so readers never observe a half-written file.
"""

from __future__ import annotations

import os
from pathlib import Path

from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.utils.files")


def atomic_write_bytes(path: str | Path, data: bytes) -> Path:
    """Write ``data`` to ``path`` atomically, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".part")
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise
    return path


def atomic_write_text(path: str | Path, text: str, encoding: str = "utf-8") -> Path:
    """Text variant of :func:`atomic_write_bytes`."""
    return atomic_write_bytes(path, text.encode(encoding))


def remove_quietly(path: str | Path | None) -> bool:
    """
    Delete a file if it exists.

    Failures are logged, not raised; returns True when a file was removed.
    """
    if path is None:
        return False
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not delete temp file {path}: {e}")
        return False
