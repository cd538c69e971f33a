"""Change-avoidance file writes."""

from __future__ import annotations

from pathlib import Path


def write_file_changed(path: str | Path, data: bytes) -> bool:
    """Write *data* to *path* unless the file already holds exactly *data*.

    Returns ``True`` when the file was written. An unchanged file keeps its
    modification time, so downstream actions are not rebuilt.
    """
    target = Path(path)
    try:
        if target.read_bytes() == data:
            return False
    except FileNotFoundError:
        pass
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    return True
