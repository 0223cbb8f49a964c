"""JSON file helpers for schedule and lock files.

Every write goes to a fsynced temp file in the target directory first, so
a reader never observes a partially written record or lock:

- write_json_atomic() renames the temp file over the target (last writer
  wins).
- write_json_exclusive() hard-links it into place, which fails if the
  target already exists (first writer wins).
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _write_temp(path: Path, data: dict[str, Any]) -> Path:
    """Write ``data`` to a fsynced temp file next to ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    tmp = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return tmp


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Replace ``path`` with ``data`` in one rename."""
    tmp = _write_temp(path, data)
    try:
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def write_json_exclusive(path: Path, data: dict[str, Any]) -> None:
    """Create ``path`` holding ``data``.

    Raises:
        FileExistsError: If ``path`` already exists.
    """
    tmp = _write_temp(path, data)
    try:
        os.link(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


def read_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON object; None if missing, unreadable or not an object."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(
            "json_file_unreadable",
            extra={"file.path": str(path), "error.message": str(e)},
        )
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(
            "corrupt_json_file",
            extra={"file.path": str(path), "error.message": str(e)},
        )
        return None
    if not isinstance(data, dict):
        logger.warning("corrupt_json_file", extra={"file.path": str(path)})
        return None
    return data
