"""JSON read/write helpers.

Writes go through a sibling temp file and ``os.replace`` so a concurrent
reader sees either the previous document or the new one, never a partial
file.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Tuple


def read_json_safe(path: Path, default: Any = None) -> Tuple[Any, Optional[str]]:
    """Read and parse a JSON file.

    Args:
        path: File to read.
        default: Value returned when the file is missing or invalid.

    Returns:
        Tuple of (data, error_message). error_message is None on success.
    """
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle), None
    except FileNotFoundError:
        return default, f"File not found: {path}"
    except json.JSONDecodeError as exc:
        return default, f"Invalid JSON in {path}: {exc}"
    except OSError as exc:
        return default, f"Failed to read {path}: {exc}"


def write_json_safe(path: Path, data: Any, indent: int = 2) -> Tuple[bool, Optional[str]]:
    """Serialise data to path, replacing any previous file atomically.

    Args:
        path: Destination file. Parent directories are created.
        data: JSON-serialisable payload.
        indent: Indentation passed to ``json.dumps``.

    Returns:
        Tuple of (success, error_message).
    """
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data, indent=indent, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(tmp_name, path)
        tmp_name = None
        return True, None
    except (OSError, TypeError, ValueError) as exc:
        return False, f"Failed to write {path}: {exc}"
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


__all__ = ["read_json_safe", "write_json_safe"]
