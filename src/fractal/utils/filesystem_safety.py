"""Filesystem safety utilities.

Keeps registry storage paths inside the storage root and centralises the
directory names every tree walk skips.
"""

from __future__ import annotations

from pathlib import Path
from typing import FrozenSet, Optional, Tuple

# Directories never searched for component sources
SKIP_DIRS: FrozenSet[str] = frozenset({
    "node_modules",
    "dist",
    "build",
    ".next",
    "coverage",
    ".git",
})


def validate_path_traversal(
    workspace_root: Path,
    target_path: str
) -> Tuple[bool, Optional[str], Optional[Path]]:
    """Validate that a target path does not escape the workspace root.

    Args:
        workspace_root: Base directory.
        target_path: Target path to validate (can be relative or absolute).

    Returns:
        Tuple of (is_valid, error_message, resolved_path):
        - is_valid: True if path is safe, False otherwise.
        - error_message: Human-readable error message if invalid, None if valid.
        - resolved_path: Resolved Path object if valid, None if invalid.

    Examples:
        >>> root = Path("/storage")
        >>> is_valid, err, path = validate_path_traversal(root, "button.json")
        >>> is_valid, err, path = validate_path_traversal(root, "../../etc/passwd")
        >>> is_valid
        False
    """
    try:
        base = workspace_root.resolve()
        candidate = (base / target_path).resolve()
        # This raises ValueError if candidate is not within base
        candidate.relative_to(base)
        return True, None, candidate
    except ValueError:
        return False, f"Path traversal detected: {target_path} escapes workspace", None
    except Exception as e:
        return False, f"Invalid path: {str(e)}", None


__all__ = ["SKIP_DIRS", "validate_path_traversal"]
