"""Fractal detection.

A file is classified as a fractal when its first non-whitespace content is
the directive. Classification is delegated to a ``DetectionStrategy`` so the
textual convention can be swapped without touching the build stages.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Type, Union

from .schemas import DetectedArtifact, FileKind
from .utils.filesystem_safety import SKIP_DIRS

logger = logging.getLogger(__name__)

DIRECTIVE = "use fractal"
DIRECTIVE_LITERALS = (f'"{DIRECTIVE}"', f"'{DIRECTIVE}'")
DEFAULT_EXTENSIONS = (".jsx", ".tsx")

PathLike = Union[str, Path]


class DetectionStrategy(Protocol):
    """Decides whether file content opts into the fractal pipeline."""

    def matches(self, content: str) -> bool:
        ...


class DirectiveStrategy:
    """``"use fractal"`` (either quote style) as the first statement."""

    def matches(self, content: str) -> bool:
        return content.lstrip().startswith(DIRECTIVE_LITERALS)


class CommentDirectiveStrategy(DirectiveStrategy):
    """Also accepts a leading ``// use fractal`` or ``/* use fractal */`` comment."""

    _COMMENT = re.compile(r"(?://|/\*)\s*use fractal\b")

    def matches(self, content: str) -> bool:
        if super().matches(content):
            return True
        return self._COMMENT.match(content.lstrip()) is not None


STRATEGIES: Dict[str, Type[DirectiveStrategy]] = {
    "directive": DirectiveStrategy,
    "comment": CommentDirectiveStrategy,
}


def get_strategy(name: str) -> DetectionStrategy:
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown detection strategy '{name}'. Expected one of: {', '.join(sorted(STRATEGIES))}"
        )


class FractalDetector:
    """Finds fractal sources under a directory tree."""

    def __init__(
        self,
        strategy: Optional[DetectionStrategy] = None,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        skip_dirs: Iterable[str] = SKIP_DIRS,
    ):
        self.strategy = strategy or DirectiveStrategy()
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.skip_dirs = frozenset(skip_dirs)

    def classify(self, path: PathLike) -> FileKind:
        """Classify one file. Unreadable files are ordinary."""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return FileKind.ORDINARY
        return FileKind.FRACTAL if self.strategy.matches(content) else FileKind.ORDINARY

    def is_fractal(self, path: PathLike) -> bool:
        return self.classify(path) is FileKind.FRACTAL

    def has_source_extension(self, path: PathLike) -> bool:
        return Path(path).suffix.lower() in self.extensions

    def iter_sources(self, root: PathLike) -> Iterator[Path]:
        """Yield files with a component-source extension, skipping build and vendor dirs."""
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in self.skip_dirs)
            for filename in sorted(filenames):
                if self.has_source_extension(filename):
                    yield Path(dirpath) / filename

    def find_fractals(self, root: Optional[PathLike] = None) -> List[DetectedArtifact]:
        """Return every fractal candidate under root (default: working directory)."""
        root_path = Path(root) if root is not None else Path.cwd()
        found = [
            DetectedArtifact(file_path=path.resolve(), file_name=path.name)
            for path in self.iter_sources(root_path)
            if self.is_fractal(path)
        ]
        logger.debug("Detected %d fractal(s) under %s", len(found), root_path)
        return found


__all__ = [
    "DIRECTIVE",
    "DIRECTIVE_LITERALS",
    "DEFAULT_EXTENSIONS",
    "DetectionStrategy",
    "DirectiveStrategy",
    "CommentDirectiveStrategy",
    "FractalDetector",
    "get_strategy",
]
