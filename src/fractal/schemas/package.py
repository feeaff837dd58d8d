"""Source-side records: detected candidates and owning packages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class FileKind(str, Enum):
    """Classification of a source file."""
    FRACTAL = "fractal"
    ORDINARY = "ordinary"


@dataclass(frozen=True)
class DetectedArtifact:
    """A file selected for building during one run."""
    file_path: Path
    file_name: str


@dataclass(frozen=True)
class PackageInfo:
    """Identity of the package that owns a source file."""
    name: str
    version: str
    descriptor_path: Path

    @property
    def root(self) -> Path:
        return self.descriptor_path.parent
