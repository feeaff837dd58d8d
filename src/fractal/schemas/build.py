"""Build and publish run records."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import BuildFailure

DEFAULT_EXTERNALS: Tuple[str, ...] = ("react", "react-dom")
DEFAULT_RUNTIME_MODULE = "@fractal/core"


@dataclass
class BuildOptions:
    """Options for one build (or watch) run."""

    output: Path
    input: Optional[Path] = None
    watch: bool = False
    jobs: int = 1
    externals: Tuple[str, ...] = DEFAULT_EXTERNALS
    runtime_module: str = DEFAULT_RUNTIME_MODULE
    target: str = "es2020"

    @property
    def search_root(self) -> Path:
        return self.input if self.input is not None else Path.cwd()


@dataclass
class BuildResult:
    """One successfully built artifact."""

    name: str
    file_path: Path
    output_path: Path
    manifest_path: Path
    metadata_path: Path
    styles: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BuildReport:
    """Outcome of a best-effort batch build."""

    results: List[BuildResult] = field(default_factory=list)
    failures: List[BuildFailure] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class PublishReport:
    """Outcome of a best-effort bulk publish."""

    published: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures
