"""Schema exports."""

from .base import SchemaBase, Severity
from .build import (
    DEFAULT_EXTERNALS,
    DEFAULT_RUNTIME_MODULE,
    BuildOptions,
    BuildReport,
    BuildResult,
    PublishReport,
)
from .config import BuildSettings, CompilerBackend, FractalConfig, RegistrySettings, RunMode
from .errors import BuildFailure, FailureStage
from .manifest import DependencySet, FractalManifest, ParentApplication, RepositoryInfo, SourceLocation
from .package import DetectedArtifact, FileKind, PackageInfo
from .stored import StoredFractal

__all__ = [
    "SchemaBase",
    "Severity",
    "DEFAULT_EXTERNALS",
    "DEFAULT_RUNTIME_MODULE",
    "BuildOptions",
    "BuildReport",
    "BuildResult",
    "PublishReport",
    "BuildSettings",
    "CompilerBackend",
    "FractalConfig",
    "RegistrySettings",
    "RunMode",
    "BuildFailure",
    "FailureStage",
    "DependencySet",
    "FractalManifest",
    "ParentApplication",
    "RepositoryInfo",
    "SourceLocation",
    "DetectedArtifact",
    "FileKind",
    "PackageInfo",
    "StoredFractal",
]
