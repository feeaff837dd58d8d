"""Source analyses feeding the provenance manifest."""

from .dependencies import analyze_dependencies, declared_dependencies, package_name_from_specifier
from .git_info import GitInfoExtractor, find_git_root, normalize_git_url
from .references import ReferenceAnalyzer, resolve_component_path

__all__ = [
    "analyze_dependencies",
    "declared_dependencies",
    "package_name_from_specifier",
    "GitInfoExtractor",
    "find_git_root",
    "normalize_git_url",
    "ReferenceAnalyzer",
    "resolve_component_path",
]
