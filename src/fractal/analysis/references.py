"""Discovery of other fractals referenced by a fractal source."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional

from ..detector import FractalDetector
from ..package_resolver import PackageResolver, generate_fractal_name
from ..source.analysis import imported_bindings, jsx_element_names, registered_ids
from ..source.parser import SourceFile, parse_file

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".tsx", ".jsx", ".ts", ".js")


def _candidate_files(base: Path) -> Iterator[Path]:
    if base.suffix in SOURCE_SUFFIXES:
        yield base
    for suffix in SOURCE_SUFFIXES:
        yield base.with_name(base.name + suffix)
    for suffix in SOURCE_SUFFIXES:
        yield base / f"index{suffix}"


def resolve_component_path(source_path: Path, specifier: Optional[str], component: str) -> Optional[Path]:
    """Find the file behind an imported component.

    A relative import path is tried first, then the conventional spots next
    to the importing file: ``<Name>.tsx``, ``<Name>/index.tsx`` and
    ``components/<Name>.tsx`` (and their ``.jsx`` forms).
    """
    directory = source_path.parent
    if specifier and specifier.startswith("."):
        for candidate in _candidate_files(directory / specifier):
            if candidate.is_file():
                return candidate.resolve()

    conventional = [
        directory / f"{component}.tsx",
        directory / f"{component}.jsx",
        directory / component / "index.tsx",
        directory / component / "index.jsx",
        directory / "components" / f"{component}.tsx",
        directory / "components" / f"{component}.jsx",
    ]
    for candidate in conventional:
        if candidate.is_file():
            return candidate.resolve()
    return None


class ReferenceAnalyzer:
    """Lists the fractals a source renders or registers."""

    def __init__(
        self,
        detector: Optional[FractalDetector] = None,
        resolver: Optional[PackageResolver] = None,
    ):
        self.detector = detector or FractalDetector()
        self.resolver = resolver or PackageResolver()

    def find_internal_fractals(self, source_path: Path) -> List[str]:
        """References in first-seen order; any failure yields an empty list."""
        try:
            sf = parse_file(source_path)
            return self._references(sf, Path(source_path))
        except Exception as e:
            logger.debug("Reference analysis failed for %s: %s", source_path, e)
            return []

    def _references(self, sf: SourceFile, source_path: Path) -> List[str]:
        found: List[str] = []
        used_in_jsx = jsx_element_names(sf)
        for local, binding in imported_bindings(sf).items():
            if not local[:1].isupper() or local not in used_in_jsx:
                continue
            path = resolve_component_path(source_path, binding.specifier, local)
            if path is None or not self.detector.is_fractal(path):
                continue
            package = self.resolver.find_closest_package(path)
            reference = generate_fractal_name(package, path.name) if package else local
            if reference not in found:
                found.append(reference)

        for fractal_id in registered_ids(sf):
            if fractal_id not in found:
                found.append(fractal_id)
        return found
