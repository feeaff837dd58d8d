"""Provenance manifest generation for built artifacts."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .analysis.dependencies import analyze_dependencies
from .analysis.git_info import GitInfoExtractor
from .analysis.references import ReferenceAnalyzer
from .exceptions import FractalError
from .schemas import FractalManifest, PackageInfo, ParentApplication, SourceLocation
from .utils.json_io import write_json_safe
from .utils.naming import safe_file_name

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".manifest.json"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ManifestGenerator:
    """Builds and writes ``{safe}.manifest.json`` for one artifact.

    The three analyses (dependencies, references, git) are independent and
    each degrades to an empty value on failure.
    """

    def __init__(
        self,
        references: Optional[ReferenceAnalyzer] = None,
        git: Optional[GitInfoExtractor] = None,
    ):
        self.references = references or ReferenceAnalyzer()
        self.git = git or GitInfoExtractor()

    def build_manifest(self, fractal_name: str, source_path: Path, package_info: PackageInfo) -> FractalManifest:
        source_path = Path(source_path)
        try:
            relative = os.path.relpath(source_path, package_info.root)
        except ValueError:
            relative = str(source_path)

        return FractalManifest(
            name=fractal_name,
            version=package_info.version,
            generation_date=utc_timestamp(),
            dependencies=analyze_dependencies(source_path, package_info.descriptor_path),
            internal_fractal_references=self.references.find_internal_fractals(source_path),
            repository=self.git.extract(source_path),
            parent_application=ParentApplication(
                name=package_info.name,
                version=package_info.version,
                path=str(package_info.descriptor_path),
            ),
            source=SourceLocation(file_path=str(source_path), relative_path=relative),
        )

    def generate_manifest(
        self,
        fractal_name: str,
        source_path: Union[str, Path],
        package_info: PackageInfo,
        output_dir: Union[str, Path],
    ) -> Path:
        """Write the manifest and return its path.

        Raises:
            FractalError: If the manifest file cannot be written.
        """
        manifest = self.build_manifest(fractal_name, Path(source_path), package_info)
        manifest_path = Path(output_dir) / f"{safe_file_name(fractal_name)}{MANIFEST_SUFFIX}"
        ok, error = write_json_safe(manifest_path, manifest.to_document())
        if not ok:
            raise FractalError(f"Cannot write manifest {manifest_path}: {error}")
        logger.debug("Wrote manifest %s", manifest_path)
        return manifest_path
