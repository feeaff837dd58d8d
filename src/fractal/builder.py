"""Batch build driver: detect, transform, bundle and describe every fractal."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .analysis.references import ReferenceAnalyzer
from .bundler import Bundler, BundleResult, EsbuildBundler
from .detector import FractalDetector
from .exceptions import BundleError, FractalError, TransformError
from .manifest_generator import ManifestGenerator, utc_timestamp
from .package_resolver import PackageResolver, generate_fractal_name
from .schemas import (
    BuildFailure,
    BuildOptions,
    BuildReport,
    BuildResult,
    DetectedArtifact,
    FailureStage,
    PackageInfo,
)
from .transformer import FractalTransformer
from .utils.json_io import write_json_safe
from .utils.naming import safe_file_name

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".fractal-tmp-"


@dataclass
class _Skipped:
    path: Path


class _StageError(FractalError):
    def __init__(self, stage: FailureStage, error: Exception):
        self.stage = stage
        self.error = error
        super().__init__(str(error))


class FractalBuilder:
    """Builds every fractal under a source tree into a flat output directory.

    Each candidate is built independently; a failure is logged and recorded
    in the report and never stops the batch.
    """

    def __init__(
        self,
        detector: Optional[FractalDetector] = None,
        resolver: Optional[PackageResolver] = None,
        transformer: Optional[FractalTransformer] = None,
        bundler: Optional[Bundler] = None,
        manifest_generator: Optional[ManifestGenerator] = None,
    ):
        self.detector = detector or FractalDetector()
        self.resolver = resolver or PackageResolver()
        self.transformer = transformer or FractalTransformer()
        self.bundler = bundler or EsbuildBundler()
        self.manifest_generator = manifest_generator or ManifestGenerator(
            references=ReferenceAnalyzer(self.detector, self.resolver)
        )

    def build(self, options: BuildOptions) -> BuildReport:
        root = options.search_root
        logger.info("Building fractals from %s", root)
        candidates = self.detector.find_fractals(root)
        report = BuildReport()
        if not candidates:
            logger.warning("No fractal components found.")
            return report

        logger.info("Found %d fractal component(s)", len(candidates))
        Path(options.output).mkdir(parents=True, exist_ok=True)

        if options.jobs > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=options.jobs) as pool:
                outcomes = list(pool.map(lambda c: self._build_safely(c, options), candidates))
        else:
            outcomes = [self._build_safely(c, options) for c in candidates]

        for outcome in outcomes:
            if isinstance(outcome, BuildResult):
                report.results.append(outcome)
            elif isinstance(outcome, BuildFailure):
                report.failures.append(outcome)
            else:
                report.skipped.append(outcome.path)

        if report.failures:
            logger.warning("%d fractal(s) failed to build", report.failed)
        logger.info("Build complete: %d built, %d failed, %d skipped",
                    report.succeeded, report.failed, len(report.skipped))
        return report

    def build_one(self, candidate: DetectedArtifact, options: BuildOptions) -> Optional[BuildResult]:
        """Build a single candidate.

        Returns None when no owning package is found.

        Raises:
            FractalError: If any stage fails.
        """
        outcome = self._build(candidate, options)
        return None if isinstance(outcome, _Skipped) else outcome

    def _build_safely(self, candidate: DetectedArtifact, options: BuildOptions):
        try:
            return self._build(candidate, options)
        except _StageError as e:
            logger.error("Failed to build %s: %s", candidate.file_name, e.error)
            return BuildFailure(file_path=str(candidate.file_path), stage=e.stage, message=str(e.error))
        except Exception as e:
            logger.exception("Unexpected failure building %s", candidate.file_name)
            return BuildFailure(
                file_path=str(candidate.file_path), stage=FailureStage.UNKNOWN, message=str(e)
            )

    def _build(self, candidate: DetectedArtifact, options: BuildOptions) -> Union[BuildResult, _Skipped]:
        package_info = self.resolver.find_closest_package(candidate.file_path)
        if package_info is None:
            logger.warning("No package.json found for %s, skipping", candidate.file_name)
            return _Skipped(candidate.file_path)

        fractal_name = generate_fractal_name(package_info, candidate.file_name)
        safe_name = safe_file_name(fractal_name)
        output_dir = Path(options.output)
        output_path = output_dir / f"{safe_name}.js"

        try:
            transformed = self.transformer.transform(candidate.file_path, fractal_name)
        except TransformError as e:
            raise _StageError(FailureStage.TRANSFORM, e)

        bundle = self._bundle(candidate, safe_name, transformed.code, output_path, options)

        try:
            manifest_path = self.manifest_generator.generate_manifest(
                fractal_name, candidate.file_path, package_info, output_dir
            )
        except FractalError as e:
            raise _StageError(FailureStage.MANIFEST, e)

        if transformed.styles:
            (output_dir / f"{safe_name}.css").write_text(transformed.styles, encoding="utf-8")

        metadata = self._metadata(fractal_name, candidate, package_info, manifest_path, bundle)
        metadata_path = output_dir / f"{safe_name}.meta.json"
        ok, error = write_json_safe(metadata_path, metadata)
        if not ok:
            raise _StageError(FailureStage.MANIFEST, FractalError(error))

        logger.info("Built %s", fractal_name)
        return BuildResult(
            name=fractal_name,
            file_path=candidate.file_path,
            output_path=output_path,
            manifest_path=manifest_path,
            metadata_path=metadata_path,
            styles=transformed.styles,
            metadata=metadata,
        )

    def _bundle(
        self,
        candidate: DetectedArtifact,
        safe_name: str,
        code: str,
        output_path: Path,
        options: BuildOptions,
    ) -> BundleResult:
        # relative imports resolve from the source directory
        temp_file = candidate.file_path.parent / f"{TEMP_PREFIX}{safe_name}{candidate.file_path.suffix}"
        externals = list(dict.fromkeys([*options.externals, options.runtime_module]))
        try:
            temp_file.write_text(code, encoding="utf-8")
            return self.bundler.bundle(temp_file, output_path, externals, options.target)
        except (BundleError, OSError) as e:
            raise _StageError(FailureStage.BUNDLE, e)
        finally:
            try:
                temp_file.unlink()
            except FileNotFoundError:
                pass

    def _metadata(
        self,
        fractal_name: str,
        candidate: DetectedArtifact,
        package_info: PackageInfo,
        manifest_path: Path,
        bundle: BundleResult,
    ) -> Dict[str, object]:
        return {
            "name": fractal_name,
            "originalPath": str(candidate.file_path),
            "packageName": package_info.name,
            "packageVersion": package_info.version,
            "packagePath": str(package_info.descriptor_path),
            "manifestPath": str(manifest_path),
            "outputSize": bundle.output_size,
            "buildTime": utc_timestamp(),
        }

    def watch(
        self,
        options: BuildOptions,
        stop_event: Optional[threading.Event] = None,
        interval: float = 1.0,
        on_build: Optional[Callable[[Union[BuildResult, BuildFailure]], None]] = None,
    ) -> BuildReport:
        """Initial build, then rebuild fractals whose files appear or change.

        Polls modification times every ``interval`` seconds until stop_event
        is set. Returns the initial build report.
        """
        stop_event = stop_event or threading.Event()
        root = options.search_root
        report = self.build(options)
        mtimes = self._snapshot(root)
        logger.info("Watching for changes in %s", root)

        while not stop_event.wait(interval):
            current = self._snapshot(root)
            changed = [p for p, m in current.items() if mtimes.get(p) != m]
            mtimes = current
            for path in changed:
                if not self.detector.is_fractal(path):
                    continue
                logger.info("Change detected in %s", path.name)
                candidate = DetectedArtifact(file_path=path.resolve(), file_name=path.name)
                outcome = self._build_safely(candidate, options)
                if on_build is not None and not isinstance(outcome, _Skipped):
                    on_build(outcome)
        return report

    def _snapshot(self, root: Path) -> Dict[Path, float]:
        snapshot = {}
        for path in self.detector.iter_sources(root):
            if path.name.startswith(TEMP_PREFIX):
                continue
            try:
                snapshot[path] = path.stat().st_mtime
            except OSError:
                continue
        return snapshot
