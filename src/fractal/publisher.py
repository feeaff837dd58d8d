"""Uploads fractal sources to a registry under their artifact identity."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Union
from urllib.parse import quote

import requests

from .detector import FractalDetector
from .exceptions import PublishError
from .package_resolver import PackageResolver, generate_fractal_name
from .schemas import BuildResult, DetectedArtifact, PublishReport
from .utils.json_io import read_json_safe

logger = logging.getLogger(__name__)

META_SUFFIX = ".meta.json"
MANIFEST_SUFFIX = ".manifest.json"

Transport = Callable[[str, Dict[str, str], Dict[str, Any]], Any]


class Publisher:
    """Posts ``{source, manifest}`` documents to ``{registry}/fractals/{id}``.

    Bulk operations are best-effort: every item is attempted, failures are
    tallied in the returned ``PublishReport`` and nothing is retried.
    """

    def __init__(self, registry_url: str, timeout: int = 30, transport: Optional[Transport] = None) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport or self._requests_transport

    def _requests_transport(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Any:
        resp = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def endpoint(self, fractal_id: str) -> str:
        return f"{self.registry_url}/fractals/{quote(fractal_id, safe='')}"

    def publish_source(
        self,
        fractal_id: str,
        source: str,
        manifest: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Publish one source.

        Raises:
            PublishError: If the registry is unreachable or rejects the upload.
        """
        payload: Dict[str, Any] = {"source": source}
        if manifest is not None:
            payload["manifest"] = manifest
        try:
            response = self.transport(self.endpoint(fractal_id), {"Content-Type": "application/json"}, payload)
        except requests.HTTPError as e:
            detail = ""
            if e.response is not None:
                detail = f" ({e.response.status_code}: {e.response.text.strip()})"
            raise PublishError(f"Registry rejected {fractal_id}{detail}") from e
        except requests.RequestException as e:
            raise PublishError(f"Cannot reach registry at {self.registry_url}: {e}") from e
        logger.info("Uploaded %s", fractal_id)
        return response if isinstance(response, dict) else {}

    def publish_output_dir(self, output_dir: Union[str, Path]) -> PublishReport:
        """Publish every artifact described by ``*.meta.json`` in a build output directory.

        The registry compiles sources itself, so the original source named by
        ``originalPath`` is uploaded together with the manifest.
        """
        report = PublishReport()
        for meta_path in sorted(Path(output_dir).glob(f"*{META_SUFFIX}")):
            safe_name = meta_path.name[: -len(META_SUFFIX)]
            metadata, error = read_json_safe(meta_path)
            if error or not isinstance(metadata, dict) or not metadata.get("name"):
                report.failures[safe_name] = error or "Invalid metadata"
                continue
            manifest, _ = read_json_safe(meta_path.with_name(f"{safe_name}{MANIFEST_SUFFIX}"))
            self._attempt(report, metadata["name"], Path(metadata.get("originalPath", "")), manifest)
        return report

    def publish_results(self, results: Iterable[BuildResult]) -> PublishReport:
        report = PublishReport()
        for result in results:
            manifest, _ = read_json_safe(result.manifest_path)
            self._attempt(report, result.name, result.file_path, manifest)
        return report

    def publish_sources(
        self,
        root: Union[str, Path],
        detector: Optional[FractalDetector] = None,
        resolver: Optional[PackageResolver] = None,
    ) -> PublishReport:
        """Publish detected sources directly, without a build."""
        detector = detector or FractalDetector()
        resolver = resolver or PackageResolver()
        report = PublishReport()
        candidates: Iterable[DetectedArtifact] = detector.find_fractals(root)
        for candidate in candidates:
            package_info = resolver.find_closest_package(candidate.file_path)
            if package_info is None:
                logger.warning("No package.json found for %s, skipping", candidate.file_name)
                continue
            fractal_id = generate_fractal_name(package_info, candidate.file_name)
            self._attempt(report, fractal_id, candidate.file_path, None)
        return report

    def _attempt(
        self,
        report: PublishReport,
        fractal_id: str,
        source_path: Path,
        manifest: Optional[Dict[str, Any]],
    ) -> None:
        try:
            source = source_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Cannot read source for %s: %s", fractal_id, e)
            report.failures[fractal_id] = f"Cannot read source: {e}"
            return
        try:
            self.publish_source(fractal_id, source, manifest if isinstance(manifest, dict) else None)
        except PublishError as e:
            logger.error("%s", e)
            report.failures[fractal_id] = str(e)
            return
        report.published.append(fractal_id)
