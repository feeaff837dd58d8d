"""Registry persistence: one JSON document per fractal id."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..exceptions import InvalidFractalIdError, InvalidManifestError, StorageError
from ..schemas import FractalManifest, StoredFractal
from ..utils.filesystem_safety import validate_path_traversal
from ..utils.json_io import read_json_safe, write_json_safe
from .compiler import Compiler, compile_fractal

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = "./fractal-storage"
RECORD_SUFFIX = ".json"


class RegistryStore:
    """Stores compiled fractals under ``{storage_dir}/{id}.json``.

    An in-memory cache sits in front of the files. Records are written by
    whole-file replacement, so a concurrent reader sees the old or the new
    record and never a partial one. Last writer wins.
    """

    def __init__(self, storage_dir: Union[str, Path] = DEFAULT_STORAGE_DIR, compiler: Optional[Compiler] = None):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.compiler = compiler
        self._cache: Dict[str, StoredFractal] = {}
        self._lock = threading.Lock()

    def record_path(self, fractal_id: str) -> Path:
        """Storage file for an id.

        Raises:
            InvalidFractalIdError: If the id is empty, contains a path separator
                or would resolve outside the storage directory.
        """
        if not fractal_id or fractal_id in (".", ".."):
            raise InvalidFractalIdError(fractal_id, "empty or reserved")
        if "/" in fractal_id or "\\" in fractal_id or "\x00" in fractal_id:
            raise InvalidFractalIdError(fractal_id, "contains a path separator")
        ok, error, path = validate_path_traversal(self.storage_dir, f"{fractal_id}{RECORD_SUFFIX}")
        if not ok:
            raise InvalidFractalIdError(fractal_id, error or "unsafe path")
        return path

    def add_fractal(
        self,
        fractal_id: str,
        source: str,
        manifest: Optional[Union[FractalManifest, Mapping[str, Any]]] = None,
    ) -> StoredFractal:
        """Compile, cache and persist a fractal, replacing any previous record.

        Raises:
            InvalidFractalIdError: If the id is unsafe.
            CompileError: If the source is rejected by the compile step.
            StorageError: If the record cannot be written.
        """
        path = self.record_path(fractal_id)
        compiled = compile_fractal(source, fractal_id, self.compiler)
        if manifest is not None and not isinstance(manifest, FractalManifest):
            try:
                manifest = FractalManifest.model_validate(manifest)
            except ValidationError as e:
                raise InvalidManifestError(f"Invalid manifest for '{fractal_id}': {e}") from e

        record = StoredFractal(
            id=fractal_id,
            source=source,
            compiled_code=compiled.code,
            styles=compiled.styles or None,
            manifest=manifest,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            ok, error = write_json_safe(path, record.to_document())
            if not ok:
                raise StorageError(error or f"Cannot write {path}")
            self._cache[fractal_id] = record
        logger.info("Stored fractal %s", fractal_id)
        return record

    def get_fractal(self, fractal_id: str) -> Optional[StoredFractal]:
        """Cached record, else the stored file (repopulating the cache), else None."""
        cached = self._cache.get(fractal_id)
        if cached is not None:
            return cached
        try:
            path = self.record_path(fractal_id)
        except InvalidFractalIdError:
            return None
        if not path.is_file():
            return None

        data, error = read_json_safe(path)
        if error:
            logger.warning("Unreadable fractal record %s: %s", path, error)
            return None
        try:
            record = StoredFractal.model_validate(data)
        except ValidationError as e:
            logger.warning("Invalid fractal record %s: %s", path, e)
            return None
        with self._lock:
            self._cache[fractal_id] = record
        return record

    def list_ids(self) -> List[str]:
        return sorted(
            p.name[: -len(RECORD_SUFFIX)]
            for p in self.storage_dir.glob(f"*{RECORD_SUFFIX}")
            if p.is_file() and not p.name.startswith(".")
        )

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
