"""Owning-package lookup and artifact identity construction."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from .schemas import PackageInfo
from .utils.json_io import read_json_safe
from .utils.naming import IDENTITY_SEPARATOR, clean_package_name, kebab_case

logger = logging.getLogger(__name__)

DESCRIPTOR_NAME = "package.json"


class PackageResolver:
    """Resolves the nearest package descriptor for source files.

    Results are cached per containing directory for the lifetime of the
    resolver. All files in one directory share an owning package, so the
    directory is the key, not the file.
    """

    def __init__(self, descriptor_name: str = DESCRIPTOR_NAME):
        self.descriptor_name = descriptor_name
        self._cache: Dict[Path, Optional[PackageInfo]] = {}

    def find_closest_package(self, file_path: Union[str, Path]) -> Optional[PackageInfo]:
        """Walk up from the file's directory to the first valid descriptor.

        A descriptor is valid when it parses as a JSON object carrying both
        ``name`` and ``version``. Returns None when the filesystem root is
        reached without one.
        """
        start = Path(file_path).resolve().parent
        if start in self._cache:
            return self._cache[start]

        info: Optional[PackageInfo] = None
        for directory in (start, *start.parents):
            descriptor = directory / self.descriptor_name
            if not descriptor.is_file():
                continue
            data, error = read_json_safe(descriptor)
            if error:
                logger.debug("Ignoring unreadable descriptor %s: %s", descriptor, error)
                continue
            if isinstance(data, dict) and data.get("name") and data.get("version"):
                info = PackageInfo(
                    name=str(data["name"]),
                    version=str(data["version"]),
                    descriptor_path=descriptor,
                )
                break

        self._cache[start] = info
        return info

    def clear_cache(self) -> None:
        self._cache.clear()


def generate_fractal_name(package_info: PackageInfo, file_name: str) -> str:
    """Build ``package::kebab-base-name::version`` for a source file.

    ``@`` and ``/`` in the package name become ``-`` and outer dashes are
    trimmed, so the identity stays a single URL path segment.
    """
    base_name = Path(file_name).stem
    return IDENTITY_SEPARATOR.join(
        (clean_package_name(package_info.name), kebab_case(base_name), package_info.version)
    )
