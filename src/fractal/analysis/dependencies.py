"""Declared-versus-used dependency analysis."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Set

from ..exceptions import TransformError
from ..schemas import DependencySet
from ..source.analysis import module_specifiers
from ..source.parser import SourceFile, parse_file
from ..utils.json_io import read_json_safe

logger = logging.getLogger(__name__)

_SECTIONS = (
    ("production", "dependencies"),
    ("development", "devDependencies"),
    ("peer", "peerDependencies"),
)


def package_name_from_specifier(specifier: str) -> Optional[str]:
    """``lodash/fp`` -> ``lodash``, ``@scope/pkg/x`` -> ``@scope/pkg``; relative and absolute paths -> None."""
    if not specifier or specifier.startswith((".", "/")):
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2]) if len(parts) >= 2 else None
    return parts[0]


def imported_packages(sf: SourceFile) -> Set[str]:
    packages = set()
    for specifier in module_specifiers(sf):
        name = package_name_from_specifier(specifier)
        if name:
            packages.add(name)
    return packages


def declared_dependencies(descriptor_path: Path) -> DependencySet:
    """Dependencies declared in a package descriptor; empty sets if unreadable."""
    data, error = read_json_safe(descriptor_path)
    if error or not isinstance(data, dict):
        logger.debug("Cannot read dependencies from %s: %s", descriptor_path, error)
        return DependencySet()
    values = {}
    for field_name, key in _SECTIONS:
        section = data.get(key)
        values[field_name] = (
            {str(k): str(v) for k, v in section.items()} if isinstance(section, dict) else {}
        )
    return DependencySet(**values)


def filter_used(declared: DependencySet, used: Iterable[str]) -> DependencySet:
    used = set(used)
    return DependencySet(
        production={k: v for k, v in declared.production.items() if k in used},
        development={k: v for k, v in declared.development.items() if k in used},
        peer={k: v for k, v in declared.peer.items() if k in used},
    )


def analyze_dependencies(source_path: Path, descriptor_path: Path) -> DependencySet:
    """Declared dependencies narrowed to the packages the source imports.

    Any failure yields an empty set rather than an error.
    """
    declared = declared_dependencies(descriptor_path)
    try:
        sf = parse_file(source_path)
    except (OSError, UnicodeDecodeError, TransformError) as e:
        logger.debug("Cannot analyze imports of %s: %s", source_path, e)
        return DependencySet()
    return filter_used(declared, imported_packages(sf))
