"""Name helpers shared by the builder, the manifest generator and the registry."""

from __future__ import annotations

import re

IDENTITY_SEPARATOR = "::"

_UPPER = re.compile(r"([A-Z])")
_UNSAFE_FILE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_UNSAFE_CSS_CHARS = re.compile(r"[^a-zA-Z0-9-]+")


def kebab_case(name: str) -> str:
    """Insert a dash before every capital and lowercase: ``StatsCard`` -> ``stats-card``."""
    return _UPPER.sub(r"-\1", name).lower().removeprefix("-")


def clean_package_name(name: str) -> str:
    """Replace ``@`` and ``/`` with ``-`` and trim dashes at both ends."""
    return re.sub(r"[@/]", "-", name).strip("-")


def safe_file_name(fractal_name: str) -> str:
    """Filesystem-safe form of an artifact identity."""
    return _UNSAFE_FILE_CHARS.sub("_", fractal_name.replace(IDENTITY_SEPARATOR, "_"))


def css_slug(value: str) -> str:
    """Collapse anything outside ``[a-zA-Z0-9-]`` so the value fits in a class name."""
    return _UNSAFE_CSS_CHARS.sub("-", value).strip("-").lower() or "fractal"


def capitalize_first(name: str) -> str:
    return name[:1].upper() + name[1:]


def to_identifier(name: str) -> str:
    """Best-effort JS identifier from a file base name (``stats-card`` -> ``StatsCard``)."""
    parts = [p for p in re.split(r"[^a-zA-Z0-9_$]+", name) if p]
    ident = "".join(capitalize_first(p) for p in parts) or "Fractal"
    if ident[0].isdigit():
        ident = f"_{ident}"
    return ident
