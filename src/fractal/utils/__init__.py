"""Utility modules for the fractal pipeline."""

from .filesystem_safety import (
    SKIP_DIRS,
    validate_path_traversal,
)

from .json_io import (
    read_json_safe,
    write_json_safe,
)

from .logging_utils import (
    configure_logging,
)

from .naming import (
    IDENTITY_SEPARATOR,
    capitalize_first,
    clean_package_name,
    css_slug,
    kebab_case,
    safe_file_name,
    to_identifier,
)

__all__ = [
    # Filesystem safety utils
    "SKIP_DIRS",
    "validate_path_traversal",
    # JSON I/O utils
    "read_json_safe",
    "write_json_safe",
    # Logging
    "configure_logging",
    # Naming
    "IDENTITY_SEPARATOR",
    "capitalize_first",
    "clean_package_name",
    "css_slug",
    "kebab_case",
    "safe_file_name",
    "to_identifier",
]
