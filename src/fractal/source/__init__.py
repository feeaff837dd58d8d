"""Parse-tree based source handling for component files."""

from .analysis import (
    ImportBinding,
    imported_bindings,
    jsx_element_names,
    module_specifiers,
    registered_ids,
)
from .directives import find_directive
from .lowering import LoweredModule, lower_to_commonjs
from .parser import SourceFile, parse_file, parse_source, walk
from .rewriter import Rewriter
from .styles import StyleExtractor

__all__ = [
    "ImportBinding",
    "LoweredModule",
    "Rewriter",
    "SourceFile",
    "StyleExtractor",
    "find_directive",
    "imported_bindings",
    "jsx_element_names",
    "lower_to_commonjs",
    "module_specifiers",
    "parse_file",
    "parse_source",
    "registered_ids",
    "walk",
]
