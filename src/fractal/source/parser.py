"""Tree-sitter parsing for component sources.

JS, JSX, TS and TSX sources are all parsed with the TSX grammar from
``tree-sitter-typescript``; it accepts every dialect the detector selects.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from ..exceptions import TransformError

logger = logging.getLogger(__name__)

TSX_LANGUAGE = Language(tree_sitter_typescript.language_tsx())


def node_key(node: Node) -> Tuple[int, int, str]:
    """Stable key for a node within one tree."""
    return (node.start_byte, node.end_byte, node.type)


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal without recursion."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


class SourceFile:
    """A parsed component source.

    Attributes:
        text: Original source text.
        source: UTF-8 encoded source; tree-sitter offsets index into it.
        path: Optional file path, used in error messages.
        tree: tree-sitter syntax tree.
    """

    def __init__(self, text: str, path: Optional[Union[str, Path]] = None):
        self.text = text
        self.source = text.encode("utf-8")
        self.path = str(path) if path is not None else None
        # Parsers are not thread-safe; one per file keeps concurrent builds independent.
        self.tree = Parser(TSX_LANGUAGE).parse(self.source)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def slice(self, start: int, end: int) -> str:
        return self.source[start:end].decode("utf-8")

    def node_text(self, node: Node) -> str:
        return self.slice(node.start_byte, node.end_byte)

    def string_value(self, node: Node) -> str:
        """Contents of a string or template literal without its delimiters."""
        return self.node_text(node)[1:-1]

    def statements(self) -> List[Node]:
        return list(self.root.named_children)

    def syntax_errors(self) -> List[Tuple[int, int]]:
        """(line, column) of every ERROR or MISSING node, 1-based lines."""
        errors = []
        if not self.root.has_error:
            return errors
        for node in walk(self.root):
            if node.type == "ERROR" or node.is_missing:
                row, column = node.start_point
                errors.append((row + 1, column))
        return errors

    def ensure_valid(self) -> None:
        """Raise TransformError when the source does not parse cleanly."""
        errors = self.syntax_errors()
        if errors:
            line, column = errors[0]
            raise TransformError(
                f"Syntax error at line {line}, column {column} ({len(errors)} error(s))",
                file_path=self.path,
            )


def parse_source(text: str, path: Optional[Union[str, Path]] = None) -> SourceFile:
    return SourceFile(text, path)


def parse_file(path: Union[str, Path]) -> SourceFile:
    file_path = Path(path)
    return SourceFile(file_path.read_text(encoding="utf-8"), file_path)
