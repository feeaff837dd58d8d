"""Structural source rewriting.

A ``Rewriter`` re-emits a syntax tree as text. Text between child nodes is
copied verbatim; nodes can be replaced up front with ``replace`` or
rewritten on the fly by handlers registered per node type. Handlers return
the text for their node and call ``emit`` for any sub-tree they keep, so
nested rewrites compose.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional, Tuple

from tree_sitter import Node

from .parser import SourceFile, node_key

Handler = Callable[[Node], Optional[str]]


class Rewriter:
    """Re-emits a ``SourceFile`` with replacements and per-type handlers."""

    def __init__(self, source_file: SourceFile):
        self.sf = source_file
        self._replacements: Dict[Tuple[int, int, str], str] = {}
        self._handlers: Dict[str, Handler] = {}

    def replace(self, node: Node, text: str) -> None:
        self._replacements[node_key(node)] = text

    def remove(self, node: Node) -> None:
        self.replace(node, "")

    def is_replaced(self, node: Node) -> bool:
        return node_key(node) in self._replacements

    def register(self, node_types: Iterable[str], handler: Handler) -> None:
        for node_type in node_types:
            self._handlers[node_type] = handler

    def emit(self, node: Node) -> str:
        key = node_key(node)
        if key in self._replacements:
            return self._replacements[key]
        handler = self._handlers.get(node.type)
        if handler is not None:
            result = handler(node)
            if result is not None:
                return result
        return self.emit_children(node)

    def emit_children(self, node: Node, skip: Optional[Callable[[Node], bool]] = None) -> str:
        """Emit node with each child emitted in place; skipped children vanish."""
        if node.child_count == 0:
            return self.sf.node_text(node)
        parts = []
        cursor = node.start_byte
        for child in node.children:
            parts.append(self.sf.slice(cursor, child.start_byte))
            if skip is None or not skip(child):
                parts.append(self.emit(child))
            cursor = child.end_byte
        parts.append(self.sf.slice(cursor, node.end_byte))
        return "".join(parts)

    def render(self) -> str:
        root = self.sf.root
        return (
            self.sf.slice(0, root.start_byte)
            + self.emit(root)
            + self.sf.slice(root.end_byte, len(self.sf.source))
        )
