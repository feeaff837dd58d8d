"""Locating the directive statement in a parsed source."""

from __future__ import annotations

import re
from typing import Optional

from tree_sitter import Node

from ..detector import DIRECTIVE_LITERALS
from .parser import SourceFile

_COMMENT_DIRECTIVE = re.compile(r"^(?://|/\*)\s*use fractal\b")


def find_directive(sf: SourceFile) -> Optional[Node]:
    """Return the leading directive statement, or None.

    Only the first statement counts. Ordinary comments before it are
    skipped; a ``// use fractal`` comment is itself accepted as the
    directive.
    """
    for child in sf.root.named_children:
        if child.type == "hash_bang_line":
            continue
        if child.type == "comment":
            if _COMMENT_DIRECTIVE.match(sf.node_text(child)):
                return child
            continue
        if child.type == "expression_statement" and child.named_child_count:
            inner = child.named_children[0]
            if inner.type == "string" and sf.node_text(inner) in DIRECTIVE_LITERALS:
                return child
        return None
    return None
