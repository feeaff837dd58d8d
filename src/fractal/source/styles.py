"""Static style extraction.

Inline ``<style>`` blocks, side-effect ``.css`` imports and tagged
``styled.tag`` templates are pulled out of the source. The collected CSS is
returned separately so it can be shipped next to the compiled code.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from tree_sitter import Node

from ..utils.naming import css_slug
from .parser import SourceFile, walk
from .rewriter import Rewriter

logger = logging.getLogger(__name__)

STYLED_IDENTIFIER = "styled"


def _opening_name(element: Node, sf: SourceFile) -> Optional[str]:
    opening = element.child_by_field_name("open_tag")
    if opening is None:
        opening = next((c for c in element.children if c.type == "jsx_opening_element"), None)
    if opening is None:
        return None
    name = opening.child_by_field_name("name")
    return sf.node_text(name) if name is not None else None


def _static_template(node: Node, sf: SourceFile) -> Optional[str]:
    """Template literal contents, or None when it has substitutions."""
    if node.type != "template_string":
        return None
    if any(c.type == "template_substitution" for c in node.named_children):
        return None
    return sf.string_value(node)


class StyleExtractor:
    """Collects CSS from one source and schedules the matching removals.

    Args:
        sf: Parsed source.
        fractal_id: Identifier used to namespace generated class names.
        include_styled: Also lower ``styled.tag`` templates.
        drop_css_imports: Remove ``import './x.css'`` statements.
    """

    def __init__(
        self,
        sf: SourceFile,
        fractal_id: str,
        include_styled: bool = True,
        drop_css_imports: bool = True,
    ):
        self.sf = sf
        self.fractal_id = fractal_id
        self.include_styled = include_styled
        self.drop_css_imports = drop_css_imports
        self.blocks: List[str] = []

    def apply(self, rewriter: Rewriter) -> Optional[str]:
        for node in walk(self.sf.root):
            if rewriter.is_replaced(node):
                continue
            if node.type == "jsx_element" and _opening_name(node, self.sf) == "style":
                self._style_element(node, rewriter)
            elif node.type == "import_statement" and self.drop_css_imports:
                self._css_import(node, rewriter)
            elif node.type == "call_expression" and self.include_styled:
                self._styled_call(node, rewriter)
        return self.styles

    @property
    def styles(self) -> Optional[str]:
        return "\n".join(self.blocks) or None

    def _style_element(self, node: Node, rewriter: Rewriter) -> None:
        tags = [c for c in node.named_children if c.type in ("jsx_opening_element", "jsx_closing_element")]
        content = [c for c in node.named_children if c.type not in ("jsx_opening_element", "jsx_closing_element")]
        if len(tags) != 2:
            return
        if all(c.type in ("jsx_text", "html_character_reference") for c in content):
            css = self.sf.slice(tags[0].end_byte, tags[1].start_byte)
        elif len(content) == 1 and content[0].type == "jsx_expression":
            inner = [c for c in content[0].named_children if c.type != "comment"]
            if not inner:
                return
            if inner[0].type == "string":
                css = self.sf.string_value(inner[0])
            else:
                css = _static_template(inner[0], self.sf)
                if css is None:
                    logger.warning(
                        "Leaving dynamic <style> block in place in %s at line %s",
                        self.sf.path or self.fractal_id,
                        node.start_point[0] + 1,
                    )
                    return
        else:
            return
        css = css.strip()
        if css:
            self.blocks.append(css)
        parent = node.parent
        rewriter.replace(node, "" if parent is not None and parent.type == "jsx_element" else "null")

    def _css_import(self, node: Node, rewriter: Rewriter) -> None:
        if any(c.type == "import_clause" for c in node.named_children):
            return
        source = node.child_by_field_name("source")
        if source is not None and self.sf.string_value(source).endswith(".css"):
            rewriter.remove(node)

    def _styled_call(self, node: Node, rewriter: Rewriter) -> None:
        function = node.child_by_field_name("function")
        template = node.child_by_field_name("arguments")
        if function is None or template is None:
            return
        css = _static_template(template, self.sf)
        if css is None:
            return

        tag: Optional[str] = None
        if function.type == "member_expression":
            obj = function.child_by_field_name("object")
            prop = function.child_by_field_name("property")
            if obj is not None and prop is not None and self.sf.node_text(obj) == STYLED_IDENTIFIER:
                tag = self.sf.node_text(prop)
        elif function.type == "call_expression":
            callee = function.child_by_field_name("function")
            args = function.child_by_field_name("arguments")
            if callee is not None and self.sf.node_text(callee) == STYLED_IDENTIFIER and args is not None:
                strings = [c for c in args.named_children if c.type == "string"]
                if len(strings) == 1 and args.named_child_count == 1:
                    tag = self.sf.string_value(strings[0])
        if tag is None:
            return

        class_name = f"f-{css_slug(self.fractal_id)}-{uuid.uuid4().hex[:5]}"
        self.blocks.append(f".{class_name} {{ {css.strip()} }}")
        rewriter.replace(
            node,
            f"((props) => React.createElement('{tag}', "
            f"Object.assign({{}}, props, {{ className: '{class_name}' }})))",
        )
