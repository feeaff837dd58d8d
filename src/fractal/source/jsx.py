"""JSX lowering to explicit element-construction calls.

``<Card title="x" {...rest}>Hi {name}</Card>`` becomes
``React.createElement(Card, Object.assign({}, { title: "x" }, rest), "Hi ", name)``.
Whitespace in JSX text follows the usual JSX rules: lines are trimmed and
joined with single spaces, whitespace-only lines disappear.
"""

from __future__ import annotations

import html
import json
import re
from typing import List, Optional, Tuple

from tree_sitter import Node

from .rewriter import Rewriter

JSX_FACTORY = "React.createElement"
JSX_FRAGMENT = "React.Fragment"

ELEMENT_TYPES = ("jsx_element", "jsx_self_closing_element", "jsx_fragment")
TEXT_TYPES = ("jsx_text", "html_character_reference")

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")
_LINE_BREAK = re.compile(r"\r\n|\n|\r")


def clean_jsx_text(raw: str) -> Optional[str]:
    """Apply JSX whitespace rules to a run of literal text."""
    lines = _LINE_BREAK.split(raw)
    last_non_empty = -1
    for index, line in enumerate(lines):
        if line.strip(" \t"):
            last_non_empty = index

    result = []
    for index, line in enumerate(lines):
        trimmed = line.replace("\t", " ")
        if index != 0:
            trimmed = trimmed.lstrip(" ")
        if index != len(lines) - 1:
            trimmed = trimmed.rstrip(" ")
        if trimmed:
            if index != last_non_empty:
                trimmed += " "
            result.append(trimmed)
    text = "".join(result)
    return text or None


def js_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def property_key(name: str) -> str:
    return name if _IDENTIFIER.match(name) else js_string(name)


class JSXLowering:
    """Registers JSX handlers on a rewriter."""

    def __init__(self, rewriter: Rewriter, factory: str = JSX_FACTORY, fragment: str = JSX_FRAGMENT):
        self.rewriter = rewriter
        self.sf = rewriter.sf
        self.factory = factory
        self.fragment = fragment
        rewriter.register(ELEMENT_TYPES, self.lower_element)

    def lower_element(self, node: Node) -> str:
        if node.type == "jsx_self_closing_element":
            opening = node
            children: List[Node] = []
        else:
            opening = node.child_by_field_name("open_tag")
            if opening is None:
                opening = next((c for c in node.children if c.type == "jsx_opening_element"), None)
            children = [c for c in node.children if c.is_named]

        element_type = self._element_type(opening)
        props = self._props(opening) if opening is not None else "null"
        args = [element_type, props] + self._children(children)
        return f"{self.factory}({', '.join(args)})"

    def _element_type(self, opening: Optional[Node]) -> str:
        if opening is None:
            return self.fragment
        name = opening.child_by_field_name("name")
        if name is None:
            return self.fragment
        text = self.sf.node_text(name)
        if name.type == "jsx_namespace_name":
            return js_string(text)
        if name.type == "identifier" and (text[:1].islower() or "-" in text):
            return js_string(text)
        return text

    def _props(self, opening: Node) -> str:
        segments: List[Tuple[str, str]] = []  # ("pair" | "spread", text)
        for attribute in opening.named_children:
            if attribute.type == "jsx_attribute":
                segments.append(("pair", self._attribute(attribute)))
            elif attribute.type == "jsx_expression":
                spread = next((c for c in attribute.named_children if c.type == "spread_element"), None)
                if spread is not None and spread.named_child_count:
                    segments.append(("spread", self.rewriter.emit(spread.named_children[0])))

        if not segments:
            return "null"
        if all(kind == "pair" for kind, _ in segments):
            return "{ " + ", ".join(text for _, text in segments) + " }"

        parts = ["{}"]
        pending: List[str] = []
        for kind, text in segments:
            if kind == "pair":
                pending.append(text)
                continue
            if pending:
                parts.append("{ " + ", ".join(pending) + " }")
                pending = []
            parts.append(text)
        if pending:
            parts.append("{ " + ", ".join(pending) + " }")
        return f"Object.assign({', '.join(parts)})"

    def _attribute(self, attribute: Node) -> str:
        named = attribute.named_children
        key = property_key(self.sf.node_text(named[0]))
        if len(named) < 2:
            return f"{key}: true"
        value = named[1]
        if value.type == "string":
            return f"{key}: {js_string(html.unescape(self.sf.string_value(value)))}"
        if value.type == "jsx_expression":
            inner = [c for c in value.named_children if c.type != "comment"]
            return f"{key}: {self.rewriter.emit(inner[0]) if inner else 'true'}"
        return f"{key}: {self.rewriter.emit(value)}"

    def _children(self, children: List[Node]) -> List[str]:
        # Text runs are read from the raw source between non-text children;
        # jsx_text nodes exclude surrounding whitespace.
        args: List[str] = []
        if not children:
            return args
        cursor = children[0].end_byte

        def flush(end: int) -> None:
            cleaned = clean_jsx_text(self.sf.slice(cursor, end))
            if cleaned is not None:
                args.append(js_string(html.unescape(cleaned)))

        for child in children[1:]:
            if child.type in TEXT_TYPES or child.type == "comment":
                continue
            flush(child.start_byte)
            cursor = child.end_byte
            if child.type == "jsx_closing_element":
                break
            if child.type == "jsx_expression":
                inner = [c for c in child.named_children if c.type != "comment"]
                if not inner:
                    continue
                if inner[0].type == "spread_element" and inner[0].named_child_count:
                    args.append("..." + self.rewriter.emit(inner[0].named_children[0]))
                else:
                    args.append(self.rewriter.emit(inner[0]))
                continue
            rendered = self.rewriter.emit(child)
            if rendered.strip():
                args.append(rendered)
        return args


def install_jsx_lowering(rewriter: Rewriter, factory: str = JSX_FACTORY, fragment: str = JSX_FRAGMENT) -> JSXLowering:
    return JSXLowering(rewriter, factory=factory, fragment=fragment)
