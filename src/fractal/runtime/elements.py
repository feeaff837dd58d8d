"""Minimal element tree for composing loaded fractals on the host side.

Elements mirror the ``createElement(type, props, ...children)`` shape used by
compiled artifacts. ``render_to_string`` serialises a tree to HTML; strings
are escaped, ``markupsafe.Markup`` values (for example server-rendered
artifact output) are inserted as is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from markupsafe import Markup, escape

ElementType = Union[str, Callable[[Dict[str, Any]], Any], "FragmentType"]


class FragmentType:
    """Marker type that renders only its children."""

    def __repr__(self) -> str:
        return "Fragment"


Fragment = FragmentType()

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})
RAW_TEXT_ELEMENTS = frozenset({"style", "script"})

_PROP_ALIASES = {"className": "class", "htmlFor": "for"}
_SKIPPED_PROPS = frozenset({"children", "key", "ref", "dangerouslySetInnerHTML"})


@dataclass
class Element:
    type: ElementType
    props: Dict[str, Any] = field(default_factory=dict)
    children: Tuple[Any, ...] = ()


def create_element(type: ElementType, props: Optional[Mapping[str, Any]] = None, *children: Any) -> Element:
    return Element(type=type, props=dict(props or {}), children=tuple(children))


def _style_value(value: Any) -> str:
    if isinstance(value, Mapping):
        parts = []
        for key, item in value.items():
            name = "".join(f"-{c.lower()}" if c.isupper() else c for c in key)
            parts.append(f"{name}:{item}")
        return ";".join(parts)
    return str(value)


def _attributes(props: Mapping[str, Any]) -> str:
    rendered = []
    for key, value in props.items():
        if key in _SKIPPED_PROPS or callable(value) or value is None or value is False:
            continue
        name = _PROP_ALIASES.get(key, key)
        if value is True:
            rendered.append(f" {name}")
            continue
        text = _style_value(value) if key == "style" else str(value)
        rendered.append(f' {name}="{escape(text)}"')
    return "".join(rendered)


def _raw_text(node: Any) -> str:
    if node is None or isinstance(node, bool):
        return ""
    if isinstance(node, (list, tuple)):
        return "".join(_raw_text(child) for child in node)
    return str(node)


def render_to_string(node: Any) -> str:
    """Serialise an element tree (or any child value) to HTML."""
    if node is None or isinstance(node, bool):
        return ""
    if isinstance(node, Markup):
        return str(node)
    if isinstance(node, (str, int, float)):
        return str(escape(str(node)))
    if isinstance(node, (list, tuple)):
        return "".join(render_to_string(child) for child in node)
    if not isinstance(node, Element):
        return str(escape(str(node)))

    children = node.children or tuple(
        c for c in [node.props.get("children")] if c is not None
    )
    if node.type is Fragment:
        return render_to_string(children)
    if callable(node.type):
        props = dict(node.props)
        if node.children:
            props["children"] = node.children[0] if len(node.children) == 1 else list(node.children)
        return render_to_string(node.type(props))

    tag = str(node.type)
    attrs = _attributes(node.props)
    if tag in VOID_ELEMENTS:
        return f"<{tag}{attrs}/>"
    inner_html = node.props.get("dangerouslySetInnerHTML")
    if isinstance(inner_html, Mapping) and "__html" in inner_html:
        inner = str(inner_html["__html"])
    elif tag in RAW_TEXT_ELEMENTS:
        inner = _raw_text(children)
    else:
        inner = render_to_string(children)
    return f"<{tag}{attrs}>{inner}</{tag}>"
