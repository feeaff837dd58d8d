"""TypeScript erasure as syntax-tree rewrites.

Type-only nodes are dropped, type assertions are replaced by their operand.
Constructor parameter properties become explicit ``this.x = x;`` assignments.
Constructs with runtime semantics that have no direct JavaScript spelling
(enums, namespaces) are rejected rather than mistranslated.
"""

from __future__ import annotations

from typing import List, Optional

from tree_sitter import Node

from ..exceptions import TransformError
from .parser import node_key
from .rewriter import Rewriter

# Nodes that carry no runtime behaviour and are removed outright
ERASED_NODE_TYPES = (
    "type_annotation",
    "type_arguments",
    "type_parameters",
    "type_predicate_annotation",
    "asserts_annotation",
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
    "function_signature",
    "abstract_method_signature",
    "index_signature",
    "implements_clause",
    "accessibility_modifier",
    "override_modifier",
)

# Expression wrappers whose first named child is the runtime value
UNWRAPPED_NODE_TYPES = (
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
)

UNSUPPORTED_NODE_TYPES = (
    "enum_declaration",
    "internal_module",
    "module",
)

# Keyword tokens that only exist for the type checker
TYPE_ONLY_TOKENS = ("?", "!", "readonly", "declare", "abstract")

MODIFIER_CARRYING_TYPES = (
    "optional_parameter",
    "required_parameter",
    "public_field_definition",
    "abstract_class_declaration",
)

PARAMETER_TYPES = ("required_parameter", "optional_parameter")


def install_type_stripping(rewriter: Rewriter) -> None:
    """Register TypeScript erasure handlers on rewriter."""
    sf = rewriter.sf

    def erase(node: Node) -> Optional[str]:
        return ""

    def unwrap(node: Node) -> Optional[str]:
        return rewriter.emit(node.named_children[0])

    def reject(node: Node) -> Optional[str]:
        row, _ = node.start_point
        raise TransformError(
            f"Unsupported TypeScript construct '{node.type}' at line {row + 1}",
            file_path=sf.path,
        )

    def modifiers(node: Node) -> Optional[str]:
        # ``x?: T``, ``x!: T``, ``readonly x`` keep only the binding
        return rewriter.emit_children(node, skip=lambda c: not c.is_named and c.type in TYPE_ONLY_TOKENS)

    def import_statement(node: Node) -> Optional[str]:
        return "" if is_type_only_import(node) else None

    rewriter.register(ERASED_NODE_TYPES, erase)
    rewriter.register(UNWRAPPED_NODE_TYPES, unwrap)
    rewriter.register(UNSUPPORTED_NODE_TYPES, reject)
    rewriter.register(MODIFIER_CARRYING_TYPES, modifiers)
    def method_definition(node: Node) -> Optional[str]:
        return lower_parameter_properties(rewriter, node)

    rewriter.register(("import_statement",), import_statement)
    rewriter.register(("method_definition",), method_definition)


def is_type_only_export(node: Node) -> bool:
    """True for ``export type {...}``, ``export interface`` and ``export type X =``."""
    if any(not c.is_named and c.type == "type" for c in node.children):
        return True
    declaration = node.child_by_field_name("declaration")
    return declaration is not None and declaration.type in (
        "interface_declaration",
        "type_alias_declaration",
        "ambient_declaration",
    )


def is_type_only_import(node: Node) -> bool:
    """True for ``import type ...`` statements."""
    return any(not c.is_named and c.type == "type" for c in node.children)


def parameter_properties(rewriter: Rewriter, parameters: Node) -> List[str]:
    """Names declared as class fields by ``constructor(private x: T)``.

    Raises:
        TransformError: For a parameter property that is not a plain identifier.
    """
    sf = rewriter.sf
    names = []
    for parameter in parameters.named_children:
        if parameter.type not in PARAMETER_TYPES:
            continue
        is_property = any(
            c.type in ("accessibility_modifier", "override_modifier") or (not c.is_named and c.type == "readonly")
            for c in parameter.children
        )
        if not is_property:
            continue
        pattern = parameter.child_by_field_name("pattern")
        if pattern is None or pattern.type != "identifier":
            row, _ = parameter.start_point
            raise TransformError(f"Unsupported parameter property at line {row + 1}", file_path=sf.path)
        names.append(sf.node_text(pattern))
    return names


def _is_super_call(statement: Node) -> bool:
    if statement.type != "expression_statement" or not statement.named_children:
        return False
    call = statement.named_children[0]
    function = call.child_by_field_name("function") if call.type == "call_expression" else None
    return function is not None and function.type == "super"


def lower_parameter_properties(rewriter: Rewriter, method: Node) -> Optional[str]:
    """Emit a constructor with its parameter properties assigned in the body.

    Assignments go right after a leading ``super(...)`` call, else at the top
    of the body. Returns None for methods that need no rewrite.
    """
    sf = rewriter.sf
    name = method.child_by_field_name("name")
    parameters = method.child_by_field_name("parameters")
    body = method.child_by_field_name("body")
    if name is None or parameters is None or body is None or sf.node_text(name) != "constructor":
        return None
    names = parameter_properties(rewriter, parameters)
    if not names:
        return None

    assignments = "".join(f" this.{n} = {n};" for n in names)
    anchor = next((s for s in body.named_children if _is_super_call(s)), body.children[0])
    body_parts = []
    cursor = body.start_byte
    for child in body.children:
        body_parts.append(sf.slice(cursor, child.start_byte))
        body_parts.append(rewriter.emit(child))
        if node_key(child) == node_key(anchor):
            body_parts.append(assignments)
        cursor = child.end_byte
    body_parts.append(sf.slice(cursor, body.end_byte))

    parts = []
    cursor = method.start_byte
    for child in method.children:
        parts.append(sf.slice(cursor, child.start_byte))
        parts.append("".join(body_parts) if node_key(child) == node_key(body) else rewriter.emit(child))
        cursor = child.end_byte
    parts.append(sf.slice(cursor, method.end_byte))
    return "".join(parts)
