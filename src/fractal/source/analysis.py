"""Read-only queries over a parsed source, used by the manifest generator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Set

from .parser import SourceFile, walk

REGISTER_FUNCTION = "registerModule"


@dataclass
class ImportBinding:
    local: str
    imported: str
    specifier: str


def module_specifiers(sf: SourceFile) -> List[str]:
    """Every module specifier named by import, re-export, require or import()."""
    specifiers: List[str] = []
    for node in walk(sf.root):
        if node.type in ("import_statement", "export_statement"):
            source = node.child_by_field_name("source")
            if source is not None and source.type == "string":
                specifiers.append(sf.string_value(source))
        elif node.type == "call_expression":
            function = node.child_by_field_name("function")
            arguments = node.child_by_field_name("arguments")
            if function is None or arguments is None or arguments.type != "arguments":
                continue
            if function.type == "import" or sf.node_text(function) == "require":
                first = arguments.named_children[0] if arguments.named_child_count else None
                if first is not None and first.type == "string":
                    specifiers.append(sf.string_value(first))
    return specifiers


def imported_bindings(sf: SourceFile) -> Dict[str, ImportBinding]:
    """Local names introduced by import statements, keyed by local name."""
    bindings: Dict[str, ImportBinding] = {}
    for statement in sf.statements():
        if statement.type != "import_statement":
            continue
        source = statement.child_by_field_name("source")
        clause = next((c for c in statement.named_children if c.type == "import_clause"), None)
        if source is None or clause is None:
            continue
        specifier = sf.string_value(source)
        for part in clause.named_children:
            if part.type == "identifier":
                local = sf.node_text(part)
                bindings[local] = ImportBinding(local, "default", specifier)
            elif part.type == "namespace_import":
                for ident in part.named_children:
                    local = sf.node_text(ident)
                    bindings[local] = ImportBinding(local, "*", specifier)
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    if name is None:
                        continue
                    imported = sf.node_text(name)
                    local = sf.node_text(alias) if alias is not None else imported
                    bindings[local] = ImportBinding(local, imported, specifier)
    return bindings


def jsx_element_names(sf: SourceFile) -> Set[str]:
    """Tag names used in JSX, member expressions reduced to their first segment."""
    names: Set[str] = set()
    for node in walk(sf.root):
        if node.type in ("jsx_opening_element", "jsx_self_closing_element"):
            name = node.child_by_field_name("name")
            if name is not None:
                names.add(sf.node_text(name).split(".")[0])
    return names


def registered_ids(sf: SourceFile) -> List[str]:
    """String literals passed as the first argument to ``registerModule``."""
    ids: List[str] = []
    for node in walk(sf.root):
        if node.type != "call_expression":
            continue
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None or arguments is None or sf.node_text(function) != REGISTER_FUNCTION:
            continue
        first = arguments.named_children[0] if arguments.named_child_count else None
        if first is not None and first.type == "string":
            ids.append(sf.string_value(first))
    return ids
