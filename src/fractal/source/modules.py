"""ES module syntax lowered to CommonJS.

The output runs inside a function that receives ``module``, ``exports`` and
``require``. Default imports go through a small interop helper so that both
plain CommonJS values and transpiled ES modules work.
"""

from __future__ import annotations

from typing import List, Optional

from tree_sitter import Node

from .parser import SourceFile
from .rewriter import Rewriter
from .typescript import is_type_only_export, is_type_only_import

INTEROP_HELPER = "__fractalDefault"
INTEROP_PRELUDE = (
    f"function {INTEROP_HELPER}(m) {{ return m && m.__esModule ? m[\"default\"] : m; }}\n"
)
ES_MODULE_MARKER = 'Object.defineProperty(exports, "__esModule", { value: true });\n'

DECLARATION_TYPES = (
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "abstract_class_declaration",
)
VARIABLE_TYPES = ("lexical_declaration", "variable_declaration")


def binding_names(pattern: Optional[Node], sf: SourceFile) -> List[str]:
    """Names bound by a declaration pattern, destructuring included."""
    if pattern is None:
        return []
    if pattern.type in ("identifier", "shorthand_property_identifier_pattern"):
        return [sf.node_text(pattern)]
    if pattern.type == "pair_pattern":
        return binding_names(pattern.child_by_field_name("value"), sf)
    if pattern.type in ("object_assignment_pattern", "assignment_pattern"):
        return binding_names(pattern.child_by_field_name("left"), sf)
    if pattern.type == "rest_pattern":
        return binding_names(pattern.named_children[0] if pattern.named_child_count else None, sf)
    names: List[str] = []
    if pattern.type in ("object_pattern", "array_pattern"):
        for child in pattern.named_children:
            names.extend(binding_names(child, sf))
    return names


def declared_names(declaration: Node, sf: SourceFile) -> List[str]:
    if declaration.type in VARIABLE_TYPES:
        names: List[str] = []
        for declarator in declaration.named_children:
            if declarator.type == "variable_declarator":
                names.extend(binding_names(declarator.child_by_field_name("name"), sf))
        return names
    name = declaration.child_by_field_name("name")
    return [sf.node_text(name)] if name is not None else []


def module_source(node: Node, sf: SourceFile) -> Optional[str]:
    source = node.child_by_field_name("source")
    return sf.string_value(source) if source is not None else None


def _specifier_is_type(specifier: Node) -> bool:
    return any(not c.is_named and c.type in ("type", "typeof") for c in specifier.children)


def _export_name(node: Optional[Node], sf: SourceFile) -> Optional[str]:
    if node is None:
        return None
    return sf.string_value(node) if node.type == "string" else sf.node_text(node)


def _member(name: str) -> str:
    if name.isidentifier():
        return f"exports.{name}"
    return f'exports["{name}"]'


class ModuleLowering:
    """Registers import/export handlers on a rewriter."""

    def __init__(self, rewriter: Rewriter):
        self.rewriter = rewriter
        self.sf = rewriter.sf
        self.needs_interop = False
        self.has_exports = False
        self._temp_counter = 0
        rewriter.register(("import_statement",), self.lower_import)
        rewriter.register(("export_statement",), self.lower_export)

    def _temp(self, prefix: str) -> str:
        self._temp_counter += 1
        return f"__{prefix}{self._temp_counter}"

    def _require(self, specifier: str) -> str:
        return f'require("{specifier}")'

    # Imports

    def lower_import(self, node: Node) -> str:
        if is_type_only_import(node):
            return ""
        source = module_source(node, self.sf)
        if source is None:
            return ""
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is None:
            return f"{self._require(source)};"

        default_name: Optional[str] = None
        namespace_name: Optional[str] = None
        named: List[str] = []
        saw_named_block = False
        for part in clause.named_children:
            if part.type == "identifier":
                default_name = self.sf.node_text(part)
            elif part.type == "namespace_import":
                ident = next((c for c in part.named_children if c.type == "identifier"), None)
                if ident is not None:
                    namespace_name = self.sf.node_text(ident)
            elif part.type == "named_imports":
                saw_named_block = True
                for specifier in part.named_children:
                    if specifier.type != "import_specifier" or _specifier_is_type(specifier):
                        continue
                    imported = _export_name(specifier.child_by_field_name("name"), self.sf)
                    local = specifier.child_by_field_name("alias")
                    local_name = self.sf.node_text(local) if local is not None else imported
                    key = imported if imported.isidentifier() else f'"{imported}"'
                    named.append(key if local_name == imported else f"{key}: {local_name}")

        if saw_named_block and not named and default_name is None and namespace_name is None:
            # every specifier was type-only
            return ""

        statements: List[str] = []
        holder = namespace_name
        if holder is None and default_name is not None and named:
            holder = self._temp("mod")
        if holder is not None:
            statements.append(f"var {holder} = {self._require(source)};")
        if default_name is not None:
            self.needs_interop = True
            target = holder if holder is not None else self._require(source)
            statements.append(f"var {default_name} = {INTEROP_HELPER}({target});")
        if named:
            target = holder if holder is not None else self._require(source)
            statements.append(f"var {{ {', '.join(named)} }} = {target};")
        return " ".join(statements)

    # Exports

    def lower_export(self, node: Node) -> str:
        if is_type_only_export(node):
            return ""
        tokens = [c.type for c in node.children if not c.is_named]

        if "=" in tokens:
            # export = value
            value = node.named_children[-1]
            return f"module.exports = {self.rewriter.emit(value)};"
        if "namespace" in tokens:
            return ""

        self.has_exports = True
        source = module_source(node, self.sf)
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")
        is_default = "default" in tokens

        if is_default:
            if declaration is not None:
                emitted = self.rewriter.emit(declaration)
                names = declared_names(declaration, self.sf)
                if names:
                    return f'{emitted}\nexports["default"] = {names[0]};'
                return f'exports["default"] = {emitted};'
            if value is not None:
                names = declared_names(value, self.sf) if value.type in ("function_expression", "function", "class") else []
                emitted = self.rewriter.emit(value)
                if names:
                    return f'{emitted}\nexports["default"] = {names[0]};'
                return f'exports["default"] = {emitted};'
            return ""

        if declaration is not None:
            emitted = self.rewriter.emit(declaration)
            names = declared_names(declaration, self.sf)
            assignments = "".join(f"\n{_member(name)} = {name};" for name in names)
            return emitted + assignments

        namespace = next((c for c in node.named_children if c.type == "namespace_export"), None)
        if namespace is not None and source is not None:
            alias = _export_name(namespace.named_children[-1], self.sf)
            return f"{_member(alias)} = {self._require(source)};"
        if "*" in tokens and source is not None:
            temp = self._temp("reexport")
            return (
                f"var {temp} = {self._require(source)}; "
                f"Object.keys({temp}).forEach(function (k) {{ "
                f'if (k !== "default" && !Object.prototype.hasOwnProperty.call(exports, k)) exports[k] = {temp}[k]; }});'
            )

        clause = next((c for c in node.named_children if c.type == "export_clause"), None)
        if clause is None:
            return ""
        target = None
        statements: List[str] = []
        if source is not None:
            target = self._temp("reexport")
            statements.append(f"var {target} = {self._require(source)};")
        for specifier in clause.named_children:
            if specifier.type != "export_specifier" or _specifier_is_type(specifier):
                continue
            local = _export_name(specifier.child_by_field_name("name"), self.sf)
            alias = _export_name(specifier.child_by_field_name("alias"), self.sf) or local
            if target is not None:
                accessor = f"{target}.{local}" if local.isidentifier() else f'{target}["{local}"]'
                if local == "default":
                    self.needs_interop = True
                    accessor = f"{INTEROP_HELPER}({target})"
            else:
                accessor = local
            statements.append(f"{_member(alias)} = {accessor};")
        return " ".join(statements)


def install_module_lowering(rewriter: Rewriter) -> ModuleLowering:
    return ModuleLowering(rewriter)
