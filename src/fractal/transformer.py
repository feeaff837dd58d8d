"""Turns one detected source file into a bundler-ready entry.

The entry is the original module minus the directive and its inline
``<style>`` blocks, plus federation glue that registers the component under
its artifact identity and guarantees named and default exports.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Union

from tree_sitter import Node

from .exceptions import TransformError
from .schemas import DEFAULT_RUNTIME_MODULE
from .source.directives import find_directive
from .source.modules import declared_names
from .source.parser import SourceFile, parse_file
from .source.rewriter import Rewriter
from .source.styles import StyleExtractor
from .source.typescript import is_type_only_export
from .utils.naming import to_identifier

logger = logging.getLogger(__name__)

_DECLARATION_TYPES = (
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "abstract_class_declaration",
    "lexical_declaration",
    "variable_declaration",
)
_NAMED_VALUE_TYPES = ("function_expression", "function", "generator_function", "class")


@dataclass
class TransformResult:
    code: str
    styles: Optional[str]
    component_name: str


@dataclass
class _ExportScan:
    default_name: Optional[str] = None
    anonymous_default: Optional[Node] = None
    has_default: bool = False
    named_locals: List[str] = field(default_factory=list)
    exported: Set[str] = field(default_factory=set)
    top_level: Set[str] = field(default_factory=set)


class FractalTransformer:
    """Prepares fractal sources for the bundler.

    Args:
        runtime_module: Module that provides ``registerModule`` at runtime.
    """

    def __init__(self, runtime_module: str = DEFAULT_RUNTIME_MODULE):
        self.runtime_module = runtime_module

    def transform(self, file_path: Union[str, Path], fractal_name: str) -> TransformResult:
        """Transform the file at file_path. Never writes to disk.

        Raises:
            TransformError: If the file cannot be read or does not parse.
        """
        path = Path(file_path)
        try:
            sf = parse_file(path)
        except (OSError, UnicodeDecodeError) as e:
            raise TransformError(f"Cannot read source: {e}", file_path=str(path))
        return self.transform_source(sf, fractal_name, path.stem)

    def transform_source(self, sf: SourceFile, fractal_name: str, base_name: str) -> TransformResult:
        sf.ensure_valid()
        rewriter = Rewriter(sf)

        directive = find_directive(sf)
        if directive is not None:
            rewriter.remove(directive)

        styles = StyleExtractor(
            sf, fractal_name, include_styled=False, drop_css_imports=False
        ).apply(rewriter)

        scan = self._scan_exports(sf)
        component_name = self._component_name(scan, base_name)

        if scan.anonymous_default is not None:
            statement, value = scan.anonymous_default, scan.anonymous_default.child_by_field_name("value")
            rewriter.replace(statement, f"const {component_name} = {rewriter.emit(value)};")
            scan.has_default = False
            scan.top_level.add(component_name)

        if component_name not in scan.top_level:
            raise TransformError(
                f"No exported component found (looked for '{component_name}')",
                file_path=sf.path,
            )

        body = rewriter.render().strip("\n")
        code = self._with_glue(body, component_name, fractal_name, scan)
        logger.debug("Transformed %s as %s (component %s)", sf.path, fractal_name, component_name)
        return TransformResult(code=code, styles=styles, component_name=component_name)

    def _scan_exports(self, sf: SourceFile) -> _ExportScan:
        scan = _ExportScan()
        for statement in sf.statements():
            if statement.type in _DECLARATION_TYPES:
                scan.top_level.update(declared_names(statement, sf))
                continue
            if statement.type == "import_statement":
                clause = next((c for c in statement.named_children if c.type == "import_clause"), None)
                if clause is not None:
                    for node in clause.named_children:
                        if node.type == "identifier":
                            scan.top_level.add(sf.node_text(node))
                        else:
                            for ident in node.named_children:
                                alias = ident.child_by_field_name("alias") or ident.child_by_field_name("name")
                                scan.top_level.add(sf.node_text(alias if alias is not None else ident))
                continue
            if statement.type != "export_statement" or is_type_only_export(statement):
                continue

            is_default = any(not c.is_named and c.type == "default" for c in statement.children)
            declaration = statement.child_by_field_name("declaration")
            value = statement.child_by_field_name("value")
            if is_default:
                scan.has_default = True
                scan.exported.add("default")
                named = declared_names(declaration, sf) if declaration is not None else []
                if named:
                    scan.default_name = named[0]
                    scan.top_level.add(named[0])
                elif value is not None and value.type == "identifier":
                    scan.default_name = sf.node_text(value)
                elif value is not None and value.type in _NAMED_VALUE_TYPES and value.child_by_field_name("name"):
                    # export default function Name() {} parsed as an expression
                    scan.default_name = sf.node_text(value.child_by_field_name("name"))
                    scan.top_level.add(scan.default_name)
                elif value is not None:
                    scan.anonymous_default = statement
                continue

            if declaration is not None:
                names = declared_names(declaration, sf)
                scan.top_level.update(names)
                scan.exported.update(names)
                scan.named_locals.extend(names)
                continue

            clause = next((c for c in statement.named_children if c.type == "export_clause"), None)
            if clause is None or statement.child_by_field_name("source") is not None:
                continue
            for specifier in clause.named_children:
                name = specifier.child_by_field_name("name")
                alias = specifier.child_by_field_name("alias")
                if name is None:
                    continue
                exported = sf.node_text(alias if alias is not None else name)
                scan.exported.add(exported)
                if exported == "default":
                    scan.has_default = True
                    scan.default_name = sf.node_text(name)
                elif alias is None:
                    scan.named_locals.append(exported)
        return scan

    def _component_name(self, scan: _ExportScan, base_name: str) -> str:
        if scan.default_name:
            return scan.default_name
        if scan.anonymous_default is None:
            capitalized = [n for n in scan.named_locals if n[:1].isupper()]
            if capitalized:
                return capitalized[0]
            if scan.named_locals:
                return scan.named_locals[0]
        return to_identifier(base_name)

    def _with_glue(self, body: str, component_name: str, fractal_name: str, scan: _ExportScan) -> str:
        lines = []
        if "registerModule" not in scan.top_level:
            lines += [f"import {{ registerModule }} from '{self.runtime_module}';", ""]
        lines += [
            body,
            "",
            "if (typeof window !== 'undefined') {",
            f"  registerModule({json.dumps(fractal_name)}, {component_name});",
            "}",
        ]
        if component_name not in scan.exported:
            lines.append(f"export {{ {component_name} }};")
        if not scan.has_default:
            lines.append(f"export default {component_name};")
        return "\n".join(lines) + "\n"
