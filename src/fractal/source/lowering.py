"""Source-to-CommonJS compilation built from the individual rewrites."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .directives import find_directive
from .jsx import install_jsx_lowering
from .modules import ES_MODULE_MARKER, INTEROP_PRELUDE, install_module_lowering
from .parser import SourceFile
from .rewriter import Rewriter
from .styles import StyleExtractor
from .typescript import install_type_stripping


@dataclass
class LoweredModule:
    code: str
    styles: Optional[str] = None


def lower_to_commonjs(sf: SourceFile, fractal_id: str, extract_styles: bool = True) -> LoweredModule:
    """Compile a parsed component source into a CommonJS function body.

    The directive (when present) is removed, styles are extracted, TypeScript
    syntax is erased, JSX becomes ``React.createElement`` calls and ES module
    syntax becomes ``require``/``exports``.
    """
    sf.ensure_valid()
    rewriter = Rewriter(sf)

    directive = find_directive(sf)
    if directive is not None:
        rewriter.remove(directive)

    styles = None
    if extract_styles:
        styles = StyleExtractor(sf, fractal_id).apply(rewriter)

    install_type_stripping(rewriter)
    install_jsx_lowering(rewriter)
    # registered last so it overrides the type-only import handler
    modules = install_module_lowering(rewriter)

    body = rewriter.render().strip()
    prelude = ""
    if modules.has_exports:
        prelude += ES_MODULE_MARKER
    if modules.needs_interop:
        prelude += INTEROP_PRELUDE
    return LoweredModule(code=prelude + body + "\n", styles=styles)
