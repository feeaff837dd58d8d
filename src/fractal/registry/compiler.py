"""Registry-side compile step: published source to a CommonJS body plus CSS."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..exceptions import CompileError, MissingDirectiveError, TransformError
from ..schemas import CompilerBackend
from ..source.directives import find_directive
from ..source.jsx import JSX_FACTORY, JSX_FRAGMENT
from ..source.lowering import lower_to_commonjs
from ..source.parser import SourceFile
from ..source.rewriter import Rewriter
from ..source.styles import StyleExtractor

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class CompileResult:
    code: str
    styles: Optional[str] = None


def _parse_with_directive(source: str, fractal_id: str) -> SourceFile:
    sf = SourceFile(source, path=fractal_id)
    if find_directive(sf) is None:
        raise MissingDirectiveError(fractal_id)
    return sf


def compile_builtin(source: str, fractal_id: str) -> CompileResult:
    """Compile with the tree-sitter lowering."""
    sf = _parse_with_directive(source, fractal_id)
    try:
        lowered = lower_to_commonjs(sf, fractal_id)
    except TransformError as e:
        raise CompileError(f"Cannot compile '{fractal_id}': {e.message}") from e
    return CompileResult(code=lowered.code, styles=lowered.styles)


class EsbuildCompiler:
    """Compile with ``esbuild`` after extracting styles with the tree-sitter pass."""

    def __init__(self, executable: str = "esbuild", runner: Optional[Runner] = None, timeout: int = 60):
        self.executable = executable
        self.runner = runner or subprocess.run
        self.timeout = timeout

    def __call__(self, source: str, fractal_id: str) -> CompileResult:
        sf = _parse_with_directive(source, fractal_id)
        rewriter = Rewriter(sf)
        rewriter.remove(find_directive(sf))
        styles = StyleExtractor(sf, fractal_id).apply(rewriter)
        stripped = rewriter.render().strip()

        cmd = [
            self.executable,
            "--loader=tsx",
            "--format=cjs",
            "--jsx=transform",
            f"--jsx-factory={JSX_FACTORY}",
            f"--jsx-fragment={JSX_FRAGMENT}",
            "--target=es2015",
        ]
        try:
            proc = self.runner(cmd, input=stripped, capture_output=True, text=True, timeout=self.timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise CompileError(f"esbuild unavailable: {e}") from e
        if proc.returncode != 0:
            raise CompileError(f"Cannot compile '{fractal_id}': {(proc.stderr or '').strip()}")
        return CompileResult(code=proc.stdout, styles=styles)


Compiler = Callable[[str, str], CompileResult]


def get_compiler(backend: Union[str, CompilerBackend] = CompilerBackend.BUILTIN, esbuild_path: str = "esbuild") -> Compiler:
    backend = CompilerBackend(backend)
    if backend is CompilerBackend.ESBUILD:
        return EsbuildCompiler(esbuild_path)
    return compile_builtin


def compile_fractal(source: str, fractal_id: str, compiler: Optional[Compiler] = None) -> CompileResult:
    """Validate and compile a published source.

    Raises:
        MissingDirectiveError: If the source does not start with the directive.
        CompileError: If the source does not compile.
    """
    result = (compiler or compile_builtin)(source, fractal_id)
    logger.debug("Compiled %s (%d bytes, styles=%s)", fractal_id, len(result.code), bool(result.styles))
    return result
