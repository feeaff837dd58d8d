"""Registry service: compile step, storage and HTTP surface."""

from .compiler import CompileResult, EsbuildCompiler, compile_builtin, compile_fractal, get_compiler
from .server import CODE_WRAPPER, create_app, wrap_code
from .store import RegistryStore

__all__ = [
    "CODE_WRAPPER",
    "CompileResult",
    "EsbuildCompiler",
    "RegistryStore",
    "compile_builtin",
    "compile_fractal",
    "create_app",
    "get_compiler",
    "wrap_code",
]
