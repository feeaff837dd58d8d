"""Host-side runtime: loading, caching and composing published fractals."""

from .cache import FractalCache, LoadedFractal
from .components import (
    Fractal,
    FractalHandle,
    FractalProvider,
    preload,
    setup_fractals,
    use_fractal,
)
from .elements import Element, Fragment, create_element, render_to_string
from .execution import ExecutionContext, NodeComponent, NodeExecutionContext, NodeModule, extract_component
from .loader import RuntimeLoader, current_loader
from .module_table import ModuleTable

__all__ = [
    "Element",
    "ExecutionContext",
    "Fractal",
    "FractalCache",
    "FractalHandle",
    "FractalProvider",
    "Fragment",
    "LoadedFractal",
    "ModuleTable",
    "NodeComponent",
    "NodeExecutionContext",
    "NodeModule",
    "RuntimeLoader",
    "create_element",
    "current_loader",
    "extract_component",
    "preload",
    "render_to_string",
    "setup_fractals",
    "use_fractal",
]
