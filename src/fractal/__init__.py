"""Fractal package root.

Build-side pipeline (detector, transformer, builder, manifest generator,
publisher), the registry service and the host-side runtime loader. The
public API is re-exported here; the schema types live in ``fractal.schemas``.
"""

__version__ = "0.1.0"

from fractal.builder import FractalBuilder  # noqa: F401
from fractal.detector import FractalDetector  # noqa: F401
from fractal.manifest_generator import ManifestGenerator  # noqa: F401
from fractal.package_resolver import PackageResolver, generate_fractal_name  # noqa: F401
from fractal.publisher import Publisher  # noqa: F401
from fractal.registry import RegistryStore, compile_fractal, create_app  # noqa: F401
from fractal.runtime import Fractal, FractalProvider, RuntimeLoader, preload, use_fractal  # noqa: F401
from fractal.schemas import *  # noqa: F401,F403
from fractal.schemas import __all__ as SCHEMA_EXPORTS
from fractal.transformer import FractalTransformer  # noqa: F401

__all__ = [
    "__version__",
    "FractalBuilder",
    "FractalDetector",
    "FractalTransformer",
    "ManifestGenerator",
    "PackageResolver",
    "Publisher",
    "RegistryStore",
    "RuntimeLoader",
    "Fractal",
    "FractalProvider",
    "compile_fractal",
    "create_app",
    "generate_fractal_name",
    "preload",
    "use_fractal",
] + SCHEMA_EXPORTS
