"""Configuration schema for builds, the registry server and the runtime loader."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import SchemaBase
from .build import DEFAULT_EXTERNALS, DEFAULT_RUNTIME_MODULE


class RunMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class CompilerBackend(str, Enum):
    BUILTIN = "builtin"
    ESBUILD = "esbuild"


class BuildSettings(SchemaBase):
    input: Optional[str] = None
    output: str = "./dist/fractals"
    externals: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTERNALS))
    runtime_module: str = DEFAULT_RUNTIME_MODULE
    jobs: int = Field(default=1, ge=1)
    extensions: List[str] = Field(default_factory=lambda: [".jsx", ".tsx"])
    skip_dirs: List[str] = Field(
        default_factory=lambda: ["node_modules", "dist", "build", ".next", "coverage", ".git"]
    )
    detection: str = "directive"
    watch_interval: float = Field(default=1.0, gt=0)


class RegistrySettings(SchemaBase):
    url: Optional[str] = None
    storage_dir: str = "./fractal-storage"
    host: str = "127.0.0.1"
    port: int = 3001
    compiler: CompilerBackend = CompilerBackend.BUILTIN


class FractalConfig(SchemaBase):
    """Top-level contents of ``fractal.yaml``."""

    mode: RunMode = RunMode.DEVELOPMENT
    esbuild_path: str = "esbuild"
    node_path: str = "node"
    build: BuildSettings = Field(default_factory=BuildSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
