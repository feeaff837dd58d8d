"""Configuration loader for ``fractal.yaml`` plus environment overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from .exceptions import ConfigLoadError
from .schemas import FractalConfig

CONFIG_FILE_NAME = "fractal.yaml"

ENV_REGISTRY_URL = "FRACTAL_REGISTRY_URL"
ENV_STORAGE_DIR = "FRACTAL_STORAGE_DIR"
ENV_MODE = "FRACTAL_ENV"
ENV_COMPILER = "FRACTAL_COMPILER"
ENV_ESBUILD = "FRACTAL_ESBUILD"
ENV_NODE = "FRACTAL_NODE"
ENV_PORT = "PORT"


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load fractal.yaml as a plain dict (empty file -> empty dict)."""
    if not path.exists():
        raise ConfigLoadError(path.name, "File not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(path.name, f"Invalid YAML: {e}")
    except OSError as e:
        raise ConfigLoadError(path.name, str(e))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(path.name, "Top-level value must be a mapping")
    return data


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> FractalConfig:
    """Build the effective configuration.

    An explicit ``path`` must exist. Without one, ``fractal.yaml`` in the
    working directory is used when present, otherwise defaults apply.
    Environment variables override file values.

    Raises:
        ConfigLoadError: If the file is unreadable, not YAML, or fails validation.
    """
    env = os.environ if env is None else env
    if path is not None:
        data = load_config_file(Path(path))
        source_name = Path(path).name
    else:
        default_path = Path.cwd() / CONFIG_FILE_NAME
        data = load_config_file(default_path) if default_path.exists() else {}
        source_name = CONFIG_FILE_NAME

    _apply_env_overrides(data, env, source_name)

    try:
        return FractalConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigLoadError(source_name, f"Invalid configuration: {e}")


def _apply_env_overrides(data: Dict[str, Any], env: Mapping[str, str], source_name: str) -> None:
    registry = data.get("registry") or {}
    if not isinstance(registry, dict):
        raise ConfigLoadError(source_name, "'registry' must be a mapping")
    data["registry"] = registry
    if env.get(ENV_REGISTRY_URL):
        registry["url"] = env[ENV_REGISTRY_URL]
    if env.get(ENV_STORAGE_DIR):
        registry["storage_dir"] = env[ENV_STORAGE_DIR]
    if env.get(ENV_COMPILER):
        registry["compiler"] = env[ENV_COMPILER]
    if env.get(ENV_PORT):
        registry["port"] = env[ENV_PORT]
    if env.get(ENV_MODE):
        data["mode"] = env[ENV_MODE]
    if env.get(ENV_ESBUILD):
        data["esbuild_path"] = env[ENV_ESBUILD]
    if env.get(ENV_NODE):
        data["node_path"] = env[ENV_NODE]
