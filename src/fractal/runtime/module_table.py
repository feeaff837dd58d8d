"""Client-side table of shared modules consulted by an artifact's ``require``."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional


class ModuleTable:
    """Maps module names to objects. One table per host application."""

    def __init__(self) -> None:
        self._modules: Dict[str, Any] = {}

    def register(self, name: str, module: Any) -> None:
        """Register (or replace) a module.

        Raises:
            ValueError: If name is empty or module is None.
        """
        if not name or not isinstance(name, str):
            raise ValueError("Module name must be a non-empty string")
        if module is None:
            raise ValueError("Module cannot be None")
        self._modules[name] = module

    def get(self, name: str) -> Optional[Any]:
        return self._modules.get(name)

    def get_module(self, name: str) -> Any:
        """``require`` semantics: unknown names resolve to an empty namespace."""
        return self._modules.get(name) or {}

    def has(self, name: str) -> bool:
        return name in self._modules

    def all(self) -> Dict[str, Any]:
        return dict(self._modules)

    def clear(self) -> None:
        self._modules.clear()

    def size(self) -> int:
        return len(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[str]:
        return iter(self._modules)
