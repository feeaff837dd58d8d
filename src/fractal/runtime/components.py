"""Consumer-facing wrappers around ``RuntimeLoader``."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .cache import LoadedFractal
from .elements import Element, Fragment, create_element
from .loader import RuntimeLoader, current_loader, loader_context, registry_context

logger = logging.getLogger(__name__)

ChangeCallback = Callable[["FractalHandle"], None]


class FractalProvider:
    """Supplies the ambient registry URL (and optionally a loader) to a block.

    Usage::

        with FractalProvider("https://registry.example.com", loader=loader):
            handle = use_fractal("pkg::card::1.0.0")
    """

    def __init__(self, registry: str, loader: Optional[RuntimeLoader] = None):
        self.registry = registry
        self.loader = loader
        self._tokens: List[Any] = []

    def __enter__(self) -> "FractalProvider":
        registry_token = registry_context.set(self.registry)
        loader_token = loader_context.set(self.loader) if self.loader is not None else None
        self._tokens.append((registry_token, loader_token))
        return self

    def __exit__(self, *exc_info: Any) -> None:
        registry_token, loader_token = self._tokens.pop()
        registry_context.reset(registry_token)
        if loader_token is not None:
            loader_context.reset(loader_token)


class FractalHandle:
    """One consumer's view of a fractal id.

    The value is available immediately on a cache hit; otherwise it is None
    until the load resolves. Changing the id or registry starts an
    independent load and late results for older ids are ignored by this
    handle. After ``unmount`` every late result is ignored.
    """

    def __init__(
        self,
        loader: RuntimeLoader,
        fractal_id: str,
        registry: Optional[str] = None,
        on_change: Optional[ChangeCallback] = None,
    ):
        self.loader = loader
        self.on_change = on_change
        self.fractal_id = fractal_id
        self.registry = loader.resolve_registry(registry)
        self.value: Optional[LoadedFractal] = None
        self.mounted = True
        self._task: Optional[asyncio.Task] = None
        self._start()

    @property
    def resolved(self) -> bool:
        return self.value is not None

    def _start(self) -> None:
        self.value = self.loader.get_cached(self.fractal_id)
        self._task = None
        if self.value is not None:
            return
        task = self.loader.start(self.fractal_id, self.registry)
        key = (self.fractal_id, self.registry)
        task.add_done_callback(lambda t: self._resolved(key, t))
        self._task = task

    def _resolved(self, key: tuple, task: asyncio.Task) -> None:
        if not self.mounted or key != (self.fractal_id, self.registry):
            return
        if task.cancelled():
            return
        self.value = task.result()
        if self.on_change is not None:
            self.on_change(self)

    def update(self, fractal_id: Optional[str] = None, registry: Optional[str] = None) -> None:
        """Point the handle at another id and/or registry."""
        new_id = fractal_id or self.fractal_id
        new_registry = self.loader.resolve_registry(registry) if registry else self.registry
        if (new_id, new_registry) == (self.fractal_id, self.registry):
            return
        self.fractal_id, self.registry = new_id, new_registry
        self._start()

    def unmount(self) -> None:
        self.mounted = False

    async def wait(self) -> Optional[LoadedFractal]:
        """Wait for the current load (if any) and return the handle's value."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.value


def use_fractal(
    fractal_id: str,
    registry: Optional[str] = None,
    loader: Optional[RuntimeLoader] = None,
    on_change: Optional[ChangeCallback] = None,
) -> FractalHandle:
    return FractalHandle(loader or current_loader(), fractal_id, registry, on_change=on_change)


class Fractal:
    """Renders the fallback until the fractal resolves, then styles plus component.

    Args:
        fractal_id: Registry id.
        props: Properties passed to the resolved component.
        fallback: Rendered while unresolved (and when the load fails).
        registry: Registry URL override.
        loader: Loader to use; defaults to the one supplied by FractalProvider.
    """

    def __init__(
        self,
        fractal_id: str,
        props: Optional[Mapping[str, Any]] = None,
        fallback: Any = None,
        registry: Optional[str] = None,
        loader: Optional[RuntimeLoader] = None,
    ):
        self.props: Dict[str, Any] = dict(props or {})
        self.fallback = fallback
        self.handle = use_fractal(fractal_id, registry, loader=loader)

    async def wait(self) -> Optional[LoadedFractal]:
        return await self.handle.wait()

    def render(self) -> Any:
        module = self.handle.value
        if module is None:
            return self.fallback
        children: List[Any] = []
        if module.styles:
            children.append(create_element("style", None, module.styles))
        children.append(create_element(module.component, self.props))
        return Element(type=Fragment, children=tuple(children))


def preload(registry: Optional[str], *fractal_ids: str, loader: Optional[RuntimeLoader] = None) -> List[asyncio.Task]:
    """Warm the cache for fractal_ids; errors never surface."""
    return (loader or current_loader()).preload(registry, *fractal_ids)


def setup_fractals(
    modules: Optional[Mapping[str, Any]] = None,
    registry_url: Optional[str] = None,
    preload_ids: Optional[List[str]] = None,
    loader: Optional[RuntimeLoader] = None,
) -> List[asyncio.Task]:
    """Register shared modules and optionally start preloading.

    Returns the preload tasks (empty when nothing was preloaded).
    """
    loader = loader or current_loader()
    for name, module in (modules or {}).items():
        loader.modules.register(name, module)
    if preload_ids and registry_url:
        return loader.preload(registry_url, *preload_ids)
    return []
