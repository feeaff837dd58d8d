"""Runtime loader: fetch, execute, cache and deduplicate fractals.

Per id a load moves ``Uncached -> Pending -> {Cached, Failed}``. At most
one fetch is in flight per id: concurrent callers attach to the pending
task. Failures resolve to None instead of raising; they are logged only in
development mode. In-flight loads are shielded from caller cancellation
and always run to completion.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextvars import ContextVar
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING
from urllib.parse import quote, urljoin

import httpx

from ..schemas import FractalConfig, RunMode
from .cache import FractalCache, LoadedFractal
from .execution import DEFAULT_FRAMEWORK, ExecutionContext, NodeExecutionContext, extract_component
from .module_table import ModuleTable

if TYPE_CHECKING:
    from .components import FractalHandle

logger = logging.getLogger(__name__)

ENV_REGISTRY_URL = "FRACTAL_REGISTRY_URL"
ENV_MODE = "FRACTAL_ENV"
DEVELOPMENT_REGISTRY_URL = "http://localhost:3001"
PRODUCTION_REGISTRY_URL = "http://localhost:8080"

# Registry URL supplied by the innermost FractalProvider
registry_context: ContextVar[Optional[str]] = ContextVar("fractal_registry", default=None)
loader_context: ContextVar[Optional["RuntimeLoader"]] = ContextVar("fractal_loader", default=None)


def current_loader() -> "RuntimeLoader":
    loader = loader_context.get()
    if loader is None:
        raise RuntimeError("No RuntimeLoader in scope: pass loader= or enter a FractalProvider")
    return loader


class RuntimeLoader:
    """Loads fractals from a registry for one host application.

    Args:
        cache: Cache owned by this loader (created when omitted).
        context: Execution context for artifact code (node by default).
        modules: Module table consulted by artifacts' ``require``.
        client: httpx.AsyncClient to use; created on first use when omitted.
        transport: httpx transport for the created client (tests pass
            ``httpx.MockTransport``).
        mode: Development mode logs load failures; production stays silent.
        env: Environment mapping, ``os.environ`` by default.
        registry_url: Configured registry, consulted after the ambient provider
            and before ``FRACTAL_REGISTRY_URL``.
    """

    def __init__(
        self,
        cache: Optional[FractalCache] = None,
        context: Optional[ExecutionContext] = None,
        modules: Optional[ModuleTable] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        mode: Optional[RunMode] = None,
        env: Optional[Mapping[str, str]] = None,
        framework: Any = DEFAULT_FRAMEWORK,
        timeout: Optional[float] = None,
        registry_url: Optional[str] = None,
    ) -> None:
        self.env = os.environ if env is None else env
        self.cache = cache or FractalCache()
        self.context = context or NodeExecutionContext(node_path=self.env.get("FRACTAL_NODE", "node"))
        self.modules = modules or ModuleTable()
        self.mode = RunMode(mode or self.env.get(ENV_MODE) or RunMode.DEVELOPMENT)
        self.framework = framework
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._timeout = timeout
        self.registry_url = registry_url

    @classmethod
    def from_config(cls, config: FractalConfig, **kwargs: Any) -> "RuntimeLoader":
        """Loader using the mode, node binary and registry URL of a loaded config."""
        kwargs.setdefault("context", NodeExecutionContext(node_path=config.node_path))
        kwargs.setdefault("mode", config.mode)
        kwargs.setdefault("registry_url", config.registry.url)
        return cls(**kwargs)

    @property
    def development(self) -> bool:
        return self.mode == RunMode.DEVELOPMENT

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RuntimeLoader":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def resolve_registry(self, override: Optional[str] = None) -> str:
        """Override, then the ambient provider, the configured URL, the environment, the mode default."""
        url = override or registry_context.get() or self.registry_url or self.env.get(ENV_REGISTRY_URL)
        if not url:
            url = PRODUCTION_REGISTRY_URL if self.mode == RunMode.PRODUCTION else DEVELOPMENT_REGISTRY_URL
        return url.rstrip("/")

    def get_cached(self, fractal_id: str) -> Optional[LoadedFractal]:
        return self.cache.get(fractal_id)

    def start(self, fractal_id: str, registry: Optional[str] = None) -> "asyncio.Task[Optional[LoadedFractal]]":
        """Return the in-flight task for an id, starting one if none is pending.

        Must be called from the event loop thread.
        """
        pending = self.cache.get_pending(fractal_id)
        if pending is not None:
            return pending
        registry_url = self.resolve_registry(registry)
        task = asyncio.get_running_loop().create_task(self._load(fractal_id, registry_url))
        self.cache.set_pending(fractal_id, task)
        return task

    async def load(self, fractal_id: str, registry: Optional[str] = None) -> Optional[LoadedFractal]:
        """Resolve a fractal; None when it is unavailable."""
        cached = self.cache.get(fractal_id)
        if cached is not None:
            return cached
        return await asyncio.shield(self.start(fractal_id, registry))

    def use_fractal(self, fractal_id: str, registry: Optional[str] = None) -> "FractalHandle":
        from .components import FractalHandle

        return FractalHandle(self, fractal_id, registry)

    def preload(self, registry: Optional[str], *fractal_ids: str) -> List["asyncio.Task[Any]"]:
        """Warm the cache for several ids without waiting. Errors are swallowed.

        Outside a running event loop nothing can be scheduled; that is logged
        and no tasks are returned.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, not preloading %s", ", ".join(fractal_ids))
            return []
        tasks = []
        for fractal_id in fractal_ids:
            if self.cache.has(fractal_id):
                continue
            tasks.append(self.start(fractal_id, registry))
        return tasks

    async def _load(self, fractal_id: str, registry_url: str) -> Optional[LoadedFractal]:
        try:
            metadata = await self._fetch_metadata(fractal_id, registry_url)
            code_url = metadata.get("url")
            if not isinstance(code_url, str) or not code_url:
                raise ValueError(f"Metadata for {fractal_id} has no code url")
            response = await self.client.get(urljoin(registry_url + "/", code_url))
            response.raise_for_status()

            bindings = {
                "framework": self.framework,
                "require": self.modules.get_module,
                "modules": self.modules.all(),
            }
            exports = await asyncio.to_thread(self.context.evaluate, response.text, bindings)
            entry = LoadedFractal(component=extract_component(exports), styles=metadata.get("styles") or None)
            self.cache.put(fractal_id, entry)
            return entry
        except Exception as e:
            if self.development:
                logger.error("Failed to load fractal %s: %s", fractal_id, e)
            return None
        finally:
            self.cache.clear_pending(fractal_id)

    async def _fetch_metadata(self, fractal_id: str, registry_url: str) -> Dict[str, Any]:
        response = await self.client.get(f"{registry_url}/fractals/{quote(fractal_id, safe='')}")
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Malformed metadata for {fractal_id}")
        return data
