"""
Tests for the host-side runtime loader and its consumer wrappers.

The registry is an ``httpx.MockTransport`` and artifact code is evaluated
by a fake execution context, so no network or node binary is involved.
"""

import asyncio
import json
import logging
import subprocess
from unittest.mock import Mock

import httpx
import pytest

from fractal.runtime import (
    Fractal,
    FractalProvider,
    ModuleTable,
    NodeExecutionContext,
    RuntimeLoader,
    create_element,
    current_loader,
    preload,
    render_to_string,
    setup_fractals,
    use_fractal,
)
from fractal.runtime.loader import DEVELOPMENT_REGISTRY_URL, PRODUCTION_REGISTRY_URL
from fractal.schemas import FractalConfig, RunMode

REGISTRY = "http://registry.test"


def button(props):
    return create_element("button", {"className": "btn"}, props.get("label"))


def card(props):
    return create_element("div", {"className": "card"}, "card")


class FakeRegistry:
    """MockTransport handler serving a fixed set of fractals."""

    def __init__(self):
        self.fractals = {
            "button-fractal": {"styles": ".btn{color:red}", "code": "BUTTON_CODE"},
            "card-fractal": {"styles": None, "code": "CARD_CODE"},
            "relative-fractal": {"styles": None, "code": "CARD_CODE", "relative": True},
        }
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        parts = request.url.path.strip("/").split("/")
        if len(parts) < 2 or parts[0] != "fractals" or parts[1] not in self.fractals:
            return httpx.Response(404, json={"error": "Not found"})
        fractal = self.fractals[parts[1]]
        if len(parts) == 3 and parts[2] == "code":
            return httpx.Response(200, text=fractal["code"])
        code_url = f"/fractals/{parts[1]}/code"
        if not fractal.get("relative"):
            code_url = f"{REGISTRY}{code_url}"
        return httpx.Response(200, json={"url": code_url, "styles": fractal["styles"]})

    def count(self, fragment: str) -> int:
        return sum(1 for url in self.requests if url.endswith(fragment))


class FakeContext:
    """Execution context that maps known code bodies to exports."""

    EXPORTS = {
        "BUTTON_CODE": {"default": button},
        "CARD_CODE": {"Card": card},
    }

    def __init__(self):
        self.calls = []

    def evaluate(self, code, bindings):
        self.calls.append((code, bindings))
        return self.EXPORTS[code]


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
async def loader(registry):
    loader = RuntimeLoader(context=FakeContext(), transport=httpx.MockTransport(registry), env={})
    yield loader
    await loader.aclose()


# ============================================================================
# LOADER TESTS
# ============================================================================


class TestLoad:
    """Tests for fetching, caching and deduplication."""

    async def test_load_resolves_component_and_styles(self, loader):
        """Test a load returns the default export and the metadata styles."""
        entry = await loader.load("button-fractal", REGISTRY)

        assert entry.component is button
        assert entry.styles == ".btn{color:red}"
        assert loader.get_cached("button-fractal") is entry

    async def test_sole_named_export_is_used(self, loader):
        entry = await loader.load("card-fractal", REGISTRY)
        assert entry.component is card
        assert entry.styles is None

    async def test_relative_code_url(self, loader):
        """Test a code url relative to the registry is resolved against it."""
        entry = await loader.load("relative-fractal", REGISTRY)
        assert entry.component is card

    async def test_concurrent_loads_share_one_fetch(self, loader, registry):
        """Test simultaneous loads of one id issue one metadata and one code request."""
        first, second, third = await asyncio.gather(
            loader.load("button-fractal", REGISTRY),
            loader.load("button-fractal", REGISTRY),
            loader.load("button-fractal", REGISTRY),
        )

        assert first is second is third
        assert registry.count("/fractals/button-fractal") == 1
        assert registry.count("/fractals/button-fractal/code") == 1
        assert loader.cache.pending_ids() == []

    async def test_cache_hit_makes_no_requests(self, loader, registry):
        """Test a cached id resolves without touching the network."""
        entry = await loader.load("button-fractal", REGISTRY)
        registry.requests.clear()

        again = await loader.load("button-fractal", REGISTRY)

        assert again is entry
        assert registry.requests == []

    async def test_failure_resolves_to_none(self, loader, registry):
        """Test unknown ids resolve to None, are not cached and can be retried."""
        assert await loader.load("no-such-fractal", REGISTRY) is None
        assert loader.get_cached("no-such-fractal") is None
        assert loader.cache.pending_ids() == []

        await loader.load("no-such-fractal", REGISTRY)
        assert registry.count("/fractals/no-such-fractal") == 2

    async def test_evaluation_failure_resolves_to_none(self, registry):
        """Test an execution error counts as a failed load."""

        class Exploding:
            def evaluate(self, code, bindings):
                raise RuntimeError("bad artifact")

        async with RuntimeLoader(context=Exploding(), transport=httpx.MockTransport(registry), env={}) as loader:
            assert await loader.load("button-fractal", REGISTRY) is None

    async def test_missing_code_url(self):
        """Test metadata without a code url counts as a failed load."""

        def handler(request):
            return httpx.Response(200, json={"styles": "x"})

        async with RuntimeLoader(context=FakeContext(), transport=httpx.MockTransport(handler), env={}) as other:
            assert await other.load("broken", REGISTRY) is None

    async def test_bindings_reach_the_context(self, loader):
        """Test the execution context receives the framework and module lookup."""
        loader.modules.register("@acme/theme", {"primary": "red"})
        await loader.load("button-fractal", REGISTRY)

        code, bindings = loader.context.calls[0]
        assert code == "BUTTON_CODE"
        assert bindings["framework"] == "react"
        assert bindings["require"]("@acme/theme") == {"primary": "red"}
        assert bindings["require"]("unknown") == {}

    async def test_module_table_reaches_node(self, registry):
        """Test modules registered by the host are seeded into the node evaluation."""

        def run(cmd, input=None, **kwargs):
            payloads.append(json.loads(input))
            return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps({"exports": ["default"], "callable": False}))

        payloads = []
        context = NodeExecutionContext(runner=Mock(side_effect=run))
        async with RuntimeLoader(context=context, transport=httpx.MockTransport(registry), env={}) as loader:
            setup_fractals(modules={"shared": {"marker": True}}, loader=loader)
            entry = await loader.load("button-fractal", REGISTRY)

        assert entry is not None
        assert payloads[0]["code"] == "BUTTON_CODE"
        assert payloads[0]["modules"] == {"shared": {"value": {"marker": True}}}

    async def test_in_flight_load_survives_caller_cancellation(self, loader):
        """Test cancelling a waiting caller does not abort the shared load."""
        task = loader.start("button-fractal", REGISTRY)
        caller = asyncio.ensure_future(loader.load("button-fractal", REGISTRY))
        await asyncio.sleep(0)
        caller.cancel()

        with pytest.raises(asyncio.CancelledError):
            await caller
        entry = await task

        assert entry is not None
        assert loader.get_cached("button-fractal") is entry

    async def test_failures_logged_in_development(self, registry, caplog):
        """Test development mode logs failed loads."""
        async with RuntimeLoader(context=FakeContext(), transport=httpx.MockTransport(registry), env={}) as loader:
            with caplog.at_level(logging.ERROR, logger="fractal.runtime.loader"):
                await loader.load("no-such-fractal", REGISTRY)

        assert "Failed to load fractal no-such-fractal" in caplog.text

    async def test_failures_silent_in_production(self, registry, caplog):
        """Test production mode stays silent."""
        async with RuntimeLoader(
            context=FakeContext(), transport=httpx.MockTransport(registry), mode=RunMode.PRODUCTION, env={}
        ) as loader:
            with caplog.at_level(logging.DEBUG, logger="fractal.runtime.loader"):
                assert await loader.load("no-such-fractal", REGISTRY) is None

        assert caplog.records == []


class TestRegistryResolution:
    """Tests for registry URL precedence."""

    def test_defaults_by_mode(self):
        assert RuntimeLoader(context=FakeContext(), env={}).resolve_registry() == DEVELOPMENT_REGISTRY_URL
        production = RuntimeLoader(context=FakeContext(), env={"FRACTAL_ENV": "production"})
        assert production.mode == RunMode.PRODUCTION
        assert production.resolve_registry() == PRODUCTION_REGISTRY_URL

    def test_from_config(self):
        """Test a loaded config supplies mode, node binary and registry."""
        config = FractalConfig.model_validate({
            "mode": "production",
            "node_path": "/opt/node/bin/node",
            "registry": {"url": "http://configured.test/"},
        })

        loader = RuntimeLoader.from_config(config, env={"FRACTAL_REGISTRY_URL": "http://env.test"})

        assert loader.mode == RunMode.PRODUCTION
        assert not loader.development
        assert isinstance(loader.context, NodeExecutionContext)
        assert loader.context.node_path == "/opt/node/bin/node"
        assert loader.resolve_registry() == "http://configured.test"
        with FractalProvider("http://provider.test"):
            assert loader.resolve_registry() == "http://provider.test"

    def test_from_config_without_registry_url(self):
        loader = RuntimeLoader.from_config(FractalConfig(), context=FakeContext(), env={})
        assert loader.resolve_registry() == DEVELOPMENT_REGISTRY_URL
        assert isinstance(loader.context, FakeContext)

    def test_precedence(self):
        """Test override, then provider, then environment."""
        loader = RuntimeLoader(context=FakeContext(), env={"FRACTAL_REGISTRY_URL": "http://env.test/"})
        assert loader.resolve_registry() == "http://env.test"
        with FractalProvider("http://provider.test"):
            assert loader.resolve_registry() == "http://provider.test"
            assert loader.resolve_registry("http://override.test") == "http://override.test"
        assert loader.resolve_registry() == "http://env.test"


# ============================================================================
# HANDLE AND COMPONENT TESTS
# ============================================================================


class TestFractalHandle:
    """Tests for per-consumer handles."""

    async def test_value_after_load(self, loader):
        changes = []
        handle = use_fractal("button-fractal", REGISTRY, loader=loader, on_change=changes.append)

        assert handle.value is None
        entry = await handle.wait()

        assert entry is handle.value
        assert entry.component is button
        assert changes == [handle]

    async def test_cache_hit_is_immediate(self, loader):
        """Test a cached id is available without awaiting."""
        await loader.load("button-fractal", REGISTRY)

        handle = use_fractal("button-fractal", REGISTRY, loader=loader)

        assert handle.resolved
        assert handle.value.component is button

    async def test_update_ignores_stale_results(self, loader):
        """Test a result for a previous id never reaches the handle."""
        changes = []
        handle = use_fractal("card-fractal", REGISTRY, loader=loader, on_change=changes.append)
        stale = handle._task
        handle.update("button-fractal")

        await asyncio.gather(stale, handle.wait())

        assert handle.fractal_id == "button-fractal"
        assert handle.value.component is button
        assert len(changes) == 1
        assert loader.get_cached("card-fractal") is not None

    async def test_unmount_ignores_late_result(self, loader):
        """Test an unmounted handle is not updated, the load still completes."""
        changes = []
        handle = use_fractal("button-fractal", REGISTRY, loader=loader, on_change=changes.append)
        handle.unmount()

        await handle.wait()

        assert handle.value is None
        assert changes == []
        assert loader.get_cached("button-fractal") is not None

    async def test_update_to_same_id_is_noop(self, loader):
        handle = use_fractal("button-fractal", REGISTRY, loader=loader)
        task = handle._task
        handle.update("button-fractal", REGISTRY)
        assert handle._task is task
        await handle.wait()


class TestFractalComponent:
    """Tests for fallback and resolved rendering."""

    async def test_unknown_fractal_renders_fallback(self, loader):
        fallback = create_element("span", None, "Loading")
        view = Fractal("no-such-fractal", fallback=fallback, registry=REGISTRY, loader=loader)

        assert render_to_string(view.render()) == "<span>Loading</span>"
        await view.wait()
        assert render_to_string(view.render()) == "<span>Loading</span>"

    async def test_resolved_fractal_renders_styles_then_component(self, loader):
        """Test the style block precedes the component output."""
        fallback = create_element("span", None, "Loading")
        view = Fractal("button-fractal", props={"label": "Go"}, fallback=fallback, registry=REGISTRY, loader=loader)

        assert render_to_string(view.render()) == "<span>Loading</span>"
        await view.wait()

        assert render_to_string(view.render()) == '<style>.btn{color:red}</style><button class="btn">Go</button>'

    async def test_no_style_block_without_styles(self, loader):
        view = Fractal("card-fractal", registry=REGISTRY, loader=loader)
        await view.wait()
        assert render_to_string(view.render()) == '<div class="card">card</div>'

    async def test_default_fallback_is_nothing(self, loader):
        view = Fractal("no-such-fractal", registry=REGISTRY, loader=loader)
        assert view.render() is None


class TestProviderAndHelpers:
    """Tests for ambient configuration and helpers."""

    async def test_provider_supplies_loader_and_registry(self, loader):
        with FractalProvider(REGISTRY, loader=loader):
            assert current_loader() is loader
            handle = use_fractal("button-fractal")
            assert handle.registry == REGISTRY
            entry = await handle.wait()
        assert entry.component is button
        with pytest.raises(RuntimeError):
            current_loader()

    async def test_nested_providers(self, loader):
        with FractalProvider("http://outer.test", loader=loader):
            with FractalProvider("http://inner.test"):
                assert loader.resolve_registry() == "http://inner.test"
                assert current_loader() is loader
            assert loader.resolve_registry() == "http://outer.test"

    async def test_preload(self, loader, registry):
        """Test preloading warms the cache and swallows failures."""
        tasks = preload(REGISTRY, "button-fractal", "no-such-fractal", loader=loader)
        await asyncio.gather(*tasks)

        assert loader.get_cached("button-fractal") is not None
        assert loader.get_cached("no-such-fractal") is None
        assert preload(REGISTRY, "button-fractal", loader=loader) == []

    async def test_setup_fractals(self, loader):
        """Test shared modules are registered and preloads started."""
        tasks = setup_fractals(
            modules={"react": object()},
            registry_url=REGISTRY,
            preload_ids=["card-fractal"],
            loader=loader,
        )
        await asyncio.gather(*tasks)

        assert loader.modules.has("react")
        assert loader.get_cached("card-fractal") is not None

    async def test_setup_without_preload(self, loader):
        assert setup_fractals(modules={"x": 1}, loader=loader) == []
        assert isinstance(loader.modules, ModuleTable)
        assert loader.modules.get("x") == 1


class TestOutsideEventLoop:
    """Tests for startup calls made before an event loop runs."""

    def test_preload_without_loop_is_skipped(self, caplog):
        loader = RuntimeLoader(context=FakeContext(), env={})
        with caplog.at_level(logging.WARNING, logger="fractal.runtime.loader"):
            assert loader.preload(REGISTRY, "button-fractal") == []
        assert "No running event loop" in caplog.text
        assert loader.cache.pending_ids() == []

    def test_setup_fractals_without_loop_still_registers(self):
        """Test modules are registered even when preloading cannot start."""
        loader = RuntimeLoader(context=FakeContext(), env={})
        tasks = setup_fractals(
            modules={"react": object()},
            registry_url=REGISTRY,
            preload_ids=["button-fractal"],
            loader=loader,
        )
        assert tasks == []
        assert loader.modules.has("react")
