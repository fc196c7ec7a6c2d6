"""Tests for plughost.plugins.executor and the restricted plugin scope."""

from __future__ import annotations

import logging

import pytest

from plughost.exceptions import ExecutionError, LifecycleError
from plughost.models import Capability, HostConfig
from plughost.plugins.api import PluginAPI
from plughost.plugins.capabilities import (
    CAPABILITY_TRAITS,
    IncomingTransformer,
    OutgoingTransformer,
    Renderable,
    implements,
    missing_members,
)
from plughost.plugins.executor import PluginInstance
from plughost.plugins.manager import PluginManager
from plughost.plugins.manifest import parse_manifest
from plughost.plugins.sandbox import build_globals


@pytest.fixture
def executor():
    return PluginManager(HostConfig()).executor


@pytest.fixture
def manifest(make_manifest):
    return parse_manifest(make_manifest("sample"))


RENDER_BODY = """
    def can_render(self, content):
        return True

    def render(self, content):
        return content
"""


def _source(body: str = "", preamble: str = "") -> str:
    return f"{preamble}\nclass Sample:\n{RENDER_BODY}{body}\nplugin = Sample\n"


class TestInstantiate:
    @pytest.mark.asyncio
    async def test_builds_instance(self, executor, manifest):
        instance = await executor.instantiate(manifest, _source())
        assert isinstance(instance, PluginInstance)
        assert instance.plugin_id == "sample"
        assert type(instance.obj).__name__ == "Sample"
        assert isinstance(instance.api, PluginAPI)
        assert instance.implements(Capability.RENDER)

    @pytest.mark.asyncio
    async def test_binding_may_be_an_object(self, executor, manifest):
        source = _source().replace("plugin = Sample", "plugin = Sample()")
        instance = await executor.instantiate(manifest, source)
        assert type(instance.obj).__name__ == "Sample"

    @pytest.mark.asyncio
    async def test_plugin_api_is_injected(self, executor, manifest):
        source = _source(body="\n    def __init__(self):\n        self.api = plugin_api\n")
        instance = await executor.instantiate(manifest, source)
        assert instance.obj.api is instance.api
        assert instance.api.plugin_id == "sample"

    @pytest.mark.asyncio
    async def test_each_instantiation_gets_a_fresh_api(self, executor, manifest):
        first = await executor.instantiate(manifest, _source())
        second = await executor.instantiate(manifest, _source())
        assert first.api is not second.api

    @pytest.mark.asyncio
    async def test_allowed_import(self, executor, manifest):
        source = _source(preamble="import json\nfrom datetime import datetime")
        await executor.instantiate(manifest, source)

    @pytest.mark.asyncio
    async def test_print_goes_to_the_plugin_logger(self, executor, manifest, caplog):
        with caplog.at_level(logging.INFO, logger="plughost.plugin.sample"):
            await executor.instantiate(manifest, _source(preamble="print('hello', 'there')"))
        assert "hello there" in caplog.text

    @pytest.mark.asyncio
    async def test_optional_import_can_be_caught(self, executor, manifest):
        preamble = "try:\n    import os\nexcept ImportError:\n    os = None\n"
        body = "\n    def has_os(self):\n        return os is not None\n"
        instance = await executor.instantiate(manifest, _source(body=body, preamble=preamble))
        assert await instance.call("has_os") is False

    @pytest.mark.asyncio
    async def test_common_exception_types_are_available(self, executor, manifest):
        preamble = (
            "try:\n    raise TimeoutError('slow')\nexcept OSError as exc:\n    CAUGHT = type(exc).__name__\n"
            "WARNING = issubclass(UserWarning, Warning)\n"
        )
        body = "\n    def caught(self):\n        return CAUGHT, WARNING\n"
        instance = await executor.instantiate(manifest, _source(body=body, preamble=preamble))
        assert await instance.call("caught") == ("TimeoutError", True)


class TestInstantiateFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source, fragment",
        [
            ("def broken(:\n", "SyntaxError"),
            ("raise RuntimeError('at import')\n", "RuntimeError: at import"),
            ("import os\n", "may not import 'os'"),
            ("import subprocess\n", "may not import 'subprocess'"),
            ("open('/etc/passwd')\n", "NameError"),
            ("eval('1')\n", "NameError"),
            ("x = 1\n", "did not bind 'plugin'"),
        ],
    )
    async def test_evaluation_errors(self, executor, manifest, source, fragment):
        with pytest.raises(ExecutionError) as excinfo:
            await executor.instantiate(manifest, source)
        assert excinfo.value.plugin_id == "sample"
        assert fragment in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_constructor_failure(self, executor, manifest):
        source = _source(body="\n    def __init__(self):\n        raise ValueError('bad init')\n")
        with pytest.raises(ExecutionError, match="constructing Sample failed: ValueError: bad init"):
            await executor.instantiate(manifest, source)

    @pytest.mark.asyncio
    async def test_missing_capability_methods(self, executor, make_manifest):
        manifest = parse_manifest(make_manifest("sample", capabilityTypes=["render", "tool"]))
        with pytest.raises(ExecutionError, match="tool requires get_tool, execute"):
            await executor.instantiate(manifest, _source())

    @pytest.mark.asyncio
    async def test_lifecycle_attribute_must_be_callable(self, executor, manifest):
        with pytest.raises(ExecutionError, match="'on_load' must be callable"):
            await executor.instantiate(manifest, _source(body="\n    on_load = 3\n"))

    @pytest.mark.asyncio
    async def test_restricted_allowlist(self, make_manifest):
        executor = PluginManager(HostConfig(allowed_modules=["math"])).executor
        manifest = parse_manifest(make_manifest("sample"))
        with pytest.raises(ExecutionError, match="may not import 'json'"):
            await executor.instantiate(manifest, _source(preamble="import json"))

    @pytest.mark.asyncio
    async def test_failed_build_removes_its_buttons(self, make_manifest):
        manager = PluginManager(HostConfig())
        manifest = parse_manifest(make_manifest("leaky"))
        preamble = "plugin_api.ui.add_toolbar_button({'id': 'ghost', 'label': 'Ghost'})\n"
        body = "\n    def __init__(self):\n        raise RuntimeError('late failure')\n"
        with pytest.raises(ExecutionError, match="late failure"):
            await manager.executor.instantiate(manifest, _source(body=body, preamble=preamble))
        assert "ghost" not in manager.ui.buttons


class TestInstanceCalls:
    @pytest.mark.asyncio
    async def test_call_sync_and_async(self, executor, manifest):
        body = "\n    async def shout(self, text):\n        return text.upper()\n"
        instance = await executor.instantiate(manifest, _source(body=body))
        assert await instance.call("render", "x") == "x"
        assert await instance.call("shout", "hey") == "HEY"

    @pytest.mark.asyncio
    async def test_call_failure_is_contained(self, executor, manifest):
        body = "\n    def explode(self):\n        raise KeyError('k')\n"
        instance = await executor.instantiate(manifest, _source(body=body))
        with pytest.raises(ExecutionError, match="'explode' failed: KeyError"):
            await instance.call("explode")
        with pytest.raises(ExecutionError, match="has no method 'missing'"):
            await instance.call("missing")

    @pytest.mark.asyncio
    async def test_run_lifecycle(self, executor, manifest):
        body = (
            "\n    def on_enable(self):\n        self.enabled = True\n"
            "\n    def on_disable(self):\n        raise RuntimeError('stuck')\n"
        )
        instance = await executor.instantiate(manifest, _source(body=body))
        assert await instance.run_lifecycle("on_enable") is None
        assert instance.obj.enabled is True
        assert await instance.run_lifecycle("on_unload") is None

        error = await instance.run_lifecycle("on_disable")
        assert isinstance(error, LifecycleError)
        assert "stuck" in str(error)


class TestSandbox:
    def test_scope_contents(self):
        scope = build_globals("my-plugin", "API", ["json"], logging.getLogger("test"))
        assert scope["plugin_api"] == "API"
        assert scope["__name__"] == "plughost_plugin_my_plugin"
        builtins = scope["__builtins__"]
        for name in ("open", "eval", "exec", "compile", "input", "globals"):
            assert name not in builtins
        assert "len" in builtins

    def test_relative_imports_are_refused(self):
        scope = build_globals("p", None, ["json"], logging.getLogger("test"))
        with pytest.raises(ImportError, match="relative imports"):
            scope["__builtins__"]["__import__"]("x", None, None, (), 1)

    def test_submodules_of_allowed_modules(self):
        scope = build_globals("p", None, ["collections"], logging.getLogger("test"))
        module = scope["__builtins__"]["__import__"]("collections.abc", None, None, ("Mapping",), 0)
        assert hasattr(module, "Mapping")


class TestCapabilities:
    def test_render_trait(self):
        class Good:
            def can_render(self, content):
                return True

            def render(self, content):
                return content

        assert isinstance(Good(), Renderable)
        assert implements(Good(), "render")
        assert not implements(None, Capability.RENDER)

    def test_transform_needs_one_direction(self):
        class Outgoing:
            def process_outgoing(self, message, context=None):
                return message

        assert missing_members(Outgoing(), Capability.MESSAGE_TRANSFORM) == []
        assert missing_members(object(), Capability.MESSAGE_TRANSFORM) == ["process_outgoing or process_incoming"]

    def test_ui_extension_needs_location(self):
        class Widget:
            location = ""

            def component(self, context=None):
                return "w"

        assert missing_members(Widget(), Capability.UI_EXTENSION) == ["location"]

    def test_raising_property_counts_as_missing(self):
        class Tricky:
            @property
            def render(self):
                raise RuntimeError("no")

            def can_render(self, content):
                return True

        assert missing_members(Tricky(), Capability.RENDER) == ["render"]

    def test_every_capability_has_traits(self):
        assert set(CAPABILITY_TRAITS) == set(Capability)

    def test_transformer_directions_are_separate_traits(self):
        class Incoming:
            def process_incoming(self, message, context=None):
                return message

        assert isinstance(Incoming(), IncomingTransformer)
        assert not isinstance(Incoming(), OutgoingTransformer)
        assert implements(Incoming(), Capability.MESSAGE_TRANSFORM)
        assert not implements(Incoming(), Capability.TOOL)

    @pytest.mark.asyncio
    async def test_instance_reports_traits(self, executor, manifest):
        instance = await executor.instantiate(manifest, _source())
        assert instance.provides(Renderable)
        assert not instance.provides(OutgoingTransformer)
