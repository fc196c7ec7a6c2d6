"""Turn a manifest plus plugin source text into a live plugin instance.

:class:`PluginExecutor` compiles the source, runs it in the restricted
scope from :mod:`plughost.plugins.sandbox` with a fresh ``plugin_api``
injected, picks up the module-level ``plugin`` binding, and constructs it
once. Bundled and external plugins take the same path.

Every failure, from a syntax error to a constructor that raises, comes out
as an :class:`~plughost.exceptions.ExecutionError` carrying the plugin id.
Calls into the resulting :class:`PluginInstance` are contained the same way.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from plughost.exceptions import ExecutionError, LifecycleError
from plughost.models import Capability, HostConfig, Manifest
from plughost.plugins.api import PluginAPI, plugin_logger
from plughost.plugins.awaitables import maybe_await
from plughost.plugins.capabilities import LIFECYCLE_METHODS, implements, missing_members, provides
from plughost.plugins.sandbox import build_globals

logger = logging.getLogger(__name__)

PLUGIN_BINDING = "plugin"
"""Module-level name plugin source must bind to its class or object."""

ApiFactory = Callable[[Manifest], Awaitable[PluginAPI]]


def _describe(exc: BaseException) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class PluginInstance:
    """A constructed plugin object plus the API it was built with.

    Attributes:
        manifest: The manifest the instance was created from.
        obj: The object the plugin source produced.
        api: The ``plugin_api`` injected into the source.
    """

    def __init__(self, manifest: Manifest, obj: Any, api: PluginAPI) -> None:
        self.manifest = manifest
        self.obj = obj
        self.api = api

    @property
    def plugin_id(self) -> str:
        return self.manifest.id

    def has(self, method: str) -> bool:
        try:
            return callable(getattr(self.obj, method, None))
        except Exception:
            return False

    def implements(self, capability: Capability | str) -> bool:
        return implements(self.obj, capability)

    def provides(self, trait: type) -> bool:
        return provides(self.obj, trait)

    def attribute(self, name: str, default: Any = None) -> Any:
        """Read a plain attribute (e.g. ``location``).

        Raises:
            ExecutionError: If reading the attribute raises.
        """
        try:
            return getattr(self.obj, name, default)
        except Exception as exc:
            raise ExecutionError(self.plugin_id, f"reading '{name}' failed: {_describe(exc)}") from exc

    async def call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        """Call ``obj.<method>`` and await the result if needed.

        Raises:
            ExecutionError: If the method is missing or raises.
        """
        target = self.attribute(method)
        if not callable(target):
            raise ExecutionError(self.plugin_id, f"plugin has no method '{method}'")
        try:
            return await maybe_await(target(*args, **kwargs))
        except Exception as exc:
            raise ExecutionError(self.plugin_id, f"'{method}' failed: {_describe(exc)}") from exc

    async def run_lifecycle(self, method: str, *args: Any) -> Optional[LifecycleError]:
        """Run an optional lifecycle method.

        Returns:
            ``None`` when the method is absent or succeeded, otherwise the
            :class:`LifecycleError` describing the failure. Never raises.
        """
        if not self.has(method):
            return None
        try:
            await self.call(method, *args)
        except ExecutionError as exc:
            error = LifecycleError(self.plugin_id, exc.detail)
            error.__cause__ = exc.__cause__
            logger.warning("%s", error)
            return error
        return None

    def __repr__(self) -> str:
        return f"<PluginInstance {self.plugin_id} {type(self.obj).__name__}>"


class PluginExecutor:
    """Evaluate plugin source in a restricted scope and construct the plugin.

    Args:
        host_config: Supplies the module allowlist.
        api_factory: Coroutine building a fresh :class:`PluginAPI` for a
            manifest. The manager provides one wired to its dispatcher,
            config service, UI and session collaborators.
    """

    def __init__(self, host_config: HostConfig, api_factory: ApiFactory) -> None:
        self._config = host_config
        self._api_factory = api_factory

    async def instantiate(self, manifest: Manifest, source: str) -> PluginInstance:
        """Create a :class:`PluginInstance` from *source*.

        The source must bind ``plugin`` to a class (constructed once, with
        no arguments) or to an already-built object.

        Raises:
            ExecutionError: If the source fails to compile or run, binds no
                ``plugin``, the constructor raises, or the object lacks the
                methods its declared capabilities require.
        """
        plugin_id = manifest.id
        try:
            api = await self._api_factory(manifest)
        except Exception as exc:
            raise ExecutionError(plugin_id, f"preparing plugin_api failed: {_describe(exc)}") from exc
        try:
            obj = self._evaluate(manifest, source, api)
        except ExecutionError:
            # Nothing the source did through plugin_api may outlive a failed build.
            api.hooks.discard()
            api.ui.cleanup()
            raise
        logger.debug("Instantiated plugin '%s' as %s", plugin_id, type(obj).__name__)
        return PluginInstance(manifest, obj, api)

    def _evaluate(self, manifest: Manifest, source: str, api: PluginAPI) -> Any:
        plugin_id = manifest.id
        scope = build_globals(plugin_id, api, self._config.allowed_modules, plugin_logger(plugin_id))

        try:
            code = compile(source, f"<plugin {plugin_id}>", "exec")
            exec(code, scope)
        except Exception as exc:
            raise ExecutionError(plugin_id, f"evaluating source failed: {_describe(exc)}") from exc

        target = scope.get(PLUGIN_BINDING)
        if target is None:
            raise ExecutionError(plugin_id, f"source did not bind '{PLUGIN_BINDING}' to a class or object")

        if isinstance(target, type):
            try:
                obj = target()
            except Exception as exc:
                raise ExecutionError(plugin_id, f"constructing {target.__name__} failed: {_describe(exc)}") from exc
        else:
            obj = target

        self._check_shape(manifest, obj)
        return obj

    @staticmethod
    def _check_shape(manifest: Manifest, obj: Any) -> None:
        problems = []
        for capability in manifest.capability_types:
            missing = missing_members(obj, capability)
            if missing:
                problems.append(f"{capability.value} requires {', '.join(missing)}")
        for name in LIFECYCLE_METHODS:
            try:
                value = getattr(obj, name, None)
            except Exception as exc:
                problems.append(f"reading '{name}' failed: {_describe(exc)}")
                continue
            if value is not None and not callable(value):
                problems.append(f"'{name}' must be callable")
        if problems:
            raise ExecutionError(manifest.id, "; ".join(problems))
