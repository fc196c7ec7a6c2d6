"""Plugin manager -- registration, lifecycle, and capability queries.

:class:`PluginManager` owns every :class:`PluginRecord` and is the only
component that changes plugin state. It wires the other parts together:

* :func:`~plughost.plugins.manifest.parse_manifest` validates declarations,
* :class:`~plughost.plugins.executor.PluginExecutor` builds instances,
* :class:`~plughost.plugins.hooks.HookDispatcher` carries hook handlers,
* :class:`~plughost.plugins.config.PluginConfigService` and
  :class:`~plughost.plugins.state.PluginStateStore` persist config values,
  enabled flags, and permission grants.

Host-facing mutators return an :class:`~plughost.outcome.Outcome` rather
than raising: a duplicate id, a core-plugin disable, or a plugin that fails
to build is reported to the caller and never unwinds host state. Nothing
raised by plugin code escapes this module.

State per plugin id::

    unregistered -> loaded (enabled | disabled) -> [reload] -> loaded -> unregistered
                 \\-> failed (loaded=False, last_error set) -> [reload] -> ...

A failed record stays failed until someone asks for a ``reload``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from plughost.exceptions import (
    ConfigError,
    CorePluginError,
    DuplicatePluginError,
    ExecutionError,
    LifecycleError,
    ManifestValidationError,
    PlugHostError,
    PluginNotFoundError,
    ReloadNotAllowedError,
)
from plughost.models import Capability, HostConfig, Manifest, Permission, PluginSummary, ToolDefinition
from plughost.outcome import Outcome
from plughost.plugins.api import (
    ConfigAPI,
    HookDeclaration,
    HooksAPI,
    HostUI,
    PluginAPI,
    RecordingHostUI,
    SessionAPI,
    SessionProvider,
    UIAPI,
)
from plughost.plugins.capabilities import IncomingTransformer, OutgoingTransformer
from plughost.plugins.config import PluginConfigService
from plughost.plugins.discovery import DiscoveredPlugin, read_plugin_dir
from plughost.plugins.executor import PluginExecutor, PluginInstance
from plughost.plugins.hooks import HookDispatcher, HookName
from plughost.plugins.manifest import check_host_compatibility, parse_manifest
from plughost.plugins.state import PluginStateStore
from plughost.store import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

UI_LOCATION_HOOKS: dict[str, HookName] = {
    "toolbar": HookName.TOOLBAR_BUTTON,
    "sidebar": HookName.SIDEBAR,
    "chat-input": HookName.CHAT_INPUT,
    "settings": HookName.SETTINGS,
    "message-actions": HookName.MESSAGE_ACTIONS,
}
"""Hook a ui-extension plugin is bound to, by its ``location``."""

Rediscover = Callable[["PluginRecord"], Union[Optional[DiscoveredPlugin], Awaitable[Optional[DiscoveredPlugin]]]]
Approver = Callable[[Manifest, list[Permission]], Union[bool, Awaitable[bool]]]


@dataclass
class PluginRecord:
    """Runtime state of one plugin. Owned and mutated only by the manager.

    Attributes:
        manifest: The validated declaration.
        instance: The live instance, or ``None`` if instantiation failed.
        enabled: Desired state; toggles independently of ``loaded``.
        loaded: ``True`` once instantiation succeeded.
        last_error: Message of the most recent contained failure.
        is_external: ``True`` for user-installed plugins.
        path: Folder the plugin was read from, used by ``reload``.
    """

    manifest: Manifest
    instance: Optional[PluginInstance] = None
    enabled: bool = False
    loaded: bool = False
    last_error: Optional[str] = None
    is_external: bool = False
    path: Optional[Path] = None
    load_called: bool = field(default=False, repr=False)

    @property
    def id(self) -> str:
        return self.manifest.id

    @property
    def active(self) -> bool:
        """Enabled and loaded: the plugin's hooks are live."""
        return self.enabled and self.loaded and self.instance is not None

    def summary(self) -> PluginSummary:
        return PluginSummary(
            id=self.manifest.id,
            name=self.manifest.name,
            version=self.manifest.version,
            capabilities=[c.value for c in self.manifest.capability_types],
            enabled=self.enabled,
            loaded=self.loaded,
            external=self.is_external,
            core=self.manifest.is_core,
            error=self.last_error,
        )


class PluginManager:
    """Registry and lifecycle coordinator for built-in and external plugins.

    Args:
        host_config: Effective host configuration.
        store: Backend for enabled flags and plugin config. Defaults to a
            :class:`~plughost.store.MemoryStore`.
        host_ui: UI collaborator behind ``plugin_api.ui``. Defaults to a
            :class:`~plughost.plugins.api.RecordingHostUI`.
        session_provider: Returns the current session for
            ``plugin_api.session.get_current()``.
        rediscover: Produces fresh discovery data for ``reload``. Defaults
            to re-reading the record's folder.
        approve: Asked before an external plugin that requests permissions
            is built, with the permissions not granted yet. A true answer is
            persisted; a false one leaves the plugin unloaded. Without an
            approver every requested permission is allowed.

    Example::

        manager = PluginManager(HostConfig(), store=MemoryStore())
        outcome = await manager.register(raw_manifest, source, is_external=True)
        if not outcome:
            print(outcome.error)
        results = await manager.execute_hook("render.user-message-footer", ctx)
    """

    def __init__(
        self,
        host_config: Optional[HostConfig] = None,
        store: Optional[KeyValueStore] = None,
        host_ui: Optional[HostUI] = None,
        session_provider: Optional[SessionProvider] = None,
        rediscover: Optional[Rediscover] = None,
        approve: Optional[Approver] = None,
    ) -> None:
        self.host_config = host_config or HostConfig()
        self.store = store if store is not None else MemoryStore()
        self.ui = host_ui if host_ui is not None else RecordingHostUI()
        self.config_service = PluginConfigService(self.store)
        self.state = PluginStateStore(self.store)
        self.dispatcher = HookDispatcher(
            is_enabled=self._is_active,
            default_priority=self.host_config.default_hook_priority,
        )
        self.executor = PluginExecutor(self.host_config, self._build_api)
        self._session_provider = session_provider
        self._rediscover = rediscover
        self._approve = approve
        self._records: dict[str, PluginRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, plugin_id: str) -> asyncio.Lock:
        lock = self._locks.get(plugin_id)
        if lock is None:
            lock = self._locks[plugin_id] = asyncio.Lock()
        return lock

    def _is_active(self, plugin_id: str) -> bool:
        record = self._records.get(plugin_id)
        return record is not None and record.active

    async def _build_api(self, manifest: Manifest) -> PluginAPI:
        values = await self.config_service.load(manifest.id, manifest.config_schema)
        return PluginAPI(
            manifest,
            hooks=HooksAPI(manifest.id, self.host_config.default_hook_priority),
            config=ConfigAPI(manifest.id, self.config_service, values),
            ui=UIAPI(manifest.id, self.ui),
            session=SessionAPI(self._session_provider),
        )

    def _validate(self, raw: Any, is_external: bool) -> Manifest:
        manifest = parse_manifest(raw)
        check_host_compatibility(manifest, self.host_config.host_version)
        if manifest.is_core and is_external:
            raise ManifestValidationError(manifest.id, "only bundled plugins may be core plugins")
        return manifest

    async def _initial_enabled(self, manifest: Manifest, is_external: bool) -> bool:
        if manifest.is_core:
            return True
        try:
            persisted = await self.state.get_enabled(manifest.id)
        except (OSError, ConfigError) as exc:
            logger.warning("Could not read enabled state for '%s': %s", manifest.id, exc)
            persisted = None
        if persisted is None:
            return not is_external
        return persisted

    def _missing_dependencies(self, manifest: Manifest) -> list[str]:
        missing = []
        for dep in manifest.dependencies:
            record = self._records.get(dep)
            if record is None or not record.loaded:
                missing.append(dep)
        return missing

    async def _check_permissions(self, manifest: Manifest, is_external: bool) -> Optional[LifecycleError]:
        """Ask the approver for requested permissions not granted before.

        Returns the error to store when the user refuses or the approver
        fails, ``None`` when the plugin may be built.
        """
        if not is_external or not manifest.permissions or self._approve is None:
            return None
        try:
            granted = await self.state.get_granted(manifest.id)
        except (OSError, ConfigError) as exc:
            logger.warning("Could not read permission grants for '%s': %s", manifest.id, exc)
            granted = set()
        pending = [p for p in manifest.permissions if p.value not in granted]
        if not pending:
            return None

        names = ", ".join(p.value for p in pending)
        try:
            answer = self._approve(manifest, pending)
            if inspect.isawaitable(answer):
                answer = await answer
        except Exception as exc:
            return LifecycleError(manifest.id, f"permission approval failed: {exc}")
        if not answer:
            return LifecycleError(manifest.id, f"permissions not granted: {names}")

        try:
            await self.state.grant(manifest.id, [p.value for p in pending])
        except (OSError, ConfigError) as exc:
            logger.error("Could not persist permission grants for '%s': %s", manifest.id, exc)
        logger.info("Granted %s to plugin '%s'", names, manifest.id)
        return None

    def _bind_declaration(self, plugin_id: str) -> tuple[Callable[[HookDeclaration], None], Callable[[HookDeclaration], None]]:
        def sink(declaration: HookDeclaration) -> None:
            self.dispatcher.register(declaration.hook_name, plugin_id, declaration.handler, declaration.priority)

        def unsink(declaration: HookDeclaration) -> None:
            self.dispatcher.unregister(declaration.hook_name, plugin_id, declaration.handler)

        return sink, unsink

    def _register_capability_hooks(self, record: PluginRecord) -> None:
        instance = record.instance
        assert instance is not None
        manifest = record.manifest

        if manifest.has_capability(Capability.RENDER):

            async def render_content(context: dict[str, Any]) -> Any:
                content = context.get("content")
                if await instance.call("can_render", content):
                    return await instance.call("render", content)
                return None

            self.dispatcher.register(HookName.MESSAGE_CONTENT, record.id, render_content)

        if manifest.has_capability(Capability.UI_EXTENSION):
            try:
                location = instance.attribute("location")
            except ExecutionError as exc:
                record.last_error = str(exc)
                logger.warning("%s", exc)
                return
            hook = UI_LOCATION_HOOKS.get(location)
            if hook is None:
                record.last_error = f"[{record.id}] unknown ui-extension location '{location}'"
                logger.warning("%s", record.last_error)
                return

            async def ui_component(context: dict[str, Any]) -> Any:
                component = await instance.call("component", context)
                return {"type": "custom", "component": component, "plugin": record.id}

            self.dispatcher.register(hook, record.id, ui_component)

    def _note(self, record: PluginRecord, error: Optional[PlugHostError]) -> None:
        if error is not None:
            record.last_error = str(error)

    async def _activate(self, record: PluginRecord) -> None:
        """Bring a loaded, enabled plugin's hooks online."""
        instance = record.instance
        assert instance is not None
        if not record.load_called:
            record.load_called = True
            self._note(record, await instance.run_lifecycle("on_load"))
        sink, unsink = self._bind_declaration(record.id)
        instance.api.hooks.activate(sink, unsink)
        self._register_capability_hooks(record)
        self._note(record, await instance.run_lifecycle("on_enable"))
        logger.info("Enabled plugin '%s'", record.id)

    async def _deactivate(self, record: PluginRecord) -> None:
        """Remove every hook and toolbar button, then call ``on_disable``."""
        self.dispatcher.unregister_all(record.id)
        instance = record.instance
        if instance is None:
            return
        instance.api.hooks.deactivate()
        instance.api.ui.cleanup()
        self._note(record, await instance.run_lifecycle("on_disable"))
        logger.info("Disabled plugin '%s'", record.id)

    async def _teardown(self, record: PluginRecord) -> None:
        """Disable semantics plus ``on_unload``; the instance is discarded."""
        if record.active:
            await self._deactivate(record)
        else:
            self.dispatcher.unregister_all(record.id)
        instance = record.instance
        if instance is not None:
            instance.api.ui.cleanup()
            if record.load_called:
                self._note(record, await instance.run_lifecycle("on_unload"))
        record.instance = None
        record.loaded = False
        record.load_called = False

    async def _persist_enabled(self, plugin_id: str, enabled: bool) -> Optional[ConfigError]:
        try:
            await self.state.set_enabled(plugin_id, enabled)
        except (OSError, ConfigError) as exc:
            logger.error("Could not persist enabled state for '%s': %s", plugin_id, exc)
            return ConfigError(f"Could not persist enabled state for '{plugin_id}': {exc}")
        return None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(
        self,
        manifest: Mapping[str, Any] | Manifest,
        source: str,
        is_external: bool = True,
        path: Optional[Path] = None,
    ) -> Outcome:
        """Validate, instantiate, and store a plugin.

        On success the record is ``loaded``; if it starts enabled (core
        plugins always, others per the persisted flag, bundled plugins by
        default) its ``on_load`` runs, its hooks go live, and ``on_enable``
        runs.

        Returns:
            * failure with :class:`ManifestValidationError` and no record if
              the manifest is invalid or incompatible with this host;
            * failure with :class:`DuplicatePluginError` if the id is taken
              (the existing record is untouched);
            * failure with the stored ``loaded=False`` record if a dependency
              is missing, requested permissions were refused, or
              instantiation failed;
            * success with the stored record otherwise.
        """
        try:
            parsed = self._validate(manifest, is_external)
        except ManifestValidationError as exc:
            logger.error("Rejected plugin manifest: %s", exc)
            return Outcome.failure(exc)

        async with self._lock(parsed.id):
            return await self._register_locked(parsed, source, is_external, path)

    async def _register_locked(
        self, manifest: Manifest, source: str, is_external: bool, path: Optional[Path]
    ) -> Outcome:
        if manifest.id in self._records:
            error = DuplicatePluginError(manifest.id, "a plugin with this id is already registered")
            logger.warning("%s", error)
            return Outcome.failure(error, self._records[manifest.id])

        enabled = await self._initial_enabled(manifest, is_external)
        record = PluginRecord(manifest, enabled=enabled, is_external=is_external, path=path)

        missing = self._missing_dependencies(manifest)
        if missing:
            error = LifecycleError(manifest.id, f"missing dependencies: {', '.join(missing)}")
            return self._store_failed(record, error)

        denied = await self._check_permissions(manifest, is_external)
        if denied is not None:
            return self._store_failed(record, denied)

        self.config_service.register_schema(manifest.id, manifest.config_schema)
        try:
            instance = await self.executor.instantiate(manifest, source)
        except ExecutionError as exc:
            return self._store_failed(record, exc)

        record.instance = instance
        record.loaded = True
        self._records[manifest.id] = record
        logger.info(
            "Registered plugin '%s' v%s (%s)",
            manifest.id,
            manifest.version,
            "external" if is_external else "bundled",
        )
        if record.enabled:
            await self._activate(record)
        return Outcome.success(record)

    def _store_failed(self, record: PluginRecord, error: PlugHostError) -> Outcome:
        record.instance = None
        record.loaded = False
        record.last_error = str(error)
        self._records[record.id] = record
        logger.error("Plugin '%s' failed to load: %s", record.id, error)
        return Outcome.failure(error, record)

    async def register_discovered(self, plugin: DiscoveredPlugin) -> Outcome:
        return await self.register(plugin.manifest, plugin.source, plugin.is_external, plugin.path)

    async def register_all(self, discovered: Iterable[DiscoveredPlugin]) -> list[Outcome]:
        """Register a batch in dependency order.

        Plugins are ordered by a stable topological sort of their
        ``dependencies`` within the batch; members of a dependency cycle are
        stored with ``loaded=False`` and an error naming the cycle.

        Returns:
            One outcome per input plugin, in processing order.
        """
        outcomes: list[Outcome] = []
        pending: list[tuple[Manifest, DiscoveredPlugin]] = []
        for plugin in discovered:
            try:
                pending.append((self._validate(plugin.manifest, plugin.is_external), plugin))
            except ManifestValidationError as exc:
                logger.error("Rejected plugin manifest: %s", exc)
                outcomes.append(Outcome.failure(exc))

        batch_ids = {m.id for m, _ in pending}
        placed: set[str] = set()
        remaining = list(pending)
        while remaining:
            ready = [
                (m, p)
                for m, p in remaining
                if all(dep in placed or dep not in batch_ids for dep in m.dependencies)
            ]
            if not ready:
                break
            for manifest, plugin in ready:
                placed.add(manifest.id)
                outcomes.append(await self.register(manifest, plugin.source, plugin.is_external, plugin.path))
            remaining = [(m, p) for m, p in remaining if m.id not in placed]

        if remaining:
            cycle = ", ".join(m.id for m, _ in remaining)
            for manifest, plugin in remaining:
                async with self._lock(manifest.id):
                    if manifest.id in self._records:
                        outcomes.append(
                            Outcome.failure(
                                DuplicatePluginError(manifest.id, "a plugin with this id is already registered"),
                                self._records[manifest.id],
                            )
                        )
                        continue
                    enabled = await self._initial_enabled(manifest, plugin.is_external)
                    record = PluginRecord(manifest, enabled=enabled, is_external=plugin.is_external, path=plugin.path)
                    error = LifecycleError(manifest.id, f"dependency cycle between: {cycle}")
                    outcomes.append(self._store_failed(record, error))
        return outcomes

    async def unregister(self, plugin_id: str) -> Outcome:
        """Remove a plugin entirely (its folder went away): disable, ``on_unload``, forget."""
        record = self._records.get(plugin_id)
        if record is None:
            return Outcome.failure(PluginNotFoundError(plugin_id, "plugin is not registered"))
        async with self._lock(plugin_id):
            await self._teardown(record)
            self.config_service.unregister_schema(plugin_id)
            self._records.pop(plugin_id, None)
        self._locks.pop(plugin_id, None)
        logger.info("Unregistered plugin '%s'", plugin_id)
        return Outcome.success(record)

    async def close(self) -> None:
        """Unregister every plugin, most recently registered first."""
        for plugin_id in reversed(list(self._records)):
            await self.unregister(plugin_id)

    # ------------------------------------------------------------------
    # Enable / disable / reload
    # ------------------------------------------------------------------

    async def enable(self, plugin_id: str) -> Outcome:
        """Turn a plugin on: persist the flag, re-register hooks, call ``on_enable``.

        Fails for unknown ids and for core plugins (which are always on).
        Enabling a plugin that failed to load only records the wish; it
        goes live after a successful ``reload``.
        """
        record = self._records.get(plugin_id)
        if record is None:
            return Outcome.failure(PluginNotFoundError(plugin_id, "plugin is not registered"))
        if record.manifest.is_core:
            return Outcome.failure(CorePluginError(plugin_id, "core plugins are always enabled"), record)

        async with self._lock(plugin_id):
            if record.enabled:
                return Outcome.success(record)
            error = await self._persist_enabled(plugin_id, True)
            if error is not None:
                return Outcome.failure(error, record)
            record.enabled = True
            if record.loaded:
                await self._activate(record)
        return Outcome.success(record)

    async def disable(self, plugin_id: str) -> Outcome:
        """Turn a plugin off, keeping its instance for a cheap re-enable.

        Core plugins refuse with :class:`CorePluginError` and stay enabled.
        """
        record = self._records.get(plugin_id)
        if record is None:
            return Outcome.failure(PluginNotFoundError(plugin_id, "plugin is not registered"))
        if record.manifest.is_core:
            error = CorePluginError(plugin_id, "core plugins cannot be disabled")
            logger.warning("%s", error)
            return Outcome.failure(error, record)

        async with self._lock(plugin_id):
            if not record.enabled:
                return Outcome.success(record)
            error = await self._persist_enabled(plugin_id, False)
            if error is not None:
                return Outcome.failure(error, record)
            was_active = record.active
            record.enabled = False
            if was_active:
                await self._deactivate(record)
        return Outcome.success(record)

    async def _fetch_replacement(self, record: PluginRecord, discovered: Optional[DiscoveredPlugin]) -> DiscoveredPlugin:
        if discovered is not None:
            return discovered
        if self._rediscover is not None:
            try:
                result = self._rediscover(record)
                if inspect.isawaitable(result):
                    result = await result
            except ManifestValidationError:
                raise
            except Exception as exc:
                raise ManifestValidationError(record.id, f"looking up plugin source failed: {exc}") from exc
            if result is None:
                raise ManifestValidationError(record.id, "plugin source is no longer available")
            return result
        if record.path is None:
            raise ManifestValidationError(record.id, "plugin has no folder to reload from")
        return read_plugin_dir(record.path, is_external=True)

    async def reload(self, plugin_id: str, discovered: Optional[DiscoveredPlugin] = None) -> Outcome:
        """Rebuild an external plugin from fresh source.

        Fresh source is read and validated first; if that fails the current
        instance stays in place and only ``last_error`` changes. Otherwise
        the old instance is torn down (disable semantics, ``on_unload``) and
        the new one is built. If building fails the record ends up
        ``loaded=False`` with ``last_error`` set; if it succeeds and the
        plugin was enabled, it is enabled again.

        Args:
            plugin_id: The plugin to reload.
            discovered: Fresh discovery data; by default the manager asks
                its ``rediscover`` callback or re-reads the plugin folder.
        """
        record = self._records.get(plugin_id)
        if record is None:
            return Outcome.failure(PluginNotFoundError(plugin_id, "plugin is not registered"))
        if not record.is_external:
            return Outcome.failure(ReloadNotAllowedError(plugin_id, "only external plugins can be reloaded"), record)

        async with self._lock(plugin_id):
            try:
                fresh = await self._fetch_replacement(record, discovered)
                manifest = self._validate(fresh.manifest, True)
                if manifest.id != plugin_id:
                    raise ManifestValidationError(plugin_id, f"reloaded manifest declares a different id '{manifest.id}'")
            except ManifestValidationError as exc:
                record.last_error = str(exc)
                logger.error("Reload of '%s' aborted: %s", plugin_id, exc)
                return Outcome.failure(exc, record)

            await self._teardown(record)
            logger.info("Reloading plugin '%s'", plugin_id)

            record.manifest = manifest
            record.path = fresh.path or record.path
            self.config_service.register_schema(plugin_id, manifest.config_schema)

            missing = self._missing_dependencies(manifest)
            if missing:
                return self._store_failed(record, LifecycleError(plugin_id, f"missing dependencies: {', '.join(missing)}"))
            denied = await self._check_permissions(manifest, True)
            if denied is not None:
                return self._store_failed(record, denied)
            try:
                instance = await self.executor.instantiate(manifest, fresh.source)
            except ExecutionError as exc:
                return self._store_failed(record, exc)

            record.instance = instance
            record.loaded = True
            record.last_error = None
            if record.enabled:
                await self._activate(record)
        return Outcome.success(record)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, plugin_id: str) -> Optional[PluginRecord]:
        return self._records.get(plugin_id)

    @property
    def records(self) -> list[PluginRecord]:
        """All records in registration order."""
        return list(self._records.values())

    def list_plugins(self) -> list[PluginSummary]:
        return [record.summary() for record in self._records.values()]

    def get_by_capability(self, capability: Capability | str) -> list[PluginInstance]:
        """Enabled, loaded instances declaring *capability*, in registration order."""
        capability = Capability(capability)
        return [
            record.instance
            for record in self._records.values()
            if record.active and record.manifest.has_capability(capability) and record.instance is not None
        ]

    async def execute_hook(self, hook_name: HookName | str, context: Optional[dict[str, Any]] = None) -> list[Any]:
        return await self.dispatcher.execute(hook_name, context)

    # ------------------------------------------------------------------
    # Message pipeline and tools
    # ------------------------------------------------------------------

    async def _transform(
        self, trait: type, method: str, hook: HookName, message: str, context: Optional[dict[str, Any]]
    ) -> str:
        for instance in self.get_by_capability(Capability.MESSAGE_TRANSFORM):
            if not instance.provides(trait):
                continue
            try:
                result = await instance.call(method, message, context or {})
            except ExecutionError as exc:
                logger.warning("Skipping transformer: %s", exc)
                continue
            if isinstance(result, str):
                message = result
            elif result is not None:
                logger.warning("Ignoring non-string %s result from '%s'", method, instance.plugin_id)
        return await self.dispatcher.execute_chain(hook, message, context)

    async def process_outgoing(self, message: str, context: Optional[dict[str, Any]] = None) -> str:
        """Run an outgoing message through every enabled transformer, in registration order."""
        return await self._transform(OutgoingTransformer, "process_outgoing", HookName.PROCESS_OUTGOING, message, context)

    async def process_incoming(self, message: str, context: Optional[dict[str, Any]] = None) -> str:
        """Run an incoming message through every enabled transformer, in registration order."""
        return await self._transform(IncomingTransformer, "process_incoming", HookName.PROCESS_INCOMING, message, context)

    async def _tool_table(self) -> dict[str, tuple[PluginInstance, ToolDefinition]]:
        table: dict[str, tuple[PluginInstance, ToolDefinition]] = {}
        for instance in self.get_by_capability(Capability.TOOL):
            try:
                raw = await instance.call("get_tool")
                tool = raw if isinstance(raw, ToolDefinition) else ToolDefinition.model_validate(raw)
            except ExecutionError as exc:
                logger.warning("%s", exc)
                continue
            except ValidationError as exc:
                logger.warning("[%s] invalid tool definition: %s", instance.plugin_id, exc)
                continue
            if tool.name in table:
                logger.warning(
                    "Tool '%s' from '%s' shadowed by '%s'", tool.name, instance.plugin_id, table[tool.name][0].plugin_id
                )
                continue
            table[tool.name] = (instance, tool)
        return table

    async def list_tools(self) -> list[ToolDefinition]:
        """Tool definitions from enabled tool plugins; first registration wins a name."""
        return [tool for _instance, tool in (await self._tool_table()).values()]

    async def call_tool(self, name: str, params: Optional[dict[str, Any]] = None, context: Optional[dict[str, Any]] = None) -> Outcome:
        """Run the tool called *name*.

        Returns:
            ``Outcome.success(value=<result>)``, or a failure carrying
            :class:`PluginNotFoundError` (no such tool) or
            :class:`ExecutionError` (the tool raised).
        """
        table = await self._tool_table()
        if name not in table:
            return Outcome.failure(PluginNotFoundError(None, f"no enabled tool named '{name}'"))
        instance, _tool = table[name]
        try:
            result = await instance.call("execute", params or {}, context or {})
        except ExecutionError as exc:
            logger.warning("%s", exc)
            return Outcome.failure(exc, self._records.get(instance.plugin_id))
        return Outcome.success(self._records.get(instance.plugin_id), value=result)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def load_config(self, plugin_id: str) -> dict[str, Any]:
        """Effective config values for *plugin_id* (defaults overlaid with saved values)."""
        return await self.config_service.load(plugin_id)

    async def _apply_config(self, record: PluginRecord, outcome: Outcome) -> Outcome:
        if not outcome.ok:
            return Outcome.failure(outcome.error, record)
        values = dict(outcome.value)
        if record.instance is not None:
            record.instance.api.config.refresh(values)
            self._note(record, await record.instance.run_lifecycle("on_config_change", values))
        return Outcome.success(record, value=values)

    async def update_config(self, plugin_id: str, values: Mapping[str, Any]) -> Outcome:
        """Validate and save *values*, then notify the plugin through ``on_config_change``.

        A failing ``on_config_change`` is recorded as ``last_error``; the
        saved values stay saved.
        """
        record = self._records.get(plugin_id)
        if record is None:
            return Outcome.failure(PluginNotFoundError(plugin_id, "plugin is not registered"))
        async with self._lock(plugin_id):
            outcome = await self.config_service.save(plugin_id, values)
            return await self._apply_config(record, outcome)

    async def reset_config(self, plugin_id: str) -> Outcome:
        """Drop saved values so the plugin sees its schema defaults again."""
        record = self._records.get(plugin_id)
        if record is None:
            return Outcome.failure(PluginNotFoundError(plugin_id, "plugin is not registered"))
        async with self._lock(plugin_id):
            outcome = await self.config_service.reset(plugin_id)
            return await self._apply_config(record, outcome)
