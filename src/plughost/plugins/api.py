"""The ``plugin_api`` capability surface handed to plugin code.

The executor builds one :class:`PluginAPI` per instantiation and injects it
as the global ``plugin_api``. It is the whole trust boundary: plugin code
gets hook registration, its own config, a few UI calls, and a read-only
session snapshot, and nothing else from the host.

* :class:`HooksAPI` -- records hook declarations. The manager activates
  them with the dispatcher when the plugin is enabled and drops them from
  the dispatcher when it is disabled.
* :class:`ConfigAPI` -- synchronous reads from a snapshot of the plugin's
  values, validated asynchronous writes through the config service.
* :class:`UIAPI` -- toolbar buttons and notifications, forwarded to a
  :class:`HostUI`.
* :class:`SessionAPI` -- the current session, as supplied by the host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

from plughost.exceptions import HandlerError
from plughost.models import Manifest, NotificationLevel, SessionSnapshot, ToolbarButton
from plughost.plugins.awaitables import maybe_await
from plughost.plugins.config import PluginConfigService
from plughost.plugins.hooks import DEFAULT_PRIORITY, HookHandler, HookName, hook_key

logger = logging.getLogger(__name__)

PLUGIN_LOGGER_PREFIX = "plughost.plugin"


def plugin_logger(plugin_id: str) -> logging.Logger:
    """Return the logger plugin code writes to (``plughost.plugin.<id>``)."""
    return logging.getLogger(f"{PLUGIN_LOGGER_PREFIX}.{plugin_id}")


# --- Hooks ---


@dataclass
class HookDeclaration:
    """A handler a plugin asked to register.

    ``persistent`` declarations (made while the plugin was inactive, e.g.
    at import time or in ``on_load``) survive disable/enable cycles.
    Declarations made while active (e.g. in ``on_enable``) are dropped on
    deactivation; ``on_enable`` makes them again.
    """

    hook_name: str
    handler: HookHandler
    priority: int
    persistent: bool


HookSink = Callable[[HookDeclaration], None]


class HooksAPI:
    """``plugin_api.hooks``."""

    def __init__(self, plugin_id: str, default_priority: int = DEFAULT_PRIORITY) -> None:
        self._plugin_id = plugin_id
        self._default_priority = default_priority
        self._declarations: list[HookDeclaration] = []
        self._sink: Optional[HookSink] = None
        self._unsink: Optional[Callable[[HookDeclaration], None]] = None

    def register(self, hook_name: HookName | str, handler: HookHandler, priority: Optional[int] = None) -> None:
        """Register *handler* for *hook_name*; lower *priority* runs first.

        Registering the same handler for the same hook again only updates
        its priority.
        """
        if not callable(handler):
            raise TypeError(f"handler for '{hook_name}' must be callable")
        if priority is None:
            priority = self._default_priority
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise TypeError("priority must be an integer")
        key = hook_key(hook_name)

        for existing in self._declarations:
            if existing.hook_name == key and existing.handler == handler:
                self._retract(existing)
                existing.priority = priority
                self._emit(existing)
                return

        declaration = HookDeclaration(key, handler, priority, persistent=self._sink is None)
        self._declarations.append(declaration)
        self._emit(declaration)

    def unregister(self, hook_name: HookName | str, handler: HookHandler) -> bool:
        key = hook_key(hook_name)
        for existing in list(self._declarations):
            if existing.hook_name == key and existing.handler == handler:
                self._declarations.remove(existing)
                self._retract(existing)
                return True
        return False

    def _emit(self, declaration: HookDeclaration) -> None:
        if self._sink is not None:
            self._sink(declaration)

    def _retract(self, declaration: HookDeclaration) -> None:
        if self._unsink is not None:
            self._unsink(declaration)

    # Host side

    @property
    def declarations(self) -> list[HookDeclaration]:
        return list(self._declarations)

    @property
    def active(self) -> bool:
        return self._sink is not None

    def activate(self, sink: HookSink, unsink: Callable[[HookDeclaration], None]) -> None:
        """Send every declaration to *sink* and forward later ones directly."""
        self._sink = sink
        self._unsink = unsink
        for declaration in list(self._declarations):
            sink(declaration)

    def deactivate(self) -> None:
        """Stop forwarding and forget declarations made while active."""
        self._sink = None
        self._unsink = None
        self._declarations = [d for d in self._declarations if d.persistent]

    def discard(self) -> None:
        """Retract and forget every declaration (the plugin failed to build)."""
        for declaration in self._declarations:
            self._retract(declaration)
        self._declarations = []
        self._sink = None
        self._unsink = None


# --- Config ---


class ConfigAPI:
    """``plugin_api.config``: this plugin's values, and nobody else's."""

    def __init__(self, plugin_id: str, service: PluginConfigService, values: Optional[Mapping[str, Any]] = None) -> None:
        self._plugin_id = plugin_id
        self._service = service
        self._values: dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        """Return the current value, else the schema default, else *default*."""
        if key in self._values:
            return self._values[key]
        field = self._service.schema_for(self._plugin_id).get(key)
        if field is not None and field.default is not None:
            return field.default
        return default

    def all(self) -> dict[str, Any]:
        return dict(self._values)

    async def set(self, key: str, value: Any) -> None:
        """Validate and persist one value.

        Raises:
            ConfigValidationError: If *value* fails the field's constraints;
                nothing is written.
        """
        outcome = await self._service.save(self._plugin_id, {key: value})
        outcome.raise_for_error()
        self._values = dict(outcome.value)

    def refresh(self, values: Mapping[str, Any]) -> None:
        """Replace the snapshot (host side, after a config update)."""
        self._values = dict(values)


# --- UI ---


class HostUI(Protocol):
    """The host UI collaborator that ``plugin_api.ui`` forwards to."""

    def add_toolbar_button(self, button: ToolbarButton) -> None: ...

    def remove_toolbar_button(self, button_id: str) -> None: ...

    def show_notification(self, plugin_id: str, message: str, level: NotificationLevel) -> None: ...


class RecordingHostUI:
    """A :class:`HostUI` that keeps buttons in memory and logs notifications.

    Used by the CLI and by embedders without a real UI; tests inspect
    :attr:`buttons` and :attr:`notifications`.
    """

    def __init__(self) -> None:
        self.buttons: dict[str, ToolbarButton] = {}
        self.notifications: list[tuple[str, str, NotificationLevel]] = []

    def add_toolbar_button(self, button: ToolbarButton) -> None:
        self.buttons[button.id] = button

    def remove_toolbar_button(self, button_id: str) -> None:
        self.buttons.pop(button_id, None)

    def show_notification(self, plugin_id: str, message: str, level: NotificationLevel) -> None:
        self.notifications.append((plugin_id, message, level))
        log = logger.warning if level in (NotificationLevel.WARNING, NotificationLevel.ERROR) else logger.info
        log("[%s] %s", plugin_id, message)

    async def click(self, button_id: str, context: Optional[dict[str, Any]] = None) -> Any:
        """Invoke a button's ``on_click``.

        Raises:
            KeyError: If no such button is registered.
            HandlerError: If the plugin's callback raises.
        """
        button = self.buttons[button_id]
        if button.on_click is None:
            return None
        try:
            return await maybe_await(button.on_click(context or {}))
        except Exception as exc:
            raise HandlerError(button.owner, f"toolbar.button:{button_id}", str(exc)) from exc


class UIAPI:
    """``plugin_api.ui``: forwards to the host UI and remembers what it added."""

    def __init__(self, plugin_id: str, host_ui: HostUI) -> None:
        self._plugin_id = plugin_id
        self._host_ui = host_ui
        self._button_ids: list[str] = []

    def add_toolbar_button(self, descriptor: ToolbarButton | Mapping[str, Any]) -> ToolbarButton:
        """Add a toolbar button. *descriptor* needs ``id`` and ``label``.

        Raises:
            pydantic.ValidationError: If the descriptor is malformed.
        """
        if isinstance(descriptor, ToolbarButton):
            data = descriptor.model_dump()
            data["on_click"] = descriptor.on_click
        else:
            data = dict(descriptor)
            if "onClick" in data:
                data["on_click"] = data.pop("onClick")
        button = ToolbarButton.model_validate({**data, "owner": self._plugin_id})
        self._host_ui.add_toolbar_button(button)
        if button.id not in self._button_ids:
            self._button_ids.append(button.id)
        return button

    def remove_toolbar_button(self, button_id: str) -> None:
        """Remove a button this plugin added; other plugins' buttons are untouched."""
        if button_id in self._button_ids:
            self._button_ids.remove(button_id)
            self._host_ui.remove_toolbar_button(button_id)

    def show_notification(self, message: str, level: NotificationLevel | str = "info") -> None:
        self._host_ui.show_notification(self._plugin_id, str(message), NotificationLevel(level))

    @property
    def button_ids(self) -> list[str]:
        return list(self._button_ids)

    def cleanup(self) -> None:
        """Remove every button this plugin added (host side)."""
        for button_id in list(self._button_ids):
            self.remove_toolbar_button(button_id)


# --- Session ---


SessionProvider = Callable[[], Any]


class SessionAPI:
    """``plugin_api.session``."""

    def __init__(self, provider: Optional[SessionProvider] = None) -> None:
        self._provider = provider

    def get_current(self) -> Optional[SessionSnapshot]:
        """Return a read-only snapshot of the current session, or ``None``."""
        if self._provider is None:
            return None
        current = self._provider()
        if current is None or isinstance(current, SessionSnapshot):
            return current
        return SessionSnapshot.model_validate(current)


# --- Facade ---


class PluginAPI:
    """The object plugin code sees as ``plugin_api``.

    Attributes:
        plugin_id: The owning plugin's id.
        manifest: The owning plugin's manifest.
        hooks: :class:`HooksAPI`.
        config: :class:`ConfigAPI`.
        ui: :class:`UIAPI`.
        session: :class:`SessionAPI`.
        logger: ``plughost.plugin.<id>``.
    """

    def __init__(
        self,
        manifest: Manifest,
        hooks: HooksAPI,
        config: ConfigAPI,
        ui: UIAPI,
        session: SessionAPI,
    ) -> None:
        self.plugin_id = manifest.id
        self.manifest = manifest
        self.hooks = hooks
        self.config = config
        self.ui = ui
        self.session = session
        self.logger = plugin_logger(manifest.id)

    def __repr__(self) -> str:
        return f"<PluginAPI {self.plugin_id}>"
