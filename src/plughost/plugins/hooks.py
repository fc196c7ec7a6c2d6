"""Hook names, registrations, and the priority-ordered dispatcher.

This module provides two core components:

* :class:`HookName` -- the extension points the host invokes.
* :class:`HookDispatcher` -- an async event bus. Plugins register handlers
  per hook name; the host calls :meth:`HookDispatcher.execute` and gets back
  the ordered, non-null results.

Ordering: handlers run in ascending ``priority`` (lower first), ties broken
by registration order. Each handler is awaited before the next starts.

Containment: a handler that raises is logged as a
:class:`~plughost.exceptions.HandlerError` and skipped; the remaining
handlers still run and keep their order.

Snapshots: the registration table is copy-on-write. ``execute`` reads the
table once when it starts, so a ``register``/``unregister_all`` (for example
during a reload) never affects a call already in flight, while later calls
see the new table.
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from plughost.exceptions import HandlerError
from plughost.plugins.awaitables import maybe_await

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100
"""Priority used when a handler is registered without one."""


class HookName(str, enum.Enum):
    """Extension points the host invokes."""

    USER_MESSAGE_FOOTER = "render.user-message-footer"
    ASSISTANT_MESSAGE_FOOTER = "render.assistant-message-footer"
    MESSAGE_CONTENT = "render.message-content"
    MESSAGE_ACTIONS = "message.actions"
    PROCESS_OUTGOING = "message.process-outgoing"
    PROCESS_INCOMING = "message.process-incoming"
    TOOLBAR_BUTTON = "toolbar.button"
    SIDEBAR = "ui.sidebar"
    CHAT_INPUT = "ui.chat-input"
    SETTINGS = "ui.settings"
    SESSION_CREATED = "session.created"
    SESSION_DELETED = "session.deleted"
    SESSION_SWITCHED = "session.switched"
    PROVIDER_BEFORE_SEND = "provider.before-send"
    PROVIDER_AFTER_RECEIVE = "provider.after-receive"


HookHandler = Callable[[dict[str, Any]], Any]


def hook_key(name: HookName | str) -> str:
    """Normalise a hook name to its string form.

    Raises:
        ValueError: If *name* is empty.
    """
    key = name.value if isinstance(name, HookName) else str(name)
    if not key:
        raise ValueError("hook name must not be empty")
    return key


@dataclass(frozen=True)
class HookRegistration:
    """One handler registered for one hook by one plugin."""

    hook_name: str
    owner_plugin_id: str
    priority: int
    handler: HookHandler
    sequence: int

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.priority, self.sequence)


class HookDispatcher:
    """Priority-ordered async event bus.

    Args:
        is_enabled: Called with an owner plugin id at the start of each
            ``execute``; registrations whose owner is not enabled are skipped.
            Defaults to treating every owner as enabled.
        default_priority: Priority used when ``register`` gets ``None``.

    Example::

        dispatcher = HookDispatcher()
        dispatcher.register("render.user-message-footer", "timestamp", footer, priority=10)
        results = await dispatcher.execute("render.user-message-footer", {"message": msg})
    """

    def __init__(
        self,
        is_enabled: Optional[Callable[[str], bool]] = None,
        default_priority: int = DEFAULT_PRIORITY,
    ) -> None:
        self._is_enabled = is_enabled or (lambda _owner: True)
        self._default_priority = default_priority
        self._table: dict[str, tuple[HookRegistration, ...]] = {}
        self._sequence = itertools.count()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        hook_name: HookName | str,
        owner_plugin_id: str,
        handler: HookHandler,
        priority: Optional[int] = None,
    ) -> HookRegistration:
        """Add *handler* for *hook_name* on behalf of *owner_plugin_id*.

        Raises:
            TypeError: If *handler* is not callable or *priority* is not an int.
        """
        if not callable(handler):
            raise TypeError(f"handler for '{hook_name}' must be callable")
        if priority is None:
            priority = self._default_priority
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise TypeError(f"priority for '{hook_name}' must be an integer")

        key = hook_key(hook_name)
        registration = HookRegistration(key, owner_plugin_id, priority, handler, next(self._sequence))
        entries = self._table.get(key, ()) + (registration,)
        self._table[key] = tuple(sorted(entries, key=lambda r: r.sort_key))
        logger.debug(
            "Registered handler for '%s' from '%s' (priority %d)", key, owner_plugin_id, priority
        )
        return registration

    def unregister(self, hook_name: HookName | str, owner_plugin_id: str, handler: HookHandler) -> bool:
        """Remove one owner's registrations of *handler* for *hook_name*."""
        key = hook_key(hook_name)
        entries = self._table.get(key, ())
        kept = tuple(
            r for r in entries if not (r.owner_plugin_id == owner_plugin_id and r.handler == handler)
        )
        if len(kept) == len(entries):
            return False
        self._set(key, kept)
        return True

    def unregister_all(self, owner_plugin_id: str) -> int:
        """Remove every registration owned by *owner_plugin_id*.

        The whole table is swapped in one step, so no ``execute`` can see a
        partially cleaned table.

        Returns:
            The number of registrations removed.
        """
        removed = 0
        table: dict[str, tuple[HookRegistration, ...]] = {}
        for key, entries in self._table.items():
            kept = tuple(r for r in entries if r.owner_plugin_id != owner_plugin_id)
            removed += len(entries) - len(kept)
            if kept:
                table[key] = kept
        self._table = table
        if removed:
            logger.debug("Unregistered %d handler(s) owned by '%s'", removed, owner_plugin_id)
        return removed

    def _set(self, key: str, entries: tuple[HookRegistration, ...]) -> None:
        table = dict(self._table)
        if entries:
            table[key] = entries
        else:
            table.pop(key, None)
        self._table = table

    def registrations(self, hook_name: Optional[HookName | str] = None) -> list[HookRegistration]:
        """Return registrations in execution order, for one hook or all hooks."""
        if hook_name is not None:
            return list(self._table.get(hook_key(hook_name), ()))
        return [r for entries in self._table.values() for r in entries]

    def hook_names(self) -> list[str]:
        return sorted(self._table)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _snapshot(self, hook_name: HookName | str) -> tuple[HookRegistration, ...]:
        entries = self._table.get(hook_key(hook_name), ())
        return tuple(r for r in entries if self._is_enabled(r.owner_plugin_id))

    async def _invoke(self, registration: HookRegistration, context: dict[str, Any]) -> tuple[bool, Any]:
        try:
            return True, await maybe_await(registration.handler(context))
        except Exception as exc:
            error = HandlerError(registration.owner_plugin_id, registration.hook_name, str(exc) or type(exc).__name__)
            error.__cause__ = exc
            logger.warning("%s", error, exc_info=logger.isEnabledFor(logging.DEBUG))
            return False, None

    async def execute_attributed(
        self, hook_name: HookName | str, context: Optional[dict[str, Any]] = None
    ) -> list[tuple[str, Any]]:
        """Like :meth:`execute`, but pairs each result with its owner plugin id."""
        context = {} if context is None else context
        results: list[tuple[str, Any]] = []
        for registration in self._snapshot(hook_name):
            ok, value = await self._invoke(registration, context)
            if ok and value is not None:
                results.append((registration.owner_plugin_id, value))
        return results

    async def execute(self, hook_name: HookName | str, context: Optional[dict[str, Any]] = None) -> list[Any]:
        """Run every enabled handler for *hook_name* in order.

        Returns:
            The non-``None`` results, in execution order. Failed handlers
            contribute nothing.
        """
        return [value for _owner, value in await self.execute_attributed(hook_name, context)]

    async def execute_first(self, hook_name: HookName | str, context: Optional[dict[str, Any]] = None) -> Any:
        """Return the first non-``None`` result, without running later handlers."""
        context = {} if context is None else context
        for registration in self._snapshot(hook_name):
            ok, value = await self._invoke(registration, context)
            if ok and value is not None:
                return value
        return None

    async def execute_chain(
        self, hook_name: HookName | str, value: Any, context: Optional[dict[str, Any]] = None
    ) -> Any:
        """Thread *value* through every handler.

        Each handler receives the context plus the running value under
        ``"value"``. A non-``None`` return of the same kind (a string when the
        running value is a string) replaces the value; failing handlers are
        skipped.
        """
        context = {} if context is None else context
        for registration in self._snapshot(hook_name):
            ok, result = await self._invoke(registration, {**context, "value": value})
            if not ok or result is None:
                continue
            if isinstance(value, str) and not isinstance(result, str):
                logger.warning(
                    "Ignoring non-string result from '%s' for chained hook '%s'",
                    registration.owner_plugin_id,
                    registration.hook_name,
                )
                continue
            value = result
        return value
