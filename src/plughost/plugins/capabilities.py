"""Capability traits that plugin instances implement.

A manifest's ``capabilityTypes`` states which roles a plugin plays; each
role maps to a small :class:`~typing.Protocol` here. The host asks
"does this instance implement trait X" through :func:`implements` instead of
probing for attributes ad hoc, and the executor uses
:func:`missing_members` to reject instances that declare a capability they
do not provide.

Methods may be plain functions or coroutines; callers await whichever they
get (see :func:`plughost.plugins.executor.maybe_await`).
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from plughost.models import Capability, ToolDefinition

LIFECYCLE_METHODS = ("on_load", "on_unload", "on_enable", "on_disable", "on_config_change")


@runtime_checkable
class Renderable(Protocol):
    """``render`` capability: turns message content into hook results."""

    def can_render(self, content: Any) -> bool: ...

    def render(self, content: Any) -> Any: ...


@runtime_checkable
class OutgoingTransformer(Protocol):
    """``message-transform`` capability, outgoing half."""

    def process_outgoing(self, message: Any, context: Optional[dict] = None) -> Any: ...


@runtime_checkable
class IncomingTransformer(Protocol):
    """``message-transform`` capability, incoming half."""

    def process_incoming(self, message: Any, context: Optional[dict] = None) -> Any: ...


@runtime_checkable
class Tool(Protocol):
    """``tool`` capability: a callable tool for the model."""

    def get_tool(self) -> ToolDefinition | dict: ...

    def execute(self, params: dict, context: Optional[dict] = None) -> Any: ...


@runtime_checkable
class UIExtension(Protocol):
    """``ui-extension`` capability: a component placed at ``location``."""

    location: str

    def component(self, context: Optional[dict] = None) -> Any: ...


@runtime_checkable
class StorageBackend(Protocol):
    """``storage`` capability: a plugin-provided key-value backend."""

    def save(self, key: str, value: Any) -> Any: ...

    def load(self, key: str) -> Any: ...

    def delete(self, key: str) -> Any: ...

    def list_keys(self) -> Any: ...

    def clear(self) -> Any: ...


_REQUIRED: dict[Capability, tuple[str, ...]] = {
    Capability.RENDER: ("can_render", "render"),
    Capability.TOOL: ("get_tool", "execute"),
    Capability.UI_EXTENSION: ("component",),
    Capability.STORAGE: ("save", "load", "delete", "list_keys", "clear"),
}


def missing_members(obj: Any, capability: Capability) -> list[str]:
    """Return the members *obj* lacks for *capability* (empty when satisfied)."""
    if capability is Capability.MESSAGE_TRANSFORM:
        if _callable_attr(obj, "process_outgoing") or _callable_attr(obj, "process_incoming"):
            return []
        return ["process_outgoing or process_incoming"]

    missing = [name for name in _REQUIRED[capability] if not _callable_attr(obj, name)]
    if capability is Capability.UI_EXTENSION:
        location = _safe_getattr(obj, "location")
        if not isinstance(location, str) or not location:
            missing.insert(0, "location")
    return missing


CAPABILITY_TRAITS: dict[Capability, tuple[type, ...]] = {
    Capability.RENDER: (Renderable,),
    Capability.MESSAGE_TRANSFORM: (OutgoingTransformer, IncomingTransformer),
    Capability.TOOL: (Tool,),
    Capability.UI_EXTENSION: (UIExtension,),
    Capability.STORAGE: (StorageBackend,),
}
"""Traits an instance may satisfy for each capability; one is enough."""


def provides(obj: Any, trait: type) -> bool:
    """``isinstance(obj, trait)`` that treats a raising attribute as absent."""
    try:
        return isinstance(obj, trait)
    except Exception:
        return False


def implements(obj: Any, capability: Capability | str) -> bool:
    """True when *obj* satisfies one of the traits of *capability*."""
    if obj is None:
        return False
    return any(provides(obj, trait) for trait in CAPABILITY_TRAITS[Capability(capability)])


def _safe_getattr(obj: Any, name: str) -> Any:
    # Plugin properties may raise; treat that as "not provided".
    try:
        return getattr(obj, name, None)
    except Exception:
        return None


def _callable_attr(obj: Any, name: str) -> bool:
    return callable(_safe_getattr(obj, name))
