"""Typed success/failure value returned by host-facing mutators.

:class:`Outcome` is what :class:`~plughost.plugins.manager.PluginManager`
and :class:`~plughost.plugins.config.PluginConfigService` return instead of
raising, so that a failed ``register`` / ``disable`` / ``save`` is reported
to the caller synchronously and never unwinds host state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from plughost.exceptions import PlugHostError

if TYPE_CHECKING:
    from plughost.plugins.manager import PluginRecord


@dataclass(frozen=True)
class Outcome:
    """Result of a host operation.

    Attributes:
        ok: ``True`` when the operation fully succeeded.
        record: The plugin record the operation touched, when there is one.
            A failed ``register`` caused by an execution error still carries
            the stored record (``loaded=False``, ``last_error`` set).
        error: The typed failure when ``ok`` is ``False``.
        value: Operation-specific payload (e.g. the saved config map).
    """

    ok: bool
    record: Optional["PluginRecord"] = None
    error: Optional[PlugHostError] = None
    value: Any = None

    @classmethod
    def success(cls, record: Optional["PluginRecord"] = None, value: Any = None) -> "Outcome":
        return cls(ok=True, record=record, value=value)

    @classmethod
    def failure(cls, error: PlugHostError, record: Optional["PluginRecord"] = None) -> "Outcome":
        return cls(ok=False, record=record, error=error)

    def raise_for_error(self) -> "Outcome":
        """Raise the carried error, if any; otherwise return ``self``."""
        if self.error is not None:
            raise self.error
        return self

    def __bool__(self) -> bool:
        return self.ok
