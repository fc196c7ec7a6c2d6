"""Exception hierarchy for plughost.

All exceptions inherit from :class:`PlugHostError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`plughost.exit_codes`.
The top-level error handler in :func:`plughost.app.main` catches
``PlugHostError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Inside the host these exceptions double as *typed failures*: the plugin
manager and the config service hand them back inside an
:class:`~plughost.outcome.Outcome` instead of raising them, so a misbehaving
plugin can never unwind host state.

Subclass hierarchy::

    PlugHostError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- PluginError                 (exit 10)   carries ``plugin_id``
        +-- ManifestValidationError (exit 7)
        +-- ExecutionError          (exit 10)
        +-- HandlerError            (exit 10)
        +-- ConfigValidationError   (exit 6)
        +-- LifecycleError          (exit 5)
        |   +-- CorePluginError     (exit 5)
        |   +-- ReloadNotAllowedError (exit 5)
        +-- DuplicatePluginError    (exit 2)
        +-- PluginNotFoundError     (exit 4)
"""

from __future__ import annotations

from typing import Optional

from plughost.exit_codes import (
    EXIT_CONFIG_VALIDATION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LIFECYCLE_ERROR,
    EXIT_MANIFEST_ERROR,
    EXIT_NOT_FOUND,
    EXIT_PLUGIN_ERROR,
)


class PlugHostError(Exception):
    """Base exception for all plughost errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`plughost.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(PlugHostError):
    """Raised for host configuration problems (invalid JSON, unreadable store files)."""

    exit_code = EXIT_GENERIC_FAILURE


class PluginError(PlugHostError):
    """Base for every failure attributable to a single plugin.

    The message is prefixed with the plugin id so that log lines and
    ``last_error`` strings are self-describing.
    """

    exit_code = EXIT_PLUGIN_ERROR

    def __init__(self, plugin_id: Optional[str], message: str, exit_code: int | None = None):
        self.plugin_id = plugin_id
        self.detail = message
        prefix = f"[{plugin_id}] " if plugin_id else ""
        super().__init__(f"{prefix}{message}", exit_code)


class ManifestValidationError(PluginError):
    """Raised when a manifest is malformed, incomplete, or incompatible with the host.

    Attributes:
        errors: Individual problems found, one string per failed check.
    """

    exit_code = EXIT_MANIFEST_ERROR

    def __init__(self, plugin_id: Optional[str], message: str, errors: Optional[list[str]] = None):
        super().__init__(plugin_id, message)
        self.errors = list(errors or [message])


class ExecutionError(PluginError):
    """Raised when plugin source fails to evaluate, construct, or a method call fails."""

    exit_code = EXIT_PLUGIN_ERROR


class HandlerError(PluginError):
    """A hook handler raised at call time. Logged and excluded from results."""

    exit_code = EXIT_PLUGIN_ERROR

    def __init__(self, plugin_id: Optional[str], hook_name: str, message: str):
        super().__init__(plugin_id, f"handler for '{hook_name}' failed: {message}")
        self.hook_name = hook_name


class ConfigValidationError(PluginError):
    """A configuration value failed its field's constraints.

    Attributes:
        key: The config key that failed, or ``None`` for whole-map problems.
    """

    exit_code = EXIT_CONFIG_VALIDATION_ERROR

    def __init__(self, plugin_id: Optional[str], key: Optional[str], message: str):
        super().__init__(plugin_id, message)
        self.key = key


class LifecycleError(PluginError):
    """A lifecycle method (``on_enable``, ``on_load``...) raised, or a transition was refused."""

    exit_code = EXIT_LIFECYCLE_ERROR


class CorePluginError(LifecycleError):
    """Raised when a caller tries to disable a core plugin."""


class ReloadNotAllowedError(LifecycleError):
    """Raised when a caller tries to reload a bundled (non-external) plugin."""


class DuplicatePluginError(PluginError):
    """Raised when a manifest id is already registered."""

    exit_code = EXIT_INVALID_USAGE


class PluginNotFoundError(PluginError):
    """Raised when an operation names a plugin id that is not registered."""

    exit_code = EXIT_NOT_FOUND
