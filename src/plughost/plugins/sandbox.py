"""Restricted evaluation scope for plugin source.

Plugin source runs in a fresh globals dict whose ``__builtins__`` is a
curated subset: no ``open``, ``eval``, ``exec``, ``compile``, ``input`` or
``globals``, and an ``__import__`` that only admits modules on the host's
allowlist. The only host object in scope is the ``plugin_api`` capability
surface injected by the executor.

This is capability limiting inside one process, not an isolation boundary:
it keeps well-meaning plugins on the narrow API and makes accidental host
access fail loudly. It does not stop deliberate escapes through object
introspection.
"""

from __future__ import annotations

import builtins
import logging
from typing import Any, Callable, Iterable

_SAFE_BUILTIN_NAMES = (
    "abs", "all", "any", "ascii", "bin", "bool", "bytearray", "bytes", "callable",
    "chr", "classmethod", "complex", "dict", "divmod", "enumerate", "filter",
    "float", "format", "frozenset", "getattr", "hasattr", "hash", "hex", "id",
    "int", "isinstance", "issubclass", "iter", "len", "list", "map", "max", "min",
    "next", "object", "oct", "ord", "pow", "property", "range", "repr", "reversed",
    "round", "set", "setattr", "slice", "sorted", "staticmethod", "str", "sum",
    "super", "tuple", "type", "zip",
    "__build_class__",
    # exceptions plugins commonly raise or catch
    "ArithmeticError", "AssertionError", "AttributeError", "BaseException",
    "Exception", "ImportError", "IndexError", "KeyError", "LookupError",
    "ModuleNotFoundError", "NameError", "NotImplementedError", "OSError",
    "OverflowError", "RecursionError", "RuntimeError", "StopAsyncIteration",
    "StopIteration", "TimeoutError", "TypeError", "UnicodeError", "ValueError",
    "ZeroDivisionError",
    "DeprecationWarning", "RuntimeWarning", "UserWarning", "Warning",
    "NotImplemented", "Ellipsis", "None", "True", "False",
)


def _make_import(allowed: frozenset[str], plugin_id: str) -> Callable[..., Any]:
    real_import = builtins.__import__

    def restricted_import(name, globals=None, locals=None, fromlist=(), level=0):
        if level != 0:
            raise ImportError(f"plugin '{plugin_id}' may not use relative imports")
        root = name.partition(".")[0]
        if root not in allowed and root != "__future__":
            raise ImportError(f"plugin '{plugin_id}' may not import '{name}'")
        return real_import(name, globals, locals, fromlist, level)

    return restricted_import


def _make_print(plugin_logger: logging.Logger) -> Callable[..., None]:
    def plugin_print(*args: Any, sep: str = " ", **_: Any) -> None:
        plugin_logger.info("%s", sep.join(str(a) for a in args))

    return plugin_print


def build_globals(
    plugin_id: str,
    plugin_api: Any,
    allowed_modules: Iterable[str],
    plugin_logger: logging.Logger,
) -> dict[str, Any]:
    """Return the globals dict plugin source is executed in.

    Args:
        plugin_id: Used for the module ``__name__`` and error messages.
        plugin_api: The capability object bound to the global ``plugin_api``.
        allowed_modules: Top-level module names ``import`` may load.
        plugin_logger: Receives anything the plugin ``print``s.
    """
    safe = {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES if hasattr(builtins, name)}
    safe["__import__"] = _make_import(frozenset(allowed_modules), plugin_id)
    safe["print"] = _make_print(plugin_logger)
    return {
        "__builtins__": safe,
        "__name__": f"plughost_plugin_{plugin_id.replace('-', '_')}",
        "__doc__": None,
        "plugin_api": plugin_api,
    }
