"""Schema-driven per-plugin configuration.

:class:`PluginConfigService` validates values against a plugin's
``configSchema`` and reads/writes the plugin's value map through a
:class:`~plughost.store.KeyValueStore` under ``plugin.config.<id>``.

Writes are all-or-nothing: :meth:`PluginConfigService.save` validates every
given key before anything is written, so an invalid value never reaches the
store and the previously persisted values stay untouched.

Keys that the schema does not declare are stored as given, without
validation.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Mapping, Optional

from plughost.exceptions import ConfigError, ConfigValidationError
from plughost.models import ConfigField, ConfigFieldType, ConfigFormField
from plughost.outcome import Outcome
from plughost.store import KeyValueStore, config_key

logger = logging.getLogger(__name__)

ConfigSchema = Mapping[str, ConfigField]

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def get_defaults(schema: ConfigSchema) -> dict[str, Any]:
    """Return ``{key: default}`` for every field that declares a default."""
    return {key: field.default for key, field in schema.items() if field.default is not None}


def validate(
    schema: ConfigSchema, key: str, value: Any, plugin_id: Optional[str] = None
) -> Optional[ConfigValidationError]:
    """Check *value* against the field *key* of *schema*.

    Returns:
        ``None`` when the value is acceptable (or *key* is not declared),
        otherwise a :class:`ConfigValidationError` describing the problem.
    """
    field = schema.get(key)
    if field is None:
        return None

    def fail(message: str) -> ConfigValidationError:
        return ConfigValidationError(plugin_id, key, f"{field.display_label}: {message}")

    if field.type is ConfigFieldType.STRING:
        if not isinstance(value, str):
            return fail(f"expected a string, got {type(value).__name__}")
    elif field.type is ConfigFieldType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return fail(f"expected a number, got {type(value).__name__}")
        if math.isnan(value) or math.isinf(value):
            return fail("expected a finite number")
        if field.min is not None and value < field.min:
            return fail(f"must be at least {_fmt(field.min)}, got {_fmt(value)}")
        if field.max is not None and value > field.max:
            return fail(f"must be at most {_fmt(field.max)}, got {_fmt(value)}")
    elif field.type is ConfigFieldType.BOOLEAN:
        if not isinstance(value, bool):
            return fail(f"expected a boolean, got {type(value).__name__}")
    elif field.type is ConfigFieldType.CHOICE:
        if value not in (field.options or []):
            choices = ", ".join(repr(o) for o in field.options or [])
            return fail(f"{value!r} is not one of {choices}")
    return None


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def coerce_value(field: ConfigField, text: str) -> Any:
    """Convert command-line text into a value of *field*'s type.

    The result still has to pass :func:`validate`; this only parses.

    Raises:
        ValueError: If *text* cannot be read as the field's type.
    """
    if field.type is ConfigFieldType.NUMBER:
        number = float(text)
        return int(number) if number.is_integer() and "." not in text else number
    if field.type is ConfigFieldType.BOOLEAN:
        lowered = text.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"'{text}' is not a boolean (use true/false)")
    if field.type is ConfigFieldType.CHOICE:
        for option in field.options or []:
            if str(option) == text:
                return option
    return text


def describe_form(schema: ConfigSchema, values: Optional[Mapping[str, Any]] = None) -> list[ConfigFormField]:
    """Return one render descriptor per field, in schema order.

    Args:
        schema: The plugin's config schema.
        values: Current values; missing keys show the field default.
    """
    values = values or {}
    form = []
    for key, field in schema.items():
        form.append(
            ConfigFormField(
                key=key,
                type=field.type,
                label=field.display_label,
                description=field.description,
                default=field.default,
                value=values.get(key, field.default),
                min=field.min,
                max=field.max,
                step=field.step,
                options=list(field.options) if field.options is not None else None,
            )
        )
    return form


class PluginConfigService:
    """Per-plugin config reads and validated writes against a store.

    Schemas are registered per plugin id by the manager when a plugin is
    registered; every method also accepts an explicit ``schema``.

    Args:
        store: Backend holding ``plugin.config.<id>`` value maps.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._schemas: dict[str, dict[str, ConfigField]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    get_defaults = staticmethod(get_defaults)
    validate = staticmethod(validate)
    describe_form = staticmethod(describe_form)

    def register_schema(self, plugin_id: str, schema: ConfigSchema) -> None:
        self._schemas[plugin_id] = dict(schema)

    def unregister_schema(self, plugin_id: str) -> None:
        self._schemas.pop(plugin_id, None)

    def schema_for(self, plugin_id: str) -> dict[str, ConfigField]:
        return self._schemas.get(plugin_id, {})

    def _lock(self, plugin_id: str) -> asyncio.Lock:
        lock = self._locks.get(plugin_id)
        if lock is None:
            lock = self._locks[plugin_id] = asyncio.Lock()
        return lock

    async def _stored(self, plugin_id: str) -> dict[str, Any]:
        stored = await self._store.get(config_key(plugin_id))
        return dict(stored) if isinstance(stored, dict) else {}

    async def load(self, plugin_id: str, schema: Optional[ConfigSchema] = None) -> dict[str, Any]:
        """Return the plugin's value map: defaults overlaid with persisted values."""
        schema = self.schema_for(plugin_id) if schema is None else schema
        values = get_defaults(schema)
        values.update(await self._stored(plugin_id))
        return values

    async def get(
        self, plugin_id: str, key: str, default: Any = None, schema: Optional[ConfigSchema] = None
    ) -> Any:
        """Return one value: persisted, else the schema default, else *default*."""
        schema = self.schema_for(plugin_id) if schema is None else schema
        stored = await self._stored(plugin_id)
        if key in stored:
            return stored[key]
        field = schema.get(key)
        if field is not None and field.default is not None:
            return field.default
        return default

    async def save(
        self, plugin_id: str, values: Mapping[str, Any], schema: Optional[ConfigSchema] = None
    ) -> Outcome:
        """Validate *values* and merge them into the persisted map.

        Every key is validated before anything is written; the first
        failure rejects the whole write.

        Returns:
            ``Outcome.success(value=<effective map>)`` or
            ``Outcome.failure(ConfigValidationError | ConfigError)``.
        """
        schema = self.schema_for(plugin_id) if schema is None else schema
        for key, value in values.items():
            error = validate(schema, key, value, plugin_id)
            if error is not None:
                logger.info("Rejected config for '%s': %s", plugin_id, error.detail)
                return Outcome.failure(error)

        async with self._lock(plugin_id):
            merged = await self._stored(plugin_id)
            merged.update(values)
            try:
                await self._store.set(config_key(plugin_id), merged)
            except (OSError, ConfigError) as exc:
                logger.error("Could not persist config for '%s': %s", plugin_id, exc)
                return Outcome.failure(ConfigError(f"Could not persist config for '{plugin_id}': {exc}"))

        effective = get_defaults(schema)
        effective.update(merged)
        logger.debug("Saved config for '%s': %s", plugin_id, sorted(values))
        return Outcome.success(value=effective)

    async def reset(self, plugin_id: str, schema: Optional[ConfigSchema] = None) -> Outcome:
        """Drop every persisted value so reads fall back to defaults."""
        schema = self.schema_for(plugin_id) if schema is None else schema
        async with self._lock(plugin_id):
            try:
                await self._store.delete(config_key(plugin_id))
            except (OSError, ConfigError) as exc:
                return Outcome.failure(ConfigError(f"Could not reset config for '{plugin_id}': {exc}"))
        return Outcome.success(value=get_defaults(schema))
