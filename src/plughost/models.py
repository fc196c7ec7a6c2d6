"""Canonical Pydantic models shared across all plughost modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Declaration models** -- parsed from a plugin's ``plugin.json``:
    :class:`Capability`, :class:`Permission`, :class:`ConfigFieldType`,
    :class:`ConfigField`, and :class:`Manifest`.

**Host configuration** -- serialised as JSON in the user's config directory:
    :class:`HostConfig`.

**Capability surface payloads** -- exchanged between plugin code and the host:
    :class:`NotificationLevel`, :class:`ToolbarButton`,
    :class:`MessageSnapshot`, :class:`SessionSnapshot`,
    :class:`ToolDefinition`, :class:`ConfigFormField`, and
    :class:`PluginSummary`.

All models use Pydantic v2. Raw manifests use camelCase keys; every such
field carries a camelCase alias and ``populate_by_name`` so snake_case keys
are accepted too.
"""

from __future__ import annotations

import enum
import re
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from plughost.versioning import SemanticVersion, VersionRange

PLUGIN_ID_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


# --- Declaration Models ---


class Capability(str, enum.Enum):
    """Roles a plugin may declare in ``capabilityTypes``.

    The declared roles decide which methods the host expects the plugin
    instance to implement (see :mod:`plughost.plugins.capabilities`).
    """

    RENDER = "render"
    MESSAGE_TRANSFORM = "message-transform"
    TOOL = "tool"
    STORAGE = "storage"
    UI_EXTENSION = "ui-extension"


CAPABILITY_ALIASES = {
    "renderer": Capability.RENDER.value,
    "message-processor": Capability.MESSAGE_TRANSFORM.value,
}


class Permission(str, enum.Enum):
    """Permissions a manifest may request.

    External plugins must have them granted through the manager's approver
    before they are built. Nothing in the sandbox checks them at call time.
    """

    NETWORK = "network"
    STORAGE = "storage"
    FILESYSTEM = "filesystem"
    CLIPBOARD = "clipboard"
    NOTIFICATIONS = "notifications"
    SYSTEM_COMMANDS = "system-commands"


class ConfigFieldType(str, enum.Enum):
    """Value types a configuration field can hold."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    CHOICE = "choice"


class ConfigField(BaseModel):
    """One entry of a plugin's ``configSchema``.

    Numeric fields may carry ``min``/``max``/``step``; choice fields must
    carry a non-empty ``options`` list. The ``key`` is filled in from the
    schema mapping when the manifest is parsed.

    Example::

        ConfigField(key="retries", type="number", min=1, max=5, default=3)
    """

    model_config = ConfigDict(frozen=True)

    key: str = ""
    type: ConfigFieldType
    label: str = ""
    description: str = ""
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    options: Optional[list[Any]] = None

    @field_validator("type", mode="before")
    @classmethod
    def _accept_select_alias(cls, value: Any) -> Any:
        if value == "select":
            return ConfigFieldType.CHOICE.value
        return value

    @model_validator(mode="after")
    def _check_constraints(self) -> "ConfigField":
        if self.type is ConfigFieldType.NUMBER:
            if self.min is not None and self.max is not None and self.min > self.max:
                raise ValueError(f"field '{self.key}': min ({self.min}) is greater than max ({self.max})")
        if self.type is ConfigFieldType.CHOICE:
            if not self.options:
                raise ValueError(f"field '{self.key}': choice fields require a non-empty 'options' list")
            if self.default is not None and self.default not in self.options:
                raise ValueError(
                    f"field '{self.key}': default {self.default!r} is not one of the options"
                )
        return self

    @property
    def display_label(self) -> str:
        return self.label or self.key


class Manifest(BaseModel):
    """A plugin's immutable declaration, as read from ``plugin.json``.

    Built through :func:`plughost.plugins.manifest.parse_manifest`, which
    turns pydantic's validation errors into a
    :class:`~plughost.exceptions.ManifestValidationError`.

    See Also:
        :class:`ConfigField`: Entries of :attr:`config_schema`.
        :class:`~plughost.versioning.VersionRange`: Parsed
            :attr:`host_version_range`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = Field(min_length=1)
    version: str
    description: str
    author: str
    capability_types: list[Capability] = Field(alias="capabilityTypes", min_length=1)
    host_version_range: str = Field(alias="hostVersionRange")
    homepage: Optional[str] = None
    repository: Optional[str] = None
    license: Optional[str] = None
    dependencies: list[str] = Field(default_factory=list)
    permissions: list[Permission] = Field(default_factory=list)
    config_schema: dict[str, ConfigField] = Field(default_factory=dict, alias="configSchema")
    is_core: bool = Field(default=False, alias="isCore")

    @model_validator(mode="before")
    @classmethod
    def _key_schema_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        for name in ("configSchema", "config_schema"):
            schema = data.get(name)
            if isinstance(schema, dict):
                keyed = {}
                for key, raw in schema.items():
                    if isinstance(raw, dict):
                        raw = {**raw, "key": key}
                    keyed[key] = raw
                data = {**data, name: keyed}
        return data

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not PLUGIN_ID_RE.match(value):
            raise ValueError(f"'{value}' is not a valid plugin id (use lowercase kebab-case)")
        return value

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if not SemanticVersion.is_valid(value):
            raise ValueError(f"'{value}' is not a semantic version (expected MAJOR.MINOR.PATCH)")
        return value

    @field_validator("host_version_range")
    @classmethod
    def _check_range(cls, value: str) -> str:
        VersionRange.parse(value)
        return value

    @field_validator("capability_types", mode="before")
    @classmethod
    def _normalize_capabilities(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return value
        seen: list[Any] = []
        for item in value:
            item = CAPABILITY_ALIASES.get(item, item) if isinstance(item, str) else item
            if item not in seen:
                seen.append(item)
        return seen

    @field_validator("dependencies")
    @classmethod
    def _check_dependencies(cls, value: list[str]) -> list[str]:
        for dep in value:
            if not PLUGIN_ID_RE.match(dep):
                raise ValueError(f"dependency '{dep}' is not a valid plugin id")
        return value

    @model_validator(mode="after")
    def _no_self_dependency(self) -> "Manifest":
        if self.id in self.dependencies:
            raise ValueError(f"plugin '{self.id}' cannot depend on itself")
        return self

    @property
    def version_range(self) -> VersionRange:
        return VersionRange.parse(self.host_version_range)

    def has_capability(self, capability: Capability | str) -> bool:
        return Capability(capability) in self.capability_types


# --- Host Configuration ---


DEFAULT_ALLOWED_MODULES = [
    "asyncio",
    "collections",
    "dataclasses",
    "datetime",
    "enum",
    "functools",
    "html",
    "itertools",
    "json",
    "math",
    "re",
    "string",
    "textwrap",
    "time",
    "typing",
]


class HostConfig(BaseModel):
    """Host-wide configuration persisted at ``~/.config/plughost/config.json``.

    Loaded and saved by :func:`~plughost.config.load_host_config` and
    :func:`~plughost.config.save_host_config`. Environment variables and CLI
    flags override these values; see :func:`~plughost.config.resolve_config`.
    """

    host_version: str = Field(default="1.0.0", description="Version checked against hostVersionRange")
    default_hook_priority: int = Field(default=100, description="Priority when a handler gives none")
    max_result_depth: int = Field(default=8, ge=1, description="Container nesting limit for hook results")
    allowed_modules: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MODULES),
        description="Top-level modules plugin source may import",
    )
    state_backend: Literal["json", "disk", "memory"] = Field(
        default="json", description="Key-value store used for plugin state and config"
    )
    plugin_dirs: list[str] = Field(
        default_factory=list, description="Folders scanned for external plugins"
    )

    @field_validator("host_version")
    @classmethod
    def _check_host_version(cls, value: str) -> str:
        SemanticVersion.parse(value)
        return value


# --- Capability Surface Payloads ---


class NotificationLevel(str, enum.Enum):
    """Severity of a notification shown through ``plugin_api.ui``."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ToolbarButton(BaseModel):
    """A toolbar action contributed by a plugin.

    ``on_click`` is excluded from serialisation; the host UI calls it
    through, for example,
    :meth:`plughost.plugins.api.RecordingHostUI.click`.
    """

    id: str
    label: str
    icon: Optional[str] = None
    tooltip: Optional[str] = None
    on_click: Optional[Callable[..., Any]] = Field(default=None, exclude=True)
    owner: Optional[str] = None


class MessageSnapshot(BaseModel):
    """One message of a :class:`SessionSnapshot`."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: Optional[str] = None
    role: str
    content: str = ""
    timestamp: Optional[float] = None


class SessionSnapshot(BaseModel):
    """Read-only view of the current chat session handed to plugins."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    title: str = ""
    provider: Optional[str] = None
    model: Optional[str] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
    messages: tuple[MessageSnapshot, ...] = ()


class ToolDefinition(BaseModel):
    """A callable tool advertised by a tool-capable plugin."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class ConfigFormField(BaseModel):
    """Render descriptor for one config input widget.

    Produced by :meth:`~plughost.plugins.config.PluginConfigService.describe_form`;
    the host UI turns each descriptor into a widget and renders nothing else.
    """

    key: str
    type: ConfigFieldType
    label: str
    description: str = ""
    default: Any = None
    value: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    options: Optional[list[Any]] = None


class PluginSummary(BaseModel):
    """Serialisable plugin row for settings screens and ``plughost list``."""

    id: str
    name: str
    version: str
    capabilities: list[str]
    enabled: bool
    loaded: bool
    external: bool
    core: bool
    error: Optional[str] = None
