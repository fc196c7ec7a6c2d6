"""Typed hook results and the per-result rendering boundary.

Hook handlers return loosely shaped values: primitives, lists, or dicts
tagged with ``type``. This module gives the tags pydantic models and turns
dispatcher output into a flat stream of :class:`RenderOk` /
:class:`RenderError` items, so the host can render each result on its own
and one malformed result never hides its siblings.

Recognised tags: ``text``, ``badge``, ``button``, ``link``, ``icon``,
``container`` (nested ``children``), ``custom`` (opaque component),
``html`` and ``timestamp``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Iterable, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

DEFAULT_MAX_DEPTH = 8
"""Deepest container nesting rendered before the container becomes an error."""


class _ResultBase(BaseModel):
    # Presentation hints such as className/style pass through untouched.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class TextResult(_ResultBase):
    type: Literal["text"] = "text"
    content: str


class BadgeResult(_ResultBase):
    type: Literal["badge"] = "badge"
    content: str


class ButtonResult(_ResultBase):
    type: Literal["button"] = "button"
    label: Optional[str] = None
    content: Optional[str] = None
    title: Optional[str] = None
    disabled: bool = False
    on_click: Optional[Callable[..., Any]] = Field(default=None, alias="onClick", exclude=True)


class LinkResult(_ResultBase):
    type: Literal["link"] = "link"
    href: str
    label: Optional[str] = None
    content: Optional[str] = None
    title: Optional[str] = None
    target: str = "_blank"


class IconResult(_ResultBase):
    type: Literal["icon"] = "icon"
    icon: Optional[str] = None
    content: Optional[str] = None
    title: Optional[str] = None


class ContainerResult(_ResultBase):
    type: Literal["container"] = "container"
    children: list[Any] = Field(default_factory=list)


class CustomResult(_ResultBase):
    type: Literal["custom"] = "custom"
    component: Any = None
    props: dict[str, Any] = Field(default_factory=dict)


class HtmlResult(_ResultBase):
    type: Literal["html"] = "html"
    content: str


class TimestampResult(_ResultBase):
    type: Literal["timestamp"] = "timestamp"
    content: str


HookResult = Annotated[
    Union[
        TextResult,
        BadgeResult,
        ButtonResult,
        LinkResult,
        IconResult,
        ContainerResult,
        CustomResult,
        HtmlResult,
        TimestampResult,
    ],
    Field(discriminator="type"),
]

_RESULT_ADAPTER: TypeAdapter[Any] = TypeAdapter(HookResult)
_RESULT_TYPES = (
    TextResult,
    BadgeResult,
    ButtonResult,
    LinkResult,
    IconResult,
    ContainerResult,
    CustomResult,
    HtmlResult,
    TimestampResult,
)


def parse_result(value: Any) -> Any:
    """Turn one tagged dict into its result model; primitives pass through.

    Raises:
        ValueError: If *value* is neither a primitive, a result model, nor a
            dict with a known ``type`` tag and valid fields.
    """
    if isinstance(value, (str, int, float, bool)) or isinstance(value, _RESULT_TYPES):
        return value
    if isinstance(value, dict):
        tag = value.get("type")
        if not isinstance(tag, str):
            raise ValueError("result object has no 'type' tag")
        try:
            return _RESULT_ADAPTER.validate_python(value)
        except ValidationError as exc:
            problems = "; ".join(e.get("msg", "invalid") for e in exc.errors())
            raise ValueError(f"invalid '{tag}' result: {problems}") from exc
    raise ValueError(f"unsupported result value of type {type(value).__name__}")


@dataclass(frozen=True)
class RenderOk:
    """A renderable result. For containers, ``children`` holds the rendered children."""

    result: Any
    children: tuple["RenderItem", ...] = field(default=())

    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class RenderError:
    """A result that could not be turned into something renderable."""

    message: str

    ok: bool = field(default=False, init=False)


RenderItem = Union[RenderOk, RenderError]


def iter_render_items(results: Iterable[Any], max_depth: int = DEFAULT_MAX_DEPTH) -> Iterator[RenderItem]:
    """Flatten dispatcher output into render items.

    Lists are flattened recursively. ``None`` is skipped. A container's
    children are rendered into :attr:`RenderOk.children`. Nesting (lists or
    containers) deeper than *max_depth* yields a :class:`RenderError` in
    place of the offending value.
    """
    yield from _walk(results, 0, max_depth)


def _walk(values: Iterable[Any], depth: int, max_depth: int) -> Iterator[RenderItem]:
    for value in values:
        yield from _render(value, depth, max_depth)


def _render(value: Any, depth: int, max_depth: int) -> Iterator[RenderItem]:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        if depth >= max_depth:
            yield RenderError(f"result nesting exceeds {max_depth} levels")
            return
        yield from _walk(value, depth + 1, max_depth)
        return
    try:
        parsed = parse_result(value)
    except ValueError as exc:
        yield RenderError(str(exc))
        return
    if isinstance(parsed, ContainerResult):
        if depth >= max_depth:
            yield RenderError(f"container nesting exceeds {max_depth} levels")
            return
        children = tuple(_walk(parsed.children, depth + 1, max_depth))
        yield RenderOk(parsed, children)
        return
    yield RenderOk(parsed)


def render_text(items: Iterable[RenderItem]) -> list[str]:
    """Plain-text lines for render items; used by the CLI ``hook`` command."""
    lines: list[str] = []
    _collect_text(items, 0, lines)
    return lines


def _collect_text(items: Iterable[RenderItem], indent: int, lines: list[str]) -> None:
    pad = "  " * indent
    for item in items:
        if isinstance(item, RenderError):
            lines.append(f"{pad}! {item.message}")
            continue
        result = item.result
        if isinstance(result, ContainerResult):
            lines.append(f"{pad}[container]")
            _collect_text(item.children, indent + 1, lines)
        elif isinstance(result, LinkResult):
            lines.append(f"{pad}[link] {result.label or result.content or result.href} <{result.href}>")
        elif isinstance(result, CustomResult):
            lines.append(f"{pad}[custom] {result.component!r}")
        elif isinstance(result, _ResultBase):
            text = getattr(result, "content", None) or getattr(result, "label", None) or getattr(result, "icon", None)
            lines.append(f"{pad}[{result.type}] {text or ''}".rstrip())
        else:
            lines.append(f"{pad}{result}")
