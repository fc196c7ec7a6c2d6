"""Tests for plughost.plugins.results -- tagged results and the render boundary."""

from __future__ import annotations

import pytest

from plughost.plugins.results import (
    DEFAULT_MAX_DEPTH,
    BadgeResult,
    ButtonResult,
    ContainerResult,
    RenderError,
    RenderOk,
    TextResult,
    iter_render_items,
    parse_result,
    render_text,
)


def _nested(levels: int) -> dict:
    value: dict = {"type": "text", "content": "leaf"}
    for _ in range(levels):
        value = {"type": "container", "children": [value]}
    return value


def _errors(items) -> list[str]:
    found = []
    for item in items:
        if isinstance(item, RenderError):
            found.append(item.message)
        else:
            found.extend(_errors(item.children))
    return found


class TestParseResult:
    def test_primitives_pass_through(self):
        assert parse_result("hello") == "hello"
        assert parse_result(3) == 3

    def test_tagged_dicts(self):
        assert isinstance(parse_result({"type": "text", "content": "hi"}), TextResult)
        badge = parse_result({"type": "badge", "content": "new", "className": "pill"})
        assert isinstance(badge, BadgeResult)
        assert badge.model_extra == {"className": "pill"}

    def test_button_accepts_on_click_alias(self):
        button = parse_result({"type": "button", "label": "Copy", "onClick": lambda: None})
        assert isinstance(button, ButtonResult)
        assert callable(button.on_click)

    @pytest.mark.parametrize(
        "value, fragment",
        [
            ({"content": "untagged"}, "no 'type' tag"),
            ({"type": "hologram"}, "invalid 'hologram' result"),
            ({"type": "text"}, "invalid 'text' result"),
            ({"type": "link", "label": "no href"}, "invalid 'link' result"),
            (object(), "unsupported result value of type object"),
        ],
    )
    def test_malformed(self, value, fragment):
        with pytest.raises(ValueError, match=fragment):
            parse_result(value)


class TestIterRenderItems:
    def test_malformed_result_does_not_hide_siblings(self):
        items = list(
            iter_render_items(
                [{"type": "text", "content": "a"}, {"type": "nonsense"}, None, {"type": "badge", "content": "b"}]
            )
        )
        assert [item.ok for item in items] == [True, False, True]
        assert items[0].result.content == "a"
        assert items[2].result.content == "b"

    def test_lists_are_flattened(self):
        items = list(iter_render_items([["a", ["b"]], "c"]))
        assert [item.result for item in items] == ["a", "b", "c"]

    def test_container_children(self):
        [item] = list(iter_render_items([{"type": "container", "children": ["x", {"type": "badge", "content": "y"}]}]))
        assert isinstance(item, RenderOk)
        assert isinstance(item.result, ContainerResult)
        assert [child.result for child in item.children][0] == "x"
        assert item.children[1].result.content == "y"

    def test_depth_limit_is_eight_by_default(self):
        assert DEFAULT_MAX_DEPTH == 8
        assert _errors(iter_render_items([_nested(8)])) == []
        assert _errors(iter_render_items([_nested(9)])) == ["container nesting exceeds 8 levels"]

    def test_depth_limit_is_configurable(self):
        assert _errors(iter_render_items([_nested(2)], max_depth=2)) == []
        assert len(_errors(iter_render_items([_nested(3)], max_depth=2))) == 1

    def test_too_deep_list_nesting(self):
        value: list = ["leaf"]
        for _ in range(3):
            value = [value]
        assert _errors(iter_render_items([value], max_depth=2)) == ["result nesting exceeds 2 levels"]

    def test_error_inside_container_keeps_the_container(self):
        [item] = list(iter_render_items([{"type": "container", "children": [{"type": "bad"}, "fine"]}]))
        assert item.ok
        assert [child.ok for child in item.children] == [False, True]


class TestRenderText:
    def test_lines(self):
        results = [
            "plain",
            {"type": "timestamp", "content": "12:30"},
            {"type": "container", "children": [{"type": "badge", "content": "thinking"}, {"type": "oops"}]},
            {"type": "link", "href": "https://example.org", "label": "docs"},
            {"type": "custom", "component": "widget"},
        ]
        lines = render_text(iter_render_items(results))
        assert lines[:4] == ["plain", "[timestamp] 12:30", "[container]", "  [badge] thinking"]
        assert lines[4].startswith("  ! invalid 'oops' result: ")
        assert lines[5:] == ["[link] docs <https://example.org>", "[custom] 'widget'"]

    def test_empty(self):
        assert render_text([]) == []
