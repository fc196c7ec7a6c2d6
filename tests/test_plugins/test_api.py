"""Tests for the plugin_api capability surface."""

from __future__ import annotations

import pytest

from plughost.exceptions import ConfigValidationError, HandlerError
from plughost.models import ConfigField, NotificationLevel, SessionSnapshot, ToolbarButton
from plughost.plugins.api import ConfigAPI, HooksAPI, RecordingHostUI, SessionAPI, UIAPI
from plughost.plugins.config import PluginConfigService


def _handler(context):
    return "x"


class _Sink:
    def __init__(self):
        self.added = []
        self.removed = []

    def sink(self, declaration):
        self.added.append((declaration.hook_name, declaration.priority))

    def unsink(self, declaration):
        self.removed.append(declaration.hook_name)


class TestHooksAPI:
    def test_declarations_before_activation_are_persistent(self):
        hooks = HooksAPI("p", default_priority=50)
        hooks.register("render.user-message-footer", _handler)
        [declaration] = hooks.declarations
        assert declaration.persistent is True
        assert declaration.priority == 50

    def test_activation_replays_and_forwards(self):
        hooks = HooksAPI("p")
        hooks.register("a.hook", _handler, 1)
        sink = _Sink()
        hooks.activate(sink.sink, sink.unsink)
        assert hooks.active
        hooks.register("b.hook", lambda ctx: None, 2)
        assert sink.added == [("a.hook", 1), ("b.hook", 2)]

    def test_deactivation_drops_transient_declarations(self):
        hooks = HooksAPI("p")
        hooks.register("a.hook", _handler)
        sink = _Sink()
        hooks.activate(sink.sink, sink.unsink)
        hooks.register("b.hook", lambda ctx: None)
        hooks.deactivate()
        assert not hooks.active
        assert [d.hook_name for d in hooks.declarations] == ["a.hook"]

    def test_re_registering_updates_priority(self):
        hooks = HooksAPI("p")
        sink = _Sink()
        hooks.activate(sink.sink, sink.unsink)
        hooks.register("a.hook", _handler, 10)
        hooks.register("a.hook", _handler, 3)
        assert len(hooks.declarations) == 1
        assert hooks.declarations[0].priority == 3
        assert sink.removed == ["a.hook"]
        assert sink.added == [("a.hook", 10), ("a.hook", 3)]

    def test_unregister(self):
        hooks = HooksAPI("p")
        hooks.register("a.hook", _handler)
        assert hooks.unregister("a.hook", _handler) is True
        assert hooks.unregister("a.hook", _handler) is False
        assert hooks.declarations == []

    @pytest.mark.parametrize("handler, priority", [("nope", None), (_handler, "high"), (_handler, False)])
    def test_bad_arguments(self, handler, priority):
        with pytest.raises(TypeError):
            HooksAPI("p").register("a.hook", handler, priority)


class TestConfigAPI:
    @pytest.fixture
    def service(self, memory_store):
        service = PluginConfigService(memory_store)
        service.register_schema("p", {"retries": ConfigField(key="retries", type="number", min=1, max=5, default=3)})
        return service

    def test_get_falls_back_to_default_then_argument(self, service):
        api = ConfigAPI("p", service)
        assert api.get("retries") == 3
        assert api.get("unknown", "fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_set_validates_and_refreshes(self, service):
        api = ConfigAPI("p", service, {"retries": 3})
        await api.set("retries", 5)
        assert api.get("retries") == 5
        assert await service.get("p", "retries") == 5

    @pytest.mark.asyncio
    async def test_invalid_set_raises_and_keeps_value(self, service):
        api = ConfigAPI("p", service, {"retries": 2})
        with pytest.raises(ConfigValidationError, match="at most 5"):
            await api.set("retries", 9)
        assert api.get("retries") == 2
        assert await service.load("p") == {"retries": 3}

    def test_refresh_and_all(self, service):
        api = ConfigAPI("p", service)
        api.refresh({"retries": 4})
        assert api.all() == {"retries": 4}


class TestUIAPI:
    def test_add_button_from_mapping(self):
        host = RecordingHostUI()
        ui = UIAPI("p", host)
        button = ui.add_toolbar_button({"id": "go", "label": "Go", "onClick": lambda ctx: "went"})
        assert button.owner == "p"
        assert host.buttons["go"].on_click is not None
        assert ui.button_ids == ["go"]

    def test_add_button_model(self):
        host = RecordingHostUI()
        UIAPI("p", host).add_toolbar_button(ToolbarButton(id="b", label="B", on_click=lambda ctx: 1))
        assert host.buttons["b"].owner == "p"
        assert host.buttons["b"].on_click({}) == 1

    def test_malformed_descriptor(self):
        with pytest.raises(ValueError):
            UIAPI("p", RecordingHostUI()).add_toolbar_button({"label": "no id"})

    def test_remove_only_own_buttons(self):
        host = RecordingHostUI()
        mine, theirs = UIAPI("mine", host), UIAPI("theirs", host)
        mine.add_toolbar_button({"id": "a", "label": "A"})
        theirs.add_toolbar_button({"id": "b", "label": "B"})
        mine.remove_toolbar_button("b")
        assert set(host.buttons) == {"a", "b"}
        mine.cleanup()
        assert set(host.buttons) == {"b"}

    def test_notifications(self):
        host = RecordingHostUI()
        ui = UIAPI("p", host)
        ui.show_notification("saved")
        ui.show_notification("careful", "warning")
        assert host.notifications == [
            ("p", "saved", NotificationLevel.INFO),
            ("p", "careful", NotificationLevel.WARNING),
        ]

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            UIAPI("p", RecordingHostUI()).show_notification("x", "loud")


class TestRecordingHostUI:
    @pytest.mark.asyncio
    async def test_click(self):
        host = RecordingHostUI()

        async def on_click(context):
            return context["who"]

        UIAPI("p", host).add_toolbar_button({"id": "go", "label": "Go", "on_click": on_click})
        assert await host.click("go", {"who": "me"}) == "me"

    @pytest.mark.asyncio
    async def test_click_failure_is_a_handler_error(self):
        host = RecordingHostUI()

        def on_click(context):
            raise RuntimeError("jammed")

        UIAPI("p", host).add_toolbar_button({"id": "go", "label": "Go", "on_click": on_click})
        with pytest.raises(HandlerError, match="jammed") as excinfo:
            await host.click("go")
        assert excinfo.value.plugin_id == "p"

    @pytest.mark.asyncio
    async def test_click_unknown_button(self):
        with pytest.raises(KeyError):
            await RecordingHostUI().click("ghost")


class TestSessionAPI:
    def test_without_provider(self):
        assert SessionAPI().get_current() is None

    def test_dict_is_converted_to_snapshot(self):
        session = SessionAPI(lambda: {"id": "s1", "messages": [{"role": "user", "content": "hi"}]})
        current = session.get_current()
        assert isinstance(current, SessionSnapshot)
        assert current.messages[0].content == "hi"
        with pytest.raises(Exception):
            current.title = "changed"

    def test_snapshot_passes_through(self):
        snapshot = SessionSnapshot(id="s2")
        assert SessionAPI(lambda: snapshot).get_current() is snapshot
