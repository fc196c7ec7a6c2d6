"""Timestamp footer under user messages."""

from datetime import datetime

_FORMATS = {
    "datetime": "%d.%m.%Y %H:%M",
    "date": "%d.%m.%Y",
    "time": "%H:%M",
}


class TimestampPlugin:
    def on_load(self):
        plugin_api.hooks.register("render.user-message-footer", self.footer, 100)

    def can_render(self, content):
        return isinstance(content, dict) and content.get("timestamp") is not None

    def render(self, content):
        return {"type": "timestamp", "content": self.format(content["timestamp"])}

    def footer(self, context):
        message = context.get("message") or {}
        if not self.can_render(message):
            return None
        return self.render(message)

    def format(self, timestamp):
        # Timestamps arrive in milliseconds from chat clients, seconds from Python.
        if timestamp > 1e11:
            timestamp = timestamp / 1000
        moment = datetime.fromtimestamp(timestamp)
        style = plugin_api.config.get("format", "datetime")
        if style == "iso":
            return moment.isoformat(timespec="seconds")
        pattern = _FORMATS.get(style, _FORMATS["datetime"])
        if style != "date" and plugin_api.config.get("showSeconds", True):
            pattern += ":%S"
        return moment.strftime(pattern)


plugin = TimestampPlugin
