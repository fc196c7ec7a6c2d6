"""Export chat sessions, from the toolbar or as a model-callable tool."""

import json

FORMATS = ("json", "markdown", "text")
BUTTON_ID = "export-chat"


def _role(message, plain):
    if message.role == "user":
        return "User"
    if message.role == "assistant":
        return "Assistant"
    return message.role.capitalize() if plain else message.role


class MessageExportPlugin:
    def __init__(self):
        self.last_export = None

    def on_enable(self):
        plugin_api.ui.add_toolbar_button(
            {"id": BUTTON_ID, "label": "Export Chat", "icon": "download", "on_click": self.on_click}
        )

    def on_disable(self):
        plugin_api.ui.remove_toolbar_button(BUTTON_ID)

    def on_click(self, context=None):
        session = plugin_api.session.get_current()
        if session is None:
            plugin_api.ui.show_notification("No active session to export", "error")
            return None
        fmt = plugin_api.config.get("defaultFormat", "markdown")
        try:
            self.last_export = self.export(session, fmt)
        except ValueError as exc:
            plugin_api.ui.show_notification(f"Export failed: {exc}", "error")
            return None
        plugin_api.ui.show_notification("Chat exported", "success")
        return self.last_export

    def get_tool(self):
        return {
            "name": "export_chat",
            "description": "Export the current chat session",
            "parameters": {
                "format": {"type": "string", "enum": list(FORMATS), "description": "Export format"},
            },
        }

    def execute(self, params, context=None):
        session = plugin_api.session.get_current()
        if session is None:
            raise RuntimeError("no active session")
        return self.export(session, params.get("format", "json"))

    def export(self, session, fmt):
        if fmt == "json":
            return json.dumps(session.model_dump(mode="json"), indent=2)
        if fmt == "markdown":
            return self.as_markdown(session)
        if fmt == "text":
            return self.as_text(session)
        raise ValueError(f"unsupported format: {fmt}")

    def as_markdown(self, session):
        lines = [f"# {session.title or session.id}", ""]
        lines.append(f"**Provider:** {session.provider or 'Unknown'}")
        lines.append(f"**Model:** {session.model or 'Unknown'}")
        lines += ["", "---", ""]
        for message in session.messages:
            lines += [f"## {_role(message, False)}", "", message.content, ""]
        return "\n".join(lines)

    def as_text(self, session):
        rule = "=" * 50
        lines = [session.title or session.id]
        lines.append(f"Provider: {session.provider or 'Unknown'}")
        lines.append(f"Model: {session.model or 'Unknown'}")
        lines += ["", rule, ""]
        for message in session.messages:
            lines += [f"[{_role(message, True)}]", message.content, "", "-" * 50, ""]
        return "\n".join(lines)


plugin = MessageExportPlugin
