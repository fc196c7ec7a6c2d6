"""Split reasoning blocks out of incoming model messages.

Reasoning models wrap their chain of thought in ``<think>`` or
``<reasoning>`` tags. The visible answer is what remains; the reasoning is
offered to the UI as a collapsible container under the assistant message.
"""

import re

_BLOCK = re.compile(r"<(think|reasoning)>(.*?)(?:</\1>|$)", re.DOTALL | re.IGNORECASE)


def split_reasoning(text):
    """Return ``(reasoning, answer)``; reasoning is ``""`` when there is none."""
    parts = [m.group(2).strip() for m in _BLOCK.finditer(text)]
    answer = _BLOCK.sub("", text).strip()
    return "\n\n".join(p for p in parts if p), answer


class ReasoningDetector:
    def __init__(self):
        self.last_reasoning = ""

    def on_load(self):
        plugin_api.hooks.register("render.assistant-message-footer", self.reasoning_block, 50)

    def process_incoming(self, message, context=None):
        reasoning, answer = split_reasoning(message)
        self.last_reasoning = reasoning
        return answer if reasoning else message

    def reasoning_block(self, context):
        message = context.get("message") or {}
        reasoning = message.get("reasoning")
        if reasoning is None:
            reasoning, _answer = split_reasoning(message.get("content", ""))
        if not reasoning:
            return None
        return {
            "type": "container",
            "collapsible": True,
            "children": [
                {"type": "badge", "content": "Reasoning"},
                {"type": "text", "content": reasoning},
            ],
        }


plugin = ReasoningDetector
