"""
xAI Grok adapter.

Grok speaks the chat-completions format but expects every message's content
as a single string, so multi-part content is joined with newlines. There is
no reasoning knob: reasoning is chosen by model id (fast vs.
fast-reasoning variants).
"""

from __future__ import annotations

from typing import Any

from clients.base_provider import Message, ProviderRequest, part_text
from clients.openai_client import OpenAIClient


class GrokClient(OpenAIClient):
    """Adapter for Grok chat completions behind the relay."""

    PROVIDER = "grok"
    JSON_PATH = "/api/grok/chat"
    STREAM_PATH = "/api/grok/stream"

    def convert_message(self, message: Message) -> dict[str, Any]:
        if isinstance(message.content, str):
            content = message.content
        else:
            content = "\n".join(part_text(p) for p in message.content)
        return {"role": message.role, "content": content}

    def build_payload(self, request: ProviderRequest, api_key: str, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.options.model,
            "messages": self.build_messages(request),
            "max_tokens": request.options.max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload
