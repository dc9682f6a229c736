"""
OpenAI chat-completions adapter.

The system prompt becomes the first message and content parts are sent as
an array of `{"type": "text"}` objects. `reasoning_effort` is only sent to
models that accept it.
"""

from __future__ import annotations

from typing import Any

from clients.base_provider import (
    BaseProviderClient,
    Message,
    ProviderRequest,
    ProviderResponse,
    part_text,
)
from models.usage import Usage

REASONING_MODELS: tuple[str, ...] = ("gpt-5.2",)

CHAT_USAGE_KEYS = {
    "input_keys": ("prompt_tokens",),
    "output_keys": ("completion_tokens",),
}


def first_choice_text(data: dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    content = (choices[0].get("message") or {}).get("content")
    if isinstance(content, str):
        return content
    # Some models return content as a list of typed blocks
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                return block.get("text") or ""
    return ""


class OpenAIClient(BaseProviderClient):
    """Adapter for OpenAI chat completions behind the relay."""

    PROVIDER = "openai"
    JSON_PATH = "/api/openai/chat"
    STREAM_PATH = "/api/openai/stream"

    def __init__(self, *args: Any, reasoning_models: tuple[str, ...] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.reasoning_models = reasoning_models or REASONING_MODELS

    def convert_message(self, message: Message) -> dict[str, Any]:
        if isinstance(message.content, str):
            return {"role": message.role, "content": message.content}
        return {
            "role": message.role,
            "content": [{"type": "text", "text": part_text(p)} for p in message.content],
        }

    def build_messages(self, request: ProviderRequest) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.extend(self.convert_message(m) for m in request.messages)
        return messages

    def build_payload(self, request: ProviderRequest, api_key: str, stream: bool) -> dict[str, Any]:
        options = request.options
        payload: dict[str, Any] = {
            "model": options.model,
            "messages": self.build_messages(request),
            "max_tokens": options.max_tokens,
        }
        if options.model in self.reasoning_models and not options.disable_thinking:
            payload["reasoning_effort"] = options.reasoning_effort
        if stream:
            payload["stream"] = True
        return payload

    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        return ProviderResponse(
            text=first_choice_text(data).strip(),
            usage=Usage.from_mapping(data.get("usage"), **CHAT_USAGE_KEYS),
        )

    def parse_stream_usage(self, usage: dict[str, Any] | None) -> Usage:
        return Usage.from_mapping(usage, **CHAT_USAGE_KEYS)
