"""
Google Gemini adapter.

Gemini uses `contents` with `user`/`model` roles and a list of `parts` per
message. The relay expects the model id and API key in the body next to the
native request. Thinking is set through a named level mapped to a budget.
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

# Level -> thinking budget; "minimal" sends no thinking config at all
THINKING_BUDGETS: dict[str, int] = {
    "low": 2048,
    "medium": 4096,
    "high": 8192,
}

_USAGE_KEYS = {
    "input_keys": ("promptTokenCount",),
    "output_keys": ("candidatesTokenCount",),
    "cache_read_keys": ("cachedContentTokenCount",),
}

# The relay's `done` frame may already use neutral names
_STREAM_USAGE_KEYS = {
    "input_keys": ("promptTokenCount", "input_tokens"),
    "output_keys": ("candidatesTokenCount", "output_tokens"),
    "cache_read_keys": ("cachedContentTokenCount",),
}


def to_gemini_content(message: Message) -> dict[str, Any]:
    role = "model" if message.role == "assistant" else "user"
    if isinstance(message.content, str):
        parts = [{"text": message.content}]
    else:
        parts = [{"text": part_text(p)} for p in message.content]
    return {"role": role, "parts": parts}


class GeminiClient(BaseProviderClient):
    """Adapter for Gemini generateContent behind the relay."""

    PROVIDER = "gemini"
    JSON_PATH = "/api/gemini/generate"
    STREAM_PATH = "/api/gemini/stream"

    def __init__(self, *args: Any, thinking_budgets: dict[str, int] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.thinking_budgets = thinking_budgets or THINKING_BUDGETS

    def build_headers(self, api_key: str) -> dict[str, str]:
        # The key travels in the body for this relay route
        return {"Content-Type": "application/json"}

    def build_payload(self, request: ProviderRequest, api_key: str, stream: bool) -> dict[str, Any]:
        options = request.options
        generation_config: dict[str, Any] = {"maxOutputTokens": options.max_tokens}

        budget = self.thinking_budgets.get(options.thinking_level)
        if budget is not None and not options.disable_thinking:
            generation_config["thinkingConfig"] = {"thinkingBudget": budget}

        native: dict[str, Any] = {
            "contents": [to_gemini_content(m) for m in request.messages],
            "generationConfig": generation_config,
        }
        if request.system_prompt:
            native["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}

        return {"model": options.model, "apiKey": api_key, "request": native}

    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        candidates = data.get("candidates")
        first = candidates[0] if isinstance(candidates, list) and candidates else None
        content = first.get("content") if isinstance(first, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            parts = []

        # With thinking enabled, thought parts come first and are flagged
        text = ""
        for part in parts:
            if isinstance(part, dict) and "text" in part and not part.get("thought"):
                text = part.get("text") or ""
                break

        return ProviderResponse(
            text=text.strip(),
            usage=Usage.from_mapping(data.get("usageMetadata"), **_USAGE_KEYS),
        )

    def parse_stream_usage(self, usage: dict[str, Any] | None) -> Usage:
        return Usage.from_mapping(usage, **_STREAM_USAGE_KEYS)
