"""
Anthropic Claude adapter.

Messages are passed through in Anthropic's native shape; the system prompt
is a top-level field. Extended thinking takes an explicit token budget, and
the output limit is raised so the answer still fits after the thinking
tokens are spent.
"""

from __future__ import annotations

from typing import Any

from clients.base_provider import (
    BaseProviderClient,
    Message,
    ProviderRequest,
    ProviderResponse,
    part_to_wire,
)
from models.usage import Usage

# Room left for the visible answer on top of the thinking budget
THINKING_HEADROOM_TOKENS = 2000

_USAGE_KEYS = {
    "input_keys": ("input_tokens",),
    "output_keys": ("output_tokens",),
    "cache_read_keys": ("cache_read_input_tokens",),
    "cache_write_keys": ("cache_creation_input_tokens",),
}


def to_claude_message(message: Message) -> dict[str, Any]:
    if isinstance(message.content, str):
        return {"role": message.role, "content": message.content}
    return {"role": message.role, "content": [part_to_wire(p) for p in message.content]}


class ClaudeClient(BaseProviderClient):
    """Adapter for the Claude Messages API behind the relay."""

    PROVIDER = "claude"
    JSON_PATH = "/api/claude/messages"
    STREAM_PATH = "/api/claude/stream"

    def build_payload(self, request: ProviderRequest, api_key: str, stream: bool) -> dict[str, Any]:
        options = request.options
        max_tokens = options.max_tokens
        if options.use_thinking:
            max_tokens = max(max_tokens, options.thinking_budget + THINKING_HEADROOM_TOKENS)

        payload: dict[str, Any] = {
            "model": options.model,
            "max_tokens": max_tokens,
            "messages": [to_claude_message(m) for m in request.messages],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        if options.use_thinking:
            payload["thinking"] = {
                "type": "enabled",
                "budget_tokens": options.thinking_budget,
            }
        return payload

    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        # Thinking blocks precede the answer; only the first text block counts.
        text = ""
        for block in data.get("content") or []:
            if isinstance(block, dict) and block.get("type") == "text":
                text = block.get("text") or ""
                break

        return ProviderResponse(
            text=text.strip(),
            usage=Usage.from_mapping(data.get("usage"), **_USAGE_KEYS),
        )

    def parse_stream_usage(self, usage: dict[str, Any] | None) -> Usage:
        return Usage.from_mapping(usage, **_USAGE_KEYS)
