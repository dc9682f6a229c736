"""
Provider-neutral request/response types and the shared adapter base.

Every LLM backend is reached through an API relay that exposes one JSON
endpoint and one server-sent-event endpoint per provider. Adapters translate
the neutral request into the backend's wire format and the backend's
response back into plain text plus token usage.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Union

import httpx

from clients.sse import consume_sse
from models.errors import ProviderHTTPError
from models.usage import Usage

if TYPE_CHECKING:
    from pipeline.metrics import TokenMetrics

logger = logging.getLogger(__name__)


# =============================================================================
# Neutral request / response
# =============================================================================


@dataclass(frozen=True)
class TextPart:
    """A text content part."""

    text: str
    type: Literal["text"] = "text"


ContentPart = Union[str, TextPart, dict[str, Any]]
MessageContent = Union[str, list[ContentPart]]


@dataclass(frozen=True)
class Message:
    """One chat message: role plus plain-text or multi-part content."""

    role: Literal["user", "assistant"]
    content: MessageContent

    @classmethod
    def user(cls, content: MessageContent) -> Message:
        return cls(role="user", content=content)


def part_text(part: ContentPart) -> str:
    """Render one content part as text; unknown part shapes become JSON."""
    if isinstance(part, str):
        return part
    if isinstance(part, TextPart):
        return part.text
    if part.get("type") == "text" and isinstance(part.get("text"), str):
        return part["text"]
    return json.dumps(part, ensure_ascii=False)


def part_to_wire(part: ContentPart) -> Any:
    """Keep text parts and unknown mappings as-is; wrap strings as text parts."""
    if isinstance(part, str):
        return {"type": "text", "text": part}
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    return part


@dataclass(frozen=True)
class CallOptions:
    """
    Per-call knobs.

    Attributes:
        model: Target model identifier.
        max_tokens: Maximum output tokens.
        extended_thinking: Enable an explicit thinking budget (Claude).
        thinking_budget: Token budget for extended thinking.
        disable_thinking: Per-call override that turns extended thinking off.
        thinking_level: Named effort level: minimal, low, medium, high (Gemini).
        reasoning_effort: Named reasoning effort for reasoning models (OpenAI).
    """

    model: str
    max_tokens: int = 8000
    extended_thinking: bool = False
    thinking_budget: int = 10000
    disable_thinking: bool = False
    thinking_level: Literal["minimal", "low", "medium", "high"] = "high"
    reasoning_effort: Literal["minimal", "low", "medium", "high"] = "medium"

    @property
    def use_thinking(self) -> bool:
        return self.extended_thinking and not self.disable_thinking


@dataclass(frozen=True)
class ProviderRequest:
    """Immutable request for a single call attempt."""

    messages: tuple[Message, ...]
    options: CallOptions
    system_prompt: str | None = None


@dataclass(frozen=True)
class ProviderResponse:
    """Plain-text model output plus usage counters."""

    text: str
    usage: Usage = field(default_factory=Usage)


# =============================================================================
# Adapter base
# =============================================================================


class BaseProviderClient(ABC):
    """
    Shared plumbing for the four provider adapters.

    Subclasses define endpoint paths, the request payload and how text and
    usage are read from a JSON response. The base class performs the HTTP
    calls, raises ProviderHTTPError on non-success statuses and records usage
    into the shared TokenMetrics.

    Example:
        async with httpx.AsyncClient() as http:
            client = ClaudeClient(http, base_url="http://localhost:3000")
            response = await client.call(request, api_key)
    """

    PROVIDER: str = ""
    JSON_PATH: str = ""
    STREAM_PATH: str = ""

    DEFAULT_TIMEOUT = 120.0
    DEFAULT_STREAM_TIMEOUT = 600.0

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = "http://localhost:3000",
        metrics: TokenMetrics | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        stream_timeout: float = DEFAULT_STREAM_TIMEOUT,
    ) -> None:
        self._http = http_client
        self.base_url = base_url.rstrip("/")
        self.metrics = metrics
        self.timeout = timeout
        self.stream_timeout = stream_timeout

    # ------------------------------------------------------------------
    # Backend-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def build_payload(self, request: ProviderRequest, api_key: str, stream: bool) -> dict[str, Any]:
        """Translate the neutral request into the backend's JSON body."""

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        """Read text and usage from a non-streaming JSON response."""

    @abstractmethod
    def parse_stream_usage(self, usage: dict[str, Any] | None) -> Usage:
        """Read usage from the `done` frame of a stream."""

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-api-key": api_key}

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def call(self, request: ProviderRequest, api_key: str) -> ProviderResponse:
        """
        Make a non-streaming call.

        Raises:
            ProviderHTTPError: The relay answered with a non-2xx status.
            httpx.TransportError: Network failure or client timeout.
        """
        payload = self.build_payload(request, api_key, stream=False)
        response = await self._http.post(
            f"{self.base_url}{self.JSON_PATH}",
            json=payload,
            headers=self.build_headers(api_key),
            timeout=self.timeout,
        )

        data = self._decode_json(response)
        if not response.is_success:
            raise self._http_error(response.status_code, data)

        result = self.parse_response(data)
        self._record(result.usage, request.options.model)
        return result

    async def call_stream(self, request: ProviderRequest, api_key: str) -> ProviderResponse:
        """
        Make a streaming call and return once the stream completes.

        Streaming keeps bytes flowing on long generations so neither the
        client nor an intermediate proxy times out.

        Raises:
            ProviderHTTPError: The relay answered with a non-2xx status.
            ProviderStreamError: The stream carried an `error` frame.
        """
        payload = self.build_payload(request, api_key, stream=True)
        async with self._http.stream(
            "POST",
            f"{self.base_url}{self.STREAM_PATH}",
            json=payload,
            headers=self.build_headers(api_key),
            timeout=httpx.Timeout(self.timeout, read=self.stream_timeout),
        ) as response:
            if not response.is_success:
                await response.aread()
                raise self._http_error(response.status_code, self._decode_json(response))

            text, usage_data = await consume_sse(response.aiter_lines(), self.PROVIDER)

        result = ProviderResponse(text=text.strip(), usage=self.parse_stream_usage(usage_data))
        self._record(result.usage, request.options.model)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(self, usage: Usage, model: str) -> None:
        if self.metrics is not None:
            self.metrics.add(usage, model)

    @staticmethod
    def _decode_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _http_error(self, status_code: int, data: dict[str, Any]) -> ProviderHTTPError:
        error = data.get("error")
        message = None
        if isinstance(error, dict):
            message = error.get("message")
        elif isinstance(error, str):
            message = error
        error = ProviderHTTPError(status_code, message or f"HTTP {status_code}", self.PROVIDER)
        logger.debug(f"{self.PROVIDER} returned {status_code}: {error.message}")
        return error

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self.base_url!r})"
