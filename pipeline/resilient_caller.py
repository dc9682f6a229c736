"""
Provider calls with retry and exponential backoff.

The ResilientCaller picks the adapter for the configured provider from
PROVIDER_CLIENTS, chooses the streaming or JSON endpoint, and retries
transient failures (rate limits, gateway errors, overload, network errors)
with a doubling delay. Terminal errors and mid-stream error frames surface
after a single attempt.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx

from clients.base_provider import (
    BaseProviderClient,
    CallOptions,
    Message,
    ProviderRequest,
    ProviderResponse,
)
from clients.claude_client import ClaudeClient
from clients.gemini_client import GeminiClient
from clients.grok_client import GrokClient
from clients.openai_client import OpenAIClient
from extraction.config_loader import get_config
from models.errors import (
    BatchCancelledError,
    ProviderError,
    ProviderHTTPError,
    ProviderStreamError,
)
from pipeline.config import AISettings, AnalyzerConfig, ProviderName
from pipeline.metrics import TokenMetrics

logger = logging.getLogger(__name__)

PROVIDER_CLIENTS: dict[ProviderName, type[BaseProviderClient]] = {
    ProviderName.CLAUDE: ClaudeClient,
    ProviderName.GEMINI: GeminiClient,
    ProviderName.OPENAI: OpenAIClient,
    ProviderName.GROK: GrokClient,
}

SleepFn = Callable[[float], Awaitable[Any]]


class CancelToken:
    """Cooperative cancellation flag shared by the executor and the caller."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise BatchCancelledError("Batch cancelled")


class ResilientCaller:
    """
    Call the selected LLM provider, retrying transient failures.

    Attributes:
        settings: Provider, model and credential selection.
        config: Retry policy, token limits and timeouts.
        metrics: Shared token accumulator, updated by the adapters.

    Example:
        async with ResilientCaller(AISettings.from_env()) as caller:
            text = await caller.call([Message.user(prompt)], system_prompt=SYSTEM_PROMPT)
    """

    def __init__(
        self,
        settings: AISettings,
        metrics: TokenMetrics | None = None,
        http_client: httpx.AsyncClient | None = None,
        config: AnalyzerConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self.settings = settings
        self.config = config or AnalyzerConfig()
        self.metrics = metrics if metrics is not None else TokenMetrics()
        self.cancel_token = cancel_token
        self._sleep = sleep
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._clients: dict[ProviderName, BaseProviderClient] = {}

    async def __aenter__(self) -> ResilientCaller:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def client_for(self, provider: ProviderName) -> BaseProviderClient:
        """Get (and cache) the adapter for a provider."""
        if provider not in self._clients:
            client_cls = PROVIDER_CLIENTS[provider]
            kwargs: dict[str, Any] = {
                "base_url": self.config.api_base_url,
                "metrics": self.metrics,
                "timeout": self.config.request_timeout,
                "stream_timeout": self.config.stream_timeout,
            }
            if client_cls is GeminiClient:
                kwargs["thinking_budgets"] = get_config().THINKING.GEMINI_BUDGETS
            elif client_cls is OpenAIClient:
                kwargs["reasoning_models"] = self.settings.reasoning_models
            self._clients[provider] = client_cls(self._http, **kwargs)
        return self._clients[provider]

    def build_options(self, stream: bool) -> CallOptions:
        """Default per-call options from the current settings."""
        return CallOptions(
            model=self.settings.model,
            max_tokens=self.config.stream_max_tokens if stream else self.config.max_tokens,
            extended_thinking=self.settings.extended_thinking,
            thinking_budget=self.settings.thinking_budget,
            thinking_level=self.settings.gemini_thinking_level,
            reasoning_effort=self.settings.openai_reasoning_level,
        )

    async def call(
        self,
        messages: Sequence[Message],
        options: CallOptions | None = None,
        stream: bool | None = None,
        system_prompt: str | None = None,
    ) -> str:
        """
        Call the configured provider and return the model's text.

        Args:
            messages: Conversation to send, usually one user message.
            options: Per-call knobs. Defaults to build_options().
            stream: Use the streaming endpoint. Defaults to
                `settings.use_streaming`.
            system_prompt: Optional system prompt.

        Raises:
            ConfigError: No API key for the provider.
            ProviderHTTPError: Non-retryable status, or retries exhausted.
            ProviderStreamError: The stream reported an error.
            httpx.TransportError: Network failure on the last attempt.
            BatchCancelledError: The cancel token was set.
        """
        use_stream = self.settings.use_streaming if stream is None else stream
        options = options or self.build_options(use_stream)
        response = await self._call_with_retry(
            ProviderRequest(tuple(messages), options, system_prompt), use_stream
        )
        return response.text

    async def _call_with_retry(self, request: ProviderRequest, stream: bool) -> ProviderResponse:
        provider = self.settings.provider
        api_key = self.settings.api_key_for(provider)
        client = self.client_for(provider)
        max_attempts = max(1, self.config.max_attempts)
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            self._check_cancelled()
            try:
                if stream:
                    return await client.call_stream(request, api_key)
                return await client.call(request, api_key)

            except ProviderStreamError as e:
                logger.error(f"{provider.value} stream failed: {e}")
                raise

            except ProviderHTTPError as e:
                if e.status_code not in self.config.retry_on_codes:
                    logger.error(f"{provider.value} call failed with {e.status_code}: {e.message}")
                    raise
                last_error = e

            except httpx.TransportError as e:
                last_error = e

            if attempt < max_attempts - 1:
                delay = self.config.initial_delay * (2**attempt)
                logger.warning(
                    f"{provider.value} attempt {attempt + 1}/{max_attempts} failed, "
                    f"retrying in {delay}s: {last_error}"
                )
                self._check_cancelled()
                await self._sleep(delay)

        logger.error(f"{provider.value} call failed after {max_attempts} attempts: {last_error}")
        if last_error is None:
            raise ProviderError("No provider attempts made", provider.value)
        raise last_error

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def __repr__(self) -> str:
        return f"ResilientCaller(settings={self.settings!r})"
