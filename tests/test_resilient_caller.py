"""
Tests for the ResilientCaller retry policy and provider routing.

Tests cover:
- Provider lookup table
- Retry on transient statuses with doubling delays
- No retry on terminal statuses and stream errors
- Transport errors
- Stream vs. non-stream routing
- Cancellation
"""

import json

import httpx
import pytest

from clients.base_provider import CallOptions, Message
from clients.claude_client import ClaudeClient
from clients.gemini_client import GeminiClient
from clients.grok_client import GrokClient
from clients.openai_client import OpenAIClient
from models.errors import BatchCancelledError, ConfigError, ProviderHTTPError, ProviderStreamError
from pipeline.config import AISettings, AnalyzerConfig, ProviderName
from pipeline.metrics import TokenMetrics
from pipeline.resilient_caller import PROVIDER_CLIENTS, CancelToken, ResilientCaller

OK_BODY = {"content": [{"type": "text", "text": "resultado"}], "usage": {"input_tokens": 5}}


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedRelay:
    """MockTransport handler replaying a list of responses in order."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls = 0
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        self.paths.append(request.url.path)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _settings(provider=ProviderName.CLAUDE, streaming=False) -> AISettings:
    return AISettings(
        provider=provider,
        models={p: f"{p.value}-model" for p in ProviderName},
        use_streaming=streaming,
        api_keys={p: f"key-{p.value}" for p in ProviderName},
    )


def _caller(relay, settings=None, sleep=None, cancel_token=None, **config) -> ResilientCaller:
    http = httpx.AsyncClient(transport=httpx.MockTransport(relay))
    return ResilientCaller(
        settings or _settings(),
        metrics=TokenMetrics(),
        http_client=http,
        config=AnalyzerConfig(api_base_url="http://relay", **config),
        sleep=sleep or SleepRecorder(),
        cancel_token=cancel_token,
    )


MESSAGES = [Message.user("Analise o processo")]


# =============================================================================
# Test: Provider routing
# =============================================================================


class TestProviderRouting:
    """Tests for adapter selection."""

    def test_lookup_table_complete(self):
        """Every provider has an adapter."""
        assert set(PROVIDER_CLIENTS) == set(ProviderName)
        assert PROVIDER_CLIENTS[ProviderName.CLAUDE] is ClaudeClient
        assert PROVIDER_CLIENTS[ProviderName.GEMINI] is GeminiClient
        assert PROVIDER_CLIENTS[ProviderName.OPENAI] is OpenAIClient
        assert PROVIDER_CLIENTS[ProviderName.GROK] is GrokClient

    def test_client_cached(self):
        """Adapters are built once per provider."""
        caller = _caller(ScriptedRelay())
        assert caller.client_for(ProviderName.GEMINI) is caller.client_for(ProviderName.GEMINI)

    @pytest.mark.asyncio
    async def test_non_stream_endpoint(self):
        """With streaming off, the JSON endpoint is used."""
        relay = ScriptedRelay(httpx.Response(200, json=OK_BODY))
        caller = _caller(relay)
        assert await caller.call(MESSAGES) == "resultado"
        assert relay.paths == ["/api/claude/messages"]

    @pytest.mark.asyncio
    async def test_stream_endpoint_from_settings(self):
        """With streaming on, the stream endpoint is used."""
        relay = ScriptedRelay(
            httpx.Response(200, content=b'data: {"type": "text", "text": "ok"}\n\n')
        )
        caller = _caller(relay, settings=_settings(ProviderName.OPENAI, streaming=True))
        assert await caller.call(MESSAGES) == "ok"
        assert relay.paths == ["/api/openai/stream"]

    @pytest.mark.asyncio
    async def test_per_call_stream_override(self):
        """The stream argument overrides the settings."""
        relay = ScriptedRelay(httpx.Response(200, json=OK_BODY))
        caller = _caller(relay, settings=_settings(streaming=True))
        await caller.call(MESSAGES, stream=False)
        assert relay.paths == ["/api/claude/messages"]

    def test_default_options_use_stream_limits(self):
        """Streaming calls get the larger output limit."""
        caller = _caller(ScriptedRelay(), max_tokens=8000, stream_max_tokens=16000)
        assert caller.build_options(stream=True).max_tokens == 16000
        assert caller.build_options(stream=False).max_tokens == 8000
        assert caller.build_options(stream=False).model == "claude-model"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        """A missing key fails before any request."""
        relay = ScriptedRelay()
        settings = _settings()
        settings.api_keys = {}
        caller = _caller(relay, settings=settings)
        with pytest.raises(ConfigError):
            await caller.call(MESSAGES)
        assert relay.calls == 0


# =============================================================================
# Test: Retry policy
# =============================================================================


class TestRetryPolicy:
    """Tests for retry and backoff."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [1, 2])
    async def test_transient_failures_then_success(self, failures):
        """k transient failures give exactly k doubling delays, then success."""
        relay = ScriptedRelay(
            *[httpx.Response(429, json={"error": "rate limited"}) for _ in range(failures)],
            httpx.Response(200, json=OK_BODY),
        )
        sleep = SleepRecorder()
        caller = _caller(relay, sleep=sleep, initial_delay=3.0)

        assert await caller.call(MESSAGES) == "resultado"
        assert relay.calls == failures + 1
        assert sleep.delays == [3.0 * 2**n for n in range(failures)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 529])
    async def test_retried_statuses(self, status):
        """Each transient status is retried."""
        relay = ScriptedRelay(httpx.Response(status), httpx.Response(200, json=OK_BODY))
        caller = _caller(relay)
        assert await caller.call(MESSAGES) == "resultado"
        assert relay.calls == 2

    @pytest.mark.asyncio
    async def test_exhausted_raises_last_error(self):
        """After the last attempt the last error propagates."""
        relay = ScriptedRelay(
            httpx.Response(503, json={"error": "first"}),
            httpx.Response(503, json={"error": "second"}),
            httpx.Response(529, json={"error": "third"}),
        )
        sleep = SleepRecorder()
        caller = _caller(relay, sleep=sleep, initial_delay=1.0)

        with pytest.raises(ProviderHTTPError) as exc_info:
            await caller.call(MESSAGES)

        assert exc_info.value.status_code == 529
        assert exc_info.value.message == "third"
        assert relay.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_single_attempt_raises_provider_error(self):
        """A non-positive attempt count still makes one call and raises its error."""
        relay = ScriptedRelay(httpx.Response(503, json={"error": "busy"}))
        sleep = SleepRecorder()
        caller = _caller(relay, sleep=sleep, max_attempts=0)

        with pytest.raises(ProviderHTTPError) as exc_info:
            await caller.call(MESSAGES)

        assert exc_info.value.status_code == 503
        assert relay.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    async def test_terminal_status_not_retried(self, status):
        """Non-retryable statuses fail after one attempt with no delay."""
        relay = ScriptedRelay(httpx.Response(status, json={"error": "bad"}))
        sleep = SleepRecorder()
        caller = _caller(relay, sleep=sleep)

        with pytest.raises(ProviderHTTPError):
            await caller.call(MESSAGES)

        assert relay.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_error_retried(self):
        """Connection failures are retried."""
        relay = ScriptedRelay(
            httpx.ConnectError("connection reset"),
            httpx.Response(200, json=OK_BODY),
        )
        sleep = SleepRecorder()
        caller = _caller(relay, sleep=sleep)

        assert await caller.call(MESSAGES) == "resultado"
        assert sleep.delays == [3.0]

    @pytest.mark.asyncio
    async def test_stream_error_not_retried(self):
        """A mid-stream error frame is never retried."""
        relay = ScriptedRelay(
            httpx.Response(
                200,
                content=(
                    b'data: {"type": "text", "text": "{"}\n\n'
                    b'data: {"type": "error", "error": {"message": "Overloaded"}}\n\n'
                ),
            ),
            httpx.Response(200, json=OK_BODY),
        )
        sleep = SleepRecorder()
        caller = _caller(relay, settings=_settings(streaming=True), sleep=sleep)

        with pytest.raises(ProviderStreamError, match="Overloaded"):
            await caller.call(MESSAGES)

        assert relay.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_options_passed_through(self):
        """Explicit options reach the payload."""
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            return httpx.Response(200, json=OK_BODY)

        caller = _caller(handler)
        await caller.call(MESSAGES, options=CallOptions(model="custom", max_tokens=123))
        assert captured[0]["model"] == "custom"
        assert captured[0]["max_tokens"] == 123


# =============================================================================
# Test: Cancellation
# =============================================================================


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancelled_before_attempt(self):
        """A cancelled token stops the call before any request."""
        relay = ScriptedRelay()
        token = CancelToken()
        token.cancel()
        caller = _caller(relay, cancel_token=token)

        with pytest.raises(BatchCancelledError):
            await caller.call(MESSAGES)
        assert relay.calls == 0

    @pytest.mark.asyncio
    async def test_cancelled_during_backoff(self):
        """Cancelling while backing off prevents the next attempt."""
        token = CancelToken()
        relay = ScriptedRelay(httpx.Response(503), httpx.Response(200, json=OK_BODY))

        async def cancelling_sleep(delay: float) -> None:
            token.cancel()

        caller = _caller(relay, sleep=cancelling_sleep, cancel_token=token)

        with pytest.raises(BatchCancelledError):
            await caller.call(MESSAGES)
        assert relay.calls == 1
