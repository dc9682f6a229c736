"""
Runtime configuration for the batch analyzer.

Two dataclasses cover the two concerns:

- AnalyzerConfig: batch, retry, timeout and persistence settings
- AISettings: which provider and model to call, thinking knobs, API keys

Defaults come from extraction/config.toml; `from_env()` lets environment
variables (`ANALISADOR_*` plus the providers' usual key variables) override
them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from extraction.config_loader import get_config
from models.errors import ConfigError

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 10
DEFAULT_CONCURRENCY = 3


class ProviderName(str, Enum):
    """Supported LLM backends."""

    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENAI = "openai"
    GROK = "grok"


def clamp_concurrency(value: int) -> int:
    """
    Clamp a requested concurrency limit into the supported range.

    >>> clamp_concurrency(0)
    1
    >>> clamp_concurrency(25)
    10
    """
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, int(value)))


def mask_secret(value: str | None) -> str:
    """Render a secret for logs: only whether it is set, never its content."""
    return "***" if value else "<unset>"


# =============================================================================
# Environment helpers
# =============================================================================


def _get_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def _get_str_or_none(key: str, default: str | None) -> str | None:
    return os.environ.get(key, default) or default


# =============================================================================
# AnalyzerConfig
# =============================================================================


@dataclass
class AnalyzerConfig:
    """
    Batch and call-policy settings.

    Attributes:
        concurrency_limit: Units analysed at once (clamped to 1-10).
        max_attempts: Attempts per provider call, first one included.
        initial_delay: Backoff before the first retry, in seconds. Doubles
            for each further retry.
        retry_on_codes: HTTP statuses that trigger a retry.
        max_parse_retries: Extra calls made when the output cannot be parsed.
        parse_retry_delay: Pause before a parse retry, in seconds.
        max_tokens: Output limit for non-streaming calls.
        stream_max_tokens: Output limit for streaming calls.
        request_timeout: Timeout for non-streaming calls, in seconds.
        stream_timeout: Read timeout for streaming calls, in seconds.
        api_base_url: Base URL of the LLM API relay.
        persistence_url: Base URL of the analyses API. None keeps results
            in memory.
        persistence_token: Bearer token for the analyses API.
        min_text_length: Extracted texts shorter than this are rejected.
    """

    concurrency_limit: int = DEFAULT_CONCURRENCY
    max_attempts: int = 3
    initial_delay: float = 3.0
    retry_on_codes: tuple[int, ...] = field(
        default_factory=lambda: (429, 500, 502, 503, 529)
    )
    max_parse_retries: int = 2
    parse_retry_delay: float = 2.0
    max_tokens: int = 8000
    stream_max_tokens: int = 16000
    request_timeout: float = 120.0
    stream_timeout: float = 600.0
    api_base_url: str = "http://localhost:3000"
    persistence_url: str | None = None
    persistence_token: str | None = None
    min_text_length: int = 100

    def __post_init__(self) -> None:
        self.concurrency_limit = clamp_concurrency(self.concurrency_limit)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert configuration to dictionary for serialization.

        The persistence token is left out.
        """
        return {
            "concurrency_limit": self.concurrency_limit,
            "max_attempts": self.max_attempts,
            "initial_delay": self.initial_delay,
            "retry_on_codes": list(self.retry_on_codes),
            "max_parse_retries": self.max_parse_retries,
            "parse_retry_delay": self.parse_retry_delay,
            "max_tokens": self.max_tokens,
            "stream_max_tokens": self.stream_max_tokens,
            "request_timeout": self.request_timeout,
            "stream_timeout": self.stream_timeout,
            "api_base_url": self.api_base_url,
            "persistence_url": self.persistence_url,
            "min_text_length": self.min_text_length,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyzerConfig:
        """
        Create an AnalyzerConfig from a dictionary.

        Args:
            data: Dictionary containing configuration values. Unknown keys
                are ignored.

        Returns:
            New AnalyzerConfig instance with values from the dictionary.
        """
        if "retry_on_codes" in data:
            codes = data["retry_on_codes"]
            if isinstance(codes, list):
                data = {**data, "retry_on_codes": tuple(codes)}

        known_fields = set(cls.__dataclass_fields__)
        filtered_data = {k: v for k, v in data.items() if k in known_fields}

        return cls(**filtered_data)

    @classmethod
    def from_env(cls) -> AnalyzerConfig:
        """
        Create an AnalyzerConfig from environment variables.

        Environment variables (all optional, defaults from config.toml):
            ANALISADOR_CONCURRENCY: Units analysed at once
            ANALISADOR_MAX_ATTEMPTS: Attempts per provider call
            ANALISADOR_INITIAL_DELAY: First backoff delay in seconds
            ANALISADOR_MAX_PARSE_RETRIES: Extra calls on unparseable output
            ANALISADOR_REQUEST_TIMEOUT: Non-streaming timeout in seconds
            ANALISADOR_STREAM_TIMEOUT: Streaming read timeout in seconds
            ANALISADOR_API_URL: LLM API relay base URL
            ANALISADOR_PERSISTENCE_URL: Analyses API base URL
            ANALISADOR_PERSISTENCE_TOKEN: Analyses API bearer token

        Returns:
            New AnalyzerConfig instance with values from environment.
        """
        file_config = get_config()

        return cls(
            concurrency_limit=_get_int("ANALISADOR_CONCURRENCY", DEFAULT_CONCURRENCY),
            max_attempts=_get_int("ANALISADOR_MAX_ATTEMPTS", file_config.RETRY.MAX_ATTEMPTS),
            initial_delay=_get_float(
                "ANALISADOR_INITIAL_DELAY", file_config.RETRY.INITIAL_DELAY_MS / 1000
            ),
            retry_on_codes=tuple(file_config.RETRY.RETRY_ON_CODES),
            max_parse_retries=_get_int(
                "ANALISADOR_MAX_PARSE_RETRIES", file_config.PARSE.MAX_RETRIES
            ),
            parse_retry_delay=file_config.PARSE.RETRY_DELAY_MS / 1000,
            max_tokens=file_config.LIMITS.MAX_TOKENS,
            stream_max_tokens=file_config.LIMITS.STREAM_MAX_TOKENS,
            request_timeout=_get_float(
                "ANALISADOR_REQUEST_TIMEOUT", file_config.RELAY.REQUEST_TIMEOUT
            ),
            stream_timeout=_get_float(
                "ANALISADOR_STREAM_TIMEOUT", file_config.RELAY.STREAM_TIMEOUT
            ),
            api_base_url=os.environ.get("ANALISADOR_API_URL", file_config.RELAY.BASE_URL),
            persistence_url=_get_str_or_none("ANALISADOR_PERSISTENCE_URL", None),
            persistence_token=_get_str_or_none("ANALISADOR_PERSISTENCE_TOKEN", None),
        )

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"AnalyzerConfig(\n"
            f"  Batch: concurrency={self.concurrency_limit}\n"
            f"  Retry: attempts={self.max_attempts}, initial_delay={self.initial_delay}s, "
            f"codes={list(self.retry_on_codes)}, parse_retries={self.max_parse_retries}\n"
            f"  Calls: max_tokens={self.max_tokens}/{self.stream_max_tokens}, "
            f"timeouts={self.request_timeout}s/{self.stream_timeout}s, api={self.api_base_url}\n"
            f"  Persistence: url={self.persistence_url}, "
            f"token={mask_secret(self.persistence_token)}\n"
            f")"
        )


# =============================================================================
# AISettings
# =============================================================================


@dataclass
class AISettings:
    """
    Provider selection, model ids, thinking knobs and API keys.

    Attributes:
        provider: Backend used for analysis calls.
        models: Model id per provider.
        extended_thinking: Enable an explicit thinking budget (Claude).
        thinking_budget: Token budget for extended thinking.
        gemini_thinking_level: minimal, low, medium or high.
        openai_reasoning_level: Reasoning effort for reasoning models.
        reasoning_models: OpenAI model ids that accept reasoning_effort.
        use_streaming: Use the streaming endpoint by default.
        api_keys: Credential per provider. Never logged.
    """

    provider: ProviderName = ProviderName.CLAUDE
    models: dict[ProviderName, str] = field(default_factory=dict)
    extended_thinking: bool = False
    thinking_budget: int = 10000
    gemini_thinking_level: str = "high"
    openai_reasoning_level: str = "medium"
    reasoning_models: tuple[str, ...] = ("gpt-5.2",)
    use_streaming: bool = True
    api_keys: dict[ProviderName, str] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.provider = parse_provider(self.provider)

    @property
    def model(self) -> str:
        """Model id for the selected provider."""
        return self.model_for(self.provider)

    def model_for(self, provider: ProviderName | str) -> str:
        provider = parse_provider(provider)
        model = self.models.get(provider)
        if model:
            return model
        return get_config().get_provider(provider.value).MODEL

    def api_key_for(self, provider: ProviderName | str) -> str:
        """
        Return the API key for a provider.

        Raises:
            ConfigError: No key is configured for the provider.
        """
        provider = parse_provider(provider)
        key = self.api_keys.get(provider)
        if not key:
            raise ConfigError(f"No API key configured for {provider.value}")
        return key

    def with_provider(self, provider: ProviderName | str, model: str | None = None) -> AISettings:
        """Create a copy targeting another provider, optionally with a model id."""
        provider = parse_provider(provider)
        models = dict(self.models)
        if model:
            models[provider] = model
        return AISettings(
            provider=provider,
            models=models,
            extended_thinking=self.extended_thinking,
            thinking_budget=self.thinking_budget,
            gemini_thinking_level=self.gemini_thinking_level,
            openai_reasoning_level=self.openai_reasoning_level,
            reasoning_models=self.reasoning_models,
            use_streaming=self.use_streaming,
            api_keys=dict(self.api_keys),
        )

    @classmethod
    def from_env(cls) -> AISettings:
        """
        Create AISettings from environment variables.

        Environment variables (all optional):
            ANALISADOR_PROVIDER: claude, gemini, openai or grok
            ANALISADOR_<PROVIDER>_MODEL: Model id override per provider
            ANALISADOR_EXTENDED_THINKING: Enable extended thinking (true/false)
            ANALISADOR_THINKING_BUDGET: Extended thinking budget in tokens
            ANALISADOR_GEMINI_THINKING_LEVEL: minimal, low, medium or high
            ANALISADOR_OPENAI_REASONING_LEVEL: Reasoning effort
            ANALISADOR_STREAMING: Use streaming endpoints (true/false)
            ANTHROPIC_API_KEY, GEMINI_API_KEY, OPENAI_API_KEY, XAI_API_KEY

        Raises:
            ConfigError: ANALISADOR_PROVIDER names an unknown provider.
        """
        file_config = get_config()

        models: dict[ProviderName, str] = {}
        api_keys: dict[ProviderName, str] = {}
        for provider in ProviderName:
            settings = file_config.get_provider(provider.value)
            models[provider] = os.environ.get(
                f"ANALISADOR_{provider.name}_MODEL", settings.MODEL
            )
            key = os.environ.get(settings.API_KEY_ENV) if settings.API_KEY_ENV else None
            if key:
                api_keys[provider] = key

        return cls(
            provider=parse_provider(
                os.environ.get("ANALISADOR_PROVIDER", file_config.DEFAULT_PROVIDER)
            ),
            models=models,
            extended_thinking=_get_bool("ANALISADOR_EXTENDED_THINKING", False),
            thinking_budget=_get_int("ANALISADOR_THINKING_BUDGET", file_config.THINKING.BUDGET),
            gemini_thinking_level=os.environ.get(
                "ANALISADOR_GEMINI_THINKING_LEVEL", file_config.THINKING.GEMINI_LEVEL
            ),
            openai_reasoning_level=os.environ.get(
                "ANALISADOR_OPENAI_REASONING_LEVEL", file_config.REASONING.EFFORT
            ),
            reasoning_models=tuple(file_config.REASONING.MODELS),
            use_streaming=_get_bool("ANALISADOR_STREAMING", True),
            api_keys=api_keys,
        )

    def __repr__(self) -> str:
        keys = ", ".join(
            f"{p.value}={mask_secret(self.api_keys.get(p))}" for p in ProviderName
        )
        return (
            f"AISettings(provider={self.provider.value}, model={self.model}, "
            f"streaming={self.use_streaming}, extended_thinking={self.extended_thinking}, "
            f"keys=[{keys}])"
        )


def parse_provider(value: ProviderName | str) -> ProviderName:
    """
    Normalise a provider name.

    Raises:
        ConfigError: The name is not a supported provider.
    """
    if isinstance(value, ProviderName):
        return value
    try:
        return ProviderName(str(value).strip().lower())
    except ValueError:
        available = ", ".join(p.value for p in ProviderName)
        raise ConfigError(f"Unknown provider '{value}'. Available: {available}") from None
