"""
Configuration loader for provider calls.

Loads provider defaults, token limits, retry and parse-retry settings from
the TOML config shipped with the package.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).parent / "config.toml"


@dataclass
class ProviderSettings:
    """Per-provider defaults."""
    MODEL: str
    API_KEY_ENV: str = ""


@dataclass
class RelayConfig:
    """API relay location and timeouts (seconds)."""
    BASE_URL: str = "http://localhost:3000"
    REQUEST_TIMEOUT: float = 120.0
    STREAM_TIMEOUT: float = 600.0


@dataclass
class LimitsConfig:
    """Output token limits for analysis calls."""
    MAX_TOKENS: int = 8000
    STREAM_MAX_TOKENS: int = 16000


@dataclass
class RetryConfig:
    """Retry policy for provider calls."""
    MAX_ATTEMPTS: int = 3
    INITIAL_DELAY_MS: int = 3000
    RETRY_ON_CODES: tuple[int, ...] = (429, 500, 502, 503, 529)


@dataclass
class ParseConfig:
    """Retries when the model output cannot be parsed."""
    MAX_RETRIES: int = 2
    RETRY_DELAY_MS: int = 2000


@dataclass
class ThinkingConfig:
    """Extended thinking defaults."""
    BUDGET: int = 10000
    GEMINI_LEVEL: str = "high"
    GEMINI_BUDGETS: dict[str, int] = field(
        default_factory=lambda: {"low": 2048, "medium": 4096, "high": 8192}
    )


@dataclass
class ReasoningConfig:
    """Reasoning-effort settings for models that accept it."""
    MODELS: tuple[str, ...] = ("gpt-5.2",)
    EFFORT: str = "medium"


@dataclass
class AnalyzerFileConfig:
    """Complete file-based configuration."""
    DEFAULT_PROVIDER: str = "claude"
    PROVIDERS: dict[str, ProviderSettings] = field(default_factory=dict)
    RELAY: RelayConfig = field(default_factory=RelayConfig)
    LIMITS: LimitsConfig = field(default_factory=LimitsConfig)
    RETRY: RetryConfig = field(default_factory=RetryConfig)
    PARSE: ParseConfig = field(default_factory=ParseConfig)
    THINKING: ThinkingConfig = field(default_factory=ThinkingConfig)
    REASONING: ReasoningConfig = field(default_factory=ReasoningConfig)

    def get_provider(self, name: str | None = None) -> ProviderSettings:
        """Get provider settings by name, or the default provider's."""
        key = name or self.DEFAULT_PROVIDER
        if key not in self.PROVIDERS:
            raise ValueError(
                f"Unknown provider '{key}'. "
                f"Available: {list(self.PROVIDERS.keys())}"
            )
        return self.PROVIDERS[key]


def load_config(config_path: Path | None = None) -> AnalyzerFileConfig:
    """Load analyzer config from TOML file."""
    path = config_path or CONFIG_PATH

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    providers: dict[str, ProviderSettings] = {}
    for name, data in raw.get("PROVIDERS", {}).items():
        providers[name] = ProviderSettings(
            MODEL=data.get("MODEL", ""),
            API_KEY_ENV=data.get("API_KEY_ENV", ""),
        )

    relay_data = raw.get("RELAY", {})
    relay = RelayConfig(
        BASE_URL=relay_data.get("BASE_URL", "http://localhost:3000"),
        REQUEST_TIMEOUT=float(relay_data.get("REQUEST_TIMEOUT", 120)),
        STREAM_TIMEOUT=float(relay_data.get("STREAM_TIMEOUT", 600)),
    )

    limits_data = raw.get("LIMITS", {})
    limits = LimitsConfig(
        MAX_TOKENS=limits_data.get("MAX_TOKENS", 8000),
        STREAM_MAX_TOKENS=limits_data.get("STREAM_MAX_TOKENS", 16000),
    )

    retry_data = raw.get("RETRY", {})
    retry = RetryConfig(
        MAX_ATTEMPTS=retry_data.get("MAX_ATTEMPTS", 3),
        INITIAL_DELAY_MS=retry_data.get("INITIAL_DELAY_MS", 3000),
        RETRY_ON_CODES=tuple(retry_data.get("RETRY_ON_CODES", (429, 500, 502, 503, 529))),
    )

    parse_data = raw.get("PARSE", {})
    parse = ParseConfig(
        MAX_RETRIES=parse_data.get("MAX_RETRIES", 2),
        RETRY_DELAY_MS=parse_data.get("RETRY_DELAY_MS", 2000),
    )

    thinking_data = raw.get("THINKING", {})
    thinking = ThinkingConfig(
        BUDGET=thinking_data.get("BUDGET", 10000),
        GEMINI_LEVEL=thinking_data.get("GEMINI_LEVEL", "high"),
        GEMINI_BUDGETS=dict(
            thinking_data.get("GEMINI_BUDGETS", {"low": 2048, "medium": 4096, "high": 8192})
        ),
    )

    reasoning_data = raw.get("REASONING", {})
    reasoning = ReasoningConfig(
        MODELS=tuple(reasoning_data.get("MODELS", ("gpt-5.2",))),
        EFFORT=reasoning_data.get("EFFORT", "medium"),
    )

    return AnalyzerFileConfig(
        DEFAULT_PROVIDER=raw.get("DEFAULT", {}).get("PROVIDER", "claude"),
        PROVIDERS=providers,
        RELAY=relay,
        LIMITS=limits,
        RETRY=retry,
        PARSE=parse,
        THINKING=thinking,
        REASONING=reasoning,
    )


# Singleton config instance
_config: AnalyzerFileConfig | None = None


def get_config() -> AnalyzerFileConfig:
    """Get or load the analyzer config singleton."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(config_path: Path | None = None) -> AnalyzerFileConfig:
    """Force reload of config from file."""
    global _config
    _config = load_config(config_path)
    return _config
