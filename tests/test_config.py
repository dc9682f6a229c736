"""
Tests for configuration loading.

Tests cover:
- TOML defaults
- Environment overrides
- Concurrency clamping
- Provider parsing and API key lookup
- Secrets kept out of reprs and serialized config
"""

import pytest

from extraction.config_loader import get_config, load_config
from models.errors import ConfigError
from pipeline.config import (
    AISettings,
    AnalyzerConfig,
    ProviderName,
    clamp_concurrency,
    mask_secret,
    parse_provider,
)

ENV_VARS = [
    "ANALISADOR_CONCURRENCY",
    "ANALISADOR_MAX_ATTEMPTS",
    "ANALISADOR_INITIAL_DELAY",
    "ANALISADOR_PROVIDER",
    "ANALISADOR_STREAMING",
    "ANALISADOR_GEMINI_MODEL",
    "ANALISADOR_PERSISTENCE_URL",
    "ANALISADOR_PERSISTENCE_TOKEN",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "XAI_API_KEY",
]


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


# =============================================================================
# Test: TOML file
# =============================================================================


class TestFileConfig:
    """Tests for the packaged config.toml."""

    def test_providers_present(self):
        config = load_config()
        assert set(config.PROVIDERS) == {p.value for p in ProviderName}
        assert config.get_provider("claude").API_KEY_ENV == "ANTHROPIC_API_KEY"
        assert config.get_provider().MODEL == config.PROVIDERS[config.DEFAULT_PROVIDER].MODEL

    def test_retry_defaults(self):
        config = load_config()
        assert config.RETRY.MAX_ATTEMPTS == 3
        assert config.RETRY.INITIAL_DELAY_MS == 3000
        assert config.RETRY.RETRY_ON_CODES == (429, 500, 502, 503, 529)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            get_config().get_provider("mistral")

    def test_custom_file(self, tmp_path):
        """Missing sections fall back to built-in defaults."""
        path = tmp_path / "config.toml"
        path.write_text('[DEFAULT]\nPROVIDER = "grok"\n\n[PROVIDERS.grok]\nMODEL = "x"\n')
        config = load_config(path)
        assert config.DEFAULT_PROVIDER == "grok"
        assert config.get_provider().MODEL == "x"
        assert config.LIMITS.MAX_TOKENS == 8000


# =============================================================================
# Test: AnalyzerConfig
# =============================================================================


class TestAnalyzerConfig:
    """Tests for batch and call-policy settings."""

    def test_from_env_defaults(self, clean_env):
        config = AnalyzerConfig.from_env()
        assert config.concurrency_limit == 3
        assert config.max_attempts == 3
        assert config.initial_delay == 3.0
        assert config.parse_retry_delay == 2.0
        assert config.persistence_url is None

    def test_from_env_overrides(self, clean_env):
        clean_env.setenv("ANALISADOR_CONCURRENCY", "5")
        clean_env.setenv("ANALISADOR_MAX_ATTEMPTS", "4")
        clean_env.setenv("ANALISADOR_INITIAL_DELAY", "0.5")
        clean_env.setenv("ANALISADOR_PERSISTENCE_URL", "https://example.org")

        config = AnalyzerConfig.from_env()

        assert config.concurrency_limit == 5
        assert config.max_attempts == 4
        assert config.initial_delay == 0.5
        assert config.persistence_url == "https://example.org"

    def test_invalid_number_uses_default(self, clean_env):
        clean_env.setenv("ANALISADOR_CONCURRENCY", "muitos")
        assert AnalyzerConfig.from_env().concurrency_limit == 3

    @pytest.mark.parametrize("requested,expected", [(0, 1), (1, 1), (10, 10), (11, 10)])
    def test_concurrency_clamped(self, requested, expected):
        assert AnalyzerConfig(concurrency_limit=requested).concurrency_limit == expected
        assert clamp_concurrency(requested) == expected

    def test_from_dict_ignores_unknown(self):
        config = AnalyzerConfig.from_dict(
            {"max_attempts": 5, "retry_on_codes": [429], "unknown": True}
        )
        assert config.max_attempts == 5
        assert config.retry_on_codes == (429,)

    def test_token_never_exposed(self):
        config = AnalyzerConfig(persistence_token="segredo-123")
        assert "segredo-123" not in repr(config)
        assert "segredo-123" not in str(config.to_dict())
        assert "persistence_token" not in config.to_dict()


# =============================================================================
# Test: AISettings
# =============================================================================


class TestAISettings:
    """Tests for provider selection and credentials."""

    def test_from_env(self, clean_env):
        clean_env.setenv("ANALISADOR_PROVIDER", "Gemini")
        clean_env.setenv("ANALISADOR_GEMINI_MODEL", "gemini-2.5-pro")
        clean_env.setenv("GEMINI_API_KEY", "g-key")

        settings = AISettings.from_env()

        assert settings.provider is ProviderName.GEMINI
        assert settings.model == "gemini-2.5-pro"
        assert settings.api_key_for("gemini") == "g-key"
        assert settings.use_streaming is True

    def test_streaming_off(self, clean_env):
        clean_env.setenv("ANALISADOR_STREAMING", "false")
        assert AISettings.from_env().use_streaming is False

    def test_unknown_provider_env(self, clean_env):
        clean_env.setenv("ANALISADOR_PROVIDER", "mistral")
        with pytest.raises(ConfigError, match="Unknown provider"):
            AISettings.from_env()

    def test_missing_key(self, clean_env):
        settings = AISettings.from_env()
        with pytest.raises(ConfigError, match="claude"):
            settings.api_key_for(ProviderName.CLAUDE)

    def test_model_falls_back_to_file(self):
        settings = AISettings(provider=ProviderName.GROK)
        assert settings.model == get_config().get_provider("grok").MODEL

    def test_with_provider(self):
        settings = AISettings(api_keys={ProviderName.OPENAI: "o-key"})
        switched = settings.with_provider("openai", "gpt-4.1")

        assert switched.provider is ProviderName.OPENAI
        assert switched.model == "gpt-4.1"
        assert settings.provider is ProviderName.CLAUDE
        assert switched.api_key_for("openai") == "o-key"

    def test_keys_masked_in_repr(self):
        settings = AISettings(api_keys={ProviderName.CLAUDE: "sk-ant-secret"})
        text = repr(settings)
        assert "sk-ant-secret" not in text
        assert "claude=***" in text
        assert "gemini=<unset>" in text


class TestHelpers:
    def test_parse_provider(self):
        assert parse_provider(" OPENAI ") is ProviderName.OPENAI
        assert parse_provider(ProviderName.GROK) is ProviderName.GROK

    def test_mask_secret(self):
        assert mask_secret("abc") == "***"
        assert mask_secret("") == "<unset>"
        assert mask_secret(None) == "<unset>"
