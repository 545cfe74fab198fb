"""Tests for settings loading."""

import pytest

from ..config import (
    DEFAULT_MAX_TOOL_CALLS,
    DEFAULT_PROVIDER,
    ProviderSettings,
    Settings,
    load_settings,
)

_VARS = [
    "REDLEDGER_PROVIDER", "REDLEDGER_MODEL", "REDLEDGER_TEMPERATURE",
    "REDLEDGER_TEMPERATURE_ENABLED", "REDLEDGER_MAX_TOKENS", "REDLEDGER_MAX_TOKENS_ENABLED",
    "REDLEDGER_MAX_TOOL_CALLS", "REDLEDGER_STRICT_MODE", "REDLEDGER_WORKSPACE",
    "REDLEDGER_ORG_SITE", "TAVILY_API_KEY", "SERPAPI_API_KEY",
    "OPENAI_API_KEY", "OPENAI_BASE_URL", "OPENROUTER_API_KEY", "OPENROUTER_BASE_URL",
    "OLLAMA_HOST", "LMSTUDIO_BASE_URL", "LMSTUDIO_COMPATIBILITY",
]


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so values a .env file loads are undone at teardown
    for name in _VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults(self, clean_env):
        """An empty environment yields the documented defaults."""
        settings = load_settings(env_file=None)

        assert settings.active_provider == DEFAULT_PROVIDER
        assert settings.max_tool_calls == DEFAULT_MAX_TOOL_CALLS == 25
        assert settings.temperature_enabled is True
        assert settings.max_tokens_enabled is False
        assert settings.strict_mode is False
        assert settings.workspace_path is None
        assert settings.has_search_key is False
        assert settings.provider("ollama").base_url == "http://localhost:11434"
        assert settings.provider("openai").base_url == "https://api.openai.com/v1"
        assert settings.provider("openrouter").base_url == "https://openrouter.ai/api/v1"
        assert settings.provider("lmstudio").compatibility == "openai"

    def test_environment_values(self, clean_env):
        """Environment variables populate every field."""
        clean_env.setenv("REDLEDGER_PROVIDER", " OpenAI ")
        clean_env.setenv("REDLEDGER_MODEL", "gpt-4o")
        clean_env.setenv("REDLEDGER_TEMPERATURE", "0.2")
        clean_env.setenv("REDLEDGER_MAX_TOKENS", "1000")
        clean_env.setenv("REDLEDGER_MAX_TOKENS_ENABLED", "yes")
        clean_env.setenv("REDLEDGER_TEMPERATURE_ENABLED", "0")
        clean_env.setenv("REDLEDGER_MAX_TOOL_CALLS", "5")
        clean_env.setenv("REDLEDGER_STRICT_MODE", "true")
        clean_env.setenv("REDLEDGER_WORKSPACE", "/tmp/ws")
        clean_env.setenv("TAVILY_API_KEY", "tvly")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("OLLAMA_HOST", "gpu-box:11434")
        clean_env.setenv("LMSTUDIO_COMPATIBILITY", "LMStudio")

        settings = load_settings(env_file=None)

        assert settings.active_provider == "openai"
        assert settings.default_model == "gpt-4o"
        assert settings.temperature == 0.2
        assert settings.max_tokens == 1000
        assert settings.max_tokens_enabled is True
        assert settings.temperature_enabled is False
        assert settings.max_tool_calls == 5
        assert settings.strict_mode is True
        assert settings.workspace_path == "/tmp/ws"
        assert settings.has_search_key is True
        assert settings.provider("openai").api_key == "sk-test"
        assert settings.provider("ollama").base_url == "http://gpu-box:11434"
        assert settings.provider("lmstudio").compatibility == "lmstudio"

    @pytest.mark.parametrize("name,value", [
        ("REDLEDGER_MAX_TOOL_CALLS", "lots"),
        ("REDLEDGER_MAX_TOOL_CALLS", "0"),
        ("REDLEDGER_TEMPERATURE", "warm"),
        ("REDLEDGER_MAX_TOKENS", "-3"),
    ])
    def test_bad_numbers_fall_back(self, clean_env, name, value):
        """Unparseable or out-of-range numbers keep their defaults."""
        clean_env.setenv(name, value)
        settings = load_settings(env_file=None)
        defaults = Settings()
        assert settings.max_tool_calls == defaults.max_tool_calls
        assert settings.temperature == defaults.temperature
        assert settings.max_tokens == defaults.max_tokens

    def test_dotenv_file(self, clean_env, tmp_path):
        """Values from the .env file are loaded; the environment wins."""
        env_file = tmp_path / ".env"
        env_file.write_text("REDLEDGER_MODEL=from-file\nREDLEDGER_ORG_SITE=example.org\n",
                            encoding="utf-8")
        clean_env.setenv("REDLEDGER_MODEL", "from-env")

        settings = load_settings(env_file=str(env_file))

        assert settings.default_model == "from-env"
        assert settings.org_site == "example.org"


class TestSettings:
    """Tests for the Settings dataclass."""

    def test_unknown_provider_gets_empty_settings(self):
        """provider() never returns None."""
        assert Settings().provider("nope") == ProviderSettings()

    def test_search_key_flag(self):
        """Either search key enables the keyed search tools."""
        assert Settings(serp_api_key="serp").has_search_key
        assert not Settings().has_search_key
