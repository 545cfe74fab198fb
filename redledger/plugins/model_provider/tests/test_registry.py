"""Tests for ProviderRegistry."""

import pytest

from ....config import ProviderSettings
from ....errors import ErrorCode, RedLedgerError
from ..lmstudio.provider import LMStudioProvider
from ..ollama.provider import OllamaProvider
from ..openai.provider import OpenAIProvider
from ..openrouter.provider import OpenRouterProvider
from ..registry import ProviderEntry, ProviderRegistry, create_default_registry


class TestProviderRegistry:
    """Tests for registration and lookup."""

    def test_default_registry_contents(self):
        """All four built-in providers are registered, in a stable order."""
        registry = create_default_registry()
        assert [entry.name for entry in registry.list_providers()] == [
            "openai", "openrouter", "ollama", "lmstudio"]
        assert "ollama" in registry
        assert "gemini" not in registry

    @pytest.mark.parametrize("name,cls", [
        ("openai", OpenAIProvider),
        ("openrouter", OpenRouterProvider),
        ("ollama", OllamaProvider),
        ("lmstudio", LMStudioProvider),
    ])
    def test_create_each_provider(self, name, cls):
        """create() builds the matching adapter from provider settings."""
        provider = create_default_registry().create(name, ProviderSettings(api_key="k"))
        assert isinstance(provider, cls)
        assert provider.name == name

    def test_create_passes_base_url(self):
        """A configured base URL reaches the adapter."""
        provider = create_default_registry().create(
            "ollama", ProviderSettings(base_url="http://gpu-box:11434"))
        assert provider.host == "http://gpu-box:11434"

    def test_unknown_provider(self):
        """Unknown names raise INVALID_INPUT."""
        with pytest.raises(RedLedgerError) as exc_info:
            ProviderRegistry().create("gemini")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.message == "Unknown provider: gemini"

    def test_register_replaces(self):
        """Registering a name twice keeps the last entry."""
        registry = ProviderRegistry()
        registry.register(ProviderEntry("echo", "Echo", "", lambda settings: "first"))
        registry.register(ProviderEntry("echo", "Echo 2", "", lambda settings: "second"))
        assert registry.create("echo") == "second"
        assert registry.get("echo").display_name == "Echo 2"
