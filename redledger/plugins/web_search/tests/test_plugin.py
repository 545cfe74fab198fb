"""Tests for the web search plugin."""

from unittest.mock import MagicMock

import pytest

from ....config import Settings
from ....errors import RedLedgerError
from ...model_provider.types import ToolCall
from ...registry import ToolRegistry
from ..plugin import create_plugin


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def search():
    service = MagicMock()
    service.search.return_value = [{"title": "t", "url": "u", "snippet": "s"}]
    service.org_search.return_value = []
    service.search_wikipedia.return_value = []
    service.fetch_url.return_value = {"url": "https://example.com"}
    return service


@pytest.fixture
def registry(search, settings):
    registry = ToolRegistry()
    create_plugin(search, lambda: settings).register(registry)
    return registry


class TestWebSearchPlugin:
    """Tests for WebSearchPlugin registration and executors."""

    def test_keyed_tools_follow_settings(self, registry, settings):
        """web_search and org_search appear only while a search key exists."""
        assert registry.enabled_names() == {"wiki_search", "fetch_url"}
        settings.tavily_api_key = "tvly"
        assert registry.enabled_names() == {"web_search", "org_search", "wiki_search", "fetch_url"}

    def test_web_search_defaults(self, registry, search):
        """num_results defaults to 5."""
        result = registry.dispatch(ToolCall("1", "web_search", {"query": " ledgers "}))
        assert result == [{"title": "t", "url": "u", "snippet": "s"}]
        search.search.assert_called_once_with("ledgers", 5)

    def test_num_results_clamped(self, registry, search):
        """num_results is coerced and clamped to 1..10."""
        registry.dispatch(ToolCall("1", "org_search", {"query": "q", "num_results": "25"}))
        search.org_search.assert_called_once_with("q", 10)
        registry.dispatch(ToolCall("2", "wiki_search", {"query": "q", "num_results": 2.7}))
        search.search_wikipedia.assert_called_once_with("q", 2)

    def test_fetch_url_bounds(self, registry, search):
        """max_chars defaults to 20000 and is clamped to 1000..100000."""
        registry.dispatch(ToolCall("1", "fetch_url", {"url": "https://example.com"}))
        search.fetch_url.assert_called_with("https://example.com", 20_000)
        registry.dispatch(ToolCall("2", "fetch_url", {"url": "https://example.com", "max_chars": 5}))
        search.fetch_url.assert_called_with("https://example.com", 1_000)

    @pytest.mark.parametrize("name,args", [
        ("web_search", {}),
        ("wiki_search", {"query": ""}),
        ("fetch_url", {"url": 42}),
        ("org_search", {"query": "q", "num_results": "lots"}),
    ])
    def test_invalid_arguments(self, registry, search, name, args):
        """Bad arguments never reach the search service."""
        with pytest.raises(RedLedgerError):
            registry.dispatch(ToolCall("1", name, args))
        assert not search.method_calls
