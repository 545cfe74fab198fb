"""Web tools: web search, organization search, Wikipedia search, URL fetch.

``web_search`` and ``org_search`` are only offered to the model while a
Tavily or SerpAPI key is configured; ``wiki_search`` and ``fetch_url``
need no key.
"""

from typing import Any, Callable, Dict, List

from ...config import Settings
from ...search import SearchService
from ..args import number_arg, require_object_args, require_string_arg
from ..model_provider.types import ToolDefinition
from ..registry import ToolContext, ToolRegistry


def _query_parameters(query_description: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": query_description},
            "num_results": {
                "type": "number",
                "description": "Number of results to return (1-10, default 5)",
            },
        },
        "required": ["query"],
    }


WEB_SEARCH = ToolDefinition(
    name="web_search",
    description="Search the web for current information. Returns titles, URLs, and snippets.",
    parameters=_query_parameters("The search query"),
)

ORG_SEARCH = ToolDefinition(
    name="org_search",
    description=(
        "Search the web with an optional organization site filter from settings. "
        "Returns titles, URLs, and snippets."
    ),
    parameters=_query_parameters("The search query"),
)

WIKI_SEARCH = ToolDefinition(
    name="wiki_search",
    description=(
        "Search Wikipedia for encyclopedic background information. Returns article "
        "titles, URLs, and summary snippets."
    ),
    parameters=_query_parameters("The Wikipedia search query"),
)

FETCH_URL = ToolDefinition(
    name="fetch_url",
    description=(
        "Fetch and parse a webpage from a URL, returning readable full-page text "
        "content plus a structured links array for follow-up navigation."
    ),
    parameters={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "The target webpage URL (http or https)"},
            "max_chars": {
                "type": "number",
                "description": "Maximum characters to return (1000-100000, default 20000)",
            },
        },
        "required": ["url"],
    },
)


class WebSearchPlugin:
    """Registers the search and fetch tools."""

    def __init__(self, search: SearchService, get_settings: Callable[[], Settings]):
        self._search = search
        self._get_settings = get_settings

    @property
    def name(self) -> str:
        return "web_search"

    def get_tool_definitions(self) -> List[ToolDefinition]:
        return [WEB_SEARCH, ORG_SEARCH, WIKI_SEARCH, FETCH_URL]

    def get_executors(self) -> Dict[str, Callable[[Dict[str, Any], ToolContext], Any]]:
        return {
            "web_search": self._web_search,
            "org_search": self._org_search,
            "wiki_search": self._wiki_search,
            "fetch_url": self._fetch_url,
        }

    def _has_search_key(self) -> bool:
        return self._get_settings().has_search_key

    def register(self, registry: ToolRegistry) -> None:
        executors = self.get_executors()
        keyed = {"web_search", "org_search"}
        for definition in self.get_tool_definitions():
            registry.register(
                definition,
                executors[definition.name],
                self._has_search_key if definition.name in keyed else None,
            )

    @staticmethod
    def _query_args(args: Any, tool_name: str):
        payload = require_object_args(args, tool_name)
        query = require_string_arg(payload, "query", tool_name)
        count = number_arg(payload, "num_results", tool_name,
                           default=5, minimum=1, maximum=10, integer=True)
        return query, int(count)

    def _web_search(self, args: Dict[str, Any], context: ToolContext) -> List[Dict[str, str]]:
        query, count = self._query_args(args, "web_search")
        return self._search.search(query, count)

    def _org_search(self, args: Dict[str, Any], context: ToolContext) -> List[Dict[str, str]]:
        query, count = self._query_args(args, "org_search")
        return self._search.org_search(query, count)

    def _wiki_search(self, args: Dict[str, Any], context: ToolContext) -> List[Dict[str, str]]:
        query, count = self._query_args(args, "wiki_search")
        return self._search.search_wikipedia(query, count)

    def _fetch_url(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        payload = require_object_args(args, "fetch_url")
        url = require_string_arg(payload, "url", "fetch_url")
        max_chars = number_arg(payload, "max_chars", "fetch_url",
                               default=20_000, minimum=1_000, maximum=100_000, integer=True)
        return self._search.fetch_url(url, int(max_chars))


def create_plugin(search: SearchService, get_settings: Callable[[], Settings]) -> WebSearchPlugin:
    """Factory function for plugin creation."""
    return WebSearchPlugin(search, get_settings)
