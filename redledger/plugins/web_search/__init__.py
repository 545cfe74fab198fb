"""Web tools (web_search, org_search, wiki_search, fetch_url)."""

from .plugin import WebSearchPlugin, create_plugin

__all__ = ['WebSearchPlugin', 'create_plugin']
