"""Web search and page fetching for the search tools.

Backends:
- Tavily (preferred) and SerpAPI (fallback) for general web search
- The same search scoped to the configured organization site
- Wikipedia via the MediaWiki search + extracts API
- Plain HTTP fetch with BeautifulSoup text and link extraction

All network access goes through one proxy-aware ``requests.Session``.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from .config import Settings
from .errors import ErrorCode, RedLedgerError
from .http import get_requests_kwargs, get_requests_session
from .trace import trace

logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"
SERPAPI_URL = "https://serpapi.com/search"
WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_ARTICLE_URL = "https://en.wikipedia.org/wiki/"

USER_AGENT = "RedLedger/1.0"
SEARCH_TIMEOUT = 15.0
FETCH_TIMEOUT = 20.0
MAX_FETCH_BYTES = 5_000_000
MAX_LINKS = 200
WIKI_SNIPPET_CHARS = 800

MIN_RESULTS, MAX_RESULTS = 1, 10
MIN_FETCH_CHARS, MAX_FETCH_CHARS = 1_000, 100_000

_BLOCK_TAGS = ["script", "style", "noscript", "svg", "iframe"]
_HTML_TAG = re.compile(r"<[^>]*>")
_SITE_OPERATOR = re.compile(r"\bsite:", re.IGNORECASE)
_URL_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)

SearchResult = Dict[str, str]


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def normalize_org_site(org_site: Optional[str]) -> Optional[str]:
    """Reduce a configured org site (URL, host or ``site:host``) to a hostname."""
    if not org_site or not org_site.strip():
        return None
    value = re.sub(r"^site:", "", org_site.strip(), flags=re.IGNORECASE).strip()
    if not value:
        return None
    token = value.split()[0]
    candidate = token if _URL_SCHEME.match(token) else f"https://{token}"
    host = (urlparse(candidate).hostname or "").strip().lower()
    if host:
        return host
    return token.split("/")[0].strip().lower() or None


def apply_site_operator(query: str, org_site: Optional[str]) -> str:
    """Append ``site:<host>`` unless the query already scopes itself."""
    query = query.strip()
    site = normalize_org_site(org_site)
    if not site or _SITE_OPERATOR.search(query):
        return query
    if not query:
        return f"site:{site}"
    return f"{query} site:{site}"


def resolve_fetchable_url(href: str, base_url: str) -> Optional[str]:
    """Absolute http(s) URL for an anchor href, without fragment; None to skip."""
    href = (href or "").strip()
    if not href or href.startswith("#"):
        return None
    try:
        absolute = urljoin(base_url, href)
    except ValueError:
        return None
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return urldefrag(absolute)[0]


class SearchService:
    """Search and fetch backends behind the web tools.

    Args:
        get_settings: Returns current settings (API keys, org site).
        session: requests.Session; defaults to a proxy-aware one.
    """

    def __init__(
        self,
        get_settings: Callable[[], Settings],
        session: Optional[requests.Session] = None,
    ):
        self._get_settings = get_settings
        self._session = session or get_requests_session()

    # --- Web search ---

    def search(self, query: str, num_results: int = 5) -> List[SearchResult]:
        """Web search via Tavily, falling back to SerpAPI.

        Raises:
            RedLedgerError: API_ERROR when no backend is configured or every
                configured backend failed.
        """
        settings = self._get_settings()
        count = _clamp(num_results, MIN_RESULTS, MAX_RESULTS)
        trace("Search", f"search {query!r} (n={count})")

        if settings.tavily_api_key:
            try:
                return self._search_tavily(query, count, settings.tavily_api_key)
            except Exception as exc:
                logger.warning("Tavily search failed: %s", exc)
                if not settings.serp_api_key:
                    raise RedLedgerError(
                        ErrorCode.API_ERROR,
                        "Tavily search failed and no SerpAPI key is configured.",
                    ) from exc

        if settings.serp_api_key:
            return self._search_serpapi(query, count, settings.serp_api_key)

        raise RedLedgerError(
            ErrorCode.API_ERROR,
            "No search API key configured. Add a Tavily or SerpAPI key in Settings.",
        )

    def org_search(self, query: str, num_results: int = 5) -> List[SearchResult]:
        """Web search restricted to the configured organization site."""
        scoped = apply_site_operator(query, self._get_settings().org_site)
        return self.search(scoped, num_results)

    def _search_tavily(self, query: str, count: int, api_key: str) -> List[SearchResult]:
        response = self._session.post(
            TAVILY_URL,
            json={
                "api_key": api_key,
                "query": query,
                "max_results": count,
                "search_depth": "basic",
            },
            timeout=SEARCH_TIMEOUT,
            **get_requests_kwargs(TAVILY_URL),
        )
        response.raise_for_status()
        results = [
            {
                "title": item.get("title") or "",
                "url": item.get("url") or "",
                "snippet": item.get("content") or "",
            }
            for item in (response.json() or {}).get("results") or []
        ]
        return results[:count]

    def _search_serpapi(self, query: str, count: int, api_key: str) -> List[SearchResult]:
        try:
            response = self._session.get(
                SERPAPI_URL,
                params={"q": query, "api_key": api_key, "num": count, "engine": "google"},
                timeout=SEARCH_TIMEOUT,
                **get_requests_kwargs(SERPAPI_URL),
            )
            response.raise_for_status()
            payload = response.json() or {}
        except requests.RequestException as exc:
            raise RedLedgerError(ErrorCode.API_ERROR, f"SerpAPI search failed: {exc}") from exc

        results = [
            {
                "title": item.get("title") or "",
                "url": item.get("link") or "",
                "snippet": item.get("snippet") or "",
            }
            for item in payload.get("organic_results") or []
        ]
        return results[:count]

    # --- Wikipedia ---

    def search_wikipedia(self, query: str, num_results: int = 5) -> List[SearchResult]:
        """Search Wikipedia and attach each hit's intro extract."""
        count = _clamp(num_results, MIN_RESULTS, MAX_RESULTS)
        headers = {"User-Agent": USER_AGENT}
        kwargs = get_requests_kwargs(WIKIPEDIA_API_URL)

        try:
            search_response = self._session.get(
                WIKIPEDIA_API_URL,
                params={
                    "action": "query",
                    "list": "search",
                    "srsearch": query,
                    "srlimit": count,
                    "format": "json",
                },
                headers=headers,
                timeout=SEARCH_TIMEOUT,
                **kwargs,
            )
            search_response.raise_for_status()
            items = ((search_response.json() or {}).get("query") or {}).get("search") or []
            if not items:
                return []

            extract_response = self._session.get(
                WIKIPEDIA_API_URL,
                params={
                    "action": "query",
                    "prop": "extracts",
                    "exintro": 1,
                    "explaintext": 1,
                    "pageids": "|".join(str(item.get("pageid")) for item in items),
                    "format": "json",
                },
                headers=headers,
                timeout=SEARCH_TIMEOUT,
                **kwargs,
            )
            extract_response.raise_for_status()
            pages = ((extract_response.json() or {}).get("query") or {}).get("pages") or {}
        except requests.RequestException as exc:
            raise RedLedgerError(ErrorCode.API_ERROR, f"Wikipedia search failed: {exc}") from exc

        results = []
        for item in items:
            title = item.get("title") or ""
            snippet = _HTML_TAG.sub("", item.get("snippet") or "")
            extract = (pages.get(str(item.get("pageid"))) or {}).get("extract") or ""
            results.append({
                "title": title,
                "url": WIKIPEDIA_ARTICLE_URL + quote(title.replace(" ", "_")),
                "snippet": (extract or snippet)[:WIKI_SNIPPET_CHARS],
            })
        return results

    # --- URL fetching ---

    def fetch_url(self, url: str, max_chars: int = 20_000) -> Dict[str, Any]:
        """Fetch a text page and return readable content plus its links.

        Returns:
            Dict with url, title, content, links, truncated, contentType.

        Raises:
            RedLedgerError: INVALID_INPUT for bad or non-http(s) URLs,
                API_ERROR for HTTP failures and non-text content.
        """
        parsed = urlparse(url.strip())
        if not parsed.scheme or not parsed.netloc:
            raise RedLedgerError(ErrorCode.INVALID_INPUT, "Invalid URL")
        if parsed.scheme not in ("http", "https"):
            raise RedLedgerError(ErrorCode.INVALID_INPUT,
                                 "Only http:// and https:// URLs are supported")

        target = parsed.geturl()
        bounded = _clamp(max_chars, MIN_FETCH_CHARS, MAX_FETCH_CHARS)
        trace("Search", f"fetch {target} (max_chars={bounded})")

        try:
            response = self._session.get(
                target,
                headers={"User-Agent": USER_AGENT},
                timeout=FETCH_TIMEOUT,
                stream=True,
                **get_requests_kwargs(target),
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RedLedgerError(ErrorCode.NETWORK_ERROR, f"Fetch failed: {exc}") from exc

        try:
            content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip().lower()
            if not content_type.startswith("text/"):
                raise RedLedgerError(ErrorCode.API_ERROR,
                                     f"Unsupported content type: {content_type or 'unknown'}")
            raw = self._read_limited(response)
        finally:
            response.close()

        final_url = str(getattr(response, "url", None) or target)
        if "text/html" in content_type:
            title, text, links = self._extract_html(raw, final_url)
        else:
            title, text, links = "", raw.strip(), []

        truncated = len(text) > bounded
        return {
            "url": final_url,
            "title": title,
            "content": text[:bounded] if truncated else text,
            "links": links,
            "truncated": truncated,
            "contentType": content_type,
        }

    @staticmethod
    def _read_limited(response: Any) -> str:
        body = b""
        for block in response.iter_content(chunk_size=65536):
            body += block
            if len(body) > MAX_FETCH_BYTES:
                raise RedLedgerError(ErrorCode.API_ERROR, "Response body too large")
        encoding = response.encoding or "utf-8"
        return body.decode(encoding, errors="replace")

    @staticmethod
    def _extract_html(html: str, base_url: str):
        soup = BeautifulSoup(html, "html.parser")
        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if title_tag else ""

        body = soup.body or soup
        for tag in body.find_all(_BLOCK_TAGS):
            tag.decompose()

        links = []
        seen = set()
        origin = "{0.scheme}://{0.netloc}".format(urlparse(base_url))
        for anchor in body.find_all("a", href=True):
            resolved = resolve_fetchable_url(anchor["href"], base_url)
            if not resolved:
                continue
            text = anchor.get_text(" ", strip=True)
            if resolved not in seen and len(links) < MAX_LINKS:
                seen.add(resolved)
                links.append({
                    "text": text or resolved,
                    "url": resolved,
                    "isInternal": resolved == origin or resolved.startswith(origin + "/"),
                })
            # Inline the target so the model can follow links from the prose.
            anchor.replace_with(f"{text} ({resolved})" if text else resolved)

        text = body.get_text("\n")
        text = re.sub(r"[ \t]+\n", "\n", text.replace("\r\n", "\n"))
        text = re.sub(r"[ \t]{2,}", " ", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return title, text.strip(), links
