"""Proxy configuration for the requests sessions used by providers and tools.

Local model servers (Ollama, LM Studio) usually listen on loopback while
web search goes out through whatever proxy the desktop is configured
with, so bypass decisions are made per URL:

- Loopback hosts (localhost, 127.0.0.0/8, ::1) never use a proxy.
- REDLEDGER_NO_PROXY lists hosts that bypass the proxy by exact match.
- NO_PROXY / no_proxy follow the usual suffix-matching convention.
"""

import ipaddress
import logging
import os
import urllib.parse
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

ENV_HTTPS_PROXY = "HTTPS_PROXY"
ENV_HTTP_PROXY = "HTTP_PROXY"
ENV_NO_PROXY = "NO_PROXY"
ENV_REDLEDGER_NO_PROXY = "REDLEDGER_NO_PROXY"
ENV_CA_BUNDLE_VARS = ("REQUESTS_CA_BUNDLE", "SSL_CERT_FILE")
_PROXY_VARS = (ENV_HTTPS_PROXY, ENV_HTTPS_PROXY.lower(), ENV_HTTP_PROXY, ENV_HTTP_PROXY.lower())


def get_proxy_url() -> Optional[str]:
    """First proxy URL set in HTTPS_PROXY / HTTP_PROXY (either case), else None."""
    return next((os.environ[var] for var in _PROXY_VARS if os.environ.get(var)), None)


def _split_env_list(value: str) -> List[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def _get_exact_no_proxy_hosts() -> List[str]:
    return _split_env_list(os.environ.get(ENV_REDLEDGER_NO_PROXY, ""))


def _get_no_proxy_entries() -> List[str]:
    value = os.environ.get(ENV_NO_PROXY) or os.environ.get(ENV_NO_PROXY.lower(), "")
    return _split_env_list(value or "")


def _is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _matches_no_proxy(host: str, port: Optional[int], entry: str) -> bool:
    """Check if a host[:port] matches a single NO_PROXY entry.

    - '*' matches everything
    - 'host:port' matches only when both host and port match
    - 'example.com' and '.example.com' match the domain and its subdomains
    """
    if entry == "*":
        return True

    entry_host = entry
    entry_port = None
    if ":" in entry:
        head, _, tail = entry.rpartition(":")
        if tail.isdigit():
            entry_host, entry_port = head, int(tail)

    if entry_port is not None and port != entry_port:
        return False

    bare = entry_host.lstrip(".")
    return host == bare or host.endswith("." + bare)


def should_bypass_proxy(url: str) -> bool:
    """Check if a URL should bypass the configured proxy.

    Args:
        url: The URL to check.

    Returns:
        True for loopback hosts and hosts listed in REDLEDGER_NO_PROXY or
        NO_PROXY.
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname
    if not host:
        return False

    host = host.lower()
    if _is_loopback(host):
        return True

    if host in _get_exact_no_proxy_hosts():
        return True

    return any(_matches_no_proxy(host, parsed.port, entry)
               for entry in _get_no_proxy_entries())


def get_requests_session() -> requests.Session:
    """Create a requests Session with CA bundle configuration applied.

    Standard proxy variables are honoured by requests itself; use
    :func:`get_requests_kwargs` per call for the bypass rules above.

    Returns:
        Configured requests.Session.
    """
    session = requests.Session()

    for var in ENV_CA_BUNDLE_VARS:
        ca_bundle = os.environ.get(var)
        if not ca_bundle:
            continue
        if os.path.isfile(ca_bundle):
            session.verify = ca_bundle
        else:
            logger.warning(
                "SSL CA bundle not found: %s (from %s). Falling back to "
                "default certificate verification.", ca_bundle, var,
            )
        break

    return session


def get_requests_kwargs(url: str) -> Dict[str, Any]:
    """Get per-request kwargs carrying the proxy decision for ``url``.

    Args:
        url: The URL being requested.

    Returns:
        Dict with a 'proxies' key when a decision has to be forced.
    """
    kwargs: Dict[str, Any] = {}
    if should_bypass_proxy(url):
        # requests treats None values as "no proxy for this scheme".
        kwargs["proxies"] = {"http": None, "https": None}
        return kwargs

    proxy_url = get_proxy_url()
    if proxy_url:
        kwargs["proxies"] = {"http": proxy_url, "https": proxy_url}
    return kwargs
