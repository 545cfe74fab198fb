"""Shared HTTP utilities with proxy support.

Usage:
    from redledger.http import get_requests_session, get_requests_kwargs
    session = get_requests_session()
    response = session.get(url, **get_requests_kwargs(url))

Environment Variables:
    HTTPS_PROXY / HTTP_PROXY: Standard proxy URL
    NO_PROXY: Standard no-proxy hosts (suffix matching)
    REDLEDGER_NO_PROXY: Exact host matching for no-proxy
"""

from .proxy import (
    get_proxy_url,
    get_requests_kwargs,
    get_requests_session,
    should_bypass_proxy,
)

__all__ = [
    "get_proxy_url",
    "get_requests_kwargs",
    "get_requests_session",
    "should_bypass_proxy",
]
