"""OpenRouter adapter.

OpenRouter speaks the OpenAI streaming protocol unchanged, so this is an
:class:`OpenAIProvider` with OpenRouter's base URL and an unfiltered model
list (OpenRouter serves models from many vendors, not just ``gpt-``).
"""

from typing import Optional

import requests

from ..openai.provider import OpenAIProvider
from .env import DEFAULT_OPENROUTER_BASE_URL

# Optional app attribution header recognised by OpenRouter.
OPENROUTER_HEADERS = {"X-Title": "RedLedger"}


class OpenRouterProvider(OpenAIProvider):
    """OpenAI-compatible adapter for openrouter.ai."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(
            api_key=api_key,
            base_url=base_url or DEFAULT_OPENROUTER_BASE_URL,
            name="openrouter",
            model_prefix=None,
            session=session,
            extra_headers=OPENROUTER_HEADERS,
        )


def create_provider(settings=None, *, session: Optional[requests.Session] = None) -> OpenRouterProvider:
    """Factory used by the ProviderRegistry."""
    return OpenRouterProvider(
        api_key=getattr(settings, "api_key", None),
        base_url=getattr(settings, "base_url", None) or None,
        session=session,
    )
