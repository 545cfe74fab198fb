"""Environment variable resolution for the OpenRouter provider."""

import os
from typing import Optional


DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def resolve_api_key() -> Optional[str]:
    """Resolve OpenRouter API key (OPENROUTER_API_KEY)."""
    return os.environ.get("OPENROUTER_API_KEY")


def resolve_base_url() -> str:
    """Resolve OpenRouter base URL (OPENROUTER_BASE_URL)."""
    return os.environ.get("OPENROUTER_BASE_URL") or DEFAULT_OPENROUTER_BASE_URL
