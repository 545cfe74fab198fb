"""Environment variable resolution for the OpenAI provider."""

import os
from typing import Optional


DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"

# OpenAI's /models endpoint returns embeddings, audio and moderation models
# too; only chat-capable ids are shown.
OPENAI_MODEL_PREFIX = "gpt-"


def resolve_api_key() -> Optional[str]:
    """Resolve OpenAI API key from environment.

    Checks:
    1. OPENAI_API_KEY environment variable

    Returns:
        API key if found, None otherwise.
    """
    return os.environ.get("OPENAI_API_KEY")


def resolve_base_url() -> str:
    """Resolve the OpenAI-compatible base URL.

    Checks:
    1. OPENAI_BASE_URL environment variable

    Returns:
        Base URL (default: https://api.openai.com/v1).
    """
    return os.environ.get("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL
