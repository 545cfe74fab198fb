"""Environment variable resolution for the LM Studio provider."""

import os
from typing import Literal


Compatibility = Literal["openai", "lmstudio"]

DEFAULT_LMSTUDIO_BASE_URL = "http://localhost:1234"
DEFAULT_COMPATIBILITY: Compatibility = "openai"


def resolve_base_url() -> str:
    """Resolve LM Studio server URL (LMSTUDIO_BASE_URL)."""
    return os.environ.get("LMSTUDIO_BASE_URL") or DEFAULT_LMSTUDIO_BASE_URL


def parse_compatibility(value: str) -> Compatibility:
    """Map a configured compatibility mode onto the supported pair.

    Anything other than ``lmstudio`` selects the OpenAI-compatible API.
    """
    return "lmstudio" if (value or "").strip().lower() == "lmstudio" else "openai"


def resolve_compatibility() -> Compatibility:
    """Resolve the API flavour (LMSTUDIO_COMPATIBILITY: openai | lmstudio)."""
    return parse_compatibility(os.environ.get("LMSTUDIO_COMPATIBILITY", DEFAULT_COMPATIBILITY))
