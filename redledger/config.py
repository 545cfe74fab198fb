"""Settings for the streaming core, loaded from a ``.env`` file and the environment.

The desktop shell owns settings storage and editing; this module only
defines the shape the core reads and a loader for headless use and tests.

Environment variables:
    REDLEDGER_PROVIDER: Active provider name (default: ollama)
    REDLEDGER_MODEL: Default model id
    REDLEDGER_TEMPERATURE / REDLEDGER_TEMPERATURE_ENABLED
    REDLEDGER_MAX_TOKENS / REDLEDGER_MAX_TOKENS_ENABLED
    REDLEDGER_MAX_TOOL_CALLS: Cumulative tool call budget (default: 25)
    REDLEDGER_STRICT_MODE: Confirm every file read and new file creation
    REDLEDGER_WORKSPACE: Workspace root directory
    REDLEDGER_ORG_SITE: Site used by org_search
    TAVILY_API_KEY / SERPAPI_API_KEY: Web search keys
    OPENAI_API_KEY, OPENAI_BASE_URL, OPENROUTER_API_KEY, OPENROUTER_BASE_URL,
    OLLAMA_HOST, LMSTUDIO_BASE_URL, LMSTUDIO_COMPATIBILITY: Provider endpoints
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .plugins.model_provider.lmstudio import env as lmstudio_env
from .plugins.model_provider.ollama import env as ollama_env
from .plugins.model_provider.openai import env as openai_env
from .plugins.model_provider.openrouter import env as openrouter_env

logger = logging.getLogger(__name__)


DEFAULT_PROVIDER = "ollama"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096
DEFAULT_MAX_TOOL_CALLS = 25

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class ProviderSettings:
    """Connection settings for one provider.

    Attributes:
        api_key: Bearer token; empty for local servers.
        base_url: Server URL, trailing slashes are tolerated.
        compatibility: LM Studio API flavour ("openai" or "lmstudio").
        models: Models the user pinned for this provider.
    """
    api_key: str = ""
    base_url: str = ""
    compatibility: str = "openai"
    models: List[str] = field(default_factory=list)


@dataclass
class Settings:
    """Everything the orchestrator, tools and adapters read at runtime."""
    active_provider: str = DEFAULT_PROVIDER
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    default_model: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature_enabled: bool = True
    max_tokens_enabled: bool = False
    max_tool_calls: int = DEFAULT_MAX_TOOL_CALLS
    strict_mode: bool = False
    tavily_api_key: str = ""
    serp_api_key: str = ""
    org_site: str = ""
    workspace_path: Optional[str] = None

    def provider(self, name: str) -> ProviderSettings:
        """Settings for ``name``, or empty settings if none were configured."""
        return self.providers.get(name) or ProviderSettings()

    @property
    def has_search_key(self) -> bool:
        return bool(self.tavily_api_key or self.serp_api_key)


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %d", name, value, default)
        return default
    if parsed < minimum:
        logger.warning("Ignoring %s=%r: below %d, using %d", name, value, minimum, default)
        return default
    return parsed


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, value, default)
        return default


def resolve_provider_settings() -> Dict[str, ProviderSettings]:
    """Build the per-provider settings table from the environment."""
    return {
        "openai": ProviderSettings(
            api_key=openai_env.resolve_api_key() or "",
            base_url=openai_env.resolve_base_url(),
        ),
        "openrouter": ProviderSettings(
            api_key=openrouter_env.resolve_api_key() or "",
            base_url=openrouter_env.resolve_base_url(),
        ),
        "ollama": ProviderSettings(base_url=ollama_env.resolve_host()),
        "lmstudio": ProviderSettings(
            base_url=lmstudio_env.resolve_base_url(),
            compatibility=lmstudio_env.resolve_compatibility(),
        ),
    }


def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """Load settings from an optional ``.env`` file plus the environment.

    Variables already present in the environment win over the file.

    Args:
        env_file: Path of the dotenv file, or None to skip it.

    Returns:
        Fully resolved Settings.
    """
    if env_file:
        load_dotenv(env_file)

    return Settings(
        active_provider=os.environ.get("REDLEDGER_PROVIDER", DEFAULT_PROVIDER).strip().lower(),
        providers=resolve_provider_settings(),
        default_model=os.environ.get("REDLEDGER_MODEL", ""),
        temperature=_env_float("REDLEDGER_TEMPERATURE", DEFAULT_TEMPERATURE),
        max_tokens=_env_int("REDLEDGER_MAX_TOKENS", DEFAULT_MAX_TOKENS, minimum=1),
        temperature_enabled=_env_flag("REDLEDGER_TEMPERATURE_ENABLED", True),
        max_tokens_enabled=_env_flag("REDLEDGER_MAX_TOKENS_ENABLED", False),
        max_tool_calls=_env_int("REDLEDGER_MAX_TOOL_CALLS", DEFAULT_MAX_TOOL_CALLS, minimum=1),
        strict_mode=_env_flag("REDLEDGER_STRICT_MODE", False),
        tavily_api_key=os.environ.get("TAVILY_API_KEY", ""),
        serp_api_key=os.environ.get("SERPAPI_API_KEY", ""),
        org_site=os.environ.get("REDLEDGER_ORG_SITE", ""),
        workspace_path=os.environ.get("REDLEDGER_WORKSPACE") or None,
    )
