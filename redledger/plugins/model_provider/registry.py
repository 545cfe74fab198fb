"""Provider registry: maps provider names to adapter factories.

Registration is explicit. ``create_default_registry()`` is called once at
startup and lists every built-in adapter; nothing registers itself as an
import side effect.

Usage:
    registry = create_default_registry()
    provider = registry.create("ollama", settings.provider("ollama"))
    handle = provider.send_streaming(options, on_chunk)
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from ...errors import ErrorCode, RedLedgerError
from .base import LLMProvider
from .lmstudio.env import DEFAULT_LMSTUDIO_BASE_URL
from .ollama.env import DEFAULT_OLLAMA_HOST
from .openai.env import DEFAULT_OPENAI_BASE_URL
from .openrouter.env import DEFAULT_OPENROUTER_BASE_URL

if TYPE_CHECKING:
    # config imports the provider env modules; import for typing only.
    from ...config import ProviderSettings

logger = logging.getLogger(__name__)


ProviderFactory = Callable[["ProviderSettings"], LLMProvider]


@dataclass(frozen=True)
class ProviderEntry:
    """Registry row for one provider.

    Attributes:
        name: Registry key (e.g. 'openai').
        display_name: Name shown in the settings UI.
        default_base_url: Used when the settings leave base_url empty.
        factory: Builds an adapter from the provider's settings.
    """
    name: str
    display_name: str
    default_base_url: str
    factory: ProviderFactory


class ProviderRegistry:
    """Name -> ProviderEntry table."""

    def __init__(self):
        self._entries: Dict[str, ProviderEntry] = {}

    def register(self, entry: ProviderEntry) -> None:
        """Register (or replace) a provider entry."""
        if entry.name in self._entries:
            logger.debug("Replacing provider registration for %s", entry.name)
        self._entries[entry.name] = entry

    def get(self, name: str) -> Optional[ProviderEntry]:
        return self._entries.get(name)

    def list_providers(self) -> List[ProviderEntry]:
        return list(self._entries.values())

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def create(self, name: str, settings: Optional["ProviderSettings"] = None) -> LLMProvider:
        """Build an adapter for ``name``.

        Args:
            name: Registered provider name.
            settings: Provider settings; None uses the entry defaults.

        Raises:
            RedLedgerError: INVALID_INPUT if the provider is unknown.
        """
        entry = self._entries.get(name)
        if entry is None:
            raise RedLedgerError(ErrorCode.INVALID_INPUT, f"Unknown provider: {name}")
        return entry.factory(settings)


def create_default_registry() -> ProviderRegistry:
    """Registry with the four built-in adapters."""
    from .lmstudio.provider import create_provider as create_lmstudio
    from .ollama.provider import create_provider as create_ollama
    from .openai.provider import create_provider as create_openai
    from .openrouter.provider import create_provider as create_openrouter

    registry = ProviderRegistry()
    registry.register(ProviderEntry("openai", "OpenAI", DEFAULT_OPENAI_BASE_URL, create_openai))
    registry.register(ProviderEntry("openrouter", "OpenRouter", DEFAULT_OPENROUTER_BASE_URL,
                                    create_openrouter))
    registry.register(ProviderEntry("ollama", "Ollama", DEFAULT_OLLAMA_HOST, create_ollama))
    registry.register(ProviderEntry("lmstudio", "LM Studio", DEFAULT_LMSTUDIO_BASE_URL,
                                    create_lmstudio))
    return registry
