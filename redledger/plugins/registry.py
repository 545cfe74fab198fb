"""Tool registry: name -> (definition, executor, availability).

Tools are registered explicitly by their plugin's ``register()`` call; the
registry itself has no knowledge of any concrete tool.

Usage:
    registry = ToolRegistry()
    create_file_tools_plugin(workspace).register(registry)
    create_web_search_plugin(search, get_settings).register(registry)

    definitions = registry.get_definitions()   # offered to the model
    enabled = registry.enabled_names()         # checked before dispatch
    result = registry.dispatch(call, context)
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set

from ..errors import ErrorCode, RedLedgerError
from .model_provider.types import ToolCall, ToolDefinition

if TYPE_CHECKING:
    from ..workspace import DialogAdapter

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Per-dispatch context handed to executors.

    Attributes:
        dialog: Confirmation collaborator for file tools (None = no prompts).
        channel: Stream channel the call belongs to, for tracing.
    """
    dialog: Optional["DialogAdapter"] = None
    channel: Optional[str] = None


ToolExecuteFn = Callable[[Dict[str, Any], ToolContext], Any]


def _always_available() -> bool:
    return True


@dataclass
class ToolEntry:
    definition: ToolDefinition
    execute: ToolExecuteFn
    is_available: Callable[[], bool] = _always_available


class ToolRegistry:
    """Registration table for tools the model may call."""

    def __init__(self):
        self._entries: Dict[str, ToolEntry] = {}

    def register(
        self,
        definition: ToolDefinition,
        execute: ToolExecuteFn,
        is_available: Optional[Callable[[], bool]] = None,
    ) -> None:
        """Register a tool, replacing any previous tool of the same name.

        Args:
            definition: Schema offered to the model.
            execute: Called with (arguments, context); returns a JSON value.
            is_available: Evaluated on every request; False hides the tool
                and makes calls to it fail with PERMISSION_DENIED.
        """
        if definition.name in self._entries:
            logger.debug("Replacing tool registration for %s", definition.name)
        self._entries[definition.name] = ToolEntry(
            definition, execute, is_available or _always_available)

    def get(self, name: str) -> Optional[ToolEntry]:
        return self._entries.get(name)

    def list_names(self) -> List[str]:
        return list(self._entries)

    def _is_enabled(self, entry: ToolEntry) -> bool:
        try:
            return bool(entry.is_available())
        except Exception:
            logger.exception("Availability check failed for %s", entry.definition.name)
            return False

    def enabled_names(self) -> Set[str]:
        """Names of tools whose availability predicate currently holds."""
        return {name for name, entry in self._entries.items() if self._is_enabled(entry)}

    def get_definitions(self, enabled_only: bool = True) -> List[ToolDefinition]:
        """Definitions in registration order."""
        return [
            entry.definition for entry in self._entries.values()
            if not enabled_only or self._is_enabled(entry)
        ]

    def dispatch(self, call: ToolCall, context: Optional[ToolContext] = None) -> Any:
        """Run a tool; exceptions propagate to the caller.

        Raises:
            RedLedgerError: INVALID_INPUT for an unknown tool name.
        """
        entry = self._entries.get(call.name)
        if entry is None:
            raise RedLedgerError(ErrorCode.INVALID_INPUT, f"Unknown tool: {call.name}")
        return entry.execute(call.arguments, context or ToolContext())
