"""Tool execution infrastructure.

ToolExecutor is the dispatch wrapper between the orchestrator and the
ToolRegistry. Whatever a tool raises, the orchestrator gets back a
result: failures become ``{"error": message, "code": code}`` so the model
can read what went wrong and try again, and the tool-use loop carries on.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from .errors import ErrorCode, RedLedgerError
from .plugins.model_provider.types import ToolCall
from .plugins.registry import ToolContext, ToolRegistry
from .trace import trace

logger = logging.getLogger(__name__)


def error_result(exc: BaseException) -> Dict[str, Any]:
    """Structured tool result for an exception."""
    code = getattr(exc, "code", None)
    if isinstance(code, ErrorCode):
        code = code.value
    if not isinstance(code, str) or not code:
        code = ErrorCode.UNKNOWN.value
    message = exc.message if isinstance(exc, RedLedgerError) else str(exc)
    return {"error": message or type(exc).__name__, "code": code}


def not_available_result(name: str) -> Dict[str, Any]:
    """Result for a call to a disabled or unknown tool."""
    return {
        "error": f"Tool '{name}' is not available",
        "code": ErrorCode.PERMISSION_DENIED.value,
    }


class ToolExecutor:
    """Runs tool calls through a ToolRegistry without ever raising.

    Example:
        executor = ToolExecutor(registry)
        ok, result = executor.execute("read_file", {"path": "notes.md"})
    """

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def execute(
        self,
        name: str,
        args: Dict[str, Any],
        context: Optional[ToolContext] = None,
    ) -> Tuple[bool, Any]:
        """Execute a tool by name.

        Returns:
            Tuple of (success, result); on failure the result is the
            structured error dict.
        """
        return self._run(ToolCall(id="", name=name, arguments=args), context)

    def execute_call(self, call: ToolCall, context: Optional[ToolContext] = None) -> ToolCall:
        """Execute ``call`` and attach its result (success or error dict)."""
        _, result = self._run(call, context)
        call.result = result
        return call

    def _run(self, call: ToolCall, context: Optional[ToolContext]) -> Tuple[bool, Any]:
        trace("ToolExecutor", f"execute {call.name} id={call.id}")
        try:
            result = self._registry.dispatch(call, context)
        except Exception as exc:
            if isinstance(exc, RedLedgerError):
                logger.info("Tool %s failed: [%s] %s", call.name, exc.code, exc.message)
            else:
                logger.warning("Tool %s raised %s", call.name, type(exc).__name__, exc_info=True)
            trace("ToolExecutor", f"{call.name} failed: {exc}")
            return False, error_result(exc)
        return True, result
