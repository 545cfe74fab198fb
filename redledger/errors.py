"""Domain error types shared by the workspace, tool and provider layers.

Every error raised inside the core carries a machine-readable ``code`` so
the tool dispatch wrapper can hand the model a structured ``{error, code}``
result instead of a bare message.
"""

from enum import Enum
from typing import Any, Dict, Optional, Union


class ErrorCode(str, Enum):
    """Machine-readable error codes surfaced to the model and the UI."""
    PATH_TRAVERSAL = "PATH_TRAVERSAL"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    WORKSPACE_NOT_SET = "WORKSPACE_NOT_SET"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    USER_DENIED = "USER_DENIED"
    UNKNOWN = "UNKNOWN"


class RedLedgerError(Exception):
    """Base error with a code, a human-readable message and optional details.

    Attributes:
        code: One of the :class:`ErrorCode` values (stored as plain str).
        message: Human-readable description.
        details: Optional structured context for logging.
    """

    def __init__(
        self,
        code: Union[ErrorCode, str],
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code.value if isinstance(code, ErrorCode) else str(code)
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used in tool results."""
        data: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            data["details"] = self.details
        return data


class PathJailError(RedLedgerError):
    """A workspace path was rejected by the path jail or a file guard."""


class ProviderError(RedLedgerError):
    """A non-streaming provider call (e.g. model listing) failed."""

    def __init__(self, message: str, code: Union[ErrorCode, str] = ErrorCode.API_ERROR):
        super().__init__(code, message)


def invalid_input(message: str) -> RedLedgerError:
    """Build the uniform INVALID_INPUT error used by argument validation."""
    return RedLedgerError(ErrorCode.INVALID_INPUT, message)


__all__ = [
    "ErrorCode",
    "RedLedgerError",
    "PathJailError",
    "ProviderError",
    "invalid_input",
]
