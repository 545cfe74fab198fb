"""Argument validation helpers for tool executors.

Models send whatever they like as tool arguments. Each executor first
checks it got an object, then pulls individual arguments through these
helpers, which raise a uniform INVALID_INPUT error whose message starts
with the tool name (``read_file requires a "path" string argument``).
"""

import math
from typing import Any, Dict, Optional, Union

from ..errors import RedLedgerError, invalid_input

Number = Union[int, float]


def _invalid(tool_name: str, message: str) -> RedLedgerError:
    return invalid_input(f"{tool_name} {message}")


def require_object_args(args: Any, tool_name: str) -> Dict[str, Any]:
    """Ensure the argument payload is a JSON object."""
    if not isinstance(args, dict):
        raise _invalid(tool_name, "requires an object argument payload")
    return args


def require_string_arg(
    args: Dict[str, Any],
    key: str,
    tool_name: str,
    *,
    trim: bool = True,
    allow_empty: bool = False,
) -> str:
    """Fetch a required string argument.

    Args:
        args: Validated argument object.
        key: Argument name.
        tool_name: Prefix for error messages.
        trim: Strip surrounding whitespace (disable for file content).
        allow_empty: Accept an empty string.
    """
    value = args.get(key)
    if not isinstance(value, str):
        raise _invalid(tool_name, f'requires a "{key}" string argument')

    normalized = value.strip() if trim else value
    if not allow_empty and not normalized:
        raise _invalid(tool_name, f'requires a non-empty "{key}" argument')
    return normalized


def optional_string_arg(
    args: Dict[str, Any],
    key: str,
    tool_name: str,
    *,
    trim: bool = True,
    allow_empty: bool = False,
) -> Optional[str]:
    """Like :func:`require_string_arg`, but None when absent or null."""
    if args.get(key) is None:
        return None
    return require_string_arg(args, key, tool_name, trim=trim, allow_empty=allow_empty)


def number_arg(
    args: Dict[str, Any],
    key: str,
    tool_name: str,
    *,
    default: Optional[Number] = None,
    minimum: Optional[Number] = None,
    maximum: Optional[Number] = None,
    integer: bool = False,
) -> Number:
    """Fetch a numeric argument, coercing numeric strings and clamping.

    Missing values (absent, null or "") take ``default``; without a default
    they are an error. Out-of-range values are clamped, not rejected.
    """
    value = args.get(key)
    if value is None or value == "":
        if default is not None:
            return default
        raise _invalid(tool_name, f'requires a "{key}" numeric argument')

    if isinstance(value, bool):
        raise _invalid(tool_name, f'received an invalid "{key}" numeric argument')

    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise _invalid(tool_name, f'received an invalid "{key}" numeric argument') from None
    if not math.isfinite(parsed):
        raise _invalid(tool_name, f'received an invalid "{key}" numeric argument')

    result: Number = math.floor(parsed) if integer else parsed
    if minimum is not None:
        result = max(minimum, result)
    if maximum is not None:
        result = min(maximum, result)
    return result
