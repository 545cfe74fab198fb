"""File trace channels for diagnosing streams and tool rounds.

Adapters run on worker threads and several channels can stream at once,
so every line carries the writing thread's name and writes to one file
are serialized by a per-channel lock.

Channels:
- ``trace``: REDLEDGER_TRACE_LOG (orchestrator, tools, workspace)
- ``provider_trace``: REDLEDGER_PROVIDER_TRACE (adapters and wire parsing)

Setting a variable to the empty string turns its channel off; leaving it
unset writes to a file in the system temp directory.

Usage:
    from redledger.trace import trace, provider_trace

    trace("Orchestrator", "round 2 collected 1 tool call")
    provider_trace("ollama", "HTTP 500", include_traceback=True)
"""

import os
import tempfile
import threading
import traceback
from datetime import datetime
from typing import Optional


def resolve_trace_path(
    *env_vars: str,
    default_filename: str = "redledger_trace.log",
) -> Optional[str]:
    """Trace file for the first of ``env_vars`` that is set.

    Returns:
        The configured path, the temp-directory default when none of the
        variables is set, or None when the first set one is empty.
    """
    for var in env_vars:
        value = os.environ.get(var)
        if value is None:
            continue
        return value or None
    return os.path.join(tempfile.gettempdir(), default_filename)


def _format_lines(component: str, msg: str, include_traceback: bool) -> str:
    prefix = "[{}] [{}] [{}]".format(
        datetime.now().strftime("%H:%M:%S.%f")[:-3],
        threading.current_thread().name,
        component,
    )
    text = f"{prefix} {msg}\n"
    if include_traceback:
        tb = traceback.format_exc()
        if tb.strip() != "NoneType: None":
            text += f"{prefix} Traceback:\n{tb}\n"
    return text


_write_lock = threading.Lock()


def trace_write(
    component: str,
    msg: str,
    trace_path: Optional[str],
    *,
    include_traceback: bool = False,
) -> None:
    """Append one message to ``trace_path``; a None path is a no-op.

    Failures to create or write the file are ignored.
    """
    if not trace_path:
        return
    text = _format_lines(component, msg, include_traceback)
    try:
        with _write_lock:
            directory = os.path.dirname(os.path.abspath(trace_path))
            os.makedirs(directory, exist_ok=True)
            with open(trace_path, "a", encoding="utf-8") as handle:
                handle.write(text)
    except OSError:
        pass


class TraceChannel:
    """A named trace file selected by an environment variable."""

    def __init__(self, env_var: str, default_filename: str):
        self.env_var = env_var
        self.default_filename = default_filename

    @property
    def path(self) -> Optional[str]:
        # Read per call so tests and the shell can redirect at runtime.
        return resolve_trace_path(self.env_var, default_filename=self.default_filename)

    def __call__(self, component: str, msg: str, *, include_traceback: bool = False) -> None:
        trace_write(component, msg, self.path, include_traceback=include_traceback)


APP_TRACE = TraceChannel("REDLEDGER_TRACE_LOG", "redledger_trace.log")
PROVIDER_TRACE = TraceChannel("REDLEDGER_PROVIDER_TRACE", "redledger_provider_trace.log")


def trace(component: str, msg: str, *, include_traceback: bool = False) -> None:
    """Write to the application trace."""
    APP_TRACE(component, msg, include_traceback=include_traceback)


def provider_trace(component: str, msg: str, *, include_traceback: bool = False) -> None:
    """Write to the provider trace."""
    PROVIDER_TRACE(component, msg, include_traceback=include_traceback)
