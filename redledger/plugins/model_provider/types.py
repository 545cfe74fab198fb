"""Provider-agnostic types for model interactions.

This module defines the canonical shapes every adapter produces and the
orchestrator consumes: stream chunks, tool calls, provider-facing messages
and tool definitions. Adapters translate their wire protocol into these
types; nothing above the adapter layer sees provider-specific JSON.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union


class ChunkType(str, Enum):
    """Kind of a canonical stream event."""
    TEXT = "text"
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    DONE = "done"


# Sentinel distinguishing "no result yet" from an explicit JSON null result.
_PENDING = object()


@dataclass
class ToolCall:
    """A complete tool invocation requested by the model.

    Attributes:
        id: Call identifier, unique within a round (provider-assigned or
            generated locally).
        name: Tool name as registered in the ToolRegistry.
        arguments: Parsed arguments; unparseable argument text is kept
            as ``{"_raw": text}``.
        result: Execution result, attached once by the orchestrator.
        content_offset: Number of text characters streamed in the round
            before this call was emitted, used by UIs to interleave prose
            and tool cards.
    """
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    result: Any = _PENDING
    content_offset: Optional[int] = None

    @property
    def has_result(self) -> bool:
        return self.result is not _PENDING

    def to_dict(self) -> Dict[str, Any]:
        """UI wire shape (camelCase keys)."""
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
        }
        if self.has_result:
            data["result"] = self.result
        if self.content_offset is not None:
            data["contentOffset"] = self.content_offset
        return data


@dataclass
class StreamChunk:
    """One canonical stream event.

    Use the class constructors rather than building instances directly so
    each chunk type carries exactly the field it needs.
    """
    type: ChunkType
    content: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    error: Optional[str] = None

    @classmethod
    def text(cls, content: str) -> "StreamChunk":
        return cls(ChunkType.TEXT, content=content)

    @classmethod
    def thinking(cls, content: str) -> "StreamChunk":
        return cls(ChunkType.THINKING, content=content)

    @classmethod
    def tool_call_chunk(cls, call: ToolCall) -> "StreamChunk":
        return cls(ChunkType.TOOL_CALL, tool_call=call)

    @classmethod
    def tool_result(cls, call: ToolCall) -> "StreamChunk":
        return cls(ChunkType.TOOL_RESULT, tool_call=call)

    @classmethod
    def failure(cls, message: str) -> "StreamChunk":
        return cls(ChunkType.ERROR, error=message)

    @classmethod
    def done(cls) -> "StreamChunk":
        return cls(ChunkType.DONE)

    @property
    def is_terminal(self) -> bool:
        return self.type == ChunkType.DONE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the shape the UI transport forwards."""
        data: Dict[str, Any] = {"type": self.type.value}
        if self.content is not None:
            data["content"] = self.content
        if self.tool_call is not None:
            data["toolCall"] = self.tool_call.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data


# Content is plain text, None (assistant message with only tool calls), or
# an ordered list of {"type": "text", "text": ...} /
# {"type": "image_url", "image_url": {"url": ...}} parts.
MessageContent = Union[str, None, List[Dict[str, Any]]]


@dataclass
class LLMMessage:
    """Provider-facing chat message (not the persisted conversation row).

    Attributes:
        role: One of user, assistant, system, tool.
        content: Text, None, or a list of text/image parts.
        tool_calls: OpenAI-shaped tool call list on assistant messages.
        tool_call_id: Correlates a tool-role message with its call.
    """
    role: str
    content: MessageContent = None
    tool_calls: Optional[List[Dict[str, Any]]] = None
    tool_call_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = self.tool_calls
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LLMMessage":
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_calls=data.get("tool_calls"),
            tool_call_id=data.get("tool_call_id"),
        )


def content_text(content: MessageContent) -> str:
    """Flatten message content to plain text, dropping image parts."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "\n".join(
        part.get("text", "") for part in content
        if isinstance(part, dict) and part.get("type") == "text"
    )


@dataclass(frozen=True)
class ToolDefinition:
    """Provider-agnostic tool declaration echoed verbatim to every adapter.

    Attributes:
        name: Unique tool name.
        description: What the tool does, written for the model.
        parameters: JSON Schema object ({"type": "object", ...}).
    """
    name: str
    description: str
    parameters: Dict[str, Any]

    def to_openai(self) -> Dict[str, Any]:
        """OpenAI function-calling shape, also accepted by Ollama."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ProviderSendOptions:
    """Everything an adapter needs for one streaming round.

    Attributes:
        messages: Conversation history, system prompt first if any.
        model: Model id on the provider.
        tools: Tool definitions offered to the model.
        temperature: Sampling temperature; omitted from the request if None.
        max_tokens: Completion cap; omitted from the request if None.
        reasoning: Reasoning effort / thinking flag; omitted if None.
        extra_body: Provider-specific fields merged into the request body.
    """
    messages: List[LLMMessage]
    model: str
    tools: List[ToolDefinition] = field(default_factory=list)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    reasoning: Optional[str] = None
    extra_body: Dict[str, Any] = field(default_factory=dict)


class CancelToken:
    """Thread-safe cancellation token for stopping a stream.

    Supports:
    - Simple cancellation via cancel()
    - Polling via is_cancelled property
    - Blocking wait via wait()
    - Callback registration for cancellation notifications

    Example:
        token = CancelToken()

        # In the stream worker thread
        for raw in response.iter_content(chunk_size=None):
            if token.is_cancelled:
                break

        # In the orchestrating thread
        token.cancel()

    Thread Safety:
        All methods are thread-safe and can be called from any thread.
    """

    def __init__(self):
        self._cancelled = False
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    def cancel(self) -> None:
        """Request cancellation.

        Idempotent: registered callbacks run once, on the first call.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks)

        self._event.set()

        # Outside the lock so a callback may touch the token.
        for callback in callbacks:
            try:
                callback()
            except Exception:
                pass

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; True if cancelled."""
        return self._event.wait(timeout=timeout)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback; runs immediately if already cancelled."""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        try:
            callback()
        except Exception:
            pass
