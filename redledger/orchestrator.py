"""Multi-round tool-use orchestration.

A conversation turn is a sequence of streaming rounds. Each round sends the
history to the active adapter and forwards its chunks to the UI sink; when
the round ends with tool calls, the calls are executed sequentially, the
assistant message and one tool message per call are appended to the
history, and the next round starts. The turn ends when a round produces no
tool calls, the adapter reports an error, the cumulative tool call budget
would be exceeded, or the channel is cancelled.

Every path ends with exactly one ``done`` chunk on the sink.

Usage:
    orchestrator = create_orchestrator(load_settings, dialog=shell_dialog)
    request = ChatRequest(messages=[{"role": "user", "content": "hi"}],
                          model="llama3.1", provider="ollama")

    # On a worker thread; blocks until the turn is finished
    orchestrator.run(request, "chat-42", lambda chunk: send(chunk.to_dict()))

    # From the UI thread
    orchestrator.cancel("chat-42")
"""

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .ai_tool_runner import ToolExecutor, not_available_result
from .config import Settings
from .errors import RedLedgerError, invalid_input
from .plugins.model_provider.base import AbortHandle, LLMProvider
from .plugins.model_provider.registry import ProviderRegistry, create_default_registry
from .plugins.model_provider.types import (
    ChunkType,
    LLMMessage,
    ProviderSendOptions,
    StreamChunk,
    ToolCall,
)
from .plugins.registry import ToolContext, ToolRegistry
from .trace import trace
from .workspace import DialogAdapter, WorkspaceService

logger = logging.getLogger(__name__)

StreamSink = Callable[[StreamChunk], None]

TIMESTAMP_TAG = "[system: msg_timestamp={timestamp}]\n\n"
LOOP_LIMIT_MESSAGE = (
    "Maximum tool calls ({limit}) exceeded. The assistant may be stuck in a loop."
)


@dataclass
class ChatRequest:
    """One user turn as sent by the UI.

    Attributes:
        messages: Conversation so far. Items are LLMMessage instances or
            dicts with ``role``/``content`` and an optional ``timestamp``.
        model: Model id on the provider.
        provider: Provider name; None uses the active provider.
        temperature: Overrides the settings temperature when enabled.
        max_tokens: Overrides the settings max tokens when enabled.
        reasoning: Reasoning effort / thinking flag passed to the adapter.
    """
    messages: List[Union[LLMMessage, Dict[str, Any]]]
    model: str = ""
    provider: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    reasoning: Optional[str] = None


class StreamContext:
    """Per-channel state of one running turn.

    Holds the live abort handle of the current round and guards the sink:
    nothing reaches the sink after ``done``, and a sink that raises is
    logged rather than allowed to break the turn.
    """

    def __init__(self, channel: str, sink: StreamSink):
        self.channel = channel
        self._sink = sink
        self._lock = threading.RLock()
        self._handle: Optional[AbortHandle] = None
        self._cancelled = False
        self._closed = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, chunk: StreamChunk) -> bool:
        """Forward a chunk to the sink; False if the stream is already closed."""
        with self._lock:
            if self._closed:
                return False
            if chunk.type == ChunkType.DONE:
                self._closed = True
            try:
                self._sink(chunk)
            except Exception:
                logger.exception("Sink for %s raised on %s chunk",
                                 self.channel, chunk.type.value)
            return True

    def finish(self) -> None:
        self.send(StreamChunk.done())

    def attach(self, handle: AbortHandle) -> None:
        """Make ``handle`` the channel's live handle.

        A cancel that arrived before the round started aborts it at once.
        """
        with self._lock:
            self._handle = handle
            abort_now = self._cancelled
        if abort_now:
            handle.abort()

    def detach(self, handle: AbortHandle) -> None:
        with self._lock:
            if self._handle is handle:
                self._handle = None

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            handle = self._handle
        if handle is not None:
            handle.abort()


@dataclass
class RoundResult:
    """What one streaming round produced."""
    text_parts: List[str] = field(default_factory=list)
    tool_calls: List[ToolCall] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def text(self) -> str:
        return "".join(self.text_parts)


def build_history(
    request_messages: List[Union[LLMMessage, Dict[str, Any]]],
    system_prompt: str = "",
) -> List[LLMMessage]:
    """Provider history for a request: system prompt, then the conversation.

    User messages carrying a timestamp are prefixed with a
    ``[system: msg_timestamp=...]`` tag so the model sees when they were sent.
    """
    history: List[LLMMessage] = []
    if system_prompt:
        history.append(LLMMessage(role="system", content=system_prompt))

    for item in request_messages:
        if isinstance(item, LLMMessage):
            history.append(LLMMessage(item.role, item.content, item.tool_calls, item.tool_call_id))
            continue
        if not isinstance(item, dict) or not isinstance(item.get("role"), str):
            raise invalid_input("Each message must be an object with a role")

        message = LLMMessage.from_dict(item)
        timestamp = item.get("timestamp")
        if message.role == "user" and timestamp:
            tag = TIMESTAMP_TAG.format(timestamp=timestamp)
            if isinstance(message.content, list):
                message.content = [{"type": "text", "text": tag.rstrip("\n")}] + list(message.content)
            else:
                message.content = tag + (message.content or "")
        history.append(message)
    return history


def assistant_message(text: str, calls: List[ToolCall]) -> LLMMessage:
    """Assistant history entry for a round that requested tools."""
    return LLMMessage(
        role="assistant",
        content=text or None,
        tool_calls=[
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in calls
        ],
    )


def tool_message(call: ToolCall) -> LLMMessage:
    return LLMMessage(
        role="tool",
        content=json.dumps(call.result, default=str),
        tool_call_id=call.id,
    )


class ToolOrchestrator:
    """Drives tool-use turns for any number of channels.

    Args:
        get_settings: Returns the current settings; read once per turn.
        providers: Adapter factory table.
        tools: Registry of tools offered to the model.
        get_system_prompt: Returns the system prompt; empty means none.
        dialog: Confirmation collaborator handed to file tools.
    """

    def __init__(
        self,
        get_settings: Callable[[], Settings],
        providers: ProviderRegistry,
        tools: ToolRegistry,
        get_system_prompt: Optional[Callable[[], str]] = None,
        dialog: Optional[DialogAdapter] = None,
    ):
        self._get_settings = get_settings
        self._providers = providers
        self._tools = tools
        self._executor = ToolExecutor(tools)
        self._get_system_prompt = get_system_prompt or (lambda: "")
        self._dialog = dialog
        self._contexts: Dict[str, StreamContext] = {}
        self._lock = threading.Lock()

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    # --- Public surface ---

    def run(self, request: ChatRequest, channel: str, sink: StreamSink) -> None:
        """Run one turn to completion, writing chunks to ``sink``.

        Never raises: failures before or between rounds become an ``error``
        chunk followed by ``done``.
        """
        context = StreamContext(channel, sink)
        with self._lock:
            previous = self._contexts.get(channel)
            self._contexts[channel] = context
        if previous is not None:
            logger.warning("Channel %s already had a running turn; cancelling it", channel)
            previous.cancel()

        try:
            self._orchestrate(request, context)
        except Exception as exc:
            if isinstance(exc, RedLedgerError):
                logger.info("Turn on %s failed: [%s] %s", channel, exc.code, exc.message)
                message = exc.message
            else:
                logger.exception("Turn on %s failed", channel)
                message = str(exc) or type(exc).__name__
            trace("Orchestrator", f"{channel}: failed: {message}")
            context.send(StreamChunk.failure(message))
        finally:
            context.finish()
            with self._lock:
                if self._contexts.get(channel) is context:
                    del self._contexts[channel]

    def cancel(self, channel: str) -> bool:
        """Abort the running turn on ``channel``.

        Returns:
            True if a turn was running on the channel.
        """
        with self._lock:
            context = self._contexts.get(channel)
        if context is None:
            return False
        trace("Orchestrator", f"{channel}: cancel requested")
        context.cancel()
        return True

    def is_running(self, channel: str) -> bool:
        with self._lock:
            return channel in self._contexts

    def list_models(self, provider: Optional[str] = None) -> List[str]:
        """Model ids offered by ``provider`` (default: the active provider)."""
        settings = self._get_settings()
        return self._create_provider(provider, settings).list_models()

    # --- Turn loop ---

    def _create_provider(self, name: Optional[str], settings: Settings) -> LLMProvider:
        provider_name = name or settings.active_provider
        return self._providers.create(provider_name, settings.provider(provider_name))

    def _send_options(
        self,
        request: ChatRequest,
        settings: Settings,
        model: str,
        history: List[LLMMessage],
    ) -> ProviderSendOptions:
        temperature = None
        if settings.temperature_enabled:
            temperature = request.temperature if request.temperature is not None else settings.temperature
        max_tokens = None
        if settings.max_tokens_enabled:
            max_tokens = request.max_tokens if request.max_tokens is not None else settings.max_tokens
        return ProviderSendOptions(
            messages=list(history),
            model=model,
            tools=self._tools.get_definitions(),
            temperature=temperature,
            max_tokens=max_tokens,
            reasoning=request.reasoning,
        )

    def _orchestrate(self, request: ChatRequest, context: StreamContext) -> None:
        settings = self._get_settings()
        provider = self._create_provider(request.provider, settings)
        model = request.model or settings.default_model
        if not model:
            raise invalid_input("No model selected")

        history = build_history(request.messages, self._get_system_prompt())
        limit = settings.max_tool_calls
        total_calls = 0
        round_number = 0

        while not context.cancelled:
            round_number += 1
            trace("Orchestrator", f"{context.channel}: round {round_number} model={model}")
            options = self._send_options(request, settings, model, history)
            result = self._stream_round(provider, options, context)

            if result.error is not None:
                trace("Orchestrator", f"{context.channel}: round {round_number} error")
                return
            if context.cancelled or not result.tool_calls:
                return

            if total_calls + len(result.tool_calls) > limit:
                trace("Orchestrator",
                      f"{context.channel}: tool call limit {limit} reached at {total_calls}")
                context.send(StreamChunk.failure(LOOP_LIMIT_MESSAGE.format(limit=limit)))
                return
            total_calls += len(result.tool_calls)

            self._execute_tools(result.tool_calls, context)
            history.append(assistant_message(result.text, result.tool_calls))
            history.extend(tool_message(call) for call in result.tool_calls)

    def _stream_round(
        self,
        provider: LLMProvider,
        options: ProviderSendOptions,
        context: StreamContext,
    ) -> RoundResult:
        """Send one round and block until the adapter reports ``done``."""
        result = RoundResult()
        finished: "queue.Queue[bool]" = queue.Queue(maxsize=1)
        round_over = threading.Event()

        def on_chunk(chunk: StreamChunk) -> None:
            if round_over.is_set():
                logger.debug("Dropping %s chunk after done from %s",
                             chunk.type.value, provider.name)
                return
            if chunk.type == ChunkType.DONE:
                round_over.set()
                finished.put_nowait(True)
                return
            if chunk.type == ChunkType.TEXT:
                result.text_parts.append(chunk.content or "")
            elif chunk.type == ChunkType.TOOL_CALL and chunk.tool_call is not None:
                result.tool_calls.append(chunk.tool_call)
            elif chunk.type == ChunkType.ERROR:
                result.error = chunk.error or "Unknown error"
            context.send(chunk)

        handle = provider.send_streaming(options, on_chunk)
        context.attach(handle)
        try:
            finished.get()
        finally:
            context.detach(handle)
        return result

    def _execute_tools(self, calls: List[ToolCall], context: StreamContext) -> None:
        enabled = self._tools.enabled_names()
        tool_context = ToolContext(dialog=self._dialog, channel=context.channel)
        for call in calls:
            if call.name in enabled:
                self._executor.execute_call(call, tool_context)
            else:
                trace("Orchestrator", f"{context.channel}: {call.name} not available")
                call.result = not_available_result(call.name)
            context.send(StreamChunk.tool_result(call))


def create_orchestrator(
    get_settings: Callable[[], Settings],
    *,
    dialog: Optional[DialogAdapter] = None,
    get_system_prompt: Optional[Callable[[], str]] = None,
    providers: Optional[ProviderRegistry] = None,
    workspace: Optional[WorkspaceService] = None,
) -> ToolOrchestrator:
    """Orchestrator wired with the built-in adapters and tools.

    Pass the shell's own ``workspace`` so folder changes made in the UI
    apply to the file tools; otherwise one is created from
    ``settings.workspace_path``.
    """
    from .plugins.file_tools import create_plugin as create_file_tools
    from .plugins.web_search import create_plugin as create_web_search
    from .search import SearchService

    tools = ToolRegistry()
    if workspace is None:
        workspace = WorkspaceService(get_settings, get_settings().workspace_path)
    create_file_tools(workspace).register(tools)
    create_web_search(SearchService(get_settings), get_settings).register(tools)

    return ToolOrchestrator(
        get_settings,
        providers or create_default_registry(),
        tools,
        get_system_prompt=get_system_prompt,
        dialog=dialog,
    )
