"""OpenAI-compatible streaming adapter.

Speaks the ``/chat/completions`` Server-Sent-Events protocol used by
OpenAI, OpenRouter, LM Studio's OpenAI mode and most local servers:

    data: {"choices":[{"delta":{"content":"Hel"}}]}
    data: {"choices":[{"delta":{"tool_calls":[{"index":0,"id":"call_1",
           "function":{"name":"read_file","arguments":"{\\"pa"}}]}}]}
    data: {"choices":[{"delta":{"tool_calls":[{"index":0,
           "function":{"arguments":"th\\":\\"a.md\\"}"}}]},
           "finish_reason":"tool_calls"}]}
    data: [DONE]

Tool-call arguments arrive as JSON text fragments keyed by ``index``; the
parser accumulates them per index and only emits complete calls.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from ....http import get_requests_kwargs, get_requests_session
from ....trace import provider_trace
from ..streaming import (
    StreamHandle,
    describe_transport_error,
    iter_response_lines,
    parse_json_line,
    raise_for_status,
    start_stream,
    to_provider_error,
)
from ..types import (
    CancelToken,
    ProviderSendOptions,
    StreamChunk,
    ToolCall,
)
from .env import DEFAULT_OPENAI_BASE_URL, OPENAI_MODEL_PREFIX

logger = logging.getLogger(__name__)

# (connect, read) seconds; the read timeout bounds the gap between chunks.
DEFAULT_TIMEOUT = (10.0, 120.0)
LIST_MODELS_TIMEOUT = 15.0


class StreamPayloadError(Exception):
    """An error object delivered inside an otherwise healthy stream."""


def parse_tool_arguments(text: str) -> Dict[str, Any]:
    """Parse accumulated argument text, keeping unparseable text as ``_raw``."""
    if not text.strip():
        return {}
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"_raw": text}
    if isinstance(parsed, dict):
        return parsed
    return {"_raw": text}


class OpenAIStreamParser:
    """Line-level parser for the OpenAI SSE stream.

    Pure state machine: feed it decoded lines, get canonical chunks back.
    Tool-call deltas are held in a per-index pending map until a flush
    point (``finish_reason == "tool_calls"``, ``[DONE]`` or end of stream).
    Flushing clears the map, so a second flush site never re-emits calls.
    """

    def __init__(self):
        self._pending: Dict[int, Dict[str, str]] = {}
        self.saw_done = False

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def feed_line(self, line: str) -> List[StreamChunk]:
        line = line.strip()
        # Blank separators and ":" comments (keep-alives) carry nothing.
        if not line or line.startswith(":") or not line.startswith("data:"):
            return []

        data = line[5:].strip()
        if data == "[DONE]":
            self.saw_done = True
            return self.flush()

        payload = parse_json_line(data)
        if not isinstance(payload, dict):
            return []

        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise StreamPayloadError(f"API error: {message or error}")

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []
        choice = choices[0]
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            delta = {}

        chunks: List[StreamChunk] = []
        reasoning = delta.get("reasoning_content") or delta.get("reasoning")
        if isinstance(reasoning, str) and reasoning:
            chunks.append(StreamChunk.thinking(reasoning))

        content = delta.get("content")
        if isinstance(content, str) and content:
            chunks.append(StreamChunk.text(content))

        fragments = delta.get("tool_calls")
        if isinstance(fragments, list):
            for fragment in fragments:
                if isinstance(fragment, dict):
                    self._accumulate(fragment)

        if choice.get("finish_reason") == "tool_calls":
            chunks.extend(self.flush())
        return chunks

    def _accumulate(self, fragment: Dict[str, Any]) -> None:
        index = fragment.get("index")
        if not isinstance(index, int):
            index = 0
        entry = self._pending.setdefault(index, {"id": "", "name": "", "arguments": ""})

        if fragment.get("id") and not entry["id"]:
            entry["id"] = str(fragment["id"])

        function = fragment.get("function")
        if not isinstance(function, dict):
            function = {}
        if function.get("name"):
            entry["name"] = str(function["name"])

        arguments = function.get("arguments")
        if isinstance(arguments, str):
            entry["arguments"] += arguments
        elif isinstance(arguments, dict):
            entry["arguments"] += json.dumps(arguments)

    def flush(self) -> List[StreamChunk]:
        """Emit every pending call, in index order, and clear the map."""
        chunks = []
        for index in sorted(self._pending):
            entry = self._pending[index]
            call = ToolCall(
                id=entry["id"] or f"tool_{index}",
                name=entry["name"],
                arguments=parse_tool_arguments(entry["arguments"]),
            )
            chunks.append(StreamChunk.tool_call_chunk(call))
        self._pending.clear()
        return chunks

    def finish(self) -> List[StreamChunk]:
        """End of stream without ``[DONE]``: flush whatever is pending."""
        return self.flush()


class OpenAIProvider:
    """Adapter for OpenAI-compatible ``/chat/completions`` servers.

    Args:
        api_key: Bearer token; omitted from headers when empty.
        base_url: Server base URL including the version path (``.../v1``).
        name: Registry name, used in logs and traces.
        model_prefix: Only model ids with this prefix are listed (None
            lists everything).
        session: requests.Session to use; defaults to a proxy-aware one.
        extra_headers: Additional headers sent with every request.
        unreachable_hint: Message used when the connection is refused.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        name: str = "openai",
        model_prefix: Optional[str] = OPENAI_MODEL_PREFIX,
        session: Optional[requests.Session] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        unreachable_hint: Optional[str] = None,
        timeout: Any = DEFAULT_TIMEOUT,
    ):
        self._api_key = api_key or ""
        self._base_url = (base_url or DEFAULT_OPENAI_BASE_URL).rstrip("/")
        self._name = name
        self._model_prefix = model_prefix
        self._session = session or get_requests_session()
        self._extra_headers = dict(extra_headers or {})
        self._timeout = timeout
        self._unreachable_hint = unreachable_hint or (
            f"Cannot reach the API server at {self._base_url}. Is it running?"
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self, streaming: bool = False) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if streaming:
            headers["Accept"] = "text/event-stream"
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        headers.update(self._extra_headers)
        return headers

    def build_request_body(self, options: ProviderSendOptions) -> Dict[str, Any]:
        """Translate send options into the chat completions request body."""
        body: Dict[str, Any] = {
            "model": options.model,
            "messages": [message.to_dict() for message in options.messages],
            "stream": True,
        }
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.max_tokens is not None:
            body["max_tokens"] = options.max_tokens
        if options.reasoning:
            body["reasoning_effort"] = options.reasoning
        if options.tools:
            body["tools"] = [tool.to_openai() for tool in options.tools]
            body["tool_choice"] = "auto"
        body.update(options.extra_body)
        return body

    def describe_error(self, exc: BaseException) -> str:
        return describe_transport_error(exc, self._unreachable_hint)

    def send_streaming(self, options: ProviderSendOptions, on_chunk) -> StreamHandle:
        """Start a streaming completion; see :class:`LLMProvider`."""
        url = f"{self._base_url}/chat/completions"
        body = self.build_request_body(options)

        def worker(emitter, token: CancelToken) -> None:
            if token.is_cancelled:
                return
            provider_trace(self._name, f"POST {url} model={options.model} "
                           f"messages={len(options.messages)} tools={len(options.tools)}")
            response = self._session.post(
                url,
                json=body,
                headers=self._headers(streaming=True),
                stream=True,
                timeout=self._timeout,
                **get_requests_kwargs(url),
            )
            token.on_cancel(response.close)
            try:
                raise_for_status(response)
                parser = OpenAIStreamParser()
                for line in iter_response_lines(response, token):
                    emitter.emit_all(parser.feed_line(line))
                    if parser.saw_done:
                        break
                if token.is_cancelled:
                    return
                emitter.emit_all(parser.finish())
                provider_trace(self._name, f"stream complete ({emitter.text_chars} chars)")
            finally:
                response.close()

        return start_stream(self._name, worker, on_chunk, self.describe_error)

    def list_models(self, prefix: Optional[str] = None) -> List[str]:
        """List model ids from ``/models``, filtered by the configured prefix."""
        url = f"{self._base_url}/models"
        try:
            response = self._session.get(
                url,
                headers=self._headers(),
                timeout=LIST_MODELS_TIMEOUT,
                **get_requests_kwargs(url),
            )
            raise_for_status(response)
            payload = response.json()
        except Exception as exc:
            logger.warning("%s: failed to list models: %s", self._name, exc)
            raise to_provider_error(exc, self._unreachable_hint) from exc

        ids = []
        for entry in (payload or {}).get("data") or []:
            model_id = entry.get("id") if isinstance(entry, dict) else None
            if not model_id:
                continue
            if self._model_prefix and not model_id.startswith(self._model_prefix):
                continue
            if prefix and not model_id.startswith(prefix):
                continue
            ids.append(model_id)
        return sorted(ids)


def create_provider(settings=None, *, session: Optional[requests.Session] = None) -> OpenAIProvider:
    """Factory used by the ProviderRegistry."""
    return OpenAIProvider(
        api_key=getattr(settings, "api_key", None),
        base_url=getattr(settings, "base_url", None) or None,
        session=session,
    )
