"""Ollama streaming adapter.

Ollama's native ``POST /api/chat`` streams NDJSON, one complete object
per line, with no sentinel line; the final object carries ``"done": true``:

    {"message":{"role":"assistant","content":"Hel"},"done":false}
    {"message":{"role":"assistant","thinking":"..."},"done":false}
    {"message":{"role":"assistant","content":"","tool_calls":[
        {"function":{"name":"read_file","arguments":{"path":"a.md"}}}]},"done":false}
    {"message":{"role":"assistant","content":""},"done":true}

Tool calls are never fragmented, so each maps 1:1 to a ``tool_call`` chunk.
No API key is needed; Ollama runs as a local server.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import requests

from ....http import get_requests_kwargs, get_requests_session
from ....trace import provider_trace
from ..openai.provider import parse_tool_arguments
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
    LLMMessage,
    ProviderSendOptions,
    StreamChunk,
    ToolCall,
)
from .env import DEFAULT_OLLAMA_HOST, DEFAULT_STREAM_TIMEOUT

logger = logging.getLogger(__name__)

OLLAMA_UNREACHABLE = "Cannot reach Ollama. Is it running? (ollama serve)"
LIST_MODELS_TIMEOUT = 10.0


class OllamaStreamError(Exception):
    """Ollama reported an error object mid-stream (e.g. model not found)."""


def extract_thinking(value: Any) -> str:
    """Flatten Ollama's thinking field to text.

    Depending on version and model the field is a string, a list of parts,
    or an object with ``text`` / ``content``; lists and objects may nest.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "".join(extract_thinking(item) for item in value)
    if isinstance(value, dict):
        return extract_thinking(value.get("text") or value.get("content"))
    return ""


def _data_url_base64(url: str) -> Optional[str]:
    if not url.startswith("data:") or "," not in url:
        return None
    header, _, data = url.partition(",")
    return data if header.endswith(";base64") else None


def _convert_tool_calls(tool_calls: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    converted = []
    for call in tool_calls:
        function = call.get("function") or {}
        arguments = function.get("arguments")
        if isinstance(arguments, str):
            arguments = parse_tool_arguments(arguments)
        converted.append({
            "function": {
                "name": function.get("name", ""),
                "arguments": arguments or {},
            }
        })
    return converted


def convert_message(message: LLMMessage) -> Dict[str, Any]:
    """Convert a canonical message to Ollama's chat message shape.

    List content is flattened to text; base64 image data URLs move to the
    ``images`` field. Assistant tool calls carry object arguments.
    """
    result: Dict[str, Any] = {"role": message.role}
    content = message.content
    if isinstance(content, list):
        texts = []
        images = []
        for part in content:
            if not isinstance(part, dict):
                continue
            if part.get("type") == "text":
                texts.append(part.get("text", ""))
            elif part.get("type") == "image_url":
                image = part.get("image_url") or {}
                url = image.get("url", "") if isinstance(image, dict) else str(image)
                data = _data_url_base64(url)
                if data:
                    images.append(data)
                else:
                    logger.debug("Ollama: dropping non-inline image %.80s", url)
        result["content"] = "\n".join(texts)
        if images:
            result["images"] = images
    else:
        result["content"] = content or ""

    if message.role == "assistant" and message.tool_calls:
        result["tool_calls"] = _convert_tool_calls(message.tool_calls)
    return result


class OllamaStreamParser:
    """Line-level parser for Ollama NDJSON chat streams."""

    def __init__(self):
        self.saw_done = False

    def feed_line(self, line: str) -> List[StreamChunk]:
        line = line.strip()
        if not line:
            return []
        payload = parse_json_line(line)
        if not isinstance(payload, dict):
            return []

        if payload.get("error"):
            raise OllamaStreamError(f"Ollama error: {payload['error']}")

        chunks: List[StreamChunk] = []
        message = payload.get("message") or {}
        if isinstance(message, dict):
            thinking = extract_thinking(message.get("thinking"))
            if thinking:
                chunks.append(StreamChunk.thinking(thinking))

            content = message.get("content")
            if isinstance(content, str) and content:
                chunks.append(StreamChunk.text(content))

            calls = message.get("tool_calls")
            if isinstance(calls, list):
                for call in calls:
                    tool_call = self._to_tool_call(call)
                    if tool_call is not None:
                        chunks.append(StreamChunk.tool_call_chunk(tool_call))

        if payload.get("done") is True:
            self.saw_done = True
        return chunks

    @staticmethod
    def _to_tool_call(call: Any) -> Optional[ToolCall]:
        function = call.get("function") if isinstance(call, dict) else None
        if not isinstance(function, dict):
            logger.debug("Ollama: skipping malformed tool call %.200r", call)
            return None
        name = function.get("name")
        name = name if isinstance(name, str) and name else "unknown"
        arguments = function.get("arguments")
        if isinstance(arguments, str):
            arguments = parse_tool_arguments(arguments)
        elif not isinstance(arguments, dict):
            arguments = {}
        call_id = call.get("id") or f"ollama_{name}_{uuid.uuid4().hex[:8]}"
        return ToolCall(id=str(call_id), name=name, arguments=arguments)

    def finish(self) -> List[StreamChunk]:
        return []


class OllamaProvider:
    """Adapter for a local (or remote) Ollama server.

    Args:
        host: Server URL (default http://localhost:11434).
        session: requests.Session to use; defaults to a proxy-aware one.
        timeout: Read timeout; generous because a cold model load can
            take minutes before the first byte.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_STREAM_TIMEOUT,
    ):
        self._host = (host or DEFAULT_OLLAMA_HOST).rstrip("/")
        self._session = session or get_requests_session()
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def host(self) -> str:
        return self._host

    def build_request_body(self, options: ProviderSendOptions) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": options.model,
            "messages": [convert_message(message) for message in options.messages],
            "stream": True,
        }
        model_options: Dict[str, Any] = {}
        if options.temperature is not None:
            model_options["temperature"] = options.temperature
        if options.max_tokens is not None:
            model_options["num_predict"] = options.max_tokens
        if model_options:
            body["options"] = model_options
        if options.reasoning:
            body["think"] = True
        if options.tools:
            body["tools"] = [tool.to_openai() for tool in options.tools]
        body.update(options.extra_body)
        return body

    def describe_error(self, exc: BaseException) -> str:
        return describe_transport_error(exc, OLLAMA_UNREACHABLE)

    def send_streaming(self, options: ProviderSendOptions, on_chunk) -> StreamHandle:
        url = f"{self._host}/api/chat"
        body = self.build_request_body(options)

        def worker(emitter, token: CancelToken) -> None:
            if token.is_cancelled:
                return
            provider_trace("ollama", f"POST {url} model={options.model} "
                           f"messages={len(options.messages)} tools={len(options.tools)}")
            response = self._session.post(
                url,
                json=body,
                headers={"Content-Type": "application/json"},
                stream=True,
                timeout=self._timeout,
                **get_requests_kwargs(url),
            )
            token.on_cancel(response.close)
            try:
                raise_for_status(response)
                parser = OllamaStreamParser()
                for line in iter_response_lines(response, token):
                    emitter.emit_all(parser.feed_line(line))
                    if parser.saw_done:
                        break
                if not parser.saw_done and not token.is_cancelled:
                    provider_trace("ollama", "stream ended without done=true")
            finally:
                response.close()

        return start_stream("ollama", worker, on_chunk, self.describe_error)

    def list_models(self, prefix: Optional[str] = None) -> List[str]:
        """List installed models from ``/api/tags``."""
        url = f"{self._host}/api/tags"
        try:
            response = self._session.get(url, timeout=LIST_MODELS_TIMEOUT,
                                         **get_requests_kwargs(url))
            raise_for_status(response)
            payload = response.json()
        except Exception as exc:
            logger.warning("ollama: failed to list models: %s", exc)
            raise to_provider_error(exc, OLLAMA_UNREACHABLE) from exc

        names = [
            entry.get("name") for entry in (payload or {}).get("models") or []
            if isinstance(entry, dict) and entry.get("name")
        ]
        if prefix:
            names = [name for name in names if name.startswith(prefix)]
        return sorted(names)


def create_provider(settings=None, *, session: Optional[requests.Session] = None) -> OllamaProvider:
    """Factory used by the ProviderRegistry."""
    return OllamaProvider(host=getattr(settings, "base_url", None) or None, session=session)
