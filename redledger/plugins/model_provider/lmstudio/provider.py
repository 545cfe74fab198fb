"""LM Studio adapter.

LM Studio exposes two APIs and the user picks one in settings:

- ``openai`` (default): the OpenAI-compatible ``/v1`` endpoints. Requests
  are delegated unchanged to :class:`OpenAIProvider`.
- ``lmstudio``: the native ``/api/v1`` endpoints, which stream JSON lines
  whose shape has varied across LM Studio versions. The parser accepts
  text from ``choices[0].delta.content``, ``message.content`` or a bare
  ``content`` field, with or without an SSE ``data:`` prefix.

The choice is made once, at construction (composition, not inheritance).
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ....http import get_requests_kwargs, get_requests_session
from ....trace import provider_trace
from ..openai.provider import OpenAIProvider
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
    content_text,
)
from .env import DEFAULT_LMSTUDIO_BASE_URL, Compatibility, parse_compatibility

logger = logging.getLogger(__name__)

LMSTUDIO_UNREACHABLE = "Cannot reach LM Studio. Is its local server running?"
DEFAULT_STREAM_TIMEOUT = 300.0
LIST_MODELS_TIMEOUT = 10.0

_MODEL_ID_KEYS = ("id", "model_id", "model", "name")


class LMStudioStreamError(Exception):
    """LM Studio reported an error object mid-stream."""


def normalize_base_url(base_url: str, compatibility: Compatibility) -> str:
    """Point the base URL at the API flavour in use.

    OpenAI mode ends in ``/v1``; native mode ends in ``/api/v1``. Either
    suffix is rewritten to the other when the user pasted the wrong one.

    Example:
        normalize_base_url("http://localhost:1234/", "openai")
        -> "http://localhost:1234/v1"
        normalize_base_url("http://localhost:1234/v1", "lmstudio")
        -> "http://localhost:1234/api/v1"
    """
    trimmed = base_url.rstrip("/")
    if compatibility == "openai":
        if trimmed.endswith("/api/v1"):
            return trimmed[: -len("/api/v1")] + "/v1"
        if trimmed.endswith("/v1"):
            return trimmed
        return f"{trimmed}/v1"

    if trimmed.endswith("/api/v1"):
        return trimmed
    if trimmed.endswith("/v1"):
        return trimmed[: -len("/v1")] + "/api/v1"
    return f"{trimmed}/api/v1"


def extract_model_id(entry: Any) -> Optional[str]:
    """Model id from a native ``/models`` entry, whichever key this version uses."""
    if not isinstance(entry, dict):
        return None
    for key in _MODEL_ID_KEYS:
        value = entry.get(key)
        if value is not None:
            return value if isinstance(value, str) and value.strip() else None
    return None


def _first_string(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str):
            return value
    return None


class LMStudioStreamParser:
    """Line-level parser for LM Studio's native chat stream."""

    def __init__(self):
        self.saw_done = False

    def feed_line(self, line: str) -> List[StreamChunk]:
        line = line.strip()
        if not line or line.startswith(":"):
            return []

        text = line[5:].strip() if line.startswith("data:") else line
        if text == "[DONE]":
            self.saw_done = True
            return []

        payload = parse_json_line(text)
        if not isinstance(payload, dict):
            return []

        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise LMStudioStreamError(f"LM Studio error: {message}")

        choices = payload.get("choices")
        choice = choices[0] if isinstance(choices, list) and choices else {}
        choice = choice if isinstance(choice, dict) else {}
        delta = choice.get("delta") if isinstance(choice.get("delta"), dict) else {}
        message = payload.get("message") if isinstance(payload.get("message"), dict) else {}

        chunks: List[StreamChunk] = []
        reasoning = _first_string(
            delta.get("reasoning_content"), delta.get("reasoning"),
            message.get("reasoning_content"), message.get("reasoning"),
        )
        if reasoning:
            chunks.append(StreamChunk.thinking(reasoning))

        content = _first_string(delta.get("content"), message.get("content"), payload.get("content"))
        if content:
            chunks.append(StreamChunk.text(content))

        if payload.get("done") is True or choice.get("finish_reason") == "stop":
            self.saw_done = True
        return chunks

    def finish(self) -> List[StreamChunk]:
        return []


class LMStudioNativeProvider:
    """Native ``/api/v1`` client. Tool definitions are not sent in this mode."""

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_STREAM_TIMEOUT,
    ):
        self._base_url = base_url.rstrip("/")
        self._session = session or get_requests_session()
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "lmstudio"

    @property
    def base_url(self) -> str:
        return self._base_url

    def build_request_body(self, options: ProviderSendOptions) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": options.model,
            "messages": [
                {"role": message.role, "content": content_text(message.content)}
                for message in options.messages
            ],
            "stream": True,
        }
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.max_tokens is not None:
            body["max_tokens"] = options.max_tokens
        if options.reasoning:
            body["reasoning"] = options.reasoning
        body.update(options.extra_body)
        return body

    def describe_error(self, exc: BaseException) -> str:
        return describe_transport_error(exc, LMSTUDIO_UNREACHABLE)

    def _post(self, url: str, body: Dict[str, Any]):
        return self._session.post(
            url,
            json=body,
            headers={"Content-Type": "application/json"},
            stream=True,
            timeout=self._timeout,
            **get_requests_kwargs(url),
        )

    def send_streaming(self, options: ProviderSendOptions, on_chunk) -> StreamHandle:
        url = f"{self._base_url}/chat"
        body = self.build_request_body(options)

        def worker(emitter, token: CancelToken) -> None:
            if token.is_cancelled:
                return
            provider_trace("lmstudio", f"POST {url} model={options.model} "
                           f"messages={len(options.messages)}")
            response = self._post(url, body)
            if response.status_code == 400 and "reasoning" in body:
                # Older servers reject the reasoning parameter outright.
                response.close()
                provider_trace("lmstudio", "HTTP 400 with reasoning, retrying without it")
                retry_body = {key: value for key, value in body.items() if key != "reasoning"}
                if token.is_cancelled:
                    return
                response = self._post(url, retry_body)
            token.on_cancel(response.close)
            try:
                raise_for_status(response)
                parser = LMStudioStreamParser()
                for line in iter_response_lines(response, token):
                    emitter.emit_all(parser.feed_line(line))
                    if parser.saw_done:
                        break
            finally:
                response.close()

        return start_stream("lmstudio", worker, on_chunk, self.describe_error)

    def list_models(self, prefix: Optional[str] = None) -> List[str]:
        url = f"{self._base_url}/models"
        try:
            response = self._session.get(url, timeout=LIST_MODELS_TIMEOUT,
                                         **get_requests_kwargs(url))
            raise_for_status(response)
            payload = response.json()
        except Exception as exc:
            logger.warning("lmstudio: failed to list models: %s", exc)
            raise to_provider_error(exc, LMSTUDIO_UNREACHABLE) from exc

        payload = payload if isinstance(payload, dict) else {}
        entries = payload.get("data")
        if not isinstance(entries, list):
            entries = payload.get("models")
        if not isinstance(entries, list):
            entries = []

        ids = [model_id for model_id in map(extract_model_id, entries) if model_id]
        if prefix:
            ids = [model_id for model_id in ids if model_id.startswith(prefix)]
        return sorted(ids)


class LMStudioProvider:
    """LM Studio adapter delegating to the OpenAI or the native client.

    Args:
        base_url: Server URL; normalized for the selected compatibility.
        compatibility: "openai" (default) or "lmstudio".
        session: requests.Session shared with the delegate.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        compatibility: str = "openai",
        *,
        session: Optional[requests.Session] = None,
    ):
        self._compatibility = parse_compatibility(compatibility)
        self._base_url = normalize_base_url(base_url or DEFAULT_LMSTUDIO_BASE_URL,
                                            self._compatibility)
        if self._compatibility == "openai":
            self._delegate = OpenAIProvider(
                api_key="",
                base_url=self._base_url,
                name="lmstudio",
                model_prefix=None,
                session=session,
                unreachable_hint=LMSTUDIO_UNREACHABLE,
            )
        else:
            self._delegate = LMStudioNativeProvider(self._base_url, session=session)

    @property
    def name(self) -> str:
        return "lmstudio"

    @property
    def compatibility(self) -> Compatibility:
        return self._compatibility

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def delegate(self):
        return self._delegate

    def send_streaming(self, options: ProviderSendOptions, on_chunk) -> StreamHandle:
        return self._delegate.send_streaming(options, on_chunk)

    def list_models(self, prefix: Optional[str] = None) -> List[str]:
        return self._delegate.list_models(prefix)


def create_provider(settings=None, *, session: Optional[requests.Session] = None) -> LMStudioProvider:
    """Factory used by the ProviderRegistry."""
    return LMStudioProvider(
        base_url=getattr(settings, "base_url", None) or None,
        compatibility=getattr(settings, "compatibility", None) or "openai",
        session=session,
    )
