"""Fake HTTP plumbing shared by the adapter tests.

Adapters receive an injected session; these helpers build a MagicMock
session whose ``post``/``get`` return :class:`FakeResponse` objects that
replay byte chunks exactly as a streaming ``requests`` response would.
"""

import json
import threading
from typing import Any, Iterable, List, Optional
from unittest.mock import MagicMock

import requests

from ..types import ChunkType, LLMMessage, ProviderSendOptions, StreamChunk


class FakeResponse:
    """Minimal stand-in for a streaming ``requests.Response``.

    Args:
        chunks: Byte (or str) chunks yielded by ``iter_content``.
        status_code: HTTP status.
        body: Response text for error bodies and ``json()``.
        hang: After the chunks, block until ``close()`` is called and then
            fail the read, the way a socket closed under a reader does.
    """

    def __init__(
        self,
        chunks: Iterable[Any] = (),
        status_code: int = 200,
        body: str = "",
        json_data: Any = None,
        headers: Optional[dict] = None,
        url: str = "",
        encoding: Optional[str] = "utf-8",
        hang: bool = False,
    ):
        self._chunks = list(chunks)
        self.status_code = status_code
        self.text = body
        self._json = json_data
        self.headers = headers or {}
        self.url = url
        self.encoding = encoding
        self.reason = "Error" if status_code >= 400 else "OK"
        self._hang = hang
        self._closed = threading.Event()
        self.started = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def iter_content(self, chunk_size=None):
        self.started.set()
        for chunk in self._chunks:
            if self.closed:
                raise requests.ConnectionError("Response closed")
            yield chunk
        if self._hang:
            self._closed.wait(5)
            raise requests.ConnectionError("Response closed")

    def json(self):
        if self._json is not None:
            return self._json
        return json.loads(self.text)

    def close(self) -> None:
        self._closed.set()


def make_session(*responses: FakeResponse, get: Optional[FakeResponse] = None) -> MagicMock:
    """Session whose successive ``post`` calls return ``responses``."""
    session = MagicMock()
    session.post.side_effect = list(responses)
    if get is not None:
        session.get.return_value = get
    return session


def split_bytes(payload: str, size: int) -> List[bytes]:
    """Encode ``payload`` and cut it into ``size``-byte pieces."""
    data = payload.encode("utf-8")
    return [data[i:i + size] for i in range(0, len(data), size)]


def sse(*events: Any) -> str:
    """OpenAI SSE body for ``events``, terminated by ``[DONE]``."""
    lines = [f"data: {json.dumps(event, ensure_ascii=False)}\n\n" for event in events]
    lines.append("data: [DONE]\n\n")
    return "".join(lines)


def ndjson(*objects: Any) -> str:
    return "".join(json.dumps(obj, ensure_ascii=False) + "\n" for obj in objects)


def simple_options(**overrides) -> ProviderSendOptions:
    values = dict(messages=[LLMMessage(role="user", content="hi")], model="test-model")
    values.update(overrides)
    return ProviderSendOptions(**values)


def collect(provider, options: Optional[ProviderSendOptions] = None,
            timeout: float = 5.0) -> List[StreamChunk]:
    """Run one streaming round to completion and return its chunks."""
    chunks: List[StreamChunk] = []
    handle = provider.send_streaming(options or simple_options(), chunks.append)
    assert handle.join(timeout), "stream worker did not finish"
    return chunks


def types_of(chunks: List[StreamChunk]) -> List[str]:
    return [chunk.type.value for chunk in chunks]


def text_of(chunks: List[StreamChunk]) -> str:
    return "".join(chunk.content or "" for chunk in chunks if chunk.type == ChunkType.TEXT)


def tool_calls_of(chunks: List[StreamChunk]):
    return [chunk.tool_call for chunk in chunks if chunk.type == ChunkType.TOOL_CALL]
