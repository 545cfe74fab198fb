"""Shared streaming runtime for provider adapters.

Each adapter describes *how* to talk to its server; this module owns the
parts every adapter needs identically:

- :class:`LineBuffer` splits a byte stream into lines regardless of how the
  transport chunked it (including multi-byte UTF-8 split across reads).
- :class:`ChunkEmitter` enforces the termination invariant: at most one
  ``error``, exactly one ``done``, nothing after ``done``.
- :func:`start_stream` runs the adapter's blocking worker on a daemon
  thread and returns a :class:`StreamHandle` for cancellation.
- Error helpers turn transport failures into the human-readable messages
  surfaced in ``error`` chunks.
"""

import codecs
import json
import logging
import threading
from typing import Any, Callable, Iterator, List, Optional

import requests

from ...errors import ErrorCode, ProviderError
from ...trace import provider_trace
from .types import CancelToken, ChunkType, StreamChunk

logger = logging.getLogger(__name__)


class HTTPStatusError(ProviderError):
    """Non-2xx response from a provider endpoint.

    Attributes:
        status: HTTP status code.
    """

    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(f"API error ({status}): {message}", ErrorCode.API_ERROR)


class LineBuffer:
    """Incremental byte-to-line splitter.

    Bytes are decoded with an incremental UTF-8 decoder, so a character or
    a line split across network reads produces exactly the same lines as
    an unsplit payload. Trailing ``\\r`` is stripped from each line.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> List[str]:
        """Add bytes and return every line completed by them."""
        self._pending += self._decoder.decode(data)
        if "\n" not in self._pending:
            return []
        parts = self._pending.split("\n")
        self._pending = parts.pop()
        return [part.rstrip("\r") for part in parts]

    def flush(self) -> List[str]:
        """Return the unterminated tail, if it holds anything."""
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        tail = tail.rstrip("\r")
        return [tail] if tail.strip() else []


def iter_response_lines(response: Any, token: CancelToken) -> Iterator[str]:
    """Yield decoded lines from a streaming ``requests`` response.

    Stops early, without flushing the tail, once ``token`` is cancelled.
    """
    buffer = LineBuffer()
    for raw in response.iter_content(chunk_size=None):
        if token.is_cancelled:
            return
        if not raw:
            continue
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        for line in buffer.feed(raw):
            yield line
    if token.is_cancelled:
        return
    for line in buffer.flush():
        yield line


class ChunkEmitter:
    """Guarded delivery of canonical chunks to an adapter's callback.

    - Chunks after ``done`` are dropped.
    - ``fail()`` emits one ``error`` followed by ``done``.
    - ``tool_call`` chunks without a ``content_offset`` are tagged with the
      number of text characters emitted so far.
    - Exceptions raised by the callback are logged and swallowed.
    """

    def __init__(self, on_chunk: Callable[[StreamChunk], None], component: str):
        self._on_chunk = on_chunk
        self._component = component
        self._lock = threading.RLock()
        self._finished = False
        self._text_chars = 0

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def text_chars(self) -> int:
        return self._text_chars

    def emit(self, chunk: StreamChunk) -> None:
        with self._lock:
            if self._finished:
                return
            if chunk.type == ChunkType.TEXT:
                self._text_chars += len(chunk.content or "")
            elif chunk.type == ChunkType.TOOL_CALL and chunk.tool_call is not None:
                if chunk.tool_call.content_offset is None:
                    chunk.tool_call.content_offset = self._text_chars
            elif chunk.type == ChunkType.DONE:
                self._finished = True
            self._deliver(chunk)

    def emit_all(self, chunks: List[StreamChunk]) -> None:
        for chunk in chunks:
            self.emit(chunk)

    def fail(self, message: str) -> None:
        """Emit an error chunk and terminate the stream."""
        with self._lock:
            if self._finished:
                return
            provider_trace(self._component, f"stream error: {message}")
            self.emit(StreamChunk.failure(message))
            self.emit(StreamChunk.done())

    def finish(self) -> None:
        """Terminate the stream; a no-op if already terminated."""
        self.emit(StreamChunk.done())

    def _deliver(self, chunk: StreamChunk) -> None:
        try:
            self._on_chunk(chunk)
        except Exception:
            logger.exception("%s: stream callback raised on %s chunk",
                             self._component, chunk.type.value)


class StreamHandle:
    """Abort handle for one streaming round.

    ``abort()`` cancels the round's token; adapters register the HTTP
    response's ``close`` on the token so a blocked read returns promptly.
    """

    def __init__(self, token: Optional[CancelToken] = None,
                 thread: Optional[threading.Thread] = None):
        self.token = token or CancelToken()
        self._thread = thread

    def abort(self) -> None:
        self.token.cancel()

    @property
    def aborted(self) -> bool:
        return self.token.is_cancelled

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread; True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()


# Worker signature: (emitter, token) -> None, may raise.
StreamWorker = Callable[[ChunkEmitter, CancelToken], None]


def start_stream(
    component: str,
    worker: StreamWorker,
    on_chunk: Callable[[StreamChunk], None],
    describe_error: Callable[[BaseException], str],
) -> StreamHandle:
    """Run ``worker`` on a daemon thread and return its abort handle.

    Whatever the worker does, the callback sees exactly one ``done``:
    an exception becomes ``error`` + ``done`` (described by
    ``describe_error``), unless the round was aborted, in which case the
    exception is the expected fallout of closing the response and only
    ``done`` is emitted.

    Args:
        component: Name used in logs and the provider trace.
        worker: Blocking function performing the HTTP call and parsing.
        on_chunk: Canonical chunk callback.
        describe_error: Maps an exception to the user-facing message.

    Returns:
        StreamHandle for the started round.
    """
    token = CancelToken()
    emitter = ChunkEmitter(on_chunk, component)

    def run() -> None:
        try:
            worker(emitter, token)
        except Exception as exc:
            if token.is_cancelled:
                provider_trace(component, f"stream aborted ({type(exc).__name__})")
            else:
                logger.debug("%s stream failed", component, exc_info=True)
                provider_trace(component, f"stream failed: {exc}", include_traceback=True)
                emitter.fail(describe_error(exc))
        finally:
            emitter.finish()

    thread = threading.Thread(target=run, name=f"redledger-{component}-stream", daemon=True)
    handle = StreamHandle(token, thread)
    thread.start()
    return handle


def is_connection_refused(exc: BaseException) -> bool:
    """True if ``exc`` (or anything in its cause chain) is a refused connection."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        text = str(current)
        if "ECONNREFUSED" in text or "Connection refused" in text or "actively refused" in text:
            return True
        # urllib3 MaxRetryError keeps the underlying failure on .reason
        reason = getattr(current, "reason", None)
        if isinstance(reason, BaseException) and id(reason) not in seen:
            current = reason
            continue
        current = current.__cause__ or current.__context__
    return False


def describe_transport_error(exc: BaseException, unreachable_hint: str) -> str:
    """Human-readable message for a failed streaming call.

    Args:
        exc: The exception raised by the HTTP call or the parser.
        unreachable_hint: Message used when the connection was refused.
    """
    if isinstance(exc, HTTPStatusError):
        return exc.message
    if is_connection_refused(exc):
        return unreachable_hint
    if isinstance(exc, requests.Timeout):
        return f"Request timed out: {exc}"
    if isinstance(exc, requests.ConnectionError):
        return f"Network error: {exc}"
    return str(exc) or type(exc).__name__


def api_error_message(response: Any) -> str:
    """Extract ``error.message`` (or ``error``) from an error response body."""
    try:
        body = response.text or ""
    except Exception:
        body = ""
    message = body.strip() or getattr(response, "reason", None) or "Unknown error"
    try:
        payload = json.loads(body)
    except ValueError:
        return message
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if payload.get("message"):
            return str(payload["message"])
    return message


def raise_for_status(response: Any) -> None:
    """Raise :class:`HTTPStatusError` for a non-2xx response."""
    if response.status_code >= 400:
        message = api_error_message(response)
        response.close()
        raise HTTPStatusError(response.status_code, message)


def to_provider_error(exc: Exception, unreachable_hint: str) -> ProviderError:
    """Wrap a non-streaming call failure (model listing) as ProviderError."""
    if isinstance(exc, ProviderError):
        return exc
    if is_connection_refused(exc) or isinstance(exc, requests.ConnectionError):
        return ProviderError(describe_transport_error(exc, unreachable_hint),
                             ErrorCode.NETWORK_ERROR)
    return ProviderError(describe_transport_error(exc, unreachable_hint))


def parse_json_line(line: str) -> Optional[Any]:
    """Parse one JSON line, returning None (and tracing) when malformed."""
    try:
        return json.loads(line)
    except ValueError:
        logger.debug("Skipping malformed stream line: %.200s", line)
        return None
