"""Tests for OllamaProvider."""

import pytest
import requests

from ...tests.fakes import (
    FakeResponse,
    collect,
    make_session,
    ndjson,
    simple_options,
    split_bytes,
    text_of,
    tool_calls_of,
    types_of,
)
from ...types import ChunkType, LLMMessage, ToolDefinition
from ..env import DEFAULT_OLLAMA_HOST
from ..provider import (
    OLLAMA_UNREACHABLE,
    OllamaProvider,
    OllamaStreamParser,
    convert_message,
    extract_thinking,
)
from .....errors import ErrorCode, ProviderError


STREAM = ndjson(
    {"message": {"role": "assistant", "thinking": "Looking…"}, "done": False},
    {"message": {"role": "assistant", "content": "Reading the file"}, "done": False},
    {"message": {"role": "assistant", "content": "", "tool_calls": [
        {"id": "call_1", "function": {"name": "read_file", "arguments": {"path": "ü.md"}}}]},
     "done": False},
    {"message": {"role": "assistant", "content": ""}, "done": True},
)


class TestExtractThinking:
    """Tests for thinking flattening."""

    def test_string(self):
        """A plain string is returned as-is."""
        assert extract_thinking("abc") == "abc"

    def test_nested_parts(self):
        """Lists and objects are flattened recursively."""
        value = [{"text": "a"}, ["b", {"content": {"text": "c"}}], 7, None]
        assert extract_thinking(value) == "abc"


class TestConvertMessage:
    """Tests for message conversion."""

    def test_images_moved_out_of_content(self):
        """Text parts are joined and base64 data URLs go to images."""
        message = LLMMessage(role="user", content=[
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
            {"type": "image_url", "image_url": {"url": "https://example.test/x.png"}},
        ])
        converted = convert_message(message)
        assert converted == {"role": "user", "content": "What is this?", "images": ["AAAA"]}

    def test_assistant_tool_calls_use_object_arguments(self):
        """String arguments on history tool calls are parsed back to objects."""
        message = LLMMessage(role="assistant", content=None, tool_calls=[
            {"id": "c1", "type": "function",
             "function": {"name": "read_file", "arguments": '{"path": "a.md"}'}}])
        converted = convert_message(message)
        assert converted["content"] == ""
        assert converted["tool_calls"] == [
            {"function": {"name": "read_file", "arguments": {"path": "a.md"}}}]


class TestStreamParser:
    """Tests for OllamaStreamParser."""

    def test_tool_call_without_id_gets_unique_id(self):
        """Calls without an id get distinct generated ids."""
        parser = OllamaStreamParser()
        line = '{"message":{"tool_calls":[{"function":{"name":"list_files","arguments":{}}}]}}'
        first = parser.feed_line(line)[0].tool_call
        second = parser.feed_line(line)[0].tool_call
        assert first.id.startswith("ollama_list_files_")
        assert first.id != second.id

    def test_string_arguments_parsed(self):
        """String arguments are parsed, broken ones kept as _raw."""
        parser = OllamaStreamParser()
        ok = parser.feed_line('{"message":{"tool_calls":[{"function":{"name":"x","arguments":"{\\"a\\":1}"}}]}}')
        bad = parser.feed_line('{"message":{"tool_calls":[{"function":{"name":"x","arguments":"{oops"}}]}}')
        assert ok[0].tool_call.arguments == {"a": 1}
        assert bad[0].tool_call.arguments == {"_raw": "{oops"}

    def test_malformed_line_skipped(self):
        """A non-JSON line yields nothing and does not stop the parser."""
        parser = OllamaStreamParser()
        assert parser.feed_line("{broken") == []
        assert parser.feed_line('{"message":{"content":"ok"}}')[0].content == "ok"

    @pytest.mark.parametrize("line", [
        '{"message":{"tool_calls":[{"function":"bad"}]}}',
        '{"message":{"tool_calls":[42, "x"]}}',
        '{"message":{"tool_calls":7}}',
        '{"message":{"tool_calls":{"function":{"name":"x"}}}}',
    ])
    def test_wrong_shape_tool_calls_skipped(self, line):
        """Tool call entries of the wrong shape are dropped, not fatal."""
        parser = OllamaStreamParser()
        assert parser.feed_line(line) == []
        assert parser.feed_line('{"message":{"content":"after"},"done":true}')[0].content == "after"

    def test_error_object_raises(self):
        """An error line raises so the round reports it."""
        parser = OllamaStreamParser()
        with pytest.raises(Exception, match="model 'nope' not found"):
            parser.feed_line('{"error": "model \'nope\' not found"}')


class TestRequestBody:
    """Tests for request body construction."""

    def test_options_and_think(self):
        """Sampling goes into options; reasoning turns on think."""
        provider = OllamaProvider(session=make_session())
        tool = ToolDefinition("read_file", "Read", {"type": "object", "properties": {}})
        body = provider.build_request_body(simple_options(
            temperature=0.5, max_tokens=64, reasoning="on", tools=[tool]))
        assert body["options"] == {"temperature": 0.5, "num_predict": 64}
        assert body["think"] is True
        assert body["tools"][0]["type"] == "function"

    def test_minimal_body(self):
        """No options, think or tools when none are requested."""
        body = OllamaProvider(session=make_session()).build_request_body(simple_options())
        assert set(body) == {"model", "messages", "stream"}


class TestSendStreaming:
    """Tests for the streaming round."""

    def test_chunk_split_independence(self):
        """Byte-level splitting never changes the parsed stream."""
        reference = None
        for size in (1, 3, 8, len(STREAM.encode("utf-8"))):
            session = make_session(FakeResponse(split_bytes(STREAM, size)))
            chunks = collect(OllamaProvider(session=session))
            shape = [(c.type, c.content, c.tool_call and c.tool_call.arguments) for c in chunks]
            if reference is None:
                reference = shape
            assert shape == reference

        assert [t for t, _, _ in reference] == [
            ChunkType.THINKING, ChunkType.TEXT, ChunkType.TOOL_CALL, ChunkType.DONE]
        assert reference[0][1] == "Looking…"
        assert reference[2][2] == {"path": "ü.md"}

    def test_posts_to_api_chat(self):
        """The round posts to /api/chat on the configured host."""
        session = make_session(FakeResponse([STREAM.encode("utf-8")]))
        chunks = collect(OllamaProvider("http://gpu-box:11434/", session=session))
        assert session.post.call_args[0][0] == "http://gpu-box:11434/api/chat"
        assert text_of(chunks) == "Reading the file"
        call = tool_calls_of(chunks)[0]
        assert (call.id, call.name, call.content_offset) == ("call_1", "read_file", len("Reading the file"))

    def test_missing_done_still_terminates(self):
        """A stream cut off before done=true still ends with exactly one done."""
        body = ndjson({"message": {"content": "half"}, "done": False})
        chunks = collect(OllamaProvider(session=make_session(FakeResponse([body.encode()]))))
        assert types_of(chunks) == ["text", "done"]

    def test_wrong_shape_line_does_not_end_round(self):
        """Text after a malformed tool call line still reaches the sink."""
        body = ndjson(
            {"message": {"content": "before "}, "done": False},
            {"message": {"tool_calls": [{"function": "bad"}]}, "done": False},
            {"message": {"content": "after"}, "done": True},
        )
        chunks = collect(OllamaProvider(session=make_session(FakeResponse([body.encode()]))))
        assert types_of(chunks) == ["text", "text", "done"]
        assert text_of(chunks) == "before after"

    def test_lines_after_done_ignored(self):
        """Nothing after the done=true line is emitted."""
        body = STREAM + ndjson({"message": {"content": "late"}, "done": False})
        chunks = collect(OllamaProvider(session=make_session(FakeResponse([body.encode()]))))
        assert "late" not in text_of(chunks)
        assert types_of(chunks).count("done") == 1

    def test_connection_refused_hint(self):
        """A refused connection suggests starting ollama serve."""
        session = make_session()
        session.post.side_effect = requests.ConnectionError(
            "Max retries exceeded (Caused by NewConnectionError: [Errno 111] Connection refused)")
        chunks = collect(OllamaProvider(session=session))
        assert types_of(chunks) == ["error", "done"]
        assert chunks[0].error == OLLAMA_UNREACHABLE

    def test_http_error(self):
        """An error status surfaces Ollama's error string."""
        response = FakeResponse(status_code=404, body='{"error": "model \\"x\\" not found"}')
        chunks = collect(OllamaProvider(session=make_session(response)))
        assert chunks[0].error == 'API error (404): model "x" not found'
        assert types_of(chunks) == ["error", "done"]

    def test_abort(self):
        """Abort closes the response and ends the round with done only."""
        response = FakeResponse([ndjson({"message": {"content": "a"}}).encode()], hang=True)
        chunks = []
        handle = OllamaProvider(session=make_session(response)).send_streaming(
            simple_options(), chunks.append)
        assert response.started.wait(5)
        handle.abort()
        assert handle.join(5)
        assert handle.aborted
        assert "error" not in types_of(chunks)
        assert types_of(chunks)[-1] == "done"


class TestListModels:
    """Tests for model listing."""

    def test_lists_tags(self):
        """Model names come from /api/tags, sorted."""
        tags = FakeResponse(json_data={"models": [{"name": "qwen3:8b"}, {"name": "llama3.1"}, {}]})
        session = make_session(get=tags)
        assert OllamaProvider(session=session).list_models() == ["llama3.1", "qwen3:8b"]
        assert session.get.call_args[0][0] == f"{DEFAULT_OLLAMA_HOST}/api/tags"

    def test_unreachable(self):
        """A refused connection raises a NETWORK_ERROR with the hint."""
        session = make_session()
        session.get.side_effect = requests.ConnectionError("Connection refused")
        with pytest.raises(ProviderError) as exc_info:
            OllamaProvider(session=session).list_models()
        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert exc_info.value.message == OLLAMA_UNREACHABLE
