"""Unit tests for wire frame encoding and decoding."""

import json

import pytest
from pydantic import TypeAdapter, ValidationError

from relaychat.core.frames import (
    DONE,
    FRAME_KIND_CONTENT,
    FRAME_KIND_DONE,
    FRAME_KIND_ERROR,
    FRAME_KIND_USAGE,
    VALID_FRAME_KINDS,
    ContentDelta,
    Done,
    ErrorNotice,
    Frame,
    FrameDecodeError,
    UsageRecord,
    extract_content,
    format_sse,
    parse_frame,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------


class TestConstants:
    def test_valid_frame_kinds(self):
        assert VALID_FRAME_KINDS == {
            FRAME_KIND_CONTENT,
            FRAME_KIND_USAGE,
            FRAME_KIND_ERROR,
            FRAME_KIND_DONE,
        }

    def test_models_match_constants(self):
        assert ContentDelta(text="x").kind == FRAME_KIND_CONTENT
        assert UsageRecord(completion_tokens=1, elapsed_seconds=1.0).kind == FRAME_KIND_USAGE
        assert ErrorNotice(message="m").kind == FRAME_KIND_ERROR
        assert Done().kind == FRAME_KIND_DONE

    def test_discriminated_union(self):
        adapter = TypeAdapter(Frame)
        frame = adapter.validate_python({"kind": "error", "message": "boom"})
        assert isinstance(frame, ErrorNotice)
        with pytest.raises(ValidationError):
            adapter.validate_python({"kind": "thinking", "text": "x"})


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


class TestFormatSSE:
    def test_done(self):
        assert format_sse(DONE) == "data: [DONE]\n\n"

    def test_content_passes_chunk_through(self):
        chunk = {
            "id": "c1",
            "object": "chat.completion.chunk",
            "choices": [{"index": 0, "delta": {"content": "Hel"}}],
        }
        record = format_sse(ContentDelta(text="Hel", chunk=chunk))
        assert record.startswith("data: ")
        assert record.endswith("\n\n")
        assert json.loads(record[len("data: ") : -2]) == chunk

    def test_content_without_chunk(self):
        record = format_sse(ContentDelta(text="hi"))
        payload = json.loads(record[len("data: ") : -2])
        assert payload["choices"][0]["delta"]["content"] == "hi"

    def test_usage_shape(self):
        record = format_sse(UsageRecord(completion_tokens=3, elapsed_seconds=0.123456789))
        payload = json.loads(record[len("data: ") : -2])
        assert payload == {
            "usage": {"completion_tokens": 3, "total_tokens": 3},
            "time_info": {"completion_time": 0.123456789, "total_time": 0.123456789},
        }

    def test_error_shape(self):
        record = format_sse(ErrorNotice(message="connection reset"))
        assert record == 'data: {"error": "connection reset"}\n\n'

    def test_usage_rejects_non_positive_elapsed(self):
        with pytest.raises(ValidationError):
            UsageRecord(completion_tokens=1, elapsed_seconds=0.0)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestExtractContent:
    def test_delta(self):
        assert extract_content({"choices": [{"delta": {"content": "a"}}]}) == "a"

    def test_complete_message(self):
        assert extract_content({"choices": [{"message": {"content": "b"}}]}) == "b"

    def test_missing_or_empty(self):
        assert extract_content({}) == ""
        assert extract_content({"choices": []}) == ""
        assert extract_content({"choices": [{"delta": {}}]}) == ""
        assert extract_content({"choices": [{"delta": {"content": None}}]}) == ""


class TestParseFrame:
    def test_done(self):
        assert isinstance(parse_frame("[DONE]"), Done)
        assert isinstance(parse_frame("  [DONE] "), Done)

    def test_content(self):
        frame = parse_frame('{"choices": [{"delta": {"content": "lo"}}]}')
        assert isinstance(frame, ContentDelta)
        assert frame.text == "lo"

    def test_usage(self):
        frame = parse_frame(
            '{"usage": {"completion_tokens": 7, "total_tokens": 7},'
            ' "time_info": {"completion_time": 0.5, "total_time": 0.5}}'
        )
        assert isinstance(frame, UsageRecord)
        assert frame.completion_tokens == 7
        assert frame.elapsed_seconds == 0.5

    def test_usage_without_time_info(self):
        frame = parse_frame('{"usage": {"completion_tokens": 2}}')
        assert isinstance(frame, UsageRecord)
        assert frame.completion_tokens == 2

    def test_usage_without_completion_tokens(self):
        frame = parse_frame('{"usage": {"total_tokens": 5}, "time_info": {"total_time": 1.0}}')
        assert isinstance(frame, UsageRecord)
        assert frame.completion_tokens is None
        assert frame.elapsed_seconds == 1.0

    def test_error_string(self):
        frame = parse_frame('{"error": "upstream reset"}')
        assert isinstance(frame, ErrorNotice)
        assert frame.message == "upstream reset"

    def test_error_object(self):
        frame = parse_frame('{"error": {"message": "bad model", "code": 400}}')
        assert isinstance(frame, ErrorNotice)
        assert frame.message == "bad model"

    def test_round_trip_through_sse(self):
        frame = ErrorNotice(message="x")
        assert parse_frame(format_sse(frame)[len("data: ") : -2]) == frame

    @pytest.mark.parametrize(
        "data",
        [
            "not json",
            "[1, 2]",
            '"just a string"',
            "{}",
            '{"choices": [{"delta": {}}]}',
            '{"usage": {"completion_tokens": "many"}}',
        ],
    )
    def test_malformed_raises(self, data):
        with pytest.raises(FrameDecodeError):
            parse_frame(data)

    def test_decode_error_is_value_error(self):
        assert issubclass(FrameDecodeError, ValueError)
