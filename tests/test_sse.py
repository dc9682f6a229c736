"""
Tests for the relay's SSE stream reader.

Tests cover:
- Line decoding (data lines, blanks, [DONE], malformed JSON)
- Text accumulation and usage capture
- Error frames
"""

import json

import pytest

from clients.sse import consume_sse, parse_sse_line, stream_error_message
from models.errors import ProviderStreamError


async def _lines(*lines: str):
    for line in lines:
        yield line


def _frame(**data) -> str:
    return f"data: {json.dumps(data)}"


# =============================================================================
# Test: parse_sse_line
# =============================================================================


class TestParseSseLine:
    """Tests for single-line decoding."""

    def test_data_line(self):
        """Should decode a data line."""
        assert parse_sse_line('data: {"type": "text", "text": "oi"}') == {"type": "text", "text": "oi"}

    @pytest.mark.parametrize("line", ["", "event: message", ": keepalive", "data: ", "data: [DONE]"])
    def test_ignored_lines(self, line):
        """Non-data, empty and [DONE] lines yield nothing."""
        assert parse_sse_line(line) is None

    def test_malformed_json_skipped(self):
        """Malformed JSON is skipped, not raised."""
        assert parse_sse_line("data: {not json") is None

    def test_non_object_skipped(self):
        """JSON that is not an object is skipped."""
        assert parse_sse_line("data: [1, 2]") is None


class TestStreamErrorMessage:
    """Tests for error frame messages."""

    def test_nested_message(self):
        assert stream_error_message({"error": {"message": "overloaded"}}) == "overloaded"

    def test_string_error(self):
        assert stream_error_message({"error": "boom"}) == "boom"

    def test_fallback(self):
        assert stream_error_message({}) == "Streaming error"


# =============================================================================
# Test: consume_sse
# =============================================================================


class TestConsumeSse:
    """Tests for whole-stream accumulation."""

    @pytest.mark.asyncio
    async def test_accumulates_text_and_usage(self):
        """Should join text frames in order and keep usage from done."""
        text, usage = await consume_sse(
            _lines(
                _frame(type="text", text='{"identificacao": '),
                "",
                _frame(type="text", text="{}}"),
                "data: {broken",
                _frame(type="done", usage={"input_tokens": 10, "output_tokens": 5}),
            )
        )
        assert text == '{"identificacao": {}}'
        assert usage == {"input_tokens": 10, "output_tokens": 5}

    @pytest.mark.asyncio
    async def test_no_done_frame(self):
        """Usage is None when the stream has no done frame."""
        text, usage = await consume_sse(_lines(_frame(type="text", text="abc")))
        assert text == "abc"
        assert usage is None

    @pytest.mark.asyncio
    async def test_error_frame_raises(self):
        """An error frame aborts the stream with ProviderStreamError."""
        with pytest.raises(ProviderStreamError, match="overloaded") as exc_info:
            await consume_sse(
                _lines(
                    _frame(type="text", text="partial"),
                    _frame(type="error", error={"message": "overloaded"}),
                    _frame(type="text", text="never read"),
                ),
                provider="claude",
            )
        assert exc_info.value.provider == "claude"
