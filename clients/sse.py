"""
Reader for the relay's simplified server-sent-event stream.

Each frame is a `data: <json>` line followed by a blank line. The JSON object
carries a `type` discriminator:

- `text`:  a chunk of output in `text`, appended to the result
- `error`: the backend failed mid-stream; `error.message` explains why
- `done`:  end of generation; token usage is attached here

Lines that are not data lines, or whose JSON cannot be decoded, are skipped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from models.errors import ProviderStreamError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


def parse_sse_line(line: str) -> dict[str, Any] | None:
    """
    Decode one stream line.

    Returns:
        The frame's JSON object, or None for blank, non-data and malformed lines.
    """
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].strip()
    if not payload or payload == "[DONE]":
        return None

    try:
        frame = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Skipping malformed SSE line: {payload[:80]!r}")
        return None

    return frame if isinstance(frame, dict) else None


def stream_error_message(frame: dict[str, Any]) -> str:
    error = frame.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    return "Streaming error"


async def consume_sse(
    lines: AsyncIterator[str],
    provider: str = "",
) -> tuple[str, dict[str, Any] | None]:
    """
    Accumulate a whole stream.

    Args:
        lines: Decoded lines of the response body (partial lines already
            buffered by the HTTP client).
        provider: Provider identifier for error reporting.

    Returns:
        Tuple of (accumulated_text, usage_from_done_frame).

    Raises:
        ProviderStreamError: An `error` frame was received.
    """
    chunks: list[str] = []
    usage: dict[str, Any] | None = None

    async for line in lines:
        frame = parse_sse_line(line)
        if frame is None:
            continue

        frame_type = frame.get("type")
        if frame_type == "text":
            text = frame.get("text")
            if isinstance(text, str):
                chunks.append(text)
        elif frame_type == "error":
            raise ProviderStreamError(stream_error_message(frame), provider)
        elif frame_type == "done":
            frame_usage = frame.get("usage")
            if isinstance(frame_usage, dict):
                usage = frame_usage

    return "".join(chunks), usage
