"""
Incremental decoder for chunked text-generation responses.

The generation endpoint streams server-sent-event style lines:

    data: {"delta": "{\\"content\\": \\"## Ov"}
    data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "erview"}}
    data: [DONE]

Text fragments are accumulated in arrival order; once the stream ends the
whole buffer is parsed as JSON (after stripping any markdown code fence).
A malformed line is skipped, an explicit error event is fatal.
"""

import json
import logging
import re
from typing import AsyncIterable, Callable, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
DEFAULT_MIN_LENGTH = 2  # shortest parseable JSON document: {}
PREVIEW_CHARS = 500

_OPEN_FENCE = re.compile(r"^```[A-Za-z]*\s*")
_CLOSE_FENCE = re.compile(r"\s*```$")

ProgressCallback = Callable[[str], None]


class GenerationError(Exception):
    """Generation call failed (transport failure or an error event in the stream)."""
    pass


class ParseError(GenerationError):
    """Generated output couldn't be parsed into the expected structure."""

    def __init__(self, message: str, preview: str = ""):
        self.preview = preview
        super().__init__(message + (f"\n--- received ---\n{preview}" if preview else ""))


def clean_json_response(text: str) -> str:
    """Strip a markdown code fence wrapped around a JSON answer."""
    text = _OPEN_FENCE.sub("", text.strip())
    return _CLOSE_FENCE.sub("", text).strip()


def parse_json_text(text: str):
    """Parse generated text as JSON.

    Raises:
        ParseError: with the first PREVIEW_CHARS characters for diagnosis
    """
    cleaned = clean_json_response(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"Generated output is not valid JSON: {e}", text[:PREVIEW_CHARS]) from None


def _fragment(event) -> Optional[str]:
    """Extract the incremental text of an event, if it carries one."""
    if not isinstance(event, dict):
        return None
    delta = event.get("delta")
    if isinstance(delta, str):
        return delta
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
        return delta["text"]
    return None


def _is_error(event) -> bool:
    return isinstance(event, dict) and (bool(event.get("error")) or event.get("type") == "error")


class StreamDecoder:
    """Accumulates streamed text fragments and parses the final document.

    Usage:
        decoder = StreamDecoder(on_progress=print)
        for chunk in chunks:
            decoder.feed(chunk)
        result = decoder.finish()
    """

    def __init__(self, on_progress: Optional[ProgressCallback] = None, min_length: int = DEFAULT_MIN_LENGTH):
        self.on_progress = on_progress
        self.min_length = min_length
        self.text = ""
        self.done = False
        self.skipped_lines = 0

    def feed(self, chunk: str) -> None:
        """Process one decoded chunk (zero or more lines).

        Raises:
            GenerationError: If the stream carries an explicit error event
        """
        for line in chunk.splitlines():
            if self.done:
                return
            line = line.strip()
            if not line.startswith(DATA_PREFIX):
                continue

            payload = line[len(DATA_PREFIX):].strip()
            if payload == DONE_SENTINEL:
                self.done = True
                return

            try:
                event = json.loads(payload)
            except json.JSONDecodeError:
                self.skipped_lines += 1
                logger.warning(f"[STREAM] Skipping malformed event: {payload[:80]!r}")
                continue

            if _is_error(event):
                detail = event.get("message") or event.get("error")
                raise GenerationError(f"Generation stream reported an error: {detail}")

            fragment = _fragment(event)
            if fragment:
                self.text += fragment
                if self.on_progress:
                    self.on_progress(self.text)

    def finish(self):
        """Parse the accumulated text.

        Raises:
            ParseError: If nothing usable arrived or the text isn't valid JSON
        """
        if len(self.text.strip()) < self.min_length:
            raise ParseError("No content received from generation stream")
        if self.skipped_lines:
            logger.info(f"[STREAM] Finished with {self.skipped_lines} malformed line(s) skipped")
        return parse_json_text(self.text)


async def decode_stream(
    chunks: AsyncIterable[str],
    on_progress: Optional[ProgressCallback] = None,
    min_length: int = DEFAULT_MIN_LENGTH,
):
    """Drive a StreamDecoder over an async iterable of chunks and return the parsed result."""
    decoder = StreamDecoder(on_progress=on_progress, min_length=min_length)
    async for chunk in chunks:
        decoder.feed(chunk)
        if decoder.done:
            break
    return decoder.finish()
