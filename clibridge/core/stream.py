"""Classification of incremental CLI output into stream events.

Every stdout chunk is split into lines and each line is tried as a JSON
message. Known message types become Content/Error events; anything else is
passed through as RawText. Nothing in here raises on bad input.

KNOWN LIMITATION: lines are not reassembled across chunk boundaries. A JSON
message split by the pipe arrives as two RawText events.
"""

import codecs
import json
import logging
from typing import Any

from clibridge.core.models import StreamEvent, StreamSource

logger = logging.getLogger(__name__)

# Message "type" value -> key holding its payload
EVENT_PAYLOAD_KEYS = {
    "content": "content",
    "error": "error",
}


def classify_line(line: str) -> StreamEvent:
    """Classify one output line.

    Lines that decode to {"type": "content"|"error", <type>: payload} become
    typed events; everything else (invalid JSON, non-objects, unknown types,
    missing payload) falls back to RawText with the line verbatim.
    """
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        return StreamEvent.raw(line)

    if not isinstance(message, dict):
        return StreamEvent.raw(line)

    kind = message.get("type")
    payload_key = EVENT_PAYLOAD_KEYS.get(kind) if isinstance(kind, str) else None
    if payload_key is None or message.get(payload_key) is None:
        return StreamEvent.raw(line)

    text = _payload_text(message[payload_key])
    if kind == "error":
        return StreamEvent.error(text)
    return StreamEvent.content(text)


def _payload_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    return json.dumps(payload)


def split_lines(chunk: str) -> list[str]:
    """Split a chunk on newlines, dropping blank lines and trailing CRs."""
    lines = []
    for line in chunk.split("\n"):
        line = line.rstrip("\r")
        if line.strip():
            lines.append(line)
    return lines


class StreamingResponseParser:
    """Per-session parser holding the stdout/stderr aggregates.

    Feed methods accept raw bytes from the pipes (decoded incrementally, so
    a multi-byte character split across reads survives) or already-decoded
    text. Events come back in arrival order and are never merged.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._stdout_parts: list[str] = []
        self._stderr_parts: list[str] = []
        self._stdout_decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._stderr_decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    @property
    def output(self) -> str:
        """Aggregated stdout text."""
        return "".join(self._stdout_parts)

    @property
    def error_output(self) -> str:
        """Aggregated stderr text."""
        return "".join(self._stderr_parts)

    def feed_stdout(self, chunk: bytes | str) -> list[StreamEvent]:
        text = self._decode(self._stdout_decoder, chunk)
        if not text:
            return []
        self._stdout_parts.append(text)
        return [classify_line(line) for line in split_lines(text)]

    def feed_stderr(self, chunk: bytes | str) -> list[StreamEvent]:
        text = self._decode(self._stderr_decoder, chunk)
        if not text:
            return []
        self._stderr_parts.append(text)
        return [StreamEvent.error(text, source=StreamSource.STDERR)]

    def finish(self) -> list[StreamEvent]:
        """Flush bytes still held by the decoders at end of stream."""
        events = []
        tail = self._stdout_decoder.decode(b"", final=True)
        if tail:
            self._stdout_parts.append(tail)
            events.extend(classify_line(line) for line in split_lines(tail))
        tail = self._stderr_decoder.decode(b"", final=True)
        if tail:
            self._stderr_parts.append(tail)
            events.append(StreamEvent.error(tail, source=StreamSource.STDERR))
        return events

    @staticmethod
    def _decode(decoder: codecs.IncrementalDecoder, chunk: bytes | str) -> str:
        if isinstance(chunk, str):
            return chunk
        return decoder.decode(chunk)
