"""
Server-sent event framing for companion turns.

Each event is written as

    event: <type>
    data: <json>
    <blank line>

`SSEDecoder` is the consumer side: it accepts arbitrary byte/str fragments,
reassembles frames on blank lines, and refuses further events once a
terminal `error` has been seen.
"""

import json
import logging
from typing import Iterable, Iterator, Optional, Union

from core.types import EventType, StreamEvent

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def chunk_text(text: str, size: int) -> list[str]:
    """Split text into consecutive, non-overlapping chunks of at most `size` characters."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [text[i:i + size] for i in range(0, len(text), size)]


def encode_event(event: StreamEvent) -> str:
    """Frame one event as an SSE block."""
    data = json.dumps(event.payload, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event.type.value}\ndata: {data}\n\n"


def status_event(status: str) -> StreamEvent:
    return StreamEvent(EventType.STATUS, {"type": status})


def agent_start_event(agent: str, confidence: float, reasoning: str) -> StreamEvent:
    return StreamEvent(EventType.AGENT_START, {
        "agent": agent, "confidence": confidence, "reasoning": reasoning,
    })


def content_delta_event(content: str, index: int) -> StreamEvent:
    return StreamEvent(EventType.CONTENT_DELTA, {"content": content, "index": index})


def tool_call_event(action: dict) -> StreamEvent:
    return StreamEvent(EventType.TOOL_CALL, dict(action))


def done_event(agent: str, conversation_id: Optional[str], actions: list[dict] = None) -> StreamEvent:
    payload = {"agent": agent, "conversationId": conversation_id}
    if actions:
        payload["actions"] = actions
    return StreamEvent(EventType.DONE, payload)


def error_event(message: str, code: str) -> StreamEvent:
    return StreamEvent(EventType.ERROR, {"message": message, "code": code})


class SSEDecoder:
    """Incremental decoder for the companion event stream."""

    def __init__(self):
        self._buffer = ""
        self._pending = b""
        self._held_cr = False
        self.terminated = False
        self.malformed = False

    def feed(self, data: Union[bytes, str]) -> list[StreamEvent]:
        """Add a fragment and return every event completed by it."""
        if isinstance(data, bytes):
            data = self._decode(data)
        if self.terminated:
            if data.strip():
                self.malformed = True
            return []
        if self._held_cr:
            data = "\r" + data
        # A trailing CR may be the first half of a CRLF split across fragments.
        self._held_cr = data.endswith("\r")
        if self._held_cr:
            data = data[:-1]
        self._buffer += data.replace("\r\n", "\n").replace("\r", "\n")
        return self._drain()

    def close(self) -> list[StreamEvent]:
        """Flush a held CR at end of stream and return any event it completes."""
        if not self._held_cr or self.terminated:
            return []
        self._held_cr = False
        self._buffer += "\n"
        return self._drain()

    def _drain(self) -> list[StreamEvent]:
        events = []
        while "\n\n" in self._buffer:
            block, self._buffer = self._buffer.split("\n\n", 1)
            event = self._parse_block(block)
            if event is None:
                continue
            events.append(event)
            if event.terminal:
                self.terminated = True
                if self._buffer.strip():
                    self.malformed = True
                self._buffer = ""
                break
        return events

    def _decode(self, data: bytes) -> str:
        raw = self._pending + data
        # Hold back an incomplete trailing UTF-8 sequence for the next fragment.
        for cut in range(0, min(4, len(raw)) + 1):
            try:
                text = raw[:len(raw) - cut].decode("utf-8")
            except UnicodeDecodeError:
                continue
            self._pending = raw[len(raw) - cut:]
            return text
        raise UnicodeDecodeError("utf-8", raw, 0, len(raw), "invalid stream bytes")

    @staticmethod
    def _parse_block(block: str) -> Optional[StreamEvent]:
        event_type = None
        data_lines = []
        for line in block.split("\n"):
            if line.startswith("event:"):
                event_type = line[6:].strip()
            elif line.startswith("data:"):
                data_lines.append(line[5:].lstrip(" "))
        if not event_type or not data_lines:
            return None
        try:
            etype = EventType(event_type)
            payload = json.loads("\n".join(data_lines))
        except (ValueError, json.JSONDecodeError):
            logger.debug("Skipping unparseable SSE block: %.80s", block)
            return None
        return StreamEvent(etype, payload)


def decode_stream(fragments: Iterable[Union[bytes, str]]) -> Iterator[StreamEvent]:
    """Yield events from an iterable of fragments, stopping at the terminal event."""
    decoder = SSEDecoder()
    for fragment in fragments:
        for event in decoder.feed(fragment):
            yield event
        if decoder.terminated:
            return
    yield from decoder.close()
