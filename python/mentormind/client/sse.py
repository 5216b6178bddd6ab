"""Incremental decoder for the chat wire protocol.

Frames look like `event: <type>\\ndata: <json>\\n\\n`. The decoder is fed one
line at a time (as produced by `httpx.Response.aiter_lines()`) and yields a
parsed StreamEvent once a frame is complete:

- An `event:` line without a following `data:` line is never acted on
- Unknown event types and comment lines are skipped
- Extra payload fields are ignored; the payload `type` is the discriminator
"""

from collections.abc import AsyncIterator, Iterable

from mentormind.logging import get_logger
from mentormind.schemas.stream import StreamEvent, parse_event

logger = get_logger(__name__)


class SSEDecoder:
    def __init__(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []

    def feed(self, line: str) -> StreamEvent | None:
        """Consume one line; return an event when a frame completes."""
        line = line.rstrip("\r")

        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        return None

    def flush(self) -> StreamEvent | None:
        """Dispatch a final frame that was not followed by a blank line."""
        return self._dispatch()

    def _dispatch(self) -> StreamEvent | None:
        event_type, data = self._event, self._data
        self._event, self._data = None, []

        if not data:
            return None
        try:
            return parse_event(event_type, "\n".join(data))
        except ValueError:
            logger.warning("sse_frame_invalid", event_type=event_type)
            return None


def decode_lines(lines: Iterable[str]) -> list[StreamEvent]:
    decoder = SSEDecoder()
    events = [e for e in (decoder.feed(line) for line in lines) if e is not None]
    tail = decoder.flush()
    if tail is not None:
        events.append(tail)
    return events


async def aiter_events(lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    decoder = SSEDecoder()
    async for line in lines:
        event = decoder.feed(line)
        if event is not None:
            yield event
    tail = decoder.flush()
    if tail is not None:
        yield tail
