"""Wire protocol for the chat event stream.

Each frame is `event: <type>\\ndata: <json>\\n\\n`. The JSON payload repeats
`type`, which is the sole discriminator. Exactly one message_start opens a
stream, zero or more text_delta follow, and exactly one message_stop or error
closes it.

Parsing ignores unknown fields and returns None for unknown event types.
"""

import json
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


def format_sse_event(event: str, data: dict) -> str:
    """Format data as an SSE event."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Usage(_Event):
    input_tokens: int = 0
    output_tokens: int = 0


class MessageStartEvent(_Event):
    type: Literal["message_start"] = "message_start"
    model: str


class TextDeltaEvent(_Event):
    type: Literal["text_delta"] = "text_delta"
    text: str


class MessageStopEvent(_Event):
    type: Literal["message_stop"] = "message_stop"
    model: str
    usage: Usage = Field(default_factory=Usage)
    is_byok: bool = Field(default=False, alias="isBYOK")
    provider: str


class StreamErrorEvent(_Event):
    type: Literal["error"] = "error"
    error: str
    code: int | None = None
    is_retryable: bool | None = Field(default=None, alias="isRetryable")


StreamEvent = Annotated[
    MessageStartEvent | TextDeltaEvent | MessageStopEvent | StreamErrorEvent,
    Field(discriminator="type"),
]

_stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)

KNOWN_EVENT_TYPES = frozenset({"message_start", "text_delta", "message_stop", "error"})


def encode_event(event: BaseModel) -> str:
    """Serialize a stream event into one SSE frame."""
    payload = event.model_dump(by_alias=True, exclude_none=True)
    return format_sse_event(payload["type"], payload)


def parse_event(event_type: str | None, data: str | dict) -> StreamEvent | None:
    """Decode one (event, data) pair.

    The payload's own `type` wins over the event line; the event line only
    fills in a missing `type`. Returns None for unknown types.

    Raises:
        ValueError: If the data is not JSON or does not match the event schema.
    """
    if isinstance(data, str):
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed event data for {event_type!r}") from e
    else:
        payload = dict(data)

    if not isinstance(payload, dict):
        raise ValueError(f"Event data for {event_type!r} is not an object")

    payload.setdefault("type", event_type)
    if payload["type"] not in KNOWN_EVENT_TYPES:
        return None

    try:
        return _stream_event_adapter.validate_python(payload)
    except ValidationError as e:
        raise ValueError(f"Invalid {payload['type']!r} event") from e
