"""Chat client state machine and persistence.

ChatState is an immutable snapshot; every transition is a plain function that
takes a state and returns a new one, so any UI can re-render on change.

Phases:
    idle -> loading -> streaming -> idle | error

- loading: from submit until the first text byte or a terminal event
- streaming: from message_start until a terminal event
- The active assistant placeholder has is_streaming=True until the terminal
  event flips it to False, exactly once

On failure the placeholder keeps its partial content (exposed as
partial_content) or is removed when empty. A user cancel always removes it.
"""

import json
import secrets
import time
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Protocol

from mentormind.client.error_formatter import FormattedError, format_error
from mentormind.logging import get_logger
from mentormind.schemas.stream import (
    MessageStartEvent,
    MessageStopEvent,
    StreamErrorEvent,
    TextDeltaEvent,
    Usage,
)

logger = get_logger(__name__)


def generate_id() -> str:
    return secrets.token_hex(8)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ChatMessage:
    """A message as the client displays and persists it."""

    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: int
    is_streaming: bool = False
    tool_invocations: list[Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.is_streaming:
            out["isStreaming"] = True
        if self.tool_invocations:
            out["toolInvocations"] = self.tool_invocations
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        return cls(
            id=str(data["id"]),
            role=data["role"],
            content=str(data.get("content", "")),
            timestamp=int(data.get("timestamp", 0)),
            is_streaming=bool(data.get("isStreaming", False)),
            tool_invocations=data.get("toolInvocations") or None,
        )


def create_user_message(content: str) -> ChatMessage:
    return ChatMessage(id=generate_id(), role="user", content=content.strip(), timestamp=now_ms())


def create_assistant_placeholder() -> ChatMessage:
    return ChatMessage(
        id=generate_id(), role="assistant", content="", timestamp=now_ms(), is_streaming=True
    )


class ChatPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    STREAMING = "streaming"
    ERROR = "error"


@dataclass(frozen=True)
class ChatState:
    """Immutable snapshot of one chat session."""

    messages: tuple[ChatMessage, ...] = ()
    phase: ChatPhase = ChatPhase.IDLE
    active_message_id: str | None = None
    received_content: bool = False
    resolved_model: str | None = None
    error: FormattedError | None = None
    partial_content: str | None = None
    is_byok: bool | None = None
    provider: str | None = None
    usage: Usage | None = None

    @property
    def is_busy(self) -> bool:
        return self.phase in (ChatPhase.LOADING, ChatPhase.STREAMING)

    @property
    def is_loading(self) -> bool:
        return self.is_busy and not self.received_content

    @property
    def is_streaming(self) -> bool:
        return self.phase == ChatPhase.STREAMING

    @property
    def active_message(self) -> ChatMessage | None:
        if self.active_message_id is None:
            return None
        for message in self.messages:
            if message.id == self.active_message_id:
                return message
        return None


# =============================================================================
# Transitions
# =============================================================================


def _update_message(state: ChatState, message_id: str, **changes: Any) -> tuple[ChatMessage, ...]:
    return tuple(replace(m, **changes) if m.id == message_id else m for m in state.messages)


def _without_message(state: ChatState, message_id: str) -> tuple[ChatMessage, ...]:
    return tuple(m for m in state.messages if m.id != message_id)


def begin_turn(state: ChatState, user_message: ChatMessage, placeholder: ChatMessage) -> ChatState:
    """Append the user turn plus an empty streaming placeholder; enter loading."""
    return replace(
        state,
        messages=state.messages + (user_message, placeholder),
        phase=ChatPhase.LOADING,
        active_message_id=placeholder.id,
        received_content=False,
        error=None,
        partial_content=None,
        is_byok=None,
        provider=None,
        usage=None,
    )


def fail_turn(state: ChatState, error: FormattedError) -> ChatState:
    """Terminal failure: keep partial content, drop an empty placeholder."""
    active = state.active_message
    partial = None
    if active is None:
        messages = state.messages
    elif active.content:
        messages = _update_message(state, active.id, is_streaming=False)
        partial = active.content
    else:
        messages = _without_message(state, active.id)

    return replace(
        state,
        messages=messages,
        phase=ChatPhase.ERROR,
        active_message_id=None,
        error=error,
        partial_content=partial,
    )


def cancel_turn(state: ChatState) -> ChatState:
    """User cancel: discard the placeholder, partial content included."""
    if not state.is_busy and state.active_message_id is None:
        return state
    messages = state.messages
    if state.active_message_id is not None:
        messages = _without_message(state, state.active_message_id)
    return replace(
        state,
        messages=messages,
        phase=ChatPhase.IDLE,
        active_message_id=None,
        error=None,
        partial_content=None,
    )


def process_stream_event(state: ChatState, event: Any) -> ChatState:
    """Apply one wire event to the active turn.

    Events arriving when no turn is active are ignored.
    """
    if state.active_message_id is None:
        return state

    if isinstance(event, MessageStartEvent):
        return replace(state, phase=ChatPhase.STREAMING, resolved_model=event.model)

    if isinstance(event, TextDeltaEvent):
        active = state.active_message
        if active is None:
            return state
        return replace(
            state,
            messages=_update_message(state, active.id, content=active.content + event.text),
            received_content=state.received_content or bool(event.text),
        )

    if isinstance(event, MessageStopEvent):
        return replace(
            state,
            messages=_update_message(state, state.active_message_id, is_streaming=False),
            phase=ChatPhase.IDLE,
            active_message_id=None,
            resolved_model=event.model,
            is_byok=event.is_byok,
            provider=event.provider,
            usage=event.usage,
        )

    if isinstance(event, StreamErrorEvent):
        return fail_turn(state, format_error({"error": event.error, "code": event.code}))

    return state


def prepare_retry(state: ChatState) -> tuple[ChatState, str | None]:
    """Drop the trailing assistant turn and the user turn it answered.

    Returns the new state and the user text to resubmit (None if there is no
    user message to retry).
    """
    messages = list(state.messages)
    if messages and messages[-1].role == "assistant":
        messages.pop()

    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == "user":
            text = messages[index].content
            if index == len(messages) - 1:
                messages.pop()
            return replace(state, messages=tuple(messages)), text

    return state, None


# =============================================================================
# Persistence
# =============================================================================


class ChatStore(Protocol):
    def load(self) -> list[ChatMessage]: ...

    def save(self, messages: list[ChatMessage]) -> None: ...

    def clear(self) -> None: ...


class InMemoryChatStore:
    def __init__(self, messages: list[ChatMessage] | None = None):
        self._messages = list(messages or [])

    def load(self) -> list[ChatMessage]:
        return list(self._messages)

    def save(self, messages: list[ChatMessage]) -> None:
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages = []


class JsonFileChatStore:
    """Chat history as a JSON array of messages in one file.

    A missing or unreadable file loads as an empty history.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> list[ChatMessage]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [ChatMessage.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("chat_history_load_failed", path=str(self.path), error_type=type(e).__name__)
            return []

    def save(self, messages: list[ChatMessage]) -> None:
        if not messages:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps([m.to_dict() for m in messages]), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
