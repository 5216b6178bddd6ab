"""Test helpers for authentication, wire frames and vendor stream bodies.

Provides:
- Session token minting and Authorization headers
- Vendor stream bodies (Anthropic events, OpenAI-style chunks)
- SSE response parsing for the chat route
"""

import json
import time
from uuid import UUID, uuid4

import jwt

from mentormind.auth.session_token import (
    SESSION_TOKEN_AUDIENCE,
    SESSION_TOKEN_ISSUER,
    _get_signing_key_bytes,
    mint_session_token,
)

# Long enough to pass key format validation; never a real key
FAKE_ANTHROPIC_KEY = "sk-ant-REDACTED"
FAKE_OPENAI_KEY = "sk-test-11111111111111111111111111111111"
FAKE_OPENROUTER_KEY = "sk-or-test-2222222222222222222222222222"

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENROUTER_CHAT_URL = "https://openrouter.ai/api/v1/chat/completions"
PLATFORM_CHAT_URL = "https://platform.test/v1/chat/completions"


def create_test_user_id() -> UUID:
    return uuid4()


def auth_headers(user_id: UUID, **extra: str) -> dict[str, str]:
    """Authorization header with a valid session token."""
    return {"Authorization": f"Bearer {mint_session_token(user_id)}", **extra}


def mint_expired_token(user_id: UUID) -> str:
    now = int(time.time())
    payload = {
        "iss": SESSION_TOKEN_ISSUER,
        "aud": SESSION_TOKEN_AUDIENCE,
        "sub": str(user_id),
        "iat": now - 7200,
        "exp": now - 3600,
    }
    return jwt.encode(payload, _get_signing_key_bytes(), algorithm="HS256")


def mint_foreign_audience_token(user_id: UUID) -> str:
    now = int(time.time())
    payload = {
        "iss": SESSION_TOKEN_ISSUER,
        "aud": "some-other-service",
        "sub": str(user_id),
        "iat": now,
        "exp": now + 3600,
    }
    return jwt.encode(payload, _get_signing_key_bytes(), algorithm="HS256")


# =============================================================================
# Vendor stream bodies
# =============================================================================


def _sse(data: dict | str, event: str | None = None) -> str:
    payload = data if isinstance(data, str) else json.dumps(data)
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {payload}\n\n"


def anthropic_stream_body(
    deltas: list[str],
    input_tokens: int = 12,
    output_tokens: int = 7,
    terminal: bool = True,
) -> str:
    """Anthropic Messages stream: usage on message_start / message_delta."""
    parts = [
        _sse(
            {
                "type": "message_start",
                "message": {
                    "id": "msg_test",
                    "model": "claude-test",
                    "usage": {"input_tokens": input_tokens, "output_tokens": 1},
                },
            },
            "message_start",
        ),
        _sse(
            {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
            "content_block_start",
        ),
    ]
    for text in deltas:
        parts.append(
            _sse(
                {
                    "type": "content_block_delta",
                    "index": 0,
                    "delta": {"type": "text_delta", "text": text},
                },
                "content_block_delta",
            )
        )
    if terminal:
        parts.append(_sse({"type": "content_block_stop", "index": 0}, "content_block_stop"))
        parts.append(
            _sse(
                {
                    "type": "message_delta",
                    "delta": {"stop_reason": "end_turn"},
                    "usage": {"output_tokens": output_tokens},
                },
                "message_delta",
            )
        )
        parts.append(_sse({"type": "message_stop"}, "message_stop"))
    return "".join(parts)


def openai_stream_body(
    deltas: list[str],
    prompt_tokens: int = 9,
    completion_tokens: int = 5,
    terminal: bool = True,
    include_usage: bool = True,
) -> str:
    """OpenAI-compatible chunks; usage only on the final empty-choices chunk."""
    parts = [
        _sse({"id": "chatcmpl-test", "choices": [{"index": 0, "delta": {"role": "assistant"}}]})
    ]
    for text in deltas:
        parts.append(
            _sse({"id": "chatcmpl-test", "choices": [{"index": 0, "delta": {"content": text}}]})
        )
    if terminal:
        parts.append(
            _sse(
                {
                    "id": "chatcmpl-test",
                    "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}],
                }
            )
        )
        if include_usage:
            parts.append(
                _sse(
                    {
                        "id": "chatcmpl-test",
                        "choices": [],
                        "usage": {
                            "prompt_tokens": prompt_tokens,
                            "completion_tokens": completion_tokens,
                            "total_tokens": prompt_tokens + completion_tokens,
                        },
                    }
                )
            )
        parts.append(_sse("[DONE]"))
    return "".join(parts)


# =============================================================================
# Gateway SSE parsing
# =============================================================================


def parse_sse_frames(body: str) -> list[tuple[str, dict]]:
    """Split a gateway response body into (event, payload) pairs."""
    frames = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        event = None
        data = None
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line[len("event: ") :]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: ") :])
        assert event is not None and data is not None, f"incomplete frame: {block!r}"
        frames.append((event, data))
    return frames


def event_types(frames: list[tuple[str, dict]]) -> list[str]:
    return [event for event, _ in frames]
