"""Anthropic messages API adapter (Vendor A).

- Endpoint: POST {base}/v1/messages, base defaults to https://api.anthropic.com
- Headers: x-api-key, anthropic-version: 2023-06-01
- Model listing: GET {base}/v1/models

Turn conversion:
- System turns are lifted out of the message list into the top-level "system" field

Streaming events used:
- message_start: message.usage.input_tokens (and an initial output_tokens)
- content_block_delta with delta.type == "text_delta": incremental text
- message_delta: usage.output_tokens (cumulative)
- message_stop: terminal
- error: mid-stream vendor error (error.type)
"""

import json
from collections.abc import AsyncIterator

from mentormind.services.llm.adapter import ProviderAdapter
from mentormind.services.llm.errors import error_from_status
from mentormind.services.llm.types import ChatRequest, ChatResponse, LLMChunk, TokenUsage


ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"
VALIDATION_MODEL = "claude-3-5-haiku-20241022"
MODEL_LIST_LIMIT = 1000

# Fallback when the key is unknown or the listing call fails
COMMON_ANTHROPIC_MODELS = (
    "claude-3-5-sonnet-20241022",
    "claude-3-5-haiku-20241022",
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
)

# Mid-stream `error` event types mapped onto status codes
_STREAM_ERROR_STATUS = {
    "authentication_error": 401,
    "permission_error": 401,
    "rate_limit_error": 429,
    "overloaded_error": 503,
    "invalid_request_error": 400,
    "api_error": 500,
}


def split_system(req: ChatRequest) -> tuple[str | None, list[dict[str, str]]]:
    """Separate system text from the conversation turns."""
    system_parts: list[str] = []
    messages: list[dict[str, str]] = []
    for turn in req.messages:
        if turn.role == "system":
            system_parts.append(turn.content)
        else:
            messages.append({"role": turn.role, "content": turn.content})
    system_text = "\n\n".join(system_parts) if system_parts else None
    return system_text, messages


class AnthropicAdapter(ProviderAdapter):
    """Anthropic API adapter for the messages endpoint."""

    provider = "anthropic"
    default_base_url = ANTHROPIC_BASE_URL
    common_models = COMMON_ANTHROPIC_MODELS

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v1/messages"

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/v1/models"

    def _build_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.descriptor.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: ChatRequest, stream: bool) -> dict:
        system_text, messages = split_system(req)
        body: dict = {
            "model": self.model_for(req),
            "max_tokens": self.max_tokens_for(req),
            "messages": messages,
            "stream": stream,
        }
        if system_text:
            body["system"] = system_text
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    async def _chat(self, req: ChatRequest) -> ChatResponse:
        response = await self._client.post(
            self.messages_url,
            headers=self._build_headers(),
            json=self._build_request_body(req, stream=False),
        )
        await self._raise_for_status(response)

        data = response.json()
        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage_data = data.get("usage") or {}
        return ChatResponse(
            text=text,
            usage=TokenUsage(
                input_tokens=usage_data.get("input_tokens") or 0,
                output_tokens=usage_data.get("output_tokens") or 0,
            ),
            model=data.get("model") or self.model_for(req),
            provider_request_id=data.get("id"),
        )

    async def _iter_stream(self, req: ChatRequest) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            self.messages_url,
            headers=self._build_headers(),
            json=self._build_request_body(req, stream=True),
        ) as response:
            await self._raise_for_status(response)

            input_tokens = 0
            output_tokens = 0

            async for line in response.aiter_lines():
                # Event type is repeated in the JSON payload; only data lines matter
                if not line.startswith("data:"):
                    continue

                try:
                    data = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    continue

                event_type = data.get("type", "")

                if event_type == "content_block_delta":
                    delta = data.get("delta", {})
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield LLMChunk(delta_text=delta["text"], done=False)

                elif event_type == "message_start":
                    usage_data = data.get("message", {}).get("usage") or {}
                    input_tokens = usage_data.get("input_tokens") or 0
                    output_tokens = usage_data.get("output_tokens") or 0

                elif event_type == "message_delta":
                    usage_data = data.get("usage") or {}
                    if usage_data.get("output_tokens") is not None:
                        output_tokens = usage_data["output_tokens"]
                    if usage_data.get("input_tokens"):
                        input_tokens = usage_data["input_tokens"]

                elif event_type == "message_stop":
                    yield LLMChunk(
                        delta_text="",
                        done=True,
                        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
                    )
                    return

                elif event_type == "error":
                    error = data.get("error") or {}
                    error_type = error.get("type", "")
                    raise error_from_status(
                        _STREAM_ERROR_STATUS.get(error_type, 500),
                        error_type,
                        provider=self.provider,
                    )

    async def _validate_key(self) -> bool:
        response = await self._client.post(
            self.messages_url,
            headers=self._build_headers(),
            json={
                "model": VALIDATION_MODEL,
                "max_tokens": 10,
                "messages": [{"role": "user", "content": "Hi"}],
            },
        )
        return response.is_success

    async def _list_models(self) -> list[str]:
        response = await self._client.get(
            self.models_url,
            headers=self._build_headers(),
            params={"limit": MODEL_LIST_LIMIT},
        )
        await self._raise_for_status(response)
        return [m["id"] for m in response.json().get("data") or [] if m.get("id")]
