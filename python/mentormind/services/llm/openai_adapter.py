"""OpenAI-compatible chat completions adapters (Vendor B and Vendor C).

OpenAI and OpenRouter share one request/response shape and differ only in
base URL (and OpenRouter's attribution header). The platform inference
endpoint is also reached through OpenAIAdapter with a base_url override.

- Endpoint: POST {base}/chat/completions
- Headers: Authorization: Bearer <key>
- System turns stay in the messages list as role "system"
- Model listing: GET {base}/models, ids from "data"

Streaming:
- "data: {...}" lines, terminated by "data: [DONE]"
- stream_options.include_usage is requested, so the vendor sends one extra
  chunk with empty choices and a "usage" object just before [DONE]; usage is
  taken only from that chunk, absent fields default to 0
"""

import json
from collections.abc import AsyncIterator

from mentormind.services.llm.adapter import ProviderAdapter
from mentormind.services.llm.errors import error_from_status
from mentormind.services.llm.types import ChatRequest, ChatResponse, LLMChunk, TokenUsage

OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Fallbacks when the key is unknown or the listing call fails
COMMON_OPENAI_MODELS = (
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-4-turbo",
    "gpt-4",
    "gpt-3.5-turbo",
    "o1-preview",
    "o1-mini",
)

COMMON_OPENROUTER_MODELS = (
    "anthropic/claude-3.5-sonnet",
    "anthropic/claude-3.5-haiku",
    "openai/gpt-4o",
    "openai/gpt-4o-mini",
    "google/gemini-pro-1.5",
    "meta-llama/llama-3.1-70b-instruct",
    "mistralai/mistral-large",
)


def _usage_from(usage_data: dict | None) -> TokenUsage:
    usage_data = usage_data or {}
    return TokenUsage(
        input_tokens=usage_data.get("prompt_tokens") or 0,
        output_tokens=usage_data.get("completion_tokens") or 0,
    )


class OpenAIAdapter(ProviderAdapter):
    """Chat completions adapter for OpenAI and compatible endpoints."""

    provider = "openai"
    default_base_url = OPENAI_BASE_URL
    common_models = COMMON_OPENAI_MODELS

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.descriptor.api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: ChatRequest, stream: bool) -> dict:
        body: dict = {
            "model": self.model_for(req),
            "messages": [{"role": t.role, "content": t.content} for t in req.messages],
            "max_tokens": self.max_tokens_for(req),
            "stream": stream,
        }
        if stream:
            body["stream_options"] = {"include_usage": True}
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    def _raise_payload_error(self, error: dict | str) -> None:
        """Raise for an error object delivered inside a 200 response."""
        if isinstance(error, dict):
            code = error.get("code")
            status_code = code if isinstance(code, int) else 500
            text = str(error.get("message", ""))
        else:
            status_code, text = 500, str(error)
        raise error_from_status(status_code, text, provider=self.provider)

    async def _chat(self, req: ChatRequest) -> ChatResponse:
        response = await self._client.post(
            self.chat_url,
            headers=self._build_headers(),
            json=self._build_request_body(req, stream=False),
        )
        await self._raise_for_status(response)

        data = response.json()
        if data.get("error"):
            self._raise_payload_error(data["error"])

        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""

        return ChatResponse(
            text=text,
            usage=_usage_from(data.get("usage")),
            model=data.get("model") or self.model_for(req),
            provider_request_id=response.headers.get("x-request-id") or data.get("id"),
        )

    async def _iter_stream(self, req: ChatRequest) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            self.chat_url,
            headers=self._build_headers(),
            json=self._build_request_body(req, stream=True),
        ) as response:
            await self._raise_for_status(response)

            usage = TokenUsage()

            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue

                data_str = line[5:].strip()
                if data_str == "[DONE]":
                    yield LLMChunk(delta_text="", done=True, usage=usage)
                    return

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    continue

                if data.get("error"):
                    self._raise_payload_error(data["error"])

                choices = data.get("choices") or []
                if not choices:
                    # Terminal usage chunk (include_usage)
                    if data.get("usage"):
                        usage = _usage_from(data["usage"])
                    continue

                delta_text = (choices[0].get("delta") or {}).get("content")
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

    async def _validate_key(self) -> bool:
        response = await self._client.get(
            f"{self.base_url}/models",
            headers=self._build_headers(),
        )
        return response.is_success

    async def _list_models(self) -> list[str]:
        response = await self._client.get(
            f"{self.base_url}/models",
            headers=self._build_headers(),
        )
        await self._raise_for_status(response)
        return [m["id"] for m in response.json().get("data") or [] if m.get("id")]


class OpenRouterAdapter(OpenAIAdapter):
    """OpenRouter: OpenAI-compatible API at a different base URL."""

    provider = "openrouter"
    default_base_url = OPENROUTER_BASE_URL
    common_models = COMMON_OPENROUTER_MODELS

    def _build_headers(self) -> dict[str, str]:
        headers = super()._build_headers()
        headers["X-Title"] = "MentorMind"
        return headers
