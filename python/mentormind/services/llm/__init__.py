"""Provider adapter layer for the AI chat gateway.

A uniform chat interface over Anthropic, OpenAI and OpenRouter (plus the
OpenAI-compatible platform endpoint):

- Provider adapters with async support (non-streaming + streaming)
- A factory that builds the right adapter from a ProviderDescriptor
- The error taxonomy every adapter maps into
- Prompt rendering (provider-agnostic)

Usage:
    from mentormind.services.llm import ChatRequest, ProviderDescriptor, Turn, create_adapter

    adapter = create_adapter(
        ProviderDescriptor(provider="anthropic", api_key="sk-ant-...", model_id="claude-3-5-haiku-latest"),
        httpx_client,
    )
    response = await adapter.chat(ChatRequest(messages=[Turn(role="user", content="Hello!")]))
"""

from mentormind.services.llm.adapter import ProviderAdapter
from mentormind.services.llm.errors import (
    ConfigurationError,
    ErrorKind,
    ProviderError,
    map_provider_error,
)
from mentormind.services.llm.factory import (
    SUPPORTED_PROVIDERS,
    create_adapter,
    list_provider_models,
    validate_provider_key,
)
from mentormind.services.llm.prompt import build_system_prompt, render_messages
from mentormind.services.llm.types import (
    DEFAULT_MAX_TOKENS,
    ChatRequest,
    ChatResponse,
    LLMChunk,
    ProviderDescriptor,
    StreamCallbacks,
    TokenUsage,
    Turn,
)

__all__ = [
    "Turn",
    "ChatRequest",
    "ChatResponse",
    "LLMChunk",
    "TokenUsage",
    "ProviderDescriptor",
    "StreamCallbacks",
    "DEFAULT_MAX_TOKENS",
    "ProviderAdapter",
    "create_adapter",
    "SUPPORTED_PROVIDERS",
    "validate_provider_key",
    "list_provider_models",
    "ErrorKind",
    "ProviderError",
    "ConfigurationError",
    "map_provider_error",
    "build_system_prompt",
    "render_messages",
]
