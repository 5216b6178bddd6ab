"""Shared type definitions for the provider adapter layer.

- Turn: Provider-agnostic conversation turn
- ProviderDescriptor: Which vendor, which key, which endpoint, which model
- ChatRequest: Request to an adapter
- TokenUsage: Input/output token counts reported by the vendor
- ChatResponse: Complete response from a non-streaming call
- LLMChunk: Single normalized chunk from a vendor stream
- StreamCallbacks: Sinks for adapter stream output

Streaming invariants:
- Chunks with done=False MUST have usage=None
- Exactly ONE terminal chunk with done=True, carrying the final usage
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from mentormind.services.llm.errors import ProviderError

ProviderName = Literal["anthropic", "openai", "openrouter"]

# Applied at the adapter boundary when the caller leaves max_tokens unset
DEFAULT_MAX_TOKENS = 4096


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn."""

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class ProviderDescriptor:
    """Immutable description of the vendor endpoint for one request.

    Attributes:
        provider: Vendor id ("anthropic", "openai", "openrouter")
        api_key: Decrypted credential, never logged
        model_id: Vendor model name
        base_url: Optional endpoint override (platform endpoint, self-hosted proxies)
    """

    provider: ProviderName
    api_key: str
    model_id: str
    base_url: str | None = None

    def __repr__(self) -> str:
        return (
            f"ProviderDescriptor(provider={self.provider!r}, model_id={self.model_id!r}, "
            f"base_url={self.base_url!r})"
        )


@dataclass(frozen=True)
class ChatRequest:
    """Request to a provider adapter.

    Attributes:
        messages: Turns in order; at most one system turn, conventionally first
        model: Overrides the descriptor's model_id when set
        max_tokens: Output ceiling; DEFAULT_MAX_TOKENS when None
        temperature: Sampling temperature, None uses the vendor default
    """

    messages: list[Turn]
    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class TokenUsage:
    """Token counts; absent vendor fields are reported as 0."""

    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass(frozen=True)
class ChatResponse:
    """Complete response from a non-streaming call."""

    text: str
    usage: TokenUsage
    model: str
    provider_request_id: str | None = None


@dataclass(frozen=True)
class LLMChunk:
    """Single normalized chunk from a vendor stream.

    - done=False: delta_text holds new text, usage MUST be None
    - done=True: terminal chunk, usage holds the accumulated counts
    """

    delta_text: str
    done: bool
    usage: TokenUsage | None = None

    def __post_init__(self):
        if not self.done and self.usage is not None:
            raise ValueError("Non-terminal chunks (done=False) must have usage=None")


@dataclass(frozen=True)
class StreamCallbacks:
    """Receivers for ProviderAdapter.stream_chat output.

    on_text_delta is called once per incremental piece of assistant text, in
    arrival order. Exactly one of on_complete / on_error is called, once, at
    the end of the stream.
    """

    on_text_delta: Callable[[str], None]
    on_complete: Callable[[TokenUsage], None]
    on_error: Callable[["ProviderError"], None]
