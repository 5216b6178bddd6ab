"""Abstract base class for provider adapters.

One adapter instance serves one request: it is bound to a ProviderDescriptor
(vendor, key, endpoint, model) and to the shared httpx.AsyncClient.

Rules:
- No retries inside adapters
- No DB access
- No logging of request/response bodies or keys
- Every failure leaves the adapter as a ProviderError (see errors.py)

Subclasses implement the vendor wire format in `_chat`, `_iter_stream`,
`_validate_key` and `_list_models`. The public `stream_chat` drives
`_iter_stream` and turns it into callbacks, guaranteeing exactly one terminal
callback.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import aclosing

import httpx

from mentormind.logging import get_logger
from mentormind.services.llm.errors import (
    ErrorKind,
    ProviderError,
    error_from_status,
    map_provider_error,
)
from mentormind.services.llm.types import (
    DEFAULT_MAX_TOKENS,
    ChatRequest,
    ChatResponse,
    LLMChunk,
    ProviderDescriptor,
    StreamCallbacks,
    TokenUsage,
)
from mentormind.services.redact import safe_kv

logger = get_logger(__name__)


class ProviderAdapter(ABC):
    """Uniform chat interface over one vendor API."""

    provider: str
    default_base_url: str
    common_models: tuple[str, ...] = ()

    def __init__(self, client: httpx.AsyncClient, descriptor: ProviderDescriptor):
        self._client = client
        self.descriptor = descriptor

    @property
    def base_url(self) -> str:
        return (self.descriptor.base_url or self.default_base_url).rstrip("/")

    def model_for(self, req: ChatRequest) -> str:
        return req.model or self.descriptor.model_id

    @staticmethod
    def max_tokens_for(req: ChatRequest) -> int:
        return DEFAULT_MAX_TOKENS if req.max_tokens is None else req.max_tokens

    async def chat(self, req: ChatRequest) -> ChatResponse:
        """Non-streaming completion.

        Raises:
            ProviderError: Any vendor or transport failure, already classified.
        """
        try:
            return await self._chat(req)
        except Exception as e:
            raise map_provider_error(e, self.provider) from e

    async def stream_chat(self, req: ChatRequest, callbacks: StreamCallbacks) -> None:
        """Stream a completion into callbacks.

        on_text_delta fires for each text piece in arrival order. Exactly one of
        on_complete(usage) / on_error(ProviderError) fires at the end. Task
        cancellation reports a `cancelled` error and then propagates.
        """
        model = self.model_for(req)
        log_fields = safe_kv(
            provider=self.provider,
            model_name=model,
            max_tokens=self.max_tokens_for(req),
            message_chars=sum(len(t.content) for t in req.messages),
        )
        logger.info("llm.stream.started", **log_fields)

        start = time.monotonic()
        output_chars = 0
        usage: TokenUsage | None = None

        try:
            async with aclosing(self._iter_stream(req)) as chunks:
                async for chunk in chunks:
                    if chunk.done:
                        usage = chunk.usage or TokenUsage()
                        break
                    if chunk.delta_text:
                        output_chars += len(chunk.delta_text)
                        callbacks.on_text_delta(chunk.delta_text)
            if usage is None:
                raise ProviderError(
                    ErrorKind.NETWORK_INTERRUPTED,
                    provider=self.provider,
                )
        except asyncio.CancelledError:
            logger.info("llm.stream.cancelled", **log_fields, output_chars=output_chars)
            callbacks.on_error(ProviderError(ErrorKind.CANCELLED, provider=self.provider))
            raise
        except Exception as e:
            error = map_provider_error(e, self.provider)
            logger.warning(
                "llm.stream.failed",
                **log_fields,
                error_kind=error.kind.value,
                status_code=error.status_code,
                latency_ms=int((time.monotonic() - start) * 1000),
            )
            callbacks.on_error(error)
            return

        logger.info(
            "llm.stream.finished",
            **log_fields,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            output_chars=output_chars,
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        callbacks.on_complete(usage)

    async def validate_key(self) -> bool:
        """Cheap authenticated call; True on 2xx, False on any failure."""
        try:
            return await self._validate_key()
        except Exception as e:
            logger.info(
                "provider_key_validation_failed",
                provider=self.provider,
                error_type=type(e).__name__,
            )
            return False

    async def list_models(self) -> list[str]:
        """Model ids the key can use, sorted.

        Falls back to `common_models` when the vendor call fails or lists nothing.
        """
        try:
            models = await self._list_models()
        except Exception as e:
            logger.info(
                "provider_model_list_failed",
                provider=self.provider,
                error_type=type(e).__name__,
            )
            return list(self.common_models)
        return sorted(set(models)) if models else list(self.common_models)

    async def _raise_for_status(self, response: httpx.Response) -> None:
        """Read the error body (streaming responses too) and raise a ProviderError."""
        if response.is_success:
            return
        await response.aread()
        raise error_from_status(response.status_code, response.text, provider=self.provider)

    @abstractmethod
    async def _chat(self, req: ChatRequest) -> ChatResponse:
        """Vendor-specific non-streaming call."""

    @abstractmethod
    def _iter_stream(self, req: ChatRequest) -> AsyncIterator[LLMChunk]:
        """Vendor-specific streaming call.

        Yields non-terminal chunks, then exactly one done=True chunk carrying
        usage. Ending without a terminal chunk means the stream was cut.
        """

    @abstractmethod
    async def _validate_key(self) -> bool:
        """Vendor-specific key check."""

    @abstractmethod
    async def _list_models(self) -> list[str]:
        """Vendor-specific model listing."""
