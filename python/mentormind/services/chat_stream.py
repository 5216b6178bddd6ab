"""Streaming chat gateway: async generator of SSE frames for POST /ai-helper.

Pipeline per request (no state shared between requests):
    route model -> resolve credential -> message_start -> build adapter
    -> stream (text_delta per adapter delta) -> message_stop | error

SSE Events:
- message_start: {"type", "model"} once the credential (and so the model) is known
- text_delta: {"type", "text"} in vendor arrival order, never batched
- message_stop: {"type", "model", "usage", "isBYOK", "provider"}
- error: {"type", "error", "code"?, "isRetryable"}

Exactly one terminal event (message_stop XOR error) is emitted, and nothing
after it. A failure before the model is known emits only the error event.

Disconnects: when the client goes away Starlette stops iterating (CancelledError
or GeneratorExit at a yield). Both are re-raised without yielding again; the
finally block cancels the vendor task, which closes the vendor connection.

The adapter runs as its own task and reports through StreamCallbacks into an
asyncio.Queue that this generator drains, so every delta is forwarded as soon
as it arrives. Sync DB work (credential lookup, usage recording) goes through
run_in_threadpool.
"""

import asyncio
import time
from collections.abc import AsyncIterator

import httpx
from starlette.concurrency import run_in_threadpool

from mentormind.auth.context import AuthContext
from mentormind.config import Settings
from mentormind.logging import get_logger, set_model_id
from mentormind.schemas.chat import ChatRequestBody
from mentormind.schemas.stream import (
    MessageStartEvent,
    MessageStopEvent,
    StreamErrorEvent,
    TextDeltaEvent,
    Usage,
    encode_event,
)
from mentormind.services.credential_resolver import Credential, resolve_credential
from mentormind.services.llm import (
    ChatRequest,
    ConfigurationError,
    ErrorKind,
    ProviderError,
    StreamCallbacks,
    TokenUsage,
    build_system_prompt,
    create_adapter,
    map_provider_error,
    render_messages,
)
from mentormind.services.model_router import resolve_model_routing
from mentormind.services.models import build_platform_credential, get_available_models
from mentormind.services.redact import hash_text, safe_kv
from mentormind.services.user_keys import CredentialStore

logger = get_logger(__name__)

NOT_CONFIGURED_MESSAGE = "AI service is not configured"

# Queue item kinds
_DELTA = "delta"
_COMPLETE = "complete"
_ERROR = "error"


def error_event(error: ProviderError) -> str:
    return encode_event(StreamErrorEvent(**error.to_wire()))


def _record_byok_usage(store: CredentialStore, credential: Credential) -> None:
    """Best-effort usage bookkeeping; never fails the request."""
    if not credential.is_byok or credential.key_id is None:
        return
    try:
        store.record_usage(credential.key_id)
    except Exception as e:
        logger.warning(
            "byok_usage_record_failed",
            key_id=str(credential.key_id),
            error_type=type(e).__name__,
        )


async def stream_chat_events(
    body: ChatRequestBody,
    auth: AuthContext,
    *,
    http_client: httpx.AsyncClient,
    credential_store: CredentialStore | None,
    settings: Settings,
) -> AsyncIterator[str]:
    """Run one chat turn and yield its SSE frames.

    Args:
        body: Validated request body.
        auth: Caller identity (anonymous callers use platform credentials).
        http_client: Shared client for vendor calls.
        credential_store: BYOK store; None disables BYOK lookup.
        settings: Application settings (platform models and keys).
    """
    start = time.monotonic()
    queue: asyncio.Queue[tuple[str, object]] = asyncio.Queue()
    task: asyncio.Task | None = None
    credential: Credential | None = None
    status = "error"
    output_chars = 0

    logger.info(
        "chat.stream.started",
        **safe_kv(
            message_count=len(body.messages),
            last_message_sha256=hash_text(body.messages[-1].content),
            requested_model_id=body.model_id,
            authenticated=auth.is_authenticated,
        ),
    )

    try:
        decision = resolve_model_routing(
            body.messages,
            body.study_stats,
            body.model_id,
            get_available_models(settings),
        )

        credential = await run_in_threadpool(
            resolve_credential,
            auth,
            decision.resolved_model_id,
            store=credential_store,
            platform_factory=lambda model_id: build_platform_credential(model_id, settings),
            requested_model_id=body.model_id,
        )
        model_id = credential.model_id
        set_model_id(model_id)

        yield encode_event(MessageStartEvent(model=model_id))

        adapter = create_adapter(credential.to_descriptor(), http_client)
        system_prompt = build_system_prompt(body.user_name, body.study_stats, body.group_info)
        request = ChatRequest(messages=render_messages(system_prompt, body.messages))

        callbacks = StreamCallbacks(
            on_text_delta=lambda text: queue.put_nowait((_DELTA, text)),
            on_complete=lambda usage: queue.put_nowait((_COMPLETE, usage)),
            on_error=lambda error: queue.put_nowait((_ERROR, error)),
        )

        def _on_task_done(t: asyncio.Task) -> None:
            # Safety net: a task that dies outside its callbacks still terminates the stream
            if not t.cancelled() and t.exception() is not None:
                queue.put_nowait((_ERROR, map_provider_error(t.exception(), adapter.provider)))

        task = asyncio.create_task(adapter.stream_chat(request, callbacks))
        task.add_done_callback(_on_task_done)

        while True:
            kind, payload = await queue.get()

            if kind == _DELTA:
                output_chars += len(payload)
                yield encode_event(TextDeltaEvent(text=payload))
                continue

            if kind == _COMPLETE:
                usage = payload if isinstance(payload, TokenUsage) else TokenUsage()
                yield encode_event(
                    MessageStopEvent(
                        model=model_id,
                        usage=Usage(**usage.to_dict()),
                        is_byok=credential.is_byok,
                        provider=credential.provider_label,
                    )
                )
                status = "complete"
                if credential_store is not None:
                    await run_in_threadpool(_record_byok_usage, credential_store, credential)
                break

            status = "error"
            yield error_event(payload)
            break

    except ProviderError as e:
        yield error_event(e)
    except ConfigurationError as e:
        logger.warning("chat_not_configured", reason=str(e))
        yield encode_event(StreamErrorEvent(error=NOT_CONFIGURED_MESSAGE, is_retryable=False))
    except (asyncio.CancelledError, GeneratorExit):
        status = "cancelled"
        logger.info("chat_stream_client_disconnect")
        raise
    except Exception as e:
        logger.error("chat_stream_unexpected_error", error_type=type(e).__name__, exc_info=True)
        yield error_event(ProviderError(ErrorKind.UNRECOGNIZED, status_code=500))
    finally:
        if task is not None and not task.done():
            task.cancel()

        logger.info(
            "chat.stream.finished",
            status=status,
            model_id=credential.model_id if credential else None,
            is_byok=credential.is_byok if credential else None,
            output_chars=output_chars,
            latency_ms=int((time.monotonic() - start) * 1000),
        )
