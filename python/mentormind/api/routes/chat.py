"""Streaming chat route.

POST /ai-helper streams one assistant turn as text/event-stream.
Anonymous callers are served with platform credentials; a bearer token
enables the caller's stored BYOK credential.

Failures after the stream opens arrive as an `error` event, not as a JSON
error envelope. Request validation errors are still JSON (400).
"""

from typing import Annotated

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from mentormind.api.deps import get_credential_store, get_http_client
from mentormind.auth.context import AuthContext, get_auth_context
from mentormind.config import get_settings
from mentormind.schemas.chat import ChatRequestBody
from mentormind.services.chat_stream import stream_chat_events
from mentormind.services.user_keys import SqlCredentialStore

router = APIRouter(tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


@router.post("/ai-helper")
async def ai_helper(
    body: ChatRequestBody,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    credential_store: Annotated[SqlCredentialStore, Depends(get_credential_store)],
) -> StreamingResponse:
    return StreamingResponse(
        stream_chat_events(
            body,
            auth,
            http_client=http_client,
            credential_store=credential_store,
            settings=get_settings(),
        ),
        media_type="text/event-stream; charset=utf-8",
        headers=SSE_HEADERS,
    )
