"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from mentormind.schemas.chat import (
    AUTO_MODEL_ID,
    ChatMessageIn,
    ChatRequestBody,
    RecentSession,
    SessionStats,
    StudyStats,
)
from mentormind.schemas.keys import (
    KeyValidateOut,
    KeyValidateRequest,
    ModelOut,
    ProviderModelsOut,
    UserApiKeyCreate,
    UserApiKeyOut,
)
from mentormind.schemas.ledger import BalanceOut, LedgerMutation
from mentormind.schemas.stream import (
    MessageStartEvent,
    MessageStopEvent,
    StreamErrorEvent,
    StreamEvent,
    TextDeltaEvent,
    Usage,
    encode_event,
    format_sse_event,
    parse_event,
)

__all__ = [
    # Chat
    "AUTO_MODEL_ID",
    "ChatMessageIn",
    "ChatRequestBody",
    "RecentSession",
    "SessionStats",
    "StudyStats",
    # Keys / models
    "KeyValidateOut",
    "KeyValidateRequest",
    "ModelOut",
    "ProviderModelsOut",
    "UserApiKeyCreate",
    "UserApiKeyOut",
    # Ledger
    "BalanceOut",
    "LedgerMutation",
    # Stream
    "MessageStartEvent",
    "MessageStopEvent",
    "StreamErrorEvent",
    "StreamEvent",
    "TextDeltaEvent",
    "Usage",
    "encode_event",
    "format_sse_event",
    "parse_event",
]
