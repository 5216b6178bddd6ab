"""Python client for the MentorMind chat gateway.

- ChatSession: stream consumer with ledger charge/refund and retry/stop
- ChatState: immutable state machine snapshot
- format_error: user-facing error formatting
- HttpLedger: coin ledger over the /ledger routes
"""

from mentormind.client.chat_state import (
    ChatMessage,
    ChatPhase,
    ChatState,
    ChatStore,
    InMemoryChatStore,
    JsonFileChatStore,
    process_stream_event,
)
from mentormind.client.error_formatter import FormattedError, format_error, is_retryable_error
from mentormind.client.ledger_client import (
    HttpLedger,
    InsufficientFundsError,
    Ledger,
    LedgerError,
)
from mentormind.client.stream_consumer import (
    COINS_PER_AI_MESSAGE,
    COIN_SHORTAGE_MESSAGE,
    ChatSession,
    Notice,
)

__all__ = [
    "ChatMessage",
    "ChatPhase",
    "ChatState",
    "ChatStore",
    "InMemoryChatStore",
    "JsonFileChatStore",
    "process_stream_event",
    "FormattedError",
    "format_error",
    "is_retryable_error",
    "HttpLedger",
    "InsufficientFundsError",
    "Ledger",
    "LedgerError",
    "COINS_PER_AI_MESSAGE",
    "COIN_SHORTAGE_MESSAGE",
    "ChatSession",
    "Notice",
]
