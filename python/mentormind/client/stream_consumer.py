"""Client stream consumer: one chat session against POST /ai-helper.

ChatSession drives the ChatState machine from the wire protocol and keeps the
coin ledger consistent:

- Before the request: client-side balance check, then a pre-deduction
  (COINS_PER_AI_MESSAGE, reason "ai-helper") tracked as pending coins
- message_stop with isBYOK: refund the pending coins ("byok-refund")
- message_stop without isBYOK: the charge is final
- error event, transport failure, stream ending without a terminal event,
  or stop(): refund the pending coins ("ai-helper-refund")

The pending amount is reset to zero before any refund call, so each request
is charged at most once and refunded at most once.

Only one turn is in flight per session; send() while busy is a no-op. A
send() right after stop() waits for the stopped turn to settle its refund.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any, Literal

import httpx

from mentormind.client.chat_state import (
    ChatMessage,
    ChatPhase,
    ChatState,
    ChatStore,
    InMemoryChatStore,
    begin_turn,
    cancel_turn,
    create_assistant_placeholder,
    create_user_message,
    fail_turn,
    prepare_retry,
    process_stream_event,
)
from mentormind.client.error_formatter import FormattedError, format_error
from mentormind.client.ledger_client import InsufficientFundsError, Ledger
from mentormind.client.sse import aiter_events
from mentormind.logging import get_logger
from mentormind.schemas.chat import AUTO_MODEL_ID
from mentormind.schemas.stream import MessageStopEvent, StreamErrorEvent
from mentormind.services.llm.errors import ErrorKind, ProviderError

logger = get_logger(__name__)

COINS_PER_AI_MESSAGE = 100
COIN_SHORTAGE_MESSAGE = (
    "You need at least 100 coins to ask MentorMind. Start a study session to earn "
    "more coins (every second of study adds 1 coin)."
)

CHARGE_REASON = "ai-helper"
BYOK_REFUND_REASON = "byok-refund"
FAILURE_REFUND_REASON = "ai-helper-refund"

CHAT_ENDPOINT = "/ai-helper"

COIN_SHORTAGE_ERROR = FormattedError(
    message=COIN_SHORTAGE_MESSAGE,
    suggestion="Start a study session to earn more coins (1 coin per second of study).",
    is_retryable=False,
)


@dataclass(frozen=True)
class Notice:
    """Transient, toast-style message for the UI."""

    level: Literal["success", "info", "error"]
    title: str
    description: str | None = None


NOT_ENOUGH_COINS_NOTICE = Notice(
    level="error",
    title="Not enough coins",
    description="Start a study session to earn coins. Every second of focused study gives you 1 coin.",
)
CANCELLED_NOTICE = Notice(level="info", title="Request cancelled")
CLEARED_NOTICE = Notice(level="success", title="Chat history cleared")


def byok_notice(provider: str) -> Notice:
    return Notice(
        level="success",
        title="BYOK used - coins refunded!",
        description=f"Using your {provider} API key. No coins charged.",
    )


@dataclass
class _Turn:
    """Bookkeeping for one submitted message, from charge to settlement."""

    pending_coins: int = 0
    stop_requested: bool = False
    task: asyncio.Task | None = None
    done: asyncio.Event = field(default_factory=asyncio.Event)


class ChatSession:
    """Stateful chat consumer.

    Args:
        client: httpx client with the API base URL (and Authorization header
            for BYOK callers).
        ledger: Coin ledger port (HttpLedger in production).
        store: Persistence port for the message history.
        study_stats: Learner context forwarded with every request.
        group_info: Group context forwarded with every request.
        user_name: Display name forwarded with every request.
        model_id: Requested model, or "auto" for routing.
        coin_balance: Client-side balance estimate; fetched from the ledger on
            first send when unknown.
        on_change: Called with every new ChatState.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        ledger: Ledger,
        store: ChatStore | None = None,
        *,
        study_stats: dict[str, Any] | None = None,
        group_info: Any = None,
        user_name: str | None = None,
        model_id: str = AUTO_MODEL_ID,
        coin_balance: int | None = None,
        endpoint: str = CHAT_ENDPOINT,
        on_change: Callable[[ChatState], None] | None = None,
    ):
        self._client = client
        self._ledger = ledger
        self._store = store or InMemoryChatStore()
        self._endpoint = endpoint
        self._on_change = on_change

        self.study_stats = study_stats
        self.group_info = group_info
        self.user_name = user_name
        self.model_id = model_id

        if coin_balance is None and study_stats:
            stats_balance = study_stats.get("coinsBalance")
            if isinstance(stats_balance, int | float) and not isinstance(stats_balance, bool):
                coin_balance = int(stats_balance)
        self.coin_balance = coin_balance

        self.notice: Notice | None = None
        self._turn: _Turn | None = None
        self._state = ChatState(
            messages=tuple(self._store.load()),
            resolved_model=None if model_id == AUTO_MODEL_ID else model_id,
        )

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self._state.messages

    @property
    def resolved_model(self) -> str | None:
        return self._state.resolved_model

    @property
    def error(self) -> FormattedError | None:
        return self._state.error

    @property
    def partial_content(self) -> str | None:
        return self._state.partial_content

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def is_streaming(self) -> bool:
        return self._state.is_streaming

    @property
    def is_busy(self) -> bool:
        """True while a turn is live; a stopped turn still unwinding is not."""
        if self._turn is not None and not self._turn.stop_requested:
            return True
        return self._state.is_busy

    @property
    def pending_coins(self) -> int:
        return self._turn.pending_coins if self._turn is not None else 0

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def send(self, text: str) -> ChatState:
        """Submit one user message and consume the streamed reply."""
        return await self._submit(text, retry=False)

    async def retry(self) -> ChatState:
        """Resubmit the last user message, replacing the turn it produced."""
        if self.is_busy:
            return self._state
        _, text = prepare_retry(self._state)
        if text is None:
            return self._state
        return await self._submit(text, retry=True)

    def stop(self) -> bool:
        """Cancel the in-flight turn. Returns False when nothing was running."""
        turn = self._turn
        if turn is None or turn.stop_requested or turn.task is None or turn.task.done():
            return False
        turn.stop_requested = True
        turn.task.cancel()
        self._set_state(cancel_turn(self._state))
        self.notice = CANCELLED_NOTICE
        return True

    def clear(self) -> None:
        self.stop()
        self._set_state(ChatState(resolved_model=self._state.resolved_model))
        self._store.clear()
        self.notice = CLEARED_NOTICE

    def clear_error(self) -> None:
        if self._state.error is not None:
            phase = ChatPhase.IDLE if self._state.phase == ChatPhase.ERROR else self._state.phase
            self._set_state(replace(self._state, phase=phase, error=None, partial_content=None))

    # -------------------------------------------------------------------------
    # Turn lifecycle
    # -------------------------------------------------------------------------

    async def _submit(self, text: str, *, retry: bool) -> ChatState:
        if not text.strip():
            return self._state

        # A stopped turn still owns its refund until its task unwinds
        while self._turn is not None:
            if not self._turn.stop_requested:
                return self._state
            await self._turn.done.wait()
        if self._state.is_busy:
            return self._state

        turn = _Turn()
        self._turn = turn
        try:
            return await self._run_turn(turn, text, retry=retry)
        finally:
            self._turn = None
            turn.done.set()

    async def _run_turn(self, turn: _Turn, text: str, *, retry: bool) -> ChatState:
        self.notice = None
        if not await self._has_enough_coins():
            self._reject_for_coins()
            return self._state

        try:
            self.coin_balance = await self._ledger.charge(COINS_PER_AI_MESSAGE, CHARGE_REASON)
        except InsufficientFundsError:
            self._reject_for_coins()
            return self._state
        except Exception as e:
            logger.warning("coin_charge_failed", error_type=type(e).__name__)
            self._set_state(fail_turn(self._state, format_error(e)))
            return self._state
        turn.pending_coins = COINS_PER_AI_MESSAGE

        state = self._state
        if retry:
            state, _ = prepare_retry(state)
        user_message = create_user_message(text)
        self._set_state(begin_turn(state, user_message, create_assistant_placeholder()))

        turn.task = asyncio.create_task(self._stream_turn(turn, self._request_body()))
        try:
            await turn.task
        except asyncio.CancelledError:
            # The turn may have been cancelled before it ever started
            if not turn.stop_requested:
                self._set_state(cancel_turn(self._state))
            await self._refund_pending(turn, FAILURE_REFUND_REASON)
            if not turn.stop_requested:
                raise

        return self._state

    async def _stream_turn(self, turn: _Turn, body: dict[str, Any]) -> None:
        try:
            async with self._client.stream("POST", self._endpoint, json=body) as response:
                if response.is_error:
                    await response.aread()
                    response.raise_for_status()

                async for event in aiter_events(response.aiter_lines()):
                    self._set_state(process_stream_event(self._state, event))

                    if isinstance(event, MessageStopEvent):
                        await self._settle(turn, event)
                        return
                    if isinstance(event, StreamErrorEvent):
                        await self._refund_pending(turn, FAILURE_REFUND_REASON)
                        return

            raise ProviderError(ErrorKind.NETWORK_INTERRUPTED)

        except asyncio.CancelledError:
            if not turn.stop_requested:
                self._set_state(cancel_turn(self._state))
                self.notice = CANCELLED_NOTICE
            await self._refund_pending(turn, FAILURE_REFUND_REASON)
            raise

        except Exception as e:
            logger.warning("chat_turn_failed", error_type=type(e).__name__)
            self._set_state(fail_turn(self._state, format_error(e)))
            await self._refund_pending(turn, FAILURE_REFUND_REASON)

    async def _settle(self, turn: _Turn, event: MessageStopEvent) -> None:
        if not event.is_byok:
            turn.pending_coins = 0
            return
        if turn.pending_coins > 0:
            await self._refund_pending(turn, BYOK_REFUND_REASON)
            self.notice = byok_notice(event.provider)

    async def _refund_pending(self, turn: _Turn, reason: str) -> None:
        amount, turn.pending_coins = turn.pending_coins, 0
        if amount <= 0:
            return
        try:
            self.coin_balance = await self._ledger.refund(amount, reason)
        except Exception as e:
            logger.warning("coin_refund_failed", reason=reason, error_type=type(e).__name__)

    async def _has_enough_coins(self) -> bool:
        if self.coin_balance is None:
            try:
                self.coin_balance = await self._ledger.balance()
            except Exception as e:
                # Let the server-side charge decide
                logger.warning("coin_balance_fetch_failed", error_type=type(e).__name__)
                return True
        return self.coin_balance >= COINS_PER_AI_MESSAGE

    def _reject_for_coins(self) -> None:
        self._set_state(
            replace(
                self._state,
                phase=ChatPhase.ERROR,
                active_message_id=None,
                received_content=False,
                error=COIN_SHORTAGE_ERROR,
                partial_content=None,
            )
        )
        self.notice = NOT_ENOUGH_COINS_NOTICE

    def _request_body(self) -> dict[str, Any]:
        history = [
            {"role": m.role, "content": m.content}
            for m in self._state.messages
            if m.id != self._state.active_message_id and m.content
        ]
        body: dict[str, Any] = {"messages": history, "modelId": self.model_id}
        if self.study_stats is not None:
            body["studyStats"] = self.study_stats
        if self.group_info is not None:
            body["groupInfo"] = self.group_info
        if self.user_name is not None:
            body["userName"] = self.user_name
        return body

    def _set_state(self, state: ChatState) -> None:
        if state is self._state:
            return
        messages_changed = state.messages != self._state.messages
        self._state = state
        if messages_changed:
            self._store.save(list(state.messages))
        if self._on_change is not None:
            self._on_change(state)
