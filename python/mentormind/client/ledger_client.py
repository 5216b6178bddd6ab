"""Coin ledger client used by the chat session.

HttpLedger talks to the /ledger/* routes of the API. The httpx client is
expected to carry the base URL and the caller's Authorization header.
"""

from typing import Protocol

import httpx

from mentormind.logging import get_logger

logger = get_logger(__name__)

INSUFFICIENT_COINS_CODE = "E_INSUFFICIENT_COINS"


class LedgerError(Exception):
    """The ledger call failed for a reason other than the balance."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InsufficientFundsError(LedgerError):
    """The balance is too low for the requested charge."""

    def __init__(self, message: str = "insufficient_coins"):
        super().__init__(message, status_code=402)


class Ledger(Protocol):
    async def balance(self) -> int: ...

    async def charge(self, amount: int, reason: str) -> int: ...

    async def refund(self, amount: int, reason: str) -> int: ...


class HttpLedger:
    def __init__(self, client: httpx.AsyncClient, prefix: str = "/ledger"):
        self._client = client
        self._prefix = prefix.rstrip("/")

    async def balance(self) -> int:
        return await self._request("GET", "/balance")

    async def charge(self, amount: int, reason: str) -> int:
        """Deduct coins; returns the new balance.

        Raises:
            InsufficientFundsError: If the balance is below amount.
            LedgerError: For any other failure.
        """
        return await self._request("POST", "/charge", {"amount": amount, "reason": reason})

    async def refund(self, amount: int, reason: str) -> int:
        return await self._request("POST", "/refund", {"amount": amount, "reason": reason})

    async def _request(self, method: str, path: str, body: dict | None = None) -> int:
        try:
            response = await self._client.request(method, self._prefix + path, json=body)
        except httpx.HTTPError as e:
            raise LedgerError(f"ledger request failed: {type(e).__name__}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_success:
            try:
                return int(payload["data"]["balance"])
            except (KeyError, TypeError, ValueError) as e:
                raise LedgerError("malformed ledger response", response.status_code) from e

        error = payload.get("error") if isinstance(payload, dict) else None
        code = error.get("code") if isinstance(error, dict) else None
        if code == INSUFFICIENT_COINS_CODE:
            raise InsufficientFundsError()

        logger.warning("ledger_request_failed", path=path, status_code=response.status_code)
        raise LedgerError(f"ledger request failed with {response.status_code}", response.status_code)
