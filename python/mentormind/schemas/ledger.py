"""Coin ledger schemas."""

from pydantic import BaseModel, Field


class LedgerMutation(BaseModel):
    """Body of POST /ledger/charge and /ledger/refund."""

    amount: float
    reason: str = Field(..., min_length=1, max_length=100)


class BalanceOut(BaseModel):
    balance: int
