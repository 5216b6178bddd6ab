"""Coin ledger service layer.

The balance-mutation service the chat client charges and refunds against.

Semantics:
- Amounts are floored to integers; a non-positive amount is a no-op that
  returns the current balance
- Accounts are created on first touch with INITIAL_COIN_BALANCE
- Every mutation appends a CoinTransaction journal row (signed amount)
- A charge larger than the balance raises InsufficientCoinsError and
  changes nothing
"""

import math
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mentormind.config import get_settings
from mentormind.db.models import CoinAccount, CoinTransaction
from mentormind.db.session import transaction
from mentormind.errors import InsufficientCoinsError
from mentormind.logging import get_logger

logger = get_logger(__name__)


def _get_or_create_account(db: Session, user_id: UUID) -> CoinAccount:
    account = db.scalars(
        select(CoinAccount).where(CoinAccount.user_id == user_id).with_for_update()
    ).first()
    if account is None:
        account = CoinAccount(user_id=user_id, balance=get_settings().initial_coin_balance)
        db.add(account)
        db.flush()
    return account


def get_balance(db: Session, user_id: UUID) -> int:
    account = _get_or_create_account(db, user_id)
    db.commit()
    return account.balance


def _apply(db: Session, user_id: UUID, delta: int, reason: str) -> int:
    with transaction(db):
        account = _get_or_create_account(db, user_id)
        if account.balance + delta < 0:
            raise InsufficientCoinsError(balance=account.balance, amount=-delta)

        account.balance += delta
        db.add(
            CoinTransaction(
                user_id=user_id,
                amount=delta,
                reason=reason,
                balance_after=account.balance,
            )
        )
        db.flush()

    logger.info(
        "ledger_mutated",
        user_id=str(user_id),
        amount=delta,
        reason=reason,
        balance_after=account.balance,
    )
    return account.balance


def charge(db: Session, user_id: UUID, amount: float, reason: str) -> int:
    """Deduct coins and return the new balance.

    Raises:
        InsufficientCoinsError: If the balance is lower than the amount.
    """
    coins = math.floor(amount)
    if coins <= 0:
        return get_balance(db, user_id)
    return _apply(db, user_id, -coins, reason)


def refund(db: Session, user_id: UUID, amount: float, reason: str) -> int:
    """Credit coins back and return the new balance."""
    coins = math.floor(amount)
    if coins <= 0:
        return get_balance(db, user_id)
    return _apply(db, user_id, coins, reason)
