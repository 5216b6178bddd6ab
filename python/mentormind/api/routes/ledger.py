"""Coin ledger routes.

- GET /ledger/balance
- POST /ledger/charge: E_INSUFFICIENT_COINS (402) when the balance is too low
- POST /ledger/refund
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mentormind.api.deps import get_db
from mentormind.auth.context import AuthContext, require_user
from mentormind.responses import success_response
from mentormind.schemas.ledger import BalanceOut, LedgerMutation
from mentormind.services import ledger as ledger_service

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/balance")
def get_balance(
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    balance = ledger_service.get_balance(db=db, user_id=auth.user_id)
    return success_response(BalanceOut(balance=balance).model_dump())


@router.post("/charge")
def charge(
    body: LedgerMutation,
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    balance = ledger_service.charge(
        db=db, user_id=auth.user_id, amount=body.amount, reason=body.reason
    )
    return success_response(BalanceOut(balance=balance).model_dump())


@router.post("/refund")
def refund(
    body: LedgerMutation,
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    balance = ledger_service.refund(
        db=db, user_id=auth.user_id, amount=body.amount, reason=body.reason
    )
    return success_response(BalanceOut(balance=balance).model_dump())
