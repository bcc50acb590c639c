"""/v1/transactions - deposits, withdrawals, transfers and statements"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from abaya_bank.api.v1.schemas import (
    AccountSummary,
    MoneyRequest,
    Pagination,
    StatementResponse,
    StatementSummarySchema,
    TransactionListResponse,
    TransactionResponse,
    TransactionResult,
    TransferRequest,
    TransferResponse,
)
from abaya_bank.api.dependencies import get_current_user
from abaya_bank.infrastructure.database.models import User
from abaya_bank.infrastructure.database.repositories import TransactionFilters
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.services import ledger
from abaya_bank.services.access import is_admin
from abaya_bank.services.accounts import get_account_for
from abaya_bank.utils.date_utils import utcnow
from abaya_bank.utils.pagination import pagination_block

router = APIRouter(prefix="/transactions")

TransactionType = Literal[
    "deposit", "withdrawal", "transfer_in", "transfer_out", "loan_disbursement", "emi_deduction", "reversal"
]


@router.post("/deposit", response_model=TransactionResult, status_code=status.HTTP_201_CREATED)
def deposit(request_body: MoneyRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    txn, account = ledger.deposit(db, user, request_body.account_id, request_body.amount_cents, request_body.description)
    return TransactionResult(transaction=TransactionResponse.model_validate(txn), balance_cents=account.balance_cents)


@router.post("/withdraw", response_model=TransactionResult, status_code=status.HTTP_201_CREATED)
def withdraw(request_body: MoneyRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    txn, account = ledger.withdraw(
        db, user, request_body.account_id, request_body.amount_cents, request_body.description
    )
    return TransactionResult(transaction=TransactionResponse.model_validate(txn), balance_cents=account.balance_cents)


@router.post("/transfer", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
def transfer(request_body: TransferRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Transfer between two accounts.

    The caller must own the source account; the destination may belong to
    anyone.
    """
    transactions, source, _ = ledger.transfer(
        db,
        user,
        request_body.from_account_id,
        request_body.to_account_id,
        request_body.amount_cents,
        request_body.description,
    )
    return TransferResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        from_balance_cents=source.balance_cents,
    )


@router.get("", response_model=TransactionListResponse)
def list_transactions(
    account_id: Optional[uuid.UUID] = Query(None),
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    min_amount_cents: Optional[int] = Query(None, ge=0),
    max_amount_cents: Optional[int] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Ledger entries, newest first; customers only see their own"""
    if account_id is not None:
        get_account_for(db, user, account_id)

    filters = TransactionFilters(
        account_id=account_id,
        user_id=None if is_admin(user) else user.id,
        transaction_type=transaction_type,
        start=start_date,
        end=end_date,
        min_amount_cents=min_amount_cents,
        max_amount_cents=max_amount_cents,
    )
    transactions, total = ledger.list_transactions(db, filters, page, limit)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        pagination=Pagination(**pagination_block(page, limit, total)),
    )


@router.get("/statement/{account_id}", response_model=StatementResponse)
def statement(
    account_id: uuid.UUID,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Monthly statement, defaulting to the current month"""
    now = utcnow()
    month = month or now.month
    year = year or now.year

    account = get_account_for(db, user, account_id)
    result = ledger.monthly_statement(db, account, month, year)
    summary = result["summary"]
    return StatementResponse(
        account=AccountSummary.model_validate(account),
        month=month,
        year=year,
        opening_balance_cents=result["opening_balance_cents"],
        closing_balance_cents=result["closing_balance_cents"],
        transactions=[TransactionResponse.model_validate(t) for t in result["transactions"]],
        summary=StatementSummarySchema(**summary.__dict__),
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return TransactionResponse.model_validate(ledger.get_transaction_for(db, user, transaction_id))
