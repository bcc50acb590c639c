"""/v1/accounts - opening, lookup and status of deposit accounts"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from abaya_bank.api.dependencies import get_current_user, get_request_context, require_admin
from abaya_bank.api.v1.schemas import (
    AccountDetailResponse,
    AccountListResponse,
    AccountResponse,
    AccountStatusRequest,
    BalanceResponse,
    OpenAccountRequest,
    ReconciliationResponse,
    TransactionResponse,
)
from abaya_bank.infrastructure.database.models import User
from abaya_bank.infrastructure.database.repositories import TransactionRepository
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.services import accounts as account_service
from abaya_bank.services.audit import RequestContext
from abaya_bank.services.ledger import reconcile_account

router = APIRouter(prefix="/accounts")


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def open_account(
    request_body: OpenAccountRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Open a savings, student or FDR account.

    FDR accounts need an interest rate and a future maturity date.
    """
    account = account_service.open_account(
        db,
        user,
        request_body.account_type,
        request_body.initial_deposit_cents,
        request_body.interest_rate,
        request_body.maturity_date,
    )
    return AccountResponse.model_validate(account)


@router.get("", response_model=AccountListResponse)
def list_my_accounts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    accounts = account_service.list_user_accounts(db, user)
    return AccountListResponse(accounts=[AccountResponse.model_validate(a) for a in accounts])


@router.get("/{account_id}", response_model=AccountDetailResponse)
def get_account(account_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Account with its ten most recent ledger entries"""
    account = account_service.get_account_for(db, user, account_id)
    recent = TransactionRepository(db).recent_for_account(account.id, limit=10)
    return AccountDetailResponse(
        account=AccountResponse.model_validate(account),
        recent_transactions=[TransactionResponse.model_validate(t) for t in recent],
    )


@router.get("/{account_id}/balance", response_model=BalanceResponse)
def get_balance(account_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return BalanceResponse(**account_service.account_balance(db, user, account_id))


@router.get("/{account_id}/reconciliation", response_model=ReconciliationResponse)
def get_reconciliation(
    account_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Replay the account's ledger against its stored balance"""
    account = account_service.get_account_for(db, user, account_id)
    result = reconcile_account(db, account)
    return ReconciliationResponse(
        account_id=result.account_id,
        balance_cents=result.balance_cents,
        ledger_total_cents=result.ledger_total_cents,
        initial_deposit_cents=result.initial_deposit_cents,
        movement_since_opening_cents=result.movement_since_opening_cents,
        entries=result.entries,
        balanced=result.balanced,
    )


@router.patch("/{account_id}/status", response_model=AccountResponse)
def change_status(
    account_id: uuid.UUID,
    request_body: AccountStatusRequest,
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Set an account active, frozen or closed (admin only)"""
    account = account_service.set_account_status(
        db, admin, account_id, request_body.status, request_body.reason, context
    )
    return AccountResponse.model_validate(account)
