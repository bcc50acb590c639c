"""/v1/admin - back-office oversight, every route requires the admin role"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from abaya_bank.api.dependencies import get_request_context, require_admin
from abaya_bank.api.v1.schemas import (
    AccountListResponse,
    AccountResponse,
    ActivationRequest,
    AnalyticsResponse,
    AuditLogListResponse,
    AuditLogResponse,
    EmiRunResponse,
    LoanListResponse,
    LoanResponse,
    Pagination,
    ReasonRequest,
    ReversalResponse,
    ReverseRequest,
    RoleChangeRequest,
    TransactionResponse,
    UserListItem,
    UserListResponse,
    UserResponse,
)
from abaya_bank.infrastructure.database.models import User
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.jobs.emi_deduction import run_emi_deduction
from abaya_bank.services import accounts as account_service
from abaya_bank.services import analytics
from abaya_bank.services import loans as loan_service
from abaya_bank.services import users as user_service
from abaya_bank.services.audit import RequestContext, list_audit_logs
from abaya_bank.services.ledger import reverse_transaction
from abaya_bank.utils.pagination import pagination_block

router = APIRouter(prefix="/admin")


@router.get("/users", response_model=UserListResponse)
def list_users(
    search: Optional[str] = Query(None, max_length=100),
    user_status: Optional[Literal["active", "inactive"]] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    is_active = None if user_status is None else user_status == "active"
    rows, total = user_service.list_users(db, search, is_active, page, limit)
    return UserListResponse(
        users=[
            UserListItem(**UserResponse.model_validate(user).model_dump(), account_count=count)
            for user, count in rows
        ],
        pagination=Pagination(**pagination_block(page, limit, total)),
    )


@router.patch("/users/{user_id}/status", response_model=UserResponse)
def set_user_status(
    user_id: uuid.UUID,
    request_body: ActivationRequest,
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    user = user_service.set_user_active(db, admin, user_id, request_body.is_active, request_body.reason, context)
    return UserResponse.model_validate(user)


@router.patch("/users/{user_id}/role", response_model=UserResponse)
def set_user_role(
    user_id: uuid.UUID,
    request_body: RoleChangeRequest,
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    user = user_service.change_user_role(db, admin, user_id, request_body.role, request_body.reason, context)
    return UserResponse.model_validate(user)


@router.get("/accounts", response_model=AccountListResponse)
def list_accounts(
    account_status: Optional[Literal["active", "frozen", "closed"]] = Query(None, alias="status"),
    account_type: Optional[Literal["savings", "student", "fdr"]] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    accounts, total = account_service.list_accounts(db, account_status, account_type, page, limit)
    return AccountListResponse(
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        pagination=Pagination(**pagination_block(page, limit, total)),
    )


@router.post("/accounts/{account_id}/freeze", response_model=AccountResponse)
def toggle_freeze(
    account_id: uuid.UUID,
    request_body: Optional[ReasonRequest] = None,
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Freeze an active account, or unfreeze a frozen one"""
    reason = request_body.reason if request_body else None
    account = account_service.toggle_freeze(db, admin, account_id, reason, context)
    return AccountResponse.model_validate(account)


@router.get("/loans", response_model=LoanListResponse)
def list_loans(
    loan_status: Optional[Literal["requested", "active", "paid", "overdue", "rejected"]] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    loans, total = loan_service.list_loans(db, loan_status, page, limit)
    return LoanListResponse(
        loans=[LoanResponse.model_validate(loan) for loan in loans],
        pagination=Pagination(**pagination_block(page, limit, total)),
    )


@router.post("/transactions/{transaction_id}/reverse", response_model=ReversalResponse)
def reverse(
    transaction_id: uuid.UUID,
    request_body: ReverseRequest,
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """
    Reverse a completed ledger entry.

    Transfers are reversed on both legs; reversed EMI deductions are
    restored on their loan.
    """
    originals, reversals = reverse_transaction(db, admin, transaction_id, request_body.reason, context)
    return ReversalResponse(
        reversed=[TransactionResponse.model_validate(t) for t in originals],
        reversals=[TransactionResponse.model_validate(t) for t in reversals],
    )


@router.get("/analytics", response_model=AnalyticsResponse)
def get_analytics(
    period: Literal["week", "month", "year"] = Query("month"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return AnalyticsResponse(
        overview=analytics.overview(db, period),
        monthly_trends=analytics.monthly_trends(db),
        account_growth=analytics.account_growth(db),
        loan_status_breakdown=analytics.loan_status_breakdown(db),
    )


@router.get("/audit-logs", response_model=AuditLogListResponse)
def get_audit_logs(
    action: Optional[str] = Query(None),
    target_type: Optional[Literal["user", "account", "transaction", "loan"]] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    logs, total = list_audit_logs(db, action, target_type, page, limit)
    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(entry) for entry in logs],
        pagination=Pagination(**pagination_block(page, limit, total)),
    )


@router.post("/jobs/emi-deduction", response_model=EmiRunResponse)
def trigger_emi_deduction(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Run the EMI auto-deduction batch now instead of waiting for the cron"""
    result = run_emi_deduction(db=db)
    return EmiRunResponse(successful=result.successful, failed=result.failed, errors=result.errors)
