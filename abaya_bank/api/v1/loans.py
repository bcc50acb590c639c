"""/v1/loans - EMI calculator, applications, approvals and repayments"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from abaya_bank.api.dependencies import get_current_user, get_request_context, require_admin
from abaya_bank.api.v1.schemas import (
    EmiPaymentResponse,
    EmiQuoteRequest,
    EmiQuoteResponse,
    LoanApplicationRequest,
    LoanDisbursementResponse,
    LoanListResponse,
    LoanResponse,
    LoanScheduleResponse,
    RejectLoanRequest,
    ScheduleEntrySchema,
    TransactionResponse,
)
from abaya_bank.domain.models import LoanApplication
from abaya_bank.infrastructure.database.models import User
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.services import loans as loan_service
from abaya_bank.services.audit import RequestContext

router = APIRouter(prefix="/loans")


@router.post("/calculate-emi", response_model=EmiQuoteResponse)
def calculate_emi(request_body: EmiQuoteRequest, user: User = Depends(get_current_user)):
    """EMI = [P x R x (1 + R)^N] / [(1 + R)^N - 1], nothing is stored"""
    return EmiQuoteResponse(
        **loan_service.quote(request_body.principal_cents, request_body.interest_rate, request_body.tenure_months)
    )


@router.post("", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
def apply(request_body: LoanApplicationRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    loan = loan_service.apply_for_loan(db, user, LoanApplication(**request_body.model_dump()))
    return LoanResponse.model_validate(loan)


@router.get("", response_model=LoanListResponse)
def list_my_loans(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    loans = loan_service.list_user_loans(db, user)
    return LoanListResponse(loans=[LoanResponse.model_validate(loan) for loan in loans])


@router.get("/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return LoanResponse.model_validate(loan_service.get_loan_for(db, user, loan_id))


@router.get("/{loan_id}/schedule", response_model=LoanScheduleResponse)
def get_schedule(loan_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Month-by-month split of each EMI into interest and principal"""
    loan = loan_service.get_loan_for(db, user, loan_id)
    return LoanScheduleResponse(
        loan_id=loan.id,
        loan_number=loan.loan_number,
        emi_cents=loan.emi_cents,
        schedule=[ScheduleEntrySchema.model_validate(entry) for entry in loan_service.loan_schedule(loan)],
    )


@router.post("/{loan_id}/approve", response_model=LoanDisbursementResponse)
def approve(
    loan_id: uuid.UUID,
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Approve a requested loan and disburse the principal (admin only)"""
    loan, disbursement = loan_service.approve_loan(db, admin, loan_id, context)
    return LoanDisbursementResponse(
        loan=LoanResponse.model_validate(loan),
        transaction=TransactionResponse.model_validate(disbursement),
    )


@router.post("/{loan_id}/reject", response_model=LoanResponse)
def reject(
    loan_id: uuid.UUID,
    request_body: RejectLoanRequest,
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    loan = loan_service.reject_loan(db, admin, loan_id, request_body.reason, context)
    return LoanResponse.model_validate(loan)


@router.post("/{loan_id}/pay-emi", response_model=EmiPaymentResponse)
def pay_emi(loan_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Pay the currently due installment from the loan's account"""
    loan, txn = loan_service.pay_emi(db, user, loan_id)
    return EmiPaymentResponse(
        loan=LoanResponse.model_validate(loan),
        transaction=TransactionResponse.model_validate(txn),
    )
