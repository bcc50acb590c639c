"""
Loan origination and EMI collection.

Loans move requested -> active -> paid, or requested -> rejected. A missed
EMI marks an active loan overdue; the next successful deduction brings it
back to active.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from abaya_bank.config import settings
from abaya_bank.domain.amortization import (
    EMI_FORMULA,
    calculate_loan_terms,
    generate_amortization_schedule,
)
from abaya_bank.domain.exceptions import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from abaya_bank.domain.ledger import generate_loan_number
from abaya_bank.domain.models import (
    ACCOUNT_ACTIVE,
    EMI_DEDUCTION,
    EMPLOYMENT_STATUSES,
    LOAN_ACTIVE,
    LOAN_DISBURSEMENT,
    LOAN_OVERDUE,
    LOAN_PAID,
    LOAN_REJECTED,
    LOAN_REPAYING,
    LOAN_REQUESTED,
    LOAN_TYPES,
    LoanApplication,
    ScheduleEntry,
)
from abaya_bank.infrastructure.database.models import Loan, Transaction, User
from abaya_bank.infrastructure.database.repositories import AccountRepository, LoanRepository
from abaya_bank.infrastructure.database.session import atomic
from abaya_bank.infrastructure.observability.logging import log_ledger_event
from abaya_bank.infrastructure.observability.metrics import (
    emi_deduction_counter,
    loan_decision_counter,
    record_ledger_operation,
    record_money_moved,
)
from abaya_bank.services.access import ensure_admin, ensure_owner, ensure_owner_or_admin
from abaya_bank.services.audit import RequestContext, record_audit
from abaya_bank.services.ledger import post_entry
from abaya_bank.utils.date_utils import add_months, first_of_next_month, utcnow

logger = logging.getLogger(__name__)


def quote(principal_cents: int, interest_rate: float, tenure_months: int) -> dict:
    """EMI calculator: repayment terms for a prospective loan, nothing persisted"""
    terms = calculate_loan_terms(principal_cents, interest_rate, tenure_months)
    return {
        "principal_cents": terms.principal_cents,
        "interest_rate": terms.interest_rate,
        "tenure_months": terms.tenure_months,
        "emi_cents": terms.emi_cents,
        "total_payable_cents": terms.total_payable_cents,
        "total_interest_cents": terms.total_interest_cents,
        "formula": EMI_FORMULA,
        "explanation": {
            "P": "Principal loan amount",
            "R": "Monthly interest rate (annual rate / 12 / 100)",
            "N": "Loan tenure in months",
        },
    }


def validate_application(application: LoanApplication) -> None:
    """
    Check an application against the lending limits in settings.

    Raises:
        ValidationError: First rule the application breaks
    """
    if application.loan_type not in LOAN_TYPES:
        raise ValidationError(f"Loan type must be one of: {', '.join(LOAN_TYPES)}")
    if application.employment_status not in EMPLOYMENT_STATUSES:
        raise ValidationError(f"Employment status must be one of: {', '.join(EMPLOYMENT_STATUSES)}")
    if application.principal_cents < settings.min_loan_principal_cents:
        raise ValidationError(f"Loan amount must be at least {settings.min_loan_principal_cents} cents")
    if not 0 <= application.interest_rate <= settings.max_loan_interest_rate:
        raise ValidationError(f"Interest rate must be between 0 and {settings.max_loan_interest_rate:g}")
    if not settings.min_loan_tenure_months <= application.tenure_months <= settings.max_loan_tenure_months:
        raise ValidationError(
            f"Tenure must be between {settings.min_loan_tenure_months} "
            f"and {settings.max_loan_tenure_months} months"
        )
    if len((application.purpose or "").strip()) < 10:
        raise ValidationError("Purpose must be at least 10 characters")
    if application.monthly_income_cents < 0:
        raise ValidationError("Monthly income cannot be negative")


def apply_for_loan(db: Session, user: User, application: LoanApplication) -> Loan:
    """Create a requested loan against one of the user's active accounts"""
    validate_application(application)

    account = AccountRepository(db).get(application.account_id)
    if account is None:
        raise NotFoundError("Account not found")
    ensure_owner(user, account)
    if account.status != ACCOUNT_ACTIVE:
        raise InvalidStateError("Account is not active")

    terms = calculate_loan_terms(application.principal_cents, application.interest_rate, application.tenure_months)

    with atomic(db):
        loan = LoanRepository(db).add(
            Loan(
                loan_number=generate_loan_number(),
                user_id=user.id,
                account_id=account.id,
                loan_type=application.loan_type,
                principal_cents=terms.principal_cents,
                interest_rate=terms.interest_rate,
                tenure_months=terms.tenure_months,
                emi_cents=terms.emi_cents,
                total_payable_cents=terms.total_payable_cents,
                outstanding_cents=terms.total_payable_cents,
                paid_cents=0,
                remaining_emis=terms.tenure_months,
                status=LOAN_REQUESTED,
                purpose=application.purpose.strip(),
                employment_status=application.employment_status,
                monthly_income_cents=application.monthly_income_cents,
            )
        )

    logger.info(
        "Loan application created",
        extra={"loan_number": loan.loan_number, "user_id": str(user.id), "principal_cents": loan.principal_cents},
    )
    return loan


def approve_loan(
    db: Session,
    admin: User,
    loan_id: uuid.UUID,
    context: Optional[RequestContext] = None,
) -> Tuple[Loan, Transaction]:
    """
    Activate a requested loan and disburse its principal.

    The first EMI falls due on the 1st of the month after approval.
    """
    ensure_admin(admin)

    with atomic(db):
        loan = LoanRepository(db).get_for_update(loan_id)
        if loan is None:
            raise NotFoundError("Loan not found")
        if loan.status != LOAN_REQUESTED:
            raise InvalidStateError("Loan is not in requested status")

        account = AccountRepository(db).get_for_update(loan.account_id)
        if account is None or account.status != ACCOUNT_ACTIVE:
            raise InvalidStateError("Account is not available for loan disbursement")

        now = utcnow()
        loan.status = LOAN_ACTIVE
        loan.approved_by = admin.id
        loan.approved_at = now
        loan.disbursed_at = now
        loan.emi_start_date = first_of_next_month(now.date())
        loan.next_emi_date = loan.emi_start_date

        disbursement = post_entry(
            db,
            account,
            LOAN_DISBURSEMENT,
            loan.principal_cents,
            f"Loan disbursement - {loan.loan_number}",
            loan_id=loan.id,
        )

    loan_decision_counter.labels(outcome="approved").inc()
    record_ledger_operation("loan_disbursement", committed=True)
    record_money_moved(LOAN_DISBURSEMENT, loan.principal_cents)
    log_ledger_event(
        "Loan disbursed",
        account.account_number,
        LOAN_DISBURSEMENT,
        loan.principal_cents,
        disbursement.balance_after_cents,
        disbursement.reference,
    )
    record_audit(
        db,
        actor_id=admin.id,
        action="loan_approved",
        target_type="loan",
        target_id=loan.id,
        previous_state={"status": LOAN_REQUESTED},
        new_state={"status": LOAN_ACTIVE, "next_emi_date": loan.next_emi_date.isoformat()},
        details={"loan_number": loan.loan_number, "principal_cents": loan.principal_cents},
        context=context,
    )
    return loan, disbursement


def reject_loan(
    db: Session,
    admin: User,
    loan_id: uuid.UUID,
    reason: str,
    context: Optional[RequestContext] = None,
) -> Loan:
    ensure_admin(admin)
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required")

    with atomic(db):
        loan = LoanRepository(db).get_for_update(loan_id)
        if loan is None:
            raise NotFoundError("Loan not found")
        if loan.status != LOAN_REQUESTED:
            raise InvalidStateError("Loan is not in requested status")

        loan.status = LOAN_REJECTED
        loan.approved_by = admin.id
        loan.approved_at = utcnow()
        loan.rejection_reason = reason

    loan_decision_counter.labels(outcome="rejected").inc()
    logger.info("Loan rejected", extra={"loan_number": loan.loan_number, "admin_id": str(admin.id)})
    record_audit(
        db,
        actor_id=admin.id,
        action="loan_rejected",
        target_type="loan",
        target_id=loan.id,
        reason=reason,
        previous_state={"status": LOAN_REQUESTED},
        new_state={"status": LOAN_REJECTED},
        details={"loan_number": loan.loan_number},
        context=context,
    )
    return loan


def deduct_emi(db: Session, loan_id: uuid.UUID, today: Optional[date] = None) -> Tuple[Loan, Transaction]:
    """
    Collect one due installment from the loan's account.

    When the account cannot cover the EMI the loan is marked overdue and that
    change is committed before InsufficientFundsError is raised.
    """
    today = today or utcnow().date()
    short = False

    with atomic(db):
        loan = LoanRepository(db).get_for_update(loan_id)
        if loan is None:
            raise NotFoundError("Loan not found")
        if loan.status not in LOAN_REPAYING:
            raise InvalidStateError("Loan is not active")
        if loan.next_emi_date is None or loan.next_emi_date > today:
            raise InvalidStateError("EMI is not due yet")

        account = AccountRepository(db).get_for_update(loan.account_id)
        if account is None or account.status != ACCOUNT_ACTIVE:
            raise InvalidStateError("Account is not available")

        if account.balance_cents < loan.emi_cents:
            loan.status = LOAN_OVERDUE
            short = True
        else:
            txn = post_entry(
                db,
                account,
                EMI_DEDUCTION,
                loan.emi_cents,
                f"EMI deduction - {loan.loan_number}",
                loan_id=loan.id,
            )
            loan.paid_cents += loan.emi_cents
            loan.outstanding_cents -= loan.emi_cents
            loan.remaining_emis -= 1
            loan.last_emi_date = today
            if loan.remaining_emis == 0:
                loan.status = LOAN_PAID
                loan.next_emi_date = None
            else:
                loan.status = LOAN_ACTIVE
                loan.next_emi_date = add_months(loan.emi_start_date, loan.tenure_months - loan.remaining_emis)

    if short:
        emi_deduction_counter.labels(outcome="overdue").inc()
        record_ledger_operation("emi_deduction", committed=False)
        logger.warning(
            "Insufficient balance for EMI deduction",
            extra={"loan_number": loan.loan_number, "emi_cents": loan.emi_cents},
        )
        raise InsufficientFundsError("Insufficient balance for EMI deduction")

    emi_deduction_counter.labels(outcome="paid").inc()
    record_ledger_operation("emi_deduction", committed=True)
    record_money_moved(EMI_DEDUCTION, txn.amount_cents)
    log_ledger_event(
        "EMI deducted",
        account.account_number,
        EMI_DEDUCTION,
        txn.amount_cents,
        txn.balance_after_cents,
        txn.reference,
    )
    return loan, txn


def pay_emi(db: Session, user: User, loan_id: uuid.UUID, today: Optional[date] = None) -> Tuple[Loan, Transaction]:
    """Customer-initiated payment of the currently due installment"""
    loan = LoanRepository(db).get(loan_id)
    if loan is None:
        raise NotFoundError("Loan not found")
    ensure_owner(user, loan)
    return deduct_emi(db, loan_id, today)


def due_loans(db: Session, today: Optional[date] = None) -> List[Loan]:
    return LoanRepository(db).due_on_or_before(today or utcnow().date())


def loan_schedule(loan: Loan) -> List[ScheduleEntry]:
    """Amortization schedule; requested loans are projected from next month"""
    first_due = loan.emi_start_date or first_of_next_month(utcnow().date())
    return generate_amortization_schedule(loan.principal_cents, loan.interest_rate, loan.tenure_months, first_due)


def list_user_loans(db: Session, user: User) -> List[Loan]:
    return LoanRepository(db).list_for_user(user.id)


def get_loan_for(db: Session, user: User, loan_id: uuid.UUID) -> Loan:
    loan = LoanRepository(db).get(loan_id)
    if loan is None:
        raise NotFoundError("Loan not found")
    ensure_owner_or_admin(user, loan)
    return loan


def list_loans(
    db: Session,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Loan], int]:
    return LoanRepository(db).list_loans(status, page, limit)
