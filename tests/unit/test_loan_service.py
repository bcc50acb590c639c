"""Unit tests for loan origination and EMI collection"""

import pytest
from datetime import date

from abaya_bank.domain.exceptions import (
    InsufficientFundsError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from abaya_bank.domain.models import LoanApplication
from abaya_bank.infrastructure.database.models import AuditLog, Transaction
from abaya_bank.services import ledger, loans
from abaya_bank.utils.date_utils import first_of_next_month, utcnow

FIRST_DUE = date(2026, 1, 1)


def _application(account, **overrides) -> LoanApplication:
    fields = dict(
        account_id=account.id,
        loan_type="personal",
        principal_cents=500000,
        interest_rate=12.0,
        tenure_months=12,
        purpose="Kitchen renovation and new appliances",
        employment_status="employed",
        monthly_income_cents=400000,
    )
    fields.update(overrides)
    return LoanApplication(**fields)


def test_quote_includes_formula():
    """Test the EMI quote carries the formula and its terms"""
    result = loans.quote(100000, 12.0, 12)

    assert result["emi_cents"] == 8885
    assert result["total_payable_cents"] == 106620
    assert "EMI" in result["formula"]


def test_apply_for_loan_creates_requested_loan(db, customer, make_account):
    """Test an application creates a requested loan with full outstanding"""
    account = make_account(customer)

    loan = loans.apply_for_loan(db, customer, _application(account))

    assert loan.status == "requested"
    assert loan.loan_number.startswith("LOAN")
    assert loan.remaining_emis == 12
    assert loan.outstanding_cents == loan.total_payable_cents == loan.emi_cents * 12
    assert loan.paid_cents == 0
    assert loan.next_emi_date is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"principal_cents": 99999},
        {"interest_rate": 30.5},
        {"tenure_months": 5},
        {"tenure_months": 361},
        {"purpose": "short"},
        {"loan_type": "payday"},
        {"employment_status": "retired"},
    ],
)
def test_apply_for_loan_validates_limits(db, customer, make_account, overrides):
    """Test applications outside the lending limits are rejected"""
    account = make_account(customer)
    with pytest.raises(ValidationError):
        loans.apply_for_loan(db, customer, _application(account, **overrides))


def test_apply_against_foreign_account_denied(db, customer, make_user, make_account):
    """Test a loan cannot be requested against someone else's account"""
    account = make_account(make_user())
    with pytest.raises(PermissionDeniedError):
        loans.apply_for_loan(db, customer, _application(account))


def test_approve_loan_disburses_principal(db, admin, customer, make_account, ledger_sum):
    """Test approval activates the loan and credits the principal"""
    account = make_account(customer, initial_deposit_cents=10000)
    loan = loans.apply_for_loan(db, customer, _application(account))

    loan, disbursement = loans.approve_loan(db, admin, loan.id)

    db.refresh(account)
    assert loan.status == "active"
    assert loan.approved_by == admin.id
    assert loan.emi_start_date == first_of_next_month(utcnow().date())
    assert loan.next_emi_date == loan.emi_start_date
    assert account.balance_cents == 510000
    assert disbursement.transaction_type == "loan_disbursement"
    assert disbursement.loan_id == loan.id
    assert ledger_sum(account) == account.balance_cents
    assert db.query(AuditLog).filter(AuditLog.action == "loan_approved").count() == 1

    with pytest.raises(InvalidStateError, match="requested"):
        loans.approve_loan(db, admin, loan.id)


def test_customer_cannot_approve(db, customer, make_account):
    """Test only admins approve loans"""
    account = make_account(customer)
    loan = loans.apply_for_loan(db, customer, _application(account))

    with pytest.raises(PermissionDeniedError):
        loans.approve_loan(db, customer, loan.id)


def test_reject_loan(db, admin, customer, make_account):
    """Test rejection needs a reason and is final"""
    account = make_account(customer)
    loan = loans.apply_for_loan(db, customer, _application(account))

    with pytest.raises(ValidationError):
        loans.reject_loan(db, admin, loan.id, "")

    loan = loans.reject_loan(db, admin, loan.id, "Income too low")
    assert loan.status == "rejected"
    assert loan.rejection_reason == "Income too low"

    with pytest.raises(InvalidStateError):
        loans.approve_loan(db, admin, loan.id)


def test_deduct_emi_not_due_yet(db, customer, make_account, make_active_loan):
    """Test an EMI cannot be collected before its due date"""
    loan = make_active_loan(make_account(customer), first_due=FIRST_DUE)

    with pytest.raises(InvalidStateError, match="not due"):
        loans.deduct_emi(db, loan.id, today=date(2025, 12, 31))


def test_deduct_emi_updates_counters(db, customer, make_account, make_active_loan, ledger_sum):
    """Test a deduction moves paid, outstanding and the next due date"""
    account = make_account(customer, initial_deposit_cents=0)
    loan = make_active_loan(account, first_due=FIRST_DUE)

    loan, txn = loans.deduct_emi(db, loan.id, today=FIRST_DUE)

    assert txn.transaction_type == "emi_deduction"
    assert txn.amount_cents == 10000
    assert loan.paid_cents == 10000
    assert loan.outstanding_cents == 110000
    assert loan.remaining_emis == 11
    assert loan.last_emi_date == FIRST_DUE
    assert loan.next_emi_date == date(2026, 2, 1)

    db.refresh(account)
    assert account.balance_cents == 110000
    assert ledger_sum(account) == account.balance_cents


def test_full_repayment_reaches_exactly_zero(db, customer, make_account, make_active_loan):
    """Test the final EMI leaves nothing outstanding and marks the loan paid"""
    account = make_account(customer, initial_deposit_cents=50000)
    loan = make_active_loan(account, principal_cents=100000, interest_rate=12.0, tenure_months=6, first_due=FIRST_DUE)

    for month in range(6):
        loan, _ = loans.deduct_emi(db, loan.id, today=date(2026, 1 + month, 1))

    assert loan.status == "paid"
    assert loan.outstanding_cents == 0
    assert loan.remaining_emis == 0
    assert loan.next_emi_date is None
    assert loan.paid_cents == loan.total_payable_cents

    with pytest.raises(InvalidStateError):
        loans.deduct_emi(db, loan.id, today=date(2026, 12, 1))


def test_insufficient_balance_marks_loan_overdue(db, customer, make_account, make_active_loan):
    """Test a short account marks the loan overdue until it is paid"""
    account = make_account(customer, initial_deposit_cents=0)
    loan = make_active_loan(account, first_due=FIRST_DUE)
    ledger.withdraw(db, customer, account.id, 115000)

    with pytest.raises(InsufficientFundsError, match="EMI"):
        loans.deduct_emi(db, loan.id, today=FIRST_DUE)

    db.refresh(loan)
    assert loan.status == "overdue"
    assert loan.remaining_emis == 12
    assert loan in loans.due_loans(db, today=FIRST_DUE)

    # A later successful payment brings the loan back to active
    ledger.deposit(db, customer, account.id, 10000)
    loan, _ = loans.deduct_emi(db, loan.id, today=date(2026, 1, 15))
    assert loan.status == "active"
    assert loan.remaining_emis == 11


def test_reversing_emi_restores_loan(db, admin, customer, make_account, make_active_loan):
    """Test reversing an EMI puts the installment back on the loan"""
    account = make_account(customer, initial_deposit_cents=0)
    loan = make_active_loan(account, first_due=FIRST_DUE)
    loans.deduct_emi(db, loan.id, today=FIRST_DUE)
    loan, txn = loans.deduct_emi(db, loan.id, today=date(2026, 2, 1))

    ledger.reverse_transaction(db, admin, txn.id, "Customer disputed debit")

    db.refresh(loan)
    db.refresh(account)
    assert loan.paid_cents == 10000
    assert loan.outstanding_cents == 110000
    assert loan.remaining_emis == 11
    assert loan.next_emi_date == date(2026, 2, 1)
    assert account.balance_cents == 110000


def test_reversing_final_emi_reactivates_paid_loan(db, admin, customer, make_account, make_active_loan):
    """Test reversing the last EMI reopens a paid loan"""
    account = make_account(customer, initial_deposit_cents=0)
    loan = make_active_loan(account, principal_cents=60000, tenure_months=6, first_due=FIRST_DUE)
    for month in range(6):
        loan, txn = loans.deduct_emi(db, loan.id, today=date(2026, 1 + month, 1))
    assert loan.status == "paid"

    ledger.reverse_transaction(db, admin, txn.id, "Bank error")

    db.refresh(loan)
    assert loan.status == "active"
    assert loan.remaining_emis == 1
    assert loan.next_emi_date == date(2026, 6, 1)


def test_loan_disbursement_not_reversible(db, admin, customer, make_account, make_active_loan):
    """Test loan disbursements cannot be reversed"""
    account = make_account(customer)
    loan = make_active_loan(account)
    disbursement = db.query(Transaction).filter(Transaction.loan_id == loan.id).one()

    with pytest.raises(InvalidStateError):
        ledger.reverse_transaction(db, admin, disbursement.id, "Undo")


def test_due_loans_excludes_future_and_settled(db, customer, make_account, make_active_loan):
    """Test only loans due by the run date are picked up"""
    account = make_account(customer)
    due = make_active_loan(account, first_due=FIRST_DUE)
    make_active_loan(account, first_due=date(2026, 3, 1))

    result = loans.due_loans(db, today=date(2026, 1, 1))
    assert [loan.id for loan in result] == [due.id]


def test_pay_emi_owner_only(db, customer, make_user, make_account, make_active_loan):
    """Test only the borrower can pay an EMI early"""
    loan = make_active_loan(make_account(customer), first_due=FIRST_DUE)

    with pytest.raises(PermissionDeniedError):
        loans.pay_emi(db, make_user(), loan.id, today=FIRST_DUE)

    loan, txn = loans.pay_emi(db, customer, loan.id, today=FIRST_DUE)
    assert loan.remaining_emis == 11


def test_loan_schedule_matches_terms(db, customer, make_account, make_active_loan):
    """Test the schedule repays the principal in EMI-sized rows"""
    loan = make_active_loan(make_account(customer), principal_cents=100000, interest_rate=12.0, first_due=FIRST_DUE)

    schedule = loans.loan_schedule(loan)

    assert len(schedule) == 12
    assert schedule[0].due_date == FIRST_DUE
    assert schedule[0].payment_cents == loan.emi_cents
    assert sum(entry.principal_cents for entry in schedule) == 100000
