"""Unit tests for account lifecycle and admin status changes"""

import pytest
from datetime import timedelta

from abaya_bank.domain.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from abaya_bank.infrastructure.database.models import AuditLog
from abaya_bank.services import accounts
from abaya_bank.services.ledger import withdraw
from abaya_bank.utils.date_utils import utcnow


def test_open_savings_account(db, customer):
    """Test opening a savings account records the opening deposit"""
    account = accounts.open_account(db, customer, "savings", 25000)

    assert account.account_number.startswith("AB")
    assert len(account.account_number) == 14
    assert account.balance_cents == 25000
    assert account.initial_deposit_cents == 25000
    assert account.status == "active"
    assert account.currency == "USD"


def test_open_account_without_deposit_has_no_entries(db, customer):
    """Test a zero opening deposit writes no ledger entry"""
    account = accounts.open_account(db, customer, "student")

    assert account.balance_cents == 0
    assert accounts.account_balance(db, customer, account.id)["balance_cents"] == 0


def test_fdr_requires_rate_and_future_maturity(db, customer):
    """Test FDR accounts need a positive rate and a future maturity date"""
    tomorrow = utcnow().date() + timedelta(days=1)

    with pytest.raises(ValidationError, match="interest rate"):
        accounts.open_account(db, customer, "fdr", 100000, maturity_date=tomorrow)
    with pytest.raises(ValidationError, match="future"):
        accounts.open_account(db, customer, "fdr", 100000, interest_rate=7.5, maturity_date=utcnow().date())

    account = accounts.open_account(db, customer, "fdr", 100000, interest_rate=7.5, maturity_date=tomorrow)
    assert account.interest_rate == 7.5
    assert account.maturity_date == tomorrow


def test_unknown_account_type_rejected(db, customer):
    """Test unsupported account types are rejected"""
    with pytest.raises(ValidationError):
        accounts.open_account(db, customer, "checking", 0)


def test_account_visibility(db, admin, customer, make_user, make_account):
    """Test owners and admins can view an account, strangers cannot"""
    account = make_account(customer)

    assert accounts.get_account_for(db, customer, account.id).id == account.id
    assert accounts.get_account_for(db, admin, account.id).id == account.id
    with pytest.raises(PermissionDeniedError):
        accounts.get_account_for(db, make_user(), account.id)


def test_toggle_freeze_is_audited(db, admin, customer, make_account):
    """Test freeze and unfreeze each write an audit entry"""
    account = make_account(customer)

    account = accounts.toggle_freeze(db, admin, account.id, "Suspicious activity")
    assert account.status == "frozen"

    account = accounts.toggle_freeze(db, admin, account.id)
    assert account.status == "active"

    actions = [log.action for log in db.query(AuditLog).order_by(AuditLog.created_at).all()]
    assert actions == ["account_frozen", "account_unfrozen"]


def test_customer_cannot_change_status(db, customer, make_account):
    """Test only admins change account status"""
    account = make_account(customer)
    with pytest.raises(PermissionDeniedError):
        accounts.set_account_status(db, customer, account.id, "frozen")


def test_close_requires_zero_balance(db, admin, customer, make_account):
    """Test an account with money in it cannot be closed"""
    account = make_account(customer, initial_deposit_cents=500)

    with pytest.raises(InvalidStateError, match="zero"):
        accounts.set_account_status(db, admin, account.id, "closed", "Customer request")

    withdraw(db, customer, account.id, 500)
    account = accounts.set_account_status(db, admin, account.id, "closed", "Customer request")
    assert account.status == "closed"

    audit = db.query(AuditLog).filter(AuditLog.action == "account_closed").one()
    assert audit.previous_state == {"status": "active"}
    assert audit.new_state == {"status": "closed"}


def test_closed_account_cannot_be_reopened(db, admin, customer, make_account):
    """Test closed is a terminal account status"""
    account = make_account(customer, initial_deposit_cents=0)
    accounts.set_account_status(db, admin, account.id, "closed")

    with pytest.raises(InvalidStateError):
        accounts.set_account_status(db, admin, account.id, "active")
    with pytest.raises(InvalidStateError):
        accounts.toggle_freeze(db, admin, account.id)


def test_list_accounts_filters(db, customer, make_account):
    """Test admin account listing filters by status and type"""
    make_account(customer, account_type="savings")
    make_account(customer, account_type="student")

    students, total = accounts.list_accounts(db, account_type="student")
    assert total == 1
    assert students[0].account_type == "student"
