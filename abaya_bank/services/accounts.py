"""Account lifecycle - opening, lookup and admin status changes"""

import logging
import uuid
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from abaya_bank.config import settings
from abaya_bank.domain.exceptions import InvalidStateError, NotFoundError, ValidationError
from abaya_bank.domain.ledger import generate_account_number
from abaya_bank.domain.models import (
    ACCOUNT_ACTIVE,
    ACCOUNT_CLOSED,
    ACCOUNT_FROZEN,
    ACCOUNT_STATUSES,
    ACCOUNT_TYPES,
    DEPOSIT,
)
from abaya_bank.infrastructure.database.models import Account, User
from abaya_bank.infrastructure.database.repositories import AccountRepository
from abaya_bank.infrastructure.database.session import atomic
from abaya_bank.infrastructure.observability.logging import log_ledger_event
from abaya_bank.infrastructure.observability.metrics import record_ledger_operation, record_money_moved
from abaya_bank.services.access import ensure_admin, ensure_owner_or_admin
from abaya_bank.services.audit import RequestContext, record_audit
from abaya_bank.services.ledger import post_entry
from abaya_bank.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def open_account(
    db: Session,
    user: User,
    account_type: str,
    initial_deposit_cents: int = 0,
    interest_rate: Optional[float] = None,
    maturity_date: Optional[date] = None,
) -> Account:
    """
    Open an account for the user.

    A non-zero opening deposit is booked as the first ledger entry so the
    account reconciles from day one.

    Raises:
        ValidationError: Unknown type, negative deposit or incomplete FDR terms
    """
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(f"Account type must be one of: {', '.join(ACCOUNT_TYPES)}")
    if initial_deposit_cents < 0:
        raise ValidationError("Initial deposit cannot be negative")

    if account_type == "fdr":
        if interest_rate is None or interest_rate <= 0:
            raise ValidationError("FDR accounts require a positive interest rate")
        if maturity_date is None:
            raise ValidationError("FDR accounts require a maturity date")
        if maturity_date <= utcnow().date():
            raise ValidationError("Maturity date must be in the future")
    else:
        interest_rate, maturity_date = 0.0, None

    with atomic(db):
        account = AccountRepository(db).add(
            Account(
                account_number=generate_account_number(settings.account_number_prefix),
                user_id=user.id,
                account_type=account_type,
                balance_cents=0,
                status=ACCOUNT_ACTIVE,
                currency=settings.currency,
                interest_rate=interest_rate,
                maturity_date=maturity_date,
                initial_deposit_cents=initial_deposit_cents,
                opened_at=utcnow(),
            )
        )
        opening = None
        if initial_deposit_cents > 0:
            opening = post_entry(db, account, DEPOSIT, initial_deposit_cents, "Initial deposit")

    logger.info(
        "Account opened",
        extra={"account_number": account.account_number, "account_type": account_type, "user_id": str(user.id)},
    )
    if opening is not None:
        record_ledger_operation("deposit", committed=True)
        record_money_moved(DEPOSIT, initial_deposit_cents)
        log_ledger_event(
            "Initial deposit",
            account.account_number,
            DEPOSIT,
            initial_deposit_cents,
            opening.balance_after_cents,
            opening.reference,
        )
    return account


def list_user_accounts(db: Session, user: User) -> List[Account]:
    return AccountRepository(db).list_for_user(user.id)


def get_account_for(db: Session, user: User, account_id: uuid.UUID) -> Account:
    """Account visible to its owner or an admin"""
    account = AccountRepository(db).get(account_id)
    if account is None:
        raise NotFoundError("Account not found")
    ensure_owner_or_admin(user, account)
    return account


def account_balance(db: Session, user: User, account_id: uuid.UUID) -> dict:
    account = get_account_for(db, user, account_id)
    return {
        "account_id": account.id,
        "account_number": account.account_number,
        "balance_cents": account.balance_cents,
        "currency": account.currency,
        "status": account.status,
    }


def _change_status(
    db: Session,
    admin: User,
    account_id: uuid.UUID,
    new_status: str,
    action: str,
    reason: Optional[str],
    context: Optional[RequestContext],
) -> Account:
    with atomic(db):
        account = AccountRepository(db).get_for_update(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        if account.status == ACCOUNT_CLOSED:
            raise InvalidStateError("Closed accounts cannot change status")
        if new_status == ACCOUNT_CLOSED and account.balance_cents != 0:
            raise InvalidStateError("Account balance must be zero before closing")
        previous_status = account.status
        account.status = new_status

    logger.info(
        "Account status changed",
        extra={
            "account_number": account.account_number,
            "previous_status": previous_status,
            "new_status": new_status,
            "admin_id": str(admin.id),
        },
    )
    record_audit(
        db,
        actor_id=admin.id,
        action=action,
        target_type="account",
        target_id=account.id,
        reason=reason,
        previous_state={"status": previous_status},
        new_state={"status": new_status},
        details={"account_number": account.account_number},
        context=context,
    )
    return account


def set_account_status(
    db: Session,
    admin: User,
    account_id: uuid.UUID,
    status: str,
    reason: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> Account:
    """Admin override of an account's status; a closed account stays closed"""
    ensure_admin(admin)
    if status not in ACCOUNT_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ACCOUNT_STATUSES)}")

    action = {
        ACCOUNT_FROZEN: "account_frozen",
        ACCOUNT_CLOSED: "account_closed",
    }.get(status, "account_status_changed")
    return _change_status(db, admin, account_id, status, action, reason, context)


def toggle_freeze(
    db: Session,
    admin: User,
    account_id: uuid.UUID,
    reason: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> Account:
    """Freeze an active account or unfreeze a frozen one"""
    ensure_admin(admin)
    account = AccountRepository(db).get(account_id)
    if account is None:
        raise NotFoundError("Account not found")
    if account.status == ACCOUNT_CLOSED:
        raise InvalidStateError("Closed accounts cannot change status")

    if account.status == ACCOUNT_FROZEN:
        return _change_status(db, admin, account_id, ACCOUNT_ACTIVE, "account_unfrozen", reason, context)
    return _change_status(db, admin, account_id, ACCOUNT_FROZEN, "account_frozen", reason, context)


def list_accounts(
    db: Session,
    status: Optional[str] = None,
    account_type: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Account], int]:
    return AccountRepository(db).list_accounts(status, account_type, page, limit)
