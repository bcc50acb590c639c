"""
Transaction engine - every balance change in the bank goes through here.

Each public operation runs as a single database transaction: balances,
ledger entries and loan counters are written together or not at all.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from abaya_bank.domain.exceptions import (
    DomainException,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from abaya_bank.domain.ledger import (
    direction_for,
    ensure_can_transact,
    ensure_positive_amount,
    ensure_sufficient_balance,
    generate_transaction_reference,
    opposite,
    signed_amount,
)
from abaya_bank.domain.models import (
    ACCOUNT_ACTIVE,
    ACCOUNT_CLOSED,
    DEBIT,
    DEPOSIT,
    EMI_DEDUCTION,
    LOAN_ACTIVE,
    LOAN_DISBURSEMENT,
    LOAN_PAID,
    REVERSAL,
    TRANSFER_IN,
    TRANSFER_OUT,
    TXN_REVERSED,
    WITHDRAWAL,
    Reconciliation,
    StatementSummary,
)
from abaya_bank.infrastructure.database.models import Account, Transaction, User
from abaya_bank.infrastructure.database.repositories import (
    AccountRepository,
    LoanRepository,
    TransactionFilters,
    TransactionRepository,
)
from abaya_bank.infrastructure.database.session import atomic
from abaya_bank.infrastructure.observability.logging import log_ledger_event
from abaya_bank.infrastructure.observability.metrics import record_ledger_operation, record_money_moved
from abaya_bank.services.access import ensure_owner, is_admin
from abaya_bank.services.audit import RequestContext, record_audit
from abaya_bank.utils.date_utils import add_months, month_bounds, utcnow

logger = logging.getLogger(__name__)


def post_entry(
    db: Session,
    account: Account,
    transaction_type: str,
    amount_cents: int,
    description: str,
    direction: Optional[str] = None,
    **links,
) -> Transaction:
    """
    Apply one signed movement to a locked account and append its ledger entry.

    Callers own the surrounding transaction and have already run the
    business checks; this only keeps balance and ledger in step.
    """
    direction = direction or direction_for(transaction_type)
    if direction == DEBIT:
        ensure_sufficient_balance(account, amount_cents)

    account.balance_cents += signed_amount(direction, amount_cents)
    account.last_transaction_at = utcnow()

    return TransactionRepository(db).append(
        Transaction(
            reference=generate_transaction_reference(),
            account_id=account.id,
            user_id=account.user_id,
            transaction_type=transaction_type,
            direction=direction,
            amount_cents=amount_cents,
            balance_after_cents=account.balance_cents,
            description=description,
            **links,
        )
    )


def _lock_owned_account(db: Session, user: User, account_id: uuid.UUID) -> Account:
    account = AccountRepository(db).get_for_update(account_id)
    if account is None:
        raise NotFoundError("Account not found")
    ensure_owner(user, account)
    ensure_can_transact(account)
    return account


def _committed(operation: str, account: Account, txn: Transaction) -> None:
    record_ledger_operation(operation, committed=True)
    record_money_moved(txn.transaction_type, txn.amount_cents)
    log_ledger_event(
        f"{operation.capitalize()} successful",
        account.account_number,
        txn.transaction_type,
        txn.amount_cents,
        txn.balance_after_cents,
        txn.reference,
    )


def deposit(
    db: Session,
    user: User,
    account_id: uuid.UUID,
    amount_cents: int,
    description: str = "",
) -> Tuple[Transaction, Account]:
    """Credit an owned, active account"""
    try:
        ensure_positive_amount(amount_cents)
        with atomic(db):
            account = _lock_owned_account(db, user, account_id)
            txn = post_entry(db, account, DEPOSIT, amount_cents, description or "Deposit")
    except DomainException:
        record_ledger_operation("deposit", committed=False)
        raise

    _committed("deposit", account, txn)
    return txn, account


def withdraw(
    db: Session,
    user: User,
    account_id: uuid.UUID,
    amount_cents: int,
    description: str = "",
) -> Tuple[Transaction, Account]:
    """Debit an owned, active account that can cover the amount"""
    try:
        ensure_positive_amount(amount_cents)
        with atomic(db):
            account = _lock_owned_account(db, user, account_id)
            txn = post_entry(db, account, WITHDRAWAL, amount_cents, description or "Withdrawal")
    except DomainException:
        record_ledger_operation("withdrawal", committed=False)
        raise

    _committed("withdrawal", account, txn)
    return txn, account


def transfer(
    db: Session,
    user: User,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount_cents: int,
    description: str = "",
) -> Tuple[List[Transaction], Account, Account]:
    """
    Move money between two accounts in one database transaction.

    Produces a transfer_out entry on the source and a transfer_in entry on
    the destination, both carrying the same transfer_id.
    """
    try:
        ensure_positive_amount(amount_cents)
        if from_account_id == to_account_id:
            raise ValidationError("Cannot transfer to the same account")

        with atomic(db):
            locked = AccountRepository(db).lock_many([from_account_id, to_account_id])
            source = locked.get(from_account_id)
            destination = locked.get(to_account_id)
            if source is None or destination is None:
                raise NotFoundError("One or both accounts not found")
            ensure_owner(user, source)
            if source.status != ACCOUNT_ACTIVE or destination.status != ACCOUNT_ACTIVE:
                raise InvalidStateError("One or both accounts are not active")

            transfer_id = uuid.uuid4()
            outgoing = post_entry(
                db,
                source,
                TRANSFER_OUT,
                amount_cents,
                description or f"Transfer to {destination.account_number}",
                related_account_id=destination.id,
                related_user_id=destination.user_id,
                transfer_id=transfer_id,
            )
            incoming = post_entry(
                db,
                destination,
                TRANSFER_IN,
                amount_cents,
                description or f"Transfer from {source.account_number}",
                related_account_id=source.id,
                related_user_id=source.user_id,
                transfer_id=transfer_id,
            )
    except DomainException:
        record_ledger_operation("transfer", committed=False)
        raise

    _committed("transfer", source, outgoing)
    log_ledger_event(
        "Transfer received",
        destination.account_number,
        incoming.transaction_type,
        incoming.amount_cents,
        incoming.balance_after_cents,
        incoming.reference,
    )
    return [outgoing, incoming], source, destination


def _restore_loan_installment(db: Session, loan_id: uuid.UUID, amount_cents: int) -> None:
    """Undo one EMI deduction on the loan's amortization counters"""
    loan = LoanRepository(db).get_for_update(loan_id)
    if loan is None:
        raise NotFoundError("Loan not found")

    loan.paid_cents -= amount_cents
    loan.outstanding_cents += amount_cents
    loan.remaining_emis += 1
    if loan.status == LOAN_PAID:
        loan.status = LOAN_ACTIVE
    # The reversed installment is due again at its place in the schedule
    loan.next_emi_date = add_months(loan.emi_start_date, loan.tenure_months - loan.remaining_emis)


def reverse_transaction(
    db: Session,
    admin: User,
    transaction_id: uuid.UUID,
    reason: str,
    context: Optional[RequestContext] = None,
) -> Tuple[List[Transaction], List[Transaction]]:
    """
    Supersede a completed ledger entry with a compensating entry.

    Both legs of a transfer are reversed together so no money is created or
    destroyed. Reversed EMI deductions are restored on the loan; loan
    disbursements are settled through the loan itself and cannot be reversed.
    Entries on a closed account cannot be reversed; frozen accounts can.

    Returns:
        (original entries now marked reversed, new reversal entries)
    """
    if not reason or not reason.strip():
        raise ValidationError("Reversal reason is required")

    try:
        with atomic(db):
            txn_repo = TransactionRepository(db)
            txn = txn_repo.get_for_update(transaction_id)
            if txn is None:
                raise NotFoundError("Transaction not found")
            if txn.status == TXN_REVERSED:
                raise InvalidStateError("Transaction already reversed")
            if txn.transaction_type == REVERSAL:
                raise InvalidStateError("Reversal entries cannot be reversed")
            if txn.transaction_type == LOAN_DISBURSEMENT:
                raise InvalidStateError("Cannot reverse this transaction type")

            legs = txn_repo.transfer_legs(txn.transfer_id) if txn.transfer_id else [txn]
            if any(leg.status == TXN_REVERSED for leg in legs):
                raise InvalidStateError("Transaction already reversed")

            accounts = AccountRepository(db).lock_many([leg.account_id for leg in legs])
            if any(account.status == ACCOUNT_CLOSED for account in accounts.values()):
                raise InvalidStateError("Cannot reverse a transaction on a closed account")
            previous_balances = {leg.id: accounts[leg.account_id].balance_cents for leg in legs}
            reversed_at = utcnow()

            # Debit legs are restored first so a transfer between the same
            # owner's accounts never trips the balance check midway.
            ordered = sorted(legs, key=lambda leg: leg.direction != DEBIT)
            reversals = []
            for leg in ordered:
                account = accounts[leg.account_id]
                direction = opposite(leg.direction)
                if direction == DEBIT:
                    ensure_sufficient_balance(
                        account, leg.amount_cents, "Insufficient balance to reverse this transaction"
                    )
                reversals.append(
                    post_entry(
                        db,
                        account,
                        REVERSAL,
                        leg.amount_cents,
                        f"Reversal: {leg.description}",
                        direction=direction,
                        related_account_id=leg.related_account_id,
                        related_user_id=leg.related_user_id,
                        transfer_id=leg.transfer_id,
                        loan_id=leg.loan_id,
                        original_transaction_id=leg.id,
                    )
                )
                leg.status = TXN_REVERSED
                leg.reversed_by = admin.id
                leg.reversed_at = reversed_at
                leg.reversal_reason = reason

                if leg.transaction_type == EMI_DEDUCTION and leg.loan_id:
                    _restore_loan_installment(db, leg.loan_id, leg.amount_cents)
    except DomainException:
        record_ledger_operation("reversal", committed=False)
        raise

    record_ledger_operation("reversal", committed=True)
    for leg, reversal in zip(ordered, reversals):
        record_money_moved(REVERSAL, reversal.amount_cents)
        log_ledger_event(
            "Transaction reversed",
            accounts[leg.account_id].account_number,
            leg.transaction_type,
            leg.amount_cents,
            reversal.balance_after_cents,
            reversal.reference,
        )
        record_audit(
            db,
            actor_id=admin.id,
            action="transaction_reversed",
            target_type="transaction",
            target_id=leg.id,
            reason=reason,
            previous_state={"status": "completed", "balance_cents": previous_balances[leg.id]},
            new_state={"status": TXN_REVERSED, "balance_cents": reversal.balance_after_cents},
            details={"reversal_reference": reversal.reference},
            context=context,
        )

    return ordered, reversals


def get_transaction_for(db: Session, user: User, transaction_id: uuid.UUID) -> Transaction:
    """Ledger entry visible to its owner or an admin"""
    txn = TransactionRepository(db).get(transaction_id)
    if txn is None:
        raise NotFoundError("Transaction not found")
    if not is_admin(user) and txn.user_id != user.id:
        raise PermissionDeniedError("Access denied")
    return txn


def list_transactions(
    db: Session,
    filters: TransactionFilters,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Transaction], int]:
    return TransactionRepository(db).search(filters, page, limit)


def monthly_statement(db: Session, account: Account, month: int, year: int) -> dict:
    """
    Chronological entries of one calendar month with per-type totals.

    Opening balance is the ledger replayed up to the first of the month, so
    opening + signed movements of the month == closing balance.
    """
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")

    start, end = month_bounds(year, month)
    txn_repo = TransactionRepository(db)
    transactions = txn_repo.in_range(start, end, account_id=account.id)
    opening, _ = txn_repo.signed_total(account.id, before=start)

    summary = StatementSummary(transaction_count=len(transactions))
    closing = opening
    for txn in transactions:
        closing += signed_amount(txn.direction, txn.amount_cents)
        if txn.transaction_type in (DEPOSIT, LOAN_DISBURSEMENT):
            summary.total_deposits_cents += txn.amount_cents
        elif txn.transaction_type in (WITHDRAWAL, EMI_DEDUCTION):
            summary.total_withdrawals_cents += txn.amount_cents
        elif txn.transaction_type == TRANSFER_IN:
            summary.total_transfers_in_cents += txn.amount_cents
        elif txn.transaction_type == TRANSFER_OUT:
            summary.total_transfers_out_cents += txn.amount_cents
        elif txn.transaction_type == REVERSAL:
            summary.total_reversals_cents += txn.amount_cents

    return {
        "period": {"month": month, "year": year, "start": start, "end": end},
        "opening_balance_cents": opening,
        "closing_balance_cents": closing,
        "transactions": transactions,
        "summary": summary,
    }


def reconcile_account(db: Session, account: Account) -> Reconciliation:
    """Replay the ledger of an account and compare with its stored balance"""
    total, entries = TransactionRepository(db).signed_total(account.id)
    reconciliation = Reconciliation(
        account_id=str(account.id),
        balance_cents=account.balance_cents,
        ledger_total_cents=total,
        initial_deposit_cents=account.initial_deposit_cents,
        entries=entries,
    )
    if not reconciliation.balanced:
        logger.error(
            "Ledger does not reconcile with account balance",
            extra={
                "account_number": account.account_number,
                "balance_cents": account.balance_cents,
                "ledger_total_cents": total,
            },
        )
    return reconciliation
