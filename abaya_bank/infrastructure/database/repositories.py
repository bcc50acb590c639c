"""Data access layer for banking entities"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from abaya_bank.infrastructure.database.models import Account, AuditLog, Loan, Transaction, User
from abaya_bank.domain.models import CREDIT, LOAN_REPAYING
from abaya_bank.utils.pagination import offset_for


@dataclass
class TransactionFilters:
    """Optional filters for ledger queries"""

    account_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    transaction_type: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    min_amount_cents: Optional[int] = None
    max_amount_cents: Optional[int] = None


class UserRepository:
    """Repository for mirrored identity users"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_identity_uid(self, identity_uid: str) -> Optional[User]:
        return self.db.query(User).filter(User.identity_uid == identity_uid).first()

    def find_conflict(self, identity_uid: str, email: str, nid_or_passport: str) -> Optional[User]:
        """First user sharing any unique registration field"""
        return (
            self.db.query(User)
            .filter(
                or_(
                    User.identity_uid == identity_uid,
                    User.email == email,
                    User.nid_or_passport == nid_or_passport,
                )
            )
            .first()
        )

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def list_users(
        self,
        search: Optional[str],
        is_active: Optional[bool],
        page: int,
        limit: int,
    ) -> Tuple[List[Tuple[User, int]], int]:
        """Users newest first, each paired with its account count"""
        query = self.db.query(User)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(User.name.ilike(pattern), User.email.ilike(pattern), User.phone.ilike(pattern))
            )
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))

        total = query.count()
        users = query.order_by(User.created_at.desc()).offset(offset_for(page, limit)).limit(limit).all()

        counts: Dict[uuid.UUID, int] = {}
        if users:
            counts = dict(
                self.db.query(Account.user_id, func.count(Account.id))
                .filter(Account.user_id.in_([u.id for u in users]))
                .group_by(Account.user_id)
                .all()
            )
        return [(u, counts.get(u.id, 0)) for u in users], total


class AccountRepository:
    """Repository for deposit accounts"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: uuid.UUID) -> Optional[Account]:
        return self.db.get(Account, account_id)

    def get_for_update(self, account_id: uuid.UUID) -> Optional[Account]:
        """Fetch and row-lock an account for the rest of the transaction"""
        return (
            self.db.query(Account)
            .filter(Account.id == account_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def lock_many(self, account_ids: List[uuid.UUID]) -> Dict[uuid.UUID, Account]:
        """Row-lock several accounts in id order so concurrent transfers cannot deadlock"""
        locked = {}
        for account_id in sorted(set(account_ids), key=str):
            account = self.get_for_update(account_id)
            if account is not None:
                locked[account_id] = account
        return locked

    def add(self, account: Account) -> Account:
        self.db.add(account)
        self.db.flush()
        return account

    def list_for_user(self, user_id: uuid.UUID) -> List[Account]:
        return (
            self.db.query(Account)
            .filter(Account.user_id == user_id)
            .order_by(Account.created_at.desc())
            .all()
        )

    def list_accounts(
        self,
        status: Optional[str],
        account_type: Optional[str],
        page: int,
        limit: int,
    ) -> Tuple[List[Account], int]:
        query = self.db.query(Account)
        if status:
            query = query.filter(Account.status == status)
        if account_type:
            query = query.filter(Account.account_type == account_type)
        total = query.count()
        accounts = query.order_by(Account.created_at.desc()).offset(offset_for(page, limit)).limit(limit).all()
        return accounts, total


class TransactionRepository:
    """Repository for the append-only ledger"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        return self.db.get(Transaction, transaction_id)

    def get_for_update(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def transfer_legs(self, transfer_id: uuid.UUID) -> List[Transaction]:
        """Both ledger entries of a transfer (excluding their reversals)"""
        return (
            self.db.query(Transaction)
            .filter(Transaction.transfer_id == transfer_id, Transaction.original_transaction_id.is_(None))
            .with_for_update()
            .populate_existing()
            .all()
        )

    def append(self, transaction: Transaction) -> Transaction:
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def _filtered(self, filters: TransactionFilters):
        query = self.db.query(Transaction)
        if filters.account_id:
            query = query.filter(Transaction.account_id == filters.account_id)
        if filters.user_id:
            query = query.filter(Transaction.user_id == filters.user_id)
        if filters.transaction_type:
            query = query.filter(Transaction.transaction_type == filters.transaction_type)
        if filters.start:
            query = query.filter(Transaction.created_at >= filters.start)
        if filters.end:
            query = query.filter(Transaction.created_at <= filters.end)
        if filters.min_amount_cents is not None:
            query = query.filter(Transaction.amount_cents >= filters.min_amount_cents)
        if filters.max_amount_cents is not None:
            query = query.filter(Transaction.amount_cents <= filters.max_amount_cents)
        return query

    def search(self, filters: TransactionFilters, page: int, limit: int) -> Tuple[List[Transaction], int]:
        """Filtered ledger entries, newest first"""
        query = self._filtered(filters)
        total = query.count()
        transactions = (
            query.order_by(Transaction.created_at.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
            .all()
        )
        return transactions, total

    def recent_for_account(self, account_id: uuid.UUID, limit: int = 10) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.account_id == account_id)
            .order_by(Transaction.created_at.desc())
            .limit(limit)
            .all()
        )

    def in_range(self, start: datetime, end: datetime, account_id: Optional[uuid.UUID] = None) -> List[Transaction]:
        """Entries with start <= created_at < end, oldest first"""
        query = self.db.query(Transaction).filter(Transaction.created_at >= start, Transaction.created_at < end)
        if account_id:
            query = query.filter(Transaction.account_id == account_id)
        return query.order_by(Transaction.created_at.asc()).all()

    def signed_total(self, account_id: uuid.UUID, before: Optional[datetime] = None) -> Tuple[int, int]:
        """(sum of signed amounts, entry count) for an account, optionally only entries before a moment"""
        signed = case((Transaction.direction == CREDIT, Transaction.amount_cents), else_=-Transaction.amount_cents)
        query = self.db.query(func.coalesce(func.sum(signed), 0), func.count(Transaction.id)).filter(
            Transaction.account_id == account_id
        )
        if before is not None:
            query = query.filter(Transaction.created_at < before)
        total, count = query.one()
        return int(total), int(count)


class LoanRepository:
    """Repository for term loans"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, loan_id: uuid.UUID) -> Optional[Loan]:
        return self.db.get(Loan, loan_id)

    def get_for_update(self, loan_id: uuid.UUID) -> Optional[Loan]:
        return self.db.query(Loan).filter(Loan.id == loan_id).with_for_update().populate_existing().first()

    def add(self, loan: Loan) -> Loan:
        self.db.add(loan)
        self.db.flush()
        return loan

    def list_for_user(self, user_id: uuid.UUID) -> List[Loan]:
        return self.db.query(Loan).filter(Loan.user_id == user_id).order_by(Loan.created_at.desc()).all()

    def list_loans(self, status: Optional[str], page: int, limit: int) -> Tuple[List[Loan], int]:
        query = self.db.query(Loan)
        if status:
            query = query.filter(Loan.status == status)
        total = query.count()
        loans = query.order_by(Loan.created_at.desc()).offset(offset_for(page, limit)).limit(limit).all()
        return loans, total

    def due_on_or_before(self, day: date) -> List[Loan]:
        """Repaying loans whose next EMI falls due on or before day"""
        return (
            self.db.query(Loan)
            .filter(Loan.status.in_(LOAN_REPAYING), Loan.next_emi_date.is_not(None), Loan.next_emi_date <= day)
            .order_by(Loan.next_emi_date.asc())
            .all()
        )


class AuditRepository:
    """Repository for audit trail entries"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, entry: AuditLog) -> AuditLog:
        self.db.add(entry)
        return entry

    def list_logs(
        self,
        action: Optional[str],
        target_type: Optional[str],
        page: int,
        limit: int,
    ) -> Tuple[List[AuditLog], int]:
        query = self.db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action)
        if target_type:
            query = query.filter(AuditLog.target_type == target_type)
        total = query.count()
        logs = query.order_by(AuditLog.created_at.desc()).offset(offset_for(page, limit)).limit(limit).all()
        return logs, total


class AnalyticsRepository:
    """Aggregation queries for admin reporting"""

    def __init__(self, db: Session):
        self.db = db

    def totals_by_type(self, start: datetime, end: Optional[datetime] = None) -> Dict[str, Tuple[int, int]]:
        """{transaction_type: (amount total, entry count)} for start <= created_at < end"""
        query = self.db.query(
            Transaction.transaction_type,
            func.coalesce(func.sum(Transaction.amount_cents), 0),
            func.count(Transaction.id),
        ).filter(Transaction.created_at >= start)
        if end is not None:
            query = query.filter(Transaction.created_at < end)
        rows = query.group_by(Transaction.transaction_type).all()
        return {txn_type: (int(total), int(count)) for txn_type, total, count in rows}

    def accounts_by_status(self) -> Dict[str, int]:
        rows = self.db.query(Account.status, func.count(Account.id)).group_by(Account.status).all()
        return dict(rows)

    def loans_by_status(self) -> Dict[str, Tuple[int, int]]:
        """{status: (loan count, principal total)}"""
        rows = (
            self.db.query(Loan.status, func.count(Loan.id), func.coalesce(func.sum(Loan.principal_cents), 0))
            .group_by(Loan.status)
            .all()
        )
        return {status: (int(count), int(principal)) for status, count, principal in rows}

    def user_counts(self) -> Tuple[int, int]:
        """(all users, active users)"""
        total = self.db.query(func.count(User.id)).scalar()
        active = self.db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar()
        return int(total), int(active)

    def accounts_created(self, end: datetime, start: Optional[datetime] = None) -> int:
        query = self.db.query(func.count(Account.id)).filter(Account.created_at < end)
        if start is not None:
            query = query.filter(Account.created_at >= start)
        return int(query.scalar())
