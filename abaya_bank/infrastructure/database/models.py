"""SQLAlchemy ORM models for users, accounts, the transaction ledger, loans and audit logs"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    Float,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    JSON,
    Uuid,
    Index,
)
from sqlalchemy.orm import declarative_base, relationship

from abaya_bank.utils.date_utils import utcnow

Base = declarative_base()


class User(Base):
    """Local mirror of an identity-provider user"""

    __tablename__ = "bank_user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    identity_uid = Column(String(128), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(Text, nullable=False)
    phone = Column(String(32), nullable=False)
    nid_or_passport = Column(String(64), nullable=False, unique=True)
    role = Column(String(16), nullable=False, default="customer")
    profile_image = Column(Text, nullable=True)
    address = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    accounts = relationship("Account", back_populates="owner")


class Account(Base):
    """Customer deposit account; balance changes only through ledger entries"""

    __tablename__ = "account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_number = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(Uuid, ForeignKey("bank_user.id"), nullable=False, index=True)
    account_type = Column(String(16), nullable=False)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="active")
    currency = Column(String(3), nullable=False, default="USD")
    interest_rate = Column(Float, nullable=False, default=0.0)  # fdr only
    maturity_date = Column(Date, nullable=True)  # fdr only
    initial_deposit_cents = Column(BigInteger, nullable=False, default=0)
    opened_at = Column(DateTime, nullable=False, default=utcnow)
    last_transaction_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="accounts")


class Transaction(Base):
    """Immutable ledger entry; only the reversal fields are ever updated"""

    __tablename__ = "ledger_transaction"
    __table_args__ = (
        Index("ix_ledger_transaction_account_created", "account_id", "created_at"),
        Index("ix_ledger_transaction_user_created", "user_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reference = Column(String(32), nullable=False, unique=True)
    account_id = Column(Uuid, ForeignKey("account.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("bank_user.id"), nullable=False, index=True)
    transaction_type = Column(String(32), nullable=False)
    direction = Column(String(8), nullable=False)  # credit | debit
    amount_cents = Column(BigInteger, nullable=False)
    balance_after_cents = Column(BigInteger, nullable=False)
    description = Column(Text, nullable=True)

    # Transfers
    related_account_id = Column(Uuid, ForeignKey("account.id"), nullable=True)
    related_user_id = Column(Uuid, ForeignKey("bank_user.id"), nullable=True)
    transfer_id = Column(Uuid, nullable=True, index=True)

    # Loans
    loan_id = Column(Uuid, ForeignKey("loan.id"), nullable=True, index=True)

    status = Column(String(16), nullable=False, default="completed")
    reversed_by = Column(Uuid, ForeignKey("bank_user.id"), nullable=True)
    reversed_at = Column(DateTime, nullable=True)
    reversal_reason = Column(Text, nullable=True)
    original_transaction_id = Column(Uuid, ForeignKey("ledger_transaction.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    account = relationship("Account", foreign_keys=[account_id])
    related_account = relationship("Account", foreign_keys=[related_account_id])


class Loan(Base):
    """Term loan with EMI amortization counters"""

    __tablename__ = "loan"
    __table_args__ = (Index("ix_loan_status_next_emi", "status", "next_emi_date"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(Uuid, ForeignKey("bank_user.id"), nullable=False, index=True)
    account_id = Column(Uuid, ForeignKey("account.id"), nullable=False, index=True)
    loan_type = Column(String(16), nullable=False)
    principal_cents = Column(BigInteger, nullable=False)
    interest_rate = Column(Float, nullable=False)  # annual percentage
    tenure_months = Column(Integer, nullable=False)
    emi_cents = Column(BigInteger, nullable=False)
    total_payable_cents = Column(BigInteger, nullable=False)
    outstanding_cents = Column(BigInteger, nullable=False)
    paid_cents = Column(BigInteger, nullable=False, default=0)
    remaining_emis = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="requested")
    purpose = Column(Text, nullable=False)
    employment_status = Column(String(16), nullable=False)
    monthly_income_cents = Column(BigInteger, nullable=False)

    next_emi_date = Column(Date, nullable=True)
    last_emi_date = Column(Date, nullable=True)
    emi_start_date = Column(Date, nullable=True)

    approved_by = Column(Uuid, ForeignKey("bank_user.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    disbursed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    account = relationship("Account")


class AuditLog(Base):
    """Record of a privileged action"""

    __tablename__ = "audit_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_id = Column(Uuid, ForeignKey("bank_user.id"), nullable=False, index=True)
    action = Column(String(32), nullable=False)
    target_type = Column(String(16), nullable=False)
    target_id = Column(Uuid, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    previous_state = Column(JSON, nullable=True)
    new_state = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
