"""Domain models - vocabularies and plain dataclasses for business values"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

# Roles
ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
ROLES = (ROLE_CUSTOMER, ROLE_ADMIN)

# Accounts
ACCOUNT_TYPES = ("savings", "student", "fdr")
ACCOUNT_ACTIVE = "active"
ACCOUNT_FROZEN = "frozen"
ACCOUNT_CLOSED = "closed"
ACCOUNT_STATUSES = (ACCOUNT_ACTIVE, ACCOUNT_FROZEN, ACCOUNT_CLOSED)

# Ledger
DEPOSIT = "deposit"
WITHDRAWAL = "withdrawal"
TRANSFER_IN = "transfer_in"
TRANSFER_OUT = "transfer_out"
LOAN_DISBURSEMENT = "loan_disbursement"
EMI_DEDUCTION = "emi_deduction"
REVERSAL = "reversal"
TRANSACTION_TYPES = (
    DEPOSIT,
    WITHDRAWAL,
    TRANSFER_IN,
    TRANSFER_OUT,
    LOAN_DISBURSEMENT,
    EMI_DEDUCTION,
    REVERSAL,
)

CREDIT = "credit"
DEBIT = "debit"
CREDIT_TYPES = frozenset({DEPOSIT, TRANSFER_IN, LOAN_DISBURSEMENT})
DEBIT_TYPES = frozenset({WITHDRAWAL, TRANSFER_OUT, EMI_DEDUCTION})

TXN_COMPLETED = "completed"
TXN_REVERSED = "reversed"

# Loans
LOAN_TYPES = ("personal", "home", "education", "business", "vehicle")
EMPLOYMENT_STATUSES = ("employed", "self-employed", "business", "student")
LOAN_REQUESTED = "requested"
LOAN_ACTIVE = "active"
LOAN_PAID = "paid"
LOAN_OVERDUE = "overdue"
LOAN_REJECTED = "rejected"
LOAN_STATUSES = (LOAN_REQUESTED, LOAN_ACTIVE, LOAN_PAID, LOAN_OVERDUE, LOAN_REJECTED)
LOAN_REPAYING = (LOAN_ACTIVE, LOAN_OVERDUE)

# Audit
AUDIT_ACTIONS = (
    "account_frozen",
    "account_unfrozen",
    "account_closed",
    "account_status_changed",
    "loan_approved",
    "loan_rejected",
    "transaction_reversed",
    "user_role_changed",
    "user_deactivated",
    "user_activated",
)
AUDIT_TARGETS = ("user", "account", "transaction", "loan")


@dataclass
class LoanTerms:
    """Repayment terms computed for a principal, rate and tenure"""

    principal_cents: int
    interest_rate: float
    tenure_months: int
    emi_cents: int
    total_payable_cents: int
    total_interest_cents: int


@dataclass
class ScheduleEntry:
    """Single row of an amortization schedule"""

    number: int
    due_date: date
    payment_cents: int
    principal_cents: int
    interest_cents: int
    remaining_principal_cents: int


@dataclass
class Identity:
    """Verified identity-provider token claims"""

    uid: str
    email: Optional[str] = None
    role: Optional[str] = None
    claims: dict = field(default_factory=dict)


@dataclass
class StatementSummary:
    """Per-type totals of a monthly statement"""

    total_deposits_cents: int = 0
    total_withdrawals_cents: int = 0
    total_transfers_in_cents: int = 0
    total_transfers_out_cents: int = 0
    total_reversals_cents: int = 0
    transaction_count: int = 0


@dataclass
class Reconciliation:
    """Ledger replay result for one account"""

    account_id: str
    balance_cents: int
    ledger_total_cents: int
    initial_deposit_cents: int
    entries: int

    @property
    def balanced(self) -> bool:
        return self.balance_cents == self.ledger_total_cents

    @property
    def movement_since_opening_cents(self) -> int:
        return self.ledger_total_cents - self.initial_deposit_cents


@dataclass
class EmiRunResult:
    """Outcome of one EMI auto-deduction batch"""

    successful: int = 0
    failed: int = 0
    errors: List[dict] = field(default_factory=list)


@dataclass
class LoanApplication:
    """Customer-submitted loan request, amounts in cents"""

    account_id: uuid.UUID
    loan_type: str
    principal_cents: int
    interest_rate: float
    tenure_months: int
    purpose: str
    employment_status: str
    monthly_income_cents: int
