"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ORMModel(BaseModel):
    """Response model readable straight from ORM rows"""

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    has_more: bool


# Users


class RegisterRequest(BaseModel):
    """Request body for POST /v1/auth/register"""

    name: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., min_length=5, max_length=32)
    nid_or_passport: str = Field(..., min_length=3, max_length=64)
    email: Optional[str] = Field(None, description="Defaults to the email claim of the token")
    address: Optional[Dict[str, Any]] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, min_length=5, max_length=32)
    address: Optional[Dict[str, Any]] = None
    profile_image: Optional[str] = None


class UserResponse(ORMModel):
    id: uuid.UUID
    email: str
    name: str
    phone: str
    nid_or_passport: str
    role: str
    address: Optional[Dict[str, Any]] = None
    profile_image: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class AccountSummary(ORMModel):
    id: uuid.UUID
    account_number: str
    account_type: str
    balance_cents: int
    status: str


class ProfileResponse(BaseModel):
    """User together with their accounts"""

    user: UserResponse
    accounts: List[AccountSummary]


class UserListItem(UserResponse):
    account_count: int = 0


class UserListResponse(BaseModel):
    users: List[UserListItem]
    pagination: Pagination


class ActivationRequest(BaseModel):
    is_active: bool
    reason: Optional[str] = Field(None, max_length=500)


class RoleChangeRequest(BaseModel):
    role: Literal["customer", "admin"]
    reason: Optional[str] = Field(None, max_length=500)


# Accounts


class OpenAccountRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    account_type: Literal["savings", "student", "fdr"]
    initial_deposit_cents: int = Field(0, ge=0, description="Opening deposit in cents")
    interest_rate: Optional[float] = Field(None, ge=0, description="Annual rate, FDR only")
    maturity_date: Optional[date] = Field(None, description="FDR only")


class AccountResponse(ORMModel):
    id: uuid.UUID
    account_number: str
    user_id: uuid.UUID
    account_type: str
    balance_cents: int
    status: str
    currency: str
    interest_rate: float
    maturity_date: Optional[date] = None
    initial_deposit_cents: int
    opened_at: datetime
    last_transaction_at: Optional[datetime] = None


class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    pagination: Optional[Pagination] = None


class BalanceResponse(BaseModel):
    account_id: uuid.UUID
    account_number: str
    balance_cents: int
    currency: str
    status: str


class AccountStatusRequest(BaseModel):
    status: Literal["active", "frozen", "closed"]
    reason: Optional[str] = Field(None, min_length=5, max_length=500)


class ReasonRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReconciliationResponse(BaseModel):
    account_id: str
    balance_cents: int
    ledger_total_cents: int
    initial_deposit_cents: int
    movement_since_opening_cents: int
    entries: int
    balanced: bool


# Transactions


class MoneyRequest(BaseModel):
    """Request body for deposits and withdrawals"""

    account_id: uuid.UUID
    amount_cents: int = Field(..., gt=0, description="Amount in cents")
    description: Optional[str] = Field(None, max_length=200)


class TransferRequest(BaseModel):
    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    amount_cents: int = Field(..., gt=0, description="Amount in cents")
    description: Optional[str] = Field(None, max_length=200)


class TransactionResponse(ORMModel):
    id: uuid.UUID
    reference: str
    account_id: uuid.UUID
    user_id: uuid.UUID
    transaction_type: str
    direction: str
    amount_cents: int
    balance_after_cents: int
    description: Optional[str] = None
    related_account_id: Optional[uuid.UUID] = None
    related_user_id: Optional[uuid.UUID] = None
    transfer_id: Optional[uuid.UUID] = None
    loan_id: Optional[uuid.UUID] = None
    status: str
    reversed_by: Optional[uuid.UUID] = None
    reversed_at: Optional[datetime] = None
    reversal_reason: Optional[str] = None
    original_transaction_id: Optional[uuid.UUID] = None
    created_at: datetime


class AccountDetailResponse(BaseModel):
    account: AccountResponse
    recent_transactions: List[TransactionResponse]


class TransactionResult(BaseModel):
    transaction: TransactionResponse
    balance_cents: int


class TransferResponse(BaseModel):
    transactions: List[TransactionResponse]
    from_balance_cents: int


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    pagination: Pagination


class StatementSummarySchema(BaseModel):
    total_deposits_cents: int
    total_withdrawals_cents: int
    total_transfers_in_cents: int
    total_transfers_out_cents: int
    total_reversals_cents: int
    transaction_count: int


class StatementResponse(BaseModel):
    """Response for GET /v1/transactions/statement/{account_id}"""

    account: AccountSummary
    month: int
    year: int
    opening_balance_cents: int
    closing_balance_cents: int
    transactions: List[TransactionResponse]
    summary: StatementSummarySchema


class ReverseRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class ReversalResponse(BaseModel):
    reversed: List[TransactionResponse]
    reversals: List[TransactionResponse]


# Loans


class EmiQuoteRequest(BaseModel):
    """Request body for POST /v1/loans/calculate-emi"""

    principal_cents: int = Field(..., gt=0)
    interest_rate: float = Field(..., ge=0, le=100)
    tenure_months: int = Field(..., ge=1, le=600)


class EmiQuoteResponse(BaseModel):
    principal_cents: int
    interest_rate: float
    tenure_months: int
    emi_cents: int
    total_payable_cents: int
    total_interest_cents: int
    formula: str
    explanation: Dict[str, str]


class LoanApplicationRequest(BaseModel):
    """Request body for POST /v1/loans"""

    account_id: uuid.UUID
    loan_type: Literal["personal", "home", "education", "business", "vehicle"]
    principal_cents: int = Field(..., gt=0)
    interest_rate: float = Field(..., ge=0)
    tenure_months: int = Field(..., gt=0)
    purpose: str = Field(..., min_length=10, max_length=500)
    employment_status: Literal["employed", "self-employed", "business", "student"]
    monthly_income_cents: int = Field(..., ge=0)


class LoanResponse(ORMModel):
    id: uuid.UUID
    loan_number: str
    user_id: uuid.UUID
    account_id: uuid.UUID
    loan_type: str
    principal_cents: int
    interest_rate: float
    tenure_months: int
    emi_cents: int
    total_payable_cents: int
    outstanding_cents: int
    paid_cents: int
    remaining_emis: int
    status: str
    purpose: str
    employment_status: str
    monthly_income_cents: int
    next_emi_date: Optional[date] = None
    last_emi_date: Optional[date] = None
    emi_start_date: Optional[date] = None
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    disbursed_at: Optional[datetime] = None
    created_at: datetime


class LoanListResponse(BaseModel):
    loans: List[LoanResponse]
    pagination: Optional[Pagination] = None


class ScheduleEntrySchema(ORMModel):
    """Single installment of an amortization schedule"""

    number: int
    due_date: date
    payment_cents: int
    principal_cents: int
    interest_cents: int
    remaining_principal_cents: int


class LoanScheduleResponse(BaseModel):
    loan_id: uuid.UUID
    loan_number: str
    emi_cents: int
    schedule: List[ScheduleEntrySchema]


class RejectLoanRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class LoanDisbursementResponse(BaseModel):
    loan: LoanResponse
    transaction: TransactionResponse


class EmiPaymentResponse(BaseModel):
    loan: LoanResponse
    transaction: TransactionResponse


# Admin


class AuditLogResponse(ORMModel):
    id: uuid.UUID
    actor_id: uuid.UUID
    action: str
    target_type: str
    target_id: uuid.UUID
    reason: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    previous_state: Optional[Dict[str, Any]] = None
    new_state: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    pagination: Pagination


class EmiRunResponse(BaseModel):
    successful: int
    failed: int
    errors: List[Dict[str, str]]


class AnalyticsResponse(BaseModel):
    overview: Dict[str, Any]
    monthly_trends: List[Dict[str, Any]]
    account_growth: List[Dict[str, Any]]
    loan_status_breakdown: List[Dict[str, Any]]
