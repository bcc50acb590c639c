"""Pytest fixtures for testing"""

import os

os.environ.setdefault("EMI_JOB_ENABLED", "false")

import time
from datetime import datetime
from typing import Callable, Generator

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from abaya_bank.api.main import create_app
from abaya_bank.config import settings
from abaya_bank.domain.amortization import calculate_loan_terms
from abaya_bank.domain.ledger import generate_loan_number
from abaya_bank.domain.models import LOAN_ACTIVE, LOAN_DISBURSEMENT
from abaya_bank.infrastructure.database.models import Account, Base, Loan, Transaction, User
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.services.accounts import open_account
from abaya_bank.services.ledger import post_entry


# Test database
TEST_DATABASE_URL = "sqlite://"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def mint_token(uid: str, email: str = None, role: str = None, expires_in: int = 3600) -> str:
    """Identity-provider style token signed with the configured secret"""
    claims = {"sub": uid, "exp": int(time.time()) + expires_in}
    if email:
        claims["email"] = email
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.identity_jwt_secret, algorithm=settings.identity_jwt_algorithm)


@pytest.fixture
def token_for() -> Callable[..., str]:
    return mint_token


@pytest.fixture
def auth_header() -> Callable[[User], dict]:
    def _header(user: User) -> dict:
        return {"Authorization": f"Bearer {mint_token(user.identity_uid, user.email)}"}

    return _header


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(role: str = "customer", is_active: bool = True) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            identity_uid=f"uid-{role}-{n}",
            email=f"{role}{n}@example.com",
            name=f"Test {role.title()} {n}",
            phone=f"+1555000{n:04d}",
            nid_or_passport=f"NID{n:06d}",
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def customer(make_user) -> User:
    return make_user()


@pytest.fixture
def admin(make_user) -> User:
    return make_user(role="admin")


@pytest.fixture
def make_account(db: Session) -> Callable[..., Account]:
    def _make(user: User, initial_deposit_cents: int = 100_000, account_type: str = "savings") -> Account:
        return open_account(db, user, account_type, initial_deposit_cents)

    return _make


@pytest.fixture
def make_active_loan(db: Session) -> Callable[..., Loan]:
    """
    Loan already approved and disbursed, with its first EMI due on first_due.

    Bypasses approve_loan so tests can pin the schedule to fixed dates.
    """

    def _make(
        account: Account,
        principal_cents: int = 120_000,
        interest_rate: float = 0.0,
        tenure_months: int = 12,
        first_due=None,
    ) -> Loan:
        terms = calculate_loan_terms(principal_cents, interest_rate, tenure_months)
        first_due = first_due or datetime(2026, 1, 1).date()
        loan = Loan(
            loan_number=generate_loan_number(),
            user_id=account.user_id,
            account_id=account.id,
            loan_type="personal",
            principal_cents=principal_cents,
            interest_rate=interest_rate,
            tenure_months=tenure_months,
            emi_cents=terms.emi_cents,
            total_payable_cents=terms.total_payable_cents,
            outstanding_cents=terms.total_payable_cents,
            paid_cents=0,
            remaining_emis=tenure_months,
            status=LOAN_ACTIVE,
            purpose="Home renovation and repairs",
            employment_status="employed",
            monthly_income_cents=500_000,
            emi_start_date=first_due,
            next_emi_date=first_due,
        )
        db.add(loan)
        db.flush()
        post_entry(db, account, LOAN_DISBURSEMENT, principal_cents, "Loan disbursement", loan_id=loan.id)
        db.commit()
        return loan

    return _make


@pytest.fixture
def ledger_sum(db: Session) -> Callable[[Account], int]:
    """Signed sum of every ledger entry of an account"""

    def _sum(account: Account) -> int:
        entries = db.query(Transaction).filter(Transaction.account_id == account.id).all()
        return sum(t.amount_cents if t.direction == "credit" else -t.amount_cents for t in entries)

    return _sum
