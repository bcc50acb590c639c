"""Admin reporting over the ledger, accounts, loans and users"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from abaya_bank.domain.exceptions import ValidationError
from abaya_bank.domain.models import (
    ACCOUNT_ACTIVE,
    ACCOUNT_FROZEN,
    DEPOSIT,
    EMI_DEDUCTION,
    LOAN_ACTIVE,
    LOAN_DISBURSEMENT,
    LOAN_OVERDUE,
    LOAN_PAID,
    LOAN_REQUESTED,
    LOAN_STATUSES,
    REVERSAL,
    TRANSFER_OUT,
    WITHDRAWAL,
)
from abaya_bank.infrastructure.database.repositories import AnalyticsRepository
from abaya_bank.utils.date_utils import last_n_months, period_start, utcnow

PERIODS = ("week", "month", "year")


def _amount(totals, txn_type: str) -> int:
    return totals.get(txn_type, (0, 0))[0]


def _flow_totals(totals) -> Dict[str, int]:
    # Transfers are counted once, on the sending leg
    return {
        "deposits_cents": _amount(totals, DEPOSIT),
        "withdrawals_cents": _amount(totals, WITHDRAWAL),
        "transfers_cents": _amount(totals, TRANSFER_OUT),
        "loan_disbursements_cents": _amount(totals, LOAN_DISBURSEMENT),
        "emi_collections_cents": _amount(totals, EMI_DEDUCTION),
    }


def overview(db: Session, period: str = "month", now: Optional[datetime] = None) -> dict:
    """
    Dashboard totals for the trailing week, month or year.

    Transaction figures cover the period; account, loan and user counts are
    current.
    """
    if period not in PERIODS:
        raise ValidationError(f"Period must be one of: {', '.join(PERIODS)}")
    now = now or utcnow()
    repo = AnalyticsRepository(db)

    totals = repo.totals_by_type(period_start(period, now))
    transactions = _flow_totals(totals)
    transactions["reversals_cents"] = _amount(totals, REVERSAL)
    transactions["transaction_count"] = sum(count for _, count in totals.values())

    accounts = repo.accounts_by_status()
    loans = repo.loans_by_status()
    total_users, active_users = repo.user_counts()

    return {
        "period": period,
        "transactions": transactions,
        "accounts": {
            "total": sum(accounts.values()),
            "active": accounts.get(ACCOUNT_ACTIVE, 0),
            "frozen": accounts.get(ACCOUNT_FROZEN, 0),
        },
        "loans": {
            "total": sum(count for count, _ in loans.values()),
            "active": loans.get(LOAN_ACTIVE, (0, 0))[0],
            "paid": loans.get(LOAN_PAID, (0, 0))[0],
            "overdue": loans.get(LOAN_OVERDUE, (0, 0))[0],
            "requested": loans.get(LOAN_REQUESTED, (0, 0))[0],
        },
        "users": {"total": total_users, "active": active_users},
    }


def monthly_trends(db: Session, now: Optional[datetime] = None) -> List[dict]:
    """Money flows for each of the last 12 calendar months, oldest first"""
    repo = AnalyticsRepository(db)
    trends = []
    for start, end in last_n_months(now or utcnow()):
        row = {"month": start.strftime("%B"), "year": start.year}
        row.update(_flow_totals(repo.totals_by_type(start, end)))
        trends.append(row)
    return trends


def account_growth(db: Session, now: Optional[datetime] = None) -> List[dict]:
    repo = AnalyticsRepository(db)
    return [
        {
            "month": start.strftime("%B"),
            "year": start.year,
            "new_accounts": repo.accounts_created(end, start=start),
            "total_accounts": repo.accounts_created(end),
        }
        for start, end in last_n_months(now or utcnow())
    ]


def loan_status_breakdown(db: Session) -> List[dict]:
    loans = AnalyticsRepository(db).loans_by_status()
    return [
        {
            "status": status,
            "count": loans.get(status, (0, 0))[0],
            "total_principal_cents": loans.get(status, (0, 0))[1],
        }
        for status in LOAN_STATUSES
    ]
