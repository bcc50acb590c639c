"""EMI calculation and amortization schedules for term loans"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from abaya_bank.domain.exceptions import ValidationError
from abaya_bank.domain.models import LoanTerms, ScheduleEntry
from abaya_bank.utils.date_utils import add_months

EMI_FORMULA = "EMI = [P x R x (1 + R)^N] / [(1 + R)^N - 1]"


def _round_cents(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def monthly_rate(annual_rate: float) -> float:
    """Annual percentage rate to monthly decimal rate"""
    return annual_rate / 12 / 100


def calculate_emi(principal_cents: int, annual_rate: float, tenure_months: int) -> float:
    """
    Equated monthly installment in (fractional) cents.

    EMI = P * R * (1 + R)^N / ((1 + R)^N - 1), R = annual_rate / 12 / 100.
    A zero rate degenerates to an even split of the principal.
    """
    if tenure_months <= 0:
        raise ValidationError("Tenure must be at least one month")
    if principal_cents <= 0:
        raise ValidationError("Principal must be positive")
    if annual_rate < 0:
        raise ValidationError("Interest rate cannot be negative")

    rate = monthly_rate(annual_rate)
    if rate == 0:
        return principal_cents / tenure_months

    growth = (1 + rate) ** tenure_months
    return principal_cents * rate * growth / (growth - 1)


def calculate_loan_terms(principal_cents: int, annual_rate: float, tenure_months: int) -> LoanTerms:
    """
    Round the EMI to whole cents and derive totals from it.

    total_payable is emi * tenure so that deducting the EMI tenure times
    brings the outstanding balance to exactly zero.
    """
    emi_cents = _round_cents(calculate_emi(principal_cents, annual_rate, tenure_months))
    total_payable = emi_cents * tenure_months

    return LoanTerms(
        principal_cents=principal_cents,
        interest_rate=annual_rate,
        tenure_months=tenure_months,
        emi_cents=emi_cents,
        total_payable_cents=total_payable,
        total_interest_cents=total_payable - principal_cents,
    )


def generate_amortization_schedule(
    principal_cents: int,
    annual_rate: float,
    tenure_months: int,
    first_due_date: date,
) -> List[ScheduleEntry]:
    """
    Split each EMI into its interest and principal parts.

    Interest is charged on the opening principal of each month and rounded
    to cents. The final row pays off whatever principal remains, so the
    principal parts always sum to the loan principal.

    Example:
        120000 cents at 0% over 12 months -> 12 rows of 10000 principal each
    """
    terms = calculate_loan_terms(principal_cents, annual_rate, tenure_months)
    rate = monthly_rate(annual_rate)

    schedule = []
    remaining = principal_cents
    for number in range(1, tenure_months + 1):
        interest = _round_cents(remaining * rate)
        if number == tenure_months:
            principal_part = remaining
            payment = principal_part + interest
        else:
            principal_part = min(terms.emi_cents - interest, remaining)
            payment = terms.emi_cents
        remaining -= principal_part

        schedule.append(
            ScheduleEntry(
                number=number,
                due_date=add_months(first_due_date, number - 1),
                payment_cents=payment,
                principal_cents=principal_part,
                interest_cents=interest,
                remaining_principal_cents=remaining,
            )
        )

    return schedule
