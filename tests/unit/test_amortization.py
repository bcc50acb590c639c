"""Unit tests for EMI calculation and amortization schedules"""

import pytest
from datetime import date

from abaya_bank.domain.amortization import (
    calculate_emi,
    calculate_loan_terms,
    generate_amortization_schedule,
)
from abaya_bank.domain.exceptions import ValidationError


def test_calculate_emi_zero_rate_is_even_split():
    """Test zero interest divides the principal evenly"""
    assert calculate_emi(120000, 0, 12) == 10000


def test_calculate_emi_standard_formula():
    """Test $1000 at 12% over 12 months (R = 1% monthly)"""
    emi = calculate_emi(100000, 12.0, 12)
    assert emi == pytest.approx(8884.88, abs=0.01)


def test_calculate_loan_terms_rounds_to_cents():
    """Test EMI and totals are rounded to whole cents"""
    terms = calculate_loan_terms(100000, 12.0, 12)

    assert terms.emi_cents == 8885
    assert terms.total_payable_cents == 8885 * 12
    assert terms.total_interest_cents == 8885 * 12 - 100000


@pytest.mark.parametrize(
    "principal,rate,tenure",
    [(100000, 12.0, 12), (2500000, 9.5, 60), (150000, 0.0, 7), (99999, 29.9, 360)],
)
def test_outstanding_reaches_zero_after_all_emis(principal, rate, tenure):
    """Test deducting the EMI tenure times clears total payable exactly"""
    terms = calculate_loan_terms(principal, rate, tenure)

    outstanding = terms.total_payable_cents
    for _ in range(tenure):
        outstanding -= terms.emi_cents

    assert outstanding == 0


def test_calculate_emi_rejects_bad_input():
    """Test EMI calculation rejects non-positive inputs"""
    with pytest.raises(ValidationError):
        calculate_emi(100000, 10.0, 0)
    with pytest.raises(ValidationError):
        calculate_emi(0, 10.0, 12)
    with pytest.raises(ValidationError):
        calculate_emi(100000, -1.0, 12)


def test_schedule_principal_parts_sum_to_principal():
    """Test last row absorbs rounding so principal is fully repaid"""
    schedule = generate_amortization_schedule(2500000, 9.5, 60, date(2026, 1, 1))

    assert len(schedule) == 60
    assert sum(entry.principal_cents for entry in schedule) == 2500000
    assert schedule[-1].remaining_principal_cents == 0


def test_schedule_interest_charged_on_opening_balance():
    """Test each row charges interest on the balance it starts with"""
    schedule = generate_amortization_schedule(100000, 12.0, 12, date(2026, 1, 1))

    assert schedule[0].interest_cents == 1000  # 1% of 100000
    assert schedule[0].principal_cents == 8885 - 1000
    assert schedule[1].interest_cents == round((100000 - 7885) * 0.01)


def test_schedule_due_dates_are_monthly():
    """Test schedule due dates advance one month at a time"""
    schedule = generate_amortization_schedule(120000, 0, 12, date(2026, 1, 31))

    assert schedule[0].due_date == date(2026, 1, 31)
    assert schedule[1].due_date == date(2026, 2, 28)  # Clamped
    assert schedule[2].due_date == date(2026, 3, 31)
    assert schedule[11].due_date == date(2026, 12, 31)
    assert all(entry.payment_cents == 10000 for entry in schedule)
