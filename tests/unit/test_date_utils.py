"""Unit tests for date helpers"""

from datetime import date, datetime, timedelta

from abaya_bank.utils.date_utils import add_months, first_of_next_month, last_n_months, month_bounds, period_start


def test_add_months_clamps_day():
    """Test month arithmetic clamps to the last day of short months"""
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)  # Leap year
    assert add_months(date(2026, 3, 15), -3) == date(2025, 12, 15)


def test_first_of_next_month_rolls_year():
    """Test December rolls over to January of the next year"""
    assert first_of_next_month(date(2026, 12, 17)) == date(2027, 1, 1)
    assert first_of_next_month(date(2026, 4, 1)) == date(2026, 5, 1)


def test_month_bounds_is_half_open():
    """Test month bounds run from the 1st up to the next month's 1st"""
    start, end = month_bounds(2026, 12)
    assert start == datetime(2026, 12, 1)
    assert end == datetime(2027, 1, 1)


def test_period_start():
    """Test report period starts for day, week, month and year"""
    now = datetime(2026, 3, 31, 12, 0)
    assert period_start("week", now) == now - timedelta(days=7)
    assert period_start("month", now) == datetime(2026, 2, 28, 12, 0)
    assert period_start("year", now) == datetime(2025, 3, 31, 12, 0)


def test_last_n_months_oldest_first():
    """Test month windows are returned oldest first"""
    ranges = last_n_months(datetime(2026, 2, 10), 12)

    assert len(ranges) == 12
    assert ranges[0][0] == datetime(2025, 3, 1)
    assert ranges[-1] == (datetime(2026, 2, 1), datetime(2026, 3, 1))
