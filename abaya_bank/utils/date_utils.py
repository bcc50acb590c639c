"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import List, Tuple


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(from_date: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's length"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return from_date.replace(year=year, month=month, day=day)


def first_of_next_month(from_date: date) -> date:
    """First calendar day of the month after from_date"""
    return add_months(from_date.replace(day=1), 1)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Half-open [start, end) datetime range covering a calendar month"""
    start = datetime(year, month, 1)
    end_date = add_months(start.date(), 1)
    return start, datetime(end_date.year, end_date.month, 1)


def period_start(period: str, now: datetime) -> datetime:
    """Start of a reporting window ending at now (week, month or year)"""
    if period == "week":
        return now - timedelta(days=7)
    if period == "year":
        return datetime.combine(add_months(now.date(), -12), now.time())
    return datetime.combine(add_months(now.date(), -1), now.time())


def last_n_months(now: datetime, n: int = 12) -> List[Tuple[datetime, datetime]]:
    """Month ranges for the last n calendar months, oldest first, current month last"""
    ranges = []
    for offset in range(n - 1, -1, -1):
        first = add_months(now.date().replace(day=1), -offset)
        ranges.append(month_bounds(first.year, first.month))
    return ranges
