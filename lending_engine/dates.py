"""Calendar helpers for schedules and accrual windows"""

from datetime import date, datetime, timedelta
from typing import Optional, Union
import calendar


DateLike = Union[date, datetime, str, None]


def add_months(start_date: date, months: int) -> date:
    """Add calendar months, clamping to the last valid day of the target month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_weeks(start_date: date, weeks: int) -> date:
    return start_date + timedelta(days=7 * weeks)


def format_iso_date(value: date) -> str:
    """Format as YYYY-MM-DD"""
    return value.strftime("%Y-%m-%d")


def parse_iso_date(value: DateLike) -> Optional[date]:
    """
    Read a calendar date from a stored value.

    Accepts date, datetime (time of day dropped) or an ISO string; any
    time component in the string is ignored. Returns None when the value is
    empty or not a valid date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative if end precedes start)"""
    return (end - start).days
