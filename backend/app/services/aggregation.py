# backend/app/services/aggregation.py
"""
Shared date and number helpers for the statistics services
"""

import calendar
import math
import re
from datetime import date, datetime, timedelta
from typing import Tuple

# Month windows reach one month either side of the requested month
MIN_YEAR = 2
MAX_YEAR = 9998


def today() -> date:
    """Current UTC date. Tests monkeypatch this to pin the calendar."""
    return datetime.utcnow().date()


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, the way client percentages expect"""
    return int(math.floor(value + 0.5))


def round_2dp(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month"""
    days_in_month = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, days_in_month)


def month_window(year: int, month: int) -> Tuple[datetime, datetime]:
    """Half-open datetime window [first day 00:00, first day of next month 00:00)"""
    first_day, last_day = month_bounds(year, month)
    start = datetime.combine(first_day, datetime.min.time())
    end = datetime.combine(last_day + timedelta(days=1), datetime.min.time())
    return start, end


def day_window(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD string, raising ValueError otherwise"""
    if not value or not ISO_DATE_PATTERN.match(value):
        raise ValueError(f"Date must be in YYYY-MM-DD format, got {value!r}")
    return datetime.strptime(value, "%Y-%m-%d").date()


def safe_ratio(actual: float, goal: float) -> float:
    if not goal:
        return 0.0
    return (actual or 0) / goal
