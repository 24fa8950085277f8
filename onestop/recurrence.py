"""
Recurring Schedule Arithmetic

Month and year steps are calendar-aware: the day is clamped to the last
day of a shorter month (Jan 31 + 1 month -> Feb 29 in a leap year,
Feb 29 + 1 year -> Feb 28).
"""

from datetime import date, datetime, timedelta
from typing import Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from onestop.errors import InvalidIntervalError, ValidationError
from onestop.models.transaction import RecurringInterval


DateLike = Union[date, datetime, str]

_STEPS = {
    RecurringInterval.DAILY: timedelta(days=1),
    RecurringInterval.WEEKLY: timedelta(days=7),
    RecurringInterval.MONTHLY: relativedelta(months=1),
    RecurringInterval.YEARLY: relativedelta(years=1),
}


def _parse_start(start: DateLike) -> Union[date, datetime]:
    if isinstance(start, str):
        text = start.strip()
        try:
            # Bare dates stay dates; anything with a time part becomes a datetime
            if len(text) == 10:
                return date.fromisoformat(text)
            return date_parser.isoparse(text)
        except (ValueError, OverflowError):
            raise ValidationError(f"Invalid start date: {start!r}")
    return start


def calculate_next_recurring_date(
    start: DateLike,
    interval: Union[RecurringInterval, str],
) -> Union[date, datetime]:
    """
    Return start advanced by exactly one recurrence period.

    Args:
        start: date, datetime or ISO 8601 string
        interval: DAILY, WEEKLY, MONTHLY or YEARLY

    Returns:
        A value of the same kind as start (a date for bare ISO dates)

    Raises:
        InvalidIntervalError: If interval is not a known period
    """
    try:
        period = RecurringInterval(interval.upper() if isinstance(interval, str) else interval)
    except ValueError:
        raise InvalidIntervalError(f"Unknown recurring interval: {interval!r}")

    return _parse_start(start) + _STEPS[period]
