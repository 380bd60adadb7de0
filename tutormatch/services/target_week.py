"""
Target Week Helpers

Every batch of requests is scheduled against the Monday that starts its week.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union

from tutormatch.exceptions import InvalidTargetWeekError


def current_monday(today: Optional[date] = None) -> date:
    """Monday of the week containing today."""
    today = today or date.today()
    return today - timedelta(days=today.weekday())


def upcoming_monday(today: Optional[date] = None) -> date:
    """
    Default target week for scheduled and manual runs.

    This is the Monday of next week, so a run on a Monday schedules the
    following Monday rather than the current day.
    """
    return current_monday(today) + timedelta(days=7)


def following_week(target_week: date) -> date:
    return target_week + timedelta(days=7)


def ensure_monday(target_week: Union[date, datetime]) -> date:
    """
    Validate a target week.

    Raises:
        InvalidTargetWeekError: If the date is not a Monday
    """
    if isinstance(target_week, datetime):
        target_week = target_week.date()
    if not isinstance(target_week, date):
        raise InvalidTargetWeekError(f"Invalid target week: {target_week!r}")
    if target_week.weekday() != 0:
        raise InvalidTargetWeekError(
            f"Target week must be a Monday, got {target_week.isoformat()} ({target_week.strftime('%A')})"
        )
    return target_week


def parse_target_week(value: str) -> date:
    """
    Parse a YYYY-MM-DD string into a Monday date.

    Non-Monday input is a usage error and is never rounded to a nearby Monday.

    Raises:
        InvalidTargetWeekError: If the string is malformed or not a Monday
    """
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError):
        raise InvalidTargetWeekError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")
    return ensure_monday(parsed)
