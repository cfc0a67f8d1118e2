"""Date utilities for weekday resolution and the weekly refresh schedule"""

from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta, weekday

from .config import WEEKDAYS
from .exceptions import ValidationError


def weekday_name(moment: Optional[datetime] = None) -> str:
    """
    Resolve the weekday identifier for a moment (server-local now by default).

    Returns:
        One of "monday" ... "sunday"
    """
    moment = moment or datetime.now()
    return WEEKDAYS[moment.weekday()]


def validate_weekday(day: str) -> str:
    """
    Validate a weekday identifier.

    Raises:
        ValidationError: If day is not one of the seven fixed identifiers
    """
    if day not in WEEKDAYS:
        raise ValidationError(f"Invalid day. Must be one of: {', '.join(WEEKDAYS)}")
    return day


def next_weekly_run(
    now: datetime,
    day_of_week: int = 0,
    hour: int = 0,
    minute: int = 0,
) -> datetime:
    """
    Next occurrence of a weekly wall-clock time strictly after now.

    Args:
        now: Reference moment
        day_of_week: 0=Monday ... 6=Sunday
        hour: Hour of day
        minute: Minute of hour

    Returns:
        Datetime of the next run
    """
    candidate = now + relativedelta(
        weekday=weekday(day_of_week),
        hour=hour,
        minute=minute,
        second=0,
        microsecond=0,
    )
    if candidate <= now:
        candidate += relativedelta(weeks=1)
    return candidate
