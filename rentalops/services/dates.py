"""Calendar helpers for weekend classification and rental length"""
from datetime import date, datetime
from typing import Optional, Union

import pytz

DEFAULT_TIMEZONE = "America/Vancouver"

# date.weekday(): Monday == 0 ... Sunday == 6
WEEKEND_WEEKDAYS = {4, 5, 6}

DateLike = Union[date, datetime]


def to_local_date(value: DateLike, tz_name: str = DEFAULT_TIMEZONE) -> date:
    """
    Reduce a date or datetime to a calendar date in the reference timezone.
    Naive datetimes are taken as already local; aware ones are converted.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(pytz.timezone(tz_name)).date()
    return value


def localize(value: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Attach the reference timezone to a naive datetime."""
    if value.tzinfo is not None:
        return value
    return pytz.timezone(tz_name).localize(value)


def is_weekend_day(day: DateLike, tz_name: str = DEFAULT_TIMEZONE) -> bool:
    return to_local_date(day, tz_name).weekday() in WEEKEND_WEEKDAYS


def is_weekend_pickup(pickup: Optional[DateLike], tz_name: str = DEFAULT_TIMEZONE) -> bool:
    if pickup is None:
        return False
    return is_weekend_day(pickup, tz_name)


def count_weekend_days(start: Optional[DateLike], days: int, tz_name: str = DEFAULT_TIMEZONE) -> int:
    """
    Count Fri/Sat/Sun among the `days` consecutive calendar days starting at
    `start` (inclusive).
    """
    if start is None or days <= 0:
        return 0
    first_weekday = to_local_date(start, tz_name).weekday()
    full_weeks, remainder = divmod(days, 7)
    return full_weeks * len(WEEKEND_WEEKDAYS) + sum(
        1 for offset in range(remainder)
        if (first_weekday + offset) % 7 in WEEKEND_WEEKDAYS
    )


def rental_days(start: DateLike, end: DateLike, tz_name: str = DEFAULT_TIMEZONE) -> int:
    """Whole calendar days between pickup and return, never less than one."""
    span = (to_local_date(end, tz_name) - to_local_date(start, tz_name)).days
    return max(1, span)
