"""Clock and week helpers.

All timestamps are stored as naive UTC datetimes. Every place that keys
assignments by week goes through :func:`week_start_for` so lookups,
creation and status queries always agree on the same boundary.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional, Tuple

from housemate.config import settings

WEEK = timedelta(days=7)


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def week_start_for(moment: datetime, first_weekday: Optional[int] = None) -> datetime:
    """
    Return the canonical start of the week containing ``moment``.

    Args:
        moment: Any point in time (naive UTC or aware)
        first_weekday: Weekday opening the week (Monday=0 ... Sunday=6),
            defaults to ``settings.WEEK_STARTS_ON``

    Returns:
        Midnight of the most recent ``first_weekday`` on or before ``moment``

    Example:
        >>> week_start_for(datetime(2024, 5, 15, 13, 30), first_weekday=6)
        datetime.datetime(2024, 5, 12, 0, 0)
    """
    if first_weekday is None:
        first_weekday = settings.WEEK_STARTS_ON
    day = to_naive_utc(moment).date()
    offset = (day.weekday() - first_weekday) % 7
    return datetime.combine(day - timedelta(days=offset), time.min)


def current_week_start(now: Optional[datetime] = None) -> datetime:
    """Week start for ``now`` (defaults to the current UTC time)."""
    return week_start_for(now or utcnow())


def week_bounds(week_start: datetime) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` interval covered by the week."""
    return week_start, week_start + WEEK


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Half-open ``[midnight, next midnight)`` interval of the day containing ``moment``."""
    start = datetime.combine(to_naive_utc(moment).date(), time.min)
    return start, start + timedelta(days=1)
