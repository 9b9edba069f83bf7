import pytz
from datetime import datetime
from typing import Callable, Optional, Union

utc = pytz.utc

MS_PER_DAY = 24 * 60 * 60 * 1000

# A clock returns the current timezone-aware datetime
Clock = Callable[[], datetime]


def get_timezone(name: Optional[str] = None):
    """Resolve a timezone name, falling back to UTC"""
    if not name:
        return utc
    return pytz.timezone(name)


def ensure_timezone_aware(dt, target_timezone=utc):
    """Ensure datetime object is timezone-aware and in the target timezone"""
    if dt is None:
        return None

    if isinstance(dt, str):
        # If it's a string, parse it first
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))

    if dt.tzinfo is not None:
        return dt.astimezone(target_timezone)
    else:
        # Timezone-naive, assume it's in target timezone
        return target_timezone.localize(dt)


def now_utc() -> datetime:
    """Get current datetime in UTC"""
    return datetime.now(utc)


def to_millis(dt: datetime) -> int:
    """Milliseconds since the epoch for a datetime"""
    return int(ensure_timezone_aware(dt).timestamp() * 1000)


def from_millis(ms: Union[int, float]) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=utc)


def add_days(dt: datetime, days: float) -> datetime:
    """Add a fractional number of days, converted through milliseconds"""
    return from_millis(to_millis(dt) + days * MS_PER_DAY)


def days_between(earlier, later) -> float:
    """Fractional days from earlier to later (never negative)"""
    earlier_aware = ensure_timezone_aware(earlier)
    later_aware = ensure_timezone_aware(later)
    delta = (later_aware - earlier_aware).total_seconds() / 86400
    return max(0.0, delta)




def _span(seconds: float) -> str:
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        count = int(seconds // size)
        if count:
            return f"{count} {unit}{'s' if count != 1 else ''}"
    return "less than a minute"


def format_relative_timing(review_date: datetime, reference: Optional[datetime] = None) -> str:
    """
    Short label for a review date relative to reference (default now).

    Calendar days are counted in the review date's own timezone.
    """
    due = review_date if review_date.tzinfo is not None else utc.localize(review_date)
    if reference is None:
        reference = now_utc()
    ref = ensure_timezone_aware(reference).astimezone(due.tzinfo)

    seconds = (due - ref).total_seconds()
    if seconds < 0:
        return f"overdue by {_span(-seconds)}"

    day_gap = (due.date() - ref.date()).days
    if day_gap == 0:
        return f"due today, in {_span(seconds)}"
    if day_gap == 1:
        return "due tomorrow"
    if day_gap < 7:
        return f"due {due:%A} (in {day_gap} days)"
    return f"due in {day_gap} days"
