import math
from datetime import date, datetime, time, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_start_utc(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def elapsed_days(since: datetime, now: datetime) -> float:
    return (as_utc(now) - as_utc(since)).total_seconds() / SECONDS_PER_DAY


def days_until(target: date, now: datetime) -> int:
    """Whole days from now until the start of target, rounded up."""
    delta = day_start_utc(target) - as_utc(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def format_date_de(value: date) -> str:
    return value.strftime("%d.%m.%Y")
