"""Bucket alignment helpers. All timestamps are naive UTC."""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def floor_hour(value: datetime) -> datetime:
    return value.replace(minute=0, second=0, microsecond=0)


def floor_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def day_of(value: datetime | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def month_start(value: datetime | date) -> date:
    return date(value.year, value.month, 1)


def add_months(value: date, months: int) -> date:
    """Shift a first-of-month date by a signed number of months."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def day_range(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) datetime interval covering one calendar day."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)
