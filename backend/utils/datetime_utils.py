from datetime import datetime, date, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def parse_iso_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip()[:10])
    except ValueError:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value}")


def start_of_week(d: date) -> date:
    """Return Monday of the week containing d."""
    return d - timedelta(days=d.weekday())


def date_for_day(week_start: date, day_index: int) -> date:
    """Date of the day_index-th day (0=Monday) of the week starting at week_start."""
    return week_start + timedelta(days=day_index)


def calendar_day_of_week(day_index: int) -> int:
    """
    Convert a Monday-start index (0=Mon .. 6=Sun) into calendar numbering
    (0=Sun, 1=Mon .. 6=Sat).
    """
    return (day_index + 1) % 7


def format_week_range(week_start: date) -> str:
    """e.g. "1 Jan - 7 Jan, 2024"."""
    end = week_start + timedelta(days=6)
    return f"{week_start.day} {week_start:%b} - {end.day} {end:%b}, {end.year}"
