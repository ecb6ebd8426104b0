"""Time utilities for consistent timestamp handling."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def local_today(tz_name: str, now: datetime | None = None) -> date:
    """Return the calendar date in `tz_name` at `now` (default: current time).

    Daily statistics are bucketed by this date, so a payment at 23:30 UTC
    counts for the next day in Europe/Madrid.
    """
    moment = now or utc_now()
    return moment.astimezone(ZoneInfo(tz_name)).date()


def last_n_days(days: int, today: date) -> list[date]:
    """Return `days` dates ending at `today`, oldest first."""
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def epoch_millis(now: datetime | None = None) -> int:
    """Milliseconds since the Unix epoch."""
    moment = now or utc_now()
    return int(moment.timestamp() * 1000)
