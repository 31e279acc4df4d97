"""Date helpers shared by the GSC and snapshot handlers."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple

DEFAULT_WINDOW_DAYS = 28
GSC_DELAY_DAYS = 2


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD (a trailing time part is ignored)."""
    return datetime.strptime(str(value).split("T")[0].strip(), "%Y-%m-%d").date()


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def days_ago(days: int, today: Optional[date] = None) -> str:
    """YYYY-MM-DD for `days` before today (UTC)."""
    return format_date((today or today_utc()) - timedelta(days=days))


def parse_date_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    account_for_gsc_delay: bool = False,
    today: Optional[date] = None,
) -> Tuple[str, str]:
    """
    Resolve a request date range with defaults.

    Missing start defaults to 28 days before today, even when an end
    date is given. With account_for_gsc_delay, a defaulted end date is
    moved back 2 days.

    Returns:
        (start_date, end_date) as YYYY-MM-DD strings
    """
    current = today or today_utc()

    end = parse_iso_date(end_date) if end_date else current
    start = parse_iso_date(start_date) if start_date else current - timedelta(days=DEFAULT_WINDOW_DAYS)

    if account_for_gsc_delay and not end_date:
        end = end - timedelta(days=GSC_DELAY_DAYS)

    return format_date(start), format_date(end)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds and Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
