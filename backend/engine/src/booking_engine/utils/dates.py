"""Date-only calendar math.

Every stay, period and block is a half-open interval ``[start, end)``:
the start night is occupied, the end date (check-out) is not.
"""

import datetime as dt
import re
from collections.abc import Iterator

from booking_engine.models.errors import InvalidDate

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MS_PER_DAY = 86_400_000


def normalize_date_only(value: str | dt.date | dt.datetime) -> dt.date:
    """Normalize a date-only or ISO datetime value to its UTC calendar date.

    Args:
        value: ``YYYY-MM-DD`` string, ISO 8601 datetime string, ``date`` or
            ``datetime``. Aware datetimes are converted to UTC first; naive
            datetimes are taken as UTC.

    Returns:
        The calendar date in UTC.

    Raises:
        InvalidDate: If the value cannot be parsed.
    """
    if isinstance(value, dt.datetime):
        return _utc_date(value)
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate(value)

    text = value.strip()
    try:
        if _DATE_ONLY_RE.match(text):
            return dt.date.fromisoformat(text)
        # fromisoformat() before 3.11 rejects a trailing Z
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return _utc_date(dt.datetime.fromisoformat(text))
    except ValueError as e:
        raise InvalidDate(value) from e


def _utc_date(value: dt.datetime) -> dt.date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(dt.UTC).date()


def nights_between(start: dt.date, end: dt.date) -> int:
    """Number of nights in ``[start, end)``.

    Ordering is not validated; ``end <= start`` yields zero or a negative count.
    """
    return (end - start).days


def ranges_overlap(
    a_start: dt.date, a_end: dt.date, b_start: dt.date, b_end: dt.date
) -> bool:
    """Half-open interval overlap test."""
    return a_start < b_end and a_end > b_start


def iter_nights(start: dt.date, end: dt.date) -> Iterator[dt.date]:
    """Yield every occupied night in ``[start, end)``."""
    current = start
    while current < end:
        yield current
        current += dt.timedelta(days=1)


def days_before_start(now: dt.datetime, start: dt.date) -> int:
    """Whole days from ``now`` until midnight UTC of ``start``, floored at zero.

    A stay that already started (or ended) yields 0.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.UTC)
    start_at = dt.datetime.combine(start, dt.time.min, tzinfo=dt.UTC)
    diff_ms = (start_at - now) // dt.timedelta(milliseconds=1)
    if diff_ms <= 0:
        return 0
    return diff_ms // MS_PER_DAY


def utc_now() -> dt.datetime:
    """Current time as an aware UTC datetime."""
    return dt.datetime.now(dt.UTC)


def format_datetime(value: dt.datetime) -> str:
    """Fixed-width UTC ISO timestamp with a trailing Z.

    Stored timestamps are compared as strings, so they always carry
    microseconds and the same zone suffix.
    """
    return value.astimezone(dt.UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_datetime(value: str) -> dt.datetime:
    """Parse a stored ISO timestamp into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


def parse_optional_datetime(value: str | None) -> dt.datetime | None:
    return parse_datetime(value) if value else None
