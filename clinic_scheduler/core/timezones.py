"""Civil-day arithmetic for the clinic time zone.

All instants handed out are aware UTC datetimes. Day ranges are half-open:
``[start_utc, end_utc)``.
"""
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from babel.dates import format_datetime

from clinic_scheduler.core.errors import InvalidDateFormat

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DAY = timedelta(hours=24)


@dataclass(frozen=True)
class DayRange:
    start_utc: datetime
    end_utc: datetime


@dataclass(frozen=True)
class WeekRange:
    start_ymd: str
    total_days: int
    start_utc: datetime
    end_utc: datetime

    @property
    def days(self) -> list[str]:
        first = date.fromisoformat(self.start_ymd)
        return [(first + timedelta(days=i)).isoformat() for i in range(self.total_days)]


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def as_aware_utc(dt: datetime) -> datetime:
    """Naive values read back from the DB are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def offset_minutes_at(instant: datetime, tz: str) -> int:
    """UTC offset of ``tz`` in effect at ``instant``, in minutes (DST-aware)."""
    local = as_aware_utc(instant).astimezone(ZoneInfo(tz))
    return int(local.utcoffset().total_seconds() // 60)


def civil_to_utc(
    tz: str,
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """UTC instant for a wall-clock time in ``tz``.

    Two-pass fixed point: take the wall time as if it were UTC, look up the
    offset there, correct, and look up the offset again at the corrected
    guess. Times inside a DST gap or overlap resolve deterministically to one
    of the neighbouring instants.
    """
    try:
        naive = datetime(year, month, day, hour, minute, second, tzinfo=UTC)
    except (TypeError, ValueError) as e:
        raise InvalidDateFormat(detail=f"invalid civil time {year}-{month}-{day} {hour}:{minute}:{second}") from e
    first = offset_minutes_at(naive, tz)
    guess = naive - timedelta(minutes=first)
    second_offset = offset_minutes_at(guess, tz)
    return naive - timedelta(minutes=second_offset)


def parse_ymd(ymd: str | date) -> date:
    if isinstance(ymd, date):
        return ymd
    s = str(ymd or "").strip()
    if not _YMD_RE.match(s):
        raise InvalidDateFormat(detail=f"expected YYYY-MM-DD, got {ymd!r}")
    try:
        return date.fromisoformat(s)
    except ValueError as e:
        raise InvalidDateFormat(detail=f"invalid calendar date {s!r}") from e


def local_date(instant: datetime, tz: str) -> date:
    return as_aware_utc(instant).astimezone(ZoneInfo(tz)).date()


def local_ymd(instant: datetime, tz: str) -> str:
    return local_date(instant, tz).isoformat()


def day_range_for(tz: str, ymd: str | date) -> DayRange:
    d = parse_ymd(ymd)
    start = civil_to_utc(tz, d.year, d.month, d.day)
    return DayRange(start_utc=start, end_utc=start + DAY)


def next_day_range_utc(tz: str, now: datetime | None = None) -> DayRange:
    """Day range for tomorrow, relative to ``now``'s civil date in ``tz``."""
    today = local_date(now or utc_now(), tz)
    return day_range_for(tz, today + timedelta(days=1))


def week_range_until_sunday(tz: str, now: datetime | None = None) -> WeekRange:
    """Civil today through civil Sunday, inclusive. Sunday alone counts 1 day."""
    today = local_date(now or utc_now(), tz)
    days_until_sunday = 6 - today.weekday()
    sunday = today + timedelta(days=days_until_sunday)
    return WeekRange(
        start_ymd=today.isoformat(),
        total_days=days_until_sunday + 1,
        start_utc=day_range_for(tz, today).start_utc,
        end_utc=day_range_for(tz, sunday).end_utc,
    )


def format_local(instant: datetime, tz: str, locale: str = "pt_BR") -> str:
    """Display string in the clinic locale, e.g. ``quinta-feira, 04/09/2025, 19:05``."""
    return format_datetime(
        as_aware_utc(instant),
        "EEEE, dd/MM/yyyy, HH:mm",
        tzinfo=ZoneInfo(tz),
        locale=locale,
    )
