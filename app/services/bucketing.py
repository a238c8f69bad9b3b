"""
Timezone-aware date bucketing.

Every aggregate in the trends core attributes an absolute instant to the
civil date it falls on in the owner's IANA timezone. Range filters arrive as
civil dates and are widened to absolute instants in that same timezone, so
an event at 23:30 local time is never pushed into the next day by a
UTC-midnight bound.

Public API
----------
load_zone(tz)                        -> ZoneInfo
civil_date(instant, tz)              -> date
local_today(tz, now)                 -> date
instant_bounds(start, end, tz)       -> (lower_utc, upper_utc)   [lower, upper)
resolve_range(label, tz, now)        -> DateRange | None         (None = "all")
resolve_window(label, tz, start, end, now) -> DateRange | None
validate_range(start, end)           -> None | raises InvalidRangeError
iter_dates(start, end)               -> Iterator[date]

All functions are pure; `now` is injectable for tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings
from app.core.errors import InvalidRangeError, InvalidTimezoneError


RANGE_LABELS = ("all", "7d", "30d", "90d", "365d")
PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "365d": 365}
DEFAULT_TZ = "UTC"


@dataclass(frozen=True)
class DateRange:
    """Inclusive civil-date range."""
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def baseline(self) -> "DateRange":
        """The window of equal length immediately before this one."""
        return DateRange(
            start=self.start - timedelta(days=self.days),
            end=self.start - timedelta(days=1),
        )


# ---------------------------------------------------------------------------
# Zones and instants
# ---------------------------------------------------------------------------

@lru_cache(maxsize=256)
def load_zone(tz: Optional[str]) -> ZoneInfo:
    name = tz or DEFAULT_TZ
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidTimezoneError(name)


def as_utc(instant: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops offsets) and normalise aware ones."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def civil_date(instant: datetime, tz: Optional[str] = DEFAULT_TZ) -> date:
    """Calendar date of `instant` as seen by a wall clock in `tz`."""
    return as_utc(instant).astimezone(load_zone(tz)).date()


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def local_today(tz: Optional[str] = DEFAULT_TZ, now: Optional[datetime] = None) -> date:
    return civil_date(now or utc_now(), tz)


def local_midnight(day: date, tz: Optional[str] = DEFAULT_TZ) -> datetime:
    """The instant (UTC) at which `day` begins in `tz`."""
    return datetime.combine(day, time.min, tzinfo=load_zone(tz)).astimezone(timezone.utc)


def instant_bounds(
    start: date,
    end: date,
    tz: Optional[str] = DEFAULT_TZ,
) -> tuple[datetime, datetime]:
    """
    Absolute bounds covering the civil dates [start, end] in `tz`.

    Returns (lower, upper) in UTC where lower is start 00:00 local and upper is
    the local midnight after `end`. Queries use `lower <= t < upper`, which is
    the inclusive `end 23:59:59.999999` bound without losing sub-second events.
    """
    validate_range(start, end)
    return local_midnight(start, tz), local_midnight(end + timedelta(days=1), tz)


# ---------------------------------------------------------------------------
# Civil ranges
# ---------------------------------------------------------------------------

def validate_range(start: Optional[date], end: Optional[date]) -> None:
    if start is not None and end is not None and end < start:
        raise InvalidRangeError(
            message=f"Range end {end} is before start {start}.",
            start=start,
            end=end,
        )


def resolve_range(
    label: str,
    tz: Optional[str] = DEFAULT_TZ,
    now: Optional[datetime] = None,
) -> Optional[DateRange]:
    """
    Resolve a range label relative to today in `tz`.

    "7d" is today plus the six days before it; "all" is unbounded (None).
    """
    if label not in RANGE_LABELS:
        raise InvalidRangeError(
            message=f"Unknown range {label!r}. Expected one of {', '.join(RANGE_LABELS)}.",
            label=label,
        )
    if label == "all":
        return None
    today = local_today(tz, now)
    return DateRange(start=today - timedelta(days=PERIOD_DAYS[label] - 1), end=today)


def resolve_window(
    label: str = "30d",
    tz: Optional[str] = DEFAULT_TZ,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Optional[DateRange]:
    """
    Explicit dates win over the label. A lone `start` runs to today; a lone
    `end` is rejected because the window would have no lower bound. Explicit
    ranges are capped at MAX_RANGE_DAYS and must leave room for their baseline.
    """
    if start is None and end is None:
        return resolve_range(label, tz, now)
    if start is None:
        raise InvalidRangeError(message="An explicit end requires an explicit start.", end=end)
    end = end or local_today(tz, now)
    validate_range(start, end)
    date_range = DateRange(start=start, end=end)
    if date_range.days > settings.MAX_RANGE_DAYS:
        raise InvalidRangeError(
            message=f"Range spans {date_range.days} days; at most {settings.MAX_RANGE_DAYS} are allowed.",
            start=start,
            end=end,
        )
    # The baseline window and the local-midnight bounds (shifted by up to a
    # day in UTC) must stay inside the calendar.
    if (start - date.min).days <= date_range.days or (date.max - end).days < 2:
        raise InvalidRangeError(
            message=f"Range {start}..{end} is too close to the limits of the calendar.",
            start=start,
            end=end,
        )
    return date_range


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Inclusive, ascending."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
