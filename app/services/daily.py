"""
Daily aggregator — dense per-day given/received/total counts.

The series is dense: every civil date in the range appears, including days
with no activity, because charts and daily-average figures assume a complete
series. Dates are ascending.

Public API
----------
bucket_daily(moments, date_range, tz)     -> list[DailyCount]   (pure)
daily_average(series)                     -> float              (pure)
get_daily_counts(db, user_id, range_label, action, significance_only, ...)
                                          -> list[DailyCount]
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.moment import Moment
from app.services.bucketing import DateRange, civil_date, iter_dates
from app.services.windows import effective_range, fetch_window, open_window


@dataclass
class DailyCount:
    date: date
    given: int = 0
    received: int = 0

    @property
    def total(self) -> int:
        return self.given + self.received

    def to_dict(self) -> dict:
        return {
            "date": str(self.date),
            "given": self.given,
            "received": self.received,
            "total": self.total,
        }


def bucket_daily(
    moments: Iterable[Moment],
    date_range: Optional[DateRange],
    tz: str,
) -> list[DailyCount]:
    """
    Zero-fill every date in `date_range`, then count each moment on its civil
    date. Moments outside the range are ignored. No range → empty series.
    """
    if date_range is None:
        return []
    buckets = {d: DailyCount(date=d) for d in iter_dates(date_range.start, date_range.end)}
    for m in moments:
        bucket = buckets.get(civil_date(m.happened_at, tz))
        if bucket is None:
            continue
        if m.action == "given":
            bucket.given += 1
        else:
            bucket.received += 1
    return [buckets[d] for d in sorted(buckets)]


def daily_average(series: list[DailyCount]) -> float:
    """Mean moments per active day (days with zero moments do not count)."""
    active = [d for d in series if d.total > 0]
    if not active:
        return 0.0
    return round(sum(d.total for d in active) / len(active), 2)


def get_daily_counts(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> list[DailyCount]:
    window = open_window(
        db, user_id, range_label, action, significance_only, start=start, end=end, now=now
    )
    moments = fetch_window(db, window)
    return bucket_daily(moments, effective_range(window, moments), window.tz)
