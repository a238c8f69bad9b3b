"""
Secondary trend figures shown next to the main charts.

Public API
----------
weekday_breakdown(moments, tz)          -> list[WeekdayCount]   (pure, 7 rows)
compute_balance(given, received)        -> Balance              (pure)
balance_message(balance)                -> str                  (pure label)
get_weekly_patterns(db, user_id, range_label, action, significance_only, ...)
get_monthly_overview(db, user_id, action, significance_only, now)
get_moment_bounds(db, user_id)
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.moment import Moment
from app.services import event_store
from app.services.bucketing import DateRange, civil_date
from app.services.stats import pct, round1
from app.services.windows import fetch_range, fetch_window, open_window

WEEKDAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)

# Balance thresholds (percent of all moments)
_SKEW_THRESHOLD = 70
_BALANCED_SPREAD = 10


@dataclass
class WeekdayCount:
    weekday: int          # 0 = Monday
    weekday_name: str
    total: int = 0
    given: int = 0
    received: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Balance:
    given_pct: float
    received_pct: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MonthlyOverview:
    current_month_start: date
    current_month_count: int
    previous_month_count: int
    delta_pct: Optional[float]   # None when the previous month is empty

    def to_dict(self) -> dict:
        return {
            "current_month_start": str(self.current_month_start),
            "current_month_count": self.current_month_count,
            "previous_month_count": self.previous_month_count,
            "delta_pct": self.delta_pct,
        }


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def weekday_breakdown(moments: Iterable[Moment], tz: str) -> list[WeekdayCount]:
    rows = [WeekdayCount(weekday=i, weekday_name=name) for i, name in enumerate(WEEKDAY_NAMES)]
    for m in moments:
        row = rows[civil_date(m.happened_at, tz).weekday()]
        row.total += 1
        if m.action == "given":
            row.given += 1
        else:
            row.received += 1
    return rows


def compute_balance(given: int, received: int) -> Balance:
    total = given + received
    return Balance(
        given_pct=round1(pct(given, total)),
        received_pct=round1(pct(received, total)),
    )


def balance_message(balance: Balance) -> str:
    if balance.given_pct == 0 and balance.received_pct == 0:
        return "empty"
    if balance.given_pct > _SKEW_THRESHOLD:
        return "giver"
    if balance.received_pct > _SKEW_THRESHOLD:
        return "receiver"
    if abs(balance.given_pct - balance.received_pct) < _BALANCED_SPREAD:
        return "balanced"
    if balance.given_pct > balance.received_pct:
        return "leaning_giver"
    return "leaning_receiver"


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _previous_month_start(month_start: date) -> date:
    return _month_start(month_start - timedelta(days=1))


# ---------------------------------------------------------------------------
# Public: DB-backed
# ---------------------------------------------------------------------------

def get_weekly_patterns(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> list[WeekdayCount]:
    window = open_window(
        db, user_id, range_label, action, significance_only, start=start, end=end, now=now
    )
    return weekday_breakdown(fetch_window(db, window), window.tz)


def get_monthly_overview(
    db: Session,
    user_id: str,
    action: Optional[str] = "both",
    significance_only: bool = False,
    now: Optional[datetime] = None,
) -> MonthlyOverview:
    """
    Moments in the current calendar month so far versus the whole previous
    month, both in the user's timezone.
    """
    window = open_window(db, user_id, "all", action, significance_only, now=now)
    current_start = _month_start(window.today)
    previous_start = _previous_month_start(current_start)

    current = fetch_range(db, window, DateRange(current_start, window.today))
    previous = fetch_range(
        db, window, DateRange(previous_start, current_start - timedelta(days=1))
    )
    delta = None
    if previous:
        delta = round1((len(current) - len(previous)) / len(previous) * 100)
    return MonthlyOverview(
        current_month_start=current_start,
        current_month_count=len(current),
        previous_month_count=len(previous),
        delta_pct=delta,
    )


def get_moment_bounds(db: Session, user_id: str) -> dict:
    """First and last civil dates with a moment, or nulls for an empty journal."""
    user_id = event_store.require_user(user_id)
    tz = event_store.get_timezone(db, user_id)
    first, last = event_store.first_and_last_instant(db, user_id)
    return {
        "min_date": str(civil_date(first, tz)) if first else None,
        "max_date": str(civil_date(last, tz)) if last else None,
        "timezone": tz,
    }

