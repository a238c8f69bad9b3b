"""
Trend windows: one resolved (user, timezone, civil range, filters) tuple per
request, shared by the daily, category, median and pattern aggregators.

The timezone is read once when the window is opened, and "today" is fixed at
that moment, so every aggregate computed from one window agrees on its range.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.models.moment import Moment
from app.services import event_store
from app.services.bucketing import (
    DateRange,
    civil_date,
    instant_bounds,
    local_midnight,
    local_today,
    resolve_window,
)


@dataclass(frozen=True)
class TrendWindow:
    user_id: str
    tz: str
    label: str
    range: Optional[DateRange]     # None → "all"
    action: str
    significance_only: bool
    today: date


def open_window(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
) -> TrendWindow:
    """Validate inputs and resolve the civil range before touching moments."""
    user_id = event_store.require_user(user_id)
    action = event_store.normalise_action(action)
    zone = tz or event_store.get_timezone(db, user_id)
    return TrendWindow(
        user_id=user_id,
        tz=zone,
        label=range_label if start is None else "custom",
        range=resolve_window(range_label, zone, start, end, now),
        action=action,
        significance_only=significance_only,
        today=local_today(zone, now),
    )


def fetch_range(db: Session, window: TrendWindow, date_range: DateRange) -> list[Moment]:
    """Qualifying moments whose civil date lies in `date_range`."""
    lower, upper = instant_bounds(date_range.start, date_range.end, window.tz)
    return event_store.query_moments(
        db,
        window.user_id,
        lower=lower,
        upper=upper,
        action=window.action,
        significance_only=window.significance_only,
    )


def fetch_window(db: Session, window: TrendWindow) -> list[Moment]:
    """
    Qualifying moments for the window. For "all" there is no lower bound and
    the upper bound is the end of today in the user's timezone.
    """
    if window.range is not None:
        return fetch_range(db, window, window.range)
    return event_store.query_moments(
        db,
        window.user_id,
        lower=None,
        upper=local_midnight(window.today + timedelta(days=1), window.tz),
        action=window.action,
        significance_only=window.significance_only,
    )


def effective_range(window: TrendWindow, moments: list[Moment]) -> Optional[DateRange]:
    """
    The concrete civil range a window covers. For "all" that is the first
    qualifying moment's date through today; None when there are no moments.
    """
    if window.range is not None:
        return window.range
    if not moments:
        return None
    first = min(civil_date(m.happened_at, window.tz) for m in moments)
    return DateRange(start=min(first, window.today), end=window.today)
