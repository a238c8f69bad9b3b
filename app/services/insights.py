"""
Home insights: life balance per category, people to reconnect with,
highlights, and the one-call trend summary.

Every figure here is computed from a single TrendWindow, so one request sees
one timezone read and one resolved range even if it runs across midnight.

Public API
----------
compute_category_balance(moments, categories)             -> list[CategoryBalance]  (pure)
compute_opportunities(history, people, tz, date_range, limit) -> list[Opportunity]  (pure)
select_highlights(moments, people, tz)                    -> list[Highlight]        (pure)
get_category_balance(db, user_id, range_label, action, significance_only, ...)
get_opportunities(db, user_id, range_label, action, significance_only, ..., limit)
get_highlights(db, user_id, range_label, action, start, end, now)
get_trend_summary(db, user_id, range_label, action, significance_only, ...) -> dict

Rules
-----
* Category balance counts categorized moments only and lists categories with
  at least one moment in the window, busiest first.
* An opportunity is a person whose most recent moment, as of the window end,
  falls before the window start. `days_since` counts civil days from that
  moment to the window end. Merged people are folded into their terminal
  person. "all" has no before, so it never yields opportunities.
* Highlights are the significant moments in the window, newest first.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.category import Category
from app.models.moment import Moment
from app.models.person import Person
from app.services import event_store
from app.services.bucketing import DateRange, as_utc, civil_date, local_midnight
from app.services.category_share import compute_category_share
from app.services.daily import bucket_daily, daily_average
from app.services.median_gap import compute_median_gaps
from app.services.patterns import balance_message, compute_balance
from app.services.windows import (
    TrendWindow,
    effective_range,
    fetch_range,
    fetch_window,
    open_window,
)

logger = logging.getLogger(__name__)

OPPORTUNITY_LIMIT = 5


@dataclass
class CategoryBalance:
    category_id: int
    name: str
    given_count: int = 0
    received_count: int = 0

    @property
    def total(self) -> int:
        return self.given_count + self.received_count

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Opportunity:
    person_id: int
    display_name: str
    last_recorded: date
    days_since: int

    def to_dict(self) -> dict:
        return {
            "person_id": self.person_id,
            "display_name": self.display_name,
            "last_recorded": str(self.last_recorded),
            "days_since": self.days_since,
        }


@dataclass
class Highlight:
    moment_id: int
    happened_at: datetime
    date: date
    action: str
    category_id: Optional[int]
    person_id: Optional[int]
    description: Optional[str]

    def to_dict(self) -> dict:
        return {
            "moment_id": self.moment_id,
            "happened_at": self.happened_at.isoformat(),
            "date": str(self.date),
            "action": self.action,
            "category_id": self.category_id,
            "person_id": self.person_id,
            "description": self.description,
        }


# ---------------------------------------------------------------------------
# Pure
# ---------------------------------------------------------------------------

def compute_category_balance(
    moments: Iterable[Moment],
    categories: dict[int, Category],
) -> list[CategoryBalance]:
    rows: dict[int, CategoryBalance] = {}
    for m in moments:
        if m.category_id is None:
            continue
        row = rows.get(m.category_id)
        if row is None:
            category = categories.get(m.category_id)
            row = rows[m.category_id] = CategoryBalance(
                category_id=m.category_id,
                name=category.name if category is not None else f"Category {m.category_id}",
            )
        if m.action == "given":
            row.given_count += 1
        else:
            row.received_count += 1
    return sorted(rows.values(), key=lambda r: (-r.total, r.name))


def compute_opportunities(
    history: Iterable[Moment],
    people: dict[int, Person],
    tz: str,
    date_range: Optional[DateRange],
    limit: int = OPPORTUNITY_LIMIT,
) -> list[Opportunity]:
    """People not seen inside `date_range`, longest silence first."""
    if date_range is None or limit <= 0:
        return []
    last_seen: dict[int, date] = {}
    for m in history:
        if m.person_id is None:
            continue
        day = civil_date(m.happened_at, tz)
        if day > date_range.end:
            continue
        terminal = event_store.resolve_person(m.person_id, people)
        if terminal not in last_seen or day > last_seen[terminal]:
            last_seen[terminal] = day

    rows = []
    for person_id, last in last_seen.items():
        if last >= date_range.start:
            continue
        person = people.get(person_id)
        if person is None:
            continue
        rows.append(Opportunity(
            person_id=person_id,
            display_name=person.display_name,
            last_recorded=last,
            days_since=(date_range.end - last).days,
        ))
    rows.sort(key=lambda r: (-r.days_since, r.display_name))
    return rows[:limit]


def select_highlights(
    moments: Iterable[Moment],
    people: dict[int, Person],
    tz: str,
) -> list[Highlight]:
    rows = [
        Highlight(
            moment_id=m.id,
            happened_at=as_utc(m.happened_at),
            date=civil_date(m.happened_at, tz),
            action=str(getattr(m.action, "value", m.action)),
            category_id=m.category_id,
            person_id=(
                event_store.resolve_person(m.person_id, people)
                if m.person_id is not None else None
            ),
            description=m.description,
        )
        for m in moments
        if m.significance
    ]
    rows.sort(key=lambda r: (r.happened_at, r.moment_id), reverse=True)
    return rows


# ---------------------------------------------------------------------------
# Public: DB-backed
# ---------------------------------------------------------------------------

def _history(db: Session, window: TrendWindow, date_range: DateRange) -> list[Moment]:
    return event_store.query_moments(
        db,
        window.user_id,
        upper=local_midnight(date_range.end + timedelta(days=1), window.tz),
        action=window.action,
        significance_only=window.significance_only,
    )


def get_category_balance(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> list[CategoryBalance]:
    window = open_window(
        db, user_id, range_label, action, significance_only, start=start, end=end, now=now
    )
    moments = fetch_window(db, window)
    return compute_category_balance(moments, event_store.query_categories(db, window.user_id))


def get_opportunities(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
    limit: int = OPPORTUNITY_LIMIT,
) -> list[Opportunity]:
    window = open_window(
        db, user_id, range_label, action, significance_only, start=start, end=end, now=now
    )
    if window.range is None:
        return []
    history = _history(db, window, window.range)
    people = event_store.query_people(db, window.user_id)
    rows = compute_opportunities(history, people, window.tz, window.range, limit)
    logger.debug("Found %d reconnect opportunities for %s", len(rows), window.user_id)
    return rows


def get_highlights(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> list[Highlight]:
    window = open_window(
        db, user_id, range_label, action, True, start=start, end=end, now=now
    )
    moments = fetch_window(db, window)
    return select_highlights(moments, event_store.query_people(db, window.user_id), window.tz)


def get_trend_summary(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Daily series, category share, median gaps and balance from one window."""
    window = open_window(
        db, user_id, range_label, action, significance_only, start=start, end=end, now=now
    )
    moments = fetch_window(db, window)
    date_range = effective_range(window, moments)
    categories = event_store.query_categories(db, window.user_id)

    baseline: list[Moment] = []
    if window.range is not None:
        baseline = fetch_range(db, window, window.range.baseline())

    series = bucket_daily(moments, date_range, window.tz)
    given = sum(d.given for d in series)
    received = sum(d.received for d in series)
    balance = compute_balance(given, received)
    return {
        "total": given + received,
        "given_count": given,
        "received_count": received,
        "daily_average": daily_average(series),
        "daily": [d.to_dict() for d in series],
        "categories": [
            r.to_dict() for r in compute_category_share(moments, baseline, categories)
        ],
        "median_gaps": [r.to_dict() for r in compute_median_gaps(moments, categories)],
        "balance": {**balance.to_dict(), "label": balance_message(balance)},
    }
