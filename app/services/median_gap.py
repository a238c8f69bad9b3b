"""
Median gap engine — typical number of days between moments, per category.

Gaps are absolute-instant differences in fractional days (seconds / 86400),
not civil-date subtraction: two moments 20 hours apart on the same date are
0.83 days apart.

A category needs at least two qualifying moments to have a gap. Categories
whose reported median rounds to 0 are dropped; whether same-day repeats
should count as a zero gap is still open with product.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.category import Category
from app.models.moment import Moment
from app.services import event_store
from app.services.bucketing import as_utc
from app.services.stats import median, round1
from app.services.windows import fetch_window, open_window

SECONDS_PER_DAY = 86400


@dataclass
class MedianGap:
    category_id: int
    name: str
    median_days: float

    def to_dict(self) -> dict:
        return asdict(self)


def gaps_in_days(instants: Iterable[datetime]) -> list[float]:
    ordered = sorted(as_utc(i) for i in instants)
    return [
        (later - earlier).total_seconds() / SECONDS_PER_DAY
        for earlier, later in zip(ordered, ordered[1:])
    ]


def compute_median_gaps(
    moments: Iterable[Moment],
    categories: dict[int, Category],
) -> list[MedianGap]:
    by_category: dict[int, list[datetime]] = defaultdict(list)
    for m in moments:
        if m.category_id is not None:
            by_category[m.category_id].append(m.happened_at)

    rows: list[MedianGap] = []
    for category_id, instants in by_category.items():
        if len(instants) < 2:
            continue
        median_days = round1(median(gaps_in_days(instants)))
        if median_days == 0:
            continue
        category = categories.get(category_id)
        rows.append(MedianGap(
            category_id=category_id,
            name=category.name if category is not None else f"Category {category_id}",
            median_days=median_days,
        ))
    rows.sort(key=lambda r: (r.median_days, r.name))
    return rows


def get_median_gaps(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> list[MedianGap]:
    window = open_window(
        db, user_id, range_label, action, significance_only, start=start, end=end, now=now
    )
    moments = fetch_window(db, window)
    categories = event_store.query_categories(db, window.user_id)
    return compute_median_gaps(moments, categories)
