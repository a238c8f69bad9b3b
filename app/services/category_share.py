"""
Category share & delta engine.

For each category present in the current window:
  pct       = category count / categorized total × 100, rounded to 0.1
  delta_pct = current share − share in the baseline window, rounded to 0.1

The baseline window is the one of equal length immediately before the
current window ([start − length, start − 1]). Delta is taken on unrounded
shares so identical distributions always give exactly 0.

Categories that appear only in the baseline window are omitted. That matches
the journal's "show what's current" behaviour and is kept on purpose until
product decides whether vanished categories deserve a negative-delta row.

Moments without a category are not part of either total.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.category import Category
from app.models.moment import Moment
from app.services import event_store
from app.services.stats import pct, round1
from app.services.windows import effective_range, fetch_range, fetch_window, open_window


@dataclass
class CategoryShare:
    category_id: int
    name: str
    count: int
    pct: float
    delta_pct: float

    def to_dict(self) -> dict:
        return asdict(self)


def _counts(moments: Iterable[Moment]) -> Counter:
    return Counter(m.category_id for m in moments if m.category_id is not None)


def compute_category_share(
    current: Iterable[Moment],
    baseline: Iterable[Moment],
    categories: dict[int, Category],
) -> list[CategoryShare]:
    """Pure: share of each current-window category and its change vs. baseline."""
    current_counts = _counts(current)
    baseline_counts = _counts(baseline)
    current_total = sum(current_counts.values())
    baseline_total = sum(baseline_counts.values())

    rows: list[CategoryShare] = []
    for category_id, count in current_counts.items():
        share = pct(count, current_total)
        baseline_share = pct(baseline_counts.get(category_id, 0), baseline_total)
        category = categories.get(category_id)
        rows.append(CategoryShare(
            category_id=category_id,
            name=category.name if category is not None else f"Category {category_id}",
            count=count,
            pct=round1(share),
            delta_pct=round1(share - baseline_share),
        ))
    rows.sort(key=lambda r: (-r.pct, r.name))
    return rows


def get_category_share_delta(
    db: Session,
    user_id: str,
    range_label: str = "30d",
    action: Optional[str] = "both",
    significance_only: bool = False,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> list[CategoryShare]:
    window = open_window(
        db, user_id, range_label, action, significance_only, start=start, end=end, now=now
    )
    current = fetch_window(db, window)
    date_range = effective_range(window, current)
    if date_range is None:
        return []
    # "all" has no earlier window to compare against.
    baseline = [] if window.range is None else fetch_range(db, window, date_range.baseline())
    categories = event_store.query_categories(db, window.user_id)
    return compute_category_share(current, baseline, categories)
