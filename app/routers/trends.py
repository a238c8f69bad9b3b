"""
Trends router — read-only aggregates over the signed-in user's moments.

GET /trends/daily             — dense per-day given/received counts
GET /trends/categories        — category share and change vs. previous window
GET /trends/median-gaps       — median days between moments per category
GET /trends/weekly-patterns   — moments per weekday
GET /trends/monthly-overview  — this month so far vs. last month
GET /trends/bounds            — first and last dates with a moment
GET /trends/category-balance  — given/received counts per category
GET /trends/opportunities     — people not seen in the window, longest gap first
GET /trends/highlights        — significant moments, newest first
GET /trends/summary           — daily + categories + median gaps + balance

All date handling uses the user's profile timezone.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth import get_current_user_id
from app.db.base import get_db
from app.schemas.common import COMMON_ERROR_RESPONSES
from app.schemas.trends import (
    CategoryBalanceResponse,
    CategoryShareResponse,
    DailyCountResponse,
    HighlightResponse,
    MedianGapResponse,
    MomentBoundsResponse,
    MonthlyOverviewResponse,
    OpportunityResponse,
    TrendSummaryResponse,
    WeekdayCountResponse,
)
from app.services.category_share import get_category_share_delta
from app.services.daily import get_daily_counts
from app.services.insights import (
    OPPORTUNITY_LIMIT,
    get_category_balance,
    get_highlights,
    get_opportunities,
    get_trend_summary,
)
from app.services.median_gap import get_median_gaps
from app.services.patterns import (
    get_moment_bounds,
    get_monthly_overview,
    get_weekly_patterns,
)

router = APIRouter(prefix="/trends", tags=["trends"], responses=COMMON_ERROR_RESPONSES)


@dataclass
class TrendParams:
    range_label: str
    action: str
    significance_only: bool
    start: Optional[date]
    end: Optional[date]

    def as_kwargs(self) -> dict:
        return {
            "range_label": self.range_label,
            "action": self.action,
            "significance_only": self.significance_only,
            "start": self.start,
            "end": self.end,
        }


def trend_params(
    range_label: str = Query(
        default="30d",
        alias="range",
        description="One of all, 7d, 30d, 90d, 365d. Ignored when start is given.",
    ),
    start: Optional[date] = Query(
        default=None,
        description="Explicit first civil date (inclusive).",
        examples=["2026-01-01"],
    ),
    end: Optional[date] = Query(
        default=None,
        description="Explicit last civil date (inclusive). Defaults to today when start is set.",
        examples=["2026-01-31"],
    ),
    action: str = Query(default="both", description="given, received or both."),
    significance_only: bool = Query(default=False, description="Only significant moments."),
) -> TrendParams:
    # Values are validated by the services so bad input maps to INVALID_RANGE.
    return TrendParams(
        range_label=range_label,
        action=action,
        significance_only=significance_only,
        start=start,
        end=end,
    )


# ---------------------------------------------------------------------------
# GET /trends/daily
# ---------------------------------------------------------------------------

@router.get(
    "/daily",
    response_model=list[DailyCountResponse],
    summary="Dense daily given/received counts",
)
def daily(
    params: TrendParams = Depends(trend_params),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    One row per civil date in the range, oldest first, **including days with
    no moments**. For `range=all` the series starts at the first qualifying
    moment and is empty when there is none.
    """
    series = get_daily_counts(db, user_id, **params.as_kwargs())
    return [d.to_dict() for d in series]


# ---------------------------------------------------------------------------
# GET /trends/categories
# ---------------------------------------------------------------------------

@router.get(
    "/categories",
    response_model=list[CategoryShareResponse],
    summary="Category share and delta vs. the previous window",
)
def categories(
    params: TrendParams = Depends(trend_params),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Share of categorized moments per category, largest first. `delta_pct` is
    the change in percentage points against the window of equal length
    immediately before. Categories with no moments in the current window are
    not listed.
    """
    rows = get_category_share_delta(db, user_id, **params.as_kwargs())
    return [r.to_dict() for r in rows]


# ---------------------------------------------------------------------------
# GET /trends/median-gaps
# ---------------------------------------------------------------------------

@router.get(
    "/median-gaps",
    response_model=list[MedianGapResponse],
    summary="Median days between moments per category",
)
def median_gaps(
    params: TrendParams = Depends(trend_params),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    rows = get_median_gaps(db, user_id, **params.as_kwargs())
    return [r.to_dict() for r in rows]


# ---------------------------------------------------------------------------
# GET /trends/weekly-patterns
# ---------------------------------------------------------------------------

@router.get(
    "/weekly-patterns",
    response_model=list[WeekdayCountResponse],
    summary="Moments per weekday",
)
def weekly_patterns(
    params: TrendParams = Depends(trend_params),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Always seven rows, Monday first."""
    rows = get_weekly_patterns(db, user_id, **params.as_kwargs())
    return [r.to_dict() for r in rows]


# ---------------------------------------------------------------------------
# GET /trends/monthly-overview
# ---------------------------------------------------------------------------

@router.get(
    "/monthly-overview",
    response_model=MonthlyOverviewResponse,
    summary="This month so far vs. last month",
)
def monthly_overview(
    action: str = Query(default="both", description="given, received or both."),
    significance_only: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_monthly_overview(
        db, user_id, action=action, significance_only=significance_only
    ).to_dict()


# ---------------------------------------------------------------------------
# GET /trends/bounds
# ---------------------------------------------------------------------------

@router.get(
    "/bounds",
    response_model=MomentBoundsResponse,
    summary="First and last dates with a moment",
)
def bounds(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Used by date pickers. Both dates are null for an empty journal."""
    return get_moment_bounds(db, user_id)


# ---------------------------------------------------------------------------
# GET /trends/category-balance
# ---------------------------------------------------------------------------

@router.get(
    "/category-balance",
    response_model=list[CategoryBalanceResponse],
    summary="Given and received counts per category",
)
def category_balance(
    params: TrendParams = Depends(trend_params),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Categories with at least one moment in the window, busiest first."""
    rows = get_category_balance(db, user_id, **params.as_kwargs())
    return [r.to_dict() for r in rows]


# ---------------------------------------------------------------------------
# GET /trends/opportunities
# ---------------------------------------------------------------------------

@router.get(
    "/opportunities",
    response_model=list[OpportunityResponse],
    summary="People to reconnect with",
)
def opportunities(
    params: TrendParams = Depends(trend_params),
    limit: int = Query(default=OPPORTUNITY_LIMIT, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    People whose most recent moment falls **before** the window, longest gap
    first. Merged people are reported under the person they were merged into.
    Always empty for `range=all`.
    """
    rows = get_opportunities(db, user_id, limit=limit, **params.as_kwargs())
    return [r.to_dict() for r in rows]


# ---------------------------------------------------------------------------
# GET /trends/highlights
# ---------------------------------------------------------------------------

@router.get(
    "/highlights",
    response_model=list[HighlightResponse],
    summary="Significant moments in the window",
)
def highlights(
    params: TrendParams = Depends(trend_params),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Newest first. `significance_only` is implied."""
    rows = get_highlights(
        db,
        user_id,
        range_label=params.range_label,
        action=params.action,
        start=params.start,
        end=params.end,
    )
    return [r.to_dict() for r in rows]


# ---------------------------------------------------------------------------
# GET /trends/summary
# ---------------------------------------------------------------------------

@router.get(
    "/summary",
    response_model=TrendSummaryResponse,
    summary="Daily series, categories, median gaps and balance in one call",
)
def summary(
    params: TrendParams = Depends(trend_params),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Computed from one resolved window, so every section covers the same range."""
    return get_trend_summary(db, user_id, **params.as_kwargs())
