"""
Trend response schemas.

GET /trends/daily            → list[DailyCountResponse]
GET /trends/categories       → list[CategoryShareResponse]
GET /trends/median-gaps      → list[MedianGapResponse]
GET /trends/weekly-patterns  → list[WeekdayCountResponse]
GET /trends/monthly-overview → MonthlyOverviewResponse
GET /trends/bounds           → MomentBoundsResponse
GET /trends/category-balance → list[CategoryBalanceResponse]
GET /trends/opportunities    → list[OpportunityResponse]
GET /trends/highlights       → list[HighlightResponse]
GET /trends/summary          → TrendSummaryResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class DailyCountResponse(BaseModel):
    date: str = Field(description="Civil date in the user's timezone (ISO).", examples=["2026-02-20"])
    given: int
    received: int
    total: int


class CategoryShareResponse(BaseModel):
    category_id: int
    name: str
    count: int
    pct: float = Field(description="Share of categorized moments in the window, 0-100, one decimal.")
    delta_pct: float = Field(
        description="Percentage-point change against the equal-length window just before."
    )


class MedianGapResponse(BaseModel):
    category_id: int
    name: str
    median_days: float = Field(description="Median days between consecutive moments, one decimal.")


class WeekdayCountResponse(BaseModel):
    weekday: int = Field(description="0 = Monday … 6 = Sunday.")
    weekday_name: str
    total: int
    given: int
    received: int


class BalanceResponse(BaseModel):
    given_pct: float
    received_pct: float
    label: str = Field(
        description="empty, giver, receiver, balanced, leaning_giver or leaning_receiver."
    )


class TopCategoryResponse(BaseModel):
    category_id: int
    name: str
    count: int


class MonthlyOverviewResponse(BaseModel):
    current_month_start: str
    current_month_count: int
    previous_month_count: int
    delta_pct: Optional[float] = Field(
        default=None,
        description="Change against the previous month in percent; null when it had no moments.",
    )


class MomentBoundsResponse(BaseModel):
    min_date: Optional[str] = None
    max_date: Optional[str] = None
    timezone: str


class CategoryBalanceResponse(BaseModel):
    category_id: int
    name: str
    given_count: int
    received_count: int


class OpportunityResponse(BaseModel):
    person_id: int
    display_name: str
    last_recorded: str = Field(description="Civil date of the most recent moment with this person.")
    days_since: int = Field(description="Days from that moment to the end of the window.")


class HighlightResponse(BaseModel):
    moment_id: int
    happened_at: str = Field(description="UTC instant (ISO 8601).")
    date: str = Field(description="Civil date in the user's timezone (ISO).")
    action: str
    category_id: Optional[int] = None
    person_id: Optional[int] = None
    description: Optional[str] = None


class TrendSummaryResponse(BaseModel):
    """Everything the trends screen needs in one round trip."""
    total: int
    given_count: int
    received_count: int
    daily_average: float
    daily: list[DailyCountResponse] = Field(default_factory=list)
    categories: list[CategoryShareResponse] = Field(default_factory=list)
    median_gaps: list[MedianGapResponse] = Field(default_factory=list)
    balance: BalanceResponse
