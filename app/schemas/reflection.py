"""
Reflection response schemas.

GET  /reflections/{period}             → ReflectionResponse
POST /reflections/{period}/regenerate  → ReflectionResponse | 204
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.streak import StreakResponse
from app.schemas.trends import (
    BalanceResponse,
    CategoryShareResponse,
    MedianGapResponse,
    TopCategoryResponse,
    WeekdayCountResponse,
)


class ComputedAggregateResponse(BaseModel):
    """Aggregate a reflection was written from. Same shape for every period."""
    period: str
    range_start: str
    range_end: str
    timezone: str
    total: int
    given_count: int
    received_count: int
    active_days: int
    unique_people: int
    days: int
    daily_average: float
    top_category: Optional[TopCategoryResponse] = None
    category_share: list[CategoryShareResponse] = Field(default_factory=list)
    median_gaps: list[MedianGapResponse] = Field(default_factory=list)
    streak: StreakResponse
    daily_by_weekday: list[WeekdayCountResponse] = Field(default_factory=list)
    balance: BalanceResponse


class ReflectionResponse(BaseModel):
    id: int
    period: str = Field(examples=["30d"])
    range_start: str
    range_end: str
    timezone: str
    model: str = Field(description='"rule" or "ai".')
    summary: Optional[str] = None
    suggestions: list[str] = Field(default_factory=list)
    computed: ComputedAggregateResponse
    created_at: Optional[str] = None
    regenerated_at: Optional[str] = None
