"""
GET /streak → StreakResponse
"""
from typing import Optional

from pydantic import BaseModel, Field


class StreakResponse(BaseModel):
    current: int = Field(description="Consecutive active days ending today or yesterday; 0 otherwise.")
    best: int = Field(description="Longest run of consecutive active days ever.")
    last_entry_date: Optional[str] = Field(
        default=None,
        description="Latest civil date with a moment, in the user's timezone.",
        examples=["2026-02-20"],
    )
