"""
Reflection — a persisted, period-scoped narrative plus computed aggregate.

Rules:
- At most one row per (user_id, period, range_start, range_end); the unique
  constraint is the final guard against concurrent generation.
- Regeneration overwrites in place (model, summary, suggestions, computed,
  regenerated_at); it never inserts a second row.
- suggestions and computed are JSON-encoded Text.

model values:
  "rule" — deterministic rule-based narrative
  "ai"   — narrative produced by the external AI generator
"""
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ReflectionModel:
    RULE = "rule"
    AI = "ai"


class Reflection(Base):
    __tablename__ = "reflections"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "period", "range_start", "range_end",
            name="uq_reflection_user_period_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    period: Mapped[str] = mapped_column(String(8), nullable=False)
    range_start: Mapped[date] = mapped_column(Date, nullable=False)
    range_end: Mapped[date] = mapped_column(Date, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggestions: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="JSON array of suggestion strings"
    )
    computed: Mapped[str] = mapped_column(
        Text, nullable=False, comment="JSON-encoded ComputedAggregate"
    )
    model: Mapped[str] = mapped_column(String(8), nullable=False, default=ReflectionModel.RULE)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    regenerated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
