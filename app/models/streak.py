"""
Streak — cached streak figures per user.

Derived state only: app/services/streak.py rebuilds it from the moment log on
every read and overwrites this row. Never trusted as ground truth.
"""
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Streak(Base):
    __tablename__ = "streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_entry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
