"""
Streak engine — consecutive civil days with at least one logged moment.

Definition
----------
A streak day is any civil date (in the user's timezone) with ≥1 moment of
any action or significance. Moments dated after "today" are ignored.

  current — length of the run ending at the latest streak day, provided that
            day is today or yesterday; otherwise 0.
  best    — longest run ever observed.

The `streaks` table is a cache. get_streak() replays the whole log on every
call and overwrites the cached row, so a wrong or stale row heals itself.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.moment import Moment
from app.models.streak import Streak
from app.services import event_store
from app.services.bucketing import civil_date, local_today

logger = logging.getLogger(__name__)


@dataclass
class StreakData:
    current: int
    best: int
    last_entry_date: Optional[date]

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "best": self.best,
            "last_entry_date": str(self.last_entry_date) if self.last_entry_date else None,
        }


def compute_streak(days: Iterable[date], today: date) -> StreakData:
    """Pure: streak figures from a collection of active civil dates."""
    ordered = sorted({d for d in days if d <= today})
    if not ordered:
        return StreakData(current=0, best=0, last_entry_date=None)

    best = run = 1
    for previous, day in zip(ordered, ordered[1:]):
        run = run + 1 if day - previous == timedelta(days=1) else 1
        best = max(best, run)

    last = ordered[-1]
    current = run if (today - last).days <= 1 else 0
    return StreakData(current=current, best=best, last_entry_date=last)


def streak_from_moments(moments: Iterable[Moment], tz: str, today: date) -> StreakData:
    return compute_streak((civil_date(m.happened_at, tz) for m in moments), today)


def _refresh_cache(db: Session, user_id: str, data: StreakData) -> None:
    with event_store.upstream_errors("streaks"):
        try:
            row = db.query(Streak).filter(Streak.user_id == user_id).first()
            if row is None:
                row = Streak(user_id=user_id)
                db.add(row)
            row.current = data.current
            row.best = data.best
            row.last_entry_date = data.last_entry_date
            db.commit()
        except IntegrityError:
            # Another request inserted the cache row first; its figures are equivalent.
            db.rollback()
            logger.debug("Streak cache for %s written concurrently", user_id)
        except SQLAlchemyError:
            db.rollback()
            raise


def get_streak(db: Session, user_id: str, now: Optional[datetime] = None) -> StreakData:
    """Rebuild the user's streak from the full moment log and refresh the cache."""
    user_id = event_store.require_user(user_id)
    tz = event_store.get_timezone(db, user_id)
    moments = event_store.query_moments(db, user_id)
    data = streak_from_moments(moments, tz, local_today(tz, now))
    _refresh_cache(db, user_id, data)
    return data
