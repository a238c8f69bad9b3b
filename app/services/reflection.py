"""
Reflection generator — persisted, period-scoped narratives.

Lifecycle per (user, period, range)
-----------------------------------
  absent ──get──▶ persisted(rule) ──regenerate──▶ persisted(ai)

An AI-authored row is never demoted back to rule text. Fetching an existing
row never recomputes it: the stored `computed` blob is what the narrative was
written from, even if moments were added or edited since.

Concurrency
-----------
The generator instance holds the only shared mutable state in the service:

  _last_attempt   (user, period) -> clock reading of the last admitted
                  regeneration. Admission is check-and-set under `_lock`.
  _key_locks      (user, period, start, end) -> _KeyLock serializing
                  generation for one reflection key inside this process.
                  An entry lives only while some caller holds or waits on it.

The unique constraint on reflections is the cross-process guard: a losing
insert rolls back and re-reads the winner's row.

Public API
----------
build_computed(db, user_id, period, date_range, tz)     -> dict
ReflectionGenerator.get_or_generate_reflection(db, user_id, period, now)
ReflectionGenerator.regenerate_reflection(db, user_id, period, now)
get_reflection_generator()                              -> ReflectionGenerator
reflection_to_dict(row)                                 -> dict
"""
from __future__ import annotations

import json
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    InvalidRangeError,
    NarrativeUnavailableError,
    ReflectionPersistenceError,
)
from app.models.category import Category
from app.models.moment import Moment
from app.models.person import Person
from app.models.reflection import Reflection, ReflectionModel
from app.services import event_store
from app.services.bucketing import (
    PERIOD_DAYS,
    DateRange,
    as_utc,
    instant_bounds,
    local_midnight,
    resolve_range,
    utc_now,
)
from app.services.category_share import compute_category_share
from app.services.daily import bucket_daily, daily_average
from app.services.median_gap import compute_median_gaps
from app.services.narrative import (
    NarrativeGenerator,
    default_generator,
    redact_context,
    render_rule_narrative,
)
from app.services.patterns import balance_message, compute_balance, weekday_breakdown
from app.services.streak import streak_from_moments

logger = logging.getLogger(__name__)

PERIODS = tuple(PERIOD_DAYS)


# ---------------------------------------------------------------------------
# Computed aggregate
# ---------------------------------------------------------------------------

@dataclass
class _Snapshot:
    computed: dict[str, Any]
    moments: list[Moment]
    people: dict[int, Person]
    categories: dict[int, Category]


def _validate_period(period: str) -> str:
    if period not in PERIOD_DAYS:
        raise InvalidRangeError(
            message=f"Unknown reflection period {period!r}. Expected one of {', '.join(PERIODS)}.",
            label=period,
        )
    return period


def _gather(
    db: Session,
    user_id: str,
    period: str,
    date_range: DateRange,
    tz: str,
) -> _Snapshot:
    lower, upper = instant_bounds(date_range.start, date_range.end, tz)
    moments = event_store.query_moments(db, user_id, lower=lower, upper=upper)
    baseline_range = date_range.baseline()
    b_lower, b_upper = instant_bounds(baseline_range.start, baseline_range.end, tz)
    baseline = event_store.query_moments(db, user_id, lower=b_lower, upper=b_upper)
    history = event_store.query_moments(
        db, user_id, upper=local_midnight(date_range.end + timedelta(days=1), tz)
    )
    categories = event_store.query_categories(db, user_id)
    people = event_store.query_people(db, user_id)

    daily = bucket_daily(moments, date_range, tz)
    given = sum(d.given for d in daily)
    received = sum(d.received for d in daily)
    shares = compute_category_share(moments, baseline, categories)
    balance = compute_balance(given, received)

    top = shares[0] if shares else None
    computed = {
        "period": period,
        "range_start": str(date_range.start),
        "range_end": str(date_range.end),
        "timezone": tz,
        "total": given + received,
        "given_count": given,
        "received_count": received,
        "active_days": sum(1 for d in daily if d.total > 0),
        "unique_people": len(event_store.distinct_people(moments, people)),
        "days": date_range.days,
        "daily_average": daily_average(daily),
        "top_category": (
            {"category_id": top.category_id, "name": top.name, "count": top.count}
            if top is not None else None
        ),
        "category_share": [s.to_dict() for s in shares],
        "median_gaps": [g.to_dict() for g in compute_median_gaps(moments, categories)],
        "streak": streak_from_moments(history, tz, date_range.end).to_dict(),
        "daily_by_weekday": [w.to_dict() for w in weekday_breakdown(moments, tz)],
        "balance": {**balance.to_dict(), "label": balance_message(balance)},
    }
    return _Snapshot(computed=computed, moments=moments, people=people, categories=categories)


def build_computed(
    db: Session,
    user_id: str,
    period: str,
    date_range: DateRange,
    tz: str,
) -> dict[str, Any]:
    """The canonical aggregate blob for one period. Same keys for every period."""
    user_id = event_store.require_user(user_id)
    return _gather(db, user_id, _validate_period(period), date_range, tz).computed


# ---------------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------------

def _find(db: Session, user_id: str, period: str, date_range: DateRange) -> Optional[Reflection]:
    with event_store.upstream_errors("reflections"):
        return (
            db.query(Reflection)
            .filter(
                Reflection.user_id == user_id,
                Reflection.period == period,
                Reflection.range_start == date_range.start,
                Reflection.range_end == date_range.end,
            )
            .first()
        )


def _fields(
    computed: dict[str, Any],
    summary: str,
    suggestions: list[str],
    model: str,
    tz: str,
) -> dict[str, Any]:
    return {
        "timezone": tz,
        "summary": summary,
        "suggestions": json.dumps(suggestions),
        "computed": json.dumps(computed, sort_keys=True),
        "model": model,
    }


def _commit(db: Session, user_id: str, period: str) -> None:
    """Commit, mapping non-constraint database failures to ReflectionPersistenceError."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Persisting %s reflection for %s failed: %s", period, user_id, exc)
        raise ReflectionPersistenceError(user_id, period, exc.__class__.__name__) from exc


def _upsert_reflection(
    db: Session,
    user_id: str,
    period: str,
    date_range: DateRange,
    fields: dict[str, Any],
) -> Reflection:
    """Update the row for the key in place, or insert it if none exists yet."""
    existing = _find(db, user_id, period, date_range)
    if existing is not None:
        for key, value in fields.items():
            setattr(existing, key, value)
        _commit(db, user_id, period)
        db.refresh(existing)
        return existing

    row = Reflection(
        user_id=user_id,
        period=period,
        range_start=date_range.start,
        range_end=date_range.end,
        **fields,
    )
    db.add(row)
    try:
        _commit(db, user_id, period)
    except IntegrityError:
        # Inserted concurrently by another worker; write our fields over theirs.
        existing = _find(db, user_id, period, date_range)
        if existing is None:
            raise ReflectionPersistenceError(user_id, period, "IntegrityError")
        for key, value in fields.items():
            setattr(existing, key, value)
        _commit(db, user_id, period)
        db.refresh(existing)
        return existing
    db.refresh(row)
    return row


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class ReflectionGenerator:
    """
    Owns get-or-generate and debounced regeneration of reflections.

    `narrative` is the AI generator (None when AI is not configured) and
    `clock` is a monotonic seconds source; both are injectable for tests.
    """

    def __init__(
        self,
        narrative: Optional[NarrativeGenerator] = None,
        debounce_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.narrative = narrative
        self.debounce_seconds = (
            settings.REGENERATE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._last_attempt: dict[tuple[str, str], float] = {}
        self._key_locks: dict[tuple[str, str, date, date], _KeyLock] = {}

    def _admit(self, user_id: str, period: str) -> bool:
        key = (user_id, period)
        with self._lock:
            now = self._clock()
            last = self._last_attempt.get(key)
            if last is not None and now - last < self.debounce_seconds:
                return False
            self._last_attempt[key] = now
            return True

    @contextmanager
    def _key_lock(self, user_id: str, period: str, date_range: DateRange) -> Iterator[None]:
        key = (user_id, period, date_range.start, date_range.end)
        with self._lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._key_locks[key]

    def _resolve(
        self, db: Session, user_id: str, period: str, now: Optional[datetime]
    ) -> tuple[str, DateRange]:
        tz = event_store.get_timezone(db, user_id)
        return tz, resolve_range(period, tz, now)

    # -- get-or-generate ---------------------------------------------------

    def get_or_generate_reflection(
        self,
        db: Session,
        user_id: str,
        period: str,
        now: Optional[datetime] = None,
    ) -> Reflection:
        """
        Return the stored reflection for the period's current range, creating
        a rule-based one the first time the range is requested.
        """
        user_id = event_store.require_user(user_id)
        period = _validate_period(period)
        tz, date_range = self._resolve(db, user_id, period, now)

        existing = _find(db, user_id, period, date_range)
        if existing is not None:
            return existing

        with self._key_lock(user_id, period, date_range):
            existing = _find(db, user_id, period, date_range)
            if existing is not None:
                return existing

            computed = build_computed(db, user_id, period, date_range, tz)
            summary, suggestions = render_rule_narrative(computed)
            row = Reflection(
                user_id=user_id,
                period=period,
                range_start=date_range.start,
                range_end=date_range.end,
                **_fields(computed, summary, suggestions, ReflectionModel.RULE, tz),
            )
            db.add(row)
            try:
                _commit(db, user_id, period)
            except IntegrityError:
                existing = _find(db, user_id, period, date_range)
                if existing is None:
                    raise ReflectionPersistenceError(user_id, period, "IntegrityError")
                return existing
            db.refresh(row)
            logger.info(
                "Generated %s reflection for %s (%s..%s)",
                period, user_id, date_range.start, date_range.end,
            )
            return row

    # -- regenerate --------------------------------------------------------

    def regenerate_reflection(
        self,
        db: Session,
        user_id: str,
        period: str,
        now: Optional[datetime] = None,
    ) -> Optional[Reflection]:
        """
        Recompute the period's aggregate and ask the AI generator for a new
        narrative. Returns None when the call is debounced. AI failures
        propagate and leave any stored row as it was.
        """
        user_id = event_store.require_user(user_id)
        period = _validate_period(period)

        if not self._admit(user_id, period):
            logger.info("Regeneration of %s reflection for %s debounced", period, user_id)
            return None

        tz, date_range = self._resolve(db, user_id, period, now)
        with self._key_lock(user_id, period, date_range):
            snapshot = _gather(db, user_id, period, date_range, tz)
            computed = snapshot.computed
            existing = _find(db, user_id, period, date_range)

            if computed["total"] == 0:
                if existing is not None and existing.model == ReflectionModel.AI:
                    return existing
                summary, suggestions = render_rule_narrative(computed)
                model = ReflectionModel.RULE
            else:
                if self.narrative is None:
                    raise NarrativeUnavailableError()
                context = redact_context(
                    snapshot.moments, snapshot.people, snapshot.categories, tz
                )
                narrative = self.narrative.generate(computed, context)
                summary, suggestions = narrative.summary, narrative.suggestions
                model = ReflectionModel.AI

            fields = _fields(computed, summary, suggestions, model, tz)
            fields["regenerated_at"] = as_utc(now) if now is not None else utc_now()
            row = _upsert_reflection(db, user_id, period, date_range, fields)
            logger.info("Regenerated %s reflection for %s (model=%s)", period, user_id, model)
            return row


_generator: Optional[ReflectionGenerator] = None
_generator_lock = threading.Lock()


def get_reflection_generator() -> ReflectionGenerator:
    """FastAPI dependency: the process-wide generator (debounce state lives here)."""
    global _generator
    with _generator_lock:
        if _generator is None:
            _generator = ReflectionGenerator(narrative=default_generator())
        return _generator


def reflection_to_dict(row: Reflection) -> dict[str, Any]:
    return {
        "id": row.id,
        "period": row.period,
        "range_start": str(row.range_start),
        "range_end": str(row.range_end),
        "timezone": row.timezone,
        "model": row.model,
        "summary": row.summary,
        "suggestions": json.loads(row.suggestions) if row.suggestions else [],
        "computed": json.loads(row.computed) if row.computed else {},
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "regenerated_at": row.regenerated_at.isoformat() if row.regenerated_at else None,
    }
