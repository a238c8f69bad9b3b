"""
Event store accessor — read-only view over moments, categories, people and
user profiles.

Rules:
- Read-only. Nothing here writes or commits.
- Filters on `happened_at` take absolute UTC bounds; civil-date conversion
  happens in app/services/bucketing.py, never here.
- Database failures are re-raised as UpstreamQueryError so callers can tell
  a failed query from an empty result.

Public API
----------
require_user(user_id)                                  -> str
get_timezone(db, user_id)                              -> str
query_moments(db, user_id, lower, upper, action, significance_only) -> list[Moment]
query_categories(db, user_id)                          -> dict[int, Category]
query_people(db, user_id)                              -> dict[int, Person]
person_state(person)                                   -> Active | MergedInto
resolve_person(person_id, people)                      -> int
first_and_last_instant(db, user_id)                    -> (datetime | None, datetime | None)
"""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    InvalidRangeError,
    MergeChainError,
    NotAuthenticatedError,
    UpstreamQueryError,
)
from app.models.category import Category
from app.models.moment import Moment, MomentAction
from app.models.person import Person
from app.models.profile import UserProfile
from app.services.bucketing import as_utc, load_zone

logger = logging.getLogger(__name__)

ACTIONS = ("given", "received", "both")
MAX_MERGE_HOPS = 32


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

def require_user(user_id: Optional[str]) -> str:
    """Every core operation is user-scoped; there is no anonymous aggregate."""
    if not user_id or not str(user_id).strip():
        raise NotAuthenticatedError()
    return str(user_id).strip()


def normalise_action(action: Optional[str]) -> str:
    value = action or "both"
    if value not in ACTIONS:
        raise InvalidRangeError(
            message=f"Unknown action filter {value!r}. Expected one of {', '.join(ACTIONS)}.",
        )
    return value


@contextmanager
def upstream_errors(source: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Query against %s failed: %s", source, exc)
        raise UpstreamQueryError(source=source, reason=str(exc.__class__.__name__)) from exc


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def get_timezone(db: Session, user_id: str) -> str:
    """The user's IANA zone, or the configured default when unset or unknown."""
    user_id = require_user(user_id)
    with upstream_errors("profiles"):
        tz = (
            db.query(UserProfile.timezone)
            .filter(UserProfile.user_id == user_id)
            .scalar()
        )
    if not tz:
        return settings.DEFAULT_TIMEZONE
    try:
        load_zone(tz)
    except InvalidRangeError:
        logger.warning("User %s has unknown timezone %r; using %s", user_id, tz, settings.DEFAULT_TIMEZONE)
        return settings.DEFAULT_TIMEZONE
    return tz


# ---------------------------------------------------------------------------
# Moments
# ---------------------------------------------------------------------------

def query_moments(
    db: Session,
    user_id: str,
    lower: Optional[datetime] = None,
    upper: Optional[datetime] = None,
    action: Optional[str] = "both",
    significance_only: bool = False,
) -> list[Moment]:
    """
    Moments with `lower <= happened_at < upper`, oldest first.
    Either bound may be None (unbounded on that side).
    """
    user_id = require_user(user_id)
    action = normalise_action(action)

    q = db.query(Moment).filter(Moment.user_id == user_id)
    if lower is not None:
        q = q.filter(Moment.happened_at >= as_utc(lower))
    if upper is not None:
        q = q.filter(Moment.happened_at < as_utc(upper))
    if action != "both":
        q = q.filter(Moment.action == MomentAction(action))
    if significance_only:
        q = q.filter(Moment.significance.is_(True))

    with upstream_errors("moments"):
        return q.order_by(Moment.happened_at.asc(), Moment.id.asc()).all()


def first_and_last_instant(
    db: Session,
    user_id: str,
    action: Optional[str] = "both",
    significance_only: bool = False,
) -> tuple[Optional[datetime], Optional[datetime]]:
    user_id = require_user(user_id)
    action = normalise_action(action)

    q = db.query(func.min(Moment.happened_at), func.max(Moment.happened_at)).filter(
        Moment.user_id == user_id
    )
    if action != "both":
        q = q.filter(Moment.action == MomentAction(action))
    if significance_only:
        q = q.filter(Moment.significance.is_(True))

    with upstream_errors("moments"):
        first, last = q.one()
    return first, last


def moment_tags(moment: Moment) -> list[str]:
    if not moment.tags:
        return []
    try:
        result = json.loads(moment.tags)
        return [str(t) for t in result] if isinstance(result, list) else []
    except (ValueError, TypeError):
        return []


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def query_categories(db: Session, user_id: str) -> dict[int, Category]:
    user_id = require_user(user_id)
    with upstream_errors("categories"):
        rows = (
            db.query(Category)
            .filter(Category.user_id == user_id)
            .order_by(Category.sort_order.asc(), Category.name.asc())
            .all()
        )
    return {c.id: c for c in rows}


# ---------------------------------------------------------------------------
# People and merge chains
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Active:
    person_id: int


@dataclass(frozen=True)
class MergedInto:
    person_id: int
    target_id: int


PersonState = Union[Active, MergedInto]


def person_state(person: Person) -> PersonState:
    if person.merged_into is None:
        return Active(person.id)
    return MergedInto(person.id, person.merged_into)


def query_people(db: Session, user_id: str) -> dict[int, Person]:
    user_id = require_user(user_id)
    with upstream_errors("people"):
        rows = db.query(Person).filter(Person.user_id == user_id).all()
    return {p.id: p for p in rows}


def resolve_person(person_id: int, people: dict[int, Person]) -> int:
    """
    Follow `merged_into` pointers to the terminal person.

    Iterative with a visited set; a loop or a chain longer than
    MAX_MERGE_HOPS raises MergeChainError. A pointer to a person outside
    `people` terminates at that id.
    """
    chain = [person_id]
    visited = {person_id}
    current = person_id
    while True:
        person = people.get(current)
        if person is None:
            return current
        state = person_state(person)
        if isinstance(state, Active):
            return state.person_id
        current = state.target_id
        chain.append(current)
        if current in visited or len(chain) > MAX_MERGE_HOPS:
            raise MergeChainError(person_id=person_id, chain=chain)
        visited.add(current)


def distinct_people(moments: list[Moment], people: dict[int, Person]) -> set[int]:
    """Terminal person ids referenced by `moments` (merged duplicates collapse)."""
    return {
        resolve_person(m.person_id, people)
        for m in moments
        if m.person_id is not None
    }
