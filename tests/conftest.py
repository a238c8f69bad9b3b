"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. Every test
gets its own user id, so rows from other tests never leak into aggregates.
"""
import json
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  registers every table on Base.metadata
from app.db.base import Base, get_db
from app.main import app
from app.models.category import Category
from app.models.moment import Moment, MomentAction
from app.models.person import Person
from app.models.profile import UserProfile
from app.services.narrative import Narrative
from app.services.reflection import ReflectionGenerator, get_reflection_generator

SQLITE_URL = "sqlite:///./test_kindness.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNarrative:
    """Records calls; returns a canned narrative or raises `error`."""

    def __init__(self, summary: str = "A generous month.", suggestions=None, error=None):
        self.summary = summary
        self.suggestions = suggestions if suggestions is not None else ["Keep going."]
        self.error = error
        self.calls = []

    def generate(self, computed, context):
        self.calls.append((computed, context))
        if self.error is not None:
            raise self.error
        return Narrative(summary=self.summary, suggestions=list(self.suggestions))


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def user_id():
    return f"user-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def set_timezone(db, user_id):
    def _set(tz, user=None):
        db.add(UserProfile(user_id=user or user_id, timezone=tz))
        db.commit()
    return _set


@pytest.fixture()
def make_category(db, user_id):
    def _make(name, user=None, sort_order=0):
        category = Category(
            user_id=user or user_id,
            name=name,
            slug=name.lower().replace(" ", "-"),
            sort_order=sort_order,
        )
        db.add(category)
        db.commit()
        db.refresh(category)
        return category
    return _make


@pytest.fixture()
def make_person(db, user_id):
    def _make(display_name, aliases=None, merged_into=None, user=None):
        person = Person(
            user_id=user or user_id,
            display_name=display_name,
            aliases=json.dumps(aliases) if aliases else None,
            merged_into=merged_into.id if merged_into is not None else None,
        )
        db.add(person)
        db.commit()
        db.refresh(person)
        return person
    return _make


@pytest.fixture()
def make_moment(db, user_id):
    def _make(
        happened_at,
        action="given",
        category=None,
        person=None,
        significance=False,
        description=None,
        tags=None,
        user=None,
    ):
        moment = Moment(
            user_id=user or user_id,
            happened_at=happened_at,
            action=MomentAction(action),
            category_id=category.id if category is not None else None,
            person_id=person.id if person is not None else None,
            significance=significance,
            description=description,
            tags=json.dumps(tags) if tags else None,
        )
        db.add(moment)
        db.commit()
        db.refresh(moment)
        return moment
    return _make


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def fake_narrative():
    return FakeNarrative()


@pytest.fixture()
def generator(fake_narrative, clock):
    return ReflectionGenerator(narrative=fake_narrative, debounce_seconds=60, clock=clock)


@pytest.fixture()
def client(db, generator):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reflection_generator] = lambda: generator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth(user_id):
    return {"X-User-Id": user_id}
