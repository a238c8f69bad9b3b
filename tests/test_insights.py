"""
Tests for category balance, reconnect opportunities, highlights and the
single-window trend summary.
"""
from datetime import date, datetime, timezone
from types import SimpleNamespace as NS

import pytest

from app.services import event_store
from app.services.bucketing import DateRange
from app.services.insights import (
    compute_category_balance,
    compute_opportunities,
    get_category_balance,
    get_highlights,
    get_opportunities,
    get_trend_summary,
    select_highlights,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2026, 2, 20, 12, 0)
WEEK = DateRange(date(2026, 2, 14), date(2026, 2, 20))


def _person(pid, name, merged_into=None):
    return NS(id=pid, display_name=name, aliases=None, merged_into=merged_into)


def _moment(happened_at, action="given", category_id=None, person_id=None, significance=False, mid=0):
    return NS(
        id=mid,
        happened_at=happened_at,
        action=action,
        category_id=category_id,
        person_id=person_id,
        significance=significance,
        description=None,
    )


# ---------------------------------------------------------------------------
# Category balance
# ---------------------------------------------------------------------------

class TestComputeCategoryBalance:
    def test_counts_per_category_busiest_first(self):
        categories = {1: NS(id=1, name="Family"), 2: NS(id=2, name="Work")}
        moments = [
            _moment(utc(2026, 2, 18), "given", 2),
            _moment(utc(2026, 2, 18), "given", 1),
            _moment(utc(2026, 2, 19), "received", 1),
            _moment(utc(2026, 2, 19), "given", 1),
            _moment(utc(2026, 2, 19), "given", None),
        ]
        rows = compute_category_balance(moments, categories)
        assert [r.to_dict() for r in rows] == [
            {"category_id": 1, "name": "Family", "given_count": 2, "received_count": 1},
            {"category_id": 2, "name": "Work", "given_count": 1, "received_count": 0},
        ]

    def test_empty(self):
        assert compute_category_balance([], {}) == []

    def test_ties_break_on_name(self):
        categories = {1: NS(id=1, name="Work"), 2: NS(id=2, name="Friends")}
        moments = [_moment(utc(2026, 2, 18), "given", 1), _moment(utc(2026, 2, 18), "given", 2)]
        assert [r.name for r in compute_category_balance(moments, categories)] == ["Friends", "Work"]


class TestGetCategoryBalance:
    def test_window_and_filters(self, db, user_id, make_category, make_moment):
        family = make_category("Family")
        make_moment(utc(2026, 2, 19, 9), "given", category=family)
        make_moment(utc(2026, 2, 19, 10), "received", category=family, significance=True)
        make_moment(utc(2026, 1, 1, 9), "given", category=family)  # outside 7d

        rows = get_category_balance(db, user_id, "7d", now=NOW)
        assert [(r.given_count, r.received_count) for r in rows] == [(1, 1)]

        rows = get_category_balance(db, user_id, "7d", significance_only=True, now=NOW)
        assert [(r.given_count, r.received_count) for r in rows] == [(0, 1)]


# ---------------------------------------------------------------------------
# Opportunities
# ---------------------------------------------------------------------------

class TestComputeOpportunities:
    @pytest.fixture()
    def people(self):
        return {
            1: _person(1, "Maria"),
            2: _person(2, "Tom"),
            3: _person(3, "Mary", merged_into=1),
            4: _person(4, "Ana"),
        }

    @pytest.fixture()
    def history(self):
        return [
            _moment(utc(2026, 2, 1, 9), person_id=1),
            _moment(utc(2026, 1, 1, 9), person_id=2),
            _moment(utc(2026, 2, 18, 9), person_id=2),
            _moment(utc(2026, 2, 5, 9), person_id=3),
            _moment(utc(2026, 1, 20, 9), person_id=4),
            _moment(utc(2026, 2, 25, 9), person_id=4),   # after the window
            _moment(utc(2026, 1, 2, 9)),                 # nobody
        ]

    def test_longest_silence_first(self, history, people):
        rows = compute_opportunities(history, people, "UTC", WEEK)
        assert [r.to_dict() for r in rows] == [
            {"person_id": 4, "display_name": "Ana", "last_recorded": "2026-01-20", "days_since": 31},
            {"person_id": 1, "display_name": "Maria", "last_recorded": "2026-02-05", "days_since": 15},
        ]

    def test_limit(self, history, people):
        rows = compute_opportunities(history, people, "UTC", WEEK, limit=1)
        assert [r.display_name for r in rows] == ["Ana"]

    def test_no_range_means_no_opportunities(self, history, people):
        assert compute_opportunities(history, people, "UTC", None) == []

    def test_last_contact_follows_user_timezone(self):
        people = {1: _person(1, "Maria")}
        # 2026-02-14 05:00 UTC is still Feb 13 in Los Angeles
        history = [_moment(utc(2026, 2, 14, 5), person_id=1)]
        assert compute_opportunities(history, people, "UTC", WEEK) == []
        rows = compute_opportunities(history, people, "America/Los_Angeles", WEEK)
        assert rows[0].last_recorded == date(2026, 2, 13)


class TestGetOpportunities:
    def test_people_outside_the_window(self, db, user_id, make_person, make_moment):
        maria = make_person("Maria")
        mary = make_person("Mary", merged_into=maria)
        tom = make_person("Tom")
        make_moment(utc(2026, 1, 30, 9), person=mary)
        make_moment(utc(2026, 2, 19, 9), person=tom)

        rows = get_opportunities(db, user_id, "7d", now=NOW)
        assert [(r.person_id, r.days_since) for r in rows] == [(maria.id, 21)]

    def test_all_range_is_empty(self, db, user_id, make_person, make_moment):
        make_moment(utc(2025, 1, 1, 9), person=make_person("Maria"))
        assert get_opportunities(db, user_id, "all", now=NOW) == []


# ---------------------------------------------------------------------------
# Highlights
# ---------------------------------------------------------------------------

class TestSelectHighlights:
    def test_significant_only_newest_first(self):
        people = {1: _person(1, "Maria"), 2: _person(2, "Mary", merged_into=1)}
        moments = [
            _moment(utc(2026, 2, 15, 9), significance=True, person_id=2, mid=1),
            _moment(utc(2026, 2, 16, 9), significance=False, mid=2),
            _moment(utc(2026, 2, 17, 9), "received", significance=True, mid=3),
        ]
        rows = select_highlights(moments, people, "UTC")
        assert [r.moment_id for r in rows] == [3, 1]
        assert rows[0].action == "received"
        assert rows[1].person_id == 1
        assert rows[1].to_dict()["date"] == "2026-02-15"


class TestGetHighlights:
    def test_window(self, db, user_id, make_moment):
        inside = make_moment(utc(2026, 2, 19, 9), significance=True, description="Surprise visit")
        make_moment(utc(2026, 2, 19, 10))
        make_moment(utc(2026, 1, 1, 9), significance=True)

        rows = get_highlights(db, user_id, "7d", now=NOW)
        assert [r.moment_id for r in rows] == [inside.id]
        assert rows[0].description == "Surprise visit"
        assert rows[0].action == "given"


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

class TestTrendSummary:
    def test_one_timezone_read_per_summary(self, db, user_id, make_category, make_moment, monkeypatch):
        family = make_category("Family")
        make_moment(utc(2026, 2, 19, 9), category=family)
        make_moment(utc(2026, 2, 20, 9), category=family)

        calls = []
        original = event_store.get_timezone

        def counting(db, user_id):
            calls.append(user_id)
            return original(db, user_id)

        monkeypatch.setattr(event_store, "get_timezone", counting)
        body = get_trend_summary(db, user_id, "7d", now=NOW)
        assert calls == [user_id]
        assert body["total"] == 2
        assert len(body["daily"]) == 7
        assert body["categories"][0]["pct"] == 100.0
        assert body["median_gaps"] == [{"category_id": family.id, "name": "Family", "median_days": 1.0}]

    def test_all_range_has_no_baseline(self, db, user_id, make_category, make_moment):
        family = make_category("Family")
        make_moment(utc(2026, 2, 10, 9), category=family)
        body = get_trend_summary(db, user_id, "all", now=NOW)
        assert body["daily"][0]["date"] == "2026-02-10"
        assert body["categories"][0]["delta_pct"] == 100.0

    def test_empty_journal(self, db, user_id):
        body = get_trend_summary(db, user_id, "all", now=NOW)
        assert body["total"] == 0
        assert body["daily"] == []
        assert body["categories"] == []
