"""
Tests for the category share & delta engine.

Covers:
- percentages of categorized moments sum to ~100
- delta symmetry (identical distributions → 0)
- vanished categories are omitted
- uncategorized moments are ignored
- DB-backed baseline window selection
"""
from datetime import date, datetime, timezone
from types import SimpleNamespace as NS

from app.services.category_share import compute_category_share, get_category_share_delta


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2026, 2, 20, 12, 0)

CATEGORIES = {
    1: NS(id=1, name="Family"),
    2: NS(id=2, name="Work"),
    3: NS(id=3, name="Strangers"),
}


def _moments(*category_ids):
    return [NS(category_id=c) for c in category_ids]


class TestComputeCategoryShare:
    def test_percentages_sum_to_about_100(self):
        rows = compute_category_share(_moments(1, 1, 1, 2, 2, 3, 3), [], CATEGORIES)
        assert abs(sum(r.pct for r in rows) - 100) <= 0.1 * len(rows)

    def test_thirds_round_to_one_decimal(self):
        rows = compute_category_share(_moments(1, 2, 3), [], CATEGORIES)
        assert [r.pct for r in rows] == [33.3, 33.3, 33.3]

    def test_sorted_by_share_then_name(self):
        rows = compute_category_share(_moments(2, 3, 1, 1), [], CATEGORIES)
        assert [r.name for r in rows] == ["Family", "Strangers", "Work"]
        assert rows[0].count == 2
        assert rows[0].pct == 50.0

    def test_identical_distribution_has_zero_delta(self):
        current = _moments(1, 2, 2, 3, 3, 3)
        baseline = _moments(1, 1, 2, 2, 2, 2, 3, 3, 3, 3, 3, 3)
        rows = compute_category_share(current, baseline, CATEGORIES)
        assert all(r.delta_pct == 0.0 for r in rows)

    def test_delta_against_empty_baseline_is_full_share(self):
        rows = compute_category_share(_moments(1, 1, 2, 2), [], CATEGORIES)
        assert [r.delta_pct for r in rows] == [50.0, 50.0]

    def test_vanished_category_is_omitted(self):
        # Family 10/10 in the baseline, Work 5/5 now.
        rows = compute_category_share(_moments(*[2] * 5), _moments(*[1] * 10), CATEGORIES)
        assert len(rows) == 1
        assert rows[0].name == "Work"
        assert rows[0].pct == 100.0
        assert rows[0].delta_pct == 100.0

    def test_uncategorized_moments_are_ignored(self):
        rows = compute_category_share(_moments(1, None, None, 2), [], CATEGORIES)
        assert [r.pct for r in rows] == [50.0, 50.0]

    def test_negative_delta(self):
        rows = compute_category_share(_moments(1, 2, 2, 2), _moments(1, 1, 1, 2), CATEGORIES)
        family = next(r for r in rows if r.name == "Family")
        assert family.delta_pct == -50.0

    def test_no_moments_no_rows(self):
        assert compute_category_share([], _moments(1), CATEGORIES) == []

    def test_to_dict(self):
        (row,) = compute_category_share(_moments(1), [], CATEGORIES)
        assert row.to_dict() == {
            "category_id": 1, "name": "Family", "count": 1, "pct": 100.0, "delta_pct": 100.0,
        }


class TestGetCategoryShareDelta:
    def test_baseline_is_previous_equal_window(self, db, user_id, make_category, make_moment):
        family = make_category("Family")
        work = make_category("Work")
        # Current 7d window is Feb 14..20, baseline Feb 7..13.
        make_moment(utc(2026, 2, 15, 9), category=family)
        make_moment(utc(2026, 2, 16, 9), category=work)
        make_moment(utc(2026, 2, 8, 9), category=family)
        make_moment(utc(2026, 2, 1, 9), category=work)    # older than the baseline

        rows = get_category_share_delta(db, user_id, "7d", now=NOW)
        by_name = {r.name: r for r in rows}
        assert by_name["Family"].pct == 50.0
        assert by_name["Family"].delta_pct == -50.0
        assert by_name["Work"].delta_pct == 50.0

    def test_empty_window(self, db, user_id):
        assert get_category_share_delta(db, user_id, "30d", now=NOW) == []

    def test_category_names_come_from_the_store(self, db, user_id, make_category, make_moment):
        community = make_category("Community")
        make_moment(utc(2026, 2, 19, 9), category=community)
        (row,) = get_category_share_delta(db, user_id, "7d", now=NOW)
        assert row.category_id == community.id
        assert row.name == "Community"
