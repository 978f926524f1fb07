"""Tests for superset/subset range matching and slicing."""

from __future__ import annotations

from querycache.cache.ranges import can_cover, derive_slice, filters_equal, realized_end
from querycache.models import ListResult


def _page(ids: range, page: int = 1, limit: int = 10, total: int = 25) -> ListResult:
    return ListResult(
        records=[{"id": i, "status": "open"} for i in ids],
        total_count=total,
        page=page,
        limit=limit,
        total_pages=3,
    )


SUPERSET = {"status": "open", "page": 1, "limit": 10}


class TestFiltersEqual:
    def test_ignores_pagination(self) -> None:
        assert filters_equal(SUPERSET, {"status": "open", "page": 4, "limit": 2})

    def test_absent_equals_none(self) -> None:
        assert filters_equal({"status": "open", "symbol": None}, {"status": "open"})

    def test_different_values(self) -> None:
        assert not filters_equal(SUPERSET, {"status": "closed"})

    def test_extra_filter(self) -> None:
        assert not filters_equal(SUPERSET, {"status": "open", "symbol": "EURUSD"})


class TestCanCover:
    def test_first_half(self) -> None:
        """[0, 5) sits inside [0, 10)."""
        assert can_cover(SUPERSET, 10, {"status": "open", "page": 1, "limit": 5})

    def test_second_half(self) -> None:
        """[5, 10) sits inside [0, 10)."""
        assert can_cover(SUPERSET, 10, {"status": "open", "page": 2, "limit": 5})

    def test_beyond_end(self) -> None:
        """[10, 15) is past the superset."""
        assert not can_cover(SUPERSET, 10, {"status": "open", "page": 3, "limit": 5})

    def test_short_superset_limits_coverage(self) -> None:
        """A page holding 7 records only realizes [0, 7)."""
        assert realized_end(SUPERSET, 7) == 7
        assert not can_cover(SUPERSET, 7, {"status": "open", "page": 2, "limit": 5})
        assert can_cover(SUPERSET, 7, {"status": "open", "page": 1, "limit": 5})

    def test_empty_superset_covers_nothing(self) -> None:
        assert not can_cover(SUPERSET, 0, {"status": "open", "page": 1, "limit": 5})

    def test_target_before_superset(self) -> None:
        later = {"status": "open", "page": 2, "limit": 10}
        assert not can_cover(later, 10, {"status": "open", "page": 1, "limit": 5})

    def test_filters_must_match(self) -> None:
        assert not can_cover(SUPERSET, 10, {"status": "closed", "page": 1, "limit": 5})

    def test_same_range_is_covered(self) -> None:
        assert can_cover(SUPERSET, 10, dict(SUPERSET))


class TestDeriveSlice:
    def test_slices_records_at_offset(self) -> None:
        derived = derive_slice(_page(range(1, 11)), SUPERSET, {"status": "open", "page": 2, "limit": 5})
        assert derived is not None
        assert [r["id"] for r in derived.records] == [6, 7, 8, 9, 10]
        assert derived.page == 2
        assert derived.limit == 5

    def test_recomputes_total_pages_from_total_count(self) -> None:
        derived = derive_slice(_page(range(1, 11)), SUPERSET, {"status": "open", "page": 1, "limit": 5})
        assert derived is not None
        assert derived.total_count == 25
        assert derived.total_pages == 5

    def test_total_pages_without_total_count(self) -> None:
        data = _page(range(1, 11))
        data.total_count = None
        derived = derive_slice(data, SUPERSET, {"status": "open", "page": 1, "limit": 4})
        assert derived is not None
        assert derived.total_pages == 3

    def test_superset_is_not_mutated(self) -> None:
        data = _page(range(1, 11))
        derive_slice(data, SUPERSET, {"status": "open", "page": 1, "limit": 5})
        assert len(data.records) == 10
        assert data.limit == 10

    def test_extra_fields_are_carried(self) -> None:
        data = ListResult.model_validate(
            {"results": [{"id": 1}, {"id": 2}], "totalResults": 2, "cursor": "abc"}
        )
        derived = derive_slice(data, {"page": 1, "limit": 10}, {"page": 1, "limit": 1})
        assert derived is not None
        assert derived.to_wire()["cursor"] == "abc"

    def test_negative_offset_returns_none(self) -> None:
        later = {"status": "open", "page": 2, "limit": 10}
        assert derive_slice(_page(range(11, 21), page=2), later, SUPERSET) is None

    def test_empty_or_missing_superset_returns_none(self) -> None:
        assert derive_slice(None, SUPERSET, SUPERSET) is None
        assert derive_slice(_page(range(0)), SUPERSET, SUPERSET) is None
