"""
Tests for drift reconciliation and view summaries.
"""

from __future__ import annotations

import pytest

from cardviews.components.view_analytics import deficit, reconcile, summarize

TODAY = "2024-01-07"


class TestDeficit:
    def test_positive_gap(self) -> None:
        assert deficit({"2024-01-05": 3, "2024-01-06": 1}, 10) == 6

    def test_exact_match(self) -> None:
        assert deficit({"2024-01-05": 4}, 4) == 0

    def test_surplus_is_zero(self) -> None:
        assert deficit({"2024-01-05": 9}, 4) == 0


class TestReconcile:
    """Deficit goes to today; surplus is left alone."""

    def test_worked_example(self) -> None:
        result = reconcile({"2024-01-05": 3, "2024-01-06": 1}, 10, TODAY)
        assert result == {"2024-01-05": 3, "2024-01-06": 1, "2024-01-07": 6}

    def test_deficit_added_to_existing_today_bucket(self) -> None:
        result = reconcile({"2024-01-06": 2, TODAY: 3}, 9, TODAY)
        assert result == {"2024-01-06": 2, TODAY: 7}

    def test_only_today_changes(self) -> None:
        buckets = {"2024-01-01": 4, "2024-01-03": 2, "2024-01-06": 1}
        result = reconcile(buckets, 20, TODAY)

        for key, count in buckets.items():
            assert result[key] == count
        assert result[TODAY] == 13

    def test_exact_total_unchanged(self) -> None:
        buckets = {"2024-01-05": 3, "2024-01-06": 1}
        assert reconcile(buckets, 4, TODAY) == buckets

    def test_surplus_never_decrements(self) -> None:
        buckets = {"2024-01-05": 5, "2024-01-06": 3}
        result = reconcile(buckets, 2, TODAY)

        assert result == buckets
        assert all(count >= 0 for count in result.values())
        assert TODAY not in result

    def test_empty_buckets_with_total(self) -> None:
        assert reconcile({}, 12, TODAY) == {TODAY: 12}

    def test_empty_buckets_zero_total(self) -> None:
        assert reconcile({}, 0, TODAY) == {}

    def test_negative_total_is_noop(self) -> None:
        assert reconcile({"2024-01-05": 1}, -3, TODAY) == {"2024-01-05": 1}

    def test_sum_matches_total_whenever_total_not_below_observed(self) -> None:
        buckets = {"2024-01-02": 1, "2024-01-04": 6}
        for total in range(7, 40):
            assert sum(reconcile(buckets, total, TODAY).values()) == total

    def test_input_not_mutated(self) -> None:
        buckets = {"2024-01-05": 3}
        reconcile(buckets, 10, TODAY)
        assert buckets == {"2024-01-05": 3}


class TestSummarize:
    """Dashboard figures from the day counters."""

    def test_today_and_week(self) -> None:
        daily = {
            "2023-12-31": 100,  # outside the 7-day window
            "2024-01-01": 1,  # first day of the window
            "2024-01-05": 3,
            TODAY: 6,
        }
        summary = summarize(daily, 110, TODAY)

        assert summary.total_views == 110
        assert summary.today_views == 6
        assert summary.window_views == 10
        assert summary.window_days == 7

    def test_window_crosses_month(self) -> None:
        daily = {"2024-02-28": 1, "2024-02-29": 2, "2024-03-01": 4}
        summary = summarize(daily, 7, "2024-03-01", window_days=2)
        assert summary.window_views == 6
        assert summary.today_views == 4

    def test_single_day_window(self) -> None:
        summary = summarize({TODAY: 2, "2024-01-06": 5}, 7, TODAY, window_days=1)
        assert summary.window_views == 2

    def test_no_daily_views(self) -> None:
        summary = summarize(None, 4, TODAY)
        assert (summary.today_views, summary.window_views) == (0, 0)
        assert summary.total_views == 4

    def test_invalid_window(self) -> None:
        with pytest.raises(ValueError):
            summarize({}, 0, TODAY, window_days=0)
