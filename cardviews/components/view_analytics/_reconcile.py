"""
Drift reconciliation and view summaries.

Functional Core - pure, no I/O. `today` is always passed in.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, timedelta

from ._bucket import DAY_KEY_FORMAT
from .models import DayKey, ViewSummary


def deficit(buckets: Mapping[DayKey, int], authoritative_total: int) -> int:
    """Views the buckets are missing relative to the lifetime total (never negative)."""
    return max(authoritative_total - sum(buckets.values()), 0)


def reconcile(
    buckets: Mapping[DayKey, int],
    authoritative_total: int,
    today: DayKey,
) -> dict[DayKey, int]:
    """
    Make the bucket sum equal the lifetime total.

    Views older than the retained window cannot be dated, so the whole
    deficit lands on `today`. A surplus is left as is: buckets are never
    decremented.
    """
    result = dict(buckets)
    missing = deficit(buckets, authoritative_total)
    if missing:
        result[today] = result.get(today, 0) + missing
    return result


def summarize(
    daily_views: Mapping[DayKey, int] | None,
    total_views: int,
    today: DayKey,
    window_days: int = 7,
) -> ViewSummary:
    """
    Today and trailing-window counts from the day counters.

    The window includes today, so `window_days=7` covers today and the six
    days before it.
    """
    if window_days < 1:
        raise ValueError("window_days must be at least 1")

    daily = daily_views or {}
    end = date.fromisoformat(today)
    window_keys = {
        (end - timedelta(days=offset)).strftime(DAY_KEY_FORMAT) for offset in range(window_days)
    }

    return ViewSummary(
        total_views=total_views,
        today_views=daily.get(today, 0),
        window_views=sum(count for key, count in daily.items() if key in window_keys),
        window_days=window_days,
    )
