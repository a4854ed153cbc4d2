"""
Day bucketing - folds view timestamps into per-day counters.

Functional Core - pure, no I/O.

Key behaviors:
- Timestamps normalized to aware UTC instants
- Day key is the UTC calendar date (YYYY-MM-DD), never host-local
- One count per event, sparse output (no zero-count days)
- Missing timestamps skipped; unreadable ones raise or skip per policy
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any

from .models import (
    DayKey,
    MalformedTimestampError,
    MalformedTimestampPolicy,
    ViewEvent,
)

DAY_KEY_FORMAT = "%Y-%m-%d"


def _from_epoch(seconds: float, raw: Any) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedTimestampError(raw) from e


def normalize_timestamp(raw: Any) -> datetime | None:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    Accepts datetimes (naive treated as UTC), rich store timestamps exposing
    `to_datetime()`/`ToDatetime()`, `{"seconds", "nanoseconds"}` mappings
    (with or without leading underscores), ISO-8601 strings, and numbers as
    epoch milliseconds.

    Returns None when there is no timestamp at all.

    Raises:
        MalformedTimestampError: value present but not interpretable.
    """
    if raw is None:
        return None

    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            return raw.replace(tzinfo=UTC)
        return raw.astimezone(UTC)

    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=UTC)

    for attr in ("to_datetime", "ToDatetime"):
        convert = getattr(raw, attr, None)
        if callable(convert):
            converted = convert()
            if not isinstance(converted, datetime):
                raise MalformedTimestampError(raw)
            return normalize_timestamp(converted)

    if isinstance(raw, dict):
        seconds = raw.get("seconds", raw.get("_seconds"))
        nanos = raw.get("nanoseconds", raw.get("_nanoseconds", 0)) or 0
        if isinstance(seconds, bool) or not isinstance(seconds, int | float):
            raise MalformedTimestampError(raw)
        if isinstance(nanos, bool) or not isinstance(nanos, int | float):
            raise MalformedTimestampError(raw)
        return _from_epoch(seconds + nanos / 1_000_000_000, raw)

    if isinstance(raw, bool):
        raise MalformedTimestampError(raw)

    if isinstance(raw, int | float):
        return _from_epoch(raw / 1000, raw)

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise MalformedTimestampError(raw) from e
        return normalize_timestamp(parsed)

    raise MalformedTimestampError(raw)


def day_key(instant: datetime) -> DayKey:
    """UTC calendar-day key for an instant. Naive values are taken as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC).strftime(DAY_KEY_FORMAT)


def bucket(
    events: Iterable[ViewEvent | Any],
    malformed: MalformedTimestampPolicy = MalformedTimestampPolicy.FAIL,
) -> dict[DayKey, int]:
    """
    Fold view events into a sparse day -> count mapping.

    Raises:
        MalformedTimestampError: unreadable timestamp under the FAIL policy.
    """
    counts: dict[DayKey, int] = {}

    for event in events:
        view = ViewEvent.from_raw(event)
        try:
            instant = normalize_timestamp(view.timestamp)
        except MalformedTimestampError:
            if malformed == MalformedTimestampPolicy.SKIP:
                continue
            raise

        if instant is None:
            continue

        key = day_key(instant)
        counts[key] = counts.get(key, 0) + 1

    return counts
