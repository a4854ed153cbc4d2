"""
View analytics component input/output models.

Covers the per-user analytics sub-document, migration and verification
results, and the error types raised by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Document field names, as stored on the user record.
ANALYTICS_FIELD = "analytics"
TOTAL_VIEWS_FIELD = "totalViews"
RECENT_VIEWS_FIELD = "recentViews"
DAILY_VIEWS_FIELD = "dailyViews"
DAILY_VIEWS_PATH = f"{ANALYTICS_FIELD}.{DAILY_VIEWS_FIELD}"

DayKey = str


# --- Enums ---


class RecordOutcome(str, Enum):
    """Terminal state of one record in a migration run."""

    MIGRATED = "migrated"
    SKIPPED_NO_ANALYTICS = "skipped_no_analytics"
    SKIPPED_ALREADY_MIGRATED = "skipped_already_migrated"
    FAILED = "failed"


class MalformedTimestampPolicy(str, Enum):
    """What to do with a view whose timestamp is present but unreadable."""

    FAIL = "fail"
    SKIP = "skip"


# --- Document Models ---


@dataclass(frozen=True)
class ViewEvent:
    """A single recorded profile view, as kept in the rolling window."""

    timestamp: Any
    referrer: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> ViewEvent:
        """Build from a stored `recentViews` entry."""
        if isinstance(raw, ViewEvent):
            return raw
        if isinstance(raw, dict):
            return cls(
                timestamp=raw.get("timestamp"),
                referrer=raw.get("referrer"),
                user_agent=raw.get("userAgent"),
            )
        # Bare timestamps are tolerated as events.
        return cls(timestamp=raw)


def _view_count(value: Any, name: str) -> int:
    """A stored view counter: a non-negative whole number."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise MalformedAnalyticsError(f"{name} must be a number, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise MalformedAnalyticsError(f"{name} must be a whole number, got {value!r}")
    if value < 0:
        raise MalformedAnalyticsError(f"{name} must not be negative, got {value!r}")
    return int(value)


@dataclass(frozen=True)
class AnalyticsDoc:
    """Per-user aggregate view state."""

    total_views: int = 0
    recent_views: tuple[ViewEvent, ...] = ()
    daily_views: dict[DayKey, int] | None = None

    @property
    def has_daily_views(self) -> bool:
        return self.daily_views is not None

    @property
    def is_migrated(self) -> bool:
        """
        True when the day-counter map already exists and carries the views.

        An empty map only counts when there is nothing to carry
        (totalViews == 0), which is what migrating such a record writes.
        """
        if self.daily_views:
            return True
        return self.daily_views is not None and self.total_views == 0

    @classmethod
    def from_document(cls, data: Any) -> AnalyticsDoc:
        """
        Parse the `analytics` sub-document of a user record.

        Raises:
            MalformedAnalyticsError: if the sub-document has the wrong shape.
        """
        if not isinstance(data, dict):
            raise MalformedAnalyticsError(f"analytics must be a mapping, got {type(data).__name__}")

        total = data.get(TOTAL_VIEWS_FIELD)
        total_views = 0 if total is None else _view_count(total, TOTAL_VIEWS_FIELD)

        recent = data.get(RECENT_VIEWS_FIELD)
        if recent is None:
            recent = []
        elif not isinstance(recent, list | tuple):
            raise MalformedAnalyticsError(
                f"{RECENT_VIEWS_FIELD} must be a list, got {type(recent).__name__}"
            )

        daily = data.get(DAILY_VIEWS_FIELD)
        if daily is not None:
            if not isinstance(daily, dict):
                raise MalformedAnalyticsError(f"dailyViews must be a mapping, got {daily!r}")
            daily = {
                str(k): _view_count(v, f"{DAILY_VIEWS_FIELD}[{k}]") for k, v in daily.items()
            }

        return cls(
            total_views=total_views,
            recent_views=tuple(ViewEvent.from_raw(r) for r in recent),
            daily_views=daily,
        )


@dataclass(frozen=True)
class UserRecord:
    """A user record as returned by a full-collection scan."""

    id: str
    analytics: AnalyticsDoc | None = None


# --- Input Models ---


@dataclass(frozen=True)
class MigrateInput:
    """Input for a migration run."""

    dry_run: bool = False
    max_workers: int = 1


@dataclass(frozen=True)
class VerifyInput:
    """Input for a verification pass. Restrict to one user with `user_id`."""

    user_id: str | None = None


@dataclass(frozen=True)
class SummaryInput:
    """Input for a per-user view summary."""

    user_id: str
    window_days: int = 7


# --- Output Models ---


@dataclass(frozen=True)
class RecordFailure:
    """A record that failed during migration."""

    user_id: str
    error: str


@dataclass(frozen=True)
class RecordResult:
    """Outcome of processing one record."""

    user_id: str
    outcome: RecordOutcome
    daily_views: dict[DayKey, int] | None = None
    deficit: int = 0
    error: str | None = None


@dataclass
class MigrationSummary:
    """Tally of a migration run."""

    success_count: int = 0
    error_count: int = 0
    skipped_no_analytics: int = 0
    skipped_already_migrated: int = 0
    dry_run: bool = False
    started_at: datetime | None = None
    today: DayKey | None = None
    failures: list[RecordFailure] = field(default_factory=list)
    results: list[RecordResult] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return self.skipped_no_analytics + self.skipped_already_migrated

    @property
    def total(self) -> int:
        return self.success_count + self.error_count + self.skipped_count

    def add(self, result: RecordResult) -> None:
        """Fold one record result into the tally."""
        self.results.append(result)
        if result.outcome == RecordOutcome.MIGRATED:
            self.success_count += 1
        elif result.outcome == RecordOutcome.SKIPPED_NO_ANALYTICS:
            self.skipped_no_analytics += 1
        elif result.outcome == RecordOutcome.SKIPPED_ALREADY_MIGRATED:
            self.skipped_already_migrated += 1
        else:
            self.error_count += 1
            self.failures.append(RecordFailure(result.user_id, result.error or "unknown error"))


@dataclass(frozen=True)
class VerificationEntry:
    """Invariant check for one record."""

    user_id: str
    observed_sum: int
    total_views: int
    consistent: bool
    has_daily_views: bool = True
    error: str | None = None


@dataclass(frozen=True)
class VerificationReport:
    """Result of a verification pass."""

    entries: tuple[VerificationEntry, ...]

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def with_daily_views(self) -> int:
        return sum(1 for e in self.entries if e.has_daily_views)

    @property
    def without_daily_views(self) -> int:
        return sum(1 for e in self.entries if not e.has_daily_views)

    @property
    def inconsistent(self) -> tuple[VerificationEntry, ...]:
        return tuple(e for e in self.entries if not e.consistent)

    @property
    def ok(self) -> bool:
        return not self.inconsistent


@dataclass(frozen=True)
class ViewSummary:
    """Dashboard figures derived from the day counters."""

    total_views: int
    today_views: int
    window_views: int
    window_days: int


# --- Error Types ---


class AnalyticsMigrationError(Exception):
    """Base view analytics error."""

    pass


class MalformedTimestampError(AnalyticsMigrationError):
    """A view timestamp was present but could not be read as an instant."""

    def __init__(self, raw: Any) -> None:
        self.raw = raw
        super().__init__(f"Unreadable view timestamp: {raw!r}")


class MalformedAnalyticsError(AnalyticsMigrationError):
    """The analytics sub-document has an unexpected shape."""

    pass


class StoreError(AnalyticsMigrationError):
    """The document store failed to read or write."""

    pass


class UserNotFoundError(StoreError):
    """No record exists for the given user id."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class MigrationAbortedError(AnalyticsMigrationError):
    """The run could not proceed at all (e.g. users could not be enumerated)."""

    pass
