"""
AnalyticsMigrationService - rebuilds per-day view counters on user records.

Imperative Shell - orchestrates the bucketing and reconciliation core
against a user store.

Key behaviors:
- Records without analytics are skipped and never created
- Records whose dailyViews map already carries the views are skipped
  (idempotent re-runs)
- Eligible records get bucket(recentViews) reconciled to totalViews,
  written as a targeted update of analytics.dailyViews only
- A failing record is logged and tallied; the batch carries on
- Failure to enumerate users aborts the run
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime

from ._bucket import bucket, day_key
from ._reconcile import deficit, reconcile
from .models import (
    DAILY_VIEWS_PATH,
    DayKey,
    MalformedTimestampPolicy,
    MigrationAbortedError,
    MigrationSummary,
    RecordOutcome,
    RecordResult,
    UserRecord,
    VerificationEntry,
)
from .ports import TimePort, UserStorePort

logger = logging.getLogger(__name__)


# --- Configuration ---


@dataclass(frozen=True)
class MigrationConfig:
    """Migration run configuration."""

    dry_run: bool = False
    max_workers: int = 1
    malformed_timestamps: MalformedTimestampPolicy = MalformedTimestampPolicy.FAIL


DEFAULT_CONFIG = MigrationConfig()


class DefaultTimePort:
    """Default time provider."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        return datetime.now(UTC)


def _list_users(store: UserStorePort) -> list[UserRecord]:
    try:
        return list(store.list_all_users())
    except Exception as e:
        logger.error("Could not enumerate users: %s", e)
        raise MigrationAbortedError(f"Could not enumerate users: {e}") from e


# --- Migration Service ---


class AnalyticsMigrationService:
    """
    Batch migration from the rolling recentViews window to dailyViews.

    Safe to interrupt between records and re-run: already migrated
    records are skipped.
    """

    def __init__(
        self,
        store: UserStorePort,
        time_port: TimePort | None = None,
        config: MigrationConfig | None = None,
    ) -> None:
        """Initialize service."""
        self._store = store
        self._time = time_port or DefaultTimePort()
        self._config = config or DEFAULT_CONFIG

    def run(self) -> MigrationSummary:
        """
        Migrate every user record.

        Returns:
            MigrationSummary with per-outcome counts and failures.

        Raises:
            MigrationAbortedError: users could not be enumerated.
        """
        started_at = self._time.now_utc()
        today = day_key(started_at)
        summary = MigrationSummary(
            dry_run=self._config.dry_run,
            started_at=started_at,
            today=today,
        )

        records = _list_users(self._store)
        logger.info(
            "Starting analytics migration of %d users (today=%s, dry_run=%s)",
            len(records),
            today,
            self._config.dry_run,
        )

        for result in self._process_all(records, today):
            summary.add(result)

        logger.info(
            "Migration completed: %d migrated, %d skipped, %d failed, %d total",
            summary.success_count,
            summary.skipped_count,
            summary.error_count,
            summary.total,
        )
        return summary

    def _process_all(self, records: list[UserRecord], today: DayKey) -> list[RecordResult]:
        user_ids = [r.id for r in records]
        if self._config.max_workers <= 1 or len(user_ids) <= 1:
            return [self.migrate_user(uid, today) for uid in user_ids]

        # Records are independent; map() keeps enumeration order.
        with ThreadPoolExecutor(max_workers=self._config.max_workers) as pool:
            return list(pool.map(lambda uid: self.migrate_user(uid, today), user_ids))

    def migrate_user(self, user_id: str, today: DayKey) -> RecordResult:
        """Run the per-record state machine. Never raises."""
        try:
            analytics = self._store.read_analytics(user_id)

            if analytics is None:
                logger.info("User %s has no analytics, skipping", user_id)
                return RecordResult(user_id, RecordOutcome.SKIPPED_NO_ANALYTICS)

            if analytics.is_migrated:
                logger.info("User %s already migrated, skipping", user_id)
                return RecordResult(user_id, RecordOutcome.SKIPPED_ALREADY_MIGRATED)

            buckets = bucket(analytics.recent_views, self._config.malformed_timestamps)
            missing = deficit(buckets, analytics.total_views)
            observed = sum(buckets.values())
            if observed > analytics.total_views:
                logger.warning(
                    "User %s: recent views (%d) exceed totalViews (%d), leaving counts as is",
                    user_id,
                    observed,
                    analytics.total_views,
                )
            elif missing:
                logger.info("User %s: adding %d views to %s", user_id, missing, today)

            daily_views = reconcile(buckets, analytics.total_views, today)

            if not self._config.dry_run:
                self._store.write_field(user_id, DAILY_VIEWS_PATH, daily_views)

            logger.info(
                "%s analytics for user %s",
                "Would migrate" if self._config.dry_run else "Migrated",
                user_id,
            )
            return RecordResult(
                user_id,
                RecordOutcome.MIGRATED,
                daily_views=daily_views,
                deficit=missing,
            )

        except Exception as e:
            logger.exception("Failed to migrate user %s", user_id)
            return RecordResult(user_id, RecordOutcome.FAILED, error=str(e) or type(e).__name__)


# --- Verification Service ---


class VerificationService:
    """Read-only check that dailyViews sums to totalViews."""

    def __init__(self, store: UserStorePort) -> None:
        self._store = store

    def verify(self) -> list[VerificationEntry]:
        """
        Check every user that has analytics, in enumeration order.

        Raises:
            MigrationAbortedError: users could not be enumerated.
        """
        entries = []
        for record in _list_users(self._store):
            entry = self.verify_user(record.id)
            if entry is not None:
                entries.append(entry)

        inconsistent = [e for e in entries if not e.consistent]
        for entry in inconsistent:
            logger.warning(
                "User %s inconsistent: dailyViews sum %d != totalViews %d",
                entry.user_id,
                entry.observed_sum,
                entry.total_views,
            )
        logger.info(
            "Verification: %d checked, %d inconsistent",
            len(entries),
            len(inconsistent),
        )
        return entries

    def verify_user(self, user_id: str) -> VerificationEntry | None:
        """Check one user. None when the record has no analytics."""
        try:
            analytics = self._store.read_analytics(user_id)
        except Exception as e:
            logger.error("Could not read analytics for user %s: %s", user_id, e)
            return VerificationEntry(
                user_id=user_id,
                observed_sum=0,
                total_views=0,
                consistent=False,
                has_daily_views=False,
                error=str(e) or type(e).__name__,
            )

        if analytics is None:
            return None

        observed = sum((analytics.daily_views or {}).values())
        return VerificationEntry(
            user_id=user_id,
            observed_sum=observed,
            total_views=analytics.total_views,
            consistent=observed == analytics.total_views,
            has_daily_views=analytics.has_daily_views,
        )


# --- Factories ---


def create_migration_service(
    store: UserStorePort,
    time_port: TimePort | None = None,
    config: MigrationConfig | None = None,
) -> AnalyticsMigrationService:
    """Create an AnalyticsMigrationService."""
    return AnalyticsMigrationService(store=store, time_port=time_port, config=config)


def create_verification_service(store: UserStorePort) -> VerificationService:
    """Create a VerificationService."""
    return VerificationService(store=store)
