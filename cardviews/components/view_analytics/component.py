"""
View analytics component - daily view counter migration and verification.

Rebuilds per-day view counters from the rolling window of recent views
kept on each user record, reconciled against the lifetime counter.

Invariants:
- I1: After migration, sum(dailyViews) == totalViews for every migrated record
- I2: Buckets are keyed by UTC calendar day
- I3: Deficits are attributed to today only; surpluses never decrement
- I4: Only analytics.dailyViews is written; siblings are untouched
- I5: Re-running skips every already migrated record
"""

from __future__ import annotations

from ._bucket import day_key
from ._impl import (
    AnalyticsMigrationService,
    DefaultTimePort,
    MigrationConfig,
    VerificationService,
)
from ._reconcile import summarize
from .models import (
    MalformedTimestampPolicy,
    MigrateInput,
    MigrationSummary,
    SummaryInput,
    VerificationReport,
    VerifyInput,
    ViewSummary,
)
from .ports import TimePort, UserStorePort


def _build_config(inp: MigrateInput, malformed_timestamps: str | None = None) -> MigrationConfig:
    """Build migration config from input and the rules' timestamp policy."""
    return MigrationConfig(
        dry_run=inp.dry_run,
        max_workers=max(inp.max_workers, 1),
        malformed_timestamps=MalformedTimestampPolicy(malformed_timestamps or "fail"),
    )


# --- Component Entry Points ---


def run_migrate(
    inp: MigrateInput,
    *,
    store: UserStorePort,
    time_port: TimePort | None = None,
    malformed_timestamps: str | None = None,
) -> MigrationSummary:
    """
    Migrate all user records to daily view counters.

    Args:
        inp: Run options (dry run, worker count).
        store: User store port.
        time_port: Optional time port; decides the day that absorbs deficits.
        malformed_timestamps: "fail" (default) or "skip".

    Returns:
        MigrationSummary for the run.

    Raises:
        MigrationAbortedError: users could not be enumerated.
    """
    service = AnalyticsMigrationService(
        store=store,
        time_port=time_port,
        config=_build_config(inp, malformed_timestamps),
    )
    return service.run()


def run_verify(inp: VerifyInput, *, store: UserStorePort) -> VerificationReport:
    """
    Check the sum invariant without modifying anything.

    With `inp.user_id` set, only that user is checked; a read failure (an
    unknown user included) comes back as an inconsistent entry carrying the
    error.
    """
    service = VerificationService(store=store)

    if inp.user_id is not None:
        entry = service.verify_user(inp.user_id)
        return VerificationReport(entries=(entry,) if entry is not None else ())

    return VerificationReport(entries=tuple(service.verify()))


def run_summary(
    inp: SummaryInput,
    *,
    store: UserStorePort,
    time_port: TimePort | None = None,
) -> ViewSummary:
    """Today and trailing-window view counts for one user."""
    analytics = store.read_analytics(inp.user_id)
    today = day_key((time_port or DefaultTimePort()).now_utc())

    if analytics is None:
        return summarize(None, 0, today, inp.window_days)

    return summarize(analytics.daily_views, analytics.total_views, today, inp.window_days)


def run(
    inp: MigrateInput | VerifyInput | SummaryInput,
    *,
    store: UserStorePort,
    time_port: TimePort | None = None,
    malformed_timestamps: str | None = None,
) -> MigrationSummary | VerificationReport | ViewSummary:
    """
    Main entry point for the view analytics component.

    Dispatches to the appropriate handler based on input type.
    """
    if isinstance(inp, MigrateInput):
        return run_migrate(
            inp,
            store=store,
            time_port=time_port,
            malformed_timestamps=malformed_timestamps,
        )
    elif isinstance(inp, VerifyInput):
        return run_verify(inp, store=store)
    elif isinstance(inp, SummaryInput):
        return run_summary(inp, store=store, time_port=time_port)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
