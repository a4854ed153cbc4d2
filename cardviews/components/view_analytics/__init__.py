"""
View analytics component - daily view counters, migration and verification.
"""

from ._bucket import bucket, day_key, normalize_timestamp
from ._impl import (
    AnalyticsMigrationService,
    DefaultTimePort,
    MigrationConfig,
    VerificationService,
    create_migration_service,
    create_verification_service,
)
from ._reconcile import deficit, reconcile, summarize
from .component import (
    run,
    run_migrate,
    run_summary,
    run_verify,
)
from .models import (
    DAILY_VIEWS_PATH,
    AnalyticsDoc,
    AnalyticsMigrationError,
    MalformedAnalyticsError,
    MalformedTimestampError,
    MalformedTimestampPolicy,
    MigrateInput,
    MigrationAbortedError,
    MigrationSummary,
    RecordFailure,
    RecordOutcome,
    RecordResult,
    StoreError,
    SummaryInput,
    UserNotFoundError,
    UserRecord,
    VerificationEntry,
    VerificationReport,
    VerifyInput,
    ViewEvent,
    ViewSummary,
)
from .ports import TimePort, UserStorePort

__all__ = [
    # Entry points
    "run",
    "run_migrate",
    "run_summary",
    "run_verify",
    # Input models
    "MigrateInput",
    "SummaryInput",
    "VerifyInput",
    # Document models
    "DAILY_VIEWS_PATH",
    "AnalyticsDoc",
    "UserRecord",
    "ViewEvent",
    # Output models
    "MigrationSummary",
    "RecordFailure",
    "RecordOutcome",
    "RecordResult",
    "VerificationEntry",
    "VerificationReport",
    "ViewSummary",
    # Errors
    "AnalyticsMigrationError",
    "MalformedAnalyticsError",
    "MalformedTimestampError",
    "MigrationAbortedError",
    "StoreError",
    "UserNotFoundError",
    # Ports
    "TimePort",
    "UserStorePort",
    # Core functions
    "bucket",
    "day_key",
    "deficit",
    "normalize_timestamp",
    "reconcile",
    "summarize",
    # Services
    "AnalyticsMigrationService",
    "DefaultTimePort",
    "MalformedTimestampPolicy",
    "MigrationConfig",
    "VerificationService",
    "create_migration_service",
    "create_verification_service",
]
