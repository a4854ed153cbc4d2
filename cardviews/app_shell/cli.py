import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from cardviews.adapters.clock import SystemClock
from cardviews.adapters.sqlite.migrator import SQLiteMigrator
from cardviews.adapters.sqlite.user_store import SQLiteUserStore
from cardviews.app_shell.config import resolve_db_path, validate_ops_rules
from cardviews.components.view_analytics import (
    AnalyticsMigrationError,
    MigrateInput,
    MigrationAbortedError,
    SummaryInput,
    VerifyInput,
    run_migrate,
    run_summary,
    run_verify,
)
from cardviews.rules.loader import load_rules
from cardviews.rules.models import MAX_WORKERS, MIN_WORKERS, Rules

logger = logging.getLogger("cli")

RULES_PATH = "rules.yaml"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


def get_rules(path: Path) -> Rules:
    try:
        return load_rules(path)
    except FileNotFoundError:
        logger.error(f"Rules file {path} not found.")
        sys.exit(EXIT_FATAL)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(EXIT_FATAL)


def get_store(rules: Rules, args: argparse.Namespace) -> SQLiteUserStore:
    db_path = resolve_db_path(rules, args.db)
    if not Path(db_path).exists():
        logger.error(f"Database {db_path} not found. Run 'init-db' first.")
        sys.exit(EXIT_FATAL)
    return SQLiteUserStore(db_path)


def _load_export(path: Path) -> list[tuple[str, dict[str, Any]]]:
    """Accepts {"<id>": {...}} or [{"id": "<id>", ...}]."""
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        entries = list(data.items())
    elif isinstance(data, list):
        entries = []
        for doc in data:
            if not isinstance(doc, dict) or "id" not in doc:
                raise ValueError(f"List entries must be objects with an id, got {doc!r}")
            doc = dict(doc)
            entries.append((doc.pop("id"), doc))
    else:
        raise ValueError("Export must be an object keyed by user id or a list of documents")

    for uid, doc in entries:
        if not isinstance(doc, dict):
            raise ValueError(f"User {uid} must be an object, got {type(doc).__name__}")
    return [(str(uid), doc) for uid, doc in entries]


def handle_init_db(rules: Rules, args: argparse.Namespace) -> int:
    db_path = resolve_db_path(rules, args.db)
    applied = SQLiteMigrator(db_path).run_migrations()
    print(f"Database ready: {db_path} ({len(applied)} migrations applied)")
    return EXIT_OK


def handle_import(rules: Rules, args: argparse.Namespace) -> int:
    db_path = resolve_db_path(rules, args.db)
    SQLiteMigrator(db_path).run_migrations()

    source = Path(args.file)
    if not source.exists():
        logger.error(f"File {source} not found.")
        return EXIT_FATAL

    try:
        documents = _load_export(source)
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Could not read {source}: {e}")
        return EXIT_FATAL

    count = SQLiteUserStore(db_path).put_documents(documents)
    print(f"Imported {count} users.")
    return EXIT_OK


def handle_migrate(rules: Rules, args: argparse.Namespace) -> int:
    workers = args.workers if args.workers is not None else rules.migration.max_workers
    if not MIN_WORKERS <= workers <= MAX_WORKERS:
        logger.error(f"--workers must be between {MIN_WORKERS} and {MAX_WORKERS}, got {workers}.")
        return EXIT_FATAL

    store = get_store(rules, args)
    inp = MigrateInput(
        dry_run=args.dry_run or rules.migration.dry_run,
        max_workers=workers,
    )

    try:
        summary = run_migrate(
            inp,
            store=store,
            time_port=SystemClock(),
            malformed_timestamps=rules.migration.malformed_timestamps,
        )
    except MigrationAbortedError as e:
        logger.error(f"Migration aborted: {e}")
        return EXIT_FATAL

    print("=================================")
    print("Migration completed!" + (" (dry run)" if summary.dry_run else ""))
    print(f"Migrated: {summary.success_count}")
    print(
        f"Skipped:  {summary.skipped_count} "
        f"({summary.skipped_already_migrated} already migrated, "
        f"{summary.skipped_no_analytics} without analytics)"
    )
    print(f"Failed:   {summary.error_count}")
    print(f"Total:    {summary.total}")
    print("=================================")
    for failure in summary.failures:
        print(f" - {failure.user_id}: {failure.error}")

    return EXIT_PARTIAL if summary.error_count else EXIT_OK


def handle_verify(rules: Rules, args: argparse.Namespace) -> int:
    store = get_store(rules, args)

    try:
        report = run_verify(VerifyInput(user_id=args.user_id), store=store)
    except MigrationAbortedError as e:
        logger.error(f"Verification aborted: {e}")
        return EXIT_FATAL

    if args.user_id is not None and not report.entries:
        print(f"User {args.user_id} has no analytics.")
        return EXIT_OK

    print("=================================")
    print("Verification Results:")
    print(f"With dailyViews:    {report.with_daily_views}")
    print(f"Without dailyViews: {report.without_daily_views}")
    print(f"Inconsistent:       {len(report.inconsistent)}")
    print(f"Total:              {report.total}")
    print("=================================")
    for entry in report.inconsistent:
        detail = entry.error or f"sum {entry.observed_sum} != totalViews {entry.total_views}"
        print(f" - {entry.user_id}: {detail}")

    return EXIT_OK if report.ok else EXIT_FATAL


def handle_summary(rules: Rules, args: argparse.Namespace) -> int:
    store = get_store(rules, args)
    try:
        summary = run_summary(
            SummaryInput(user_id=args.user_id, window_days=rules.summary.window_days),
            store=store,
            time_port=SystemClock(),
        )
    except AnalyticsMigrationError as e:
        logger.error(f"Could not summarize {args.user_id}: {e}")
        return EXIT_FATAL

    print(f"Total views: {summary.total_views}")
    print(f"Today:       {summary.today_views}")
    print(f"Last {summary.window_days} days: {summary.window_views}")
    return EXIT_OK


HANDLERS = {
    "init-db": handle_init_db,
    "import-users": handle_import,
    "migrate": handle_migrate,
    "verify": handle_verify,
    "summary": handle_summary,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Profile view analytics CLI")
    parser.add_argument("--rules", default=RULES_PATH, help="Path to rules.yaml")
    parser.add_argument("--db", help="SQLite database path (overrides rules and env)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the database schema")

    import_parser = subparsers.add_parser("import-users", help="Load user documents from JSON")
    import_parser.add_argument("file", help="JSON export of user documents")

    migrate_parser = subparsers.add_parser("migrate", help="Build dailyViews from recentViews")
    migrate_parser.add_argument("--dry-run", action="store_true", help="Compute but do not write")
    migrate_parser.add_argument(
        "--workers", type=int, help="Parallel workers, 1-32 (default: rules)"
    )

    verify_parser = subparsers.add_parser("verify", help="Check sum(dailyViews) == totalViews")
    verify_parser.add_argument("--user-id", help="Verify a single user")

    summary_parser = subparsers.add_parser("summary", help="Show view counts for a user")
    summary_parser.add_argument("--user-id", required=True, help="User to summarize")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    rules = get_rules(Path(args.rules))
    logging.basicConfig(level=getattr(logging, rules.logging.level))
    validate_ops_rules(rules)

    return HANDLERS[args.command](rules, args)


if __name__ == "__main__":
    sys.exit(main())
