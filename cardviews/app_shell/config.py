import os
import sys

from cardviews.rules.models import Rules

DB_PATH_ENV = "CARDVIEWS_DB_PATH"


def validate_ops_rules(rules: Rules) -> None:
    """
    Validate operational requirements before running a command.
    """
    missing = [env_var for env_var in rules.ops.required_env if env_var not in os.environ]

    if missing:
        print(
            f"CRITICAL: Missing required environment variables: {', '.join(missing)}",
            file=sys.stderr,
        )
        sys.exit(1)


def resolve_db_path(rules: Rules, override: str | None = None) -> str:
    """Database path: explicit override, then CARDVIEWS_DB_PATH, then the rules file."""
    if override:
        return override
    return os.environ.get(DB_PATH_ENV) or rules.storage.db_path
