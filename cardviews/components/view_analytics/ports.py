"""
View analytics component port definitions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

from .models import AnalyticsDoc, UserRecord


class UserStorePort(Protocol):
    """Narrow document-store interface over the users collection."""

    def list_all_users(self) -> Sequence[UserRecord]:
        """Full scan of user records. Must be exhaustive."""
        ...

    def read_analytics(self, user_id: str) -> AnalyticsDoc | None:
        """Read a user's analytics sub-document, None if the record has none."""
        ...

    def write_field(self, user_id: str, path: str, value: Mapping[str, Any]) -> None:
        """
        Targeted update of one dotted field path.

        Sibling fields must survive untouched.
        """
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
