"""
In-memory user store for tests, dry runs and local experiments.

Holds whole user documents keyed by id. Reads and writes deep-copy so
callers can never alias stored state.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from cardviews.components.view_analytics.models import (
    ANALYTICS_FIELD,
    AnalyticsDoc,
    MalformedAnalyticsError,
    StoreError,
    UserNotFoundError,
    UserRecord,
)


class InMemoryUserStore:
    """Implements UserStorePort over a dict of documents."""

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._docs: dict[str, dict[str, Any]] = {
            uid: copy.deepcopy(dict(doc)) for uid, doc in (documents or {}).items()
        }
        self.writes: list[tuple[str, str]] = []

    def list_all_users(self) -> list[UserRecord]:
        records = []
        for uid, doc in self._docs.items():
            try:
                analytics = self._parse(doc)
            except MalformedAnalyticsError:
                analytics = None
            records.append(UserRecord(id=uid, analytics=analytics))
        return records

    def read_analytics(self, user_id: str) -> AnalyticsDoc | None:
        if user_id not in self._docs:
            raise UserNotFoundError(user_id)
        return self._parse(self._docs[user_id])

    def write_field(self, user_id: str, path: str, value: Mapping[str, Any]) -> None:
        if user_id not in self._docs:
            raise UserNotFoundError(user_id)

        *parents, leaf = path.split(".")
        target = self._docs[user_id]
        for segment in parents:
            child = target.get(segment)
            if not isinstance(child, dict):
                raise StoreError(f"Cannot write {path} for {user_id}: {segment} is not a mapping")
            target = child

        target[leaf] = copy.deepcopy(dict(value))
        self.writes.append((user_id, path))

    def get_document(self, user_id: str) -> dict[str, Any] | None:
        """Fetch a copy of the whole user document."""
        doc = self._docs.get(user_id)
        return copy.deepcopy(doc) if doc is not None else None

    def put_document(self, user_id: str, doc: Mapping[str, Any]) -> None:
        """Insert or replace a whole user document."""
        self._docs[user_id] = copy.deepcopy(dict(doc))

    @staticmethod
    def _parse(doc: Mapping[str, Any]) -> AnalyticsDoc | None:
        raw = doc.get(ANALYTICS_FIELD)
        if raw is None:
            return None
        return AnalyticsDoc.from_document(raw)
