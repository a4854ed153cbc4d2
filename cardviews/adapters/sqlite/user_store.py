"""
SQLite user store.

User records are JSON documents in a single `users` table. Field writes go
through SQLite's json_set, so only the addressed path changes.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from cardviews.components.view_analytics.models import (
    ANALYTICS_FIELD,
    AnalyticsDoc,
    MalformedAnalyticsError,
    StoreError,
    UserNotFoundError,
    UserRecord,
)

logger = logging.getLogger(__name__)

_PATH_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime | date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json_path(path: str) -> str:
    """Convert a dotted field path ("analytics.dailyViews") to a JSON path."""
    segments = path.split(".")
    for segment in segments:
        if not _PATH_SEGMENT.match(segment):
            raise ValueError(f"Invalid field path: {path!r}")
    return "$." + ".".join(segments)


def _parse_analytics(raw: Any) -> AnalyticsDoc | None:
    # json_extract yields JSON text for objects and native values for scalars.
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise MalformedAnalyticsError(f"analytics must be a mapping, got {raw!r}")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedAnalyticsError(f"analytics must be a mapping, got {raw!r}") from e
    return AnalyticsDoc.from_document(data)


class SQLiteUserStore:
    """Implements UserStorePort over a SQLite database."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def list_all_users(self) -> list[UserRecord]:
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute(
                    "SELECT id, json_extract(doc, ?) AS analytics FROM users ORDER BY id",
                    (f"$.{ANALYTICS_FIELD}",),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list users: {e}") from e

        records = []
        for row in rows:
            try:
                analytics = _parse_analytics(row["analytics"])
            except MalformedAnalyticsError:
                # Surfaced again, per record, by read_analytics.
                logger.debug("User %s has unparseable analytics in scan", row["id"])
                analytics = None
            records.append(UserRecord(id=row["id"], analytics=analytics))
        return records

    def read_analytics(self, user_id: str) -> AnalyticsDoc | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT json_extract(doc, ?) AS analytics FROM users WHERE id = ?",
                    (f"$.{ANALYTICS_FIELD}", user_id),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read analytics for {user_id}: {e}") from e

        if row is None:
            raise UserNotFoundError(user_id)

        return _parse_analytics(row["analytics"])

    def write_field(self, user_id: str, path: str, value: Mapping[str, Any]) -> None:
        json_path = to_json_path(path)
        try:
            conn = self._get_conn()
            try:
                cursor = conn.execute(
                    "UPDATE users SET doc = json_set(doc, ?, json(?)), "
                    "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (json_path, json.dumps(dict(value), default=_json_default), user_id),
                )
                if cursor.rowcount == 0:
                    conn.rollback()
                    raise UserNotFoundError(user_id)
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write {path} for {user_id}: {e}") from e

    def get_document(self, user_id: str) -> dict[str, Any] | None:
        """Fetch the whole user document."""
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT doc FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return json.loads(row["doc"]) if row else None

    def put_documents(self, documents: Iterable[tuple[str, Mapping[str, Any]]]) -> int:
        """Insert or replace whole user documents. Returns the number written."""
        rows = [
            (user_id, json.dumps(dict(doc), default=_json_default)) for user_id, doc in documents
        ]
        conn = self._get_conn()
        try:
            conn.executemany(
                """
                INSERT INTO users (id, doc) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    doc=excluded.doc,
                    updated_at=CURRENT_TIMESTAMP
                """,
                rows,
            )
            conn.commit()
            return len(rows)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
