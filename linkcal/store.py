"""
Tool: Meeting Store
Purpose: SQLite persistence for linked accounts and synced meetings

Usage:
    from linkcal.store import MeetingStore

    store = MeetingStore()                    # data/linkcal.db
    store = MeetingStore(tmp_path / "t.db")   # explicit path

    account = store.get_linked_account(account_id)
    meetings = store.list_meetings(account_id)

Every call opens its own connection, so a store handle can be shared by
concurrent account syncs. Individual statements are atomic; there are no
multi-statement transactions spanning a sync pass.
"""

import json
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from linkcal import DB_PATH
from linkcal.logging_config import get_logger
from linkcal.models import SYNC_FIELDS, LinkedAccount, Meeting, utc_now

logger = get_logger(__name__)


ACCOUNT_COLUMNS = (
    "id", "user_id", "provider", "email", "display_name", "color",
    "refresh_token", "last_synced", "webhook_channel_id",
    "webhook_resource_id", "webhook_expiration", "created_at",
)

DELETE_CHUNK_SIZE = 500

MEETING_COLUMNS = (
    "id", "user_id", "linked_account_id", "external_event_id", "provider",
    "name", "start_date", "end_date", "attendees", "location", "link",
    "message", "status", "created_at", "updated_at",
)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class MeetingStore:
    """Persistent store for LinkedAccount and Meeting rows."""

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = Path(db_path) if db_path else DB_PATH

    def get_connection(self) -> sqlite3.Connection:
        """
        Get database connection, creating tables if needed.

        Returns:
            SQLite connection with row_factory set
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")

        cursor = conn.cursor()

        # Linked calendar accounts
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS linked_accounts (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                provider TEXT NOT NULL,
                email TEXT NOT NULL,
                display_name TEXT,
                color TEXT,
                refresh_token TEXT NOT NULL,
                last_synced DATETIME,
                webhook_channel_id TEXT,
                webhook_resource_id TEXT,
                webhook_expiration DATETIME,
                created_at DATETIME NOT NULL,
                UNIQUE (user_id, email)
            )
        """)

        # Synced meetings
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS meetings (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                linked_account_id TEXT NOT NULL,
                external_event_id TEXT NOT NULL,
                provider TEXT NOT NULL,
                name TEXT,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                attendees TEXT,
                location TEXT,
                link TEXT,
                message TEXT,
                status TEXT,
                created_at DATETIME NOT NULL,
                updated_at DATETIME NOT NULL,
                UNIQUE (external_event_id, provider, linked_account_id),
                FOREIGN KEY (linked_account_id) REFERENCES linked_accounts(id)
                    ON DELETE CASCADE
            )
        """)

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_meetings_account_start "
            "ON meetings(linked_account_id, start_date)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_accounts_channel "
            "ON linked_accounts(webhook_channel_id)"
        )

        conn.commit()
        return conn

    # =========================================================================
    # Linked accounts
    # =========================================================================

    def save_linked_account(self, account: LinkedAccount) -> LinkedAccount:
        """
        Insert a newly linked account.

        Raises:
            sqlite3.IntegrityError: if the (user_id, email) pair is already linked
        """
        row = account.to_dict()
        row["refresh_token"] = account.refresh_token

        conn = self.get_connection()
        try:
            conn.execute(
                f"INSERT INTO linked_accounts ({', '.join(ACCOUNT_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in ACCOUNT_COLUMNS)})",
                tuple(row[c] for c in ACCOUNT_COLUMNS),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(
            "account_linked",
            account_id=account.id,
            provider=account.provider.value,
            user_id=account.user_id,
        )
        return account

    def get_linked_account(self, account_id: str) -> LinkedAccount | None:
        conn = self.get_connection()
        try:
            row = conn.execute(
                f"SELECT {', '.join(ACCOUNT_COLUMNS)} FROM linked_accounts WHERE id = ?",
                (account_id,),
            ).fetchone()
        finally:
            conn.close()
        return LinkedAccount.from_dict(dict(row)) if row else None

    def list_linked_accounts(self, user_id: str | None = None) -> list[LinkedAccount]:
        query = f"SELECT {', '.join(ACCOUNT_COLUMNS)} FROM linked_accounts"
        params: tuple[Any, ...] = ()
        if user_id:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY created_at"

        conn = self.get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [LinkedAccount.from_dict(dict(row)) for row in rows]

    def get_account_by_channel(self, channel_id: str) -> LinkedAccount | None:
        """Resolve a push-notification channel or subscription id to its account."""
        if not channel_id:
            return None
        conn = self.get_connection()
        try:
            row = conn.execute(
                f"SELECT {', '.join(ACCOUNT_COLUMNS)} FROM linked_accounts "
                "WHERE webhook_channel_id = ? OR webhook_resource_id = ?",
                (channel_id, channel_id),
            ).fetchone()
        finally:
            conn.close()
        return LinkedAccount.from_dict(dict(row)) if row else None

    def delete_linked_account(self, account_id: str) -> bool:
        """Delete an account; its meetings go with it (ON DELETE CASCADE)."""
        conn = self.get_connection()
        try:
            cursor = conn.execute("DELETE FROM linked_accounts WHERE id = ?", (account_id,))
            conn.commit()
            deleted = cursor.rowcount > 0
        finally:
            conn.close()
        if deleted:
            logger.info("account_unlinked", account_id=account_id)
        return deleted

    def update_refresh_token(self, account_id: str, token: str) -> None:
        conn = self.get_connection()
        try:
            conn.execute(
                "UPDATE linked_accounts SET refresh_token = ? WHERE id = ?",
                (token, account_id),
            )
            conn.commit()
        finally:
            conn.close()

    def update_last_synced(self, account_id: str, timestamp: datetime | None = None) -> None:
        conn = self.get_connection()
        try:
            conn.execute(
                "UPDATE linked_accounts SET last_synced = ? WHERE id = ?",
                (_ts(timestamp or utc_now()), account_id),
            )
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # Meetings
    # =========================================================================

    def list_meetings(self, linked_account_id: str, user_id: str | None = None) -> list[Meeting]:
        query = (
            f"SELECT {', '.join(MEETING_COLUMNS)} FROM meetings "
            "WHERE linked_account_id = ?"
        )
        params: tuple[Any, ...] = (linked_account_id,)
        if user_id:
            query += " AND user_id = ?"
            params += (user_id,)
        query += " ORDER BY start_date"

        conn = self.get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [Meeting.from_row(row) for row in rows]

    def insert_meetings(self, meetings: Iterable[Meeting]) -> int:
        """
        Bulk insert meetings in one statement batch.

        A row that collides on (external_event_id, provider, linked_account_id)
        overwrites the synced fields of the existing row instead of failing.

        Returns:
            Number of rows written
        """
        rows = [self._meeting_row(m) for m in meetings]
        if not rows:
            return 0

        updates = ", ".join(f"{name} = excluded.{name}" for name in SYNC_FIELDS)
        conn = self.get_connection()
        try:
            conn.executemany(
                f"INSERT INTO meetings ({', '.join(MEETING_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in MEETING_COLUMNS)}) "
                "ON CONFLICT (external_event_id, provider, linked_account_id) "
                f"DO UPDATE SET {updates}, updated_at = excluded.updated_at",
                rows,
            )
            conn.commit()
        finally:
            conn.close()
        return len(rows)

    def update_meeting(self, external_id: str, account_id: str, fields: dict[str, Any]) -> bool:
        """
        Update synced fields of one meeting.

        Returns:
            True if a row matched
        """
        values = {k: v for k, v in fields.items() if k in SYNC_FIELDS}
        if "attendees" in values:
            values["attendees"] = json.dumps(list(values["attendees"] or []))
        values["updated_at"] = _ts(utc_now())

        assignments = ", ".join(f"{name} = ?" for name in values)
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                f"UPDATE meetings SET {assignments} "
                "WHERE external_event_id = ? AND linked_account_id = ?",
                (*values.values(), external_id, account_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def delete_meetings(self, account_id: str, external_ids: list[str]) -> int:
        if not external_ids:
            return 0
        deleted = 0
        conn = self.get_connection()
        try:
            # Stay under SQLITE_MAX_VARIABLE_NUMBER on older builds
            for start in range(0, len(external_ids), DELETE_CHUNK_SIZE):
                chunk = external_ids[start:start + DELETE_CHUNK_SIZE]
                placeholders = ", ".join("?" for _ in chunk)
                cursor = conn.execute(
                    f"DELETE FROM meetings WHERE linked_account_id = ? "
                    f"AND external_event_id IN ({placeholders})",
                    (account_id, *chunk),
                )
                deleted += cursor.rowcount
            conn.commit()
            return deleted
        finally:
            conn.close()

    @staticmethod
    def _meeting_row(meeting: Meeting) -> tuple:
        d = meeting.to_dict()
        d["attendees"] = json.dumps(list(meeting.attendees or []))
        return tuple(d[c] for c in MEETING_COLUMNS)
