"""SQLite storage for per-user calendar access tokens."""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class CalendarTokenStore:
    """Access tokens for users who connected their Google Calendar."""

    def __init__(self, db_path: str = "data/healthlink.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS calendar_tokens (
                    user_id TEXT PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    connected_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def connect(self, user_id: str, access_token: str):
        """Store (or replace) a user's access token."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO calendar_tokens (user_id, access_token, connected_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    access_token = excluded.access_token,
                    connected_at = excluded.connected_at
                """,
                (user_id, access_token, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        logger.info(f"Calendar connected for user {user_id}")

    def get_token(self, user_id: str) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT access_token FROM calendar_tokens WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row[0] if row else None

    def disconnect(self, user_id: str):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM calendar_tokens WHERE user_id = ?", (user_id,))
            conn.commit()
        logger.info(f"Calendar disconnected for user {user_id}")
