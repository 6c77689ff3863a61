"""SQLite storage for health goals."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .models import (
    FixedTarget,
    Goal,
    GoalStatus,
    GoalType,
    Milestone,
    RangeBand,
    TrackingFrequency,
)

logger = logging.getLogger(__name__)


class GoalDatabase:
    """Simple SQLite database for health goals."""

    def __init__(self, db_path: str = "data/healthlink.db"):
        """Initialize database."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create database tables if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS goals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    parameter TEXT NOT NULL,
                    parameter_key TEXT,
                    custom_parameter_name TEXT,
                    unit TEXT NOT NULL,
                    goal_type TEXT NOT NULL,
                    initial_value REAL,
                    target_value REAL,
                    min_value REAL,
                    max_value REAL,
                    current_value REAL,
                    tracking_frequency TEXT NOT NULL,
                    start_date TEXT,
                    deadline TEXT,
                    status TEXT NOT NULL,
                    progress REAL NOT NULL DEFAULT 0,
                    milestones TEXT NOT NULL DEFAULT '[]',
                    notes TEXT,
                    google_event_id TEXT,
                    sync_to_google_calendar INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_goals_user_status ON goals (user_id, status)"
            )
            conn.commit()
        logger.info(f"Database initialized at {self.db_path}")

    def get_goal(self, goal_id: int, user_id: str) -> Optional[Goal]:
        """Get a goal by ID, scoped to its owner."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
            ).fetchone()

        return _row_to_goal(row) if row else None

    def list_goals(self, user_id: str, status: Optional[GoalStatus] = None) -> list[Goal]:
        """List a user's goals, newest first."""
        query = "SELECT * FROM goals WHERE user_id = ?"
        params: list = [user_id]

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY created_at DESC, id DESC"

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(query, params).fetchall()

        return [_row_to_goal(row) for row in rows]

    def create_goal(self, goal: Goal) -> Goal:
        """Insert a new goal and return it with its ID and timestamps set."""
        now = datetime.now(timezone.utc)
        goal.created_at = goal.created_at or now
        goal.updated_at = now

        values = _goal_to_row(goal)
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)

        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                f"INSERT INTO goals ({columns}) VALUES ({placeholders})",
                list(values.values()),
            )
            conn.commit()
            goal.id = cursor.lastrowid

        logger.info(f"Created goal {goal.id}: {goal.parameter} for user {goal.user_id}")
        return goal

    def save_goal(self, goal: Goal) -> Goal:
        """Persist all fields of an existing goal."""
        goal.updated_at = datetime.now(timezone.utc)

        values = _goal_to_row(goal)
        assignments = ", ".join(f"{column} = ?" for column in values)

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                f"UPDATE goals SET {assignments} WHERE id = ?",
                [*values.values(), goal.id],
            )
            conn.commit()

        return goal

    def delete_goal(self, goal_id: int, user_id: str) -> bool:
        """Delete a goal. Returns False if nothing was deleted."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
            )
            conn.commit()

        if cursor.rowcount:
            logger.info(f"Deleted goal {goal_id} for user {user_id}")
        return bool(cursor.rowcount)

    def clear_calendar_events(self, user_id: str, event_id: Optional[str] = None) -> int:
        """
        Unlink calendar events from a user's goals.

        Args:
            user_id: Owner of the goals
            event_id: Only unlink goals pointing at this event; all when None

        Returns:
            Number of goals updated
        """
        query = (
            "UPDATE goals SET google_event_id = NULL, sync_to_google_calendar = 0, "
            "updated_at = ? WHERE user_id = ?"
        )
        params: list = [datetime.now(timezone.utc).isoformat(), user_id]

        if event_id is not None:
            query += " AND google_event_id = ?"
            params.append(event_id)
        else:
            query += " AND google_event_id IS NOT NULL"

        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(query, params)
            conn.commit()

        return cursor.rowcount


def _goal_to_row(goal: Goal) -> dict:
    milestones = [
        {"date": m.date.isoformat(), "value": m.value, "note": m.note}
        for m in goal.milestones
    ]
    return {
        "user_id": goal.user_id,
        "parameter": goal.parameter,
        "parameter_key": goal.parameter_key,
        "custom_parameter_name": goal.custom_parameter_name,
        "unit": goal.unit,
        "goal_type": goal.goal_type.value,
        "initial_value": goal.initial_value,
        "target_value": goal.target_value,
        "min_value": goal.min_value,
        "max_value": goal.max_value,
        "current_value": goal.current_value,
        "tracking_frequency": goal.tracking_frequency.value,
        "start_date": _iso(goal.start_date),
        "deadline": _iso(goal.deadline),
        "status": goal.status.value,
        "progress": goal.progress,
        "milestones": json.dumps(milestones),
        "notes": goal.notes,
        "google_event_id": goal.google_event_id,
        "sync_to_google_calendar": int(goal.sync_to_google_calendar),
        "created_at": _iso(goal.created_at),
        "updated_at": _iso(goal.updated_at),
    }


def _row_to_goal(row: sqlite3.Row) -> Goal:
    if row["min_value"] is not None or row["max_value"] is not None:
        target = RangeBand(
            minimum=row["min_value"],
            maximum=row["max_value"],
            target=row["target_value"],
        )
    else:
        target = FixedTarget(value=row["target_value"])

    milestones = [
        Milestone(
            date=datetime.fromisoformat(m["date"]),
            value=m["value"],
            note=m.get("note") or "",
        )
        for m in json.loads(row["milestones"])
    ]

    return Goal(
        id=row["id"],
        user_id=row["user_id"],
        parameter=row["parameter"],
        parameter_key=row["parameter_key"],
        custom_parameter_name=row["custom_parameter_name"],
        unit=row["unit"],
        goal_type=GoalType(row["goal_type"]),
        target=target,
        initial_value=row["initial_value"],
        current_value=row["current_value"],
        tracking_frequency=TrackingFrequency(row["tracking_frequency"]),
        start_date=_parse(row["start_date"]),
        deadline=_parse(row["deadline"]),
        status=GoalStatus(row["status"]),
        progress=row["progress"],
        milestones=milestones,
        notes=row["notes"],
        google_event_id=row["google_event_id"],
        sync_to_google_calendar=bool(row["sync_to_google_calendar"]),
        created_at=_parse(row["created_at"]),
        updated_at=_parse(row["updated_at"]),
    )


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
