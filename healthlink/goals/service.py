"""Goal orchestration: validation, persistence, engine and calendar cleanup."""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from healthlink.calendar_sync.client import (
    CalendarClient,
    CalendarError,
    CalendarEventNotFound,
)
from healthlink.calendar_sync.tokens import CalendarTokenStore

from . import engine
from .database import GoalDatabase
from .errors import (
    CalendarNotConnected,
    GoalError,
    GoalNotFound,
    InvalidGoalConfiguration,
    LastMilestoneError,
    MilestoneNotFound,
)
from .models import (
    FixedTarget,
    Goal,
    GoalStatus,
    Milestone,
    build_target,
    check_goal_type,
)
from .schemas import (
    CalendarEventCreate,
    GoalCreate,
    GoalResponse,
    GoalStats,
    GoalUpdate,
    Reading,
    SyncedEvent,
)

logger = logging.getLogger(__name__)

CalendarFactory = Callable[[str], CalendarClient]


class GoalService:
    """Health goal operations for the API layer."""

    def __init__(
        self,
        db: GoalDatabase,
        tokens: CalendarTokenStore,
        calendar_factory: CalendarFactory,
    ):
        """
        Initialize service.

        Args:
            db: Goal storage
            tokens: Per-user calendar tokens
            calendar_factory: Builds a calendar client from an access token
        """
        self.db = db
        self.tokens = tokens
        self.calendar_factory = calendar_factory

    def create_goal(self, user_id: str, request: GoalCreate) -> Goal:
        """
        Validate and store a new goal.

        The initial value, when given, becomes the first milestone and the
        current value.
        """
        custom_name = None
        if request.parameter_key == "custom":
            custom_name = (request.custom_parameter_name or "").strip()
            if not custom_name:
                raise InvalidGoalConfiguration(
                    "Custom parameter name is required when using a custom health metric"
                )

        target = build_target(request.target_value, request.min_value, request.max_value)
        check_goal_type(request.goal_type, target)

        if isinstance(target, FixedTarget) and request.initial_value is None:
            raise InvalidGoalConfiguration("Initial value is required for fixed target goals")

        now = datetime.now(timezone.utc)
        milestones = []
        if request.initial_value is not None:
            milestones.append(
                Milestone(date=now, value=request.initial_value, note="Starting value (Initial)")
            )

        goal = Goal(
            user_id=user_id,
            parameter=request.parameter,
            parameter_key=request.parameter_key,
            custom_parameter_name=custom_name,
            unit=request.unit,
            goal_type=request.goal_type,
            target=target,
            initial_value=request.initial_value,
            current_value=request.initial_value,
            tracking_frequency=request.tracking_frequency,
            start_date=now,
            deadline=request.deadline,
            milestones=milestones,
            notes=request.notes,
        )
        goal = engine.reevaluate(goal)
        return self.db.create_goal(goal)

    def list_goals(self, user_id: str, status: Optional[str] = None) -> list[Goal]:
        """
        List a user's goals, expiring any in-progress goal past its deadline.

        Args:
            user_id: Owner
            status: Status filter; None or "all" returns everything
        """
        status_filter = None
        if status and status != "all":
            try:
                status_filter = GoalStatus(status)
            except ValueError:
                raise GoalError(f"Unknown goal status: {status}") from None

        refreshed = self._refresh_expiry(self.db.list_goals(user_id, status_filter))

        if status_filter:
            refreshed = [g for g in refreshed if g.status == status_filter]
        return refreshed

    def get_goal(self, user_id: str, goal_id: int) -> Goal:
        goal = self.db.get_goal(goal_id, user_id)
        if goal is None:
            raise GoalNotFound(goal_id)
        return self._refresh_expiry([goal])[0]

    def _refresh_expiry(self, goals: list[Goal]) -> list[Goal]:
        """Expire overdue in-progress goals, saving the ones that changed."""
        now = datetime.now(timezone.utc)
        refreshed = []
        for goal in goals:
            checked = engine.check_expiry(goal, now)
            if checked.status != goal.status:
                checked = self.db.save_goal(checked)
            refreshed.append(checked)
        return refreshed

    def edit_goal(self, user_id: str, goal_id: int, request: GoalUpdate) -> Goal:
        """
        Apply a partial update and re-evaluate the goal.

        Changing the initial value of a goal with at most one milestone also
        resets its starting milestone and current value.
        """
        goal = self.get_goal(user_id, goal_id)
        changes = request.model_dump(exclude_unset=True)

        target_value = changes.get("target_value", goal.target_value)
        min_value = changes.get("min_value", goal.min_value)
        max_value = changes.get("max_value", goal.max_value)
        if {"target_value", "min_value", "max_value"} & changes.keys():
            target = build_target(target_value, min_value, max_value)
        else:
            target = goal.target
        check_goal_type(goal.goal_type, target)

        updated = replace(
            goal,
            target=target,
            deadline=changes.get("deadline", goal.deadline),
            notes=changes.get("notes", goal.notes),
            tracking_frequency=changes.get("tracking_frequency") or goal.tracking_frequency,
            milestones=list(goal.milestones),
        )

        if "initial_value" in changes and changes["initial_value"] != goal.initial_value:
            updated.initial_value = changes["initial_value"]
            self._reset_starting_value(updated)

        updated = engine.reevaluate(updated)
        return self.db.save_goal(updated)

    def _reset_starting_value(self, goal: Goal):
        if goal.initial_value is None and isinstance(goal.target, FixedTarget):
            raise InvalidGoalConfiguration("Initial value is required for fixed target goals")

        # Once real progress exists the current value reflects it, not the baseline
        if len(goal.milestones) > 1:
            return

        goal.current_value = goal.initial_value
        if goal.initial_value is None:
            goal.milestones.clear()
            return

        now = datetime.now(timezone.utc)
        if goal.milestones:
            goal.milestones[0] = Milestone(
                date=now, value=goal.initial_value, note="Starting value (Updated)"
            )
        else:
            goal.milestones.append(
                Milestone(date=now, value=goal.initial_value, note="Starting value (Initial)")
            )

    def delete_goal(self, user_id: str, goal_id: int):
        """
        Delete a goal, removing its calendar event first when it has one.

        Calendar failures are logged and never block the deletion.
        """
        goal = self.get_goal(user_id, goal_id)

        if goal.google_event_id:
            self._remove_calendar_event(user_id, goal.google_event_id)

        self.db.delete_goal(goal_id, user_id)

    def _remove_calendar_event(self, user_id: str, event_id: str):
        token = self.tokens.get_token(user_id)
        if not token:
            logger.warning(f"No calendar token for user {user_id}, leaving event {event_id}")
            return

        try:
            self.calendar_factory(token).delete_event(event_id)
        except CalendarError as e:
            logger.warning(f"Failed to delete calendar event {event_id}: {e}")

    def goal_stats(self, user_id: str) -> GoalStats:
        """Count goals per status and average their progress."""
        goals = self._refresh_expiry(self.db.list_goals(user_id))
        if not goals:
            return GoalStats()

        achieved = [g for g in goals if g.status == GoalStatus.ACHIEVED]
        most_recent = max(
            achieved,
            key=lambda g: engine.as_utc(g.updated_at or g.created_at),
            default=None,
        )

        return GoalStats(
            total=len(goals),
            in_progress=sum(1 for g in goals if g.status == GoalStatus.IN_PROGRESS),
            achieved=len(achieved),
            expired=sum(1 for g in goals if g.status == GoalStatus.EXPIRED),
            failed=sum(1 for g in goals if g.status == GoalStatus.FAILED),
            average_progress=round(sum(g.progress for g in goals) / len(goals), 1),
            most_recent_achievement=GoalResponse.from_goal(most_recent) if most_recent else None,
        )

    def add_milestone(
        self, user_id: str, goal_id: int, value: float, note: Optional[str] = None
    ) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        updated = engine.apply_observation(goal, value, note or "Manual entry")
        return self.db.save_goal(updated)

    def edit_milestone(
        self,
        user_id: str,
        goal_id: int,
        index: int,
        value: Optional[float] = None,
        note: Optional[str] = None,
    ) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        if not 0 <= index < len(goal.milestones):
            raise MilestoneNotFound(index)

        milestones = list(goal.milestones)
        old = milestones[index]
        milestones[index] = Milestone(
            date=old.date,
            value=old.value if value is None else value,
            note=old.note if note is None else note,
        )

        updated = engine.reevaluate(replace(goal, milestones=milestones))
        return self.db.save_goal(updated)

    def delete_milestone(self, user_id: str, goal_id: int, index: int) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        if not 0 <= index < len(goal.milestones):
            raise MilestoneNotFound(index)
        if len(goal.milestones) == 1:
            raise LastMilestoneError()

        milestones = [m for i, m in enumerate(goal.milestones) if i != index]
        updated = engine.reevaluate(replace(goal, milestones=milestones))
        return self.db.save_goal(updated)

    def apply_readings(
        self, user_id: str, readings: list[Reading], goal_id: Optional[int] = None
    ) -> list[Goal]:
        """
        Record matching health-log readings against goals.

        Args:
            user_id: Owner
            readings: Readings from the latest health log
            goal_id: Update only this goal; otherwise every in-progress goal

        Returns:
            Goals that received a new observation
        """
        if goal_id is not None:
            goals = [self.get_goal(user_id, goal_id)]
            note = "Progress update"
        else:
            goals = self._refresh_expiry(self.db.list_goals(user_id, GoalStatus.IN_PROGRESS))
            goals = [g for g in goals if g.status == GoalStatus.IN_PROGRESS]
            note = "Auto-updated from health log"

        updated = []
        for goal in goals:
            value = _match_reading(goal.parameter, readings)
            if value is None:
                continue
            goal = engine.apply_observation(goal, value, note)
            updated.append(self.db.save_goal(goal))

        logger.info(f"Applied {len(readings)} readings for user {user_id}: {len(updated)} goals updated")
        return updated

    def connect_calendar(self, user_id: str, access_token: str):
        self.tokens.connect(user_id, access_token)

    def calendar_connected(self, user_id: str) -> bool:
        return self.tokens.get_token(user_id) is not None

    def link_calendar_event(self, user_id: str, request: CalendarEventCreate) -> dict:
        """
        Create a calendar event, optionally linking it to a goal.

        Returns:
            Dictionary with keys: id, htmlLink
        """
        client = self._calendar_client(user_id)
        goal = self.get_goal(user_id, request.goal_id) if request.goal_id is not None else None

        event = client.create_event(
            title=request.title,
            start=request.start_date_time,
            end=request.end_date_time,
            description=request.description,
            recurrence=request.recurrence,
        )

        if goal is not None:
            goal.google_event_id = event["id"]
            goal.sync_to_google_calendar = True
            self.db.save_goal(goal)

        return event

    def unlink_calendar_event(self, user_id: str, event_id: str):
        """Delete a calendar event and clear it from the user's goals."""
        client = self._calendar_client(user_id)
        try:
            client.delete_event(event_id)
        except CalendarEventNotFound:
            logger.info(f"Calendar event {event_id} already deleted")

        self.db.clear_calendar_events(user_id, event_id)

    def synced_events(self, user_id: str) -> list[SyncedEvent]:
        return [
            SyncedEvent(
                goal_id=goal.id,
                title=goal.parameter,
                google_event_id=goal.google_event_id,
                frequency=goal.tracking_frequency,
                deadline=goal.deadline,
                created_at=goal.created_at,
            )
            for goal in self.db.list_goals(user_id)
            if goal.google_event_id
        ]

    def disconnect_calendar(self, user_id: str):
        self.tokens.disconnect(user_id)
        cleared = self.db.clear_calendar_events(user_id)
        logger.info(f"Unlinked {cleared} goals from calendar for user {user_id}")

    def _calendar_client(self, user_id: str) -> CalendarClient:
        token = self.tokens.get_token(user_id)
        if not token:
            raise CalendarNotConnected()
        return self.calendar_factory(token)


def _match_reading(parameter: str, readings: list[Reading]) -> Optional[float]:
    """
    Find the value of the first reading whose name matches the goal parameter.

    Matching is a case-insensitive substring test in either direction.
    """
    wanted = parameter.lower()

    for reading in readings:
        name = reading.test_name.lower()
        if not name or not (name in wanted or wanted in name):
            continue

        try:
            return float(reading.value)
        except (ValueError, TypeError):
            logger.warning(f"Non-numeric reading for {reading.test_name}: {reading.value}")
            continue

    return None
