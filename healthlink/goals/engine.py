"""Goal progress calculation and lifecycle updates."""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from .models import FixedTarget, Goal, GoalStatus, GoalType, Milestone, RangeBand

logger = logging.getLogger(__name__)

# Maintain goals count as met within this fraction of the target
MAINTAIN_TOLERANCE = 0.05


def compute_progress(goal: Goal) -> float:
    """
    Calculate completion percentage for a goal.

    Args:
        goal: Goal snapshot

    Returns:
        Progress in [0, 100]; 0 when no value has been observed yet
    """
    current = goal.current_value
    if current is None:
        return 0.0

    if isinstance(goal.target, RangeBand):
        progress = _range_progress(goal.target, current)
    else:
        progress = _fixed_progress(goal, goal.target, current)

    return min(100.0, max(0.0, progress))


def is_achieved(goal: Goal) -> bool:
    """Check whether the goal's target condition holds for the current value."""
    current = goal.current_value
    if current is None:
        return False

    target = goal.target
    if isinstance(target, RangeBand):
        if target.minimum is None and target.maximum is None:
            return False
        if target.minimum is not None and current < target.minimum:
            return False
        if target.maximum is not None and current > target.maximum:
            return False
        return True

    if goal.goal_type == GoalType.DECREASE:
        return current <= target.value
    if goal.goal_type == GoalType.INCREASE:
        return current >= target.value
    if goal.goal_type == GoalType.MAINTAIN:
        return abs(current - target.value) <= _tolerance(target.value)

    return False


def apply_observation(
    goal: Goal,
    value: float,
    note: str = "Progress update",
    timestamp: Optional[datetime] = None,
) -> Goal:
    """
    Record a newly observed value against a goal.

    Args:
        goal: Goal snapshot, left untouched
        value: Observed value
        note: Milestone note
        timestamp: Observation time, defaults to now (UTC)

    Returns:
        New snapshot with the milestone appended and progress/status updated
    """
    milestone = Milestone(
        date=timestamp or datetime.now(timezone.utc),
        value=value,
        note=note,
    )
    updated = replace(goal, milestones=[*goal.milestones, milestone])
    return reevaluate(updated)


def reevaluate(goal: Goal) -> Goal:
    """
    Recompute current value, progress and status after any mutation.

    The last milestone defines the current value. Status becomes achieved when
    the target holds, and an achieved goal drops back to in-progress when it no
    longer does. Expired and failed goals only move on achievement.
    """
    current = goal.milestones[-1].value if goal.milestones else goal.current_value
    updated = replace(goal, current_value=current)
    updated.progress = compute_progress(updated)
    updated.status = _next_status(updated)
    return updated


def check_expiry(goal: Goal, now: Optional[datetime] = None) -> Goal:
    """
    Re-derive status for an in-progress goal whose deadline has passed.

    Args:
        goal: Goal snapshot
        now: Evaluation time, defaults to now (UTC)

    Returns:
        The same snapshot when nothing changes, otherwise an updated copy
    """
    if goal.status != GoalStatus.IN_PROGRESS or goal.deadline is None:
        return goal

    now = now or datetime.now(timezone.utc)
    if as_utc(goal.deadline) >= as_utc(now):
        return goal

    status = GoalStatus.ACHIEVED if is_achieved(goal) else GoalStatus.EXPIRED
    logger.info(f"Goal {goal.id} passed its deadline: {status.value}")
    return replace(goal, status=status)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _next_status(goal: Goal) -> GoalStatus:
    if is_achieved(goal):
        if goal.status != GoalStatus.ACHIEVED:
            logger.info(f"Goal {goal.id} ({goal.parameter}) achieved")
        return GoalStatus.ACHIEVED

    if goal.status == GoalStatus.ACHIEVED:
        logger.info(f"Goal {goal.id} ({goal.parameter}) no longer achieved")
        return GoalStatus.IN_PROGRESS

    return goal.status


def _tolerance(target: float) -> float:
    return abs(target) * MAINTAIN_TOLERANCE


def _range_progress(band: RangeBand, current: float) -> float:
    """
    Progress towards an acceptable band.

    Example:
        min = 10, max = 20, current = 8
        = 100 - (2 / 10) * 100 = 80
    """
    low, high = band.minimum, band.maximum

    if low is not None and high is not None:
        if low <= current <= high:
            return 100.0
        span = high - low
        if span <= 0:
            return 0.0
        distance = low - current if current < low else current - high
        return 100 - (distance / span) * 100

    if low is not None:
        if current >= low:
            return 100.0
        if low <= 0:
            return 0.0
        return current / low * 100

    if high is not None:
        if current <= high:
            return 100.0
        if current == 0:
            return 0.0
        return high / current * 100

    return 0.0


def _fixed_progress(goal: Goal, target: FixedTarget, current: float) -> float:
    """Progress for decrease, increase and maintain goals."""
    if goal.goal_type == GoalType.MAINTAIN:
        tolerance = _tolerance(target.value)
        diff = abs(current - target.value)
        if diff <= tolerance:
            return 100.0
        if tolerance == 0:
            return 0.0
        return 100 - (diff / tolerance) * 50

    start = _baseline(goal, current)

    if goal.goal_type == GoalType.DECREASE:
        if start == target.value:
            return 100.0 if current <= target.value else 0.0
        return (start - current) / (start - target.value) * 100

    if goal.goal_type == GoalType.INCREASE:
        if start == target.value:
            return 100.0 if current >= target.value else 0.0
        return (current - start) / (target.value - start) * 100

    return 0.0


def _baseline(goal: Goal, current: float) -> float:
    if goal.initial_value is not None:
        return goal.initial_value
    if goal.milestones:
        return goal.milestones[0].value
    return current
