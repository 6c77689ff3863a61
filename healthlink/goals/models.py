"""Data models for health goals and their targets."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .errors import InvalidGoalConfiguration


class GoalType(str, Enum):
    DECREASE = "decrease"
    INCREASE = "increase"
    MAINTAIN = "maintain"
    RANGE = "range"


class GoalStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    ACHIEVED = "achieved"
    EXPIRED = "expired"
    FAILED = "failed"


class TrackingFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class FixedTarget:
    """Single-point target used by decrease, increase and maintain goals."""
    value: float


@dataclass(frozen=True)
class RangeBand:
    """
    Acceptable band; either bound may be open.

    A single-point target supplied with the bounds is kept so that clearing the
    bounds later returns the goal to it.
    """
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    target: Optional[float] = None


GoalTarget = Union[FixedTarget, RangeBand]


@dataclass
class Milestone:
    """A timestamped observed value recorded against a goal."""
    date: datetime
    value: float
    note: str = ""


@dataclass
class Goal:
    """A tracked health parameter for one user."""
    user_id: str
    parameter: str
    unit: str
    goal_type: GoalType
    target: GoalTarget
    id: Optional[int] = None
    parameter_key: Optional[str] = None
    custom_parameter_name: Optional[str] = None
    initial_value: Optional[float] = None
    current_value: Optional[float] = None
    tracking_frequency: TrackingFrequency = TrackingFrequency.DAILY
    start_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    status: GoalStatus = GoalStatus.IN_PROGRESS
    progress: float = 0.0
    milestones: list[Milestone] = field(default_factory=list)
    notes: Optional[str] = None
    google_event_id: Optional[str] = None
    sync_to_google_calendar: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def kind(self) -> GoalType:
        """Goal type in effect: range whenever a band governs."""
        return GoalType.RANGE if isinstance(self.target, RangeBand) else self.goal_type

    @property
    def target_value(self) -> Optional[float]:
        if isinstance(self.target, FixedTarget):
            return self.target.value
        return self.target.target

    @property
    def min_value(self) -> Optional[float]:
        return self.target.minimum if isinstance(self.target, RangeBand) else None

    @property
    def max_value(self) -> Optional[float]:
        return self.target.maximum if isinstance(self.target, RangeBand) else None


def build_target(
    target_value: Optional[float],
    min_value: Optional[float],
    max_value: Optional[float],
) -> GoalTarget:
    """
    Build the goal target from the optional numeric fields of a request.

    Bounds govern over a single-point target when both are supplied; the
    target is carried on the band.

    Raises:
        InvalidGoalConfiguration: neither a target nor a bound was given, or
            both bounds were given with min >= max.
    """
    if min_value is not None or max_value is not None:
        if min_value is not None and max_value is not None and min_value >= max_value:
            raise InvalidGoalConfiguration("Min value must be less than max value")
        return RangeBand(minimum=min_value, maximum=max_value, target=target_value)

    if target_value is None:
        raise InvalidGoalConfiguration(
            "Please provide either a targetValue OR a min/max range"
        )

    return FixedTarget(value=target_value)


def check_goal_type(goal_type: GoalType, target: GoalTarget):
    """Range goals must keep at least one bound."""
    if goal_type == GoalType.RANGE and isinstance(target, FixedTarget):
        raise InvalidGoalConfiguration(
            "Range goals need a minValue and/or maxValue"
        )
