"""Goal API models."""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from .models import Goal, GoalStatus, GoalType, Milestone, TrackingFrequency


class GoalCreate(BaseModel):
    """Request body for POST /api/goals."""

    parameter: str = Field(..., min_length=1)
    unit: str = Field(..., min_length=1)
    goal_type: GoalType
    parameter_key: Optional[str] = None
    custom_parameter_name: Optional[str] = None
    initial_value: Optional[float] = None
    target_value: Optional[float] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    tracking_frequency: TrackingFrequency = TrackingFrequency.DAILY
    deadline: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class GoalUpdate(BaseModel):
    """
    Request body for PUT /api/goals/{id}.

    Only fields present in the request are applied; an explicit null clears
    the field.
    """

    initial_value: Optional[float] = None
    target_value: Optional[float] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    deadline: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)
    tracking_frequency: Optional[TrackingFrequency] = None


class MilestoneCreate(BaseModel):
    value: float
    note: Optional[str] = None


class MilestoneUpdate(BaseModel):
    value: Optional[float] = None
    note: Optional[str] = None


class Reading(BaseModel):
    """A single test reading from a health log."""

    test_name: str
    value: Union[float, str]
    unit: Optional[str] = None


class ReadingsRequest(BaseModel):
    readings: list[Reading]


class MilestoneResponse(BaseModel):
    date: datetime
    value: float
    note: str

    @classmethod
    def from_milestone(cls, milestone: Milestone) -> "MilestoneResponse":
        return cls(date=milestone.date, value=milestone.value, note=milestone.note)


class GoalResponse(BaseModel):
    """Goal as returned by the API."""

    id: int
    user_id: str
    parameter: str
    parameter_key: Optional[str] = None
    custom_parameter_name: Optional[str] = None
    unit: str
    goal_type: GoalType
    initial_value: Optional[float] = None
    target_value: Optional[float] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    current_value: Optional[float] = None
    tracking_frequency: TrackingFrequency
    start_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    status: GoalStatus
    progress: float
    milestones: list[MilestoneResponse]
    notes: Optional[str] = None
    google_event_id: Optional[str] = None
    sync_to_google_calendar: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_goal(cls, goal: Goal) -> "GoalResponse":
        return cls(
            id=goal.id,
            user_id=goal.user_id,
            parameter=goal.parameter,
            parameter_key=goal.parameter_key,
            custom_parameter_name=goal.custom_parameter_name,
            unit=goal.unit,
            goal_type=goal.kind,
            initial_value=goal.initial_value,
            target_value=goal.target_value,
            min_value=goal.min_value,
            max_value=goal.max_value,
            current_value=goal.current_value,
            tracking_frequency=goal.tracking_frequency,
            start_date=goal.start_date,
            deadline=goal.deadline,
            status=goal.status,
            progress=goal.progress,
            milestones=[MilestoneResponse.from_milestone(m) for m in goal.milestones],
            notes=goal.notes,
            google_event_id=goal.google_event_id,
            sync_to_google_calendar=goal.sync_to_google_calendar,
            created_at=goal.created_at,
            updated_at=goal.updated_at,
        )


class GoalListResponse(BaseModel):
    success: bool = True
    data: list[GoalResponse]
    total: int


class GoalEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: GoalResponse


class GoalStats(BaseModel):
    """Summary of a user's goals."""

    total: int = 0
    in_progress: int = 0
    achieved: int = 0
    expired: int = 0
    failed: int = 0
    average_progress: float = 0.0
    most_recent_achievement: Optional[GoalResponse] = None


class GoalStatsResponse(BaseModel):
    success: bool = True
    data: GoalStats


class ReadingsResponse(BaseModel):
    success: bool = True
    message: str
    updated_count: int
    data: list[GoalResponse]


class CalendarConnect(BaseModel):
    access_token: str = Field(..., min_length=1)


class CalendarEventCreate(BaseModel):
    """Request body for POST /api/calendar/create-event."""

    title: str = Field(..., min_length=1)
    start_date_time: datetime
    end_date_time: datetime
    description: Optional[str] = None
    recurrence: Optional[str] = None  # e.g. "RRULE:FREQ=WEEKLY"
    goal_id: Optional[int] = None


class CalendarEventDelete(BaseModel):
    event_id: str = Field(..., min_length=1)


class SyncedEvent(BaseModel):
    goal_id: int
    title: str
    google_event_id: str
    frequency: TrackingFrequency
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None
