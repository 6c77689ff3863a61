"""Goal service errors."""


class GoalError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400


class InvalidGoalConfiguration(GoalError):
    """Target, bounds or identifying fields don't form a valid goal."""


class GoalNotFound(GoalError):
    status_code = 404

    def __init__(self, goal_id: int):
        super().__init__("Goal not found")
        self.goal_id = goal_id


class MilestoneNotFound(GoalError):
    status_code = 404

    def __init__(self, index: int):
        super().__init__("Milestone not found")
        self.index = index


class LastMilestoneError(GoalError):
    def __init__(self):
        super().__init__("Cannot delete the last milestone. Delete the goal instead.")


class CalendarNotConnected(GoalError):
    def __init__(self):
        super().__init__("Google Calendar not connected")
