"""Shared fixtures."""

import pytest

from healthlink.calendar_sync.tokens import CalendarTokenStore
from healthlink.goals.database import GoalDatabase
from healthlink.goals.service import GoalService


class FakeCalendarClient:
    """Records calls instead of talking to Google."""

    def __init__(self, token, fail_with=None):
        self.token = token
        self.fail_with = fail_with
        self.created = []
        self.deleted = []

    def create_event(self, title, start, end, description=None, recurrence=None):
        self.created.append(title)
        return {"id": f"evt-{len(self.created)}", "htmlLink": "https://calendar.example/evt"}

    def delete_event(self, event_id):
        if self.fail_with:
            raise self.fail_with
        self.deleted.append(event_id)


class FakeCalendar:
    """Calendar factory handing out one shared fake client."""

    def __init__(self):
        self.fail_with = None
        self.client = None

    def __call__(self, token):
        self.client = FakeCalendarClient(token, self.fail_with)
        return self.client


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "healthlink.db")


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def service(db_path, calendar):
    return GoalService(
        db=GoalDatabase(db_path),
        tokens=CalendarTokenStore(db_path),
        calendar_factory=calendar,
    )
