"""Calendar REST client with a stubbed HTTP session."""

from datetime import datetime, timezone

import pytest
import requests

from healthlink.calendar_sync.client import (
    CalendarClient,
    CalendarError,
    CalendarEventNotFound,
)


class StubResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self.ok = status_code < 400
        self.payload = payload or {}
        self.text = str(self.payload)

    def json(self):
        return self.payload


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response


def make_client(session):
    return CalendarClient("tok", api_url="https://cal.test/v3/", session=session)


def test_create_event_payload():
    session = StubSession(StubResponse(200, {"id": "evt-1", "htmlLink": "https://cal/evt-1"}))
    start = datetime(2026, 5, 1, 8, tzinfo=timezone.utc)

    event = make_client(session).create_event(
        "Weigh-in", start, start, recurrence="RRULE:FREQ=WEEKLY"
    )

    assert event == {"id": "evt-1", "htmlLink": "https://cal/evt-1"}
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://cal.test/v3/calendars/primary/events")
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    body = kwargs["json"]
    assert body["description"] == "HealthLink Goal: Weigh-in"
    assert body["recurrence"] == ["RRULE:FREQ=WEEKLY"]
    assert body["start"]["timeZone"] == "UTC"


def test_delete_event():
    session = StubSession(StubResponse(204))
    make_client(session).delete_event("evt-1")
    assert session.calls[0][:2] == ("DELETE", "https://cal.test/v3/calendars/primary/events/evt-1")


@pytest.mark.parametrize("status", [404, 410])
def test_delete_missing_event(status):
    with pytest.raises(CalendarEventNotFound):
        make_client(StubSession(StubResponse(status))).delete_event("evt-1")


def test_api_and_network_errors():
    with pytest.raises(CalendarError):
        make_client(StubSession(StubResponse(401, {"error": "invalid_token"}))).delete_event("e")

    with pytest.raises(CalendarError):
        make_client(StubSession(error=requests.ConnectionError("down"))).delete_event("e")


class UnreadableResponse(StubResponse):
    def json(self):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")


def test_create_event_with_unreadable_body():
    start = datetime(2026, 5, 1, 8, tzinfo=timezone.utc)
    client = make_client(StubSession(UnreadableResponse(200)))

    with pytest.raises(CalendarError, match="unreadable"):
        client.create_event("Weigh-in", start, start)
