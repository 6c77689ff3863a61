"""Google Calendar REST client."""

import logging
from datetime import datetime
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com/calendar/v3"


class CalendarError(Exception):
    """Calendar API call failed."""


class CalendarEventNotFound(CalendarError):
    """Event doesn't exist (or was already deleted)."""


class CalendarClient:
    """Client for the primary calendar of one user."""

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize calendar client.

        Args:
            access_token: OAuth access token with calendar scope
            api_url: Calendar API base URL
            timeout: Request timeout in seconds
            session: Optional requests session to reuse
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _events_url(self, event_id: Optional[str] = None) -> str:
        url = f"{self.api_url}/calendars/primary/events"
        return f"{url}/{event_id}" if event_id else url

    def create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        description: Optional[str] = None,
        recurrence: Optional[str] = None,
    ) -> dict:
        """
        Create an event on the user's primary calendar.

        Args:
            title: Event summary
            start: Event start
            end: Event end
            description: Event description, defaults to a goal reminder text
            recurrence: Optional RRULE (e.g., "RRULE:FREQ=WEEKLY")

        Returns:
            Dictionary with keys: id, htmlLink
        """
        event = {
            "summary": title,
            "description": description or f"HealthLink Goal: {title}",
            "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "popup", "minutes": 30},
                    {"method": "email", "minutes": 60},
                ],
            },
        }
        if recurrence:
            event["recurrence"] = [recurrence]

        response = self._request("POST", self._events_url(), json=event)
        try:
            data = response.json()
        except ValueError as e:
            raise CalendarError(f"Calendar API returned an unreadable event: {e}") from e
        logger.info(f"Created calendar event {data.get('id')}")
        return {"id": data.get("id"), "htmlLink": data.get("htmlLink")}

    def delete_event(self, event_id: str):
        """
        Delete an event from the user's primary calendar.

        Raises:
            CalendarEventNotFound: The event is already gone
            CalendarError: Any other API or network failure
        """
        self._request("DELETE", self._events_url(event_id))
        logger.info(f"Deleted calendar event {event_id}")

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(
                method, url, headers=self.headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise CalendarError(f"Calendar request failed: {e}") from e

        if response.status_code in (404, 410):
            raise CalendarEventNotFound(f"Calendar event not found: {url}")

        if not response.ok:
            logger.error(f"Calendar API error {response.status_code}: {response.text}")
            raise CalendarError(
                f"Calendar API returned {response.status_code}: {response.text}"
            )

        return response


def demo_calendar():
    """Create and delete a throwaway event with the token from .env."""
    import os
    from datetime import timedelta, timezone

    from dotenv import load_dotenv

    load_dotenv()

    token = os.getenv("GOOGLE_ACCESS_TOKEN")
    if not token:
        print("Error: GOOGLE_ACCESS_TOKEN must be set in .env file")
        return

    client = CalendarClient(token)
    start = datetime.now(timezone.utc) + timedelta(hours=1)
    event = client.create_event("HealthLink test", start, start + timedelta(minutes=15))
    print(f"Created event: {event['htmlLink']}")

    client.delete_event(event["id"])
    print("Deleted event")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    demo_calendar()
