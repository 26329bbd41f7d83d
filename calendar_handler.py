"""
calendar_handler.py
-------------------
Google Calendar v3 access for booking, cancelling and listing appointments,
plus the {method, params} dispatch behind the calendar proxy endpoint.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config import load_clean_config
from models import create_calendar_event_model

logger = logging.getLogger(__name__)
config = load_clean_config()

SCOPES = ['https://www.googleapis.com/auth/calendar']
DEFAULT_WINDOW = timedelta(days=7)

CALENDAR_METHODS = (
    "calendar.events.list",
    "calendar.events.insert",
    "calendar.events.update",
    "calendar.events.delete",
    "calendar.calendarList.list",
)


class CalendarError(Exception):
    """Raised when the calendar provider rejects a request or cannot be reached."""


class UnknownCalendarMethod(CalendarError):
    pass


def load_credentials():
    """
    Credentials for the calendar API: a service account file when configured,
    otherwise the OAuth token stored by the login callback.
    """
    key_file = config["GOOGLE_APPLICATION_CREDENTIALS"]
    if key_file:
        logger.info("Using service account credentials for calendar access")
        return service_account.Credentials.from_service_account_file(key_file, scopes=SCOPES)

    token_path = Path(config["GOOGLE_TOKEN_FILE"])
    if not token_path.exists():
        raise CalendarError("No calendar credentials available. Sign in with Google first.")

    creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    if not creds.valid:
        if creds.expired and creds.refresh_token:
            logger.info("Refreshing expired Google OAuth token")
            creds.refresh(Request())
            token_path.write_text(creds.to_json())
        else:
            raise CalendarError("Stored Google token is invalid. Sign in with Google again.")
    return creds


def simplify_event(raw):
    """Keeps the event fields the assistant and dashboard use."""
    return create_calendar_event_model(
        id=raw.get("id"),
        summary=raw.get("summary") or "No title",
        description=raw.get("description"),
        start=raw.get("start"),
        end=raw.get("end"),
        location=raw.get("location"),
        attendees=raw.get("attendees")
    )


def _isoformat(value):
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class CalendarClient:
    """Thin wrapper over the googleapiclient calendar resource."""

    def __init__(self, service=None, calendar_id=None):
        self._service = service
        self.calendar_id = calendar_id or config["CALENDAR_ID"]

    @property
    def service(self):
        if self._service is None:
            try:
                credentials = load_credentials()
                self._service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
            except (GoogleAuthError, OSError, ValueError) as e:
                logger.error(f"Calendar authorization failed: {e}")
                raise CalendarError(f"Calendar authorization failed: {e}") from e
        return self._service

    def _execute(self, request, action):
        try:
            return request.execute()
        except (HttpError, GoogleAuthError, OSError) as e:
            logger.error(f"Calendar {action} failed: {e!r}")
            raise CalendarError(f"Calendar {action} failed: {e}") from e

    def list_events_raw(self, time_min=None, time_max=None, max_results=None):
        now = datetime.now(timezone.utc)
        params = {
            "calendarId": self.calendar_id,
            "timeMin": _isoformat(time_min) or now.isoformat(),
            "timeMax": _isoformat(time_max) or (now + DEFAULT_WINDOW).isoformat(),
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if max_results:
            params["maxResults"] = int(max_results)
        result = self._execute(self.service.events().list(**params), "list")
        items = result.get("items", [])
        logger.info(f"Fetched {len(items)} calendar events")
        return items

    def list_events(self, time_min=None, time_max=None, max_results=None):
        return [simplify_event(item) for item in self.list_events_raw(time_min, time_max, max_results)]

    def create_event(self, event):
        body = {key: value for key, value in event.items() if value is not None and key != "id"}
        created = self._execute(self.service.events().insert(calendarId=self.calendar_id, body=body), "insert")
        logger.info(f"Event created: {created.get('id')} {created.get('htmlLink', '')}")
        return simplify_event(created)

    def update_event(self, event_id, event):
        body = {key: value for key, value in event.items() if value is not None}
        updated = self._execute(
            self.service.events().update(calendarId=self.calendar_id, eventId=event_id, body=body),
            "update",
        )
        logger.info(f"Event updated: {event_id}")
        return simplify_event(updated)

    def delete_event(self, event_id):
        self._execute(self.service.events().delete(calendarId=self.calendar_id, eventId=event_id), "delete")
        logger.info(f"Event deleted: {event_id}")
        return True

    def list_calendars(self):
        result = self._execute(self.service.calendarList().list(), "calendarList")
        return result.get("items", [])

    def dispatch(self, method, params=None):
        """
        Forwards a proxy request to the matching calendar call.

        Args:
            method: One of CALENDAR_METHODS.
            params: Google-style parameters; 'resource' or 'requestBody' carry
                    the event body for insert/update.

        Returns:
            The provider's response data.
        """
        params = dict(params or {})
        calendar_id = params.pop("calendarId", None)
        client = self if not calendar_id or calendar_id == self.calendar_id else CalendarClient(self._service, calendar_id)
        body = params.pop("resource", None) or params.pop("requestBody", None) or params.pop("body", None)

        if method == "calendar.events.list":
            items = client.list_events_raw(params.get("timeMin"), params.get("timeMax"), params.get("maxResults"))
            return {"items": items}
        if method == "calendar.events.insert":
            if not body:
                raise ValueError("calendar.events.insert requires an event resource")
            return client.create_event(body)
        if method == "calendar.events.update":
            if not params.get("eventId") or not body:
                raise ValueError("calendar.events.update requires eventId and resource")
            return client.update_event(params["eventId"], body)
        if method == "calendar.events.delete":
            if not params.get("eventId"):
                raise ValueError("calendar.events.delete requires eventId")
            client.delete_event(params["eventId"])
            return {"deleted": params["eventId"]}
        if method == "calendar.calendarList.list":
            return {"items": client.list_calendars()}
        raise UnknownCalendarMethod(f"Unknown method: {method}")
