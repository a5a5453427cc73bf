"""
Google Calendar API backend (google-api-python-client).
"""

import logging
from contextlib import contextmanager
from datetime import date
from datetime import datetime

from dateutil.parser import isoparse
from google.auth.exceptions import GoogleAuthError
from google.auth.exceptions import TransportError
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from work_calendar_sync.calendar_client import CalendarClient
from work_calendar_sync.models import TRACKING_KEY
from work_calendar_sync.models import AllDay
from work_calendar_sync.models import AuthError
from work_calendar_sync.models import CalendarAPIError
from work_calendar_sync.models import Event
from work_calendar_sync.models import EventTime
from work_calendar_sync.models import Timed

logger = logging.getLogger(__name__)

_PAGE_SIZE = 2500


@contextmanager
def _api_errors(action: str):
    """Translate API, transport and credential failures into CalendarSyncError."""
    try:
        yield
    except (HttpError, HttpLib2Error, TransportError, OSError) as e:
        raise CalendarAPIError(f"Google: failed to {action}: {e}") from e
    except GoogleAuthError as e:
        # RefreshError and friends: the grant was revoked or expired mid-run.
        raise AuthError(f"Google: authorization failed while trying to {action}: {e}") from e


def _parse_time(start: dict, end: dict) -> EventTime:
    if start.get("date") and end.get("date"):
        return AllDay(date.fromisoformat(start["date"]), date.fromisoformat(end["date"]))
    if start.get("dateTime") and end.get("dateTime"):
        return Timed(
            isoparse(start["dateTime"]),
            isoparse(end["dateTime"]),
            start.get("timeZone"),
        )
    raise ValueError(f"unsupported start/end: {start!r} / {end!r}")


def event_from_google(item: dict) -> Event:
    """Convert a Calendar API event resource into an Event."""
    try:
        when = _parse_time(item.get("start") or {}, item.get("end") or {})
    except (ValueError, OverflowError) as e:
        logger.debug("Unparseable time on event %s: %s", item.get("id"), e)
        when = None

    private = ((item.get("extendedProperties") or {}).get("private")) or {}
    return Event(
        id=item.get("id"),
        summary=item.get("summary", ""),
        description=item.get("description", ""),
        location=item.get("location", ""),
        when=when,
        transparent=item.get("transparency") == "transparent",
        event_type=item.get("eventType"),
        recurring_event_id=item.get("recurringEventId"),
        private=dict(private),
        conference=item.get("conferenceData"),
    )


def _time_to_google(value, time_zone: str | None) -> dict:
    if isinstance(value, datetime):
        body = {"dateTime": value.isoformat()}
        if time_zone:
            body["timeZone"] = time_zone
        return body
    return {"date": value.isoformat()}


def event_to_google(event: Event) -> dict:
    """Build the request body for insert/update. Attendees are never sent."""
    body = {
        "summary": event.summary,
        "description": event.description,
        "location": event.location,
        "reminders": {"useDefault": True},
        "extendedProperties": {"private": dict(event.private)},
    }
    if event.when is not None:
        tz = event.when.time_zone if isinstance(event.when, Timed) else None
        body["start"] = _time_to_google(event.when.start, tz)
        body["end"] = _time_to_google(event.when.end, tz)
    if event.transparent:
        body["transparency"] = "transparent"
    if event.conference:
        body["conferenceData"] = event.conference
    return body


class GoogleCalendarClient(CalendarClient):
    """Wrapper around a built ``calendar`` v3 service."""

    def __init__(self, service):
        self.service = service

    def find_or_create_calendar(self, name: str, color: str | None = None) -> str:
        with _api_errors(f"find or create calendar '{name}'"):
            page_token = None
            while True:
                resp = self.service.calendarList().list(pageToken=page_token).execute()
                for entry in resp.get("items", []):
                    if entry.get("summary") == name:
                        return entry["id"]
                page_token = resp.get("nextPageToken")
                if not page_token:
                    break

            created = (
                self.service.calendars()
                .insert(body={"summary": name, "description": "Synced calendar from work account"})
                .execute()
            )

        if color:
            try:
                with _api_errors("set calendar color"):
                    self.service.calendarList().patch(
                        calendarId=created["id"], body={"colorId": color}
                    ).execute()
            except CalendarAPIError as e:
                logger.warning("Failed to set calendar color: %s", e)
        logger.info("Created calendar '%s'", name)
        return created["id"]

    def _list(self, **params) -> list[Event]:
        items = []
        page_token = None
        while True:
            resp = (
                self.service.events()
                .list(singleEvents=True, maxResults=_PAGE_SIZE, pageToken=page_token, **params)
                .execute()
            )
            items.extend(resp.get("items", []))
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        return [event_from_google(item) for item in items]

    def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> list[Event]:
        with _api_errors("list events"):
            return self._list(
                calendarId=calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
            )

    def get_event(self, calendar_id: str, event_id: str) -> Event:
        with _api_errors(f"get event {event_id}"):
            item = self.service.events().get(calendarId=calendar_id, eventId=event_id).execute()
        return event_from_google(item)

    def insert_event(self, calendar_id: str, event: Event) -> None:
        with _api_errors("insert event"):
            self.service.events().insert(
                calendarId=calendar_id,
                body=event_to_google(event),
                sendUpdates="none",
                conferenceDataVersion=1,
            ).execute()

    def update_event(self, calendar_id: str, event_id: str, event: Event) -> None:
        with _api_errors(f"update event {event_id}"):
            self.service.events().update(
                calendarId=calendar_id,
                eventId=event_id,
                body=event_to_google(event),
                sendUpdates="none",
                conferenceDataVersion=1,
            ).execute()

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        with _api_errors(f"delete event {event_id}"):
            self.service.events().delete(
                calendarId=calendar_id, eventId=event_id, sendUpdates="none"
            ).execute()

    def find_events_by_tracking_key(self, calendar_id: str, key: str) -> list[Event]:
        with _api_errors("find events by tracking key"):
            return self._list(
                calendarId=calendar_id,
                privateExtendedProperty=f"{TRACKING_KEY}={key}",
            )
