"""
CalDAV backend (iCloud and other CalDAV servers) built on the ``caldav`` and
``icalendar`` packages.

The tracking key travels as the ``X-WORK-EVENT-ID`` property and the meeting
link as ``URL``; both are mapped back onto the same fields the Google backend
uses so events compare equal across passes.
"""

import logging
import uuid
from datetime import date
from datetime import datetime
from datetime import timedelta
from datetime import timezone

import caldav
from caldav.lib.error import DAVError
from caldav.lib.error import NotFoundError
from icalendar import Calendar
from icalendar import Event as VEvent

from work_calendar_sync.calendar_client import CalendarClient
from work_calendar_sync.models import TRACKING_KEY
from work_calendar_sync.models import AllDay
from work_calendar_sync.models import CalendarAPIError
from work_calendar_sync.models import Event
from work_calendar_sync.models import EventTime
from work_calendar_sync.models import Timed

logger = logging.getLogger(__name__)

TRACKING_PROPERTY = "X-WORK-EVENT-ID"
PRODID = "-//work-calendar-sync//EN"
UID_SUFFIX = "@work-calendar-sync"
# How far either side of today find_events_by_tracking_key looks.
TRACKING_SCAN_RANGE = timedelta(days=365)


def _aware(value: datetime) -> datetime:
    # Floating times are read as system local time.
    return value if value.tzinfo is not None else value.astimezone()


def _decode_time(vevent) -> EventTime:
    if vevent.get("DTSTART") is None:
        raise ValueError("missing DTSTART")
    start = vevent.decoded("DTSTART")

    end = vevent.decoded("DTEND") if vevent.get("DTEND") is not None else None
    if end is None and vevent.get("DURATION") is not None:
        end = start + vevent.decoded("DURATION")

    if isinstance(start, datetime):
        start = _aware(start)
        end = _aware(end) if isinstance(end, datetime) else start
        tzid = vevent["DTSTART"].params.get("TZID")
        return Timed(start, end, str(tzid) if tzid else None)

    if not isinstance(end, date) or isinstance(end, datetime):
        end = start + timedelta(days=1)
    return AllDay(start, end)


def event_from_ical(vevent) -> Event:
    """Convert an icalendar VEVENT component into an Event."""
    uid = str(vevent.get("UID", "")) or None
    try:
        when = _decode_time(vevent)
    except (ValueError, TypeError, KeyError) as e:
        logger.debug("Unparseable time on event %s: %s", uid, e)
        when = None

    private = {}
    key = vevent.get(TRACKING_PROPERTY)
    if key:
        private[TRACKING_KEY] = str(key)

    conference = None
    url = vevent.get("URL")
    if url:
        conference = {"entryPoints": [{"entryPointType": "video", "uri": str(url)}]}

    return Event(
        id=uid,
        summary=str(vevent.get("SUMMARY", "")),
        description=str(vevent.get("DESCRIPTION", "")),
        location=str(vevent.get("LOCATION", "")),
        when=when,
        transparent=str(vevent.get("TRANSP", "")).upper() == "TRANSPARENT",
        private=private,
        conference=conference,
    )


def event_to_ical(event: Event, uid: str, now: datetime | None = None) -> bytes:
    """Serialise an Event as a single-VEVENT VCALENDAR."""
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")

    vevent = VEvent()
    vevent.add("uid", uid)
    vevent.add("dtstamp", now or datetime.now(timezone.utc))
    vevent.add("summary", event.summary)
    if event.description:
        vevent.add("description", event.description)
    if event.location:
        vevent.add("location", event.location)

    if isinstance(event.when, Timed):
        vevent.add("dtstart", event.when.start.astimezone(timezone.utc))
        vevent.add("dtend", event.when.end.astimezone(timezone.utc))
    elif isinstance(event.when, AllDay):
        vevent.add("dtstart", event.when.start)
        vevent.add("dtend", event.when.end)

    if event.meeting_url:
        vevent.add("url", event.meeting_url)
    vevent.add("transp", "TRANSPARENT" if event.transparent else "OPAQUE")
    if event.tracking_key:
        vevent.add(TRACKING_PROPERTY, event.tracking_key)

    cal.add_component(vevent)
    return cal.to_ical()


class CalDAVCalendarClient(CalendarClient):
    """CalendarClient over a CalDAV account; calendar ids are collection URLs."""

    def __init__(self, server_url: str, username: str, password: str, timeout: int = 30):
        self.client = caldav.DAVClient(
            url=server_url, username=username, password=password, timeout=timeout
        )
        self._principal = None
        self._calendars: dict[str, caldav.Calendar] = {}

    def _get_principal(self):
        if self._principal is None:
            self._principal = self.client.principal()
        return self._principal

    def _calendar(self, calendar_id: str):
        cal = self._calendars.get(calendar_id)
        if cal is None:
            cal = caldav.Calendar(client=self.client, url=calendar_id)
            self._calendars[calendar_id] = cal
        return cal

    def find_or_create_calendar(self, name: str, color: str | None = None) -> str:
        # CalDAV has no Google colour palette; the colour is ignored.
        try:
            principal = self._get_principal()
            for cal in principal.calendars():
                if cal.name == name:
                    self._calendars[str(cal.url)] = cal
                    return str(cal.url)
            cal = principal.make_calendar(name=name)
        except (DAVError, OSError) as e:
            raise CalendarAPIError(f"CalDAV: failed to find or create calendar '{name}': {e}") from e
        logger.info("Created calendar '%s'", name)
        self._calendars[str(cal.url)] = cal
        return str(cal.url)

    def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> list[Event]:
        try:
            objects = self._calendar(calendar_id).search(
                start=time_min, end=time_max, event=True, expand=True
            )
        except (DAVError, OSError) as e:
            raise CalendarAPIError(f"CalDAV: failed to list events: {e}") from e
        return [event_from_ical(obj.icalendar_component) for obj in objects]

    def _object(self, calendar_id: str, event_id: str):
        return self._calendar(calendar_id).event_by_uid(event_id)

    def get_event(self, calendar_id: str, event_id: str) -> Event:
        try:
            obj = self._object(calendar_id, event_id)
        except (DAVError, OSError) as e:
            raise CalendarAPIError(f"CalDAV: failed to get event {event_id}: {e}") from e
        return event_from_ical(obj.icalendar_component)

    def insert_event(self, calendar_id: str, event: Event) -> None:
        uid = f"{uuid.uuid4()}{UID_SUFFIX}"
        try:
            self._calendar(calendar_id).save_event(event_to_ical(event, uid))
        except (DAVError, OSError) as e:
            raise CalendarAPIError(f"CalDAV: failed to insert event: {e}") from e

    def update_event(self, calendar_id: str, event_id: str, event: Event) -> None:
        try:
            obj = self._object(calendar_id, event_id)
            obj.data = event_to_ical(event, event_id)
            obj.save()
        except (DAVError, OSError) as e:
            raise CalendarAPIError(f"CalDAV: failed to update event {event_id}: {e}") from e

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        try:
            self._object(calendar_id, event_id).delete()
        except NotFoundError:
            logger.debug("Event %s already gone", event_id)
        except (DAVError, OSError) as e:
            raise CalendarAPIError(f"CalDAV: failed to delete event {event_id}: {e}") from e

    def find_events_by_tracking_key(self, calendar_id: str, key: str) -> list[Event]:
        now = datetime.now(timezone.utc)
        events = self.list_events(calendar_id, now - TRACKING_SCAN_RANGE, now + TRACKING_SCAN_RANGE)
        return [e for e in events if e.tracking_key == key]
