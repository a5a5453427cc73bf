"""
Tests for the Google Calendar backend: resource conversion and request shape.
"""

from datetime import date
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from unittest.mock import MagicMock

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from work_calendar_sync.google_client import GoogleCalendarClient
from work_calendar_sync.google_client import event_from_google
from work_calendar_sync.google_client import event_to_google
from work_calendar_sync.models import TRACKING_KEY
from work_calendar_sync.models import AllDay
from work_calendar_sync.models import AuthError
from work_calendar_sync.models import CalendarAPIError
from work_calendar_sync.models import Timed
from work_calendar_sync.sync.utils import events_equal
from work_calendar_sync.sync.utils import prepare_sync_event
from tests.conftest import make_all_day
from tests.conftest import make_timed
from tests.conftest import meet

ITEM = {
    "id": "abc123_20260305T100000Z",
    "summary": "Design review",
    "description": "Agenda",
    "location": "Room 4",
    "start": {"dateTime": "2026-03-05T11:00:00+01:00", "timeZone": "Europe/Amsterdam"},
    "end": {"dateTime": "2026-03-05T12:00:00+01:00", "timeZone": "Europe/Amsterdam"},
    "transparency": "transparent",
    "eventType": "default",
    "recurringEventId": "abc123",
    "extendedProperties": {"private": {TRACKING_KEY: "w1"}},
    "conferenceData": meet("https://meet.google.com/xyz"),
    "attendees": [{"email": "boss@example.com"}],
}


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"backend error")


def _request(result=None, error=None):
    request = MagicMock()
    if error is not None:
        request.execute.side_effect = error
    else:
        request.execute.return_value = result
    return request


class TestEventFromGoogle:
    def test_timed_event(self):
        event = event_from_google(ITEM)

        assert event.id == "abc123_20260305T100000Z"
        assert (event.summary, event.description, event.location) == ("Design review", "Agenda", "Room 4")
        assert isinstance(event.when, Timed)
        assert event.when.start == datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc)
        assert event.when.time_zone == "Europe/Amsterdam"
        assert event.transparent
        assert event.recurring_event_id == "abc123"
        assert event.tracking_key == "w1"
        assert event.meeting_url == "https://meet.google.com/xyz"

    def test_all_day_event(self):
        event = event_from_google(
            {"id": "d", "summary": "Holiday", "start": {"date": "2026-03-06"}, "end": {"date": "2026-03-07"}}
        )
        assert event.when == AllDay(date(2026, 3, 6), date(2026, 3, 7))
        assert event.tracking_key is None
        assert not event.transparent

    def test_missing_fields_default_to_empty(self):
        event = event_from_google({"id": "x", "start": {"date": "2026-03-06"}, "end": {"date": "2026-03-07"}})
        assert (event.summary, event.description, event.location) == ("", "", "")
        assert event.private == {}

    def test_unparseable_time(self):
        event = event_from_google({"id": "x", "start": {"dateTime": "not a date"}, "end": {}})
        assert event.when is None


class TestEventToGoogle:
    def test_prepared_timed_event(self):
        source = make_timed("w1", "Sync", description="d", conference=meet("https://meet.example/a"))
        body = event_to_google(prepare_sync_event(source))

        assert body["summary"] == "Sync"
        assert body["start"] == {"dateTime": source.when.start.isoformat()}
        assert body["reminders"] == {"useDefault": True}
        assert body["extendedProperties"] == {"private": {TRACKING_KEY: "w1"}}
        assert body["conferenceData"] == meet("https://meet.example/a")
        assert "attendees" not in body
        assert "transparency" not in body

    def test_all_day_uses_dates(self):
        body = event_to_google(make_all_day("w1", day=date(2026, 3, 6)))
        assert body["start"] == {"date": "2026-03-06"}
        assert body["end"] == {"date": "2026-03-07"}

    def test_time_zone_is_kept(self):
        source = event_from_google(ITEM)
        body = event_to_google(source)
        assert body["start"]["timeZone"] == "Europe/Amsterdam"

    def test_round_trip_compares_equal(self):
        source = make_timed("w1", "Sync", conference=meet("https://meet.example/a"))
        prepared = prepare_sync_event(source)
        stored = dict(event_to_google(prepared), id="dest-1")
        assert events_equal(event_from_google(stored), prepared)


class TestGoogleCalendarClient:
    def test_list_events_follows_pages(self):
        service = MagicMock()
        service.events.return_value.list.side_effect = [
            _request({"items": [ITEM], "nextPageToken": "p2"}),
            _request({"items": [dict(ITEM, id="second")]}),
        ]
        client = GoogleCalendarClient(service)
        start = datetime(2026, 3, 2, tzinfo=timezone.utc)

        events = client.list_events("primary", start, start + timedelta(weeks=2))

        assert [e.id for e in events] == ["abc123_20260305T100000Z", "second"]
        first_call, second_call = service.events.return_value.list.call_args_list
        assert first_call.kwargs["singleEvents"] is True
        assert first_call.kwargs["pageToken"] is None
        assert second_call.kwargs["pageToken"] == "p2"

    def test_find_by_tracking_key_uses_private_property(self):
        service = MagicMock()
        service.events.return_value.list.return_value = _request({"items": []})
        GoogleCalendarClient(service).find_events_by_tracking_key("cal", "w1")
        kwargs = service.events.return_value.list.call_args.kwargs
        assert kwargs["privateExtendedProperty"] == f"{TRACKING_KEY}=w1"

    def test_mutations_never_notify_attendees(self):
        service = MagicMock()
        events = service.events.return_value
        client = GoogleCalendarClient(service)
        event = prepare_sync_event(make_timed("w1"))

        client.insert_event("cal", event)
        client.update_event("cal", "d1", event)
        client.delete_event("cal", "d1")

        for method in (events.insert, events.update, events.delete):
            assert method.call_args.kwargs["sendUpdates"] == "none"
        assert events.insert.call_args.kwargs["conferenceDataVersion"] == 1
        assert events.update.call_args.kwargs["eventId"] == "d1"

    def test_http_error_wrapped(self):
        service = MagicMock()
        service.events.return_value.delete.return_value = _request(error=_http_error(500))
        with pytest.raises(CalendarAPIError, match="d1"):
            GoogleCalendarClient(service).delete_event("cal", "d1")

    @pytest.mark.parametrize(
        "error",
        [
            TimeoutError("timed out"),
            ConnectionResetError("reset by peer"),
            httplib2.HttpLib2Error("unreachable"),
        ],
    )
    def test_transport_failure_wrapped(self, error):
        service = MagicMock()
        service.events.return_value.insert.return_value = _request(error=error)
        with pytest.raises(CalendarAPIError, match="insert event"):
            GoogleCalendarClient(service).insert_event("cal", prepare_sync_event(make_timed("w1")))

    def test_revoked_grant_is_auth_error(self):
        service = MagicMock()
        service.events.return_value.list.return_value = _request(error=RefreshError("invalid_grant"))
        start = datetime(2026, 3, 2, tzinfo=timezone.utc)
        with pytest.raises(AuthError, match="invalid_grant"):
            GoogleCalendarClient(service).list_events("cal", start, start + timedelta(weeks=2))

    def test_calendar_lookup_timeout_wrapped(self):
        service = MagicMock()
        service.calendarList.return_value.list.return_value = _request(error=TimeoutError("timed out"))
        with pytest.raises(CalendarAPIError, match="Work Sync"):
            GoogleCalendarClient(service).find_or_create_calendar("Work Sync")

    def test_find_existing_calendar(self):
        service = MagicMock()
        service.calendarList.return_value.list.return_value = _request(
            {"items": [{"id": "other", "summary": "Other"}, {"id": "ws", "summary": "Work Sync"}]}
        )
        assert GoogleCalendarClient(service).find_or_create_calendar("Work Sync", "7") == "ws"
        service.calendars.return_value.insert.assert_not_called()

    def test_create_calendar_with_color(self):
        service = MagicMock()
        service.calendarList.return_value.list.return_value = _request({"items": []})
        service.calendars.return_value.insert.return_value = _request({"id": "new"})

        assert GoogleCalendarClient(service).find_or_create_calendar("Work Sync", "7") == "new"
        service.calendarList.return_value.patch.assert_called_once_with(
            calendarId="new", body={"colorId": "7"}
        )

    def test_color_failure_is_not_fatal(self):
        service = MagicMock()
        service.calendarList.return_value.list.return_value = _request({"items": []})
        service.calendars.return_value.insert.return_value = _request({"id": "new"})
        service.calendarList.return_value.patch.return_value = _request(error=_http_error(400))

        assert GoogleCalendarClient(service).find_or_create_calendar("Work Sync", "7") == "new"
