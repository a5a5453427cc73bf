"""
Stateless event helpers shared by the reconciler and the reminder.
"""

import logging
from datetime import timezone

from work_calendar_sync.models import TOKEN_REMINDER_KEY
from work_calendar_sync.models import TRACKING_KEY
from work_calendar_sync.models import AllDay
from work_calendar_sync.models import Event
from work_calendar_sync.models import EventTime
from work_calendar_sync.models import SyncWindow
from work_calendar_sync.models import Timed


def prepare_sync_event(source: Event) -> Event:
    """
    Build the destination copy of a work event.

    Only title, description, location, time and conference data are carried
    over. Attendees are never copied, reminders fall back to the calendar
    default, and the private tags hold nothing but the tracking key.
    """
    return Event(
        summary=source.summary,
        description=source.description,
        location=source.location,
        when=source.when,
        conference=source.conference,
        private={TRACKING_KEY: source.id},
    )


def times_equal(a: EventTime | None, b: EventTime | None) -> bool:
    """Compare event times; timed values are compared as UTC instants."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, AllDay) and isinstance(b, AllDay):
        return a.start == b.start and a.end == b.end
    if isinstance(a, Timed) and isinstance(b, Timed):
        return (
            a.start.astimezone(timezone.utc) == b.start.astimezone(timezone.utc)
            and a.end.astimezone(timezone.utc) == b.end.astimezone(timezone.utc)
        )
    # All-day vs timed never match.
    return False


def diff_field(a: Event, b: Event) -> str | None:
    """Return the name of the first synced field that differs, or None."""
    if a.summary != b.summary:
        return "summary"
    if a.description != b.description:
        return "description"
    if a.location != b.location:
        return "location"
    if not times_equal(a.when, b.when):
        return "time"
    if a.meeting_url != b.meeting_url:
        return "conference"
    return None


def events_equal(a: Event, b: Event, logger: logging.Logger | None = None) -> bool:
    field = diff_field(a, b)
    if field is not None and logger is not None:
        logger.debug(
            "%s mismatch: %r != %r", field, _field_value(a, field), _field_value(b, field)
        )
    return field is None


def _field_value(event: Event, field: str):
    if field == "time":
        return event.when
    if field == "conference":
        return event.meeting_url
    return getattr(event, field)


def partition_by_tracking_key(
    events: list[Event],
) -> tuple[dict[str, list[Event]], list[Event]]:
    """
    Split destination events into tracked groups keyed by tracking key and
    untagged events. Reminder events are owned by the reminder upsert and
    appear in neither.
    """
    groups: dict[str, list[Event]] = {}
    untagged: list[Event] = []
    for event in events:
        key = event.tracking_key
        if key is None:
            untagged.append(event)
        elif key != TOKEN_REMINDER_KEY:
            groups.setdefault(key, []).append(event)
    return groups, untagged


def pick_representative(group: list[Event], window: SyncWindow) -> tuple[Event, list[Event]]:
    """
    Choose the event to keep from a tracking-key group.

    The first member starting inside the primary window wins, otherwise the
    first member returned by the backend. Returns (representative, extras).
    """
    representative = next(
        (event for event in group if window.contains(event.start_instant(window.time_min.tzinfo))),
        group[0],
    )
    extras = [event for event in group if event is not representative]
    return representative, extras
