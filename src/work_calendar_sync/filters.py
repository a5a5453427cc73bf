"""
Event filter: decides which work events are in scope for syncing.

Rules, first match wins:
  1. All-day events are kept, except work-location markers ("Remote", "Office", ...).
  2. Timed out-of-office events are dropped.
  3. Timed events are kept only if they overlap 06:00-24:00 local time.
"""

import logging
from zoneinfo import ZoneInfo

from work_calendar_sync.calendar_client import CalendarClient
from work_calendar_sync.models import OOF_EVENT_TYPE
from work_calendar_sync.models import AllDay
from work_calendar_sync.models import CalendarSyncError
from work_calendar_sync.models import Event
from work_calendar_sync.models import Timed

_logger = logging.getLogger(__name__)

_OOF_TITLE_MARKERS = ("out of office", "oof")
_OOF_KEYWORDS = ("out of office", "oof", "pto", "vacation", "away")
_WORK_LOCATION_PATTERNS = (
    "remote",
    "working from",
    "work from home",
    "work from office",
    "wfh",
    "wfo",
    "work location",
)

DAY_WINDOW_START = 6 * 60  # 06:00
DAY_WINDOW_END = 24 * 60  # midnight


def is_work_location_event(event: Event) -> bool:
    """Return True for all-day events that only announce where someone works."""
    if not event.is_all_day:
        return False
    summary = event.summary.lower()
    if not summary:
        return False
    # OOF titles often contain "office"; they are never location markers.
    if any(marker in summary for marker in _OOF_TITLE_MARKERS):
        return False
    if "office" in summary and "out of" not in summary:
        return True
    return any(pattern in summary for pattern in _WORK_LOCATION_PATTERNS)


def is_out_of_office(
    event: Event,
    client: CalendarClient | None = None,
    calendar_id: str = "primary",
    parent_cache: dict[str, Event | None] | None = None,
) -> bool:
    """
    Return True if the event is Out of Office.

    Signals, in order of reliability:
      1. the event's own type flag
      2. the recurrence parent's type flag, then its transparency
      3. the event's own transparency
      4. OOF keywords in the title
    """
    if event.event_type == OOF_EVENT_TYPE:
        return True

    if event.recurring_event_id and client is not None:
        parent = _lookup_parent(event.recurring_event_id, client, calendar_id, parent_cache)
        if parent is not None:
            if parent.event_type == OOF_EVENT_TYPE:
                return True
            if parent.transparent:
                return True

    if event.transparent:
        return True

    summary = event.summary.lower()
    return any(keyword in summary for keyword in _OOF_KEYWORDS)


def _lookup_parent(
    parent_id: str,
    client: CalendarClient,
    calendar_id: str,
    cache: dict[str, Event | None] | None,
) -> Event | None:
    if cache is not None and parent_id in cache:
        return cache[parent_id]
    try:
        parent = client.get_event(calendar_id, parent_id)
    except CalendarSyncError as e:
        # Unknown parent: fall through to the event's own signals.
        _logger.debug("Could not fetch recurrence parent %s: %s", parent_id, e)
        parent = None
    if cache is not None:
        cache[parent_id] = parent
    return parent


def overlaps_daytime(when: Timed, tz: ZoneInfo | None = None) -> bool:
    """Return True if a timed event overlaps 06:00-24:00 on its local start day."""
    start = when.start.astimezone(tz) if tz else when.start.astimezone()
    end = when.end.astimezone(tz) if tz else when.end.astimezone()
    midnight = start.replace(hour=0, minute=0, second=0, microsecond=0)

    start_minutes = start.hour * 60 + start.minute
    # Measured from the start day's midnight, so a next-day end is >= 1440.
    end_minutes = int((end - midnight).total_seconds() // 60)

    starts_inside = DAY_WINDOW_START <= start_minutes < DAY_WINDOW_END
    ends_inside = DAY_WINDOW_START < end_minutes <= DAY_WINDOW_END
    spans_window = start_minutes < DAY_WINDOW_START and end_minutes >= DAY_WINDOW_END
    return starts_inside or ends_inside or spans_window


def filter_events(
    events: list[Event],
    client: CalendarClient | None = None,
    calendar_id: str = "primary",
    tz: ZoneInfo | None = None,
    logger: logging.Logger | None = None,
) -> list[Event]:
    """Return the in-scope events, preserving order."""
    logger = logger or _logger
    parent_cache: dict[str, Event | None] = {}
    kept: list[Event] = []

    for event in events:
        if isinstance(event.when, AllDay):
            if is_work_location_event(event):
                logger.debug("Skipping work location event: %s", event.summary)
                continue
            kept.append(event)
            continue

        if not isinstance(event.when, Timed):
            logger.warning(
                "Skipping event %s (%s): start/end could not be parsed", event.id, event.summary
            )
            continue

        if is_out_of_office(event, client, calendar_id, parent_cache):
            logger.debug("Skipping timed out-of-office event: %s", event.summary)
            continue

        if not overlaps_daytime(event.when, tz):
            logger.debug("Skipping event outside 06:00-24:00: %s", event.summary)
            continue

        kept.append(event)

    return kept
