"""
Capability contract every calendar backend implements.

The reconciler and the filter depend only on this interface; Google Calendar
and CalDAV adapters live in google_client.py and caldav_client.py.
"""

from abc import ABC
from abc import abstractmethod
from datetime import datetime

from work_calendar_sync.models import Event


class CalendarClient(ABC):
    """Uniform calendar operations. Backend failures raise CalendarAPIError."""

    @abstractmethod
    def find_or_create_calendar(self, name: str, color: str | None = None) -> str:
        """Return the id of the calendar called ``name``, creating it if needed."""

    @abstractmethod
    def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> list[Event]:
        """Return events in the range with recurring series expanded into instances."""

    @abstractmethod
    def get_event(self, calendar_id: str, event_id: str) -> Event:
        """Return a single event."""

    @abstractmethod
    def insert_event(self, calendar_id: str, event: Event) -> None:
        """Create an event without notifying attendees."""

    @abstractmethod
    def update_event(self, calendar_id: str, event_id: str, event: Event) -> None:
        """Overwrite an existing event."""

    @abstractmethod
    def delete_event(self, calendar_id: str, event_id: str) -> None:
        """Remove an event."""

    @abstractmethod
    def find_events_by_tracking_key(self, calendar_id: str, key: str) -> list[Event]:
        """Return events whose private tracking key equals ``key``."""
