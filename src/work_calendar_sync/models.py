"""
Pure data models — no network or terminal imports.
"""

from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import datetime
from datetime import time
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

DEFAULT_CONFIG = Path.home() / ".config/work-calendar-sync.conf"

# Private extended property that binds a destination event to its source event.
TRACKING_KEY = "workEventId"
# Reserved tracking value for the OAuth refresh reminder; never a real source id.
TOKEN_REMINDER_KEY = "TOKEN_REFRESH_REMINDER"

OOF_EVENT_TYPE = "outOfOffice"
DEFAULT_CALENDAR_NAME = "Work Sync"
DEFAULT_CALENDAR_COLOR = "7"  # Google "Grape"
DESTINATION_KINDS = ("google", "apple")


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""

    pass


class ConfigError(CalendarSyncError):
    """Invalid or incomplete configuration, detected before any network activity."""


class AuthError(CalendarSyncError):
    """Credentials could not be loaded, refreshed or obtained."""


class CalendarAPIError(CalendarSyncError):
    """A single calendar backend call failed."""


class FetchError(CalendarSyncError):
    """Events or the target calendar could not be retrieved; fatal to one destination."""


class SafetyGateError(CalendarSyncError):
    """Deletion of untagged destination events was refused or could not be confirmed."""


class SyncCancelledError(CalendarSyncError):
    """The sync pass was cancelled from outside."""


# ---------------------------------------------------------------------------
# Event time: all-day date pair or timed instant pair, never both
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllDay:
    start: date
    end: date  # exclusive, as stored by both Google and iCalendar


@dataclass(frozen=True)
class Timed:
    start: datetime
    end: datetime
    time_zone: str | None = None


EventTime = AllDay | Timed


@dataclass
class Event:
    """Protocol-agnostic calendar event."""

    id: str | None = None
    summary: str = ""
    description: str = ""
    location: str = ""
    when: EventTime | None = None
    transparent: bool = False
    event_type: str | None = None
    recurring_event_id: str | None = None
    private: dict[str, str] = field(default_factory=dict)
    conference: dict | None = None

    @property
    def tracking_key(self) -> str | None:
        return self.private.get(TRACKING_KEY) or None

    @property
    def is_all_day(self) -> bool:
        return isinstance(self.when, AllDay)

    @property
    def meeting_url(self) -> str:
        """URI of the first video entry point in the conference metadata."""
        if not self.conference:
            return ""
        for entry in self.conference.get("entryPoints") or []:
            if entry.get("entryPointType") == "video" and entry.get("uri"):
                return entry["uri"]
        return ""

    def start_instant(self, tz: tzinfo | None = None) -> datetime | None:
        """Start as an aware datetime; all-day events start at local midnight."""
        if isinstance(self.when, Timed):
            return self.when.start
        if isinstance(self.when, AllDay):
            start = datetime.combine(self.when.start, time())
            return start.replace(tzinfo=tz) if tz else start.astimezone()
        return None


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class Destination:
    """One target calendar account the work calendar is synced into."""

    name: str
    kind: str  # 'google' or 'apple'
    calendar_name: str = DEFAULT_CALENDAR_NAME
    calendar_color: str = DEFAULT_CALENDAR_COLOR
    token_path: Path | None = None  # google
    server_url: str | None = None  # apple
    username: str | None = None
    password: str | None = field(default=None, repr=False)


@dataclass
class SyncConfig:
    """Configuration for a sync run."""

    work_token_path: Path
    google_credentials_path: Path
    destinations: list[Destination]
    weeks_forward: int = 2
    weeks_back: int = 0
    only_destination: str | None = None
    timezone: ZoneInfo | None = None  # None = system local time
    dry_run: bool = False
    verbose: bool = False
    yes: bool = False  # Pre-confirm deletion of untagged events
    jobs: int = 1
    token_reminder: bool = True


@dataclass(frozen=True)
class SyncWindow:
    """Range of aware datetimes from time_min to time_max."""

    time_min: datetime
    time_max: datetime

    def wide(self) -> "SyncWindow":
        """Window extended by six months each way, for finding stragglers and duplicates."""
        return SyncWindow(
            self.time_min - relativedelta(months=6),
            self.time_max + relativedelta(months=6),
        )

    def contains(self, instant: datetime | None) -> bool:
        if instant is None:
            return False
        return self.time_min <= instant < self.time_max


@dataclass
class SyncStats:
    """Statistics for one destination's sync pass."""

    added: int = 0
    modified: int = 0
    deleted: int = 0
    errors: int = 0


@dataclass
class DestinationResult:
    name: str
    stats: SyncStats
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncReport:
    results: list[DestinationResult] = field(default_factory=list)

    @property
    def failed(self) -> list[DestinationResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failed
