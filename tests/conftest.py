"""
Shared pytest fixtures and event helpers.
"""

import logging
from datetime import date
from datetime import datetime
from datetime import timedelta
from zoneinfo import ZoneInfo

import pytest

from work_calendar_sync.models import TRACKING_KEY
from work_calendar_sync.models import AllDay
from work_calendar_sync.models import Destination
from work_calendar_sync.models import Event
from work_calendar_sync.models import SyncConfig
from work_calendar_sync.models import Timed
from work_calendar_sync.sync.safety import ConfirmationPrompt

UTC = ZoneInfo("UTC")
WORK_CAL_ID = "primary"
DEST_CAL_ID = "cal-Work Sync"

# Wednesday; the window for weeks_forward=2 runs Mon 2026-03-02 .. Sun 2026-03-15.
NOW = datetime(2026, 3, 4, 12, 0, tzinfo=UTC)


def at(day: int, hour: int, minute: int = 0, month: int = 3) -> datetime:
    return datetime(2026, month, day, hour, minute, tzinfo=UTC)


def make_timed(
    event_id: str | None,
    summary: str = "Meeting",
    start: datetime | None = None,
    minutes: int = 60,
    **kwargs,
) -> Event:
    """Return a timed event (default: Thursday 2026-03-05 10:00 UTC, one hour)."""
    start = start or at(5, 10)
    return Event(
        id=event_id,
        summary=summary,
        when=Timed(start, start + timedelta(minutes=minutes)),
        **kwargs,
    )


def make_all_day(event_id: str | None, summary: str = "Holiday", day: date | None = None, **kwargs) -> Event:
    day = day or date(2026, 3, 6)
    return Event(id=event_id, summary=summary, when=AllDay(day, day + timedelta(days=1)), **kwargs)


def tagged(event: Event, key: str) -> Event:
    """Mark an event as the destination copy of work event ``key``."""
    event.private = {TRACKING_KEY: key}
    return event


def meet(uri: str) -> dict:
    return {"entryPoints": [{"entryPointType": "video", "uri": uri}]}


class ScriptedPrompt(ConfirmationPrompt):
    """Confirmation prompt with a fixed answer that records what it was asked."""

    def __init__(self, interactive: bool = True, answer: bool = True):
        self.interactive = interactive
        self.answer = answer
        self.messages: list[str] = []

    def is_interactive(self) -> bool:
        return self.interactive

    def confirm(self, message: str) -> bool:
        self.messages.append(message)
        return self.answer


@pytest.fixture
def google_destination():
    return Destination(name="Personal", kind="google")


@pytest.fixture
def apple_destination():
    return Destination(
        name="iCloud",
        kind="apple",
        server_url="https://caldav.example.com",
        username="me@example.com",
        password="secret",
    )


@pytest.fixture
def sync_config(tmp_path, google_destination):
    return SyncConfig(
        work_token_path=tmp_path / "work-token.json",
        google_credentials_path=tmp_path / "credentials.json",
        destinations=[google_destination],
        timezone=UTC,
        token_reminder=False,
    )


@pytest.fixture
def sync_logger():
    return logging.getLogger("test_sync")
