"""
Rolling sync window: whole weeks anchored on the Monday of the current week.
"""

from datetime import datetime
from datetime import time
from datetime import timedelta
from zoneinfo import ZoneInfo

from work_calendar_sync.models import ConfigError
from work_calendar_sync.models import SyncWindow


def _localize(naive: datetime, tz: ZoneInfo | None) -> datetime:
    # astimezone() on a naive value interprets it in the system zone, per date,
    # so each boundary gets its own DST-correct offset.
    return naive.replace(tzinfo=tz) if tz else naive.astimezone()


def compute_sync_window(
    now: datetime | None = None,
    weeks_forward: int = 2,
    weeks_back: int = 0,
    tz: ZoneInfo | None = None,
) -> SyncWindow:
    """
    Return the window from Monday 00:00:00 ``weeks_back`` weeks ago to
    Sunday 23:59:59 of the last of ``weeks_forward`` weeks (the current week
    counts as the first).

    ``weeks_forward`` must be at least 1: a zero-week window would end before
    it starts.
    """
    if weeks_forward < 1:
        raise ConfigError(f"sync window must cover at least one week forward, got {weeks_forward}")
    if weeks_back < 0:
        raise ConfigError(f"sync window weeks back must not be negative, got {weeks_back}")

    if now is None:
        now = datetime.now(tz) if tz else datetime.now().astimezone()
    elif now.tzinfo is not None:
        now = now.astimezone(tz) if tz else now.astimezone()

    monday = now.date() - timedelta(days=now.weekday())
    first_day = monday - timedelta(days=7 * weeks_back)
    last_day = monday + timedelta(days=7 * weeks_forward - 1)

    time_min = _localize(datetime.combine(first_day, time(0, 0, 0)), tz)
    time_max = _localize(datetime.combine(last_day, time(23, 59, 59)), tz)
    return SyncWindow(time_min, time_max)
