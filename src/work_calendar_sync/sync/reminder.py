"""
OAuth refresh reminder — a calendar event warning that a Google grant is about to lapse.
"""

import logging
from datetime import datetime
from datetime import timedelta

from dateutil.relativedelta import relativedelta

from work_calendar_sync.auth import estimate_refresh_expiry
from work_calendar_sync.calendar_client import CalendarClient
from work_calendar_sync.models import TOKEN_REMINDER_KEY
from work_calendar_sync.models import TRACKING_KEY
from work_calendar_sync.models import CalendarSyncError
from work_calendar_sync.models import Destination
from work_calendar_sync.models import Event
from work_calendar_sync.models import Timed
from work_calendar_sync.sync.utils import events_equal

REMINDER_SUMMARY = "⚠️ Refresh OAuth Token for Calendar Sync"


def reminder_date_for(expiry: datetime, now: datetime) -> datetime | None:
    """Two days ahead of expiry, tomorrow if it is close, today if already due."""
    days_left = (expiry - now).days
    if days_left > 2:
        when = expiry - timedelta(days=2)
    elif days_left > 0:
        when = now + timedelta(days=1)
    else:
        when = now
    if when < now or when > now + relativedelta(months=6):
        return None
    return when


def build_reminder_event(destination: Destination, expiry: datetime, reason: str, when: datetime) -> Event:
    description = (
        f"Your OAuth token for '{destination.name}' is estimated to expire on "
        f"{expiry:%B %d, %Y} ({reason}).\n\n"
        "To refresh your token:\n"
        "1. Run the calendar sync tool manually\n"
        "2. You will be prompted to re-authenticate if needed\n"
        "3. The token will be automatically refreshed\n\n"
        "Note: If your OAuth app is in 'Testing' mode, tokens expire after 7 days.\n"
        "Move your app to 'In production' in Google Cloud Console for longer-lived tokens.\n\n"
        "This reminder will be updated on the next sync."
    )
    return Event(
        summary=REMINDER_SUMMARY,
        description=description,
        when=Timed(when, when + timedelta(hours=1)),
        private={TRACKING_KEY: TOKEN_REMINDER_KEY},
    )


def upsert_token_reminder(
    client: CalendarClient,
    calendar_id: str,
    destination: Destination,
    logger: logging.Logger,
    now: datetime,
    dry_run: bool = False,
) -> None:
    """Create or refresh the reminder event. Never raises: failures are warnings."""
    if destination.token_path is None:
        return
    try:
        estimate = estimate_refresh_expiry(destination.token_path, now)
        if estimate is None:
            return
        expiry, reason = estimate
        when = reminder_date_for(expiry, now)
        if when is None:
            return

        logger.info(
            "[%s] OAuth grant estimated to expire: %s (reminder set for: %s) - %s",
            destination.name,
            f"{expiry:%Y-%m-%d}",
            f"{when:%Y-%m-%d}",
            reason,
        )

        reminder = build_reminder_event(destination, expiry, reason, when)
        existing = client.find_events_by_tracking_key(calendar_id, TOKEN_REMINDER_KEY)

        if existing:
            current, extras = existing[0], existing[1:]
            # The reconciler never touches reminder events, so duplicates are cleared here.
            for extra in extras:
                if dry_run:
                    logger.info("[DRY RUN] Would DELETE duplicate token refresh reminder: %s", extra.id)
                    continue
                client.delete_event(calendar_id, extra.id)
                logger.debug("Deleted duplicate token refresh reminder (ID: %s)", extra.id)
            if events_equal(current, reminder):
                return
            if dry_run:
                logger.info("[DRY RUN] Would UPDATE token refresh reminder")
                return
            client.update_event(calendar_id, current.id, reminder)
            logger.debug("Updated token refresh reminder event (ID: %s)", current.id)
        else:
            if dry_run:
                logger.info("[DRY RUN] Would CREATE token refresh reminder")
                return
            client.insert_event(calendar_id, reminder)
            logger.debug("Created token refresh reminder event")
    except (CalendarSyncError, OSError) as e:
        logger.warning(
            "[%s] Failed to check/create token refresh reminder: %s", destination.name, e
        )
