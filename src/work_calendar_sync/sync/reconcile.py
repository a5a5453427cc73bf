"""
Work→destination one-way reconciliation for a single destination.

The work calendar is the source of truth. Each destination event carries the
id of its work event as a private tracking key; that key is the only state
kept between passes, so every pass re-derives what to create, update and
delete from two fresh listings.
"""

import logging
import threading
from datetime import datetime

from work_calendar_sync.calendar_client import CalendarClient
from work_calendar_sync.filters import filter_events
from work_calendar_sync.models import CalendarSyncError
from work_calendar_sync.models import Destination
from work_calendar_sync.models import Event
from work_calendar_sync.models import FetchError
from work_calendar_sync.models import SyncCancelledError
from work_calendar_sync.models import SyncConfig
from work_calendar_sync.models import SyncStats
from work_calendar_sync.models import SyncWindow
from work_calendar_sync.sync.reminder import upsert_token_reminder
from work_calendar_sync.sync.safety import SafetyGate
from work_calendar_sync.sync.utils import diff_field
from work_calendar_sync.sync.utils import events_equal
from work_calendar_sync.sync.utils import partition_by_tracking_key
from work_calendar_sync.sync.utils import pick_representative
from work_calendar_sync.sync.utils import prepare_sync_event
from work_calendar_sync.window import compute_sync_window

WORK_CALENDAR_ID = "primary"


class Reconciler:
    """Forces one destination calendar to match the filtered work calendar."""

    def __init__(
        self,
        config: SyncConfig,
        destination: Destination,
        work_client: CalendarClient,
        dest_client: CalendarClient,
        gate: SafetyGate,
        logger: logging.Logger | None = None,
        verbose: bool = False,
        cancel: threading.Event | None = None,
    ):
        self.config = config
        self.destination = destination
        self.work_client = work_client
        self.dest_client = dest_client
        self.gate = gate
        self.logger = logger or logging.getLogger(__name__)
        self.verbose = verbose
        self.cancel = cancel
        self.stats = SyncStats()
        self.calendar_id: str | None = None

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _log(self, level: int, msg: str, *args) -> None:
        self.logger.log(level, "[%s] " + msg, self.destination.name, *args)

    def _debug(self, msg: str, *args) -> None:
        if self.verbose:
            self._log(logging.DEBUG, msg, *args)

    def _check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise SyncCancelledError(f"sync of '{self.destination.name}' cancelled")

    def _insert(self, prepared: Event) -> bool:
        key = prepared.tracking_key
        if self.config.dry_run:
            self._log(logging.INFO, "[DRY RUN] Would CREATE event: %s (%s)", key, prepared.summary)
            self.stats.added += 1
            return True
        self._check_cancelled()
        try:
            self.dest_client.insert_event(self.calendar_id, prepared)
        except CalendarSyncError as e:
            self._log(logging.ERROR, "Failed to insert event %s (%s): %s", key, prepared.summary, e)
            self.stats.errors += 1
            return False
        self._log(logging.INFO, "Inserted new event %s (%s)", key, prepared.summary)
        self.stats.added += 1
        return True

    def _update(self, existing: Event, prepared: Event, reason: str) -> bool:
        key = prepared.tracking_key
        if self.config.dry_run:
            self._log(
                logging.INFO,
                "[DRY RUN] Would UPDATE event: %s (%s, changed: %s)",
                key,
                prepared.summary,
                reason,
            )
            self.stats.modified += 1
            return True
        self._check_cancelled()
        try:
            self.dest_client.update_event(self.calendar_id, existing.id, prepared)
        except CalendarSyncError as e:
            self._log(
                logging.ERROR, "Failed to update event %s (%s): %s", existing.id, prepared.summary, e
            )
            self.stats.errors += 1
            return False
        self._log(
            logging.INFO,
            "Updated event %s (workEventId: %s, %s, changed: %s)",
            existing.id,
            key,
            prepared.summary,
            reason,
        )
        self.stats.modified += 1
        return True

    def _delete(self, event: Event, reason: str) -> bool:
        if self.config.dry_run:
            self._log(
                logging.INFO, "[DRY RUN] Would DELETE %s event: %s (%s)", reason, event.id, event.summary
            )
            self.stats.deleted += 1
            return True
        self._check_cancelled()
        try:
            self.dest_client.delete_event(self.calendar_id, event.id)
        except CalendarSyncError as e:
            self._log(
                logging.ERROR, "Failed to delete %s event %s (%s): %s", reason, event.id, event.summary, e
            )
            self.stats.errors += 1
            return False
        self._log(
            logging.INFO,
            "Deleted %s event %s (%s, workEventId: %s)",
            reason,
            event.id,
            event.summary,
            event.tracking_key,
        )
        self.stats.deleted += 1
        return True

    # ------------------------------------------------------------------ #
    # Phases                                                               #
    # ------------------------------------------------------------------ #

    def _resolve_calendar(self) -> str:
        self._check_cancelled()
        try:
            return self.dest_client.find_or_create_calendar(
                self.destination.calendar_name, self.destination.calendar_color
            )
        except CalendarSyncError as e:
            raise FetchError(
                f"could not resolve calendar '{self.destination.calendar_name}': {e}"
            ) from e

    def _fetch_source(self, window: SyncWindow) -> dict[str, Event]:
        self._check_cancelled()
        try:
            events = self.work_client.list_events(WORK_CALENDAR_ID, window.time_min, window.time_max)
        except CalendarSyncError as e:
            raise FetchError(f"failed to list work events: {e}") from e

        filtered = filter_events(
            events,
            self.work_client,
            WORK_CALENDAR_ID,
            tz=self.config.timezone,
            logger=self.logger,
        )
        self._log(
            logging.INFO, "Fetched %d work events, %d in scope after filtering", len(events), len(filtered)
        )
        return {event.id: event for event in filtered}

    def _fetch_destination(self, wide: SyncWindow) -> list[Event]:
        self._check_cancelled()
        try:
            events = self.dest_client.list_events(self.calendar_id, wide.time_min, wide.time_max)
        except CalendarSyncError as e:
            raise FetchError(f"failed to list destination events: {e}") from e
        self._log(
            logging.INFO,
            "Retrieved %d destination events (wide range: %s to %s)",
            len(events),
            f"{wide.time_min:%Y-%m-%d}",
            f"{wide.time_max:%Y-%m-%d}",
        )
        return events

    def _delete_untagged(self, untagged: list[Event]) -> None:
        if not untagged:
            return
        if self.config.dry_run:
            self._log(
                logging.WARNING,
                "[DRY RUN] %d untagged event(s) would require confirmation before deletion",
                len(untagged),
            )
        else:
            self.gate.check(self.destination, len(untagged))
        self._log(logging.INFO, "Deleting %d manually created event(s)", len(untagged))
        for event in untagged:
            self._delete(event, "untagged")

    def _converge_group(self, key: str, group: list[Event], source: Event, window: SyncWindow) -> None:
        """
        Make a tracking-key group hold exactly one up-to-date event.

        The representative is updated in place when it differs from the work
        event; every other member is a duplicate and is deleted.
        """
        representative, extras = pick_representative(group, window)
        self._debug("Matched event %s for workEventId %s", representative.id, key)

        prepared = prepare_sync_event(source)
        if not events_equal(representative, prepared, self.logger if self.verbose else None):
            self._update(representative, prepared, diff_field(representative, prepared))

        if extras:
            self._log(
                logging.INFO, "Found %d duplicate event(s) for workEventId %s", len(extras), key
            )
        for duplicate in extras:
            self._delete(duplicate, "duplicate")

    # ------------------------------------------------------------------ #
    # Entry point                                                          #
    # ------------------------------------------------------------------ #

    def run(self, now: datetime | None = None) -> SyncStats:
        """Execute one reconciliation pass for this destination."""
        self._log(logging.INFO, "Starting sync...")

        self.calendar_id = self._resolve_calendar()

        if self.config.token_reminder and self.destination.kind == "google":
            upsert_token_reminder(
                self.dest_client,
                self.calendar_id,
                self.destination,
                self.logger,
                now or datetime.now().astimezone(),
                dry_run=self.config.dry_run,
            )

        window = compute_sync_window(
            now, self.config.weeks_forward, self.config.weeks_back, self.config.timezone
        )
        source_by_id = self._fetch_source(window)
        dest_events = self._fetch_destination(window.wide())

        groups, untagged = partition_by_tracking_key(dest_events)

        # Untagged deletion happens before any tracking-key mutation.
        self._delete_untagged(untagged)

        for key, group in groups.items():
            source = source_by_id.pop(key, None)
            if source is not None:
                self._converge_group(key, group, source, window)
            else:
                for stale in group:
                    self._delete(stale, "stale")

        # Whatever is left has no destination copy yet.
        for key, source in source_by_id.items():
            group = groups.get(key)
            if group:
                self._converge_group(key, group, source, window)
            else:
                self._insert(prepare_sync_event(source))

        self._log(
            logging.INFO,
            "Sync complete: %d added, %d modified, %d deleted, %d errors",
            self.stats.added,
            self.stats.modified,
            self.stats.deleted,
            self.stats.errors,
        )
        return self.stats
