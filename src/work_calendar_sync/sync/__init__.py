"""
CalendarSynchronizer — thin orchestrator that runs the reconciler per destination.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from work_calendar_sync.calendar_client import CalendarClient
from work_calendar_sync.models import CalendarSyncError
from work_calendar_sync.models import ConfigError
from work_calendar_sync.models import Destination
from work_calendar_sync.models import DestinationResult
from work_calendar_sync.models import SyncCancelledError
from work_calendar_sync.models import SyncConfig
from work_calendar_sync.models import SyncReport
from work_calendar_sync.models import SyncStats
from work_calendar_sync.sync.reconcile import Reconciler
from work_calendar_sync.sync.safety import ConfirmationPrompt
from work_calendar_sync.sync.safety import SafetyGate
from work_calendar_sync.window import compute_sync_window

ClientFactory = Callable[[Destination], CalendarClient]


def select_destinations(config: SyncConfig) -> list[Destination]:
    """Apply the single-destination selector; unknown names are a config error."""
    if not config.only_destination:
        return list(config.destinations)
    selected = [d for d in config.destinations if d.name == config.only_destination]
    if not selected:
        known = ", ".join(d.name for d in config.destinations)
        raise ConfigError(
            f"destination '{config.only_destination}' not found in config (known: {known})"
        )
    return selected


class CalendarSynchronizer:
    """Main synchronization engine."""

    def __init__(
        self,
        config: SyncConfig,
        work_client: CalendarClient,
        client_factory: ClientFactory,
        prompt: ConfirmationPrompt,
        logger: logging.Logger | None = None,
        cancel: threading.Event | None = None,
    ):
        self.config = config
        self.work_client = work_client
        self.client_factory = client_factory
        self.logger = logger or logging.getLogger(__name__)
        self.gate = SafetyGate(prompt, self.logger)
        self.cancel = cancel or threading.Event()

    def _sync_destination(self, destination: Destination) -> DestinationResult:
        if self.cancel.is_set():
            return DestinationResult(
                destination.name, SyncStats(), SyncCancelledError("cancelled before start")
            )

        self.logger.info("Syncing to destination: %s (type: %s)", destination.name, destination.kind)
        reconciler = None
        try:
            dest_client = self.client_factory(destination)
            reconciler = Reconciler(
                self.config,
                destination,
                self.work_client,
                dest_client,
                self.gate,
                logger=self.logger,
                verbose=self.config.verbose,
                cancel=self.cancel,
            )
            stats = reconciler.run()
        except CalendarSyncError as e:
            self.logger.error("[%s] Sync failed: %s", destination.name, e)
            stats = reconciler.stats if reconciler is not None else SyncStats()
            return DestinationResult(destination.name, stats, e)

        self.logger.info("[%s] Sync completed successfully.", destination.name)
        return DestinationResult(destination.name, stats)

    def run(self) -> SyncReport:
        """Sync every selected destination; one failure never stops the others."""
        destinations = select_destinations(self.config)
        # Reject a bad window before any network activity.
        compute_sync_window(None, self.config.weeks_forward, self.config.weeks_back, self.config.timezone)
        report = SyncReport()

        if self.config.jobs > 1 and len(destinations) > 1:
            workers = min(self.config.jobs, len(destinations))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self._sync_destination, d) for d in destinations]
                try:
                    report.results.extend(future.result() for future in futures)
                except KeyboardInterrupt:
                    # Workers must see the cancellation before the pool joins them.
                    self.cancel.set()
                    pool.shutdown(wait=True, cancel_futures=True)
                    raise
        else:
            for destination in destinations:
                try:
                    report.results.append(self._sync_destination(destination))
                except KeyboardInterrupt:
                    self.cancel.set()
                    raise

        if report.failed:
            self.logger.error(
                "Sync completed with %d error(s) out of %d destination(s)",
                len(report.failed),
                len(destinations),
            )
            for result in report.failed:
                self.logger.error("  - %s: %s", result.name, result.error)
        else:
            self.logger.info("All syncs completed successfully (%d destination(s))", len(destinations))
        return report
