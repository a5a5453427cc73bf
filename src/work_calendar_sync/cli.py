"""
Command-line interface for Work Calendar Sync.
"""

import logging
import sys
import threading
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from work_calendar_sync.auth import build_calendar_service
from work_calendar_sync.auth import get_credentials
from work_calendar_sync.caldav_client import CalDAVCalendarClient
from work_calendar_sync.calendar_client import CalendarClient
from work_calendar_sync.config import load_config
from work_calendar_sync.google_client import GoogleCalendarClient
from work_calendar_sync.models import DEFAULT_CONFIG
from work_calendar_sync.models import CalendarSyncError
from work_calendar_sync.models import ConfigError
from work_calendar_sync.models import Destination
from work_calendar_sync.models import SyncConfig
from work_calendar_sync.models import SyncReport
from work_calendar_sync.sync import CalendarSynchronizer
from work_calendar_sync.sync import select_destinations
from work_calendar_sync.sync.safety import AutoConfirmPrompt
from work_calendar_sync.sync.safety import TerminalPrompt
from work_calendar_sync.window import compute_sync_window

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="One-way sync of a Google Workspace work calendar into personal calendars.",
)

console = Console()


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )
    # Third-party HTTP chatter drowns the sync log even at INFO.
    for noisy in ("googleapiclient.discovery_cache", "urllib3", "caldav"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load_or_exit(**overrides) -> SyncConfig:
    try:
        cfg = load_config(state.config_path, **overrides)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        raise typer.Exit(1) from None
    cfg.verbose = state.verbose
    return cfg


def _interactive() -> bool:
    return sys.stdin.isatty()


def _work_client(cfg: SyncConfig) -> CalendarClient:
    creds = get_credentials(cfg.google_credentials_path, cfg.work_token_path, _interactive())
    return GoogleCalendarClient(build_calendar_service(creds))


def _client_factory(cfg: SyncConfig):
    interactive = _interactive()

    def make(dest: Destination) -> CalendarClient:
        if dest.kind == "google":
            creds = get_credentials(cfg.google_credentials_path, dest.token_path, interactive)
            return GoogleCalendarClient(build_calendar_service(creds))
        return CalDAVCalendarClient(dest.server_url, dest.username, dest.password)

    return make


def _print_results(report: SyncReport) -> None:
    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Destination", style="bold")
    table.add_column("Added", justify="right")
    table.add_column("Modified", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Status")

    for result in report.results:
        stats = result.stats
        errors = Text(str(stats.errors), style="bold red" if stats.errors else "")
        if result.ok:
            outcome = Text("✓", style="green")
        else:
            outcome = Text(str(result.error), style="bold red")
        table.add_row(
            result.name,
            str(stats.added),
            str(stats.modified),
            str(stats.deleted),
            errors,
            outcome,
        )

    console.print(Panel(table, title="[bold]Results[/bold]", expand=False))


def _window_text(cfg: SyncConfig) -> Text:
    window = compute_sync_window(None, cfg.weeks_forward, cfg.weeks_back, cfg.timezone)
    wide = window.wide()
    info = Text()
    info.append("  Window:    ", style="bold")
    info.append(f"{window.time_min:%Y-%m-%d %H:%M} → {window.time_max:%Y-%m-%d %H:%M}")
    info.append(f"  ({cfg.weeks_back} back, {cfg.weeks_forward} forward)\n", style="dim")
    info.append("  Scan:      ", style="bold")
    info.append(f"{wide.time_min:%Y-%m-%d} → {wide.time_max:%Y-%m-%d}", style="dim")
    return info


# ---------------------------------------------------------------------------
# Subcommand: sync
# ---------------------------------------------------------------------------

_DRY_RUN = Annotated[bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")]
_YES = Annotated[
    bool,
    typer.Option(
        "--yes", "-y", help="Delete manually created events in destinations without asking"
    ),
]


@app.command()
def sync(
    destination: Annotated[
        str | None, typer.Option("--destination", help="Sync only the named destination")
    ] = None,
    dry_run: _DRY_RUN = False,
    yes: _YES = False,
    jobs: Annotated[
        int, typer.Option("--jobs", "-j", min=1, help="Destinations to sync in parallel")
    ] = 1,
    weeks: Annotated[
        int | None, typer.Option("--weeks", help="Weeks to sync forward (overrides config)")
    ] = None,
    weeks_past: Annotated[
        int | None, typer.Option("--weeks-past", help="Weeks to sync backward (overrides config)")
    ] = None,
    work_token_path: Annotated[
        Path | None, typer.Option("--work-token-path", help="Work account OAuth token file")
    ] = None,
    google_credentials_path: Annotated[
        Path | None,
        typer.Option("--google-credentials-path", help="OAuth client secrets JSON file"),
    ] = None,
) -> None:
    """Sync the work calendar into every configured destination.

    Manually created events in a destination calendar are [bold red]deleted[/]; you
    are asked first when running in a terminal. Unattended runs with such events
    fail for that destination unless [cyan]--yes[/] is given.
    """
    from work_calendar_sync.preflight import run_preflight_checks

    cfg = _load_or_exit(
        work_token_path=work_token_path,
        google_credentials_path=google_credentials_path,
        weeks=weeks,
        weeks_past=weeks_past,
    )
    cfg.only_destination = destination
    cfg.dry_run = dry_run
    cfg.yes = yes
    cfg.jobs = jobs

    try:
        selected = select_destinations(cfg)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        raise typer.Exit(1) from None

    if not run_preflight_checks(cfg, console):
        raise typer.Exit(1)

    # -- Info panel ----------------------------------------------------------
    info = _window_text(cfg)
    info.append("\n  Targets:   ", style="bold")
    info.append(", ".join(f"{d.name} ({d.kind})" for d in selected))
    if cfg.yes:
        info.append("\n  Untagged:  ")
        info.append("delete without asking", style="yellow")
    if cfg.dry_run:
        info.append("\n  Mode:      ")
        info.append("DRY RUN", style="bold magenta")
    console.print(Panel(info, title="[bold]Work Calendar Sync[/bold]"))

    # -- Run -----------------------------------------------------------------
    cancel = threading.Event()
    prompt = AutoConfirmPrompt() if cfg.yes else TerminalPrompt(console)
    try:
        work_client = _work_client(cfg)
        report = CalendarSynchronizer(
            cfg, work_client, _client_factory(cfg), prompt, cancel=cancel
        ).run()
    except CalendarSyncError as e:
        console.print(f"[bold red]Sync failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        cancel.set()
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None

    _print_results(report)

    if not report.ok:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Subcommand: status
# ---------------------------------------------------------------------------


@app.command()
def status() -> None:
    """Show sync configuration and the current sync window."""
    config_exists = state.config_path.exists()

    cfg_info = Text()
    cfg_info.append("  Config:    ", style="bold")
    cfg_info.append(str(state.config_path) + " ")
    cfg_info.append(
        "✓" if config_exists else "(not found)", style="green" if config_exists else "red"
    )

    cfg = _load_or_exit()

    for label, path in (
        ("Work token", cfg.work_token_path),
        ("Credentials", cfg.google_credentials_path),
    ):
        cfg_info.append(f"\n  {label + ':':<11}", style="bold")
        cfg_info.append(str(path) + " ")
        cfg_info.append("✓" if path.exists() else "(not found)", style="green" if path.exists() else "yellow")

    cfg_info.append("\n  Timezone:  ", style="bold")
    cfg_info.append(str(cfg.timezone) if cfg.timezone else "system local")
    cfg_info.append("\n")
    cfg_info.append_text(_window_text(cfg))

    console.print(Panel(cfg_info, title="[bold]Work Calendar Sync — Status[/bold]"))

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Destination", style="bold")
    table.add_column("Type")
    table.add_column("Calendar")
    table.add_column("Account")

    for dest in cfg.destinations:
        if dest.kind == "google":
            token_ok = dest.token_path is not None and dest.token_path.exists()
            account = Text(str(dest.token_path) + " ")
            account.append("✓" if token_ok else "(no token yet)", style="green" if token_ok else "yellow")
        else:
            account = Text(f"{dest.username} @ {dest.server_url}")
        table.add_row(dest.name, dest.kind, dest.calendar_name, account)

    console.print(Panel(table, title="[bold]Destinations[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Subcommand: inspect
# ---------------------------------------------------------------------------


@app.command()
def inspect(
    destination: Annotated[str, typer.Argument(help="Destination name to inspect")],
    title: Annotated[
        str | None, typer.Option(help="Filter by summary substring (case-insensitive)")
    ] = None,
    untagged_only: Annotated[
        bool,
        typer.Option("--untagged-only", help="Show only events without a work event id"),
    ] = False,
) -> None:
    """Inspect / debug events in a destination calendar."""
    from work_calendar_sync.debug import dump_event

    cfg = _load_or_exit()
    cfg.only_destination = destination
    try:
        (dest,) = select_destinations(cfg)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None

    window = compute_sync_window(None, cfg.weeks_forward, cfg.weeks_back, cfg.timezone).wide()
    try:
        client = _client_factory(cfg)(dest)
        calendar_id = client.find_or_create_calendar(dest.calendar_name, dest.calendar_color)
        events = client.list_events(calendar_id, window.time_min, window.time_max)
    except CalendarSyncError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None

    console.print(f"[bold]Calendar:[/] {dest.calendar_name} [dim]({dest.name}, {calendar_id})[/dim]")
    console.print(f"[bold]Events:[/] {len(events)} total")

    title_filter = title.lower() if title else None
    count = 0
    for event in events:
        if title_filter and title_filter not in event.summary.lower():
            continue
        if untagged_only and event.tracking_key is not None:
            continue
        count += 1
        dump_event(event, console)

    console.print(f"\n[bold]Matched {count} event(s)[/bold]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
