"""
Debug/inspect rendering for destination calendar events.

Importable functions:
  dump_event(event, console)  — render one event in a Rich Panel
"""

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from work_calendar_sync.models import TOKEN_REMINDER_KEY
from work_calendar_sync.models import AllDay
from work_calendar_sync.models import Event
from work_calendar_sync.models import Timed


def fmt_when(event: Event) -> tuple[str | None, str | None]:
    if isinstance(event.when, AllDay):
        return event.when.start.isoformat(), f"{event.when.end.isoformat()} (exclusive)"
    if isinstance(event.when, Timed):
        return event.when.start.isoformat(), event.when.end.isoformat()
    return "(unparseable)", None


def dump_event(event: Event, console: Console) -> None:
    """Render a single event as a Rich Panel."""
    summary = event.summary or "(no summary)"
    start, end = fmt_when(event)

    lines = Text()

    def row(label: str, value, style: str | None = None) -> None:
        if value is None or value == "":
            return
        lines.append(f"  {label:<14}: ", style="bold cyan")
        lines.append(f"{value}\n", style=style)

    row("ID", event.id)
    row("START", start)
    row("END", end)
    row("LOCATION", event.location)
    row("TRANSPARENT", "yes" if event.transparent else None)
    row("MEETING URL", event.meeting_url)

    key = event.tracking_key
    if key is None:
        row("WORK EVENT ID", "(untagged: will be deleted on next sync)", style="bold red")
    elif key == TOKEN_REMINDER_KEY:
        row("WORK EVENT ID", key, style="yellow")
    else:
        row("WORK EVENT ID", key, style="green")

    console.print(Panel(lines, title=f"[bold]{summary}[/bold]", expand=False))
