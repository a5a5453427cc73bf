"""
Safety gate — confirmation before deleting untagged destination events.

Events without a tracking key were not created by this tool, so someone added
them by hand. Deleting them is irreversible: an interactive operator must type
"yes"; unattended runs fail loudly instead of deleting or hanging.
"""

import logging
import sys
import threading
from abc import ABC
from abc import abstractmethod

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from work_calendar_sync.models import Destination
from work_calendar_sync.models import SafetyGateError

# One terminal, many destination workers: prompts must not interleave.
_PROMPT_LOCK = threading.Lock()


class ConfirmationPrompt(ABC):
    @abstractmethod
    def is_interactive(self) -> bool: ...

    @abstractmethod
    def confirm(self, message: str) -> bool: ...


class TerminalPrompt(ConfirmationPrompt):
    """Prompt on the controlling terminal; stdin must be a TTY."""

    def __init__(self, console: Console | None = None, stdin=None):
        self.console = console or Console(stderr=True)
        self.stdin = stdin or sys.stdin
        self._stream = stdin

    def is_interactive(self) -> bool:
        try:
            return self.stdin.isatty()
        except (AttributeError, ValueError):
            return False

    def confirm(self, message: str) -> bool:
        with _PROMPT_LOCK:
            self.console.print(Panel(Text(message), title="[bold yellow]Warning[/bold yellow]"))
            try:
                answer = self.console.input(
                    "Do you want to continue? (yes/no): ", stream=self._stream
                )
            except EOFError:
                return False
        return answer.strip().lower() in ("yes", "y")


class AutoConfirmPrompt(ConfirmationPrompt):
    """Operator confirmed up front (--yes)."""

    def is_interactive(self) -> bool:
        return True

    def confirm(self, message: str) -> bool:
        return True


class SafetyGate:
    """Decides whether a destination's untagged events may be deleted."""

    def __init__(self, prompt: ConfirmationPrompt, logger: logging.Logger | None = None):
        self.prompt = prompt
        self.logger = logger or logging.getLogger(__name__)

    def check(self, destination: Destination, untagged_count: int) -> None:
        """Return if deletion may proceed; raise SafetyGateError otherwise."""
        if untagged_count == 0:
            return

        message = (
            f"The calendar '{destination.calendar_name}' ({destination.name}) contains "
            f"{untagged_count} manually created event(s) without a tracking key.\n"
            "This tool will DELETE these events because they are not in your work calendar."
        )

        if not self.prompt.is_interactive():
            self.logger.error(
                "[%s] Refusing to delete %d untagged event(s) in non-interactive mode",
                destination.name,
                untagged_count,
            )
            raise SafetyGateError(
                f"{untagged_count} untagged event(s) found in '{destination.calendar_name}'; "
                "run interactively to confirm deletion, pass --yes, or remove them by hand"
            )

        if not self.prompt.confirm(message):
            self.logger.error("[%s] Deletion of untagged events declined", destination.name)
            raise SafetyGateError("sync cancelled by user")

        self.logger.warning(
            "[%s] Confirmed deletion of %d untagged event(s)", destination.name, untagged_count
        )
