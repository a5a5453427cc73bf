"""
Preflight checks run before sync to catch common misconfigurations early.
"""

import logging
import os
from pathlib import Path
from urllib.parse import urlparse

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from work_calendar_sync.auth import load_client_config
from work_calendar_sync.models import ConfigError
from work_calendar_sync.models import SyncConfig

logger = logging.getLogger(__name__)


def _check_token_dir(token_path: Path, label: str, issues: list[tuple[str, str, str]]) -> None:
    directory = token_path.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Cannot create token directory %s: %s", directory, e)
        issues.append((label, f"{directory}: {e}", f"Check permissions on {directory.parent}"))
        return
    if not os.access(directory, os.W_OK):
        logger.error("Token directory not writable: %s", directory)
        issues.append(
            (
                label,
                f"{directory} is not writable",
                "Refreshed tokens are saved here; if using a systemd service, "
                "ensure ReadWritePaths covers this directory",
            )
        )


def run_preflight_checks(cfg: SyncConfig, console: Console) -> bool:
    """Return True if sync may proceed; print issues and return False otherwise."""
    issues: list[tuple[str, str, str]] = []  # (label, detail, hint)

    # 1. OAuth client secrets present and parseable
    try:
        load_client_config(cfg.google_credentials_path)
    except ConfigError as e:
        issues.append(
            (
                "Google credentials",
                str(e),
                "Download an OAuth client ID (Desktop app) from Google Cloud Console",
            )
        )

    # 2. Token directories writable
    _check_token_dir(cfg.work_token_path, "Work token", issues)

    for dest in cfg.destinations:
        label = f"Destination '{dest.name}'"
        if dest.kind == "google" and dest.token_path is not None:
            _check_token_dir(dest.token_path, label, issues)
        elif dest.kind == "apple":
            # 3. CalDAV URL sane
            parsed = urlparse(dest.server_url or "")
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                logger.error("Invalid CalDAV server URL for %s: %s", dest.name, dest.server_url)
                issues.append(
                    (label, f"invalid server_url: {dest.server_url!r}", "e.g. https://caldav.icloud.com")
                )
            elif parsed.scheme == "http":
                logger.warning("CalDAV server for %s uses plain http", dest.name)

    if issues:
        _print_issues(issues, console)
        return False

    return True


def _print_issues(issues: list[tuple[str, str, str]], console: Console) -> None:
    body = Text()
    for i, (label, detail, hint) in enumerate(issues):
        if i:
            body.append("\n")
        body.append(f"  ✗  {label}: ", style="bold red")
        body.append(detail, style="bold red")
        body.append(f"\n       → {hint}", style="yellow")

    console.print(Panel(body, title="[bold red]Preflight checks failed[/bold red]"))
