"""
INI configuration loading.

Precedence, highest first: command-line flags, environment variables, the
config file, built-in defaults.
"""

import os
from collections.abc import Mapping
from configparser import ConfigParser
from configparser import Error as ConfigParserError
from pathlib import Path
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from work_calendar_sync.models import DEFAULT_CALENDAR_COLOR
from work_calendar_sync.models import DEFAULT_CALENDAR_NAME
from work_calendar_sync.models import DESTINATION_KINDS
from work_calendar_sync.models import ConfigError
from work_calendar_sync.models import Destination
from work_calendar_sync.models import SyncConfig

MAIN_SECTION = "calendar-sync"
DESTINATION_PREFIX = "destination"


def _read_file(config_path: Path) -> ConfigParser:
    parser = ConfigParser()
    if config_path is None or not Path(config_path).exists():
        return parser
    try:
        parser.read(config_path)
    except ConfigParserError as e:
        raise ConfigError(f"failed to parse config file {config_path}: {e}") from e
    return parser


def _parse_weeks(raw: str | None, label: str, minimum: int) -> int | None:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ConfigError(f"invalid {label} value: {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{label} must be at least {minimum}, got {value}")
    return value


def _expand(path: str | Path | None) -> Path | None:
    if path is None or str(path) == "":
        return None
    return Path(os.path.expandvars(str(path))).expanduser()


def _parse_destination(
    index: int, section_name: str, section: Mapping[str, str], environ: Mapping[str, str]
) -> Destination:
    name = section_name[len(DESTINATION_PREFIX) :].strip() or f"Destination {index + 1}"
    kind = section.get("type", "").strip().lower()
    if kind not in DESTINATION_KINDS:
        raise ConfigError(
            f"destination[{index}] (name: {name}): type must be 'google' or 'apple', got '{kind}'"
        )

    dest = Destination(
        name=name,
        kind=kind,
        calendar_name=section.get("calendar_name") or DEFAULT_CALENDAR_NAME,
        calendar_color=section.get("calendar_color_id") or DEFAULT_CALENDAR_COLOR,
    )

    if kind == "google":
        dest.token_path = _expand(section.get("token_path"))
        if dest.token_path is None:
            raise ConfigError(
                f"destination[{index}] (name: {name}): token_path must be provided "
                "for Google Calendar destination"
            )
        return dest

    dest.server_url = section.get("server_url") or None
    dest.username = section.get("username") or None
    dest.password = section.get("password") or None
    password_env = section.get("password_env")
    if password_env:
        dest.password = environ.get(password_env) or dest.password

    for attr in ("server_url", "username", "password"):
        if not getattr(dest, attr):
            hint = ""
            if attr == "password" and password_env:
                hint = f" (environment variable {password_env} is empty)"
            raise ConfigError(
                f"destination[{index}] (name: {name}): {attr} must be provided "
                f"for Apple Calendar destination{hint}"
            )
    return dest


def load_config(
    config_path: Path | None,
    work_token_path: Path | None = None,
    google_credentials_path: Path | None = None,
    weeks: int | None = None,
    weeks_past: int | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncConfig:
    """
    Build a SyncConfig from the INI file, the environment and flag overrides.

    Raises ConfigError for anything missing or malformed; no network access
    happens here.
    """
    environ = os.environ if environ is None else environ
    parser = _read_file(config_path)
    main = parser[MAIN_SECTION] if parser.has_section(MAIN_SECTION) else {}

    # -- file ----------------------------------------------------------------
    token = main.get("work_token_path")
    creds = main.get("google_credentials_path")
    weeks_forward = _parse_weeks(main.get("sync_window_weeks"), "sync_window_weeks", 1)
    weeks_back = _parse_weeks(main.get("sync_window_weeks_past"), "sync_window_weeks_past", 0)
    tz_name = main.get("timezone")

    # -- environment -----------------------------------------------------------
    token = environ.get("WORK_TOKEN_PATH") or token
    creds = environ.get("GOOGLE_CREDENTIALS_PATH") or creds
    env_weeks = _parse_weeks(environ.get("SYNC_WINDOW_WEEKS"), "SYNC_WINDOW_WEEKS", 1)
    env_weeks_past = _parse_weeks(environ.get("SYNC_WINDOW_WEEKS_PAST"), "SYNC_WINDOW_WEEKS_PAST", 0)
    if env_weeks is not None:
        weeks_forward = env_weeks
    if env_weeks_past is not None:
        weeks_back = env_weeks_past
    tz_name = environ.get("SYNC_TIMEZONE") or tz_name

    # -- flags -----------------------------------------------------------------
    if work_token_path is not None:
        token = work_token_path
    if google_credentials_path is not None:
        creds = google_credentials_path
    if weeks is not None:
        weeks_forward = _parse_weeks(weeks, "--weeks", 1)
    if weeks_past is not None:
        weeks_back = _parse_weeks(weeks_past, "--weeks-past", 0)

    # -- validation ------------------------------------------------------------
    token = _expand(token)
    creds = _expand(creds)
    if token is None:
        raise ConfigError(
            "work_token_path must be provided via --work-token-path flag, "
            "WORK_TOKEN_PATH environment variable, or config file"
        )
    if creds is None:
        raise ConfigError(
            "google_credentials_path must be provided via --google-credentials-path flag, "
            "GOOGLE_CREDENTIALS_PATH environment variable, or config file"
        )

    timezone = None
    if tz_name:
        try:
            timezone = ZoneInfo(tz_name.strip())
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"unknown timezone '{tz_name}': {e}") from None

    sections = [
        s
        for s in parser.sections()
        if s == DESTINATION_PREFIX or s.startswith(DESTINATION_PREFIX + " ")
    ]
    if not sections:
        raise ConfigError(
            "at least one [destination NAME] section must be provided in the config file"
        )
    destinations = [
        _parse_destination(i, s, parser[s], environ) for i, s in enumerate(sections)
    ]
    names = [d.name for d in destinations]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"duplicate destination name(s): {', '.join(duplicates)}")

    return SyncConfig(
        work_token_path=token,
        google_credentials_path=creds,
        destinations=destinations,
        weeks_forward=2 if weeks_forward is None else weeks_forward,
        weeks_back=0 if weeks_back is None else weeks_back,
        timezone=timezone,
    )
