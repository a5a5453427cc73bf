"""
Google OAuth credentials: token file storage, refresh and first-run consent.
"""

import json
import logging
import os
from datetime import datetime
from datetime import timedelta
from pathlib import Path

from dateutil.relativedelta import relativedelta
from google.auth.exceptions import RefreshError
from google.auth.exceptions import TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from work_calendar_sync.models import AuthError
from work_calendar_sync.models import ConfigError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]
OAUTH_PORT = 8080

# Refresh tokens of apps in "Testing" mode die after 7 days; production grants
# survive roughly 6 months of inactivity.
TESTING_TOKEN_LIFETIME = timedelta(days=7)
PRODUCTION_TOKEN_LIFETIME = relativedelta(months=6)


def load_client_config(credentials_path: Path) -> dict:
    """Read a Google Cloud Console client secrets file ("installed" or "web" section)."""
    try:
        data = json.loads(Path(credentials_path).read_text())
    except OSError as e:
        raise ConfigError(f"failed to read credentials file {credentials_path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"failed to parse credentials file {credentials_path}: {e}") from e

    for section in ("installed", "web"):
        if (data.get(section) or {}).get("client_id"):
            return {section: data[section]}
    raise ConfigError(
        f"no client_id found in {credentials_path} (expected 'installed' or 'web' section)"
    )


def save_credentials(creds: Credentials, token_path: Path) -> None:
    token_path = Path(token_path)
    token_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(token_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(creds.to_json())


def _run_consent_flow(client_config: dict, token_path: Path) -> Credentials:
    flow = InstalledAppFlow.from_client_config(client_config, SCOPES)
    try:
        creds = flow.run_local_server(port=OAUTH_PORT, access_type="offline", prompt="consent")
    except OSError:
        # Port taken: fall back to any free port (must be an authorised redirect URI).
        creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
    save_credentials(creds, token_path)
    logger.info("Authorization successful, token saved to %s", token_path)
    return creds


def get_credentials(credentials_path: Path, token_path: Path, interactive: bool) -> Credentials:
    """
    Return valid credentials for one Google account.

    Loads the token file, refreshing and re-saving it when expired. A missing
    or revoked token triggers the browser consent flow, which is only allowed
    when running interactively.
    """
    token_path = Path(token_path)
    client_config = load_client_config(credentials_path)

    creds = None
    if token_path.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
        except (OSError, ValueError) as e:
            raise AuthError(f"failed to load token {token_path}: {e}") from e

    if creds is not None and creds.valid:
        return creds

    if creds is not None and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            save_credentials(creds, token_path)
            return creds
        except RefreshError as e:
            if not interactive:
                raise AuthError(
                    f"token {token_path} expired and running in non-interactive mode; "
                    f"run manually to re-authenticate: {e}"
                ) from e
            logger.warning("OAuth token has expired, launching authentication flow...")
            token_path.unlink(missing_ok=True)
        except (TransportError, OSError) as e:
            raise AuthError(f"failed to refresh token {token_path}: {e}") from e

    if not interactive:
        raise AuthError(
            f"no usable token at {token_path} and running in non-interactive mode; "
            "run manually to authorise this account"
        )
    return _run_consent_flow(client_config, token_path)


def build_calendar_service(creds: Credentials):
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def estimate_refresh_expiry(token_path: Path, now: datetime) -> tuple[datetime, str] | None:
    """
    Estimate when the refresh grant behind ``token_path`` lapses.

    The token file's mtime marks the last refresh. A token touched within the
    last 7 days is assumed to belong to a Testing-mode app. Returns
    (expiry, reason), or None when there is no token yet.
    """
    token_path = Path(token_path)
    if not token_path.exists():
        return None
    # Backends store whole seconds; keep the estimate stable across passes.
    modified = datetime.fromtimestamp(int(token_path.stat().st_mtime), tz=now.tzinfo)
    if now - modified < TESTING_TOKEN_LIFETIME:
        return modified + TESTING_TOKEN_LIFETIME, "7 days from last refresh (testing mode estimate)"
    return (
        modified + PRODUCTION_TOKEN_LIFETIME,
        "6 months from last refresh (production mode estimate)",
    )
