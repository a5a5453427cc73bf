"""
Tests for OAuth client-config loading and token storage.
"""

import json
import stat

import pytest

from work_calendar_sync.auth import get_credentials
from work_calendar_sync.auth import load_client_config
from work_calendar_sync.auth import save_credentials
from work_calendar_sync.models import AuthError
from work_calendar_sync.models import ConfigError


class _StubCredentials:
    def to_json(self):
        return json.dumps({"token": "t", "refresh_token": "r"})


@pytest.fixture
def credentials_file(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({"installed": {"client_id": "cid", "client_secret": "s"}}))
    return path


class TestLoadClientConfig:
    def test_installed_section(self, credentials_file):
        assert load_client_config(credentials_file) == {
            "installed": {"client_id": "cid", "client_secret": "s"}
        }

    def test_web_section(self, tmp_path):
        path = tmp_path / "web.json"
        path.write_text(json.dumps({"installed": {}, "web": {"client_id": "w"}}))
        assert load_client_config(path) == {"web": {"client_id": "w"}}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="failed to read"):
            load_client_config(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="failed to parse"):
            load_client_config(path)


def test_save_credentials_is_private(tmp_path):
    token = tmp_path / "nested" / "token.json"
    save_credentials(_StubCredentials(), token)
    assert json.loads(token.read_text())["refresh_token"] == "r"
    assert stat.S_IMODE(token.stat().st_mode) == 0o600


def test_non_interactive_without_token_fails(credentials_file, tmp_path):
    with pytest.raises(AuthError, match="non-interactive"):
        get_credentials(credentials_file, tmp_path / "missing-token.json", interactive=False)
