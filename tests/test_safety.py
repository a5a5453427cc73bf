"""
Unit tests for the confirmation prompts and the safety gate.
"""

import io

import pytest
from rich.console import Console

from work_calendar_sync.models import SafetyGateError
from work_calendar_sync.sync.safety import AutoConfirmPrompt
from work_calendar_sync.sync.safety import SafetyGate
from work_calendar_sync.sync.safety import TerminalPrompt
from tests.conftest import ScriptedPrompt


def _terminal(answer: str) -> TerminalPrompt:
    console = Console(file=io.StringIO(), force_terminal=False)
    return TerminalPrompt(console, stdin=io.StringIO(answer))


class TestTerminalPrompt:
    def test_non_tty_is_not_interactive(self):
        assert not _terminal("yes\n").is_interactive()

    @pytest.mark.parametrize("answer", ["yes\n", "y\n", "  YES \n", "Y\n"])
    def test_affirmative_answers(self, answer):
        assert _terminal(answer).confirm("Delete?")

    @pytest.mark.parametrize("answer", ["no\n", "\n", "yess\n", ""])
    def test_anything_else_refuses(self, answer):
        assert not _terminal(answer).confirm("Delete?")

    def test_warning_is_shown(self):
        prompt = _terminal("no\n")
        prompt.confirm("3 events will go")
        assert "3 events will go" in prompt.console.file.getvalue()


class TestSafetyGate:
    def test_zero_untagged_returns(self, google_destination):
        prompt = ScriptedPrompt(interactive=False)
        SafetyGate(prompt).check(google_destination, 0)
        assert prompt.messages == []

    def test_non_interactive_raises(self, google_destination):
        with pytest.raises(SafetyGateError, match="2 untagged event"):
            SafetyGate(ScriptedPrompt(interactive=False)).check(google_destination, 2)

    def test_refusal_raises(self, google_destination):
        with pytest.raises(SafetyGateError, match="cancelled by user"):
            SafetyGate(ScriptedPrompt(answer=False)).check(google_destination, 1)

    def test_confirmation_names_calendar(self, google_destination):
        prompt = ScriptedPrompt()
        SafetyGate(prompt).check(google_destination, 4)
        assert "'Work Sync' (Personal)" in prompt.messages[0]
        assert "4 manually created" in prompt.messages[0]

    def test_auto_confirm(self, google_destination):
        SafetyGate(AutoConfirmPrompt()).check(google_destination, 10)
