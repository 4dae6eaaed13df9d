"""Unit tests for the console prompter."""

import pytest

from flow_devkit.exceptions import PromptCancelledError
from flow_devkit.prompts import ConsolePrompter


@pytest.fixture
def answers(monkeypatch):
    """Feed queued answers to input(); an exception instance is raised instead."""
    queue = []

    def fake_input(*args):
        answer = queue.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    monkeypatch.setattr("builtins.input", fake_input)
    return queue


class TestConsolePrompter:
    """Test answers read from the terminal."""

    def test_confirm(self, console, answers):
        """Test yes and no answers."""
        answers.extend(["y", "n"])
        prompter = ConsolePrompter(console)

        assert prompter.confirm("Update?") is True
        assert prompter.confirm("Update?") is False

    def test_select_by_number(self, console, console_output, answers):
        """Test that options are numbered from 1."""
        answers.append("2")

        choice = ConsolePrompter(console).select("Choose an account", ["emulator-account", "none"])

        assert choice == "none"
        assert "1. emulator-account" in console_output.getvalue()

    def test_multi_select(self, console, answers):
        """Test comma-separated choices, re-asking on invalid input."""
        answers.extend(["9", "3, 1,1"])

        picked = ConsolePrompter(console).multi_select("Pick", ["A", "B", "C"])

        assert picked == ["A", "C"]

    def test_multi_select_nothing(self, console, answers):
        """Test that an empty answer selects nothing."""
        answers.append("")

        assert ConsolePrompter(console).multi_select("Pick", ["A"]) == []

    def test_address(self, console, answers):
        """Test that addresses are canonicalized and invalid ones re-asked."""
        answers.extend(["not an address", "0x0A"])

        assert ConsolePrompter(console).address("Alias?") == "000000000000000a"

    def test_blank_address(self, console, answers):
        """Test that a blank answer means no address."""
        answers.append("")

        assert ConsolePrompter(console).address("Alias?") is None

    def test_cancel(self, console, answers):
        """Test that EOF cancels the prompt."""
        answers.append(EOFError())

        with pytest.raises(PromptCancelledError):
            ConsolePrompter(console).confirm("Update?")
