"""Tests for the command line interface."""

import pytest
from unittest.mock import patch
from click.testing import CliRunner

from voicespark.cli.main import cli
from voicespark.config.settings import settings
from voicespark.providers.ai.keyword import DEFAULT_ANSWER, SUNDOWNING_HELP_ANSWER


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("voicespark.cli.main.setup_logging"):
        yield


class TestProvidersCommand:
    """Tests for the providers listing."""

    def test_lists_every_provider(self, runner):
        result = runner.invoke(cli, ["providers"])

        assert result.exit_code == 0
        for name in ("openai", "gemini", "keyword", "deepgram", "mock", "elevenlabs", "simulated"):
            assert name in result.output
        assert "keyword (no key needed)" in result.output


class TestChatCommand:
    """Tests for the interactive chat loop in mock mode."""

    def test_text_conversation(self, runner):
        result = runner.invoke(
            cli, ["chat", "--mock", "--no-speech"], input="I need some help\n/quit\n"
        )

        assert result.exit_code == 0, result.output
        assert settings.session.greeting in result.output
        assert DEFAULT_ANSWER in result.output
        assert "Goodbye!" in result.output

    def test_keyword_answer(self, runner):
        result = runner.invoke(
            cli,
            ["chat", "--mock", "--no-speech"],
            input="How can I help my mom with sundowning?\n/quit\n",
        )

        assert result.exit_code == 0, result.output
        assert SUNDOWNING_HELP_ANSWER in result.output

    def test_help_and_status_commands(self, runner):
        result = runner.invoke(cli, ["chat", "--mock", "--no-speech"], input="/help\n/status\n/quit\n")

        assert result.exit_code == 0, result.output
        assert "/voice" in result.output
        assert '"state": "idle"' in result.output

    def test_voice_requires_flag(self, runner):
        result = runner.invoke(cli, ["chat", "--mock", "--no-speech"], input="/voice\n/quit\n")

        assert result.exit_code == 0, result.output
        assert "Voice input is off" in result.output

    def test_end_of_input_leaves_cleanly(self, runner):
        result = runner.invoke(cli, ["chat", "--mock", "--no-speech"], input="")

        assert result.exit_code == 0, result.output
        assert "Goodbye!" in result.output

    def test_invalid_provider(self, runner):
        result = runner.invoke(cli, ["chat", "--ai-provider", "claude"])

        assert result.exit_code == 2
        assert "Invalid AI provider 'claude'" in result.output
