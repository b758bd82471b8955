"""Tests for ``embed-bot configure`` (cli/configure.py).

questionary is mocked; answers are fed through ``.ask()`` return values.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from embed_bot.cli import exit_codes
from embed_bot.cli.configure import _token_validator, run_configure
from embed_bot.exceptions import ConfigInvalidError
from embed_bot.infra.settings import read_values


def _questionary(passwords: list[str | None], channel: str | None = "") -> MagicMock:
    module = MagicMock()
    module.password.return_value.ask.side_effect = passwords
    module.text.return_value.ask.return_value = channel
    return module


class TestRunConfigure:
    def test_writes_tokens(self, tmp_path: Path) -> None:
        config = tmp_path / "config.env"
        fake = _questionary(["xoxb-abc ", "xapp-def"], channel="C42")

        with patch("embed_bot.cli.configure._import_questionary", return_value=fake):
            code = run_configure(config)

        assert code == exit_codes.SUCCESS
        values = read_values(config, environ={})
        assert values["SLACK_BOT_TOKEN"] == "xoxb-abc"
        assert values["SLACK_APP_TOKEN"] == "xapp-def"
        assert values["SLACK_CHANNEL_ID"] == "C42"

    def test_empty_channel_not_written(self, tmp_path: Path) -> None:
        config = tmp_path / "config.env"
        fake = _questionary(["xoxb-abc", "xapp-def"], channel="")

        with patch("embed_bot.cli.configure._import_questionary", return_value=fake):
            run_configure(config)

        assert "SLACK_CHANNEL_ID" not in read_values(config, environ={})

    def test_cancel_writes_nothing(self, tmp_path: Path) -> None:
        config = tmp_path / "config.env"
        fake = _questionary(["xoxb-abc", None])

        with patch("embed_bot.cli.configure._import_questionary", return_value=fake):
            with pytest.raises(ConfigInvalidError, match="cancelled"):
                run_configure(config)

        assert read_values(config, environ={}) == {}


class TestTokenValidator:
    def test_accepts_prefix(self) -> None:
        assert _token_validator("xoxb-")("xoxb-123") is True

    def test_rejects_empty(self) -> None:
        assert _token_validator("xoxb-")("  ") == "A value is required."

    def test_rejects_wrong_prefix(self) -> None:
        result = _token_validator("xapp-")("xoxb-123")
        assert isinstance(result, str)
        assert "xapp-" in result
