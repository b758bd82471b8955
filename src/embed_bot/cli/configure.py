"""``embed-bot configure`` — interactive token setup.

Prompts for the Slack tokens with questionary and writes them into
``config.env``.  Values already present are offered as defaults for
the optional channel filter; tokens are never echoed back.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from embed_bot.cli import exit_codes
from embed_bot.cli.console import console
from embed_bot.exceptions import ConfigInvalidError, EnvironmentError
from embed_bot.infra.settings import (
    APP_TOKEN_KEY,
    BOT_TOKEN_KEY,
    CHANNEL_KEY,
    read_values,
    write_settings,
)


def _import_questionary() -> Any:
    """Import questionary lazily for interactive prompts."""
    try:
        import questionary
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "questionary is not installed. Install with: pip install questionary",
        ) from exc
    return questionary


def _token_validator(prefix: str) -> Any:
    def validate(value: str) -> bool | str:
        if not value.strip():
            return "A value is required."
        if not value.strip().startswith(prefix):
            return f"Slack tokens of this kind start with {prefix}"
        return True

    return validate


def run_configure(config_file: Path | None = None) -> int:
    """Prompt for tokens and persist them.

    Raises
    ------
    ConfigInvalidError
        If the user cancels a prompt.
    """
    questionary = _import_questionary()
    existing = read_values(config_file, environ={})

    bot_token: str | None = questionary.password(
        "Slack bot token (xoxb-…):",
        validate=_token_validator("xoxb-"),
    ).ask()
    app_token: str | None = questionary.password(
        "Slack app-level token (xapp-…):",
        validate=_token_validator("xapp-"),
    ).ask()
    if bot_token is None or app_token is None:
        raise ConfigInvalidError("Configuration cancelled; nothing was written.")

    channel: str | None = questionary.text(
        "Restrict /embed to one channel ID (leave empty for all):",
        default=existing.get(CHANNEL_KEY, ""),
    ).ask()

    values = {
        BOT_TOKEN_KEY: bot_token.strip(),
        APP_TOKEN_KEY: app_token.strip(),
    }
    if channel:
        values[CHANNEL_KEY] = channel.strip()

    path = write_settings(values, config_file)
    console.print(f"[bold green]Saved configuration to[/bold green] {path}")
    return exit_codes.SUCCESS
