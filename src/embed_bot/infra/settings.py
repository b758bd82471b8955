"""Runtime configuration: ``config.env`` file with environment override.

Values are read from ``<user config dir>/embed-bot/config.env`` with
python-dotenv, then overlaid by the process environment.  The file and
its directory are created empty on first run so there is always an
obvious place to put the tokens.

Keys
----
``SLACK_BOT_TOKEN``          bot user OAuth token (``xoxb-…``), required
``SLACK_APP_TOKEN``          app-level Socket Mode token (``xapp-…``), required
``SLACK_CHANNEL_ID``         only answer commands from this channel
``EMBED_BOT_COOKIE_DIR``     cookie directory, default ``cookies``
``EMBED_BOT_WORK_DIR``       parent of per-request workspaces, default ``.``
``EMBED_BOT_LOCATE_BY_SCAN`` find stage outputs by name-prefix scan
``EMBED_BOT_LOG_LEVEL``      default ``INFO``
"""

from __future__ import annotations

import os
import platform
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values, set_key

from embed_bot.exceptions import ConfigInvalidError

APP_DIR_NAME = "embed-bot"
CONFIG_FILE_NAME = "config.env"

BOT_TOKEN_KEY = "SLACK_BOT_TOKEN"
APP_TOKEN_KEY = "SLACK_APP_TOKEN"
CHANNEL_KEY = "SLACK_CHANNEL_ID"
COOKIE_DIR_KEY = "EMBED_BOT_COOKIE_DIR"
WORK_DIR_KEY = "EMBED_BOT_WORK_DIR"
LOCATE_BY_SCAN_KEY = "EMBED_BOT_LOCATE_BY_SCAN"
LOG_LEVEL_KEY = "EMBED_BOT_LOG_LEVEL"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class Settings:
    """Validated configuration for one bot process."""

    bot_token: str
    app_token: str
    cookie_dir: Path = Path("cookies")
    work_dir: Path = Path(".")
    locate_by_scan: bool = False
    log_level: str = "INFO"
    channel_id: str | None = None


def user_config_dir() -> Path:
    """Platform configuration root, mirroring the usual OS conventions."""
    system = platform.system().lower()
    if system == "windows":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
    elif system == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def default_config_file() -> Path:
    return user_config_dir() / APP_DIR_NAME / CONFIG_FILE_NAME


def ensure_config_file(config_file: Path) -> Path:
    """Create *config_file* (and its parents) empty if it does not exist."""
    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.touch(exist_ok=True)
    except OSError as exc:
        raise ConfigInvalidError(f"could not create {config_file}: {exc}") from exc
    return config_file


def read_values(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge file values with the environment; the environment wins."""
    path = ensure_config_file(config_file or default_config_file())
    merged = {key: value for key, value in dotenv_values(path).items() if value is not None}
    env = os.environ if environ is None else environ
    for key in (
        BOT_TOKEN_KEY,
        APP_TOKEN_KEY,
        CHANNEL_KEY,
        COOKIE_DIR_KEY,
        WORK_DIR_KEY,
        LOCATE_BY_SCAN_KEY,
        LOG_LEVEL_KEY,
    ):
        if env.get(key):
            merged[key] = env[key]
    return merged


def load_settings(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load and validate :class:`Settings`.

    Raises
    ------
    ConfigInvalidError
        When either Slack token is missing.
    """
    values = read_values(config_file, environ)
    path = config_file or default_config_file()

    for key in (BOT_TOKEN_KEY, APP_TOKEN_KEY):
        if not values.get(key, "").strip():
            raise ConfigInvalidError(
                f"{key} is not set",
                hint=f"Run 'embed-bot configure' or add {key} to {path}",
            )

    return Settings(
        bot_token=values[BOT_TOKEN_KEY].strip(),
        app_token=values[APP_TOKEN_KEY].strip(),
        cookie_dir=Path(values.get(COOKIE_DIR_KEY) or "cookies"),
        work_dir=Path(values.get(WORK_DIR_KEY) or "."),
        locate_by_scan=values.get(LOCATE_BY_SCAN_KEY, "").strip().lower() in _TRUTHY,
        log_level=(values.get(LOG_LEVEL_KEY) or "INFO").upper(),
        channel_id=values.get(CHANNEL_KEY) or None,
    )


def write_settings(values: Mapping[str, str], config_file: Path | None = None) -> Path:
    """Persist *values* into ``config.env``, keeping unrelated keys."""
    path = ensure_config_file(config_file or default_config_file())
    for key, value in values.items():
        set_key(str(path), key, value, quote_mode="never")
    return path
