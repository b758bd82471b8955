"""Infrastructure layer — external system integration.

This layer wraps all interaction with yt-dlp, ffmpeg/ffprobe, the
operating system and the configuration file.  Every raw third-party
exception must be caught here and re-raised as an
:class:`~embed_bot.exceptions.EmbedBotError` subclass.

Rules
-----
* No imports from ``cli`` or ``slack``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from embed_bot.infra.cookie_store import CookieStore
from embed_bot.infra.ffmpeg_toolkit import FfmpegToolkit
from embed_bot.infra.settings import Settings, load_settings
from embed_bot.infra.tool_detector import ToolStatus, detect_tool, require_tools
from embed_bot.infra.ytdlp_fetcher import YtDlpFetcher

__all__: list[str] = [
    "CookieStore",
    "FfmpegToolkit",
    "Settings",
    "ToolStatus",
    "YtDlpFetcher",
    "detect_tool",
    "load_settings",
    "require_tools",
]
