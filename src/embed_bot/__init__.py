"""embed-bot — Slack bot that turns video links into uploadable clips.

Downloads with yt-dlp, normalises and shrinks with ffmpeg, and uploads
the result back into the conversation.
"""

from embed_bot.version import __version__

__all__: list[str] = ["__version__"]
