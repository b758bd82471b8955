"""Slack-facing text and slash-command parsing.

Pure functions only: nothing here talks to Slack, so every string the
bot can send is testable in isolation.
"""

from __future__ import annotations

from embed_bot.core.models import PipelineRequest
from embed_bot.exceptions import EmbedBotError, InvalidRequestError, user_message

COMMAND_NAME = "/embed"

USAGE = (
    "Usage: `/embed <url> [<start> <end>]` — "
    "start and end in 00:00 format, e.g. `/embed https://example.com/v 01:30 02:00`"
)

WORKING_TEXT = "Embedding {url} …"
COOKIE_SAVED_TEXT = "Cookie file saved!"
CHANNEL_DISABLED_TEXT = "`/embed` is not enabled in this channel."
SUCCESS_REACTION = "thumbsup"


def parse_embed_command(text: str) -> PipelineRequest:
    """Turn the free-text argument of ``/embed`` into a request.

    Accepts ``url`` or ``url start end``.  Slack wraps links as
    ``<https://…>`` or ``<https://…|label>``; the brackets are removed.

    Raises
    ------
    InvalidRequestError
        On any other argument count, or an invalid URL.
    """
    parts = text.split()
    if len(parts) not in (1, 3):
        raise InvalidRequestError(
            "expected a URL, optionally followed by start and end",
            hint=USAGE,
        )

    url = _unwrap_link(parts[0])
    if len(parts) == 3:
        return PipelineRequest(url=url, start=parts[1], end=parts[2])
    return PipelineRequest(url=url)


def _unwrap_link(token: str) -> str:
    if token.startswith("<") and token.endswith(">"):
        token = token[1:-1]
        return token.split("|", 1)[0]
    return token


def working_text(url: str) -> str:
    return WORKING_TEXT.format(url=url)


def error_text(exc: EmbedBotError) -> str:
    """Terminal error text; usage guidance is appended for bad input."""
    text = user_message(exc)
    if isinstance(exc, InvalidRequestError) and exc.hint:
        return f"{text}\n{exc.hint}"
    return text


def upload_comment(url: str) -> str:
    return f"<{url}>"
