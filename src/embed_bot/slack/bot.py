"""Slack bot: Socket Mode wiring for ``/embed`` and cookie direct messages.

``/embed <url> [<start> <end>]``
    Acknowledged immediately with an ephemeral "working" note, then the
    media pipeline runs on bolt's worker thread.  The requester gets
    exactly one terminal outcome: the uploaded clip (with a 👍 reaction)
    or an error text.

Direct messages
    Any ``.txt`` file shared with the bot in a DM is stored verbatim in
    the cookie directory under its own filename.

Slack must receive ``ack()`` within three seconds, so every handler acks
before doing any work.  Handlers are the per-request error boundary:
nothing raised inside a pipeline reaches bolt.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler
from slack_sdk.errors import SlackClientError

from embed_bot.core.pipeline import MediaPipeline
from embed_bot.exceptions import EmbedBotError, InvalidRequestError, UploadFailedError
from embed_bot.infra.cookie_store import COOKIE_EXTENSION, CookieStore
from embed_bot.infra.ffmpeg_toolkit import FfmpegToolkit
from embed_bot.infra.settings import Settings
from embed_bot.infra.ytdlp_fetcher import YtDlpFetcher
from embed_bot.slack.messages import (
    CHANNEL_DISABLED_TEXT,
    COMMAND_NAME,
    COOKIE_SAVED_TEXT,
    SUCCESS_REACTION,
    error_text,
    parse_embed_command,
    upload_comment,
    working_text,
)

logger = logging.getLogger(__name__)

COOKIE_DOWNLOAD_TIMEOUT_S = 30.0
SHARE_POLL_ATTEMPTS = 5
SHARE_POLL_INTERVAL_S = 1.0


class EmbedBot:
    """Slack-side behaviour, independent of the bolt ``App`` it is wired into."""

    def __init__(
        self,
        settings: Settings,
        pipeline: MediaPipeline,
        cookies: CookieStore,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._pipeline = pipeline
        self._cookies = cookies
        self._sleep = sleep

    # ------------------------------------------------------------------
    # /embed
    # ------------------------------------------------------------------

    def handle_embed(self, ack: Any, command: dict[str, Any], client: Any, respond: Any) -> None:
        channel = command.get("channel_id", "")
        if self._settings.channel_id and channel != self._settings.channel_id:
            ack(text=CHANNEL_DISABLED_TEXT)
            return

        text = command.get("text", "") or ""
        ack(text=working_text(text.split()[0] if text.split() else ""))

        try:
            request = parse_embed_command(text)
        except InvalidRequestError as exc:
            _respond(respond, error_text(exc))
            return

        def deliver(path: Path) -> None:
            self._upload(client, channel, path, request.url)

        try:
            outcome = self._pipeline.process(request, deliver)
        except EmbedBotError as exc:
            logger.exception("embed failed for %s", request.url)
            _respond(respond, error_text(exc))
            return
        except Exception:  # noqa: BLE001
            logger.exception("unexpected error while embedding %s", request.url)
            _respond(respond, "could not embed video: unexpected error")
            return

        if outcome.error is not None:
            _respond(respond, error_text(outcome.error))

    def _upload(self, client: Any, channel: str, path: Path, url: str) -> None:
        """Upload *path* to *channel* and react to the resulting message."""
        try:
            response = client.files_upload_v2(
                channel=channel,
                file=str(path),
                filename=path.name,
                title=path.name,
                initial_comment=upload_comment(url),
            )
        except (SlackClientError, OSError) as exc:
            raise UploadFailedError(str(exc)) from exc

        ts = _shared_message_ts(response, channel)
        if ts is None:
            file_id = _uploaded_file_id(response)
            ts = self._wait_for_share(client, file_id, channel) if file_id else None
        if ts is None:
            logger.warning("upload of %s was never shared to %s, skipping reaction", path.name, channel)
            return
        try:
            client.reactions_add(channel=channel, timestamp=ts, name=SUCCESS_REACTION)
        except SlackClientError:
            logger.warning("could not add reaction to message %s", ts, exc_info=True)

    def _wait_for_share(self, client: Any, file_id: str, channel: str) -> str | None:
        """Poll ``files.info`` until Slack reports the share message in *channel*.

        Sharing completes asynchronously after ``files.completeUploadExternal``,
        so the first lookups may come back without ``shares``.
        """
        for attempt in range(SHARE_POLL_ATTEMPTS):
            if attempt:
                self._sleep(SHARE_POLL_INTERVAL_S)
            try:
                info = client.files_info(file=file_id)
            except SlackClientError:
                logger.warning("could not look up file %s", file_id, exc_info=True)
                return None
            ts = _shared_message_ts(info, channel)
            if ts is not None:
                return ts
        return None

    # ------------------------------------------------------------------
    # Direct-message cookie ingestion
    # ------------------------------------------------------------------

    def handle_direct_message(self, event: dict[str, Any], client: Any) -> None:
        if event.get("channel_type") != "im" or event.get("bot_id"):
            return

        for file_info in event.get("files") or []:
            filename = str(file_info.get("name", ""))
            if Path(filename).suffix.lower() != COOKIE_EXTENSION:
                continue

            url = file_info.get("url_private_download") or file_info.get("url_private")
            if not url:
                logger.warning("cookie file %s has no download URL", filename)
                continue

            try:
                content = self._download_private(url)
                self._cookies.save(filename, content)
            except (httpx.HTTPError, OSError, EmbedBotError):
                logger.exception("could not save cookie file %s", filename)
                continue

            try:
                client.chat_postMessage(channel=event.get("channel"), text=COOKIE_SAVED_TEXT)
            except SlackClientError:
                logger.exception("could not send message")

    def _download_private(self, url: str) -> bytes:
        headers = {"Authorization": f"Bearer {self._settings.bot_token}"}
        with httpx.Client(timeout=COOKIE_DOWNLOAD_TIMEOUT_S, follow_redirects=True) as http:
            resp = http.get(url, headers=headers)
            resp.raise_for_status()
            return resp.content


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

def build_pipeline(settings: Settings, cookies: CookieStore) -> MediaPipeline:
    return MediaPipeline(
        YtDlpFetcher(),
        FfmpegToolkit(),
        settings.work_dir,
        cookies=cookies,
        locate_by_scan=settings.locate_by_scan,
    )


def create_app(settings: Settings, *, bot: EmbedBot | None = None) -> App:
    """Create the bolt ``App`` with every handler registered."""
    if bot is None:
        cookies = CookieStore(settings.cookie_dir)
        bot = EmbedBot(settings, build_pipeline(settings, cookies), cookies)
    handlers = bot

    app = App(token=settings.bot_token)

    @app.command(COMMAND_NAME)
    def _embed(ack: Any, command: dict[str, Any], client: Any, respond: Any) -> None:
        handlers.handle_embed(ack, command, client, respond)

    @app.event("message")
    def _message(event: dict[str, Any], client: Any) -> None:
        handlers.handle_direct_message(event, client)

    return app


def run(settings: Settings) -> None:
    """Open the Socket Mode connection and block until interrupted."""
    app = create_app(settings)
    logger.info("starting Slack bot in Socket Mode")
    if settings.channel_id:
        logger.info("watching channel: %s", settings.channel_id)

    handler = SocketModeHandler(app, settings.app_token)
    try:
        handler.start()
    finally:
        handler.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _respond(respond: Any, text: str) -> None:
    try:
        respond(text=text, replace_original=True)
    except Exception:  # noqa: BLE001
        logger.exception("could not respond to interaction")


def _uploaded_file_id(response: Any) -> str | None:
    """File ID from a ``files_upload_v2`` response (``files`` list or ``file``)."""
    try:
        files = response.get("files") or []
        single = response.get("file") or {}
    except AttributeError:
        return None
    for entry in [*files, single]:
        if isinstance(entry, dict) and entry.get("id"):
            return str(entry["id"])
    return None


def _shared_message_ts(response: Any, channel: str) -> str | None:
    """Find the message timestamp of an uploaded file's share in *channel*."""
    try:
        file_data = response.get("file") or {}
    except AttributeError:
        return None
    shares = file_data.get("shares") or {}
    for visibility in ("public", "private"):
        entries = (shares.get(visibility) or {}).get(channel) or []
        if entries:
            ts = entries[0].get("ts")
            return str(ts) if ts else None
    return None
