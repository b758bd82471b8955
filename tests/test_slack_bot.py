"""Tests for the Slack handlers (slack/bot.py).

The bolt ``App``, the Slack Web API client and the HTTP download of
private files are all mocked.  ``/embed`` tests drive a real
:class:`MediaPipeline` with the fake fetcher and toolkit, so the upload
callback sees a real file.

Coverage:
* ``/embed`` acks first, uploads, waits for the share, reacts, and reports
  errors exactly once.
* Channel filter.
* Direct-message cookie ingestion.
* App wiring and Socket Mode start/stop.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
from slack_sdk.errors import SlackApiError, SlackRequestError

from embed_bot.core.pipeline import MediaPipeline
from embed_bot.infra.cookie_store import CookieStore
from embed_bot.infra.settings import Settings
from embed_bot.slack.bot import SHARE_POLL_ATTEMPTS, SHARE_POLL_INTERVAL_S, EmbedBot, create_app, run
from embed_bot.slack.messages import CHANNEL_DISABLED_TEXT, COOKIE_SAVED_TEXT, USAGE
from tests.conftest import FakeFetcher, FakeToolkit

URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def _settings(tmp_path: Path, channel_id: str | None = None) -> Settings:
    return Settings(
        bot_token="xoxb-1",
        app_token="xapp-1",
        cookie_dir=tmp_path / "cookies",
        work_dir=tmp_path / "work",
        channel_id=channel_id,
    )


def _bot(
    tmp_path: Path,
    *,
    fetcher: FakeFetcher | None = None,
    channel_id: str | None = None,
    pipeline: Any = None,
    sleeps: list[float] | None = None,
) -> EmbedBot:
    settings = _settings(tmp_path, channel_id)
    settings.work_dir.mkdir(parents=True, exist_ok=True)
    cookies = CookieStore(settings.cookie_dir)
    if pipeline is None:
        pipeline = MediaPipeline(fetcher or FakeFetcher(), FakeToolkit(), settings.work_dir, cookies=cookies)
    naps = sleeps if sleeps is not None else []
    return EmbedBot(settings, pipeline, cookies, sleep=naps.append)


def _command(text: str, channel: str = "C1") -> dict[str, Any]:
    return {"text": text, "channel_id": channel, "user_id": "U1", "command": "/embed"}


def _client(ts: str | None = "1700000000.000100") -> MagicMock:
    client = MagicMock()
    shares = {"public": {"C1": [{"ts": ts}]}} if ts else {}
    client.files_upload_v2.return_value = {"ok": True, "file": {"id": "F1", "shares": shares}}
    client.files_info.return_value = {"ok": True, "file": {"id": "F1"}}
    return client


# ---------------------------------------------------------------------------
# /embed
# ---------------------------------------------------------------------------

class TestHandleEmbed:
    def test_success_uploads_and_reacts(self, tmp_path: Path) -> None:
        ack, respond, client = MagicMock(), MagicMock(), _client()
        seen: list[bool] = []
        client.files_upload_v2.side_effect = lambda **kw: (
            seen.append(Path(kw["file"]).is_file()) or _client().files_upload_v2.return_value
        )

        _bot(tmp_path).handle_embed(ack, _command(URL), client, respond)

        ack.assert_called_once()
        assert URL in ack.call_args.kwargs["text"]
        kwargs = client.files_upload_v2.call_args.kwargs
        assert kwargs["channel"] == "C1"
        assert kwargs["filename"].endswith(".webm")
        assert kwargs["initial_comment"] == f"<{URL}>"
        assert seen == [True]
        client.reactions_add.assert_called_once_with(
            channel="C1", timestamp="1700000000.000100", name="thumbsup",
        )
        respond.assert_not_called()
        assert list((tmp_path / "work").iterdir()) == []

    def test_missing_share_timestamp_skips_reaction(self, tmp_path: Path) -> None:
        client = _client(ts=None)

        _bot(tmp_path).handle_embed(MagicMock(), _command(URL), client, MagicMock())

        client.files_upload_v2.assert_called_once()
        client.reactions_add.assert_not_called()

    def test_reacts_once_files_info_reports_the_share(self, tmp_path: Path) -> None:
        client, respond, sleeps = MagicMock(), MagicMock(), []
        client.files_upload_v2.return_value = {
            "ok": True, "files": [{"id": "F1", "title": "clip.webm"}],
        }
        client.files_info.side_effect = [
            {"ok": True, "file": {"id": "F1", "shares": {}}},
            {"ok": True, "file": {"id": "F1", "shares": {"private": {"C1": [{"ts": "1700000001.000200"}]}}}},
        ]

        _bot(tmp_path, sleeps=sleeps).handle_embed(MagicMock(), _command(URL), client, respond)

        assert client.files_info.call_count == 2
        client.files_info.assert_called_with(file="F1")
        assert sleeps == [SHARE_POLL_INTERVAL_S]
        client.reactions_add.assert_called_once_with(
            channel="C1", timestamp="1700000001.000200", name="thumbsup",
        )
        respond.assert_not_called()

    def test_share_that_never_appears_skips_reaction(self, tmp_path: Path) -> None:
        client, respond, sleeps = _client(ts=None), MagicMock(), []
        client.files_upload_v2.return_value = {"ok": True, "files": [{"id": "F1"}]}

        _bot(tmp_path, sleeps=sleeps).handle_embed(MagicMock(), _command(URL), client, respond)

        assert client.files_info.call_count == SHARE_POLL_ATTEMPTS
        assert len(sleeps) == SHARE_POLL_ATTEMPTS - 1
        client.reactions_add.assert_not_called()
        respond.assert_not_called()

    def test_files_info_failure_skips_reaction(self, tmp_path: Path) -> None:
        client, respond = MagicMock(), MagicMock()
        client.files_upload_v2.return_value = {"ok": True, "files": [{"id": "F1"}]}
        client.files_info.side_effect = SlackApiError("missing_scope", {"ok": False})

        _bot(tmp_path).handle_embed(MagicMock(), _command(URL), client, respond)

        client.files_info.assert_called_once_with(file="F1")
        client.reactions_add.assert_not_called()
        respond.assert_not_called()

    def test_reaction_failure_is_not_an_upload_failure(self, tmp_path: Path) -> None:
        client, respond = _client(), MagicMock()
        client.reactions_add.side_effect = SlackApiError("already_reacted", {"ok": False})

        _bot(tmp_path).handle_embed(MagicMock(), _command(URL), client, respond)

        respond.assert_not_called()

    def test_stage_failure_is_reported_once(self, tmp_path: Path) -> None:
        respond, client = MagicMock(), _client()
        bot = _bot(tmp_path, fetcher=FakeFetcher(error="ERROR: Private video"))

        bot.handle_embed(MagicMock(), _command(URL), client, respond)

        respond.assert_called_once_with(
            text="could not download video: ERROR: Private video", replace_original=True,
        )
        client.files_upload_v2.assert_not_called()

    def test_upload_failure_is_generic(self, tmp_path: Path) -> None:
        respond, client = MagicMock(), _client()
        client.files_upload_v2.side_effect = SlackApiError("not_in_channel", {"ok": False})

        _bot(tmp_path).handle_embed(MagicMock(), _command(URL), client, respond)

        respond.assert_called_once_with(text="Could not upload to Slack!", replace_original=True)
        assert list((tmp_path / "work").iterdir()) == []

    def test_upload_request_error_is_generic(self, tmp_path: Path) -> None:
        respond, client = MagicMock(), _client()
        client.files_upload_v2.side_effect = SlackRequestError("Failed to upload a file (status: 500)")

        _bot(tmp_path).handle_embed(MagicMock(), _command(URL), client, respond)

        respond.assert_called_once_with(text="Could not upload to Slack!", replace_original=True)
        assert list((tmp_path / "work").iterdir()) == []

    def test_bad_arguments(self, tmp_path: Path) -> None:
        ack, respond = MagicMock(), MagicMock()

        _bot(tmp_path).handle_embed(ack, _command(f"{URL} 01:30"), MagicMock(), respond)

        ack.assert_called_once()
        text = respond.call_args.kwargs["text"]
        assert USAGE in text

    def test_empty_text(self, tmp_path: Path) -> None:
        ack, respond = MagicMock(), MagicMock()

        _bot(tmp_path).handle_embed(ack, _command(""), MagicMock(), respond)

        ack.assert_called_once()
        respond.assert_called_once()

    def test_trim_arguments_reach_pipeline(self, tmp_path: Path) -> None:
        pipeline = MagicMock()
        pipeline.process.return_value = MagicMock(error=None)

        _bot(tmp_path, pipeline=pipeline).handle_embed(
            MagicMock(), _command(f"<{URL}> 00:05 00:10"), MagicMock(), MagicMock(),
        )

        request = pipeline.process.call_args.args[0]
        assert (request.url, request.start, request.end) == (URL, "00:05", "00:10")

    def test_unexpected_error_is_reported(self, tmp_path: Path) -> None:
        pipeline = MagicMock()
        pipeline.process.side_effect = RuntimeError("disk on fire")
        respond = MagicMock()

        _bot(tmp_path, pipeline=pipeline).handle_embed(MagicMock(), _command(URL), MagicMock(), respond)

        assert "unexpected error" in respond.call_args.kwargs["text"]

    def test_respond_failure_is_swallowed(self, tmp_path: Path) -> None:
        respond = MagicMock(side_effect=RuntimeError("expired response_url"))

        _bot(tmp_path).handle_embed(MagicMock(), _command("nope"), MagicMock(), respond)

        respond.assert_called_once()


class TestChannelFilter:
    def test_other_channel_is_refused(self, tmp_path: Path) -> None:
        ack, client = MagicMock(), _client()
        pipeline = MagicMock()

        _bot(tmp_path, channel_id="C1", pipeline=pipeline).handle_embed(
            ack, _command(URL, channel="C9"), client, MagicMock(),
        )

        ack.assert_called_once_with(text=CHANNEL_DISABLED_TEXT)
        pipeline.process.assert_not_called()

    def test_configured_channel_is_served(self, tmp_path: Path) -> None:
        client = _client()

        _bot(tmp_path, channel_id="C1").handle_embed(MagicMock(), _command(URL), client, MagicMock())

        client.files_upload_v2.assert_called_once()


# ---------------------------------------------------------------------------
# Direct messages
# ---------------------------------------------------------------------------

def _dm(files: list[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    event = {"channel": "D1", "channel_type": "im", "user": "U1", "files": files}
    event.update(extra)
    return event


COOKIE_FILE = {"name": "youtube.com.txt", "url_private_download": "https://files.slack.com/F1/youtube.com.txt"}


class TestHandleDirectMessage:
    def test_saves_cookie_file(self, tmp_path: Path) -> None:
        bot, client = _bot(tmp_path), MagicMock()

        with patch.object(EmbedBot, "_download_private", return_value=b"# Netscape\n") as download:
            bot.handle_direct_message(_dm([COOKIE_FILE]), client)

        download.assert_called_once_with(COOKIE_FILE["url_private_download"])
        assert (tmp_path / "cookies" / "youtube.com.txt").read_bytes() == b"# Netscape\n"
        client.chat_postMessage.assert_called_once_with(channel="D1", text=COOKIE_SAVED_TEXT)

    @pytest.mark.parametrize(
        "event",
        [
            _dm([COOKIE_FILE], channel_type="channel"),
            _dm([COOKIE_FILE], bot_id="B1"),
            _dm([{"name": "clip.mp4", "url_private_download": "https://files.slack.com/x"}]),
            _dm([]),
        ],
    )
    def test_ignored_messages(self, tmp_path: Path, event: dict[str, Any]) -> None:
        bot, client = _bot(tmp_path), MagicMock()

        with patch.object(EmbedBot, "_download_private") as download:
            bot.handle_direct_message(event, client)

        download.assert_not_called()
        client.chat_postMessage.assert_not_called()

    def test_download_failure_is_logged(self, tmp_path: Path) -> None:
        bot, client = _bot(tmp_path), MagicMock()

        with patch.object(EmbedBot, "_download_private", side_effect=httpx.ConnectError("refused")):
            bot.handle_direct_message(_dm([COOKIE_FILE]), client)

        client.chat_postMessage.assert_not_called()
        assert not (tmp_path / "cookies" / "youtube.com.txt").exists()

    def test_failed_file_does_not_stop_later_files(self, tmp_path: Path) -> None:
        bot, client = _bot(tmp_path), MagicMock()
        second = {"name": "vimeo.com.txt", "url_private_download": "https://files.slack.com/F2/vimeo.com.txt"}

        with patch.object(
            EmbedBot, "_download_private", side_effect=[httpx.ConnectError("refused"), b"# Netscape\n"],
        ) as download:
            bot.handle_direct_message(_dm([COOKIE_FILE, second]), client)

        assert download.call_count == 2
        assert not (tmp_path / "cookies" / "youtube.com.txt").exists()
        assert (tmp_path / "cookies" / "vimeo.com.txt").read_bytes() == b"# Netscape\n"
        client.chat_postMessage.assert_called_once_with(channel="D1", text=COOKIE_SAVED_TEXT)

    def test_download_private_sends_bearer_token(self, tmp_path: Path) -> None:
        bot = _bot(tmp_path)
        response = MagicMock(content=b"cookie-bytes")

        with patch("embed_bot.slack.bot.httpx.Client") as client_cls:
            http = client_cls.return_value.__enter__.return_value
            http.get.return_value = response
            content = bot._download_private("https://files.slack.com/x")

        assert content == b"cookie-bytes"
        http.get.assert_called_once_with(
            "https://files.slack.com/x", headers={"Authorization": "Bearer xoxb-1"},
        )
        response.raise_for_status.assert_called_once()


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------

class TestCreateApp:
    @patch("embed_bot.slack.bot.App")
    def test_registers_handlers(self, app_cls: MagicMock, tmp_path: Path) -> None:
        bot = _bot(tmp_path)

        app = create_app(_settings(tmp_path), bot=bot)

        app_cls.assert_called_once_with(token="xoxb-1")
        assert app is app_cls.return_value
        app.command.assert_called_once_with("/embed")
        app.event.assert_called_once_with("message")


class TestRun:
    @patch("embed_bot.slack.bot.SocketModeHandler")
    @patch("embed_bot.slack.bot.create_app")
    def test_starts_and_closes(
        self, create: MagicMock, handler_cls: MagicMock, tmp_path: Path,
    ) -> None:
        settings = _settings(tmp_path)

        run(settings)

        handler_cls.assert_called_once_with(create.return_value, "xapp-1")
        handler_cls.return_value.start.assert_called_once()
        handler_cls.return_value.close.assert_called_once()

    @patch("embed_bot.slack.bot.SocketModeHandler")
    @patch("embed_bot.slack.bot.create_app")
    def test_closes_on_interrupt(
        self, _create: MagicMock, handler_cls: MagicMock, tmp_path: Path,
    ) -> None:
        handler_cls.return_value.start.side_effect = KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            run(_settings(tmp_path))

        handler_cls.return_value.close.assert_called_once()
