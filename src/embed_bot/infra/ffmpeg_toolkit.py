"""ffmpeg/ffprobe backed implementation of :class:`~embed_bot.core.protocols.MediaToolkit`.

Each method runs exactly one external process to completion.  There is
no timeout: a hung encode blocks its own pipeline and nothing else.

Argument templates
------------------
* codec probe:     ``ffprobe -v error -select_streams v:0 -show_entries stream=codec_name``
* duration probe:  ``ffprobe -v error -show_entries format=duration``
* transcode:       ``ffmpeg -i SRC -c:v libx264 -c:a aac -b:a 160k DEST``
* trim:            ``ffmpeg -ss START -to END -i SRC DEST``
* compress:        ``ffmpeg -i SRC -b:v V -maxrate:v V -bufsize:v B -b:a A DEST``

Non-zero exits and missing binaries are re-raised as the typed error of
the operation, carrying the tool's own stderr text.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from embed_bot.core.bitrate import TRANSCODE_AUDIO_BITRATE, compression_budget, parse_duration_ceiling
from embed_bot.exceptions import (
    CompressFailedError,
    EmbedBotError,
    ProbeFailedError,
    TranscodeFailedError,
    TrimFailedError,
)

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]

_PLAIN_VALUE = ("-of", "default=noprint_wrappers=1:nokey=1")


def run_command(argv: Sequence[str]) -> subprocess.CompletedProcess[str]:
    """Run *argv* to completion, capturing text output without raising."""
    logger.debug("running %s", " ".join(argv))
    return subprocess.run(
        list(argv),
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        check=False,
    )


class FfmpegToolkit:
    """Concrete :class:`MediaToolkit` driving the ffmpeg and ffprobe binaries.

    Parameters
    ----------
    runner:
        Callable executing an argv list; injected so tests can assert on
        the exact command lines without spawning processes.
    ffmpeg, ffprobe:
        Executable names or absolute paths.
    """

    def __init__(
        self,
        runner: CommandRunner = run_command,
        *,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
    ) -> None:
        self._runner = runner
        self._ffmpeg = ffmpeg
        self._ffprobe = ffprobe

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------

    def probe_codec(self, source: Path) -> str:
        out = self._execute(
            [
                self._ffprobe, "-v", "error",
                "-select_streams", "v:0",
                "-show_entries", "stream=codec_name",
                *_PLAIN_VALUE,
                str(source),
            ],
            ProbeFailedError,
        )
        codec = out.strip()
        if not codec:
            raise ProbeFailedError(f"no video stream found in {source.name}")
        return codec.splitlines()[0]

    def probe_duration_seconds(self, source: Path) -> int:
        out = self._execute(
            [
                self._ffprobe, "-v", "error",
                "-show_entries", "format=duration",
                *_PLAIN_VALUE,
                str(source),
            ],
            ProbeFailedError,
        )
        return parse_duration_ceiling(out)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def transcode_to_h264(self, source: Path, dest: Path) -> Path:
        self._execute(
            [
                self._ffmpeg, "-i", str(source),
                "-c:v", "libx264",
                "-c:a", "aac",
                "-b:a", TRANSCODE_AUDIO_BITRATE,
                str(dest),
            ],
            TranscodeFailedError,
        )
        return dest

    def trim(self, source: Path, dest: Path, start: str, end: str) -> Path:
        self._execute(
            [
                self._ffmpeg,
                "-ss", start,
                "-to", end,
                "-i", str(source),
                str(dest),
            ],
            TrimFailedError,
        )
        return dest

    def compress_to_budget(self, source: Path, dest: Path, duration_seconds: int) -> Path:
        budget = compression_budget(duration_seconds)
        if budget.video_bitrate <= 0:
            raise CompressFailedError(
                f"video is too long to fit under the size limit ({duration_seconds}s)",
                hint="Trim the video with start and end timestamps.",
            )
        self._execute(
            [
                self._ffmpeg, "-i", str(source),
                "-b:v", str(budget.video_bitrate),
                "-maxrate:v", str(budget.video_bitrate),
                "-bufsize:v", str(budget.buffer_size),
                "-b:a", str(budget.audio_bitrate),
                str(dest),
            ],
            CompressFailedError,
        )
        return dest

    # ------------------------------------------------------------------
    # Process boundary
    # ------------------------------------------------------------------

    def _execute(self, argv: list[str], error_cls: type[EmbedBotError]) -> str:
        """Run *argv* and return stdout, raising *error_cls* on failure."""
        try:
            result = self._runner(argv)
        except OSError as exc:
            raise error_cls(f"could not run {argv[0]}: {exc}") from exc

        if result.returncode != 0:
            raise error_cls(_failure_text(result))
        return result.stdout or ""


def _failure_text(result: subprocess.CompletedProcess[str]) -> str:
    """Last non-empty stderr line, or the exit status when stderr is empty."""
    lines = [line for line in (result.stderr or "").splitlines() if line.strip()]
    if lines:
        return lines[-1].strip()
    return f"exit status {result.returncode}"
