"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols — never on concrete
implementations — so the pipeline can be driven by fakes in tests.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol


class MediaFetcher(Protocol):
    """Contract for the download backend (yt-dlp in production)."""

    def fetch(
        self,
        url: str,
        name: str,
        directory: Path,
        *,
        cookie_file: Path | None = None,
    ) -> Path | None:
        """Download *url* to ``<directory>/<name>.<ext>``.

        Returns the exact path written when the backend reports it, or
        ``None`` when the caller must locate the file itself.

        Raises
        ------
        DownloadFailedError
            When the download fails for any reason.
        """
        ...  # pragma: no cover


class MediaToolkit(Protocol):
    """Contract for the probe/encode backend (ffprobe + ffmpeg).

    Every transforming method writes exactly *dest* and returns it.
    """

    def probe_codec(self, source: Path) -> str:
        """Return the codec name of the first video stream.

        Raises
        ------
        ProbeFailedError
        """
        ...  # pragma: no cover

    def probe_duration_seconds(self, source: Path) -> int:
        """Return the container duration, truncated then incremented by one.

        Raises
        ------
        ProbeFailedError
        """
        ...  # pragma: no cover

    def transcode_to_h264(self, source: Path, dest: Path) -> Path:
        """Raises :class:`~embed_bot.exceptions.TranscodeFailedError`."""
        ...  # pragma: no cover

    def trim(self, source: Path, dest: Path, start: str, end: str) -> Path:
        """Raises :class:`~embed_bot.exceptions.TrimFailedError`."""
        ...  # pragma: no cover

    def compress_to_budget(self, source: Path, dest: Path, duration_seconds: int) -> Path:
        """Raises :class:`~embed_bot.exceptions.CompressFailedError`."""
        ...  # pragma: no cover


class CookieResolver(Protocol):
    """Maps a request hostname to a stored authentication cookie file."""

    def resolve(self, hostname: str) -> Path | None:
        ...  # pragma: no cover


Transform = Callable[[Path, Path], Path]
"""``(source, dest) -> written_path`` — one stage of the pipeline."""

Deliver = Callable[[Path], None]
"""Hands the finished file to the chat surface; raises ``UploadFailedError``."""
