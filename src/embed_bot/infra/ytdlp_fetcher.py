"""yt-dlp backed implementation of :class:`~embed_bot.core.protocols.MediaFetcher`.

This module is the **only** place in the codebase that imports ``yt_dlp``.
All yt-dlp exceptions are caught here and re-raised as
:class:`~embed_bot.exceptions.DownloadFailedError` — nothing raw escapes
the infrastructure boundary.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from embed_bot.exceptions import DownloadFailedError, EnvironmentError


class YtDlpFetcher:
    """Concrete :class:`MediaFetcher` backed by the yt-dlp Python API.

    This class satisfies the :class:`~embed_bot.core.protocols.MediaFetcher`
    protocol structurally — no explicit inheritance required.
    """

    @staticmethod
    def _build_opts(
        name: str,
        directory: Path,
        *,
        cookie_file: Path | None = None,
    ) -> dict[str, Any]:
        """Return yt-dlp options writing ``<directory>/<name>.%(ext)s``.

        The extension is left to yt-dlp; the caller learns it from the
        returned path.
        """
        opts: dict[str, Any] = {
            "outtmpl": f"{name}.%(ext)s",
            "paths": {"home": str(directory)},
            "quiet": True,
            "no_warnings": True,
            "no_color": True,
            "noplaylist": True,
        }
        if cookie_file is not None:
            opts["cookiefile"] = str(cookie_file)
        return opts

    # ------------------------------------------------------------------
    # Protocol method
    # ------------------------------------------------------------------

    def fetch(
        self,
        url: str,
        name: str,
        directory: Path,
        *,
        cookie_file: Path | None = None,
    ) -> Path | None:
        """Download *url* into *directory*.

        Returns
        -------
        Path | None
            The final file yt-dlp reports, or ``None`` when the info dict
            does not carry one.

        Raises
        ------
        DownloadFailedError
            For any yt-dlp error during the download.
        """
        opts = self._build_opts(name, directory, cookie_file=cookie_file)

        try:
            import yt_dlp
            import yt_dlp.utils
        except ModuleNotFoundError as exc:
            raise EnvironmentError(
                "yt-dlp is not installed. Install with: pip install yt-dlp",
            ) from exc

        try:
            with yt_dlp.YoutubeDL(opts) as ydl:
                info: Any = ydl.extract_info(url, download=True)
        except yt_dlp.utils.DownloadError as exc:
            raise DownloadFailedError(
                str(exc),
                hint="Check the URL, or share a cookie file for login-gated sites.",
            ) from exc
        except Exception as exc:
            raise DownloadFailedError(
                f"Unexpected yt-dlp download error: {exc}",
            ) from exc

        if not isinstance(info, dict):
            raise DownloadFailedError("yt-dlp returned no information for the given URL.")

        return self._written_path(info)

    @staticmethod
    def _written_path(info: dict[str, Any]) -> Path | None:
        """Pull the final on-disk path out of a yt-dlp info dict."""
        downloads = info.get("requested_downloads")
        if isinstance(downloads, list) and downloads:
            last = downloads[-1]
            if isinstance(last, dict):
                filepath = last.get("filepath") or last.get("_filename")
                if filepath:
                    return Path(filepath)
        filepath = info.get("filepath") or info.get("_filename")
        return Path(filepath) if filepath else None
