"""Shared pytest fixtures and fakes for the embed-bot test suite.

Guidelines
----------
* No internet access in any test.
* yt-dlp, ffmpeg and Slack are replaced at the infra boundary.
* Pipeline tests use the real filesystem under ``tmp_path``; large
  media files are sparse (``truncate``), so "30 MB" costs nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from embed_bot.exceptions import (
    CompressFailedError,
    DownloadFailedError,
    ProbeFailedError,
    TranscodeFailedError,
    TrimFailedError,
)

MB = 1000 * 1000


def write_sized(path: Path, size: int) -> Path:
    """Create *path* with an apparent size of *size* bytes."""
    with path.open("wb") as handle:
        handle.truncate(size)
    return path


@dataclass
class FakeFetcher:
    """Stands in for yt-dlp: writes ``<name>.<ext>`` into the directory."""

    ext: str = "webm"
    size: int = 10 * MB
    report_path: bool = True
    error: str | None = None
    calls: list[tuple[str, str, Path | None]] = field(default_factory=list)

    def fetch(
        self,
        url: str,
        name: str,
        directory: Path,
        *,
        cookie_file: Path | None = None,
    ) -> Path | None:
        self.calls.append((url, name, cookie_file))
        if self.error is not None:
            raise DownloadFailedError(self.error)
        written = write_sized(directory / f"{name}.{self.ext}", self.size)
        return written if self.report_path else None


@dataclass
class FakeToolkit:
    """Stands in for ffmpeg/ffprobe, recording every call by name."""

    codec: str = "h264"
    codec_error: bool = False
    duration: int = 61
    duration_error: bool = False
    transcoded_size: int | None = None
    compressed_size: int = 20 * MB
    trimmed_size: int = 5 * MB
    fail: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)
    compress_durations: list[int] = field(default_factory=list)
    trims: list[tuple[str, str]] = field(default_factory=list)

    def probe_codec(self, source: Path) -> str:
        self.calls.append("probe_codec")
        if self.codec_error:
            raise ProbeFailedError("ffprobe exploded")
        return self.codec

    def probe_duration_seconds(self, source: Path) -> int:
        self.calls.append("probe_duration")
        if self.duration_error:
            raise ProbeFailedError("could not parse duration: 'N/A'")
        return self.duration

    def transcode_to_h264(self, source: Path, dest: Path) -> Path:
        self.calls.append("transcode")
        if "transcode" in self.fail:
            write_sized(dest, 1)
            raise TranscodeFailedError("Unknown encoder 'libx264'")
        size = self.transcoded_size if self.transcoded_size is not None else source.stat().st_size
        return write_sized(dest, size)

    def trim(self, source: Path, dest: Path, start: str, end: str) -> Path:
        self.calls.append("trim")
        self.trims.append((start, end))
        if "trim" in self.fail:
            raise TrimFailedError("Invalid duration specification for ss")
        return write_sized(dest, self.trimmed_size)

    def compress_to_budget(self, source: Path, dest: Path, duration_seconds: int) -> Path:
        self.calls.append("compress")
        self.compress_durations.append(duration_seconds)
        if "compress" in self.fail:
            raise CompressFailedError("Conversion failed!")
        return write_sized(dest, self.compressed_size)


@dataclass
class FakeCookies:
    path: Path | None = None
    hostnames: list[str] = field(default_factory=list)

    def resolve(self, hostname: str) -> Path | None:
        self.hostnames.append(hostname)
        return self.path


@pytest.fixture()
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def toolkit() -> FakeToolkit:
    return FakeToolkit()


@pytest.fixture()
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path
