"""Infrastructure: external tool detection and platform guidance.

This module is responsible for locating ``ffmpeg`` and ``ffprobe`` on
the system PATH, checking that the yt-dlp package is importable, and
providing platform-specific installation guidance when something is
missing.

Rules
-----
* Detection via :func:`shutil.which` only — no subprocess.
* No permanent PATH modification.
* No automatic installation.
* No ``print()`` — callers handle user-facing output.
"""

from __future__ import annotations

import platform
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from embed_bot.exceptions import EnvironmentError, ToolNotFoundError

REQUIRED_TOOLS: tuple[str, ...] = ("ffmpeg", "ffprobe")


# ---------------------------------------------------------------------------
# Detection result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ToolStatus:
    """Result of a PATH probe for one executable.

    Attributes
    ----------
    name : str
        Executable name that was searched for.
    found : bool
        Whether the executable was located on PATH.
    path : Path | None
        Absolute path to the binary, or ``None``.
    version_hint : str
        Human-readable status string (e.g. ``"found at …"`` or ``"not found"``).
    install_commands : tuple[str, ...]
        Suggested shell commands for installing the tool on the current
        platform.  Empty when the tool is already present.
    """

    name: str
    found: bool
    path: Path | None
    version_hint: str
    install_commands: tuple[str, ...]


# ---------------------------------------------------------------------------
# Detection logic
# ---------------------------------------------------------------------------

def detect_tool(name: str) -> ToolStatus:
    """Probe the system for the executable *name*.

    Returns a :class:`ToolStatus` regardless of whether it is present —
    the caller decides whether to abort or merely warn.
    """
    result = shutil.which(name)

    if result is not None:
        resolved = Path(result).resolve()
        return ToolStatus(
            name=name,
            found=True,
            path=resolved,
            version_hint=f"found at {resolved}",
            install_commands=(),
        )

    return ToolStatus(
        name=name,
        found=False,
        path=None,
        version_hint="not found",
        install_commands=_platform_install_commands(),
    )


def require_tools(names: Sequence[str] = REQUIRED_TOOLS) -> dict[str, Path]:
    """Locate every tool in *names* or raise :class:`ToolNotFoundError`.

    The bot refuses to start without them, so this runs before any Slack
    session is opened.
    """
    located: dict[str, Path] = {}
    missing: list[ToolStatus] = []
    for name in names:
        status = detect_tool(name)
        if status.found and status.path is not None:
            located[name] = status.path
        else:
            missing.append(status)

    if missing:
        listed = ", ".join(status.name for status in missing)
        hint_lines: list[str] = []
        if missing[0].install_commands:
            hint_lines.append("Install ffmpeg (it ships ffprobe) using one of:")
            hint_lines.extend(f"  {cmd}" for cmd in missing[0].install_commands)
        raise ToolNotFoundError(
            f"{listed} is not installed or not on PATH.",
            hint="\n".join(hint_lines) if hint_lines else None,
        )
    return located


def require_ytdlp() -> str:
    """Return the installed yt-dlp version or raise :class:`EnvironmentError`."""
    try:
        import yt_dlp  # noqa: F401
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "yt-dlp is not installed. Install with: pip install yt-dlp",
        ) from exc

    try:
        from yt_dlp.version import __version__ as ydl_ver
    except ImportError:
        return "unknown"
    return str(ydl_ver)


# ---------------------------------------------------------------------------
# Platform-specific install guidance
# ---------------------------------------------------------------------------

def _platform_install_commands() -> tuple[str, ...]:
    """Return ffmpeg install commands appropriate for the current OS."""
    system = platform.system().lower()
    if system == "windows":
        return (
            "winget install Gyan.FFmpeg",
            "choco install ffmpeg",
        )
    if system == "linux":
        return (
            "sudo apt install ffmpeg",
            "sudo dnf install ffmpeg",
            "sudo pacman -S ffmpeg",
        )
    if system == "darwin":
        return ("brew install ffmpeg",)
    # Fallback: generic guidance.
    return ("Please install ffmpeg from https://ffmpeg.org/download.html",)
