"""``embed-bot doctor`` — environment diagnostics command.

Gathers system information and renders a Rich table summarising
whether the runtime environment satisfies embed-bot's requirements:
the three media tools, the Python version and the Slack tokens.

This module lives in the CLI layer — it may import from ``infra``
and ``core``, and it renders via Rich.  No business logic resides
here; it purely collects and displays diagnostic data.
"""

from __future__ import annotations

import platform
import sys
from pathlib import Path

from embed_bot.cli import exit_codes
from embed_bot.cli.console import console
from embed_bot.exceptions import ConfigInvalidError, EnvironmentError
from embed_bot.infra.settings import default_config_file, load_settings
from embed_bot.infra.tool_detector import REQUIRED_TOOLS, ToolStatus, detect_tool, require_ytdlp
from embed_bot.version import __version__

OK = "[green]OK[/green]"
WARN = "[yellow]WARN[/yellow]"
FAIL = "[red]FAIL[/red]"


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _python_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    status = OK if ok else "[red]FAIL (>=3.10 required)[/red]"
    return "Python", version, status


def _ytdlp_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the yt-dlp row."""
    try:
        version = require_ytdlp()
    except EnvironmentError:
        return "yt-dlp", "NOT INSTALLED", FAIL
    return "yt-dlp", version, OK


def _tool_check(status: ToolStatus) -> tuple[str, str, str]:
    """Return (label, value, status) for an ffmpeg/ffprobe row."""
    if status.found:
        path_str = str(status.path) if status.path else "found"
        return status.name, path_str, OK
    return status.name, "not found", FAIL


def _config_check(config_file: Path | None) -> tuple[str, str, str]:
    """Return (label, value, status) for the Slack configuration row."""
    try:
        load_settings(config_file)
    except ConfigInvalidError as exc:
        return "config", str(exc), WARN
    return "config", str(config_file or default_config_file()), OK


def _os_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the OS row."""
    system_raw = platform.system()
    system_display = {
        "Windows": "Windows",
        "Linux": "Linux",
        "Darwin": "macOS",
    }.get(system_raw, system_raw)
    release = platform.release()
    machine = platform.machine()
    value = f"{system_display} {release} ({machine})"
    return "OS", value, OK


def _embed_bot_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the embed-bot version row."""
    return "embed-bot", __version__, OK


def _status_plain(status: str) -> str:
    """Convert rich-markup status to plain text."""
    for word in ("FAIL", "WARN", "OK"):
        if word in status:
            return word
    return status


def _print_plain_doctor_table(checks: list[tuple[str, str, str]]) -> None:
    """Render doctor output without Rich."""
    print("\nembed-bot doctor", file=sys.stderr)
    print("=" * 64, file=sys.stderr)
    print(f"{'Component':<12} {'Value':<40} {'Status':<8}", file=sys.stderr)
    print("-" * 64, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<12} {value:<40} {_status_plain(status):<8}", file=sys.stderr)
    print(file=sys.stderr)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor(config_file: Path | None = None) -> int:
    """Execute all diagnostic checks and render a summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when no check fails (warnings are
        allowed), :data:`exit_codes.GENERAL_ERROR` otherwise.
    """
    tool_statuses = [detect_tool(name) for name in REQUIRED_TOOLS]
    checks = [
        _embed_bot_version_check(),
        _python_version_check(),
        _ytdlp_check(),
        *(_tool_check(status) for status in tool_statuses),
        _config_check(config_file),
        _os_check(),
    ]

    has_failure = any("FAIL" in status for _, _, status in checks)

    rich_available = True
    try:
        from rich.table import Table
    except ModuleNotFoundError:
        rich_available = False

    if rich_available:
        table = Table(
            title="embed-bot doctor",
            show_header=True,
            header_style="bold cyan",
            border_style="dim",
        )
        table.add_column("Component", style="bold", min_width=12)
        table.add_column("Value", min_width=20)
        table.add_column("Status", justify="center", min_width=8)

        for label, value, status in checks:
            table.add_row(label, value, status)

        console.print()
        console.print(table)
        console.print()
    else:
        _print_plain_doctor_table(checks)

    # Show ffmpeg install guidance when a tool is missing.
    missing = next((status for status in tool_statuses if not status.found), None)
    if missing is not None and missing.install_commands:
        console.print(f"{missing.name} is not installed.")
        console.print("Install ffmpeg (it ships ffprobe) using one of the following commands:\n")
        for cmd in missing.install_commands:
            console.print(f"  {cmd}")
        console.print()

    if has_failure:
        console.print("Some checks failed.")
        return exit_codes.GENERAL_ERROR

    console.print("All checks passed.")
    return exit_codes.SUCCESS
