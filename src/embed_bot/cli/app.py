"""CLI application entry point and command routing for embed-bot.

This module is the **process error boundary**.  It catches
:class:`~embed_bot.exceptions.EmbedBotError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering user-friendly messages via
Rich and returning well-defined exit codes.  Per-request failures inside
the running bot never reach it; the Slack handlers report those.

Architecture notes
------------------
* No business logic lives here — all work is delegated to the core,
  infrastructure and Slack layers.
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path

from embed_bot.cli import exit_codes
from embed_bot.cli.console import console
from embed_bot.exceptions import (
    ConfigInvalidError,
    EmbedBotError,
    EnvironmentError,
)
from embed_bot.version import __version__


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    * ``embed-bot run``        — start the Slack bot
    * ``embed-bot process URL`` — run the pipeline locally
    * ``embed-bot configure``  — store Slack tokens
    * ``embed-bot doctor``     — environment diagnostics
    * ``embed-bot --version``
    """
    parser = argparse.ArgumentParser(
        prog="embed-bot",
        description="Slack bot that turns video links into uploadable clips.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.env (default: the user config directory).",
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Connect to Slack and serve /embed.")
    sub.add_parser("doctor", help="Check tools and configuration.")
    sub.add_parser("configure", help="Prompt for Slack tokens and save them.")

    process = sub.add_parser("process", help="Run the media pipeline on one URL locally.")
    process.add_argument("url", help="Video page URL.")
    process.add_argument("--start", default=None, help="Trim start, e.g. 01:30.")
    process.add_argument("--end", default=None, help="Trim end, e.g. 02:00.")
    process.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("."),
        help="Directory receiving the finished file (default: current directory).",
    )
    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _check_tools() -> None:
    """Refuse to start without yt-dlp, ffmpeg and ffprobe."""
    from embed_bot.infra.tool_detector import require_tools, require_ytdlp

    require_ytdlp()
    require_tools()


def _handle_run(config_file: Path | None) -> int:
    """Start the Slack bot; blocks until interrupted."""
    from embed_bot.infra.cookie_store import CookieStore
    from embed_bot.infra.settings import load_settings
    from embed_bot.slack.bot import run
    from embed_bot.utils.logging import configure_logging

    _check_tools()
    settings = load_settings(config_file)
    configure_logging(settings.log_level)

    CookieStore(settings.cookie_dir).ensure_directory()
    settings.work_dir.mkdir(parents=True, exist_ok=True)

    run(settings)
    return exit_codes.SUCCESS


def _handle_process(
    url: str,
    start: str | None,
    end: str | None,
    output: Path,
    config_file: Path | None,
) -> int:
    """Run one request through the pipeline and copy the result to *output*.

    Flow:
    1. Validate the request and check the external tools.
    2. Resolve the cookie directory from configuration.
    3. Run the pipeline with a workspace under *output*.
    4. Deliver by copying the final file next to the workspace.
    """
    from embed_bot.core.models import PipelineRequest
    from embed_bot.core.pipeline import MediaPipeline
    from embed_bot.infra.cookie_store import CookieStore
    from embed_bot.infra.ffmpeg_toolkit import FfmpegToolkit
    from embed_bot.infra.settings import COOKIE_DIR_KEY, LOCATE_BY_SCAN_KEY, read_values
    from embed_bot.infra.ytdlp_fetcher import YtDlpFetcher
    from embed_bot.utils.logging import configure_logging

    request = PipelineRequest(url=url, start=start, end=end)
    _check_tools()
    configure_logging("INFO")

    values = read_values(config_file)
    cookies = CookieStore(Path(values.get(COOKIE_DIR_KEY) or "cookies"))
    output.mkdir(parents=True, exist_ok=True)

    pipeline = MediaPipeline(
        YtDlpFetcher(),
        FfmpegToolkit(),
        output,
        cookies=cookies,
        locate_by_scan=values.get(LOCATE_BY_SCAN_KEY, "").lower() in ("1", "true", "yes", "on"),
    )

    def deliver(path: Path) -> None:
        shutil.copy2(path, output / path.name)

    console.print(f"\n[bold]Processing…[/bold]  {request.url}\n")
    outcome = pipeline.process(request, deliver)
    if outcome.error is not None:
        raise outcome.error

    console.print(
        f"\n[bold green]Done.[/bold green]  {output / str(outcome.delivered_name)}"
    )
    return exit_codes.SUCCESS


def _handle_doctor(config_file: Path | None) -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from embed_bot.cli.doctor import run_doctor

    return run_doctor(config_file)


def _handle_configure(config_file: Path | None) -> int:
    """Dispatch the interactive ``configure`` command."""
    from embed_bot.cli.configure import run_configure

    return run_configure(config_file)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the embed-bot CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return exit_codes.SUCCESS

    if args.command == "doctor":
        return _handle_doctor(args.config)
    if args.command == "configure":
        return _handle_configure(args.config)
    if args.command == "process":
        return _handle_process(args.url, args.start, args.end, args.output, args.config)
    return _handle_run(args.config)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except (ConfigInvalidError, EnvironmentError) as exc:
        console.error(exc)
        sys.exit(exit_codes.STARTUP_ERROR)
    except EmbedBotError as exc:
        console.error(exc)
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
