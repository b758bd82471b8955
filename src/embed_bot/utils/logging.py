"""Process-wide logging setup.

Library modules only call ``logging.getLogger(__name__)``; the entry
points call :func:`configure_logging` once.  Rich renders the records
when it is installed, otherwise a plain stderr handler is used.
"""

from __future__ import annotations

import logging

PLAIN_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_QUIET_LOGGERS: tuple[str, ...] = ("slack_bolt", "slack_sdk", "urllib3", "httpx", "httpcore")


def _build_handler() -> logging.Handler:
    try:
        from rich.console import Console
        from rich.logging import RichHandler
    except ModuleNotFoundError:
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
        return handler

    return RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single root handler at *level*, replacing earlier ones."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_build_handler())
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
