"""Allow ``python -m embed_bot`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m embed_bot`` behaves identically to the ``embed-bot``
console script.
"""

from __future__ import annotations

from embed_bot.cli.app import cli

if __name__ == "__main__":
    cli()
