"""Per-domain authentication cookie files.

The store is a flat directory of Netscape-format cookie files, one per
site, named after a hostname fragment (``youtube.com.txt``).  A request
uses the file whose name contains its ``www.``-stripped hostname.

Files arrive through direct messages to the bot and are saved verbatim;
the pipeline only ever reads.
"""

from __future__ import annotations

import logging
from pathlib import Path

from embed_bot.exceptions import InvalidRequestError

logger = logging.getLogger(__name__)

COOKIE_EXTENSION = ".txt"


class CookieStore:
    """Satisfies :class:`~embed_bot.core.protocols.CookieResolver`."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def ensure_directory(self) -> None:
        """Create the cookie directory when it does not exist yet."""
        if not self._directory.is_dir():
            logger.info("creating cookie directory %s", self._directory)
            self._directory.mkdir(parents=True, exist_ok=True)

    def resolve(self, hostname: str) -> Path | None:
        """Return the cookie file whose name contains *hostname*.

        Files are scanned in name order and the last match wins.
        Returns ``None`` when nothing matches or the directory is missing.
        """
        domain = hostname.removeprefix("www.")
        if not domain or not self._directory.is_dir():
            return None

        match: Path | None = None
        for entry in sorted(self._directory.iterdir()):
            if entry.is_file() and domain in entry.name:
                match = entry
        return match

    def save(self, filename: str, content: bytes) -> Path:
        """Store *content* under *filename*, replacing any previous file.

        Only bare ``.txt`` filenames are accepted; anything with a
        directory component is rejected.
        """
        name = Path(filename).name
        if name != filename or name in ("", ".", ".."):
            raise InvalidRequestError(f"invalid cookie filename: {filename!r}")
        if Path(name).suffix.lower() != COOKIE_EXTENSION:
            raise InvalidRequestError(
                f"cookie files must be {COOKIE_EXTENSION} files: {filename!r}",
            )

        self.ensure_directory()
        target = self._directory / name
        target.write_bytes(content)
        logger.info("saved cookie file %s", target)
        return target
