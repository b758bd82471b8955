"""Artifact tracker — owns one video's on-disk files through the pipeline.

The tracker is the only component that creates names, deletes files or
changes :attr:`MediaArtifact.path`.  Its guarantees:

* At most one file carrying the current logical name exists at a time;
  every :meth:`ArtifactTracker.supersede` deletes the file it replaces.
* Stage suffixes compose only as ``-trim`` → ``-convert`` → ``-compress``,
  each at most once.
* Used as a context manager, the current file is released exactly once
  on every exit path.  Release failures are logged, never raised, so
  they cannot mask the error that aborted the pipeline.

Lookup policy
-------------
Adapters report the exact path they wrote and the tracker adopts it.
With ``locate_by_scan=True`` the tracker instead scans its directory for
the single file whose name starts with the logical name.  A scan that
finds more than one candidate raises :class:`AmbiguousArtifactError`
rather than guessing.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType

from embed_bot.core.models import MediaArtifact, Stage
from embed_bot.core.protocols import Transform
from embed_bot.exceptions import (
    AmbiguousArtifactError,
    ArtifactError,
    ArtifactNotFoundError,
    StageOrderError,
)

logger = logging.getLogger(__name__)

OUTPUT_EXTENSION = ".mp4"


class ArtifactTracker:
    """Tracks a :class:`MediaArtifact` inside a working *directory*.

    Usage::

        with ArtifactTracker(workdir, MediaArtifact(name, url)) as tracker:
            tracker.adopt(fetcher.fetch(url, name, workdir))
            tracker.supersede(Stage.CONVERT, toolkit.transcode_to_h264)
        # file is gone here, success or failure
    """

    def __init__(
        self,
        directory: Path,
        artifact: MediaArtifact,
        *,
        locate_by_scan: bool = False,
    ) -> None:
        self._directory = directory
        self._artifact = artifact
        self._locate_by_scan = locate_by_scan

    @property
    def artifact(self) -> MediaArtifact:
        return self._artifact

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def current(self) -> Path:
        """The materialised file; raises if nothing is materialised."""
        if self._artifact.path is None:
            raise ArtifactNotFoundError(
                f"no file materialised for {self._artifact.name}",
            )
        return self._artifact.path

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> ArtifactTracker:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._artifact.path is None:
            return
        try:
            self.release()
        except (ArtifactError, OSError):
            logger.exception("could not delete video: %s", self._artifact.name)

    # ------------------------------------------------------------------
    # Locating files
    # ------------------------------------------------------------------

    def materialize(self, name: str | None = None) -> Path:
        """Find the one file in the directory whose name starts with *name*.

        Defaults to the artifact's current logical name.

        Raises
        ------
        ArtifactNotFoundError
            If no file matches.
        AmbiguousArtifactError
            If several files match.
        """
        prefix = name if name is not None else self._artifact.name
        matches = sorted(
            entry
            for entry in self._directory.iterdir()
            if entry.is_file() and entry.name.startswith(prefix)
        )
        if not matches:
            raise ArtifactNotFoundError("could not find video file")
        if len(matches) > 1:
            names = ", ".join(entry.name for entry in matches)
            raise AmbiguousArtifactError(f"several files match {prefix}: {names}")

        self._artifact.path = matches[0]
        return matches[0]

    def adopt(self, written: Path | None) -> Path:
        """Record the file an adapter just wrote as the current artifact.

        Falls back to :meth:`materialize` when the adapter could not say
        where it wrote, or when scan-based lookup is enabled.
        """
        if written is None or self._locate_by_scan:
            return self.materialize()
        if not written.is_file():
            raise ArtifactNotFoundError(f"could not find video file: {written.name}")
        self._artifact.path = written
        return written

    # ------------------------------------------------------------------
    # Stage transitions
    # ------------------------------------------------------------------

    def supersede(self, stage: Stage, transform: Transform) -> Path:
        """Replace the current file with ``transform(current, dest)``.

        *dest* is ``<directory>/<name><suffix>.mp4``.  When *transform*
        raises, any partial *dest* is removed and the current file is
        left for the scoped release.  Once *transform* succeeds the old
        file is deleted before this method returns, even if the new file
        then cannot be found.
        """
        self._check_order(stage)
        source = self.current
        new_name = f"{self._artifact.name}{stage.suffix}"
        dest = self._directory / f"{new_name}{OUTPUT_EXTENSION}"

        try:
            written = transform(source, dest)
        except Exception:
            _discard(dest)
            raise

        try:
            _unlink(source)
        except ArtifactError:
            _discard(dest)
            raise
        self._artifact.path = None
        self._artifact.name = new_name
        self._artifact.stages.append(stage)

        return self.adopt(written)

    def _check_order(self, stage: Stage) -> None:
        applied = self._artifact.stages
        if stage in applied:
            raise StageOrderError(f"{stage.suffix} already applied to {self._artifact.name}")
        if applied and applied[-1].rank > stage.rank:
            raise StageOrderError(
                f"{stage.suffix} cannot follow {applied[-1].suffix}",
            )

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def release(self) -> None:
        """Delete the current file.

        Not idempotent: a second call raises :class:`ArtifactNotFoundError`.
        """
        path = self._artifact.path
        if path is None:
            raise ArtifactNotFoundError(f"{self._artifact.name} has already been released")
        self._artifact.path = None
        _unlink(path)


# ---------------------------------------------------------------------------
# Request workspace
# ---------------------------------------------------------------------------

@contextlib.contextmanager
def request_workspace(root: Path, request_id: str) -> Iterator[Path]:
    """Create ``<root>/<request_id>/`` for one pipeline run and remove it after.

    Anything still inside on exit (a tool's stray temp file, say) is
    logged and removed with the directory.
    """
    workspace = root / request_id
    workspace.mkdir(parents=True, exist_ok=False)
    try:
        yield workspace
    finally:
        leftovers = sorted(entry.name for entry in workspace.iterdir())
        if leftovers:
            logger.warning("removing leftover files in %s: %s", workspace, leftovers)
        shutil.rmtree(workspace, ignore_errors=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unlink(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError as exc:
        raise ArtifactNotFoundError(f"could not delete video: {path.name} is missing") from exc
    except OSError as exc:
        raise ArtifactError(f"could not delete video: {exc}") from exc


def _discard(path: Path) -> None:
    """Best-effort removal of a partially written output."""
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("could not remove partial output %s", path, exc_info=True)
