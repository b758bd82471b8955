"""Core pipeline — turns one remote video into one uploadable file.

State machine::

    DOWNLOADING → [TRIMMING] → CODEC_CHECK → [TRANSCODING]
                → SIZE_CHECK → [COMPRESSING] → READY → DELIVERED | FAILED

Stages run strictly one after another, each blocking on its external
tool.  The whole run is wrapped in a per-request workspace and an
:class:`~embed_bot.core.artifact.ArtifactTracker` scope, so whatever file
exists when the run ends — delivered or not — is deleted exactly once.

Failure policy
--------------
* Any stage failure ends the run in ``FAILED`` with a
  :class:`~embed_bot.exceptions.StageError` describing the stage.
* Codec probing and size checking are lenient: when they fail the run
  logs a warning and carries on as if no work were needed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import TypeVar

from embed_bot.core.artifact import ArtifactTracker, request_workspace
from embed_bot.core.bitrate import TARGET_CODEC, needs_compression
from embed_bot.core.models import (
    MediaArtifact,
    PipelineOutcome,
    PipelineRequest,
    PipelineState,
    Stage,
)
from embed_bot.core.protocols import CookieResolver, Deliver, MediaFetcher, MediaToolkit
from embed_bot.exceptions import (
    ArtifactError,
    CompressFailedError,
    DownloadFailedError,
    EmbedBotError,
    ProbeFailedError,
    StageError,
    TranscodeFailedError,
    TrimFailedError,
    UploadFailedError,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class MediaPipeline:
    """Drives :class:`PipelineRequest` objects through the state machine.

    Parameters
    ----------
    fetcher:
        Download backend satisfying :class:`MediaFetcher`.
    toolkit:
        Probe/encode backend satisfying :class:`MediaToolkit`.
    cookies:
        Optional hostname → cookie-file resolver.
    work_dir:
        Parent of the per-request workspaces.
    locate_by_scan:
        Locate stage outputs by name-prefix scan instead of trusting the
        path each adapter reports.
    """

    def __init__(
        self,
        fetcher: MediaFetcher,
        toolkit: MediaToolkit,
        work_dir: Path,
        *,
        cookies: CookieResolver | None = None,
        locate_by_scan: bool = False,
        request_ids: Callable[[], str] | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._toolkit = toolkit
        self._work_dir = work_dir
        self._cookies = cookies
        self._locate_by_scan = locate_by_scan
        self._request_ids = request_ids or (lambda: uuid.uuid4().hex)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, request: PipelineRequest, deliver: Deliver) -> PipelineOutcome:
        """Run *request* to completion and hand the result to *deliver*.

        Never raises :class:`StageError`; failures are reported through
        :attr:`PipelineOutcome.error`.  Cleanup has always happened by
        the time this returns.
        """
        history: list[PipelineState] = []
        artifact = MediaArtifact(name=request.logical_name, url=request.url)

        with request_workspace(self._work_dir, self._request_ids()) as workspace:
            with ArtifactTracker(
                workspace, artifact, locate_by_scan=self._locate_by_scan,
            ) as tracker:
                try:
                    self._run(request, tracker, history)
                    history.append(PipelineState.READY)
                    final = tracker.current
                    logger.info("responding with video: %s", final.name)
                    _upload(deliver, final)
                except StageError as exc:
                    logger.warning("pipeline failed for %s: %s", request.url, exc)
                    history.append(PipelineState.FAILED)
                    return PipelineOutcome(
                        state=PipelineState.FAILED,
                        history=tuple(history),
                        error=exc,
                    )

        history.append(PipelineState.DELIVERED)
        return PipelineOutcome(
            state=PipelineState.DELIVERED,
            history=tuple(history),
            delivered_name=final.name,
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _run(
        self,
        request: PipelineRequest,
        tracker: ArtifactTracker,
        history: list[PipelineState],
    ) -> None:
        history.append(PipelineState.DOWNLOADING)
        self._download(request, tracker)

        if request.start is not None and request.end is not None:
            history.append(PipelineState.TRIMMING)
            self._trim(tracker, request.start, request.end)

        history.append(PipelineState.CODEC_CHECK)
        if self._needs_transcode(tracker):
            history.append(PipelineState.TRANSCODING)
            logger.info("converting video: %s", tracker.current.name)
            _stage(
                TranscodeFailedError,
                tracker.supersede,
                Stage.CONVERT,
                self._toolkit.transcode_to_h264,
            )

        history.append(PipelineState.SIZE_CHECK)
        if self._needs_compression(tracker):
            history.append(PipelineState.COMPRESSING)
            logger.info("compressing video: %s", tracker.current.name)
            _stage(CompressFailedError, self._compress, tracker)

    def _download(self, request: PipelineRequest, tracker: ArtifactTracker) -> None:
        cookie_file = self._cookies.resolve(request.hostname) if self._cookies else None
        if cookie_file is not None:
            logger.info("using cookie file: %s", cookie_file.name)

        logger.info("downloading video: %s", request.url)
        written = _stage(
            DownloadFailedError,
            self._fetcher.fetch,
            request.url,
            tracker.artifact.name,
            tracker.directory,
            cookie_file=cookie_file,
        )
        _stage(DownloadFailedError, tracker.adopt, written)

    def _trim(self, tracker: ArtifactTracker, start: str, end: str) -> None:
        logger.info("trimming video: %s", tracker.current.name)

        def cut(source: Path, dest: Path) -> Path:
            return self._toolkit.trim(source, dest, start, end)

        _stage(TrimFailedError, tracker.supersede, Stage.TRIM, cut)

    def _needs_transcode(self, tracker: ArtifactTracker) -> bool:
        try:
            codec = self._toolkit.probe_codec(tracker.current)
        except ProbeFailedError as exc:
            logger.warning("could not get codec: %s", exc)
            return False
        return codec != TARGET_CODEC

    def _needs_compression(self, tracker: ArtifactTracker) -> bool:
        try:
            size = tracker.current.stat().st_size
        except OSError as exc:
            logger.warning("could not get file info: %s", exc)
            return False
        return needs_compression(size)

    def _compress(self, tracker: ArtifactTracker) -> None:
        duration = self._toolkit.probe_duration_seconds(tracker.current)
        squeeze = partial(_compress_with, self._toolkit, duration)
        tracker.supersede(Stage.COMPRESS, squeeze)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _compress_with(toolkit: MediaToolkit, duration: int, source: Path, dest: Path) -> Path:
    return toolkit.compress_to_budget(source, dest, duration)


def _stage(
    error_cls: type[StageError],
    func: Callable[..., _T],
    *args: object,
    **kwargs: object,
) -> _T:
    """Call *func*, reporting any domain failure as *error_cls*.

    Stage errors pass through unchanged; artifact and probe failures are
    re-raised as the stage's own error with the original message.
    """
    try:
        return func(*args, **kwargs)
    except StageError:
        raise
    except (ArtifactError, ProbeFailedError) as exc:
        raise error_cls(str(exc)) from exc


def _upload(deliver: Deliver, path: Path) -> None:
    try:
        deliver(path)
    except UploadFailedError:
        raise
    except EmbedBotError as exc:
        raise UploadFailedError(str(exc)) from exc
