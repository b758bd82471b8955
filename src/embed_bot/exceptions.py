"""Custom exception hierarchy for embed-bot.

All exceptions that cross layer boundaries must inherit from
:class:`EmbedBotError`.  Raw third-party exceptions (yt-dlp, subprocess,
Slack SDK) must NEVER propagate beyond the infrastructure layer — they
must be caught and re-raised as a typed subclass defined here.

Hierarchy
---------
EmbedBotError
├── InvalidRequestError
├── ConfigInvalidError
├── EnvironmentError
│   └── ToolNotFoundError
├── ArtifactError
│   ├── ArtifactNotFoundError
│   ├── AmbiguousArtifactError
│   └── StageOrderError
├── ProbeFailedError
└── StageError
    ├── DownloadFailedError
    ├── TrimFailedError
    ├── TranscodeFailedError
    ├── CompressFailedError
    └── UploadFailedError
"""

from __future__ import annotations


class EmbedBotError(Exception):
    """Base exception for all embed-bot errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI and Slack error boundaries can render a
    clean message without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Request validation ----------------------------------------------------

class InvalidRequestError(EmbedBotError):
    """Raised when a command or pipeline request fails validation."""


# --- Configuration ---------------------------------------------------------

class ConfigInvalidError(EmbedBotError):
    """Raised when required configuration is missing at startup."""


# --- Environment / tooling -------------------------------------------------

class EnvironmentError(EmbedBotError):
    """Raised when a required runtime dependency is not available."""


class ToolNotFoundError(EnvironmentError):
    """Raised when ffmpeg or ffprobe cannot be located on the system PATH."""


# --- Artifact bookkeeping --------------------------------------------------

class ArtifactError(EmbedBotError):
    """Base class for on-disk artifact tracking failures."""


class ArtifactNotFoundError(ArtifactError):
    """Raised when no file matches the artifact's logical name."""


class AmbiguousArtifactError(ArtifactError):
    """Raised when more than one file matches the artifact's logical name."""


class StageOrderError(ArtifactError):
    """Raised when a stage suffix is applied twice or out of order."""


# --- Probing ---------------------------------------------------------------

class ProbeFailedError(EmbedBotError):
    """Raised when ffprobe fails or returns unparseable output."""


# --- Pipeline stages -------------------------------------------------------

class StageError(EmbedBotError):
    """A pipeline stage failed; the request is aborted.

    ``stage`` is the verb used in the user-facing message
    (``"could not <stage> video: ..."``).
    """

    stage: str = "process"


class DownloadFailedError(StageError):
    """Raised when the fetch tool fails to download the media."""

    stage = "download"


class TrimFailedError(StageError):
    """Raised when ffmpeg fails to cut the requested time range."""

    stage = "trim"


class TranscodeFailedError(StageError):
    """Raised when ffmpeg fails to re-encode the video to H.264."""

    stage = "convert"


class CompressFailedError(StageError):
    """Raised when the video cannot be squeezed under the size ceiling."""

    stage = "compress"


class UploadFailedError(StageError):
    """Raised when the chat platform rejects the finished upload."""

    stage = "upload"


UPLOAD_FAILED_MESSAGE = "Could not upload to Slack!"


def user_message(exc: EmbedBotError) -> str:
    """Render the single terminal error text shown to the requester.

    Tool error text is passed through untranslated.  Upload failures
    deliberately hide the transport error behind a generic message.
    """
    if isinstance(exc, UploadFailedError):
        return UPLOAD_FAILED_MESSAGE
    if isinstance(exc, StageError):
        return f"could not {exc.stage} video: {exc}"
    return str(exc)
