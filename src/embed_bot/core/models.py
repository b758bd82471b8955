"""Domain models for embed-bot.

Value objects are **frozen** dataclasses with no I/O.  The only mutable
model is :class:`MediaArtifact`, whose state is owned exclusively by
:class:`~embed_bot.core.artifact.ArtifactTracker`.
"""

from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit

from embed_bot.exceptions import InvalidRequestError, StageError


# ---------------------------------------------------------------------------
# Stage suffixes
# ---------------------------------------------------------------------------

class Stage(enum.Enum):
    """Transformation stages, declared in the only order they may compose."""

    TRIM = "-trim"
    CONVERT = "-convert"
    COMPRESS = "-compress"

    @property
    def suffix(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self)


_STAGE_ORDER: tuple[Stage, ...] = (Stage.TRIM, Stage.CONVERT, Stage.COMPRESS)


# ---------------------------------------------------------------------------
# Pipeline states
# ---------------------------------------------------------------------------

class PipelineState(enum.Enum):
    DOWNLOADING = "downloading"
    TRIMMING = "trimming"
    CODEC_CHECK = "codec_check"
    TRANSCODING = "transcoding"
    SIZE_CHECK = "size_check"
    COMPRESSING = "compressing"
    READY = "ready"
    DELIVERED = "delivered"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

def logical_name_for(url: str) -> str:
    """Derive the artifact's opaque, filesystem-safe name from its URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class PipelineRequest:
    """A single ``/embed`` invocation.

    ``start`` and ``end`` are either both set or both ``None``; a lone
    bound is rejected rather than defaulted.
    """

    url: str
    start: str | None = None
    end: str | None = None

    def __post_init__(self) -> None:
        stripped = self.url.strip()
        if not stripped:
            raise InvalidRequestError("could not parse url: URL must not be empty")
        parts = urlsplit(stripped)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise InvalidRequestError(
                f"could not parse url: {stripped}",
                hint="URL must start with http:// or https://",
            )
        object.__setattr__(self, "url", stripped)

        start = self.start or None
        end = self.end or None
        if (start is None) != (end is None):
            raise InvalidRequestError(
                "start and end must be supplied together",
                hint="Pass both a start and an end timestamp, e.g. 01:30 02:00",
            )
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def wants_trim(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def hostname(self) -> str:
        """Lower-cased hostname with any leading ``www.`` removed."""
        host = urlsplit(self.url).hostname or ""
        return host.removeprefix("www.")

    @property
    def logical_name(self) -> str:
        return logical_name_for(self.url)


# ---------------------------------------------------------------------------
# Artifact
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class MediaArtifact:
    """On-disk state of one video as it moves through the pipeline."""

    name: str
    """Logical name: URL-derived base plus every applied stage suffix."""

    url: str

    path: Path | None = None
    """Currently materialised file, ``None`` before download or after release."""

    stages: list[Stage] = field(default_factory=list)
    """Applied stages, in application order."""

    @property
    def filename(self) -> str | None:
        return self.path.name if self.path is not None else None


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CompressionBudget:
    """Integer bitrate plan for squeezing a clip under the size ceiling."""

    target_size_bits: int
    total_bitrate: int
    audio_bitrate: int
    video_bitrate: int
    buffer_size: int


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    """Terminal record of a pipeline run, used for reporting and tests."""

    state: PipelineState
    """Either :attr:`PipelineState.DELIVERED` or :attr:`PipelineState.FAILED`."""

    history: tuple[PipelineState, ...]
    delivered_name: str | None = None
    error: StageError | None = None

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DELIVERED
