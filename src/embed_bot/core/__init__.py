"""Core / service layer — the media pipeline and its bookkeeping.

Rules
-----
* No ``print()`` calls.
* No subprocess, network or Slack access — those arrive through the
  protocols in :mod:`embed_bot.core.protocols`.
* Filesystem access is confined to :mod:`embed_bot.core.artifact`.
* No imports from ``cli``, ``infra`` or ``slack``.
"""

from embed_bot.core.artifact import ArtifactTracker, request_workspace
from embed_bot.core.models import (
    MediaArtifact,
    PipelineOutcome,
    PipelineRequest,
    PipelineState,
    Stage,
)
from embed_bot.core.pipeline import MediaPipeline
from embed_bot.core.protocols import CookieResolver, MediaFetcher, MediaToolkit

__all__: list[str] = [
    "ArtifactTracker",
    "CookieResolver",
    "MediaArtifact",
    "MediaFetcher",
    "MediaPipeline",
    "MediaToolkit",
    "PipelineOutcome",
    "PipelineRequest",
    "PipelineState",
    "Stage",
    "request_workspace",
]
