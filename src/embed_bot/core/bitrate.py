"""Pure size-ceiling arithmetic for the compression stage.

Every function in this module is a **pure** transformation — no I/O,
no side effects, integer-only maths.

The ceiling is decimal: 25,000,000 bytes, not 25 MiB.
"""

from __future__ import annotations

from embed_bot.core.models import CompressionBudget
from embed_bot.exceptions import ProbeFailedError

SIZE_LIMIT_BYTES: int = 25 * 1000 * 1000
"""Largest upload accepted without compression."""

AUDIO_BITRATE: int = 128 * 1000
"""Audio bitrate used when compressing, in bits per second."""

TRANSCODE_AUDIO_BITRATE: str = "160k"
"""Audio bitrate used by the H.264 normalisation pass."""

TARGET_CODEC: str = "h264"


def needs_compression(size_bytes: int) -> bool:
    """Return ``True`` only when *size_bytes* strictly exceeds the ceiling."""
    return size_bytes > SIZE_LIMIT_BYTES


def parse_duration_ceiling(raw: str) -> int:
    """Parse ffprobe's ``format=duration`` output into whole seconds.

    The fractional part is discarded and one second is added, so a
    rounded-down duration can never push the bitrate over budget::

        >>> parse_duration_ceiling("125.7")
        126
        >>> parse_duration_ceiling("60.000000")
        61

    Raises
    ------
    ProbeFailedError
        If the integer portion is not a number, or is negative.
    """
    whole = raw.strip().split(".", 1)[0]
    try:
        seconds = int(whole)
    except ValueError as exc:
        raise ProbeFailedError(f"could not parse duration: {raw.strip()!r}") from exc
    if seconds < 0:
        raise ProbeFailedError(f"invalid duration: {raw.strip()!r}")
    return seconds + 1


def compression_budget(duration_seconds: int) -> CompressionBudget:
    """Compute the bitrate plan for a clip lasting *duration_seconds*.

    ``video_bitrate = (25_000_000 * 8) // duration - 128_000``; for
    60 seconds that is ``3_333_333 - 128_000 = 3_205_333``.
    """
    if duration_seconds <= 0:
        raise ValueError(f"duration must be positive, got {duration_seconds}")
    target_size_bits = SIZE_LIMIT_BYTES * 8
    total_bitrate = target_size_bits // duration_seconds
    return CompressionBudget(
        target_size_bits=target_size_bits,
        total_bitrate=total_bitrate,
        audio_bitrate=AUDIO_BITRATE,
        video_bitrate=total_bitrate - AUDIO_BITRATE,
        buffer_size=target_size_bits // 20,
    )
