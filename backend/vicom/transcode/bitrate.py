"""Video bitrate targeting for a requested output size."""
import math

from vicom.transcode.models import BitratePlan

MIN_VIDEO_KBPS = 100
MAX_VIDEO_KBPS = 50000


def target_size_bytes(size_mb: float) -> int:
    return max(1, math.floor(size_mb * 1024 * 1024))


def calculate_video_bitrate_kbps(target_bytes: int, duration_seconds: float, audio_bitrate_kbps: float) -> int:
    """
    Bits left for video once the audio track is paid for, spread over the duration.
    Clamped to [100, 50000] kbps: below that the encode is unwatchable, above it
    the input (usually a near-zero duration) is suspect.
    """
    if not duration_seconds > 0:
        raise ValueError(f"duration must be positive, got {duration_seconds!r}")
    audio_bits = max(0, math.floor(audio_bitrate_kbps * 1000 * duration_seconds))
    total_bits = max(8, target_bytes * 8)
    video_bits = max(0, total_bits - audio_bits)
    kbps = math.floor(video_bits / duration_seconds / 1000)
    return max(MIN_VIDEO_KBPS, min(kbps, MAX_VIDEO_KBPS))


def plan_bitrate(size_mb: float, duration_seconds: float, audio_bitrate_kbps: float) -> BitratePlan:
    target = target_size_bytes(size_mb)
    return BitratePlan(
        target_bytes=target,
        duration_seconds=duration_seconds,
        video_bitrate_kbps=calculate_video_bitrate_kbps(target, duration_seconds, audio_bitrate_kbps),
    )
