"""Output format -> encoding profile, and preset size ceilings."""
import math
from typing import Optional, Union

from vicom.config import DEFAULT_TARGET_SIZE_MB, MIN_TARGET_SIZE_MB, PRESET_CEILINGS_MB
from vicom.errors import ValidationError
from vicom.transcode.models import EncodingProfile, OutputFormat, Preset

H264 = "libx264"
VP9 = "libvpx-vp9"
AV1 = "libsvtav1"

PROFILES: dict[OutputFormat, EncodingProfile] = {
    OutputFormat.MP4: EncodingProfile(
        container="mp4", muxer="mp4", video_codec=H264, audio_codec="aac",
        audio_bitrate_kbps=96, subtitle_codec="mov_text",
    ),
    OutputFormat.MKV: EncodingProfile(
        container="mkv", muxer="matroska", video_codec=H264, audio_codec="aac",
        audio_bitrate_kbps=96, subtitle_codec="copy",
    ),
    OutputFormat.WEBM: EncodingProfile(
        container="webm", muxer="webm", video_codec=VP9, audio_codec="libopus",
        audio_bitrate_kbps=96, subtitle_codec="webvtt",
        extra_flags=("-row-mt", "1"),  # multi-threaded VP9
    ),
    # AV1 in MP4 for broad player compatibility
    OutputFormat.AV1: EncodingProfile(
        container="mp4", muxer="mp4", video_codec=AV1, audio_codec="aac",
        audio_bitrate_kbps=96, subtitle_codec="mov_text",
    ),
}


def parse_format(value: Union[str, OutputFormat, None]) -> OutputFormat:
    if isinstance(value, OutputFormat):
        return value
    try:
        return OutputFormat((value or "mp4").strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported format: {value}") from None


def parse_preset(value: Union[str, Preset, None]) -> Preset:
    if isinstance(value, Preset):
        return value
    try:
        return Preset((value or "custom").strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported preset: {value}") from None


def resolve_profile(fmt: Union[str, OutputFormat]) -> EncodingProfile:
    """Fails for anything outside the supported format set rather than defaulting."""
    return PROFILES[parse_format(fmt)]


def apply_preset_cap(preset: Union[str, Preset], size_mb: Optional[float]) -> float:
    """
    Effective target size in MB. Platform presets are hard ceilings; a missing size
    means "as large as the preset allows" (DEFAULT_TARGET_SIZE_MB for custom).
    """
    preset = parse_preset(preset)
    if size_mb is not None and not math.isfinite(size_mb):
        raise ValidationError("Target size must be a finite number")
    if size_mb is not None and size_mb < 0:
        raise ValidationError("Target size must be positive")
    ceiling = PRESET_CEILINGS_MB.get(preset.value)
    requested = size_mb or (ceiling if ceiling is not None else DEFAULT_TARGET_SIZE_MB)
    if ceiling is not None:
        requested = min(requested, ceiling)
    return max(MIN_TARGET_SIZE_MB, requested)
