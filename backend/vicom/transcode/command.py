"""Builds the ffmpeg argument list for one encode. No I/O."""
from pathlib import Path
from typing import Optional, Union

from vicom.transcode.models import BitratePlan, EncodingProfile, Enhancement, TrimWindow
from vicom.transcode.profiles import AV1, H264, VP9

ENHANCEMENT_FILTERS = {
    Enhancement.DENOISE: "hqdn3d",  # spatio-temporal denoise
    Enhancement.SHARPEN: "unsharp",
}


def _rate_control_args(profile: EncodingProfile, video_kbps: int) -> list[str]:
    cap = ["-maxrate", f"{video_kbps}k", "-bufsize", f"{video_kbps * 2}k"]
    if profile.video_codec == H264:
        return ["-crf", "23", "-preset", "slow", *cap]
    if profile.video_codec == VP9:
        return ["-b:v", f"{video_kbps}k", *cap]
    if profile.video_codec == AV1:
        return ["-crf", "35", "-preset", "6", *cap]
    return ["-b:v", f"{video_kbps}k", *cap]


def trim_args(trim: Optional[TrimWindow]) -> list[str]:
    """Output-side seek so the cut is frame accurate rather than keyframe snapped."""
    if trim is None or trim.start is None or trim.end is None or not trim.start < trim.end:
        return []
    return ["-ss", str(trim.start), "-to", str(trim.end)]


def build_ffmpeg_command(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    profile: EncodingProfile,
    plan: BitratePlan,
    trim: Optional[TrimWindow] = None,
    preserve_metadata: bool = False,
    preserve_subtitles: bool = False,
    enhancement: Enhancement = Enhancement.NONE,
    ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
    """
    Discrete argument tokens for subprocess; paths are never quoted or joined into a
    shell string. The muxer is always given explicitly because the output path is a
    temporary name without the final extension.
    """
    args = [ffmpeg_bin, "-hide_banner", "-nostdin", "-loglevel", "error", "-y", "-i", str(input_path)]
    args += trim_args(trim)

    if preserve_subtitles:
        args += ["-map", "0:v:0", "-map", "0:a?", "-map", "0:s?"]

    args += ["-c:v", profile.video_codec]
    args += _rate_control_args(profile, plan.video_bitrate_kbps)
    args += ["-pix_fmt", "yuv420p"]
    if profile.is_mp4_family:
        args += ["-movflags", "+faststart"]

    # Audio is always re-encoded, independent of what else is preserved
    args += ["-c:a", profile.audio_codec, "-b:a", f"{profile.audio_bitrate_kbps}k"]

    args += ["-map_metadata", "0" if preserve_metadata else "-1"]
    if preserve_subtitles:
        args += ["-c:s", profile.subtitle_codec]
    else:
        args.append("-sn")

    vf = ENHANCEMENT_FILTERS.get(Enhancement(enhancement))
    if vf:
        args += ["-vf", vf]

    args += list(profile.extra_flags)
    args += ["-f", profile.muxer, str(output_path)]
    return args
