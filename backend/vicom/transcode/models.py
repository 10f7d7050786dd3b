"""Transcode request, plan and result models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional

from vicom.errors import ValidationError


class OutputFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"
    MKV = "mkv"
    AV1 = "av1"  # AV1 video in an MP4 container


class Preset(str, Enum):
    DISCORD = "discord"
    TWITTER = "twitter"
    WHATSAPP = "whatsapp"
    CUSTOM = "custom"


class Enhancement(str, Enum):
    NONE = "none"
    DENOISE = "denoise"
    SHARPEN = "sharpen"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Enhancement":
        token = (value or "none").strip().lower()
        token = _ENHANCEMENT_ALIASES.get(token, token)
        try:
            return cls(token)
        except ValueError:
            raise ValidationError(f"Unsupported enhancement: {value}") from None


# Names used by older clients
_ENHANCEMENT_ALIASES = {
    "": "none",
    "noise-reduction": "denoise",
    "sharpness": "sharpen",
}


class JobState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    STAGED = "staged"
    PROBED = "probed"
    PLANNED = "planned"
    ENCODING = "encoding"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass(frozen=True)
class TrimWindow:
    """Seconds; start inclusive, end exclusive."""

    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class EncodingProfile:
    container: str  # output file extension
    muxer: str  # ffmpeg -f name
    video_codec: str
    audio_codec: str
    audio_bitrate_kbps: int
    subtitle_codec: str
    extra_flags: tuple[str, ...] = ()

    @property
    def is_mp4_family(self) -> bool:
        return self.muxer == "mp4"


@dataclass(frozen=True)
class BitratePlan:
    target_bytes: int
    duration_seconds: float
    video_bitrate_kbps: int


@dataclass(frozen=True)
class CompressOptions:
    format: OutputFormat = OutputFormat.MP4
    preset: Preset = Preset.CUSTOM
    size_mb: Optional[float] = None
    preserve_metadata: bool = False
    preserve_subtitles: bool = False
    enhancement: Enhancement = Enhancement.NONE
    trim_start: Optional[int] = None
    trim_end: Optional[int] = None
    custom_name: str = ""


@dataclass
class SourceFile:
    """One uploaded file: declared name and size plus a readable binary stream."""

    filename: str
    stream: BinaryIO
    size: Optional[int] = None


@dataclass
class Artifact:
    name: str
    download_url: str
    size: int
    date: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "downloadUrl": self.download_url,
            "size": self.size,
            "date": self.date,
        }


@dataclass
class FileFailure:
    filename: str
    error: str
    status_code: int


@dataclass
class BatchResult:
    artifacts: list[Artifact] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.artifacts)

    @property
    def failed(self) -> int:
        return len(self.failures)
