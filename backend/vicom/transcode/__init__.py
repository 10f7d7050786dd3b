from .service import TranscodeService, get_transcode_service
from .models import Artifact, BatchResult, CompressOptions, Enhancement, OutputFormat, Preset, SourceFile

__all__ = [
    "TranscodeService",
    "get_transcode_service",
    "Artifact",
    "BatchResult",
    "CompressOptions",
    "Enhancement",
    "OutputFormat",
    "Preset",
    "SourceFile",
]
