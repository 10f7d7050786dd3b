"""Size-targeted transcode orchestration: validate, stage, probe, plan, encode, finalize."""
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vicom.config import (
    FFMPEG_BIN,
    INPUT_EXTENSIONS,
    MAX_BATCH_FILE_BYTES,
    MAX_SINGLE_FILE_BYTES,
    OUTPUT_DIR,
    UPLOAD_DIR,
)
from vicom.errors import EncodeError, ValidationError, VicomError
from vicom.storage import (
    describe_output,
    discard,
    propose_base_name,
    publish_output,
    stage_upload,
    temp_output_path,
)
from vicom.transcode.bitrate import plan_bitrate
from vicom.transcode.command import build_ffmpeg_command
from vicom.transcode.models import (
    Artifact,
    BatchResult,
    BitratePlan,
    CompressOptions,
    EncodingProfile,
    FileFailure,
    JobState,
    SourceFile,
    TrimWindow,
)
from vicom.transcode.probe import DurationProber
from vicom.transcode.profiles import apply_preset_cap, resolve_profile
from vicom.transcode.runner import FFmpegRunner

logger = logging.getLogger("vicom.transcode")


def validate_trim(start: Optional[int], end: Optional[int], duration: float) -> Optional[TrimWindow]:
    """Both bounds or neither; 0 <= start < end <= duration. An end of 0 means no trim window."""
    if (start is None and end is None) or end == 0:
        return None
    if start is None or end is None:
        raise ValidationError("Both trimStart and trimEnd must be provided to trim.")
    if start < 0 or start >= end or end > duration:
        raise ValidationError("Invalid trim range. Ensure trimEnd > trimStart and within duration.")
    return TrimWindow(start=start, end=end)


class TranscodeJob:
    """State of one file moving through the pipeline. Lives for a single call."""

    def __init__(self, source: SourceFile, index: int, total: int):
        self.source = source
        self.index = index
        self.total = total
        self.state = JobState.RECEIVED
        self.error: Optional[str] = None
        self.staged_path: Optional[Path] = None
        self.duration: Optional[float] = None
        self.profile: Optional[EncodingProfile] = None
        self.plan: Optional[BitratePlan] = None
        self.trim: Optional[TrimWindow] = None

    def advance(self, state: JobState) -> None:
        logger.debug("%s: %s -> %s", self.source.filename, self.state.value, state.value)
        self.state = state

    def fail(self, error: Exception) -> None:
        self.error = str(error)
        self.state = JobState.FAILED


@dataclass
class CallPolicy:
    max_file_bytes: int
    abort_on_error: bool


SINGLE_POLICY = CallPolicy(max_file_bytes=MAX_SINGLE_FILE_BYTES, abort_on_error=True)
BATCH_POLICY = CallPolicy(max_file_bytes=MAX_BATCH_FILE_BYTES, abort_on_error=False)


class TranscodeService:
    """Files in a call are processed strictly one after another: one encode already saturates the machine."""

    def __init__(
        self,
        input_dir: Path = UPLOAD_DIR,
        output_dir: Path = OUTPUT_DIR,
        prober: Optional[DurationProber] = None,
        runner: Optional[FFmpegRunner] = None,
        ffmpeg_bin: str = FFMPEG_BIN,
    ):
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        self.prober = prober or DurationProber()
        self.runner = runner or FFmpegRunner()
        self.ffmpeg_bin = ffmpeg_bin
        logger.info("TranscodeService initialized (input=%s, output=%s)", self.input_dir, self.output_dir)

    @staticmethod
    def validate_request(sources: list[SourceFile], options: CompressOptions) -> EncodingProfile:
        if not sources:
            raise ValidationError("No files uploaded.")
        return resolve_profile(options.format)

    @staticmethod
    def validate_source(source: SourceFile, max_bytes: int) -> None:
        if not source.filename:
            raise ValidationError("Invalid file payload.")
        if source.size is not None and source.size > max_bytes:
            raise ValidationError(f"File exceeds {max_bytes // (1024 * 1024)} MB limit.")
        ext = Path(source.filename).suffix.lower()
        if ext not in INPUT_EXTENSIONS:
            raise ValidationError(f"Unsupported input type: {ext or source.filename}")

    def process_file(
        self,
        source: SourceFile,
        options: CompressOptions,
        index: int = 0,
        total: int = 1,
        max_bytes: int = MAX_SINGLE_FILE_BYTES,
        cancel_event: Optional[threading.Event] = None,
    ) -> Artifact:
        """One file through Received -> ... -> Finalized. The staged input never outlives this call."""
        job = TranscodeJob(source, index, total)
        temp_path: Optional[Path] = None
        try:
            self.validate_source(source, max_bytes)
            profile = resolve_profile(options.format)
            size_mb = apply_preset_cap(options.preset, options.size_mb)
            job.profile = profile
            job.advance(JobState.VALIDATED)

            job.staged_path = stage_upload(source.stream, source.filename, self.input_dir, max_bytes)
            job.advance(JobState.STAGED)

            job.duration = self.prober.duration_seconds(job.staged_path)
            job.advance(JobState.PROBED)

            job.trim = validate_trim(options.trim_start, options.trim_end, job.duration)
            effective = job.trim.duration if job.trim else job.duration
            job.plan = plan_bitrate(size_mb, effective, profile.audio_bitrate_kbps)
            job.advance(JobState.PLANNED)
            logger.info(
                "%s: %.1fs -> %s %s at %s kbps (target %.1f MB)",
                source.filename, effective, profile.container, profile.video_codec,
                job.plan.video_bitrate_kbps, size_mb,
            )

            temp_path = temp_output_path(self.output_dir)
            args = build_ffmpeg_command(
                job.staged_path,
                temp_path,
                profile,
                job.plan,
                trim=job.trim,
                preserve_metadata=options.preserve_metadata,
                preserve_subtitles=options.preserve_subtitles,
                enhancement=options.enhancement,
                ffmpeg_bin=self.ffmpeg_bin,
            )
            job.advance(JobState.ENCODING)
            self.runner.run(args, temp_path, cancel_event=cancel_event)

            if not temp_path.is_file():
                raise EncodeError("Encoder exited cleanly but produced no output.")
            base = propose_base_name(source.filename, index, total, options.custom_name)
            final = publish_output(temp_path, self.output_dir, base, profile.container)
            info = describe_output(final)
            job.advance(JobState.FINALIZED)
            logger.info("Compressed %s -> %s (%s bytes)", source.filename, final.name, info["size"])
            return Artifact(name=info["name"], download_url=info["downloadUrl"], size=info["size"], date=info["date"])
        except Exception as e:
            job.fail(e)
            if isinstance(e, VicomError):
                logger.warning("%s failed in state %s: %s", source.filename, job.state.value, e)
            else:
                logger.exception("%s failed unexpectedly: %s", source.filename, e)
            raise
        finally:
            discard(job.staged_path)
            discard(temp_path)

    def compress(
        self,
        sources: list[SourceFile],
        options: CompressOptions,
        cancel_event: Optional[threading.Event] = None,
        policy: CallPolicy = SINGLE_POLICY,
    ) -> list[Artifact]:
        """Abort on the first failing file; later files are not attempted."""
        self.validate_request(sources, options)
        return [
            self.process_file(
                source, options, index, len(sources),
                max_bytes=policy.max_file_bytes, cancel_event=cancel_event,
            )
            for index, source in enumerate(sources)
        ]

    def compress_batch(
        self,
        sources: list[SourceFile],
        options: CompressOptions,
        cancel_event: Optional[threading.Event] = None,
        policy: CallPolicy = BATCH_POLICY,
    ) -> BatchResult:
        """Continue past failing files and report what succeeded and what did not."""
        self.validate_request(sources, options)
        result = BatchResult()
        for index, source in enumerate(sources):
            if cancel_event is not None and cancel_event.is_set():
                break
            try:
                artifact = self.process_file(
                    source, options, index, len(sources),
                    max_bytes=policy.max_file_bytes, cancel_event=cancel_event,
                )
            except VicomError as e:
                result.failures.append(FileFailure(source.filename, e.message, e.status_code))
                if cancel_event is not None and cancel_event.is_set():
                    break
                continue
            except Exception as e:
                result.failures.append(FileFailure(source.filename, str(e), 500))
                continue
            result.artifacts.append(artifact)
        logger.info("Batch finished: %s succeeded, %s failed", result.succeeded, result.failed)
        return result


# Singleton
_transcode_service: Optional[TranscodeService] = None


def get_transcode_service() -> TranscodeService:
    global _transcode_service
    if _transcode_service is None:
        _transcode_service = TranscodeService()
    return _transcode_service
