"""API routes for compression, listing and download."""
import asyncio
import logging
import math
import threading
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from vicom import delivery
from vicom.config import (
    DEFAULT_TARGET_SIZE_MB,
    INPUT_EXTENSIONS,
    MAX_BATCH_FILE_BYTES,
    MAX_SINGLE_FILE_BYTES,
    OUTPUT_FORMATS,
    PRESET_CEILINGS_MB,
)
from vicom.errors import VicomError
from vicom.storage import list_videos
from vicom.tools import background_removal_health
from vicom.transcode.models import CompressOptions, Enhancement, SourceFile
from vicom.transcode.profiles import parse_format, parse_preset
from vicom.transcode.service import TranscodeService, get_transcode_service

logger = logging.getLogger("vicom.api")
router = APIRouter(prefix="/api", tags=["vicom"])

DISCONNECT_POLL_SECONDS = 1.0


def _http_error(e: VicomError) -> HTTPException:
    return HTTPException(e.status_code, e.message)


def _whole_seconds(value: Optional[float], field: str) -> Optional[int]:
    if value is None:
        return None
    if not math.isfinite(value):
        raise HTTPException(400, f"{field} must be a number of seconds")
    return max(0, math.floor(value))


def compress_options(
    format: str = Form("mp4"),
    preset: str = Form("custom"),
    size: Optional[float] = Form(None, description="Target size in MB"),
    preserve_metadata: bool = Form(False, alias="preserveMetadata"),
    preserve_subtitles: bool = Form(False, alias="preserveSubtitles"),
    enhancement: str = Form("none"),
    trim_start: Optional[float] = Form(None, alias="trimStart"),
    trim_end: Optional[float] = Form(None, alias="trimEnd"),
    custom_name: str = Form("", alias="customName"),
) -> CompressOptions:
    try:
        return CompressOptions(
            format=parse_format(format),
            preset=parse_preset(preset),
            size_mb=size,
            preserve_metadata=preserve_metadata,
            preserve_subtitles=preserve_subtitles,
            enhancement=Enhancement.parse(enhancement),
            trim_start=_whole_seconds(trim_start, "trimStart"),
            trim_end=_whole_seconds(trim_end, "trimEnd"),
            custom_name=(custom_name or "").strip(),
        )
    except VicomError as e:
        raise _http_error(e)


def _sources(files: Optional[list[UploadFile]]) -> list[SourceFile]:
    if not files:
        raise HTTPException(400, "No files uploaded.")
    return [SourceFile(filename=f.filename or "", stream=f.file, size=f.size) for f in files]


async def _run_watching_disconnect(request: Request, func, *args):
    """Run blocking work in a thread; if the client goes away, signal it to stop."""
    cancel = threading.Event()
    work = asyncio.ensure_future(asyncio.to_thread(func, *args, cancel_event=cancel))
    while not work.done():
        await asyncio.wait({work}, timeout=DISCONNECT_POLL_SECONDS)
        if not work.done() and not cancel.is_set() and await request.is_disconnected():
            logger.info("Client disconnected from %s; cancelling", request.url.path)
            cancel.set()
    return work.result()


@router.get("/health")
def health(request: Request):
    tools = getattr(request.app.state, "tools", {})
    return {
        "status": "ok",
        "tools": {name: result.ok for name, result in tools.items()},
    }


@router.get("/limits")
def get_limits():
    """Per-file upload ceilings for each endpoint."""
    return {
        "compress": {
            "max_file_size_mb": MAX_SINGLE_FILE_BYTES // (1024 * 1024),
            "max_file_size_bytes": MAX_SINGLE_FILE_BYTES,
        },
        "batch": {
            "max_file_size_mb": MAX_BATCH_FILE_BYTES // (1024 * 1024),
            "max_file_size_bytes": MAX_BATCH_FILE_BYTES,
        },
    }


@router.get("/formats")
def get_formats():
    return {
        "input": sorted(ext.lstrip(".") for ext in INPUT_EXTENSIONS),
        "output": OUTPUT_FORMATS,
        "enhancement": [e.value for e in Enhancement],
    }


@router.get("/presets")
def get_presets():
    """Target size ceilings in MB (custom: default size, no ceiling)."""
    return {
        **PRESET_CEILINGS_MB,
        "custom": None,
        "default_size_mb": DEFAULT_TARGET_SIZE_MB,
    }


@router.post("/compress")
async def compress(
    request: Request,
    files: Optional[list[UploadFile]] = File(None),
    options: CompressOptions = Depends(compress_options),
    svc: TranscodeService = Depends(get_transcode_service),
):
    """Compress one or more files; the whole call fails on the first bad file."""
    sources = _sources(files)
    try:
        artifacts = await _run_watching_disconnect(request, svc.compress, sources, options)
    except VicomError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception("Compression failed: %s", e)
        raise HTTPException(500, "Error during compression. Please try again.")
    return {
        "message": "Videos compressed successfully!" if len(artifacts) > 1 else "Video compressed successfully!",
        "files": [a.to_dict() for a in artifacts],
    }


@router.post("/batch")
async def batch(
    request: Request,
    files: Optional[list[UploadFile]] = File(None),
    options: CompressOptions = Depends(compress_options),
    svc: TranscodeService = Depends(get_transcode_service),
):
    """Compress every file it can; failures are reported next to the successes."""
    sources = _sources(files)
    try:
        result = await _run_watching_disconnect(request, svc.compress_batch, sources, options)
    except VicomError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception("Batch processing failed: %s", e)
        raise HTTPException(500, "Error during batch processing")
    body = {
        "files": [a.to_dict() for a in result.artifacts],
        "failed": [{"filename": f.filename, "error": f.error} for f in result.failures],
        "succeeded": result.succeeded,
        "failedCount": result.failed,
    }
    if not result.artifacts:
        status = result.failures[0].status_code if result.failures else 500
        body["message"] = "No files could be processed"
        return JSONResponse(body, status_code=status)
    if result.failures:
        body["message"] = f"Batch processing completed: {result.succeeded} succeeded, {result.failed} failed"
    else:
        body["message"] = "Batch processing completed successfully!"
    return body


@router.get("/videos")
def videos(svc: TranscodeService = Depends(get_transcode_service)):
    """Finished videos in the output directory, newest first."""
    return list_videos(svc.output_dir)


@router.head("/download/{filename}")
def download_head(filename: str, svc: TranscodeService = Depends(get_transcode_service)):
    """Headers only; range handling is for GET."""
    try:
        target = delivery.resolve_target(filename, svc.output_dir)
        return delivery.head_response(target)
    except VicomError as e:
        return Response(status_code=e.status_code)


@router.get("/download/{filename}")
def download_file(
    request: Request,
    filename: str,
    download: bool = Query(False, description="Send as an attachment"),
    svc: TranscodeService = Depends(get_transcode_service),
):
    """Inline, attachment (?download=true) or byte-range download of an output file."""
    try:
        target = delivery.resolve_target(filename, svc.output_dir)
        return delivery.file_response(target, request.headers.get("range"), force_download=download)
    except VicomError as e:
        raise _http_error(e)


@router.get("/remove-bg/health")
def remove_bg_health():
    """Check that the local background-removal helper can process an image."""
    report = background_removal_health()
    if not report["ok"]:
        return JSONResponse(report, status_code=500)
    return report
