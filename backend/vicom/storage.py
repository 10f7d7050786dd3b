"""Flat input/output directories: startup init, staging, output naming and listing."""
import logging
import os
import re
import shutil
import tempfile
import unicodedata
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import quote

from vicom.config import (
    MAX_OUTPUT_BASE_LENGTH,
    OUTPUT_DIR,
    OUTPUT_NAME_PREFIX,
    UPLOAD_CHUNK_BYTES,
    UPLOAD_DIR,
    VIDEO_EXTENSIONS,
)
from vicom.errors import StorageError, ValidationError

logger = logging.getLogger("vicom.storage")

DOWNLOAD_ROUTE = "/api/download"

_UNSAFE_NAME_CHARS = re.compile(r"[^\w\s.-]+", re.ASCII)
_WHITESPACE_RUN = re.compile(r"\s{2,}")


def init_dirs(*dirs: Path) -> None:
    """Create the staging and output directories if needed and check they are writable. Idempotent."""
    for d in dirs or (UPLOAD_DIR, OUTPUT_DIR):
        try:
            d.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryFile(dir=d):
                pass
        except OSError as e:
            raise StorageError(f"Directory {d} is not usable: {e}") from e
        logger.info("Directory ready: %s", d)


def download_url(name: str) -> str:
    return f"{DOWNLOAD_ROUTE}/{quote(name)}"


def sanitize_base_name(name: Optional[str]) -> str:
    """ASCII word characters, space, dot and hyphen only; whitespace runs collapsed; at most 180 chars."""
    s = unicodedata.normalize("NFKD", str(name or ""))
    s = _UNSAFE_NAME_CHARS.sub("", s)
    s = _WHITESPACE_RUN.sub(" ", s).strip()
    return s[:MAX_OUTPUT_BASE_LENGTH]


def original_stem(filename: Optional[str]) -> str:
    """Declared upload name without directory separators or extension."""
    flat = re.sub(r"[/\\]+", " ", str(filename or ""))
    return re.sub(r"\.[^/.]+$", "", flat)


def _timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%SZ")


def propose_base_name(
    filename: Optional[str],
    index: int,
    total: int,
    custom_name: str = "",
    now: Optional[datetime] = None,
) -> str:
    """
    Custom name (numbered when the call carries several files), else
    <prefix>_<original stem>_<timestamp>, else <prefix>_<position in the batch>.
    index is zero based.
    """
    custom = sanitize_base_name(custom_name)
    if custom:
        return f"{custom}_{index + 1}" if total > 1 else custom
    stem = sanitize_base_name(original_stem(filename))
    if stem:
        return f"{OUTPUT_NAME_PREFIX}_{stem}_{_timestamp(now)}"
    return f"{OUTPUT_NAME_PREFIX}_{index + 1}"


def _candidate_names(base: str, ext: str):
    yield f"{base}.{ext}"
    counter = 2
    while True:
        yield f"{base}-{counter}.{ext}"
        counter += 1


def publish_output(temp_path: Path, output_dir: Path, base: str, ext: str) -> Path:
    """
    Expose a finished encode under its final name. os.link fails if the name exists,
    so two requests can never claim the same name; the temp file is removed after.
    """
    try:
        for candidate in _candidate_names(base, ext):
            final = output_dir / candidate
            try:
                os.link(temp_path, final)
            except FileExistsError:
                continue
            except OSError as e:
                raise StorageError(f"Could not publish {candidate}: {e}") from e
            logger.info("Published %s", final.name)
            return final
    finally:
        temp_path.unlink(missing_ok=True)


def temp_output_path(output_dir: Path) -> Path:
    """Dot-prefixed name that listing and download never expose."""
    return output_dir / f".{uuid.uuid4().hex}.partial"


def stage_upload(stream: BinaryIO, filename: str, input_dir: Path, max_bytes: int) -> Path:
    """Copy an upload into input_dir under a fresh unique name, enforcing max_bytes on actual bytes."""
    ext = Path(filename).suffix.lower()
    dest = input_dir / f"{uuid.uuid4()}{ext}"
    max_mb = max_bytes // (1024 * 1024)
    total = 0
    try:
        with open(dest, "wb") as f:
            while chunk := stream.read(UPLOAD_CHUNK_BYTES):
                total += len(chunk)
                if total > max_bytes:
                    raise ValidationError(f"File exceeds {max_mb} MB limit: {filename}")
                f.write(chunk)
    except BaseException:
        dest.unlink(missing_ok=True)
        raise
    logger.debug("Staged %s as %s (%s bytes)", filename, dest.name, total)
    return dest


def discard(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        if path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


def _iso_mtime(mtime: float) -> str:
    return datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def describe_output(path: Path) -> dict:
    st = path.stat()
    return {
        "name": path.name,
        "size": st.st_size,
        "date": _iso_mtime(st.st_mtime),
        "downloadUrl": download_url(path.name),
    }


def list_videos(output_dir: Path) -> list[dict]:
    """Every finished video in output_dir, newest first."""
    if not output_dir.is_dir():
        return []
    entries = []
    for f in output_dir.iterdir():
        if f.name.startswith(".") or f.suffix.lower() not in VIDEO_EXTENSIONS:
            continue
        try:
            if f.is_file():
                entries.append((f.stat().st_mtime_ns, describe_output(f)))
        except OSError as e:
            # Removed by housekeeping between iterdir() and stat()
            logger.debug("Skipping %s: %s", f.name, e)
    # isoformat() omits zero microseconds, so the date strings do not sort
    entries.sort(key=lambda e: e[0], reverse=True)
    return [entry for _, entry in entries]
