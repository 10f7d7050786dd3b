"""Serving output artifacts: path resolution, caching headers, attachments and byte ranges."""
import logging
import re
from dataclasses import dataclass
from email.utils import formatdate
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import quote

from starlette.responses import Response, StreamingResponse

from vicom.errors import ArtifactNotFound, EmptyArtifact, RangeNotSatisfiable

logger = logging.getLogger("vicom.delivery")

CHUNK_SIZE = 64 * 1024

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".m4v": "video/x-m4v",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".ogg": "video/ogg",
}

_RANGE = re.compile(r"^bytes=(\d*)-(\d*)$")
_NON_PRINTABLE_ASCII = re.compile(r'[^\x20-\x7e]|["\\]')


@dataclass(frozen=True)
class DownloadTarget:
    name: str
    path: Path
    size: int
    mtime_ns: int

    @property
    def content_type(self) -> str:
        return content_type_for(self.name)

    @property
    def etag(self) -> str:
        return f'W/"{self.mtime_ns // 1_000_000}-{self.size}"'

    @property
    def last_modified(self) -> str:
        return formatdate(self.mtime_ns / 1e9, usegmt=True)


def content_type_for(filename: str) -> str:
    return MIME_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def safe_name(requested: str) -> str:
    """Drop any directory component, whichever separator the client used."""
    return re.split(r"[/\\]", requested or "")[-1]


def resolve_target(requested: str, output_dir: Path) -> DownloadTarget:
    name = safe_name(requested)
    # Dot-files are in-progress encodes
    if not name or name.startswith("."):
        raise ArtifactNotFound("File not found")
    path = output_dir / name
    try:
        st = path.stat()
    except FileNotFoundError:
        raise ArtifactNotFound("File not found") from None
    if not path.is_file():
        raise ArtifactNotFound("File not found")
    return DownloadTarget(name=name, path=path, size=st.st_size, mtime_ns=st.st_mtime_ns)


def parse_range(header: str, size: int) -> tuple[int, int]:
    """
    Strict "bytes=start-end". Empty start means 0, empty end means end of file,
    an end past the file is clamped. Anything else raises RangeNotSatisfiable.
    """
    m = _RANGE.match(header.strip())
    if not m:
        raise RangeNotSatisfiable(f"Malformed range: {header}", size)
    start = int(m.group(1)) if m.group(1) else 0
    end = int(m.group(2)) if m.group(2) else size - 1
    if end >= size:
        end = size - 1
    if start > end or start >= size:
        raise RangeNotSatisfiable(f"Range {header} outside 0-{size - 1}", size)
    return start, end


def encode_rfc5987(value: str) -> str:
    """Percent-encoding for filename*=UTF-8''..., same unreserved set as encodeURIComponent minus '()*."""
    return quote(value, safe="!~")


def content_disposition(filename: str) -> str:
    ascii_fallback = _NON_PRINTABLE_ASCII.sub("_", filename)
    return f"attachment; filename=\"{ascii_fallback}\"; filename*=UTF-8''{encode_rfc5987(filename)}"


def base_headers(target: DownloadTarget, length: int) -> dict[str, str]:
    return {
        "Content-Length": str(length),
        "Content-Type": target.content_type,
        "Accept-Ranges": "bytes",
        "Cache-Control": "no-store",
        "ETag": target.etag,
        "Last-Modified": target.last_modified,
        "X-Content-Type-Options": "nosniff",
    }


def iter_file(path: Path, start: int = 0, length: Optional[int] = None) -> Iterator[bytes]:
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining is None or remaining > 0:
            chunk = f.read(CHUNK_SIZE if remaining is None else min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            if remaining is not None:
                remaining -= len(chunk)
            yield chunk


def head_response(target: DownloadTarget) -> Response:
    if target.size == 0:
        raise EmptyArtifact("File is empty")
    return Response(status_code=200, headers=base_headers(target, target.size))


def range_not_satisfiable_response(size: int) -> Response:
    return Response(status_code=416, headers={"Content-Range": f"bytes */{size}"})


def file_response(target: DownloadTarget, range_header: Optional[str] = None, force_download: bool = False) -> Response:
    """200 inline, 200 attachment (ignores Range), 206 partial, or 416."""
    if target.size == 0:
        # A zero-byte artifact is an encode failure nobody caught
        raise EmptyArtifact("File is empty")

    if force_download:
        headers = base_headers(target, target.size)
        headers["Content-Disposition"] = content_disposition(target.name)
        return StreamingResponse(iter_file(target.path), status_code=200, headers=headers, media_type=target.content_type)

    if range_header:
        try:
            start, end = parse_range(range_header, target.size)
        except RangeNotSatisfiable as e:
            logger.debug("416 for %s: %s", target.name, e)
            return range_not_satisfiable_response(e.size)
        length = end - start + 1
        headers = base_headers(target, length)
        headers["Content-Range"] = f"bytes {start}-{end}/{target.size}"
        return StreamingResponse(
            iter_file(target.path, start, length), status_code=206, headers=headers, media_type=target.content_type,
        )

    return StreamingResponse(
        iter_file(target.path), status_code=200, headers=base_headers(target, target.size), media_type=target.content_type,
    )
