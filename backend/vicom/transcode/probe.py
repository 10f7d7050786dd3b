"""Clip duration via ffprobe: container duration first, first video stream as fallback."""
import logging
import math
import subprocess
from pathlib import Path
from typing import Optional, Union

from vicom.config import FFPROBE_BIN, PROBE_TIMEOUT
from vicom.errors import ProbeError, ToolUnavailable

logger = logging.getLogger("vicom.probe")

# Each query prints a bare number (or "N/A") on stdout
DURATION_QUERIES = (
    ("-show_entries", "format=duration"),
    ("-select_streams", "v:0", "-show_entries", "stream=duration"),
)


def parse_duration(output: str) -> Optional[float]:
    """First line of ffprobe output as a finite positive float, else None."""
    text = (output or "").strip().splitlines()
    if not text:
        return None
    try:
        value = float(text[0].strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


class DurationProber:
    def __init__(self, ffprobe_bin: str = FFPROBE_BIN, timeout: int = PROBE_TIMEOUT):
        self.ffprobe_bin = ffprobe_bin
        self.timeout = timeout

    def _command(self, query: tuple[str, ...], path: Path) -> list[str]:
        return [self.ffprobe_bin, "-v", "error", *query, "-of", "default=nk=1:nw=1", str(path)]

    def _run(self, cmd: list[str]) -> str:
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            logger.error("ffprobe not found at %s. Install ffmpeg to read video durations.", self.ffprobe_bin)
            raise ToolUnavailable("ffprobe not installed") from None
        except subprocess.TimeoutExpired:
            logger.warning("ffprobe timed out after %ss: %s", self.timeout, cmd[-1])
            return ""
        if result.returncode != 0:
            logger.debug("ffprobe exited %s for %s: %s", result.returncode, cmd[-1], result.stderr.strip())
            return ""
        return result.stdout

    def duration_seconds(self, path: Union[str, Path]) -> float:
        """Raises ProbeError if neither query yields a finite positive duration."""
        path = Path(path)
        for query in DURATION_QUERIES:
            value = parse_duration(self._run(self._command(query, path)))
            if value is not None:
                logger.debug("Duration of %s: %.3fs (%s)", path.name, value, query[-1])
                return value
        raise ProbeError("Failed to read video duration (file may be corrupted/unsupported).")
