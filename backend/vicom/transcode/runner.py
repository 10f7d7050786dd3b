"""Runs the encoder subprocess with a cancellation path."""
import logging
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional

from vicom.config import ENCODE_POLL_INTERVAL, ENCODE_TIMEOUT
from vicom.errors import EncodeCancelled, EncodeError

logger = logging.getLogger("vicom.transcode.runner")

STDERR_TAIL_BYTES = 4000
TERMINATE_GRACE_SECONDS = 5


class FFmpegRunner:
    """Blocks until ffmpeg exits. Non-zero exit raises EncodeError; a set cancel_event stops it."""

    def __init__(self, timeout: Optional[float] = ENCODE_TIMEOUT, poll_interval: float = ENCODE_POLL_INTERVAL):
        self.timeout = timeout
        self.poll_interval = poll_interval

    @staticmethod
    def _stop(proc: subprocess.Popen) -> None:
        proc.terminate()
        try:
            proc.wait(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()

    def run(self, args: list[str], output_path: Path, cancel_event: Optional[threading.Event] = None) -> None:
        started = time.monotonic()
        # stderr goes to a file: a pipe could fill up while we poll
        with tempfile.TemporaryFile() as err:
            try:
                proc = subprocess.Popen(args, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=err)
            except FileNotFoundError:
                logger.error("ffmpeg not found at %s. Install ffmpeg for video compression.", args[0])
                raise EncodeError("ffmpeg not installed") from None
            try:
                while True:
                    try:
                        returncode = proc.wait(timeout=self.poll_interval)
                        break
                    except subprocess.TimeoutExpired:
                        pass
                    if cancel_event is not None and cancel_event.is_set():
                        self._stop(proc)
                        raise EncodeCancelled("Encoding cancelled")
                    if self.timeout is not None and time.monotonic() - started > self.timeout:
                        self._stop(proc)
                        raise EncodeError(f"Encoding timed out after {self.timeout:.0f}s")
            except EncodeError:
                output_path.unlink(missing_ok=True)
                raise
            if returncode != 0:
                err.seek(0)
                stderr = err.read()[-STDERR_TAIL_BYTES:].decode("utf-8", errors="replace").strip()
                output_path.unlink(missing_ok=True)
                logger.error("ffmpeg exited with %s: %s", returncode, stderr)
                raise EncodeError("Error during compression. Please try again.", returncode=returncode, stderr=stderr)
        logger.debug("ffmpeg finished in %.1fs", time.monotonic() - started)
