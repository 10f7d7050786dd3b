"""Tests for the encoder subprocess runner, using the Python interpreter as a stand-in encoder."""
import sys
import threading
import time
from pathlib import Path

import pytest

from vicom.errors import EncodeCancelled, EncodeError
from vicom.transcode.runner import FFmpegRunner


def test_success(tmp_path: Path) -> None:
    out = tmp_path / "out"
    script = f"open({str(out)!r}, 'wb').write(b'ok')"
    FFmpegRunner(poll_interval=0.05).run([sys.executable, "-c", script], out)
    assert out.read_bytes() == b"ok"


def test_nonzero_exit(tmp_path: Path) -> None:
    out = tmp_path / "out"
    script = f"import sys; open({str(out)!r}, 'wb').write(b'partial'); sys.stderr.write('bad input'); sys.exit(3)"
    with pytest.raises(EncodeError) as exc:
        FFmpegRunner(poll_interval=0.05).run([sys.executable, "-c", script], out)
    assert exc.value.returncode == 3
    assert "bad input" in exc.value.stderr
    assert not out.exists()


def test_cancel_stops_process(tmp_path: Path) -> None:
    out = tmp_path / "out"
    cancel = threading.Event()
    threading.Timer(0.2, cancel.set).start()
    started = time.monotonic()
    with pytest.raises(EncodeCancelled):
        FFmpegRunner(poll_interval=0.05).run([sys.executable, "-c", "import time; time.sleep(30)"], out, cancel_event=cancel)
    assert time.monotonic() - started < 10


def test_timeout(tmp_path: Path) -> None:
    with pytest.raises(EncodeError, match="timed out"):
        FFmpegRunner(timeout=0.2, poll_interval=0.05).run(
            [sys.executable, "-c", "import time; time.sleep(30)"], tmp_path / "out",
        )


def test_missing_binary(tmp_path: Path) -> None:
    with pytest.raises(EncodeError, match="not installed"):
        FFmpegRunner().run(["/definitely/not/ffmpeg"], tmp_path / "out")
