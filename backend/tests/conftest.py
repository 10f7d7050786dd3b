"""Shared fixtures: isolated directories, fake ffprobe/ffmpeg collaborators, API client."""
from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from vicom.errors import EncodeError, ProbeError
from vicom.main import app
from vicom.transcode.service import TranscodeService, get_transcode_service


class FakeProber:
    """Returns a fixed duration (or fails when duration is None)."""

    def __init__(self, duration: Optional[float] = 120.0):
        self.duration = duration
        self.calls: list[Path] = []

    def duration_seconds(self, path) -> float:
        self.calls.append(Path(path))
        if self.duration is None:
            raise ProbeError("Failed to read video duration (file may be corrupted/unsupported).")
        return self.duration


class FakeRunner:
    """Writes payload to the output path instead of encoding. Fails on the call indices in fail_calls."""

    def __init__(self, payload: bytes = b"\x00" * 1000):
        self.payload = payload
        self.calls: list[list[str]] = []
        self.staged_inputs: list[Path] = []
        self.fail_calls: set[int] = set()

    def run(self, args, output_path, cancel_event=None) -> None:
        call_number = len(self.calls)
        self.calls.append(list(args))
        self.staged_inputs.append(Path(args[args.index("-i") + 1]))
        if call_number in self.fail_calls:
            raise EncodeError("Error during compression. Please try again.", returncode=1)
        Path(output_path).write_bytes(self.payload)


@pytest.fixture
def input_dir(tmp_path: Path) -> Path:
    d = tmp_path / "input"
    d.mkdir()
    return d


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    d = tmp_path / "temp"
    d.mkdir()
    return d


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def service(input_dir: Path, output_dir: Path, prober: FakeProber, runner: FakeRunner) -> TranscodeService:
    return TranscodeService(input_dir=input_dir, output_dir=output_dir, prober=prober, runner=runner)


@pytest.fixture
def api_client(service: TranscodeService):
    """FastAPI client with the transcode service replaced by one wired to fakes."""
    app.dependency_overrides[get_transcode_service] = lambda: service
    client = TestClient(app)
    yield client
    app.dependency_overrides.pop(get_transcode_service, None)
