"""Tests for the compression, listing and metadata endpoints."""
from pathlib import Path

from fastapi.testclient import TestClient


def _files(*names: str) -> list[tuple[str, tuple[str, bytes, str]]]:
    return [("files", (name, b"fake-video-bytes", "video/mp4")) for name in names]


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_formats_presets_limits(api_client: TestClient) -> None:
    formats = api_client.get("/api/formats").json()
    assert formats["output"] == ["mp4", "webm", "mkv", "av1"]
    assert "mov" in formats["input"]
    presets = api_client.get("/api/presets").json()
    assert presets["discord"] == 10
    assert presets["whatsapp"] == 16
    limits = api_client.get("/api/limits").json()
    assert limits["batch"]["max_file_size_mb"] == 500
    assert limits["compress"]["max_file_size_mb"] == 5120


def test_compress_and_download(api_client: TestClient, runner, input_dir: Path) -> None:
    response = api_client.post(
        "/api/compress",
        files=_files("holiday.mp4"),
        data={"format": "mp4", "size": "10", "preset": "custom"},
    )
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["message"] == "Video compressed successfully!"
    entry = payload["files"][0]
    assert entry["name"].endswith(".mp4")
    args = runner.calls[0]
    assert args[args.index("-maxrate") + 1] == "603k"
    assert list(input_dir.iterdir()) == []

    download = api_client.get(entry["downloadUrl"])
    assert download.status_code == 200
    assert len(download.content) == len(runner.payload)
    assert download.headers["content-length"] == str(len(runner.payload))


def test_compress_form_options(api_client: TestClient, runner) -> None:
    response = api_client.post(
        "/api/compress",
        files=_files("a.mov"),
        data={
            "format": "mkv",
            "preserveMetadata": "true",
            "preserveSubtitles": "true",
            "enhancement": "noise-reduction",
            "trimStart": "0",
            "trimEnd": "30.9",
            "customName": "My Cut",
        },
    )
    assert response.status_code == 200, response.text
    assert response.json()["files"][0]["name"] == "My Cut.mkv"
    args = runner.calls[0]
    assert args[args.index("-to") + 1] == "30"
    assert args[args.index("-vf") + 1] == "hqdn3d"
    assert args[args.index("-map_metadata") + 1] == "0"


def test_compress_requires_files(api_client: TestClient) -> None:
    response = api_client.post("/api/compress", data={"format": "mp4"})
    assert response.status_code == 400
    assert "No files" in response.json()["detail"]


def test_compress_rejects_unknown_format(api_client: TestClient, runner) -> None:
    response = api_client.post("/api/compress", files=_files("a.mp4"), data={"format": "gif"})
    assert response.status_code == 400
    assert "Unsupported format" in response.json()["detail"]
    assert runner.calls == []


def test_compress_rejects_trim_past_end(api_client: TestClient, runner) -> None:
    response = api_client.post(
        "/api/compress", files=_files("a.mp4"), data={"trimStart": "10", "trimEnd": "130"},
    )
    assert response.status_code == 400
    assert "trim" in response.json()["detail"]
    assert runner.calls == []


def test_compress_unreadable_duration(api_client: TestClient, prober) -> None:
    prober.duration = None
    response = api_client.post("/api/compress", files=_files("a.mp4"))
    assert response.status_code == 400
    assert "duration" in response.json()["detail"]


def test_compress_encode_failure(api_client: TestClient, runner) -> None:
    runner.fail_calls = {0}
    response = api_client.post("/api/compress", files=_files("a.mp4", "b.mp4"))
    assert response.status_code == 500
    assert len(runner.calls) == 1


def test_batch_partial_success(api_client: TestClient, runner) -> None:
    runner.fail_calls = {0}
    response = api_client.post("/api/batch", files=_files("a.mp4", "b.webm", "c.gif"), data={"format": "webm"})
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["succeeded"] == 1
    assert payload["failedCount"] == 2
    assert [f["filename"] for f in payload["failed"]] == ["a.mp4", "c.gif"]
    assert payload["files"][0]["name"].endswith(".webm")
    assert "1 succeeded, 2 failed" in payload["message"]


def test_batch_all_failed(api_client: TestClient) -> None:
    response = api_client.post("/api/batch", files=_files("a.txt"))
    assert response.status_code == 400
    assert response.json()["succeeded"] == 0


def test_videos_lists_outputs(api_client: TestClient, output_dir: Path) -> None:
    api_client.post("/api/compress", files=_files("a.mp4"), data={"customName": "first"})
    (output_dir / "readme.txt").write_text("not a video")
    listing = api_client.get("/api/videos").json()
    assert [v["name"] for v in listing] == ["first.mp4"]
    assert set(listing[0]) == {"name", "size", "date", "downloadUrl"}


def test_compress_zero_trim_means_whole_clip(api_client: TestClient, runner) -> None:
    response = api_client.post(
        "/api/compress", files=_files("a.mp4"), data={"trimStart": "0", "trimEnd": "0", "size": "10"},
    )
    assert response.status_code == 200, response.text
    args = runner.calls[0]
    assert "-ss" not in args
    assert "-to" not in args
    assert args[args.index("-maxrate") + 1] == "603k"


def test_compress_rejects_non_finite_size(api_client: TestClient, runner) -> None:
    response = api_client.post("/api/compress", files=_files("a.mp4"), data={"size": "inf"})
    assert response.status_code == 400, response.text
    assert "finite" in response.json()["detail"]
    assert runner.calls == []
