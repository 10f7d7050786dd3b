"""Tests for capability probing."""
import io
import sys

from PIL import Image

from vicom.tools import PNG_SIGNATURE, background_removal_health, binary_candidates, probe_candidates, tiny_png


def test_first_working_candidate_wins() -> None:
    result = probe_candidates(
        [["/no/such/binary"], [sys.executable, "-c", "import sys; sys.exit(2)"], [sys.executable, "-c", "print('hi')"]],
    )
    assert result.ok
    assert result.selected == [sys.executable, "-c", "print('hi')"]
    assert [a.ok for a in result.attempts] == [False, False, True]
    assert "exit 2" in result.attempts[1].detail
    assert result.output.strip() == b"hi"


def test_all_candidates_fail() -> None:
    result = probe_candidates([["/no/such/binary"]], args=["-version"])
    assert not result.ok
    assert result.selected is None
    assert result.to_dict()["attempts"][0]["candidate"] == "/no/such/binary"


def test_accept_filters_output() -> None:
    result = probe_candidates([[sys.executable, "-c", "print('nope')"]], accept=lambda out: out.startswith(b"yes"))
    assert not result.ok
    assert result.attempts[0].detail == "unexpected output"


def test_binary_candidates_dedupe() -> None:
    candidates = binary_candidates("ffmpeg", "/usr/bin/ffmpeg")
    flat = [c[0] for c in candidates]
    assert flat[0] == "/usr/bin/ffmpeg"
    assert len(flat) == len(set(flat))


def test_tiny_png() -> None:
    data = tiny_png()
    assert data.startswith(PNG_SIGNATURE)
    with Image.open(io.BytesIO(data)) as img:
        assert img.size == (1, 1)


def test_background_removal_health_with_echo_helper(tmp_path) -> None:
    helper = tmp_path / "echo_helper.py"
    helper.write_text("import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())")
    report = background_removal_health(python_bin=sys.executable, helper=str(helper), models_dir=str(tmp_path))
    assert report["ok"]
    assert report["result"] == "PNG_OK"
    assert report["modelsDir"] == str(tmp_path)


def test_background_removal_health_failure(tmp_path) -> None:
    report = background_removal_health(python_bin="/no/python", helper="/no/helper.py", models_dir=str(tmp_path))
    assert not report["ok"]
    assert report["attempts"][0]["ok"] is False
