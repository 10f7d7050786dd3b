"""Tests for the bitrate planner."""
import math

import pytest

from vicom.transcode.bitrate import (
    MAX_VIDEO_KBPS,
    MIN_VIDEO_KBPS,
    calculate_video_bitrate_kbps,
    plan_bitrate,
    target_size_bytes,
)


def test_ten_megabytes_over_two_minutes() -> None:
    target = 10 * 1024 * 1024
    expected = math.floor((target * 8 - 96000 * 120) / 120 / 1000)
    assert calculate_video_bitrate_kbps(target, 120, 96) == expected == 603


@pytest.mark.parametrize(
    "target_bytes,duration,audio",
    [
        (1, 0.001, 96),
        (1, 10_000, 96),
        (10 * 1024 * 1024, 120, 96),
        (5 * 1024 ** 3, 0.5, 0),
        (1024, 3600, 320),
    ],
)
def test_result_is_always_clamped(target_bytes: int, duration: float, audio: int) -> None:
    kbps = calculate_video_bitrate_kbps(target_bytes, duration, audio)
    assert MIN_VIDEO_KBPS <= kbps <= MAX_VIDEO_KBPS


def test_audio_larger_than_budget_hits_floor() -> None:
    assert calculate_video_bitrate_kbps(1024 * 1024, 600, 96) == MIN_VIDEO_KBPS


def test_tiny_duration_hits_ceiling() -> None:
    assert calculate_video_bitrate_kbps(25 * 1024 * 1024, 0.01, 96) == MAX_VIDEO_KBPS


def test_monotonic_in_size_and_duration() -> None:
    sizes = [s * 1024 * 1024 for s in (1, 2, 5, 10, 25, 50)]
    by_size = [calculate_video_bitrate_kbps(s, 300, 96) for s in sizes]
    assert by_size == sorted(by_size)

    durations = [30, 60, 120, 300, 600]
    by_duration = [calculate_video_bitrate_kbps(50 * 1024 * 1024, d, 96) for d in durations]
    assert by_duration == sorted(by_duration, reverse=True)


@pytest.mark.parametrize("duration", [0, -1.0, float("nan")])
def test_rejects_non_positive_duration(duration: float) -> None:
    with pytest.raises(ValueError):
        calculate_video_bitrate_kbps(1024, duration, 96)


def test_plan_uses_mebibytes() -> None:
    plan = plan_bitrate(10, 120, 96)
    assert plan.target_bytes == 10 * 1024 * 1024
    assert plan.duration_seconds == 120
    assert plan.video_bitrate_kbps == 603


def test_target_size_bytes_never_zero() -> None:
    assert target_size_bytes(0) == 1
    assert target_size_bytes(1.5) == 1572864
