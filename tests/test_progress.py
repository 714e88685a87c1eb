import pytest

from ffmpeg_jobs.jobs.progress import (
    ProgressTracker,
    compute_percent,
    parse_duration_banner,
    parse_progress_line,
    parse_time,
)


def test_parse_time_converts_to_seconds():
    assert parse_time("00:01:40.000000") == 100.0
    assert parse_time("01:00:00.5") == 3600.5


@pytest.mark.parametrize("value", ["N/A", "", None, "garbage", "00:10", "aa:bb:cc", "-00:00:01.0"])
def test_parse_time_unknown_values_are_none(value):
    assert parse_time(value) is None


def test_parse_progress_line_recognises_both_keys():
    assert parse_progress_line("duration=00:01:40.000000") == ("duration", 100.0)
    assert parse_progress_line("out_time=00:00:50.000000\n") == ("out_time", 50.0)
    assert parse_progress_line("out_time=N/A") == ("out_time", None)
    assert parse_progress_line("frame=120") is None
    assert parse_progress_line("progress=continue") is None


def test_compute_percent_half_way_is_fifty():
    # min(90, round(0.5 * 80) + 10)
    assert compute_percent(50.0, 100.0) == 50


def test_compute_percent_floor_and_ceiling():
    assert compute_percent(0.0, 100.0) == 10
    assert compute_percent(100.0, 100.0) == 90
    assert compute_percent(250.0, 100.0) == 90


def test_compute_percent_rounds_half_up():
    # 5 / 32 * 80 = 12.5 -> 13
    assert compute_percent(5.0, 32.0) == 23


def test_compute_percent_unknown_inputs():
    assert compute_percent(None, 100.0) is None
    assert compute_percent(10.0, None) is None
    assert compute_percent(10.0, 0.0) is None


def test_duration_banner():
    line = "  Duration: 00:00:10.00, start: 0.000000, bitrate: 1205 kb/s"
    assert parse_duration_banner(line) == 10.0
    assert parse_duration_banner("Duration: N/A, bitrate: N/A") is None
    assert parse_duration_banner("Stream #0:0: Video: h264") is None


def test_tracker_reports_after_duration_and_position():
    tracker = ProgressTracker()
    assert tracker.feed_progress("duration=00:01:40.000000") is None
    assert tracker.feed_progress("out_time=00:00:50.000000") == 50


def test_tracker_without_duration_reports_nothing():
    tracker = ProgressTracker()
    assert tracker.feed_progress("out_time=00:00:50.000000") is None
    assert tracker.position == 50.0


def test_tracker_ignores_unknown_values():
    tracker = ProgressTracker()
    tracker.feed_progress("duration=00:01:40.000000")
    tracker.feed_progress("out_time=00:00:20.000000")
    assert tracker.feed_progress("out_time=N/A") is None
    assert tracker.feed_progress("duration=broken") is None
    assert tracker.duration == 100.0
    assert tracker.position == 20.0


def test_tracker_takes_duration_from_banner():
    tracker = ProgressTracker()
    tracker.feed_diagnostic("  Duration: 00:00:20.00, start: 0.000000, bitrate: 1 kb/s")
    assert tracker.feed_progress("out_time=00:00:10.000000") == 50
