"""
Engine progress parsing.

The engine is started with `-progress pipe:1`, so stdout carries key=value
lines such as:

    out_time=00:00:50.000000
    progress=continue

We read two keys:
- duration=HH:MM:SS.ffffff -> total duration of the input
- out_time=HH:MM:SS.ffffff -> current output position

ffmpeg itself only announces the input duration in its stderr banner
(`Duration: 00:01:40.00, start: 0.000000, bitrate: ...`), so that line is
accepted as a duration declaration as well.

Percentage contract:

    percent = min(90, round(position / duration * 80) + 10)

10 is the floor once processing starts and 90 the ceiling until the process
actually exits; 100 is only ever set on completion. `round` is half-up.
Any value we cannot read is "unknown" (None), never an error.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple

DURATION_KEY = "duration"
POSITION_KEY = "out_time"

# Matches: Duration: 00:01:40.00, start: ...
DURATION_BANNER_PATTERN = re.compile(r"Duration:\s*(\d+:\d{2}:\d{2}(?:\.\d+)?)")

NOT_AVAILABLE = "N/A"


def parse_time(value: Optional[str]) -> Optional[float]:
    """Convert HH:MM:SS.ffffff to seconds. Returns None for N/A or garbage."""
    if not value:
        return None
    value = value.strip()
    if value == NOT_AVAILABLE or value.startswith("-"):
        return None

    parts = value.split(":")
    if len(parts) != 3:
        return None
    try:
        hours, minutes, seconds = (float(p) for p in parts)
    except ValueError:
        return None

    total = hours * 3600 + minutes * 60 + seconds
    if not math.isfinite(total) or total < 0:
        return None
    return total


def parse_progress_line(line: str) -> Optional[Tuple[str, Optional[float]]]:
    """Parse one progress-stream line.

    Returns (key, seconds) for duration/out_time lines, where seconds may be
    None if the value is unreadable. Returns None for every other line.
    """
    key, sep, value = line.strip().partition("=")
    if not sep or key not in (DURATION_KEY, POSITION_KEY):
        return None
    return key, parse_time(value)


def parse_duration_banner(line: str) -> Optional[float]:
    """Pick the input duration out of a diagnostic-stream banner line."""
    match = DURATION_BANNER_PATTERN.search(line)
    if not match:
        return None
    return parse_time(match.group(1))


def compute_percent(position: Optional[float], duration: Optional[float]) -> Optional[int]:
    if position is None or not duration or duration <= 0:
        return None
    scaled = math.floor((position / duration) * 80 + 0.5)
    return min(90, scaled + 10)


@dataclass
class ProgressTracker:
    """Last known duration/position for one job."""

    duration: Optional[float] = None
    position: Optional[float] = None

    def feed_progress(self, line: str) -> Optional[int]:
        """
        Consume a progress-stream line.

        Returns a new percentage when the line moved the position and the
        duration is known, otherwise None. Unknown values leave the
        previous state untouched.
        """
        parsed = parse_progress_line(line)
        if parsed is None:
            return None
        key, seconds = parsed
        if seconds is None:
            return None
        if key == DURATION_KEY:
            self.duration = seconds
            return None
        self.position = seconds
        return compute_percent(self.position, self.duration)

    def feed_diagnostic(self, line: str) -> None:
        if self.duration is not None:
            return
        seconds = parse_duration_banner(line)
        if seconds:
            self.duration = seconds
