from __future__ import annotations

"""Duration formatting for prompts, summaries and spreadsheet rows."""

import math


def format_duration(seconds: int) -> str:
    """``135`` -> ``"2 phút 15 giây"``."""
    s = max(0, int(seconds))
    return f"{s // 60} phút {s % 60} giây"


def format_clock(seconds: int) -> str:
    """``135`` -> ``"02:15"`` (countdown display)."""
    s = max(0, int(seconds))
    return f"{s // 60:02d}:{s % 60:02d}"


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))
