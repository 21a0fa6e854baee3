"""Date and window helpers shared by summaries, analytics and metrics."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)

MIN_WINDOW_HOURS = 1
MAX_WINDOW_HOURS = 168
DEFAULT_WINDOW_HOURS = 24


@dataclass(slots=True, frozen=True)
class HourWindow:
    start: datetime
    end: datetime

    @property
    def label(self) -> str:
        return self.start.strftime("%H:%M")


def clamp_window_hours(window_hours: float) -> int:
    try:
        value = float(window_hours)
    except (TypeError, ValueError):
        value = DEFAULT_WINDOW_HOURS
    if not math.isfinite(value):
        value = DEFAULT_WINDOW_HOURS
    return min(max(int(round(value)), MIN_WINDOW_HOURS), MAX_WINDOW_HOURS)


def build_hour_windows(window_start: datetime, hours: int) -> list[HourWindow]:
    return [
        HourWindow(start=window_start + idx * HOUR, end=window_start + (idx + 1) * HOUR)
        for idx in range(hours)
    ]


def overlap_seconds(
    start: datetime, end: datetime, window_start: datetime, window_end: datetime
) -> float:
    lower = max(start, window_start)
    upper = min(end, window_end)
    return max(0.0, (upper - lower).total_seconds())


def floor_to_hour(value: datetime) -> datetime:
    return value.replace(minute=0, second=0, microsecond=0)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def day_key(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def parse_day_key(key: str) -> datetime:
    return datetime.strptime(key, "%Y-%m-%d")
