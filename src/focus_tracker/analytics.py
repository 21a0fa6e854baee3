"""Default analytics provider computed from the persisted activity timeline."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional, Protocol

from .config import is_suppressed
from .models import (
    CATEGORIES,
    FRIVOLITY,
    NEUTRAL,
    PRODUCTIVE,
    ActivityRecord,
    AnalyticsOverview,
    HourOfDayStats,
)
from .normalization import canonical_domain, context_key
from .timeutil import DAY, HOUR, floor_to_hour, overlap_seconds

logger = logging.getLogger(__name__)

DEFAULT_PEAK_HOUR = 9
DEFAULT_RISK_HOUR = 15
DEFAULT_PRODUCTIVITY_SCORE = 50


class RecordSource(Protocol):
    def query_records(self, since: Optional[datetime] = None) -> list[ActivityRecord]: ...


@dataclass(slots=True, frozen=True)
class ClippedRecord:
    record: ActivityRecord
    category: str
    suppressed: bool
    overlap_start: datetime
    overlap_end: datetime
    active: float
    idle: float

    def hour_slices(self) -> Iterator[tuple[datetime, float]]:
        """Yield ``(hour_start, fraction)`` for every clock hour the overlap touches."""
        span = (self.overlap_end - self.overlap_start).total_seconds()
        if span <= 0:
            return
        hour_start = floor_to_hour(self.overlap_start)
        while hour_start < self.overlap_end:
            share = overlap_seconds(
                self.overlap_start, self.overlap_end, hour_start, hour_start + HOUR
            )
            if share > 0:
                yield hour_start, share / span
            hour_start += HOUR


class ActivityAnalytics:
    """Seven-day overview and hour-of-day aggregates."""

    def __init__(
        self,
        records: RecordSource,
        get_excluded_keywords: Optional[Callable[[], list[str]]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._records = records
        self._get_excluded_keywords = get_excluded_keywords or (lambda: [])
        self._clock = clock

    def get_overview(self, days: int = 7) -> AnalyticsOverview:
        clipped = self._clipped(days)

        total_active = 0.0
        category_totals: dict[str, float] = {name: 0.0 for name in CATEGORIES}
        category_totals["idle"] = 0.0
        domain_totals: dict[str, float] = defaultdict(float)
        hourly_productive: dict[int, float] = defaultdict(float)
        hourly_frivolity: dict[int, float] = defaultdict(float)

        for item in clipped:
            total_active += item.active
            category_totals["idle"] += item.idle
            category_totals[item.category] += item.active
            if not item.suppressed:
                key = context_key(item.record.domain, item.record.app_name)
                domain_totals[key] += item.active
            for hour_start, fraction in item.hour_slices():
                if item.category == PRODUCTIVE:
                    hourly_productive[hour_start.hour] += item.active * fraction
                elif item.category == FRIVOLITY:
                    hourly_frivolity[hour_start.hour] += item.active * fraction

        categorised = sum(category_totals[name] for name in CATEGORIES)
        score = (
            round(category_totals[PRODUCTIVE] / categorised * 100)
            if categorised > 0
            else DEFAULT_PRODUCTIVITY_SCORE
        )
        session_count = len(clipped)

        return AnalyticsOverview(
            period_days=days,
            total_active_hours=round(total_active / 3600, 1),
            productivity_score=score,
            peak_productive_hour=_peak(hourly_productive, DEFAULT_PEAK_HOUR),
            risk_hour=_peak(hourly_frivolity, DEFAULT_RISK_HOUR),
            top_engagement_domain=_peak(domain_totals, None),
            total_sessions=session_count,
            avg_session_length=round(total_active / session_count) if session_count else 0,
            focus_trend=_focus_trend(clipped),
            category_breakdown=category_totals,
        )

    def get_time_of_day(self, days: int = 7) -> list[HourOfDayStats]:
        buckets = [HourOfDayStats(hour=hour) for hour in range(24)]
        for item in self._clipped(days):
            for hour_start, fraction in item.hour_slices():
                bucket = buckets[hour_start.hour]
                bucket.idle += item.idle * fraction
                setattr(bucket, item.category, getattr(bucket, item.category) + item.active * fraction)
        return buckets

    def _clipped(self, days: int) -> list[ClippedRecord]:
        range_end = self._clock()
        range_start = range_end - max(1, int(days)) * DAY
        keywords = self._excluded_keywords()
        clipped: list[ClippedRecord] = []
        for record in self._records.query_records(range_start):
            item = clip_record(record, range_start, range_end, keywords)
            if item is not None:
                clipped.append(item)
        return clipped

    def _excluded_keywords(self) -> list[str]:
        try:
            return self._get_excluded_keywords()
        except Exception:
            logger.exception("Failed to read excluded keywords; ignoring them.")
            return []


def clip_record(
    record: ActivityRecord,
    range_start: datetime,
    range_end: datetime,
    keywords: list[str],
) -> Optional[ClippedRecord]:
    """Scale a record's seconds down to the part that falls inside the range."""
    active_raw = max(0, record.seconds_active)
    idle_raw = max(0, record.idle_seconds)
    if active_raw + idle_raw <= 0:
        return None
    start = record.started_at
    end = record.effective_end()
    overlap = overlap_seconds(start, end, range_start, range_end)
    if overlap <= 0:
        return None
    duration = max(0.001, (end - start).total_seconds())
    ratio = min(1.0, overlap / duration)
    suppressed = is_suppressed(keywords, canonical_domain(record.domain), record.app_name)
    category = NEUTRAL if suppressed else (record.category or NEUTRAL)
    return ClippedRecord(
        record=record,
        category=category,
        suppressed=suppressed,
        overlap_start=max(start, range_start),
        overlap_end=min(end, range_end),
        active=active_raw * ratio,
        idle=idle_raw * ratio,
    )


def _peak(totals: dict, default):
    best = default
    best_value = 0.0
    for key, value in totals.items():
        if value > best_value:
            best_value = value
            best = key
    return best


def _focus_trend(clipped: list[ClippedRecord]) -> str:
    # Compare the productive seconds of the newer half against the older half.
    ordered = sorted(clipped, key=lambda item: item.record.started_at, reverse=True)
    midpoint = len(ordered) // 2
    recent = sum(
        item.record.seconds_active for item in ordered[:midpoint] if item.category == PRODUCTIVE
    )
    older = sum(
        item.record.seconds_active for item in ordered[midpoint:] if item.category == PRODUCTIVE
    )
    if recent > older * 1.1:
        return "improving"
    if recent < older * 0.9:
        return "declining"
    return "stable"
