"""Immutable metric snapshot consumed by the trophy rules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from .config import is_suppressed
from .models import (
    FRIVOLITY,
    NEUTRAL,
    PRODUCTIVE,
    ActivityRecord,
    AnalyticsOverview,
    ConsumptionEntry,
    HourOfDayStats,
    LibraryItem,
    WalletTransaction,
)
from .normalization import canonical_domain, context_key
from .timeutil import DAY, day_key, start_of_day

FRIVOLOUS_SESSION = "frivolous-session"
PAYWALL_DECLINE = "paywall-decline"
PAYWALL_EXIT = "paywall-exit"
LIBRARY_ITEM = "library-item"
REPLACE_PURPOSE = "replace"


@dataclass(slots=True)
class DailyTotals:
    productive: float = 0.0
    neutral: float = 0.0
    frivolity: float = 0.0
    idle: float = 0.0
    total_active: float = 0.0
    first_activity_at: Optional[datetime] = None
    first_productive_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    productive_before_10: float = 0.0
    productive_afternoon: float = 0.0
    afternoon_total: float = 0.0
    frivolity_after_21: float = 0.0

    def dominant(self) -> str:
        candidates = (
            ("productive", self.productive),
            ("neutral", self.neutral),
            ("frivolity", self.frivolity),
            ("idle", self.idle),
        )
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate[1] > best[1]:
                best = candidate
        return best[0]


@dataclass(slots=True)
class ProductiveRun:
    start: datetime
    end: datetime
    seconds: float


@dataclass(slots=True, frozen=True)
class RecoverySample:
    ts: datetime
    minutes: float


@dataclass(slots=True, frozen=True)
class Metrics:
    now: datetime
    daily: dict[str, DailyTotals]
    productive_runs: list[ProductiveRun]
    max_productive_run_sec: float
    productive_record_count: int
    idle_ratio_24h: Optional[float]
    context_switches_per_hour_24h: Optional[float]
    frivolity_seconds_24h: float
    productivity_seconds_24h: float
    recovery_times_minutes: list[float]
    recovery_samples: list[RecoverySample]
    recoveries_by_day: dict[str, int]
    last_frivolity_at: Optional[datetime]
    hours_since_frivolity: Optional[int]
    frivolity_sessions_by_day: dict[str, int]
    paywall_declines_total: int
    paywall_declines_24h: int
    paywall_quick_exits: int
    replace_consumed_total: int
    replace_consumed_last_7: int
    replace_consumed_prev_7: int
    library_replace_ready: int
    library_replace_total: int
    library_consumed_count: int
    library_notes_count: int
    transactions_by_day: dict[str, float]
    frivolity_spend_24h: float
    balance: float
    overview_7: Optional[AnalyticsOverview]
    time_of_day_7: list[HourOfDayStats] = field(default_factory=list)
    hour_productive_all: list[float] = field(default_factory=lambda: [0.0] * 24)
    hour_productive_24h: list[float] = field(default_factory=lambda: [0.0] * 24)
    friends_count: int = 0

    @property
    def today_key(self) -> str:
        return day_key(self.now)

    def sum_last_days(self, days: int, attribute: str) -> float:
        """Sum one ``DailyTotals`` attribute over today and the previous ``days - 1`` days."""
        total = 0.0
        for offset in range(days):
            entry = self.daily.get(day_key(self.now - offset * DAY))
            if entry is not None:
                total += getattr(entry, attribute)
        return total


def median(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def variance(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((value - mean) ** 2 for value in values) / len(values)


def build_metrics(
    *,
    records: Iterable[ActivityRecord],
    consumption: Iterable[ConsumptionEntry] = (),
    library_items: Iterable[LibraryItem] = (),
    transactions: Iterable[WalletTransaction] = (),
    balance: float = 0,
    overview: Optional[AnalyticsOverview] = None,
    time_of_day: Sequence[HourOfDayStats] = (),
    excluded_keywords: Sequence[str] = (),
    friends_count: int = 0,
    now: datetime,
    run_merge_tolerance: timedelta = timedelta(minutes=2),
) -> Metrics:
    """Scan the whole timeline once and fold in the auxiliary feeds.

    Records must be ordered by ``started_at``. Every record is attributed to
    the calendar day and clock hour it started in.
    """
    keywords = list(excluded_keywords)
    ordered = sorted(records, key=lambda record: (record.started_at, record.id))
    recent_cutoff = now - DAY

    daily: dict[str, DailyTotals] = {}
    hour_productive_all = [0.0] * 24
    hour_productive_24h = [0.0] * 24
    runs: list[ProductiveRun] = []
    current_run: Optional[ProductiveRun] = None
    productive_record_count = 0

    recent_keys: list[str] = []
    recent_idle = 0.0
    recent_active = 0.0
    frivolity_24h = 0.0
    productive_24h = 0.0

    recovery_times: list[float] = []
    recovery_samples: list[RecoverySample] = []
    recoveries_by_day: dict[str, int] = {}
    pending_frivolity: list[datetime] = []

    for record in ordered:
        start = record.started_at
        end = record.effective_end()
        domain = canonical_domain(record.domain)
        suppressed = is_suppressed(keywords, domain, record.app_name)
        category = NEUTRAL if suppressed else (record.category or NEUTRAL)
        active = float(max(0, record.seconds_active))
        idle = float(max(0, record.idle_seconds))

        entry = daily.setdefault(day_key(start), DailyTotals())
        entry.total_active += active
        entry.idle += idle
        entry.last_activity_at = max(entry.last_activity_at, end) if entry.last_activity_at else end
        entry.first_activity_at = (
            min(entry.first_activity_at, start) if entry.first_activity_at else start
        )
        hour = start.hour
        if category == PRODUCTIVE:
            productive_record_count += 1
            entry.productive += active
            entry.first_productive_at = (
                min(entry.first_productive_at, start) if entry.first_productive_at else start
            )
            hour_productive_all[hour] += active
            if start >= recent_cutoff:
                hour_productive_24h[hour] += active
            if hour < 10:
                entry.productive_before_10 += active
        elif category == FRIVOLITY:
            entry.frivolity += active
            if hour >= 21:
                entry.frivolity_after_21 += active
        else:
            entry.neutral += active
        if 14 <= hour < 17:
            entry.afternoon_total += active
            if category == PRODUCTIVE:
                entry.productive_afternoon += active

        # Any non-productive record ends the current run.
        if category == PRODUCTIVE:
            if current_run is None:
                current_run = ProductiveRun(start=start, end=end, seconds=active)
            elif start - current_run.end <= run_merge_tolerance:
                current_run.end = max(current_run.end, end)
                current_run.seconds += active
            else:
                runs.append(current_run)
                current_run = ProductiveRun(start=start, end=end, seconds=active)
        elif current_run is not None:
            runs.append(current_run)
            current_run = None

        if start >= recent_cutoff:
            recent_keys.append("" if suppressed else context_key(domain, record.app_name).lower())
            recent_idle += idle
            recent_active += active
            if category == FRIVOLITY:
                frivolity_24h += active
            elif category == PRODUCTIVE:
                productive_24h += active

        if category == FRIVOLITY:
            pending_frivolity.append(end)
        elif category == PRODUCTIVE and pending_frivolity:
            still_pending: list[datetime] = []
            for frivolity_end in pending_frivolity:
                if frivolity_end <= start:
                    minutes = max(0.0, (start - frivolity_end).total_seconds()) / 60
                    recovery_times.append(minutes)
                    recovery_samples.append(RecoverySample(ts=start, minutes=minutes))
                    key = day_key(start)
                    recoveries_by_day[key] = recoveries_by_day.get(key, 0) + 1
                else:
                    still_pending.append(frivolity_end)
            pending_frivolity = still_pending

    if current_run is not None:
        runs.append(current_run)

    switches = sum(
        1 for previous, current in zip(recent_keys, recent_keys[1:]) if current != previous
    )
    recent_total = recent_idle + recent_active

    markers = _ConsumptionMarkers.collect(consumption, now)
    library = list(library_items)
    transactions_by_day, frivolity_spend = _wallet_deltas(transactions, now)

    hours_since_frivolity: Optional[int] = None
    if markers.last_frivolity_at is not None:
        hours_since_frivolity = max(
            0, math.floor((now - markers.last_frivolity_at).total_seconds() / 3600)
        )

    return Metrics(
        now=now,
        daily=daily,
        productive_runs=runs,
        max_productive_run_sec=max((run.seconds for run in runs), default=0.0),
        productive_record_count=productive_record_count,
        idle_ratio_24h=recent_idle / recent_total if recent_total > 0 else None,
        context_switches_per_hour_24h=switches / 24 if recent_keys else None,
        frivolity_seconds_24h=frivolity_24h,
        productivity_seconds_24h=productive_24h,
        recovery_times_minutes=recovery_times,
        recovery_samples=recovery_samples,
        recoveries_by_day=recoveries_by_day,
        last_frivolity_at=markers.last_frivolity_at,
        hours_since_frivolity=hours_since_frivolity,
        frivolity_sessions_by_day=markers.frivolity_sessions_by_day,
        paywall_declines_total=markers.paywall_declines_total,
        paywall_declines_24h=markers.paywall_declines_24h,
        paywall_quick_exits=markers.paywall_quick_exits,
        replace_consumed_total=markers.replace_consumed_total,
        replace_consumed_last_7=markers.replace_consumed_last_7,
        replace_consumed_prev_7=markers.replace_consumed_prev_7,
        library_replace_ready=sum(
            1 for item in library if item.purpose == REPLACE_PURPOSE and item.consumed_at is None
        ),
        library_replace_total=sum(1 for item in library if item.purpose == REPLACE_PURPOSE),
        library_consumed_count=sum(1 for item in library if item.consumed_at is not None),
        library_notes_count=sum(1 for item in library if item.note and item.note.strip()),
        transactions_by_day=transactions_by_day,
        frivolity_spend_24h=frivolity_spend,
        balance=balance,
        overview_7=overview,
        time_of_day_7=list(time_of_day),
        hour_productive_all=hour_productive_all,
        hour_productive_24h=hour_productive_24h,
        friends_count=friends_count,
    )


@dataclass(slots=True)
class _ConsumptionMarkers:
    frivolity_sessions_by_day: dict[str, int] = field(default_factory=dict)
    last_frivolity_at: Optional[datetime] = None
    paywall_declines_total: int = 0
    paywall_declines_24h: int = 0
    paywall_quick_exits: int = 0
    replace_consumed_total: int = 0
    replace_consumed_last_7: int = 0
    replace_consumed_prev_7: int = 0

    @classmethod
    def collect(cls, entries: Iterable[ConsumptionEntry], now: datetime) -> "_ConsumptionMarkers":
        markers = cls()
        today = start_of_day(now)
        week_ago = today - 7 * DAY
        two_weeks_ago = today - 14 * DAY
        for entry in entries:
            occurred = entry.occurred_at
            if entry.kind == FRIVOLOUS_SESSION:
                day = entry.day or day_key(occurred)
                markers.frivolity_sessions_by_day[day] = (
                    markers.frivolity_sessions_by_day.get(day, 0) + 1
                )
                if markers.last_frivolity_at is None or occurred > markers.last_frivolity_at:
                    markers.last_frivolity_at = occurred
            elif entry.kind == PAYWALL_DECLINE:
                markers.paywall_declines_total += 1
                if occurred >= now - DAY:
                    markers.paywall_declines_24h += 1
            elif entry.kind == PAYWALL_EXIT:
                markers.paywall_quick_exits += 1
            elif entry.kind == LIBRARY_ITEM and (entry.meta or {}).get("purpose") == REPLACE_PURPOSE:
                markers.replace_consumed_total += 1
                if occurred >= week_ago:
                    markers.replace_consumed_last_7 += 1
                elif occurred >= two_weeks_ago:
                    markers.replace_consumed_prev_7 += 1
        return markers


def _wallet_deltas(
    transactions: Iterable[WalletTransaction], now: datetime
) -> tuple[dict[str, float], float]:
    by_day: dict[str, float] = {}
    frivolity_spend = 0.0
    for tx in transactions:
        key = day_key(tx.ts)
        delta = -tx.amount if tx.type == "spend" else tx.amount
        by_day[key] = by_day.get(key, 0.0) + delta
        if tx.type == "spend" and tx.ts >= now - DAY:
            meta_type = str((tx.meta or {}).get("type", ""))
            if meta_type.startswith("frivolity"):
                frivolity_spend += tx.amount
    return by_day, frivolity_spend
