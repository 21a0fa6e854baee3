"""Summary and journey aggregation of recorded activity, plus console rendering."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from .config import is_suppressed
from .models import (
    CATEGORIES,
    NEUTRAL,
    ActivityJourney,
    ActivityRecord,
    ActivitySummary,
    ContextTotal,
    HourBucket,
    JourneySegment,
    NeutralContextCount,
)
from .normalization import canonical_domain, context_key
from .timeutil import HOUR, build_hour_windows, overlap_seconds

TOP_CONTEXT_LIMIT = 8
JOURNEY_NEUTRAL_LIMIT = 6


def summarize_records(
    records: Iterable[ActivityRecord],
    *,
    window_start: datetime,
    window_end: datetime,
    hours: int,
    excluded_keywords: Sequence[str] = (),
) -> ActivitySummary:
    """Spread each record over hourly buckets in proportion to its overlap."""
    totals_by_category: dict[str, float] = {name: 0.0 for name in CATEGORIES}
    totals_by_category["idle"] = 0.0
    totals_by_category["uncategorised"] = 0.0
    totals_by_source: dict[str, float] = {"app": 0.0, "url": 0.0}
    contexts: dict[str, ContextTotal] = {}

    windows = build_hour_windows(window_start, hours)
    timeline = [HourBucket(hour=window.label, start=window.start) for window in windows]
    bucket_contexts: list[dict[str, ContextTotal]] = [{} for _ in windows]

    total_seconds = 0.0
    sample_count = 0

    for record in records:
        domain = canonical_domain(record.domain)
        suppressed = is_suppressed(excluded_keywords, domain, record.app_name)
        category = NEUTRAL if suppressed else (record.category or "uncategorised")

        start = record.started_at
        end = record.effective_end()
        overlap = overlap_seconds(start, end, window_start, window_end)
        if overlap <= 0:
            continue
        sample_count += 1

        duration = max(0.001, (end - start).total_seconds())
        clip = min(1.0, overlap / duration)
        active = max(0, record.seconds_active) * clip
        idle = max(0, record.idle_seconds) * clip

        total_seconds += active
        totals_by_category[category] = totals_by_category.get(category, 0.0) + active
        totals_by_category["idle"] += idle
        totals_by_source[record.source] = totals_by_source.get(record.source, 0.0) + active

        key = context_key(domain, record.app_name)
        if not suppressed:
            _add_context(contexts, key, record, domain, active)

        clipped_start = max(start, window_start)
        clipped_end = min(end, window_end)
        span = (clipped_end - clipped_start).total_seconds()
        if span <= 0:
            continue
        first = max(0, int((clipped_start - window_start) / HOUR))
        last = min(hours - 1, int(((clipped_end - window_start).total_seconds() - 0.001) // 3600))
        for idx in range(first, last + 1):
            window = windows[idx]
            share = overlap_seconds(clipped_start, clipped_end, window.start, window.end)
            if share <= 0:
                continue
            fraction = share / span
            bucket = timeline[idx]
            slot = category if category in CATEGORIES else NEUTRAL
            setattr(bucket, slot, getattr(bucket, slot) + active * fraction)
            bucket.idle += idle * fraction
            if not suppressed:
                _add_context(bucket_contexts[idx], key, record, domain, active * fraction)

    for bucket, bucket_context in zip(timeline, bucket_contexts):
        _finish_bucket(bucket, bucket_context)

    top_contexts = sorted(contexts.values(), key=lambda ctx: ctx.seconds, reverse=True)
    for ctx in top_contexts:
        ctx.seconds = round(ctx.seconds)

    return ActivitySummary(
        window_hours=hours,
        sample_count=sample_count,
        total_seconds=round(total_seconds),
        totals_by_category={name: round(value) for name, value in totals_by_category.items()},
        totals_by_source={name: round(value) for name, value in totals_by_source.items()},
        top_contexts=top_contexts[:TOP_CONTEXT_LIMIT],
        timeline=timeline,
    )


def build_journey(
    records: Iterable[ActivityRecord],
    *,
    window_start: datetime,
    window_end: datetime,
    hours: int,
    excluded_keywords: Sequence[str] = (),
) -> ActivityJourney:
    """Lay each record out as its active part followed by its idle part.

    Both parts are scaled to fit the record's wall-clock span and clipped to
    the window. A part that continues the previous segment's category and
    label extends that segment instead of starting a new one.
    """
    segments: list[JourneySegment] = []
    neutral_counts: dict[str, NeutralContextCount] = {}

    def push(
        record: ActivityRecord,
        category: str,
        label: Optional[str],
        start: datetime,
        end: datetime,
    ) -> None:
        start = max(start, window_start)
        end = min(end, window_end)
        if end <= start:
            return
        seconds = (end - start).total_seconds()
        previous = segments[-1] if segments else None
        if previous is not None and previous.category == category and previous.label == label:
            previous.end = end
            previous.seconds += seconds
        else:
            segments.append(
                JourneySegment(
                    start=start,
                    end=end,
                    category=category,
                    label=label,
                    source=record.source,
                    seconds=seconds,
                )
            )
        if category == NEUTRAL and label:
            entry = neutral_counts.get(label)
            if entry is None:
                entry = neutral_counts[label] = NeutralContextCount(label=label, source=record.source)
            entry.count += 1
            entry.seconds += seconds

    for record in records:
        active = max(0, record.seconds_active)
        idle = max(0, record.idle_seconds)
        tracked = active + idle
        if tracked <= 0:
            continue
        start = record.started_at
        end = record.effective_end()
        if overlap_seconds(start, end, window_start, window_end) <= 0:
            continue

        scale = max(0.001, (end - start).total_seconds()) / tracked
        active_end = start + timedelta(seconds=active * scale)
        idle_end = active_end + timedelta(seconds=idle * scale)

        domain = canonical_domain(record.domain)
        suppressed = is_suppressed(excluded_keywords, domain, record.app_name)
        label = None if suppressed else (domain or record.app_name)
        category = NEUTRAL if suppressed else (record.category or NEUTRAL)
        if active:
            push(record, category, label, start, active_end)
        if idle:
            push(record, "idle", None, active_end, idle_end)

    ranked = sorted(neutral_counts.values(), key=lambda entry: entry.count, reverse=True)
    return ActivityJourney(
        window_hours=hours,
        start=window_start,
        end=window_end,
        segments=segments,
        neutral_counts=ranked[:JOURNEY_NEUTRAL_LIMIT],
    )


def _add_context(
    contexts: dict[str, ContextTotal],
    key: str,
    record: ActivityRecord,
    domain: Optional[str],
    seconds: float,
) -> None:
    existing = contexts.get(key)
    if existing is None:
        existing = ContextTotal(
            label=key,
            category=record.category,
            seconds=0.0,
            source=record.source,
            domain=domain,
            app_name=record.app_name,
        )
        contexts[key] = existing
    existing.seconds += seconds


def _finish_bucket(bucket: HourBucket, contexts: dict[str, ContextTotal]) -> None:
    bucket.productive = round(bucket.productive)
    bucket.neutral = round(bucket.neutral)
    bucket.frivolity = round(bucket.frivolity)
    bucket.idle = round(bucket.idle)
    counts = [
        ("productive", bucket.productive),
        ("neutral", bucket.neutral),
        ("frivolity", bucket.frivolity),
        ("idle", bucket.idle),
    ]
    name, value = max(counts, key=lambda item: item[1])
    bucket.dominant = name if value > 0 else "idle"
    if contexts:
        top = max(contexts.values(), key=lambda ctx: ctx.seconds)
        top.seconds = round(top.seconds)
        bucket.top_context = top


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, echo=print) -> None:
        self.echo = echo

    def print_summary(self, summary: ActivitySummary) -> None:
        if summary.sample_count == 0:
            self.echo("No activity recorded in the selected window.")
            return

        totals = summary.totals_by_category
        self.echo(f"Summary for the last {summary.window_hours}h")
        self.echo("-" * 40)
        for name in ("productive", "neutral", "frivolity", "idle", "uncategorised"):
            seconds = totals.get(name, 0)
            if seconds or name != "uncategorised":
                self.echo(f"{name.capitalize():<14} {format_duration(seconds)}")
        self.echo("")

        if summary.top_contexts:
            self.echo("Top contexts:")
            for ctx in summary.top_contexts:
                label = (ctx.label or "Unknown")[:30]
                category = ctx.category or "-"
                self.echo(f"  {label:<30} {category:<11} {format_duration(ctx.seconds)}")

        busy = [bucket for bucket in summary.timeline if bucket.dominant != "idle"]
        if busy:
            self.echo("")
            self.echo("Hourly timeline:")
            for bucket in busy:
                top = bucket.top_context.label if bucket.top_context else ""
                self.echo(f"  {bucket.hour}  {bucket.dominant:<11} {top}")

    def print_records(self, records: Sequence[ActivityRecord]) -> None:
        if not records:
            self.echo("No activity recorded yet.")
            return
        for record in records:
            label = context_key(record.domain, record.app_name)
            if record.domain is None and record.app_name is None:
                label = "(hidden)"
            state = "open" if record.is_open else record.effective_end().strftime("%H:%M:%S")
            self.echo(
                f"{record.started_at:%Y-%m-%d %H:%M:%S} -> {state:<8} "
                f"{label[:30]:<30} {(record.category or '-'):<11} "
                f"{format_duration(record.seconds_active)} (+{format_duration(record.idle_seconds)} idle)"
            )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
