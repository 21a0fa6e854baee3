"""Session builder: turns classified samples into gap-bounded activity records."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from .config import TrackerSettings, is_suppressed
from .models import (
    ActivityCategory,
    ActivityJourney,
    ActivityRecord,
    ActivitySummary,
    ClassifiedActivity,
)
from .normalization import canonical_app_name, canonical_domain, normalize_window_title
from .reporting import build_journey, summarize_records
from .timeutil import HOUR, clamp_window_hours

logger = logging.getLogger(__name__)


class ActivityRepository(Protocol):
    def insert_open_record(self, record: ActivityRecord) -> int: ...

    def extend_record(
        self, record_id: int, ended_at: datetime, active_delta: int, idle_delta: int
    ) -> None: ...

    def close_record(self, record_id: int, ended_at: datetime) -> None: ...

    def query_records(self, since: Optional[datetime] = None) -> list[ActivityRecord]: ...

    def recent_records(self, limit: int) -> list[ActivityRecord]: ...


@dataclass(slots=True)
class CurrentSession:
    id: int
    app_name: Optional[str]
    bundle_id: Optional[str]
    domain: Optional[str]
    category: Optional[ActivityCategory]
    started_at: datetime
    last_timestamp: datetime
    credited_seconds: int = 0

    def matches(self, event: ClassifiedActivity) -> bool:
        return (
            self.app_name == canonical_app_name(event.app_name)
            and self.domain == canonical_domain(event.domain)
            and self.category == event.category
        )


@dataclass(slots=True, frozen=True)
class Credit:
    active: int
    idle: int

    @property
    def total(self) -> int:
        return self.active + self.idle


class ActivityTracker:
    """Owns the single open activity record and persists it through a repository."""

    def __init__(
        self,
        repository: ActivityRepository,
        *,
        settings: Optional[TrackerSettings] = None,
        get_excluded_keywords: Optional[Callable[[], list[str]]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._repository = repository
        self.settings = settings or TrackerSettings()
        self._get_excluded_keywords = get_excluded_keywords or (lambda: [])
        self._clock = clock
        self._current: Optional[CurrentSession] = None
        self._lock = threading.RLock()

    @property
    def current(self) -> Optional[CurrentSession]:
        return self._current

    def record_activity(self, event: ClassifiedActivity) -> None:
        ts = event.timestamp
        with self._lock:
            current = self._current
            if current is None:
                self._open(event, ts)
                return

            if ts <= current.last_timestamp:
                logger.debug(
                    "Dropping out-of-order sample at %s (last=%s) for %s",
                    ts,
                    current.last_timestamp,
                    event.app_name,
                )
                return

            if not current.matches(event):
                self._rotate(current, event, ts)
                return

            delta = ts - current.last_timestamp
            if delta < self.settings.coalesce_interval:
                current.last_timestamp = ts
                return

            delta_seconds = _round_seconds(delta)
            if delta_seconds > self._gap_ceiling_seconds:
                self._restart_after_gap(current, event, ts)
                return

            self._extend(current, ts, self._credit(current, ts, delta_seconds, event))

    def _open(
        self, event: ClassifiedActivity, ts: datetime, *, started_at: Optional[datetime] = None
    ) -> CurrentSession:
        start = started_at or ts
        record = ActivityRecord(
            id=0,
            started_at=start,
            ended_at=None,
            source=event.source,
            app_name=event.app_name,
            bundle_id=event.bundle_id,
            window_title=normalize_window_title(event.app_name, event.window_title),
            url=event.url,
            domain=canonical_domain(event.domain),
            category=event.category,
        )
        record_id = self._repository.insert_open_record(record)
        self._current = CurrentSession(
            id=record_id,
            app_name=canonical_app_name(event.app_name),
            bundle_id=event.bundle_id,
            domain=canonical_domain(event.domain),
            category=event.category,
            started_at=start,
            last_timestamp=ts,
        )
        logger.info(
            "Tracking activity: %s %s (%s)",
            event.app_name,
            record.domain or "",
            event.category,
        )
        return self._current

    def _rotate(self, current: CurrentSession, event: ClassifiedActivity, ts: datetime) -> None:
        delta = ts - current.last_timestamp
        delta_seconds = _round_seconds(delta)
        if delta_seconds > self._gap_ceiling_seconds:
            self._repository.close_record(current.id, current.last_timestamp)
        else:
            if delta >= self.settings.coalesce_interval:
                self._extend(current, ts, self._credit(current, ts, delta_seconds, event))
            self._repository.close_record(current.id, ts)
        self._current = None
        self._open(event, ts)

    def _restart_after_gap(
        self, current: CurrentSession, event: ClassifiedActivity, ts: datetime
    ) -> None:
        # Sleep/lock transition: the closed record keeps its last known end and
        # the new record only receives the grace, never the literal gap.
        logger.info(
            "Gap of %ss for %s; closing record %s at %s",
            _round_seconds(ts - current.last_timestamp),
            event.app_name,
            current.id,
            current.last_timestamp,
        )
        self._repository.close_record(current.id, current.last_timestamp)
        self._current = None
        grace = self.settings.gap_grace
        fresh = self._open(event, ts, started_at=ts - grace)
        grace_seconds = _round_seconds(grace)
        if grace_seconds > 0:
            self._extend(fresh, ts, self._credit(fresh, ts, grace_seconds, event))

    def _credit(
        self,
        current: CurrentSession,
        ts: datetime,
        delta_seconds: int,
        event: ClassifiedActivity,
    ) -> Credit:
        headroom = int((ts - current.started_at).total_seconds()) - current.credited_seconds
        seconds = max(0, min(delta_seconds, headroom))
        idle = min(seconds, max(0, round(event.idle_seconds or 0)))
        return Credit(active=seconds - idle, idle=idle)

    def _extend(self, current: CurrentSession, ts: datetime, credit: Credit) -> None:
        self._repository.extend_record(current.id, ts, credit.active, credit.idle)
        current.credited_seconds += credit.total
        current.last_timestamp = ts

    @property
    def _gap_ceiling_seconds(self) -> int:
        return _round_seconds(self.settings.gap_ceiling)

    def get_recent(self, limit: int = 50) -> list[ActivityRecord]:
        keywords = self._excluded_keywords()
        records = self._repository.recent_records(max(1, int(limit)))
        for record in records:
            domain = canonical_domain(record.domain)
            if is_suppressed(keywords, domain, record.app_name):
                record.domain = None
                record.app_name = None
                record.url = None
                record.window_title = None
            else:
                record.domain = domain
        return records

    def get_summary(self, window_hours: float = 24) -> ActivitySummary:
        hours = clamp_window_hours(window_hours)
        window_end = self._clock()
        window_start = window_end - hours * HOUR
        records = self._repository.query_records(window_start)
        return summarize_records(
            records,
            window_start=window_start,
            window_end=window_end,
            hours=hours,
            excluded_keywords=self._excluded_keywords(),
        )

    def get_journey(self, window_hours: float = 24) -> ActivityJourney:
        """Gap-aware timeline of merged segments over the last ``window_hours``."""
        hours = clamp_window_hours(window_hours)
        window_end = self._clock()
        window_start = window_end - hours * HOUR
        return build_journey(
            self._repository.query_records(window_start),
            window_start=window_start,
            window_end=window_end,
            hours=hours,
            excluded_keywords=self._excluded_keywords(),
        )

    def stop(self) -> None:
        with self._lock:
            current = self._current
            if current is None:
                return
            ended_at = max(self._clock(), current.last_timestamp)
            self._repository.close_record(current.id, ended_at)
            self._current = None
            logger.info("Closed activity record %s at shutdown.", current.id)

    def _excluded_keywords(self) -> list[str]:
        try:
            return self._get_excluded_keywords()
        except Exception:
            logger.exception("Failed to read excluded keywords; ignoring them.")
            return []


def _round_seconds(delta: timedelta) -> int:
    return max(0, int(round(delta.total_seconds())))


def describe(current: Optional[CurrentSession]) -> dict[str, Any]:
    if current is None:
        return {"open": False}
    return {
        "open": True,
        "id": current.id,
        "app_name": current.app_name,
        "domain": current.domain,
        "category": current.category,
        "last_timestamp": current.last_timestamp.isoformat(),
    }
