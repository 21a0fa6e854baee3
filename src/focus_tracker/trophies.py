"""Trophy evaluation, persistence of earned trophies and personal bests."""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol

from .analytics import ActivityAnalytics
from .config import SettingsService, TrackerSettings
from .metrics import Metrics, build_metrics, median
from .models import (
    AnalyticsOverview,
    ClassifiedActivity,
    ConsumptionEntry,
    EarnedTrophy,
    HourOfDayStats,
    LibraryItem,
    ProfileSummary,
    TrophyStatsState,
    TrophyStatus,
    WalletTransaction,
)
from .scheduler import Debouncer, TimerFactory
from .timeutil import start_of_day
from .trophy_catalog import TROPHY_DEFINITIONS, TROPHY_IDS
from .trophy_rules import evaluate_rule

logger = logging.getLogger(__name__)

STATS_KEY = "trophy_stats"
PINNED_KEY = "trophies_pinned"
FRIENDS_COUNT_KEY = "sync_friends_count"
MAX_PINNED = 6

EPOCH = datetime(1970, 1, 1)

EarnedListener = Callable[[TrophyStatus, str], None]


class TrophyRepository(Protocol):
    def query_records(self, since: Optional[datetime] = None) -> list: ...

    def list_earned(self) -> list[EarnedTrophy]: ...

    def upsert_earned(
        self, trophy_id: str, earned_at: datetime, meta: Optional[dict[str, Any]] = None
    ) -> None: ...

    def insert_earned(
        self, trophy_id: str, earned_at: datetime, meta: Optional[dict[str, Any]] = None
    ) -> bool: ...

    def clear_earned(self) -> None: ...


class ActivityFeeds(Protocol):
    def list_consumption_since(self, since: datetime) -> list[ConsumptionEntry]: ...

    def list_library_items(self) -> list[LibraryItem]: ...

    def list_transactions_since(self, since: datetime) -> list[WalletTransaction]: ...

    def get_balance(self) -> int: ...


class AnalyticsProvider(Protocol):
    def get_overview(self, days: int = 7) -> AnalyticsOverview: ...

    def get_time_of_day(self, days: int = 7) -> list[HourOfDayStats]: ...


class TrophyService:
    """Evaluate every trophy against a fresh metrics snapshot.

    Earned trophies are sticky: once a row exists in the trophies table the
    trophy reports as earned regardless of later metrics. Scheduled evaluations
    are debounced and never overlap.
    """

    def __init__(
        self,
        repository: TrophyRepository,
        settings_service: SettingsService,
        feeds: ActivityFeeds,
        analytics: Optional[AnalyticsProvider] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        settings: Optional[TrackerSettings] = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self._repository = repository
        self._settings_service = settings_service
        self._feeds = feeds
        self._analytics = analytics or ActivityAnalytics(
            repository, settings_service.get_excluded_keywords, clock
        )
        self._clock = clock
        self.settings = settings or TrackerSettings()
        self._listeners: list[EarnedListener] = []
        self._evaluation_lock = threading.Lock()
        self._debouncer = Debouncer(
            self._run_scheduled, self.settings.evaluation_debounce, timer_factory
        )

    # Scheduling

    def schedule_evaluation(self, reason: str = "schedule") -> None:
        self._debouncer.schedule(reason)

    def on_classified_activity(self, activity: ClassifiedActivity) -> None:
        self.schedule_evaluation("activity")

    @property
    def evaluation_pending(self) -> bool:
        return self._debouncer.pending

    def flush_pending(self) -> bool:
        """Run a pending scheduled evaluation synchronously."""
        return self._debouncer.flush()

    def close(self) -> None:
        self._debouncer.cancel()

    def add_listener(self, listener: EarnedListener) -> None:
        self._listeners.append(listener)

    def _run_scheduled(self, reason: str) -> None:
        if not self._evaluation_lock.acquire(blocking=False):
            logger.debug("Evaluation already running; re-arming (%s)", reason)
            self._debouncer.schedule(reason)
            return
        try:
            self._evaluate(reason)
        finally:
            self._evaluation_lock.release()

    # Queries

    def list_statuses(self) -> list[TrophyStatus]:
        with self._evaluation_lock:
            return self._evaluate("list")

    def list_earned(self) -> list[EarnedTrophy]:
        return self._repository.list_earned()

    def get_profile_summary(self, profile: Optional[dict[str, Any]] = None) -> ProfileSummary:
        metrics = self.build_metrics()
        pinned = self.get_pinned()
        remote_pinned = (profile or {}).get("pinned_trophies") or []
        if not pinned and remote_pinned:
            pinned = self.set_pinned(remote_pinned)
        stats = self.get_stats()
        return ProfileSummary(
            profile=profile,
            pinned_trophies=pinned,
            weekly_productive_minutes=round(metrics.sum_last_days(7, "productive") / 60),
            best_run_minutes=round(
                max(stats.best_productive_run_sec, metrics.max_productive_run_sec) / 60
            ),
            recovery_median_minutes=median(metrics.recovery_times_minutes),
            current_frivolity_streak_hours=metrics.hours_since_frivolity or 0,
            best_frivolity_streak_hours=stats.best_frivolity_streak_hours,
            earned_today=self._earned_today(),
        )

    # Mutations

    def set_pinned(self, ids: Iterable[str]) -> list[str]:
        unique: list[str] = []
        for trophy_id in ids:
            if trophy_id in TROPHY_IDS and trophy_id not in unique:
                unique.append(trophy_id)
        self._settings_service.set_json(PINNED_KEY, unique[:MAX_PINNED])
        return self.get_pinned()

    def get_pinned(self) -> list[str]:
        raw = self._settings_service.get_json(PINNED_KEY)
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, str)]

    def upsert_remote_earned(
        self, trophy_id: str, earned_at: datetime, meta: Optional[dict[str, Any]] = None
    ) -> bool:
        """Merge an earned trophy from another device; the earlier timestamp wins."""
        with self._evaluation_lock:
            existing = self._earned_map().get(trophy_id)
            if existing is not None and existing <= earned_at:
                return False
            self._repository.upsert_earned(trophy_id, earned_at, meta)
            return True

    def reset_local(self) -> None:
        with self._evaluation_lock:
            self._repository.clear_earned()
            self._settings_service.set_json(PINNED_KEY, [])
            self._settings_service.set_json(STATS_KEY, TrophyStatsState().to_dict())
        logger.info("Reset local trophies, pins and personal bests.")

    def get_stats(self) -> TrophyStatsState:
        return TrophyStatsState.from_dict(self._settings_service.get_json(STATS_KEY))

    # Evaluation

    def build_metrics(self) -> Metrics:
        now = self._clock()
        return build_metrics(
            records=self._repository.query_records(None),
            consumption=self._feeds.list_consumption_since(EPOCH),
            library_items=self._feeds.list_library_items(),
            transactions=self._feeds.list_transactions_since(EPOCH),
            balance=self._feeds.get_balance(),
            overview=self._analytics.get_overview(7),
            time_of_day=self._analytics.get_time_of_day(7),
            excluded_keywords=self._settings_service.get_excluded_keywords(),
            friends_count=self._friends_count(),
            now=now,
            run_merge_tolerance=self.settings.run_merge_tolerance,
        )

    def _evaluate(self, reason: str) -> list[TrophyStatus]:
        metrics = self.build_metrics()
        stats = self.get_stats()
        earned = self._earned_map()
        pinned = set(self.get_pinned())
        statuses: list[TrophyStatus] = []
        newly_earned: list[TrophyStatus] = []

        for definition in TROPHY_DEFINITIONS:
            earned_at = earned.get(definition.id)
            result = evaluate_rule(definition.id, metrics, stats)
            if earned_at is not None:
                result = dataclasses.replace(
                    result, state="earned", ratio=1.0, current=result.target
                )
            status = TrophyStatus(
                definition=definition,
                progress=result,
                earned_at=earned_at,
                pinned=definition.id in pinned,
            )
            if earned_at is None and result.state == "earned":
                earned_time = self._clock()
                try:
                    inserted = self._repository.insert_earned(definition.id, earned_time)
                except Exception:
                    logger.exception("Failed to persist earned trophy %s", definition.id)
                else:
                    if inserted:
                        status.earned_at = earned_time
                        newly_earned.append(status)
                    else:
                        # Written by another device's merge since the map was read.
                        status.earned_at = self._earned_map().get(definition.id, earned_time)
            statuses.append(status)

        self._update_personal_bests(metrics, stats)

        for status in newly_earned:
            logger.info("Trophy earned: %s (%s)", status.id, reason)
            for listener in list(self._listeners):
                try:
                    listener(status, reason)
                except Exception:
                    logger.exception("Trophy listener failed for %s", status.id)
        return statuses

    def _update_personal_bests(self, metrics: Metrics, stats: TrophyStatsState) -> None:
        updated = False
        if metrics.max_productive_run_sec > stats.best_productive_run_sec:
            stats.best_productive_run_sec = metrics.max_productive_run_sec
            updated = True
        if metrics.idle_ratio_24h is not None and metrics.idle_ratio_24h < stats.best_idle_ratio:
            stats.best_idle_ratio = metrics.idle_ratio_24h
            updated = True
        if metrics.balance > stats.best_balance:
            stats.best_balance = metrics.balance
            updated = True
        hours = metrics.hours_since_frivolity
        if hours and hours > stats.best_frivolity_streak_hours:
            stats.best_frivolity_streak_hours = hours
            updated = True
        if updated:
            self._settings_service.set_json(STATS_KEY, stats.to_dict())

    def _earned_map(self) -> dict[str, datetime]:
        return {
            row.id: row.earned_at
            for row in self._repository.list_earned()
            if row.earned_at is not None
        }

    def _earned_today(self) -> list[str]:
        midnight = start_of_day(self._clock())
        return [
            trophy_id for trophy_id, earned_at in self._earned_map().items() if earned_at >= midnight
        ]

    def _friends_count(self) -> int:
        raw = self._settings_service.get_json(FRIENDS_COUNT_KEY)
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return max(0, int(raw))
        return 0
