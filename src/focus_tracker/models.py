"""Domain models for observations, recorded activity and trophies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal, Optional

ActivitySource = Literal["app", "url"]
ActivityOrigin = Literal["system", "extension"]
ActivityCategory = Literal["productive", "neutral", "frivolity"]

PRODUCTIVE: ActivityCategory = "productive"
NEUTRAL: ActivityCategory = "neutral"
FRIVOLITY: ActivityCategory = "frivolity"
CATEGORIES: tuple[ActivityCategory, ...] = (PRODUCTIVE, NEUTRAL, FRIVOLITY)

TrophyState = Literal["locked", "earned", "untracked"]


@dataclass(slots=True)
class Observation:
    """A raw foreground sample reported by a poller or the browser extension."""

    timestamp: datetime
    app_name: str
    source: ActivitySource = "app"
    bundle_id: Optional[str] = None
    window_title: Optional[str] = None
    url: Optional[str] = None
    domain: Optional[str] = None
    idle_seconds: float = 0.0


@dataclass(slots=True, frozen=True)
class ClassifiedActivity:
    """An observation annotated with the resolved category and idle flag."""

    timestamp: datetime
    app_name: str
    source: ActivitySource
    category: ActivityCategory
    is_idle: bool
    idle_threshold_seconds: int
    bundle_id: Optional[str] = None
    window_title: Optional[str] = None
    url: Optional[str] = None
    domain: Optional[str] = None
    idle_seconds: float = 0.0
    continuity_applied: bool = False


@dataclass(slots=True)
class ActivityRecord:
    """A persisted span of time attributed to one (app, domain, category) context."""

    id: int
    started_at: datetime
    ended_at: Optional[datetime]
    source: ActivitySource
    app_name: Optional[str]
    bundle_id: Optional[str] = None
    window_title: Optional[str] = None
    url: Optional[str] = None
    domain: Optional[str] = None
    category: Optional[ActivityCategory] = None
    seconds_active: int = 0
    idle_seconds: int = 0

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def tracked_seconds(self) -> int:
        return self.seconds_active + self.idle_seconds

    def effective_end(self) -> datetime:
        """End time for open records is projected from the tracked seconds."""
        if self.ended_at is not None:
            return self.ended_at
        return self.started_at + timedelta(seconds=self.tracked_seconds)


@dataclass(slots=True)
class CategorisationConfig:
    productive: list[str] = field(default_factory=list)
    neutral: list[str] = field(default_factory=list)
    frivolity: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "productive": list(self.productive),
            "neutral": list(self.neutral),
            "frivolity": list(self.frivolity),
        }


@dataclass(slots=True)
class ContextTotal:
    label: str
    category: Optional[ActivityCategory]
    seconds: float
    source: ActivitySource
    domain: Optional[str]
    app_name: Optional[str]


@dataclass(slots=True)
class HourBucket:
    hour: str
    start: datetime
    productive: float = 0.0
    neutral: float = 0.0
    frivolity: float = 0.0
    idle: float = 0.0
    dominant: str = "idle"
    top_context: Optional[ContextTotal] = None


@dataclass(slots=True)
class ActivitySummary:
    window_hours: int
    sample_count: int
    total_seconds: int
    totals_by_category: dict[str, int]
    totals_by_source: dict[str, int]
    top_contexts: list[ContextTotal]
    timeline: list[HourBucket]


@dataclass(slots=True)
class JourneySegment:
    """A contiguous stretch of the timeline; ``category`` may also be ``"idle"``."""

    start: datetime
    end: datetime
    category: str
    label: Optional[str]
    source: ActivitySource
    seconds: float


@dataclass(slots=True)
class NeutralContextCount:
    label: str
    source: ActivitySource
    count: int = 0
    seconds: float = 0.0


@dataclass(slots=True)
class ActivityJourney:
    window_hours: int
    start: datetime
    end: datetime
    segments: list[JourneySegment]
    neutral_counts: list[NeutralContextCount]


# Auxiliary feeds consumed by the trophy engine.


@dataclass(slots=True)
class ConsumptionEntry:
    kind: str
    occurred_at: datetime
    day: str
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class LibraryItem:
    purpose: str
    consumed_at: Optional[datetime] = None
    note: Optional[str] = None


@dataclass(slots=True)
class WalletTransaction:
    type: Literal["earn", "spend"]
    amount: int
    ts: datetime
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class HourOfDayStats:
    hour: int
    productive: float = 0.0
    neutral: float = 0.0
    frivolity: float = 0.0
    idle: float = 0.0

    @property
    def total(self) -> float:
        return self.productive + self.neutral + self.frivolity + self.idle


@dataclass(slots=True)
class AnalyticsOverview:
    period_days: int
    total_active_hours: float
    productivity_score: int
    peak_productive_hour: int
    risk_hour: Optional[int]
    top_engagement_domain: Optional[str]
    total_sessions: int
    avg_session_length: int
    focus_trend: Literal["improving", "declining", "stable"]
    category_breakdown: dict[str, float]


# Trophies.


@dataclass(slots=True, frozen=True)
class TrophyDefinition:
    id: str
    name: str
    description: str
    emoji: str
    category: str
    rarity: str
    secret: bool = False


@dataclass(slots=True, frozen=True)
class TrophyProgress:
    current: float
    target: float
    ratio: float
    state: TrophyState
    label: Optional[str] = None


@dataclass(slots=True)
class TrophyStatus:
    definition: TrophyDefinition
    progress: TrophyProgress
    earned_at: Optional[datetime] = None
    pinned: bool = False

    @property
    def id(self) -> str:
        return self.definition.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.definition.id,
            "name": self.definition.name,
            "description": self.definition.description,
            "emoji": self.definition.emoji,
            "category": self.definition.category,
            "rarity": self.definition.rarity,
            "secret": self.definition.secret,
            "earned_at": self.earned_at.isoformat() if self.earned_at else None,
            "pinned": self.pinned,
            "progress": {
                "current": self.progress.current,
                "target": self.progress.target,
                "ratio": self.progress.ratio,
                "state": self.progress.state,
                "label": self.progress.label,
            },
        }


@dataclass(slots=True)
class EarnedTrophy:
    id: str
    earned_at: datetime
    meta: Optional[dict[str, Any]] = None


@dataclass(slots=True)
class TrophyStatsState:
    """Personal bests; every field only ever improves."""

    best_productive_run_sec: float = 0.0
    best_idle_ratio: float = 1.0
    best_balance: float = 0.0
    best_frivolity_streak_hours: float = 0.0

    @classmethod
    def from_dict(cls, data: Any) -> "TrophyStatsState":
        if not isinstance(data, dict):
            return cls()
        defaults = cls()
        values: dict[str, float] = {}
        for name in (
            "best_productive_run_sec",
            "best_idle_ratio",
            "best_balance",
            "best_frivolity_streak_hours",
        ):
            raw = data.get(name)
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                values[name] = float(raw)
            else:
                values[name] = getattr(defaults, name)
        return cls(**values)

    def to_dict(self) -> dict[str, float]:
        return {
            "best_productive_run_sec": self.best_productive_run_sec,
            "best_idle_ratio": self.best_idle_ratio,
            "best_balance": self.best_balance,
            "best_frivolity_streak_hours": self.best_frivolity_streak_hours,
        }


@dataclass(slots=True)
class ProfileSummary:
    profile: Optional[dict[str, Any]]
    pinned_trophies: list[str]
    weekly_productive_minutes: int
    best_run_minutes: int
    recovery_median_minutes: Optional[float]
    current_frivolity_streak_hours: float
    best_frivolity_streak_hours: float
    earned_today: list[str]
