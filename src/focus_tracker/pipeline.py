"""Single ingestion entry point: arbitration, classification and smoothing."""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Literal, Optional, Protocol, Sequence

from .classifier import ActivityClassifier
from .config import DEFAULT_CONTINUITY_WINDOW_SECONDS, TrackerSettings
from .models import (
    FRIVOLITY,
    NEUTRAL,
    PRODUCTIVE,
    ActivityOrigin,
    ClassifiedActivity,
    Observation,
)
from .normalization import is_browser_app
from .tracker import ActivityTracker

logger = logging.getLogger(__name__)

ArbitrationDecision = Literal["accept", "reject-stale-background"]
ACCEPT: ArbitrationDecision = "accept"
REJECT_STALE_BACKGROUND: ArbitrationDecision = "reject-stale-background"


@dataclass(slots=True, frozen=True)
class ForegroundContext:
    app_name: str
    domain: Optional[str]
    observed_at: datetime


class ActivitySink(Protocol):
    def on_classified_activity(self, activity: ClassifiedActivity) -> None: ...


def arbitrate(
    foreground: Optional[ForegroundContext],
    now: datetime,
    freshness: timedelta = timedelta(seconds=3),
) -> ArbitrationDecision:
    """Decide whether an extension-origin event describes what the user sees.

    A browser extension keeps reporting tabs while the browser sits in the
    background. When the system poller saw a non-browser app in the
    foreground moments ago, the extension event is stale and dropped.
    """
    if foreground is None:
        return ACCEPT
    if now - foreground.observed_at >= freshness:
        return ACCEPT
    if is_browser_app(foreground.app_name):
        return ACCEPT
    return REJECT_STALE_BACKGROUND


class ActivityPipeline:
    def __init__(
        self,
        tracker: ActivityTracker,
        classifier: ActivityClassifier,
        get_continuity_window_seconds: Callable[[], int],
        sinks: Sequence[ActivitySink] = (),
        *,
        settings: Optional[TrackerSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.tracker = tracker
        self.classifier = classifier
        self._get_continuity_window_seconds = get_continuity_window_seconds
        self._sinks: list[ActivitySink] = list(sinks)
        self.settings = settings or tracker.settings
        self._clock = clock
        self._lock = threading.Lock()
        self.foreground: Optional[ForegroundContext] = None
        self.last_productive_at: Optional[datetime] = None

    def add_sink(self, sink: ActivitySink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def handle(
        self, observation: Observation, origin: ActivityOrigin = "system"
    ) -> Optional[ClassifiedActivity]:
        with self._lock:
            if origin == "system":
                self.foreground = ForegroundContext(
                    app_name=observation.app_name,
                    domain=observation.domain,
                    observed_at=self._clock(),
                )
            else:
                decision = arbitrate(
                    self.foreground, self._clock(), self.settings.foreground_freshness
                )
                if decision == REJECT_STALE_BACKGROUND:
                    logger.info(
                        "Ignoring background extension activity: %s",
                        observation.domain or observation.app_name,
                    )
                    return None

            activity = self._smooth(self.classifier.classify(observation))
            self.tracker.record_activity(activity)
            sinks = list(self._sinks)

        for sink in sinks:
            try:
                sink.on_classified_activity(activity)
            except Exception:
                logger.exception("Activity sink %r failed", sink)
        return activity

    def _smooth(self, activity: ClassifiedActivity) -> ClassifiedActivity:
        if activity.category == FRIVOLITY:
            self.last_productive_at = None
            return activity
        if activity.is_idle:
            return activity
        if activity.category == PRODUCTIVE:
            self.last_productive_at = activity.timestamp
            return activity

        window = self._continuity_window()
        if (
            activity.category == NEUTRAL
            and window > 0
            and self.last_productive_at is not None
            and timedelta(0)
            <= activity.timestamp - self.last_productive_at
            <= timedelta(seconds=window)
        ):
            logger.debug("Continuity keeps %s productive", activity.domain or activity.app_name)
            return dataclasses.replace(activity, category=PRODUCTIVE, continuity_applied=True)
        return activity

    def _continuity_window(self) -> int:
        try:
            return max(0, int(self._get_continuity_window_seconds()))
        except Exception:
            logger.exception("Failed to read continuity window; using default.")
            return DEFAULT_CONTINUITY_WINDOW_SECONDS
