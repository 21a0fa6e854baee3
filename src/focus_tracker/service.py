"""Wires the repository, settings, pipeline and trophy engine together."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from .analytics import ActivityAnalytics
from .classifier import ActivityClassifier
from .config import SettingsService, TrackerSettings
from .db import SQLiteFeeds, SQLiteRepository
from .models import ActivityOrigin, ClassifiedActivity, Observation
from .pipeline import ActivityPipeline, ActivitySink
from .scheduler import TimerFactory
from .tracker import ActivityTracker
from .trophies import TrophyService

logger = logging.getLogger(__name__)


class FocusTrackerService:
    """Owns every long-lived component for one local database."""

    def __init__(
        self,
        repository: SQLiteRepository,
        *,
        settings: Optional[TrackerSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
        sinks: Sequence[ActivitySink] = (),
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.clock = clock
        self.repository = repository
        self.settings = settings or TrackerSettings()
        self.settings_service = SettingsService(repository)
        self.feeds = SQLiteFeeds(repository)
        self.analytics = ActivityAnalytics(
            repository, self.settings_service.get_excluded_keywords, clock
        )
        self.tracker = ActivityTracker(
            repository,
            settings=self.settings,
            get_excluded_keywords=self.settings_service.get_excluded_keywords,
            clock=clock,
        )
        self.classifier = ActivityClassifier(
            self.settings_service.get_categorisation,
            self.settings_service.get_idle_threshold,
            self.settings_service.get_frivolous_idle_threshold,
        )
        self.trophies = TrophyService(
            repository,
            self.settings_service,
            self.feeds,
            self.analytics,
            clock=clock,
            settings=self.settings,
            timer_factory=timer_factory,
        )
        self.pipeline = ActivityPipeline(
            self.tracker,
            self.classifier,
            self.settings_service.get_continuity_window_seconds,
            [*sinks, self.trophies],
            settings=self.settings,
            clock=clock,
        )
        self._stopped = False

    @classmethod
    def open(cls, db_path: Union[Path, str], **kwargs) -> "FocusTrackerService":
        logger.info("Opening focus tracker database at %s", db_path)
        return cls(SQLiteRepository.open(db_path), **kwargs)

    def handle_activity(
        self, observation: Observation, origin: ActivityOrigin = "system"
    ) -> Optional[ClassifiedActivity]:
        return self.pipeline.handle(observation, origin)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self.tracker.stop()
        self.trophies.close()
        self.repository.close()
        logger.info("Focus tracker stopped.")
