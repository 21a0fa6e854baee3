from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

import pytest

from focus_tracker.db import SQLiteRepository
from focus_tracker.models import ClassifiedActivity, Observation
from focus_tracker.service import FocusTrackerService


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeTimer:
    """Stand-in for ``threading.Timer`` that only fires when told to."""

    created: list["FakeTimer"] = []

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 13, 9, 0, 0))


@pytest.fixture
def repository(tmp_path) -> SQLiteRepository:
    repo = SQLiteRepository.open(tmp_path / "focus.sqlite3")
    yield repo
    repo.close()


@pytest.fixture
def timers() -> list[FakeTimer]:
    FakeTimer.created = []
    return FakeTimer.created


@pytest.fixture
def service(tmp_path, clock, timers) -> FocusTrackerService:
    svc = FocusTrackerService.open(
        tmp_path / "service.sqlite3", clock=clock, timer_factory=FakeTimer
    )
    yield svc
    svc.stop()


def make_activity(
    ts: datetime,
    app_name: str = "Code",
    *,
    category: str = "productive",
    domain: Optional[str] = None,
    idle_seconds: float = 0.0,
    source: str = "app",
) -> ClassifiedActivity:
    return ClassifiedActivity(
        timestamp=ts,
        app_name=app_name,
        source=source,
        category=category,
        is_idle=idle_seconds >= 15,
        idle_threshold_seconds=15,
        domain=domain,
        idle_seconds=idle_seconds,
    )


def make_observation(
    ts: datetime,
    app_name: str = "Code",
    *,
    domain: Optional[str] = None,
    url: Optional[str] = None,
    idle_seconds: float = 0.0,
) -> Observation:
    return Observation(
        timestamp=ts,
        app_name=app_name,
        source="url" if (domain or url) else "app",
        domain=domain,
        url=url,
        idle_seconds=idle_seconds,
    )
