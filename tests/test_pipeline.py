from datetime import datetime, timedelta

import pytest
from conftest import make_observation

from focus_tracker.classifier import ActivityClassifier
from focus_tracker.config import DEFAULT_CATEGORISATION
from focus_tracker.pipeline import (
    ACCEPT,
    REJECT_STALE_BACKGROUND,
    ActivityPipeline,
    ForegroundContext,
    arbitrate,
)
from focus_tracker.tracker import ActivityTracker

NOW = datetime(2024, 3, 13, 9, 0, 0)


class RecordingSink:
    def __init__(self):
        self.activities = []

    def on_classified_activity(self, activity):
        self.activities.append(activity)


class BrokenSink:
    def on_classified_activity(self, activity):
        raise RuntimeError("economy offline")


def build_pipeline(repository, clock, *, continuity=120, sinks=()):
    tracker = ActivityTracker(repository, clock=clock)
    classifier = ActivityClassifier(lambda: DEFAULT_CATEGORISATION, lambda: 15, lambda: 15)
    return ActivityPipeline(tracker, classifier, lambda: continuity, sinks, clock=clock)


def test_arbitrate_without_foreground_accepts():
    assert arbitrate(None, NOW) == ACCEPT


@pytest.mark.parametrize(
    "app_name, age_seconds, expected",
    [
        ("Slack", 1, REJECT_STALE_BACKGROUND),
        ("Slack", 3, ACCEPT),
        ("Google Chrome", 1, ACCEPT),
        ("Arc", 1, ACCEPT),
        ("Vivaldi", 1, ACCEPT),
        ("MicrosoftEdge.exe", 1, ACCEPT),
        ("BraveBrowser", 1, ACCEPT),
        ("Archive Utility", 1, REJECT_STALE_BACKGROUND),
    ],
)
def test_arbitrate_rejects_fresh_non_browser_foreground(app_name, age_seconds, expected):
    foreground = ForegroundContext(
        app_name=app_name, domain=None, observed_at=NOW - timedelta(seconds=age_seconds)
    )
    assert arbitrate(foreground, NOW) == expected


def test_extension_event_dropped_while_other_app_focused(repository, clock):
    pipeline = build_pipeline(repository, clock)
    pipeline.handle(make_observation(clock.now, "Slack"), "system")
    clock.advance(seconds=1)
    result = pipeline.handle(make_observation(clock.now, "Chrome", domain="youtube.com"), "extension")

    assert result is None
    records = repository.query_records()
    assert [record.app_name for record in records] == ["Slack"]


def test_extension_event_accepted_when_foreground_is_stale(repository, clock):
    pipeline = build_pipeline(repository, clock)
    pipeline.handle(make_observation(clock.now, "Slack"), "system")
    clock.advance(seconds=10)
    result = pipeline.handle(make_observation(clock.now, "Chrome", domain="youtube.com"), "extension")

    assert result is not None
    assert result.category == "frivolity"


def test_neutral_event_inside_window_is_promoted(repository, clock):
    pipeline = build_pipeline(repository, clock)
    pipeline.handle(make_observation(clock.now, "Code"))
    promoted = pipeline.handle(make_observation(clock.advance(seconds=30), "Slack"))

    assert promoted.category == "productive"
    assert promoted.continuity_applied is True
    categories = [record.category for record in repository.query_records()]
    assert categories == ["productive", "productive"]


def test_promotion_does_not_refresh_last_productive(repository, clock):
    pipeline = build_pipeline(repository, clock)
    started = clock.now
    pipeline.handle(make_observation(started, "Code"))
    pipeline.handle(make_observation(clock.advance(seconds=100), "Slack"))
    later = pipeline.handle(make_observation(clock.advance(seconds=40), "Slack"))

    assert pipeline.last_productive_at == started
    assert later.category == "neutral"
    assert later.continuity_applied is False


def test_frivolity_clears_continuity(repository, clock):
    pipeline = build_pipeline(repository, clock)
    pipeline.handle(make_observation(clock.now, "Code"))
    pipeline.handle(make_observation(clock.advance(seconds=5), "Chrome", domain="reddit.com"))
    result = pipeline.handle(make_observation(clock.advance(seconds=5), "Slack"))

    assert pipeline.last_productive_at is None
    assert result.category == "neutral"


def test_idle_neutral_event_is_not_promoted(repository, clock):
    pipeline = build_pipeline(repository, clock)
    pipeline.handle(make_observation(clock.now, "Code"))
    result = pipeline.handle(make_observation(clock.advance(seconds=20), "Slack", idle_seconds=30))

    assert result.is_idle is True
    assert result.category == "neutral"


def test_zero_window_disables_smoothing(repository, clock):
    pipeline = build_pipeline(repository, clock, continuity=0)
    pipeline.handle(make_observation(clock.now, "Code"))
    result = pipeline.handle(make_observation(clock.advance(seconds=5), "Slack"))

    assert result.category == "neutral"


def test_sinks_receive_activity_and_failures_are_contained(repository, clock):
    sink = RecordingSink()
    pipeline = build_pipeline(repository, clock, sinks=[BrokenSink(), sink])
    result = pipeline.handle(make_observation(clock.now, "Code"))

    assert sink.activities == [result]
    assert len(repository.query_records()) == 1
