from datetime import timedelta

from conftest import make_activity

from focus_tracker.config import TrackerSettings
from focus_tracker.tracker import ActivityTracker


def build_tracker(repository, clock, **kwargs):
    return ActivityTracker(repository, clock=clock, **kwargs)


def test_same_context_accumulates_deltas(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    for offset in (0, 5, 10, 15):
        tracker.record_activity(make_activity(start + timedelta(seconds=offset)))

    records = repository.query_records()
    assert len(records) == 1
    assert records[0].seconds_active == 15
    assert records[0].idle_seconds == 0
    assert records[0].ended_at == start + timedelta(seconds=15)


def test_stale_event_is_ignored(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start))
    tracker.record_activity(make_activity(start + timedelta(milliseconds=5000)))
    tracker.record_activity(make_activity(start + timedelta(milliseconds=1000)))
    tracker.record_activity(make_activity(start + timedelta(milliseconds=6000)))

    records = repository.query_records()
    assert len(records) == 1
    assert records[0].seconds_active == 6


def test_sub_second_samples_do_not_write(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start))
    tracker.record_activity(make_activity(start + timedelta(milliseconds=400)))

    assert repository.query_records()[0].seconds_active == 0
    assert tracker.current.last_timestamp == start + timedelta(milliseconds=400)


def test_idle_seconds_split_from_delta(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start))
    tracker.record_activity(make_activity(start + timedelta(seconds=10), idle_seconds=4.4))
    tracker.record_activity(make_activity(start + timedelta(seconds=20), idle_seconds=60))

    record = repository.query_records()[0]
    assert record.idle_seconds == 4 + 10
    assert record.seconds_active == 6


def test_browser_aliases_share_one_session(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start, "Chrome", category="neutral"))
    tracker.record_activity(
        make_activity(start + timedelta(seconds=5), "Google Chrome", category="neutral")
    )

    records = repository.query_records()
    assert len(records) == 1
    assert records[0].seconds_active == 5


def test_context_change_closes_and_opens(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start, "Code"))
    tracker.record_activity(
        make_activity(start + timedelta(seconds=8), "Chrome", category="frivolity", domain="x.com")
    )

    first, second = repository.query_records()
    assert first.seconds_active == 8
    assert first.ended_at == start + timedelta(seconds=8)
    assert second.started_at == start + timedelta(seconds=8)
    assert second.domain == "twitter.com"
    assert second.ended_at is None
    assert tracker.current.id == second.id


def test_gap_beyond_ceiling_starts_new_record_with_grace(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start))
    tracker.record_activity(make_activity(start + timedelta(seconds=5)))
    resumed = start + timedelta(minutes=30)
    tracker.record_activity(make_activity(resumed))

    first, second = repository.query_records()
    assert first.ended_at == start + timedelta(seconds=5)
    assert first.seconds_active == 5
    assert second.started_at == resumed - timedelta(seconds=15)
    assert second.seconds_active + second.idle_seconds == 15
    assert second.ended_at == resumed


def test_context_change_after_gap_closes_at_last_timestamp(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start))
    tracker.record_activity(make_activity(start + timedelta(seconds=5)))
    tracker.record_activity(
        make_activity(start + timedelta(minutes=10), "Slack", category="neutral")
    )

    first, second = repository.query_records()
    assert first.ended_at == start + timedelta(seconds=5)
    assert first.seconds_active == 5
    assert second.app_name == "Slack"


def test_custom_gap_ceiling(repository, clock):
    settings = TrackerSettings.from_values(gap_ceiling_seconds=30, gap_grace_seconds=5)
    tracker = build_tracker(repository, clock, settings=settings)
    start = clock.now
    tracker.record_activity(make_activity(start))
    tracker.record_activity(make_activity(start + timedelta(seconds=31)))

    records = repository.query_records()
    assert len(records) == 2
    assert records[1].seconds_active == 5


def test_closed_records_never_exceed_wall_clock(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    offsets_ms = [0, 1400, 2900, 4400, 5900, 7400]
    for offset in offsets_ms:
        tracker.record_activity(make_activity(start + timedelta(milliseconds=offset)))
    tracker.record_activity(make_activity(start + timedelta(seconds=9), "Slack", category="neutral"))

    first = repository.query_records()[0]
    span = (first.ended_at - first.started_at).total_seconds()
    assert first.seconds_active + first.idle_seconds <= span


def test_stop_closes_open_record(repository, clock):
    tracker = build_tracker(repository, clock)
    tracker.record_activity(make_activity(clock.now))
    clock.advance(seconds=3)
    tracker.stop()

    record = repository.query_records()[0]
    assert record.ended_at == clock.now
    assert tracker.current is None


def test_recent_hides_excluded_contexts(repository, clock):
    tracker = build_tracker(repository, clock, get_excluded_keywords=lambda: ["bank"])
    start = clock.now
    tracker.record_activity(make_activity(start, "Chrome", category="neutral", domain="mybank.com"))
    tracker.record_activity(make_activity(start + timedelta(seconds=5), "Code"))

    newest, oldest = tracker.get_recent(10)
    assert newest.app_name == "Code"
    assert oldest.domain is None
    assert oldest.app_name is None


def test_journey_shows_gap_between_sessions(repository, clock):
    tracker = build_tracker(repository, clock)
    start = clock.now
    tracker.record_activity(make_activity(start))
    tracker.record_activity(make_activity(start + timedelta(seconds=5)))
    resumed = clock.advance(minutes=10)
    tracker.record_activity(make_activity(resumed, "Slack", category="neutral"))

    result = tracker.get_journey(0.5)

    assert result.window_hours == 1
    assert result.end == resumed
    assert [
        (segment.category, segment.label, segment.start, segment.end)
        for segment in result.segments
    ] == [
        ("productive", "Code", start, start + timedelta(seconds=5)),
        ("neutral", "Slack", resumed - timedelta(seconds=15), resumed),
    ]
    assert [(entry.label, entry.count) for entry in result.neutral_counts] == [("Slack", 1)]
