import threading
from datetime import timedelta

from conftest import make_observation

from focus_tracker.db import insert_consumption
from focus_tracker.metrics import PAYWALL_DECLINE
from focus_tracker.trophies import FRIENDS_COUNT_KEY, MAX_PINNED, PINNED_KEY, STATS_KEY
from focus_tracker.trophy_catalog import TROPHY_DEFINITIONS


def statuses_by_id(service):
    return {status.id: status for status in service.trophies.list_statuses()}


def work(service, clock, seconds=60):
    service.handle_activity(make_observation(clock.now, "Code"))
    service.handle_activity(make_observation(clock.advance(seconds=seconds), "Code"))


def test_every_definition_reports_a_status(service):
    statuses = service.trophies.list_statuses()
    assert [status.id for status in statuses] == [d.id for d in TROPHY_DEFINITIONS]
    assert statuses_by_id(service)["first_light"].progress.state == "locked"


def test_productive_activity_earns_and_persists(service, clock):
    work(service, clock)
    status = statuses_by_id(service)["first_light"]

    assert status.progress.state == "earned"
    assert status.earned_at == clock.now
    assert "first_light" in {row.id for row in service.trophies.list_earned()}


def test_earned_trophies_are_sticky(service, clock):
    service.repository.upsert_earned("deep_pocket", clock.now - timedelta(days=3))
    status = statuses_by_id(service)["deep_pocket"]

    assert status.progress.state == "earned"
    assert status.progress.ratio == 1.0
    assert status.progress.current == status.progress.target
    assert status.earned_at == clock.now - timedelta(days=3)


def test_auxiliary_feeds_drive_trophies(service, clock):
    insert_consumption(service.repository.connection, PAYWALL_DECLINE, clock.now)
    service.settings_service.set_json(FRIENDS_COUNT_KEY, 2)
    statuses = statuses_by_id(service)

    assert statuses["temptation_tamer"].progress.state == "earned"
    assert statuses["shield"].progress.state == "earned"
    assert statuses["first_rival"].progress.state == "earned"
    assert statuses["gate_held"].progress.current == 1


def test_personal_bests_only_improve(service, clock):
    work(service, clock)
    service.trophies.list_statuses()
    stats = service.trophies.get_stats()
    assert stats.best_productive_run_sec == 60
    assert stats.best_idle_ratio == 0.0

    service.settings_service.set_json(
        STATS_KEY, {**stats.to_dict(), "best_productive_run_sec": 9999}
    )
    service.trophies.list_statuses()
    assert service.trophies.get_stats().best_productive_run_sec == 9999


def test_remote_merge_keeps_earliest_timestamp(service, clock):
    trophies = service.trophies
    earlier = clock.now - timedelta(days=2)

    assert trophies.upsert_remote_earned("curator", clock.now) is True
    assert trophies.upsert_remote_earned("curator", clock.now + timedelta(hours=1)) is False
    assert trophies.upsert_remote_earned("curator", earlier) is True

    earned = {row.id: row.earned_at for row in trophies.list_earned()}
    assert earned["curator"] == earlier


def test_merge_during_evaluation_is_not_overwritten(service, clock, monkeypatch):
    earlier = clock.now - timedelta(days=30)
    settings_service = service.trophies._settings_service
    read_setting = settings_service.get_json

    def merge_then_read(key):
        # The earned map has been read by now; another device's row lands here.
        if key == PINNED_KEY:
            service.repository.upsert_earned("first_light", earlier)
        return read_setting(key)

    calls = []
    service.trophies.add_listener(lambda status, reason: calls.append(status.id))
    monkeypatch.setattr(settings_service, "get_json", merge_then_read)
    work(service, clock)

    status = statuses_by_id(service)["first_light"]
    assert status.earned_at == earlier
    earned = {row.id: row.earned_at for row in service.trophies.list_earned()}
    assert earned["first_light"] == earlier
    assert "first_light" not in calls


def test_remote_merge_waits_for_running_evaluation(service, clock):
    trophies = service.trophies
    results = []
    merge = threading.Thread(
        target=lambda: results.append(trophies.upsert_remote_earned("curator", clock.now))
    )
    trophies._evaluation_lock.acquire()
    try:
        merge.start()
        merge.join(timeout=0.2)
        assert merge.is_alive()
        assert results == []
    finally:
        trophies._evaluation_lock.release()
    merge.join(timeout=5)

    assert results == [True]


def test_pins_are_unique_known_and_capped(service):
    ids = [definition.id for definition in TROPHY_DEFINITIONS][:8]
    pinned = service.trophies.set_pinned(["bogus", ids[0], ids[0], *ids[1:]])

    assert pinned == ids[:MAX_PINNED]
    assert statuses_by_id(service)[ids[0]].pinned is True


def test_profile_summary_adopts_remote_pins(service, clock):
    work(service, clock, seconds=120)
    summary = service.trophies.get_profile_summary(
        {"handle": "sam", "pinned_trophies": ["curator", "unknown"]}
    )

    assert summary.pinned_trophies == ["curator"]
    assert service.trophies.get_pinned() == ["curator"]
    assert summary.weekly_productive_minutes == 2
    assert summary.recovery_median_minutes is None


def test_reset_clears_earned_pins_and_bests(service, clock):
    work(service, clock)
    service.trophies.list_statuses()
    service.trophies.set_pinned(["first_light"])
    service.trophies.reset_local()

    assert service.trophies.list_earned() == []
    assert service.trophies.get_pinned() == []
    assert service.trophies.get_stats().best_productive_run_sec == 0.0


def test_activity_schedules_one_debounced_evaluation(service, clock, timers):
    work(service, clock)

    assert len(timers) == 1
    assert timers[0].interval == 10.0
    assert service.trophies.evaluation_pending is True

    timers[0].fire()
    assert service.trophies.evaluation_pending is False
    assert "first_light" in {row.id for row in service.trophies.list_earned()}


def test_flush_runs_pending_evaluation_and_notifies(service, clock):
    calls = []
    service.trophies.add_listener(lambda status, reason: calls.append((status.id, reason)))
    work(service, clock)

    assert service.trophies.flush_pending() is True
    assert ("first_light", "activity") in calls
    assert service.trophies.flush_pending() is False


def test_listener_failure_does_not_block_persistence(service, clock):
    def broken(status, reason):
        raise RuntimeError("notification center unavailable")

    service.trophies.add_listener(broken)
    work(service, clock)
    service.trophies.flush_pending()

    assert "first_light" in {row.id for row in service.trophies.list_earned()}


def test_busy_evaluation_rearms_timer(service, clock, timers):
    work(service, clock)
    lock = service.trophies._evaluation_lock
    lock.acquire()
    try:
        timers[0].fire()
    finally:
        lock.release()

    assert len(timers) == 2
    assert service.trophies.evaluation_pending is True
