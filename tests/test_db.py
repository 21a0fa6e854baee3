from datetime import datetime, timedelta

import pytest

from focus_tracker.db import (
    SQLiteFeeds,
    insert_consumption,
    insert_library_item,
    insert_transaction,
    set_balance,
)
from focus_tracker.models import ActivityRecord

START = datetime(2024, 3, 13, 9, 0, 0, 250000)


def open_record(repository, start=START, app_name="Code"):
    record = ActivityRecord(
        id=0,
        started_at=start,
        ended_at=None,
        source="app",
        app_name=app_name,
        category="productive",
    )
    return repository.insert_open_record(record)


def test_record_lifecycle(repository):
    record_id = open_record(repository)
    repository.extend_record(record_id, START + timedelta(seconds=5), 4, 1)
    repository.extend_record(record_id, START + timedelta(seconds=9), 4, 0)
    repository.close_record(record_id, START + timedelta(seconds=10))

    (record,) = repository.query_records()
    assert record.id == record_id
    assert record.started_at == START
    assert record.ended_at == START + timedelta(seconds=10)
    assert record.seconds_active == 8
    assert record.idle_seconds == 1


def test_unknown_record_id_raises(repository):
    with pytest.raises(ValueError):
        repository.extend_record(999, START, 1, 0)
    with pytest.raises(ValueError):
        repository.close_record(999, START)


def test_query_since_and_recent_order(repository):
    first = open_record(repository)
    repository.close_record(first, START + timedelta(minutes=1))
    second = open_record(repository, START + timedelta(hours=2), "Slack")

    since = repository.query_records(START + timedelta(hours=1))
    assert [record.id for record in since] == [second]
    assert [record.id for record in repository.recent_records(10)] == [second, first]


def test_settings_json_round_trip(repository):
    assert repository.get_json("missing") is None
    repository.set_json("excluded_keywords", ["bank"])
    assert repository.get_json("excluded_keywords") == ["bank"]


def test_earned_trophies_upsert_and_clear(repository):
    repository.upsert_earned("first_light", START, {"device": "laptop"})
    repository.upsert_earned("first_light", START - timedelta(days=1))

    (earned,) = repository.list_earned()
    assert earned.earned_at == START - timedelta(days=1)
    assert earned.meta is None

    repository.clear_earned()
    assert repository.list_earned() == []


def test_insert_earned_never_replaces_existing_row(repository):
    earlier = START - timedelta(days=30)
    repository.upsert_earned("first_light", earlier)

    assert repository.insert_earned("first_light", START) is False
    assert repository.insert_earned("night_owl", START) is True

    earned = {row.id: row.earned_at for row in repository.list_earned()}
    assert earned == {"first_light": earlier, "night_owl": START}


def test_feeds_read_back_rows(repository):
    conn = repository.connection
    insert_consumption(conn, "paywall-decline", START, {"domain": "reddit.com"})
    insert_consumption(conn, "paywall-decline", START - timedelta(days=30))
    insert_library_item(conn, "replace", None, "later")
    insert_transaction(conn, "spend", 10, START, {"type": "frivolity-unlock"})
    set_balance(conn, 40)
    set_balance(conn, 25)

    feeds = SQLiteFeeds(repository)
    consumption = feeds.list_consumption_since(START - timedelta(days=1))
    assert [entry.meta for entry in consumption] == [{"domain": "reddit.com"}]
    assert consumption[0].day == "2024-03-13"

    (item,) = feeds.list_library_items()
    assert item.consumed_at is None
    assert item.note == "later"

    (tx,) = feeds.list_transactions_since(START)
    assert tx.type == "spend"
    assert tx.amount == 10
    assert feeds.get_balance() == 25


def test_empty_wallet_has_zero_balance(repository):
    assert SQLiteFeeds(repository).get_balance() == 0
