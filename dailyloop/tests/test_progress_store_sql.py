"""
SQL store tests against a throwaway SQLite database.

Verifies:
- CAS semantics on version (insert and update)
- Round trip of flags, streak and timestamps
- Store selection from DATABASE_URL
- Driver errors surface as StorageError
"""

from datetime import datetime, timezone

import pytest

from dailyloop.core import database
from dailyloop.core.errors import ConcurrencyConflictError, StorageError
from dailyloop.features.progress.service import ProgressService
from dailyloop.features.progress.store import InMemoryProgressStore, get_progress_store
from dailyloop.features.progress.store_sql import SqlProgressStore
from dailyloop.models.progress import ProgressRecord, TASK_KINDS

NOW = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'progress.db'}"


@pytest.fixture
def sql_store(sqlite_url):
    database.dispose_engine()
    database.init_engine(sqlite_url)
    database.create_all_tables()
    yield SqlProgressStore()
    database.dispose_engine()


def test_load_missing_returns_none(sql_store):
    assert sql_store.load("nobody") is None


def test_insert_then_update_round_trip(sql_store):
    record = ProgressRecord(user_id="u1", last_active_at=NOW)
    record.completed_tasks["journal"] = True

    saved = sql_store.save(record, None)
    assert saved.version == 1

    loaded = sql_store.load("u1")
    assert loaded.completed_tasks["journal"] is True
    assert loaded.progress_percent == 25
    assert loaded.last_active_at == NOW
    assert loaded.last_streak_update_at is None

    loaded.streak = 4
    loaded.last_streak_update_at = NOW
    sql_store.save(loaded, loaded.version)

    again = sql_store.load("u1")
    assert again.version == 2
    assert again.streak == 4
    assert again.last_streak_update_at == NOW


def test_duplicate_insert_is_a_conflict(sql_store):
    sql_store.save(ProgressRecord(user_id="u2", last_active_at=NOW), None)

    with pytest.raises(ConcurrencyConflictError):
        sql_store.save(ProgressRecord(user_id="u2", last_active_at=NOW), None)


def test_stale_version_is_a_conflict(sql_store):
    sql_store.save(ProgressRecord(user_id="u3", last_active_at=NOW), None)
    current = sql_store.load("u3")
    sql_store.save(current, current.version)

    with pytest.raises(ConcurrencyConflictError):
        sql_store.save(current, current.version)


def test_list_and_delete(sql_store):
    for user_id in ("b", "a", "c"):
        sql_store.save(ProgressRecord(user_id=user_id, last_active_at=NOW), None)

    assert sql_store.list_user_ids() == ["a", "b", "c"]
    assert sql_store.delete("b") is True
    assert sql_store.delete("b") is False
    assert sql_store.list_user_ids() == ["a", "c"]


def test_derived_percent_column_is_written(sql_store):
    record = ProgressRecord(user_id="u4", last_active_at=NOW)
    for kind in TASK_KINDS:
        record.completed_tasks[kind] = True
    sql_store.save(record, None)

    with database.get_db_session() as session:
        row = session.execute(
            database.progress_records.select().where(database.progress_records.c.user_id == "u4")
        ).first()
    assert row.progress_percent == 100


def test_engine_runs_on_sql_store(sql_store, clock):
    service = ProgressService(sql_store, clock=clock, zone="UTC")
    for kind in TASK_KINDS:
        state = service.set_task_completion("u5", kind, True)
    assert state.streak == 1

    clock.advance(days=1)
    state = service.get_progress("u5")
    assert state.streak == 1
    assert state.progress_percent == 0


def test_missing_table_raises_storage_error(sql_store):
    database.drop_all_tables()

    with pytest.raises(StorageError):
        sql_store.load("u6")


def test_selector_prefers_sql_when_database_configured(monkeypatch, sqlite_url):
    database.dispose_engine()
    monkeypatch.setenv("DATABASE_URL", sqlite_url)
    try:
        assert isinstance(get_progress_store(), SqlProgressStore)
    finally:
        database.dispose_engine()


def test_selector_falls_back_to_memory():
    assert isinstance(get_progress_store(), InMemoryProgressStore)
