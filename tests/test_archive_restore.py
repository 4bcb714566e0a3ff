"""Tests for the restore engine."""

from __future__ import annotations

import json
import logging
import sqlite3

import pytest

from keepsake.archive.create import create_archive
from keepsake.archive.errors import RestoreError, SchemaVersionError
from keepsake.archive.restore import parent_first, restore_archive
from keepsake.db import get_connection, init_db
from keepsake.db import conversations as conversations_db
from keepsake.db import links as links_db
from keepsake.db import memories as memories_db
from keepsake.db import tasks as tasks_db
from keepsake.db.bulk import table_counts
from keepsake.db.models import Task

TS = "2024-01-01 00:00:00"


def _fresh():
    conn = get_connection(":memory:")
    init_db(conn)
    return conn


@pytest.fixture
def db_conn():
    conn = _fresh()
    yield conn
    conn.close()


@pytest.fixture
def other_conn():
    conn = _fresh()
    yield conn
    conn.close()


def _task(task_id, parent_id=None):
    return Task(
        id=task_id, project="p", subject=f"t{task_id}", status="pending",
        created_at=TS, updated_at=TS, parent_id=parent_id,
    )


def _populate(conn):
    m1 = memories_db.store_memory(conn, "cat1", "k1", "v1", tags=["x"])
    m2 = memories_db.store_memory(conn, "cat1", "k2", "v2")
    conversations_db.log_conversation(conn, "s1", "user", "hello", project="p")
    a = tasks_db.create_task(conn, "p", "A")
    b = tasks_db.create_task(conn, "p", "B", parent_id=a.id)
    c = tasks_db.create_task(conn, "p", "C", parent_id=b.id)
    tasks_db.add_task_dep(conn, a.id, c.id)
    links_db.create_link(conn, "memory", m1.id, "memory", m2.id, "related")
    links_db.create_link(conn, "task", c.id, "conversation", 1)


def _ids(conn, table):
    return [r[0] for r in conn.execute(f"SELECT id FROM {table} ORDER BY id").fetchall()]  # noqa: S608


# ---------------------------------------------------------------------------
# parent_first
# ---------------------------------------------------------------------------

def test_parent_first_orders_chain():
    ordered = parent_first([_task(3, parent_id=2), _task(2, parent_id=1), _task(1)])
    assert [t.id for t in ordered] == [1, 2, 3]


def test_parent_first_handles_parent_with_higher_id():
    # A task reparented under a newer task has a parent with a larger id.
    ordered = parent_first([_task(1, parent_id=9), _task(9), _task(4, parent_id=1)])
    assert [t.id for t in ordered] == [9, 1, 4]


def test_parent_first_missing_parent_is_root():
    ordered = parent_first([_task(5, parent_id=100), _task(2)])
    assert [t.id for t in ordered] == [2, 5]


def test_parent_first_cycle_falls_back_to_id_order(caplog):
    tasks = [_task(7), _task(3, parent_id=4), _task(4, parent_id=3)]
    with caplog.at_level(logging.WARNING, logger="keepsake.archive.restore"):
        ordered = parent_first(tasks)
    assert [t.id for t in ordered] == [7, 3, 4]
    assert "cycle" in caplog.text


# ---------------------------------------------------------------------------
# restore_archive
# ---------------------------------------------------------------------------

def test_round_trip_into_empty_store(db_conn, other_conn, tmp_path):
    _populate(db_conn)
    out = tmp_path / "all.json"
    result = create_archive(db_conn, out)

    report = restore_archive(other_conn, out)

    assert report.restored == result.counts
    assert report.total_skipped == 0
    for table in ("memories", "conversations", "tasks", "links"):
        assert _ids(other_conn, table) == _ids(db_conn, table)
    assert table_counts(other_conn) == table_counts(db_conn)
    assert memories_db.get_memory(other_conn, "cat1", "k1").tags == ["x"]


def test_round_trip_after_purge_keeps_ids(db_conn, tmp_path):
    _populate(db_conn)
    before = {t: _ids(db_conn, t) for t in ("memories", "conversations", "tasks", "links")}
    out = tmp_path / "all.json"
    create_archive(db_conn, out, purge=True)
    assert all(n == 0 for n in table_counts(db_conn).values())

    restore_archive(db_conn, out)

    assert {t: _ids(db_conn, t) for t in before} == before
    assert tasks_db.deps_for_task_ids(db_conn, before["tasks"]) != []


def test_second_restore_skips_everything(db_conn, other_conn, tmp_path):
    _populate(db_conn)
    out = tmp_path / "all.json"
    create_archive(db_conn, out)
    restore_archive(other_conn, out)

    again = restore_archive(other_conn, out)

    assert again.total_restored == 0
    assert again.skipped == again.present


def test_unique_key_clash_counts_as_skipped(db_conn, other_conn, tmp_path):
    memories_db.store_memory(db_conn, "cat", "k", "archived")
    out = tmp_path / "m.json"
    create_archive(db_conn, out, "memories")
    memories_db.store_memory(other_conn, "other", "x", "pad")
    memories_db.store_memory(other_conn, "cat", "k", "live")

    report = restore_archive(other_conn, out)

    assert report.skipped.memories == 1
    assert memories_db.get_memory(other_conn, "cat", "k").value == "live"


def test_restored_subtasks_reference_their_parents(db_conn, other_conn, tmp_path):
    a = tasks_db.create_task(db_conn, "p", "A")
    b = tasks_db.create_task(db_conn, "p", "B", parent_id=a.id)
    out = tmp_path / "t.json"
    create_archive(db_conn, out, "tasks")

    restore_archive(other_conn, out)

    assert tasks_db.get_task(other_conn, b.id).parent_id == a.id


def test_schema_mismatch_inserts_nothing(other_conn, tmp_path):
    doc = {
        "schema_version": "0.9",
        "created_at": TS,
        "source_db": "old.db",
        "data": {"memories": [{"id": 1, "category": "c", "key": "k", "value": "v",
                               "created_at": TS, "updated_at": TS}]},
    }
    path = tmp_path / "old.json"
    path.write_text(json.dumps(doc), encoding="utf-8")

    with pytest.raises(SchemaVersionError):
        restore_archive(other_conn, path)
    assert all(n == 0 for n in table_counts(other_conn).values())


def test_row_failure_aborts_with_row_id(db_conn, other_conn, tmp_path, monkeypatch):
    _populate(db_conn)
    out = tmp_path / "all.json"
    create_archive(db_conn, out)
    real_restore = tasks_db.restore_task

    def flaky(conn, task):
        if task.subject == "B":
            raise sqlite3.IntegrityError("NOT NULL constraint failed: tasks.subject")
        return real_restore(conn, task)

    monkeypatch.setattr(tasks_db, "restore_task", flaky)

    with pytest.raises(RestoreError) as excinfo:
        restore_archive(other_conn, out)

    b_id = next(t.id for t in tasks_db.list_tasks(db_conn) if t.subject == "B")
    assert excinfo.value.kind == "tasks"
    assert excinfo.value.row_id == b_id
    counts = table_counts(other_conn)
    # Earlier kinds and the parent task stay; later kinds were never reached.
    assert counts["memories"] == 2
    assert counts["conversations"] == 1
    assert counts["tasks"] == 1
    assert counts["links"] == 0


def test_source_file_is_not_modified(db_conn, other_conn, tmp_path):
    _populate(db_conn)
    out = tmp_path / "all.json"
    create_archive(db_conn, out)
    before = out.read_bytes()

    restore_archive(other_conn, out)

    assert out.read_bytes() == before
