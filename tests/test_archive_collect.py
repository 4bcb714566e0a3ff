"""Tests for the cascade collector."""

from __future__ import annotations

import logging
import sqlite3

import pytest

from keepsake.archive.collector import EntitySelector, collect, descendant_ids, parse_selector
from keepsake.archive.errors import CollectError, InvalidFilterError, InvalidSelectorError
from keepsake.db import get_connection, init_db
from keepsake.db import conversations as conversations_db
from keepsake.db import links as links_db
from keepsake.db import memories as memories_db
from keepsake.db import tasks as tasks_db

OLD = "2000-01-01 00:00:00"


@pytest.fixture
def db_conn():
    conn = get_connection(":memory:")
    init_db(conn)
    yield conn
    conn.close()


def _age(conn, table, ids, column="updated_at"):
    with conn:
        conn.executemany(
            f"UPDATE {table} SET {column} = ? WHERE id = ?",  # noqa: S608
            [(OLD, i) for i in ids],
        )


def _task_chain(conn):
    """A → B → C in project 'p', plus an unrelated task D in project 'q'."""
    a = tasks_db.create_task(conn, "p", "A")
    b = tasks_db.create_task(conn, "p", "B", parent_id=a.id)
    c = tasks_db.create_task(conn, "p", "C", parent_id=b.id)
    d = tasks_db.create_task(conn, "q", "D")
    return a, b, c, d


def test_parse_selector():
    assert parse_selector("tasks") is EntitySelector.TASKS
    assert parse_selector(EntitySelector.ALL) is EntitySelector.ALL


def test_parse_selector_invalid():
    with pytest.raises(InvalidSelectorError) as excinfo:
        parse_selector("notes")
    assert isinstance(excinfo.value, ValueError)
    assert "notes" in str(excinfo.value)


def test_collect_invalid_selector_raises(db_conn):
    with pytest.raises(InvalidSelectorError):
        collect(db_conn, "everything")


def test_empty_store(db_conn):
    result = collect(db_conn, "all")
    assert result.is_empty()
    assert result.entity_types == []
    assert result.counts() == {
        "memories": 0, "conversations": 0, "tasks": 0, "task_deps": 0, "links": 0,
    }


def test_subtask_closure_follows_matched_root(db_conn):
    a, b, c, d = _task_chain(db_conn)
    _age(db_conn, "tasks", [a.id])

    result = collect(db_conn, "tasks", older_than_days=30)

    assert [t.id for t in result.tasks] == [a.id, b.id, c.id]
    assert result.entity_types == ["tasks"]


def test_closure_includes_deps_touching_any_collected_task(db_conn):
    a, b, c, d = _task_chain(db_conn)
    tasks_db.add_task_dep(db_conn, c.id, d.id)   # leaves the set
    tasks_db.add_task_dep(db_conn, a.id, b.id)   # inside the set
    other = tasks_db.create_task(db_conn, "q", "E")
    tasks_db.add_task_dep(db_conn, d.id, other.id)  # unrelated
    _age(db_conn, "tasks", [a.id])

    result = collect(db_conn, "tasks", older_than_days=30)

    assert sorted(result.task_deps) == [(a.id, b.id), (c.id, d.id)]
    # The dependency pulls in the edge, not the task on its far side.
    assert d.id not in {t.id for t in result.tasks}


def test_descendants_ignore_root_filters(db_conn):
    root = tasks_db.create_task(db_conn, "p", "root")
    child = tasks_db.create_task(db_conn, "elsewhere", "child", parent_id=root.id)

    result = collect(db_conn, "tasks", project="p")

    assert [t.id for t in result.tasks] == [root.id, child.id]


def test_descendant_ids_breadth_first(db_conn):
    a, b, c, _ = _task_chain(db_conn)
    sibling = tasks_db.create_task(db_conn, "p", "B2", parent_id=a.id)
    assert descendant_ids(db_conn, [a.id]) == [b.id, sibling.id, c.id]
    assert descendant_ids(db_conn, [c.id]) == []


def test_parent_cycle_terminates(db_conn, caplog):
    x = tasks_db.create_task(db_conn, "p", "X")
    y = tasks_db.create_task(db_conn, "p", "Y", parent_id=x.id)
    with db_conn:
        db_conn.execute("UPDATE tasks SET parent_id = ? WHERE id = ?", (y.id, x.id))
    _age(db_conn, "tasks", [x.id])

    with caplog.at_level(logging.DEBUG, logger="keepsake.archive.collector"):
        result = collect(db_conn, "tasks", older_than_days=30)

    assert [t.id for t in result.tasks] == [x.id, y.id]
    assert "already collected" in caplog.text


def test_link_between_two_selected_memories_appears_once(db_conn):
    m1 = memories_db.store_memory(db_conn, "cat", "k1", "v1")
    m2 = memories_db.store_memory(db_conn, "cat", "k2", "v2")
    link = links_db.create_link(db_conn, "memory", m1.id, "memory", m2.id, "related")

    result = collect(db_conn, "memories", category="cat")

    assert [l.id for l in result.links] == [link.id]


def test_link_reached_from_two_kinds_appears_once(db_conn):
    m = memories_db.store_memory(db_conn, "cat", "k", "v")
    t = tasks_db.create_task(db_conn, "p", "t")
    link = links_db.create_link(db_conn, "memory", m.id, "task", t.id)
    unrelated = links_db.create_link(db_conn, "conversation", 42, "conversation", 43)

    result = collect(db_conn, "all")

    assert [l.id for l in result.links] == [link.id]
    assert unrelated.id not in {l.id for l in result.links}


def test_task_links_cover_descendants(db_conn):
    a, b, c, _ = _task_chain(db_conn)
    link = links_db.create_link(db_conn, "conversation", 7, "task", c.id)
    _age(db_conn, "tasks", [a.id])

    result = collect(db_conn, "tasks", older_than_days=30)

    assert [l.id for l in result.links] == [link.id]


def test_category_filters_memories_only(db_conn):
    keep = memories_db.store_memory(db_conn, "c1", "k", "v")
    memories_db.store_memory(db_conn, "c2", "k", "v")
    conversations_db.log_conversation(db_conn, "s", "user", "hi")
    t = tasks_db.create_task(db_conn, "p", "t")

    result = collect(db_conn, "all", category="c1")

    assert [m.id for m in result.memories] == [keep.id]
    assert len(result.conversations) == 1
    assert [x.id for x in result.tasks] == [t.id]
    assert result.entity_types == ["memories", "conversations", "tasks"]


def test_project_filters_conversations_and_tasks(db_conn):
    memories_db.store_memory(db_conn, "c", "k", "v")
    conversations_db.log_conversation(db_conn, "s", "user", "in", project="p")
    conversations_db.log_conversation(db_conn, "s", "user", "out", project="q")
    tasks_db.create_task(db_conn, "p", "in")
    tasks_db.create_task(db_conn, "q", "out")

    result = collect(db_conn, "all", project="p")

    assert len(result.memories) == 1
    assert [e.content for e in result.conversations] == ["in"]
    assert [t.subject for t in result.tasks] == ["in"]


def test_conversation_age_uses_created_at(db_conn):
    old = conversations_db.log_conversation(db_conn, "s", "user", "old")
    conversations_db.log_conversation(db_conn, "s", "user", "new")
    _age(db_conn, "conversations", [old.id], column="created_at")

    result = collect(db_conn, "conversations", older_than_days=1)

    assert [e.id for e in result.conversations] == [old.id]


def test_limit_caps_each_root_scan(db_conn):
    ids = [memories_db.store_memory(db_conn, "c", f"k{i}", "v").id for i in range(3)]
    for i in range(3):
        tasks_db.create_task(db_conn, "p", f"t{i}")

    result = collect(db_conn, "all", limit=2)

    assert [m.id for m in result.memories] == ids[:2]
    assert len(result.tasks) == 2


def test_limit_does_not_cap_descendants(db_conn):
    a, b, c, _ = _task_chain(db_conn)
    result = collect(db_conn, "tasks", project="p", limit=1)
    assert [t.id for t in result.tasks] == [a.id, b.id, c.id]


def test_selector_restricts_root_kinds(db_conn):
    memories_db.store_memory(db_conn, "c", "k", "v")
    tasks_db.create_task(db_conn, "p", "t")

    result = collect(db_conn, "memories")

    assert len(result.memories) == 1
    assert result.tasks == []
    assert result.entity_types == ["memories"]


def test_store_failure_becomes_collect_error(db_conn, monkeypatch):
    def boom(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(tasks_db, "scan_tasks", boom)
    with pytest.raises(CollectError) as excinfo:
        collect(db_conn, "tasks")
    assert excinfo.value.kind == "tasks"
    assert "disk I/O error" in str(excinfo.value)


@pytest.mark.parametrize(
    "filters, name",
    [({"older_than_days": -1}, "older_than_days"), ({"limit": 0}, "limit"), ({"limit": -5}, "limit")],
)
def test_out_of_range_filters_rejected(db_conn, filters, name):
    memories_db.store_memory(db_conn, "c", "k", "v")
    with pytest.raises(InvalidFilterError) as excinfo:
        collect(db_conn, "all", **filters)
    assert isinstance(excinfo.value, ValueError)
    assert excinfo.value.name == name


def test_zero_days_is_a_valid_age(db_conn):
    m = memories_db.store_memory(db_conn, "c", "k", "v")
    _age(db_conn, "memories", [m.id])
    assert [x.id for x in collect(db_conn, "memories", older_than_days=0).memories] == [m.id]
