"""Operations on the ``tasks`` and ``task_deps`` tables.

Tasks form a tree through ``parent_id`` (multiple roots, unbounded depth).
``task_deps`` holds directed ``(blocker_id, blocked_id)`` edges: the blocker
must complete before the blocked task may start.  Neither relationship is
enforced by the engine, and dependency cycles are not rejected.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Optional, Sequence

from keepsake.db.bulk import chunked, placeholders
from keepsake.db.models import Task, TaskPriority, TaskStatus, TaskType, check_choice

_COLUMNS = (
    "id, project, subject, description, status, priority, task_type, parent_id, "
    "due_date, created_by, assignee, owner, session_id, created_at, updated_at"
)

_UPDATABLE = {
    "subject",
    "description",
    "status",
    "priority",
    "task_type",
    "assignee",
    "owner",
    "due_date",
    "session_id",
}

_ENUM_FIELDS = {
    "status": TaskStatus,
    "priority": TaskPriority,
    "task_type": TaskType,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        project=row["project"],
        subject=row["subject"],
        description=row["description"],
        status=row["status"],
        priority=row["priority"],
        task_type=row["task_type"],
        parent_id=row["parent_id"],
        due_date=row["due_date"],
        created_by=row["created_by"],
        assignee=row["assignee"],
        owner=row["owner"],
        session_id=row["session_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

def create_task(
    conn: sqlite3.Connection,
    project: str,
    subject: str,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    task_type: Optional[str] = None,
    parent_id: Optional[int] = None,
    due_date: Optional[str] = None,
    created_by: Optional[str] = None,
    assignee: Optional[str] = None,
    owner: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Task:
    """Insert a new task in ``pending`` state and return it.

    Omitted *priority* / *task_type* fall back to the column defaults
    (``medium`` / ``claude``).

    Raises:
        ValueError: If *priority* or *task_type* is not a known value.
    """
    if priority is not None:
        check_choice(TaskPriority, priority, "priority")
    if task_type is not None:
        check_choice(TaskType, task_type, "task_type")

    with conn:
        cur = conn.execute(
            """
            INSERT INTO tasks (project, subject, description, priority, task_type,
                               parent_id, due_date, created_by, assignee, owner, session_id)
            VALUES (?, ?, ?, COALESCE(?, 'medium'), COALESCE(?, 'claude'), ?, ?, ?, ?, ?, ?)
            """,
            (
                project, subject, description, priority, task_type,
                parent_id, due_date, created_by, assignee, owner, session_id,
            ),
        )
    return get_task(conn, cur.lastrowid)  # type: ignore[arg-type,return-value]


def get_task(conn: sqlite3.Connection, task_id: int) -> Optional[Task]:
    """Fetch a single task by id.  Returns ``None`` if not found."""
    row = conn.execute(
        f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)  # noqa: S608
    ).fetchone()
    return _row_to_task(row) if row else None


def get_tasks_by_ids(conn: sqlite3.Connection, task_ids: Sequence[int]) -> list[Task]:
    """Fetch every existing task in *task_ids*, ordered by id.

    Ids with no matching row are silently absent from the result.
    """
    tasks: list[Task] = []
    for chunk in chunked(task_ids):
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE id IN ({placeholders(chunk)})",  # noqa: S608
            chunk,
        ).fetchall()
        tasks.extend(_row_to_task(r) for r in rows)
    return sorted(tasks, key=lambda t: t.id)


def update_task(conn: sqlite3.Connection, task_id: int, **kwargs: Any) -> Task:
    """Update one or more fields on a task.

    Allowed keyword arguments: ``subject``, ``description``, ``status``,
    ``priority``, ``task_type``, ``assignee``, ``owner``, ``due_date``,
    ``session_id``.  Passing ``None`` clears the column.  ``updated_at`` is
    always refreshed when anything changes.

    Raises:
        ValueError: If ``task_id`` does not exist, a field is not updatable,
            or an enumerated field gets an unknown value.
    """
    if get_task(conn, task_id) is None:
        raise ValueError(f"Task not found: {task_id!r}")

    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in _UPDATABLE:
            raise ValueError(f"Cannot update field {key!r}")
        if key in _ENUM_FIELDS and value is not None:
            check_choice(_ENUM_FIELDS[key], value, key)
        updates[key] = value

    if not updates:
        return get_task(conn, task_id)  # type: ignore[return-value]

    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [task_id]

    with conn:
        conn.execute(
            f"UPDATE tasks SET {set_clause}, updated_at = datetime('now') WHERE id = ?",  # noqa: S608
            values,
        )
    return get_task(conn, task_id)  # type: ignore[return-value]


def list_tasks(
    conn: sqlite3.Connection,
    project: Optional[str] = None,
    status: Optional[str] = None,
    assignee: Optional[str] = None,
    task_type: Optional[str] = None,
    priority: Optional[str] = None,
    limit: int = 50,
) -> list[Task]:
    """Return tasks, most recently updated first.

    Soft-deleted tasks are hidden unless *status* is given explicitly.
    """
    clauses: list[str] = []
    params: list[Any] = []
    for col, val in (
        ("project", project),
        ("status", status),
        ("assignee", assignee),
        ("task_type", task_type),
        ("priority", priority),
    ):
        if val is not None:
            clauses.append(f"{col} = ?")
            params.append(val)
    if status is None:
        clauses.append("status != 'deleted'")

    sql = f"SELECT {_COLUMNS} FROM tasks WHERE " + " AND ".join(clauses)  # noqa: S608
    sql += " ORDER BY updated_at DESC, id DESC LIMIT ?"
    params.append(limit)
    return [_row_to_task(r) for r in conn.execute(sql, params).fetchall()]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def add_task_dep(conn: sqlite3.Connection, blocker_id: int, blocked_id: int) -> None:
    """Record that *blocker_id* blocks *blocked_id*.  Re-adding is a no-op."""
    with conn:
        conn.execute(
            "INSERT OR IGNORE INTO task_deps (blocker_id, blocked_id) VALUES (?, ?)",
            (blocker_id, blocked_id),
        )


def remove_task_dep(conn: sqlite3.Connection, blocker_id: int, blocked_id: int) -> bool:
    """Remove a dependency edge.  Returns ``False`` if it did not exist."""
    with conn:
        cur = conn.execute(
            "DELETE FROM task_deps WHERE blocker_id = ? AND blocked_id = ?",
            (blocker_id, blocked_id),
        )
    return cur.rowcount > 0


def get_task_deps(conn: sqlite3.Connection, task_id: int) -> tuple[list[Task], list[Task]]:
    """Return ``(blockers, blocked)`` for *task_id*."""
    cols = ", ".join(f"t.{c.strip()}" for c in _COLUMNS.split(","))
    blockers = conn.execute(
        f"""
        SELECT {cols} FROM task_deps d JOIN tasks t ON t.id = d.blocker_id
        WHERE d.blocked_id = ? ORDER BY t.id
        """,  # noqa: S608
        (task_id,),
    ).fetchall()
    blocked = conn.execute(
        f"""
        SELECT {cols} FROM task_deps d JOIN tasks t ON t.id = d.blocked_id
        WHERE d.blocker_id = ? ORDER BY t.id
        """,  # noqa: S608
        (task_id,),
    ).fetchall()
    return [_row_to_task(r) for r in blockers], [_row_to_task(r) for r in blocked]


# ---------------------------------------------------------------------------
# Archive support
# ---------------------------------------------------------------------------

def scan_tasks(
    conn: sqlite3.Connection,
    project: Optional[str] = None,
    older_than_days: Optional[int] = None,
    limit: Optional[int] = None,
) -> list[Task]:
    """Return tasks matching the archive filters, ordered by id.

    Age is measured against ``updated_at``.  Soft-deleted tasks are included.
    """
    clauses: list[str] = []
    params: list[Any] = []
    if project is not None:
        clauses.append("project = ?")
        params.append(project)
    if older_than_days is not None:
        clauses.append("updated_at < datetime('now', ?)")
        params.append(f"-{older_than_days} days")

    sql = f"SELECT {_COLUMNS} FROM tasks"  # noqa: S608
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY id ASC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    return [_row_to_task(r) for r in conn.execute(sql, params).fetchall()]


def child_task_ids(conn: sqlite3.Connection, parent_ids: Sequence[int]) -> list[int]:
    """Return ids of the direct children of *parent_ids*, ordered by id."""
    children: list[int] = []
    for chunk in chunked(parent_ids):
        rows = conn.execute(
            f"SELECT id FROM tasks WHERE parent_id IN ({placeholders(chunk)})",  # noqa: S608
            chunk,
        ).fetchall()
        children.extend(r[0] for r in rows)
    return sorted(children)


def deps_for_task_ids(
    conn: sqlite3.Connection, task_ids: Sequence[int]
) -> list[tuple[int, int]]:
    """Return every dependency edge with either endpoint in *task_ids*."""
    edges: dict[tuple[int, int], None] = {}
    for chunk in chunked(task_ids):
        ph = placeholders(chunk)
        rows = conn.execute(
            f"""
            SELECT blocker_id, blocked_id FROM task_deps
            WHERE blocker_id IN ({ph}) OR blocked_id IN ({ph})
            ORDER BY blocker_id, blocked_id
            """,  # noqa: S608
            chunk + chunk,
        ).fetchall()
        for r in rows:
            edges[(r[0], r[1])] = None
    return list(edges)


def delete_deps_for_task_ids(conn: sqlite3.Connection, task_ids: Sequence[int]) -> int:
    """Delete every dependency edge touching *task_ids*.  Returns the count."""
    affected = 0
    for chunk in chunked(task_ids):
        ph = placeholders(chunk)
        with conn:
            cur = conn.execute(
                f"DELETE FROM task_deps WHERE blocker_id IN ({ph}) OR blocked_id IN ({ph})",  # noqa: S608
                chunk + chunk,
            )
        affected += cur.rowcount
    return affected


def restore_task(conn: sqlite3.Connection, task: Task) -> bool:
    """Insert *task* with its original id unless that id is taken."""
    with conn:
        cur = conn.execute(
            f"""
            INSERT INTO tasks ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT DO NOTHING
            """,  # noqa: S608
            (
                task.id, task.project, task.subject, task.description, task.status,
                task.priority, task.task_type, task.parent_id, task.due_date,
                task.created_by, task.assignee, task.owner, task.session_id,
                task.created_at, task.updated_at,
            ),
        )
    return cur.rowcount > 0


def restore_task_dep(conn: sqlite3.Connection, blocker_id: int, blocked_id: int) -> bool:
    """Insert a dependency edge unless it already exists."""
    with conn:
        cur = conn.execute(
            """
            INSERT INTO task_deps (blocker_id, blocked_id) VALUES (?, ?)
            ON CONFLICT DO NOTHING
            """,
            (blocker_id, blocked_id),
        )
    return cur.rowcount > 0
