"""CRUD operations for the ``memories`` table."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional, Sequence

from keepsake.db.models import Memory

_COLUMNS = "id, category, key, value, tags, created_at, updated_at"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_memory(row: sqlite3.Row) -> Memory:
    return Memory(
        id=row["id"],
        category=row["category"],
        key=row["key"],
        value=row["value"],
        tags=json.loads(row["tags"]) if row["tags"] else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _tags_json(tags: Optional[Sequence[str]]) -> Optional[str]:
    return json.dumps(list(tags)) if tags is not None else None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def store_memory(
    conn: sqlite3.Connection,
    category: str,
    key: str,
    value: str,
    tags: Optional[Sequence[str]] = None,
) -> Memory:
    """Insert a memory, or update value/tags if ``(category, key)`` exists."""
    with conn:
        conn.execute(
            """
            INSERT INTO memories (category, key, value, tags)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(category, key) DO UPDATE SET
                value      = excluded.value,
                tags       = excluded.tags,
                updated_at = datetime('now')
            """,
            (category, key, value, _tags_json(tags)),
        )
    return get_memory(conn, category, key)  # type: ignore[return-value]


def get_memory(conn: sqlite3.Connection, category: str, key: str) -> Optional[Memory]:
    """Fetch a memory by its ``(category, key)`` identity."""
    row = conn.execute(
        f"SELECT {_COLUMNS} FROM memories WHERE category = ? AND key = ?",  # noqa: S608
        (category, key),
    ).fetchone()
    return _row_to_memory(row) if row else None


def list_memories(
    conn: sqlite3.Connection,
    category: Optional[str] = None,
    limit: int = 50,
) -> list[Memory]:
    """Return memories, most recently updated first."""
    if category:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM memories WHERE category = ? "  # noqa: S608
            "ORDER BY updated_at DESC, id DESC LIMIT ?",
            (category, limit),
        ).fetchall()
    else:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM memories "  # noqa: S608
            "ORDER BY updated_at DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_memory(r) for r in rows]


def delete_memory(conn: sqlite3.Connection, category: str, key: str) -> bool:
    """Delete a memory.  Returns ``False`` if it did not exist."""
    with conn:
        cur = conn.execute(
            "DELETE FROM memories WHERE category = ? AND key = ?", (category, key)
        )
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Archive support
# ---------------------------------------------------------------------------

def scan_memories(
    conn: sqlite3.Connection,
    category: Optional[str] = None,
    older_than_days: Optional[int] = None,
    limit: Optional[int] = None,
) -> list[Memory]:
    """Return memories matching the archive filters, ordered by id.

    Age is measured against ``updated_at``.
    """
    clauses: list[str] = []
    params: list[Any] = []
    if category is not None:
        clauses.append("category = ?")
        params.append(category)
    if older_than_days is not None:
        clauses.append("updated_at < datetime('now', ?)")
        params.append(f"-{older_than_days} days")

    sql = f"SELECT {_COLUMNS} FROM memories"  # noqa: S608
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY id ASC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)

    return [_row_to_memory(r) for r in conn.execute(sql, params).fetchall()]


def restore_memory(conn: sqlite3.Connection, memory: Memory) -> bool:
    """Insert *memory* with its original id unless it already exists.

    A clash on the id or on ``(category, key)`` counts as "already exists".

    Returns:
        ``True`` if the row was inserted, ``False`` if it was skipped.
    """
    with conn:
        cur = conn.execute(
            f"""
            INSERT INTO memories ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT DO NOTHING
            """,  # noqa: S608
            (
                memory.id,
                memory.category,
                memory.key,
                memory.value,
                _tags_json(memory.tags),
                memory.created_at,
                memory.updated_at,
            ),
        )
    return cur.rowcount > 0
