"""Id-list helpers shared by the per-table modules.

SQLite caps the number of host parameters per statement, so every query that
binds a caller-supplied id list goes through :func:`chunked`.
"""

from __future__ import annotations

import sqlite3
from typing import Iterable, Iterator, Sequence

# Comfortably below SQLITE_MAX_VARIABLE_NUMBER on old builds (999), leaving
# room for the extra parameters some queries bind alongside the ids.
CHUNK_SIZE = 400

# Tables that carry an ``id`` primary key and may be bulk-deleted.
ID_TABLES = ("memories", "conversations", "tasks", "links")

COUNTED_TABLES = ("memories", "conversations", "tasks", "task_deps", "links")


def chunked(ids: Sequence[int], size: int = CHUNK_SIZE) -> Iterator[list[int]]:
    """Yield *ids* in consecutive slices of at most *size* items."""
    for start in range(0, len(ids), size):
        yield list(ids[start:start + size])


def placeholders(values: Iterable[object]) -> str:
    """Return ``"?, ?, …"`` with one marker per value."""
    return ", ".join("?" for _ in values)


def delete_by_ids(conn: sqlite3.Connection, table: str, ids: Sequence[int]) -> int:
    """Delete rows of *table* whose ``id`` is in *ids*.

    Ids that no longer exist are ignored, so re-running a delete with the
    same list is harmless.

    Returns:
        Number of rows actually removed.
    """
    if table not in ID_TABLES:
        raise ValueError(f"Cannot bulk-delete from table {table!r}")
    affected = 0
    for chunk in chunked(ids):
        with conn:
            cur = conn.execute(
                f"DELETE FROM {table} WHERE id IN ({placeholders(chunk)})",  # noqa: S608
                chunk,
            )
        affected += cur.rowcount
    return affected


def table_counts(conn: sqlite3.Connection) -> dict[str, int]:
    """Return the row count of every entity table."""
    return {
        table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]  # noqa: S608
        for table in COUNTED_TABLES
    }
