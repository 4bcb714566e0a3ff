"""CRUD helpers for the ``conversations`` transcript log.

Each row is one message of a session.  ``entry_type`` distinguishes
summaries from raw transcript lines; the token columns are only populated
for entries captured from a model transcript.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Optional

from keepsake.db.models import ConversationEntry, EntryType, check_choice

_COLUMNS = (
    "id, session_id, role, content, project, entry_type, raw_id, model, "
    "input_tokens, output_tokens, cache_creation_tokens, cache_read_tokens, "
    "message_timestamp, created_at"
)


def _row_to_entry(row: sqlite3.Row) -> ConversationEntry:
    return ConversationEntry(
        id=row["id"],
        session_id=row["session_id"],
        role=row["role"],
        content=row["content"],
        project=row["project"],
        entry_type=row["entry_type"],
        raw_id=row["raw_id"],
        model=row["model"],
        input_tokens=row["input_tokens"],
        output_tokens=row["output_tokens"],
        cache_creation_tokens=row["cache_creation_tokens"],
        cache_read_tokens=row["cache_read_tokens"],
        message_timestamp=row["message_timestamp"],
        created_at=row["created_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def log_conversation(
    conn: sqlite3.Connection,
    session_id: str,
    role: str,
    content: str,
    project: Optional[str] = None,
    entry_type: Optional[str] = None,
    raw_id: Optional[int] = None,
) -> ConversationEntry:
    """Append one entry to the log and return it.

    Raises:
        ValueError: If *entry_type* is not a known :class:`EntryType`.
    """
    if entry_type is not None:
        check_choice(EntryType, entry_type, "entry_type")
    with conn:
        cur = conn.execute(
            """
            INSERT INTO conversations (session_id, role, content, project, entry_type, raw_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (session_id, role, content, project, entry_type, raw_id),
        )
    return get_conversation(conn, cur.lastrowid)  # type: ignore[arg-type,return-value]


def get_conversation(conn: sqlite3.Connection, entry_id: int) -> Optional[ConversationEntry]:
    """Fetch a single entry by id.  Returns ``None`` if not found."""
    row = conn.execute(
        f"SELECT {_COLUMNS} FROM conversations WHERE id = ?", (entry_id,)  # noqa: S608
    ).fetchone()
    return _row_to_entry(row) if row else None


def list_conversations(
    conn: sqlite3.Connection,
    session_id: Optional[str] = None,
    entry_type: Optional[str] = None,
    limit: int = 20,
) -> list[ConversationEntry]:
    """Return entries, newest first, optionally narrowed by session/type."""
    clauses: list[str] = []
    params: list[Any] = []
    if session_id:
        clauses.append("session_id = ?")
        params.append(session_id)
    if entry_type:
        clauses.append("entry_type = ?")
        params.append(entry_type)

    sql = f"SELECT {_COLUMNS} FROM conversations"  # noqa: S608
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(limit)
    return [_row_to_entry(r) for r in conn.execute(sql, params).fetchall()]


def prune_conversations(
    conn: sqlite3.Connection,
    older_than_days: int,
    entry_type: Optional[str] = None,
) -> int:
    """Hard-delete entries older than *older_than_days*.  Returns the count.

    Raises:
        ValueError: If *older_than_days* is negative.
    """
    if older_than_days < 0:
        raise ValueError(f"Invalid older_than_days {older_than_days!r}: must be 0 or greater")
    sql = "DELETE FROM conversations WHERE created_at < datetime('now', ?)"
    params: list[Any] = [f"-{older_than_days} days"]
    if entry_type:
        sql += " AND entry_type = ?"
        params.append(entry_type)
    with conn:
        cur = conn.execute(sql, params)
    return cur.rowcount


# ---------------------------------------------------------------------------
# Archive support
# ---------------------------------------------------------------------------

def scan_conversations(
    conn: sqlite3.Connection,
    project: Optional[str] = None,
    older_than_days: Optional[int] = None,
    limit: Optional[int] = None,
) -> list[ConversationEntry]:
    """Return entries matching the archive filters, ordered by id.

    Age is measured against ``created_at``.
    """
    clauses: list[str] = []
    params: list[Any] = []
    if project is not None:
        clauses.append("project = ?")
        params.append(project)
    if older_than_days is not None:
        clauses.append("created_at < datetime('now', ?)")
        params.append(f"-{older_than_days} days")

    sql = f"SELECT {_COLUMNS} FROM conversations"  # noqa: S608
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY id ASC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    return [_row_to_entry(r) for r in conn.execute(sql, params).fetchall()]


def restore_conversation(conn: sqlite3.Connection, entry: ConversationEntry) -> bool:
    """Insert *entry* with its original id unless that id is taken."""
    with conn:
        cur = conn.execute(
            f"""
            INSERT INTO conversations ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT DO NOTHING
            """,  # noqa: S608
            (
                entry.id,
                entry.session_id,
                entry.role,
                entry.content,
                entry.project,
                entry.entry_type,
                entry.raw_id,
                entry.model,
                entry.input_tokens,
                entry.output_tokens,
                entry.cache_creation_tokens,
                entry.cache_read_tokens,
                entry.message_timestamp,
                entry.created_at,
            ),
        )
    return cur.rowcount > 0
