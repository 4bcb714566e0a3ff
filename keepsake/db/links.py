"""Operations on the ``links`` table.

A link is a directed, optionally labelled edge between any two addressable
entities, identified by ``(kind, id)`` pairs.  Endpoints are never checked
against their tables, so a link may outlive either side.
"""

from __future__ import annotations

import sqlite3
from typing import Optional, Sequence

from keepsake.db.bulk import chunked, placeholders
from keepsake.db.models import EntityKind, Link, check_choice

_COLUMNS = "id, source_type, source_id, target_type, target_id, relation, created_at"


def _row_to_link(row: sqlite3.Row) -> Link:
    return Link(
        id=row["id"],
        source_type=row["source_type"],
        source_id=row["source_id"],
        target_type=row["target_type"],
        target_id=row["target_id"],
        relation=row["relation"],
        created_at=row["created_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_link(
    conn: sqlite3.Connection,
    source_type: str,
    source_id: int,
    target_type: str,
    target_id: int,
    relation: Optional[str] = None,
) -> Link:
    """Create a link, or relabel it if the 4-tuple already exists.

    Raises:
        ValueError: If either endpoint kind is not a known :class:`EntityKind`.
    """
    check_choice(EntityKind, source_type, "source_type")
    check_choice(EntityKind, target_type, "target_type")
    with conn:
        conn.execute(
            """
            INSERT INTO links (source_type, source_id, target_type, target_id, relation)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(source_type, source_id, target_type, target_id) DO UPDATE SET
                relation = excluded.relation
            """,
            (source_type, source_id, target_type, target_id, relation),
        )
    row = conn.execute(
        f"""
        SELECT {_COLUMNS} FROM links
        WHERE source_type = ? AND source_id = ? AND target_type = ? AND target_id = ?
        """,  # noqa: S608
        (source_type, source_id, target_type, target_id),
    ).fetchone()
    return _row_to_link(row)


def get_links(conn: sqlite3.Connection, entity_type: str, entity_id: int) -> list[Link]:
    """Return all links where the entity is the source **or** the target."""
    rows = conn.execute(
        f"""
        SELECT {_COLUMNS} FROM links
        WHERE (source_type = ? AND source_id = ?)
           OR (target_type = ? AND target_id = ?)
        ORDER BY id
        """,  # noqa: S608
        (entity_type, entity_id, entity_type, entity_id),
    ).fetchall()
    return [_row_to_link(r) for r in rows]


def delete_link(conn: sqlite3.Connection, link_id: int) -> bool:
    """Delete a link by id.  Returns ``False`` if it did not exist."""
    with conn:
        cur = conn.execute("DELETE FROM links WHERE id = ?", (link_id,))
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Archive support
# ---------------------------------------------------------------------------

def links_for_ids(
    conn: sqlite3.Connection, entity_type: str, entity_ids: Sequence[int]
) -> list[Link]:
    """Return links whose source or target is ``(entity_type, id)`` for any id.

    Each link appears once even if both of its ends match.
    """
    found: dict[int, Link] = {}
    for chunk in chunked(entity_ids):
        ph = placeholders(chunk)
        rows = conn.execute(
            f"""
            SELECT {_COLUMNS} FROM links
            WHERE (source_type = ? AND source_id IN ({ph}))
               OR (target_type = ? AND target_id IN ({ph}))
            ORDER BY id
            """,  # noqa: S608
            [entity_type, *chunk, entity_type, *chunk],
        ).fetchall()
        for r in rows:
            found.setdefault(r["id"], _row_to_link(r))
    return [found[i] for i in sorted(found)]


def restore_link(conn: sqlite3.Connection, link: Link) -> bool:
    """Insert *link* with its original id unless it already exists.

    A clash on the id or on the endpoint 4-tuple counts as "already exists".
    """
    with conn:
        cur = conn.execute(
            f"""
            INSERT INTO links ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT DO NOTHING
            """,  # noqa: S608
            (
                link.id,
                link.source_type,
                link.source_id,
                link.target_type,
                link.target_id,
                link.relation,
                link.created_at,
            ),
        )
    return cur.rowcount > 0
