"""Remove archived rows from the live store.

Only ever called after the envelope is on disk, and only with the id lists
captured in that envelope; the original filters are not re-evaluated.

Phases run in a fixed order so that nothing is left pointing at a row that
is already gone:

    links → task dependencies → tasks → conversations → memories

Every phase deletes by id and tolerates ids that no longer exist, so a purge
interrupted part-way can simply be run again.
"""

from __future__ import annotations

import sqlite3

from keepsake.archive.envelope import ArchiveCounts, ArchiveData
from keepsake.archive.errors import PurgeError
from keepsake.db import tasks as tasks_db
from keepsake.db.bulk import delete_by_ids
from keepsake.logging_config import get_logger

logger = get_logger(__name__)


def purge(conn: sqlite3.Connection, data: ArchiveData) -> ArchiveCounts:
    """Delete the rows listed in *data* from *conn*.

    Returns:
        Rows actually deleted per kind (ids already gone are not counted).

    Raises:
        PurgeError: A phase failed; ``kind`` names it.  Earlier phases have
            already been applied.
    """
    deleted = ArchiveCounts()
    task_ids = [t.id for t in data.tasks]

    phases = (
        ("links", lambda: delete_by_ids(conn, "links", [link.id for link in data.links])),
        ("task_deps", lambda: tasks_db.delete_deps_for_task_ids(conn, task_ids)),
        ("tasks", lambda: delete_by_ids(conn, "tasks", task_ids)),
        (
            "conversations",
            lambda: delete_by_ids(conn, "conversations", [c.id for c in data.conversations]),
        ),
        ("memories", lambda: delete_by_ids(conn, "memories", [m.id for m in data.memories])),
    )
    for kind, run in phases:
        try:
            removed = run()
        except sqlite3.Error as exc:
            raise PurgeError(kind, exc) from exc
        setattr(deleted, kind, removed)
        logger.info("purged %d %s", removed, kind)

    return deleted
