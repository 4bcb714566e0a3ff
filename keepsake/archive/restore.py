"""Re-insert an archive snapshot into a live store.

Rows keep their original ids.  A row whose id (or other unique identity)
already exists in the destination is counted as *skipped*; it is never
overwritten and never renumbered.  Each row is inserted on its own, so an
interrupted restore can be re-run and will only add what is missing.

Insertion order mirrors the purge order in reverse:

    memories → conversations → tasks → task dependencies → links

Within the task phase every parent present in the snapshot is inserted
before its children.
"""

from __future__ import annotations

import heapq
import sqlite3
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, TypeVar, Union

from keepsake.archive.envelope import ArchiveCounts, ArchiveEnvelope, load_envelope
from keepsake.archive.errors import RestoreError
from keepsake.db import conversations as conversations_db
from keepsake.db import links as links_db
from keepsake.db import memories as memories_db
from keepsake.db import tasks as tasks_db
from keepsake.db.models import Task
from keepsake.logging_config import get_logger

logger = get_logger(__name__)

RowT = TypeVar("RowT")


@dataclass
class RestoreReport:
    """Outcome of one restore run."""

    path: Path
    # Counts recorded in the snapshot itself.
    present: ArchiveCounts = field(default_factory=ArchiveCounts)
    restored: ArchiveCounts = field(default_factory=ArchiveCounts)
    skipped: ArchiveCounts = field(default_factory=ArchiveCounts)

    @property
    def total_restored(self) -> int:
        return self.restored.total

    @property
    def total_skipped(self) -> int:
        return self.skipped.total


def parent_first(tasks: Iterable[Task]) -> list[Task]:
    """Order *tasks* so that each parent in the set precedes its children.

    A task whose parent is not in the set is a root.  Among tasks that are
    ready at the same time the lowest id goes first.  Tasks caught in a
    ``parent_id`` cycle cannot be ordered and are appended by id.
    """
    by_id: dict[int, Task] = {}
    duplicates: list[Task] = []
    for task in tasks:
        if task.id in by_id:
            duplicates.append(task)
        else:
            by_id[task.id] = task

    children: dict[int, list[int]] = defaultdict(list)
    ready: list[int] = []
    for task in by_id.values():
        if task.parent_id is None or task.parent_id not in by_id:
            ready.append(task.id)
        else:
            children[task.parent_id].append(task.id)
    heapq.heapify(ready)

    ordered: list[Task] = []
    while ready:
        task_id = heapq.heappop(ready)
        ordered.append(by_id[task_id])
        for child_id in children.pop(task_id, ()):
            heapq.heappush(ready, child_id)

    if len(ordered) < len(by_id):
        placed = {t.id for t in ordered}
        stranded = sorted(i for i in by_id if i not in placed)
        logger.warning("parent_id cycle among tasks %s; restoring them in id order", stranded)
        ordered.extend(by_id[i] for i in stranded)

    return ordered + duplicates


def _restore_rows(
    kind: str,
    rows: Iterable[RowT],
    insert: Callable[[RowT], bool],
    row_id: Callable[[RowT], object],
    restored: ArchiveCounts,
    skipped: ArchiveCounts,
) -> None:
    inserted = 0
    existing = 0
    for row in rows:
        try:
            if insert(row):
                inserted += 1
            else:
                existing += 1
        except sqlite3.Error as exc:
            raise RestoreError(kind, row_id(row), exc) from exc
    setattr(restored, kind, inserted)
    setattr(skipped, kind, existing)
    logger.info("restored %d %s, skipped %d", inserted, kind, existing)


def restore_envelope(
    conn: sqlite3.Connection,
    envelope: ArchiveEnvelope,
) -> tuple[ArchiveCounts, ArchiveCounts]:
    """Insert every row of *envelope* into *conn*.

    Returns:
        ``(restored, skipped)`` counts per kind.

    Raises:
        RestoreError: A row failed for a reason other than already existing.
            Rows inserted before it stay in place.
    """
    data = envelope.data
    restored = ArchiveCounts()
    skipped = ArchiveCounts()

    _restore_rows(
        "memories", data.memories,
        lambda m: memories_db.restore_memory(conn, m), lambda m: m.id,
        restored, skipped,
    )
    _restore_rows(
        "conversations", data.conversations,
        lambda c: conversations_db.restore_conversation(conn, c), lambda c: c.id,
        restored, skipped,
    )
    _restore_rows(
        "tasks", parent_first(data.tasks),
        lambda t: tasks_db.restore_task(conn, t), lambda t: t.id,
        restored, skipped,
    )
    _restore_rows(
        "task_deps", data.task_deps,
        lambda d: tasks_db.restore_task_dep(conn, d[0], d[1]), lambda d: tuple(d),
        restored, skipped,
    )
    _restore_rows(
        "links", data.links,
        lambda link: links_db.restore_link(conn, link), lambda link: link.id,
        restored, skipped,
    )
    return restored, skipped


def restore_archive(conn: sqlite3.Connection, path: Union[str, Path]) -> RestoreReport:
    """Load the snapshot at *path* and restore it into *conn*.

    The snapshot file is only read, never modified.

    Raises:
        ArchiveReadError: The file could not be read.
        ArchiveFormatError: The file is not a valid envelope.
        SchemaVersionError: The envelope has another schema version; nothing
            is inserted.
        RestoreError: A row insertion failed.
    """
    path = Path(path)
    envelope = load_envelope(path)
    restored, skipped = restore_envelope(conn, envelope)
    report = RestoreReport(
        path=path, present=envelope.counts, restored=restored, skipped=skipped
    )
    logger.info(
        "restore of %s finished: %d restored, %d skipped",
        path, report.total_restored, report.total_skipped,
    )
    return report
