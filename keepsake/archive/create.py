"""Archive creation: collect → write envelope → optionally purge.

The three steps are not one transaction.  If the process dies after the
envelope is written but before the purge finishes, the archive is complete
and the live store simply still holds (some of) the archived rows; purging
again from the same envelope is safe.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from keepsake.archive import purge as purge_mod
from keepsake.archive.collector import EntitySelector, check_filters, collect, parse_selector
from keepsake.archive.envelope import (
    ArchiveCounts,
    ArchiveFilters,
    build_envelope,
    write_envelope,
)
from keepsake.archive.errors import OutputExistsError, PartialPurgeError, PurgeError
from keepsake.db.connection import database_location
from keepsake.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ArchiveResult:
    """What :func:`create_archive` wrote (and removed)."""

    path: Path
    size_bytes: int
    counts: ArchiveCounts
    entity_types: list[str] = field(default_factory=list)
    purged: bool = False
    deleted: Optional[ArchiveCounts] = None


def create_archive(
    conn: sqlite3.Connection,
    output: Union[str, Path],
    entity_type: Union[str, EntitySelector] = EntitySelector.ALL,
    *,
    older_than_days: Optional[int] = None,
    project: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
    purge: bool = False,
    force: bool = False,
    source_db: Optional[str] = None,
) -> Optional[ArchiveResult]:
    """Archive the selected entities of *conn* into *output*.

    Args:
        conn: Live store to read (and, with *purge*, delete) from.
        output: Destination JSON file.
        entity_type: ``memories``, ``conversations``, ``tasks`` or ``all``.
        older_than_days: Only rows older than this many days.
        project: Narrow conversations and tasks to this project.
        category: Narrow memories to this category.
        limit: Cap on the number of root rows per kind.
        purge: Delete the archived rows after the file is written.
        force: Overwrite *output* if it already exists.
        source_db: Origin recorded in the envelope.  Defaults to the file
            backing *conn*.

    Returns:
        An :class:`ArchiveResult`, or ``None`` when no root row matched, in
        which case nothing is written and nothing is deleted.

    Raises:
        InvalidSelectorError, InvalidFilterError, OutputExistsError: Before
            anything is read.
        CollectError: A store query failed; nothing was written.
        ArchiveSerializationError, ArchiveWriteError, ArchiveRenameError:
            The file could not be written; nothing was deleted.
        PartialPurgeError: The file was written but the purge stopped
            part-way.  ``exc.result`` describes the archive.
    """
    selector = parse_selector(entity_type)
    check_filters(older_than_days, limit)
    output = Path(output)
    if output.exists() and not force:
        raise OutputExistsError(output)

    collection = collect(
        conn,
        selector,
        older_than_days=older_than_days,
        project=project,
        category=category,
        limit=limit,
    )
    if collection.is_empty():
        logger.info("no entities match the given filters; no archive written")
        return None

    envelope = build_envelope(
        collection,
        source_db or database_location(conn),
        ArchiveFilters(
            older_than_days=older_than_days, project=project, category=category
        ),
    )
    size = write_envelope(envelope, output, force=force)

    result = ArchiveResult(
        path=output,
        size_bytes=size,
        counts=envelope.counts,
        entity_types=list(envelope.entity_types),
    )
    if not purge:
        return result

    try:
        result.deleted = purge_mod.purge(conn, envelope.data)
    except PurgeError as exc:
        logger.warning("archive %s written but purge failed at %s: %s", output, exc.kind, exc)
        raise PartialPurgeError(result, exc) from exc
    result.purged = True
    return result
