"""The archive envelope: a versioned, self-describing JSON snapshot.

Document shape::

    {
      "schema_version": "1.0",
      "created_at": "2026-10-17T09:30:00+00:00",
      "source_db": "/home/me/.keepsake/memory.db",
      "entity_types": ["memories", "tasks"],
      "filters": {"older_than_days": 30, "project": "...", "category": "..."},
      "counts": {"memories": 3, "tasks": 2, "task_deps": 1, "links": 4},
      "data": {
        "memories": [...], "conversations": [...], "tasks": [...],
        "task_deps": [[blocker_id, blocked_id], ...], "links": [...]
      }
    }

Unset filters, zero counts and empty data lists are left out of the file.
Restore accepts exactly one ``schema_version``.

Writes go to a temporary file in the destination directory which is then
renamed over the destination, so a reader never sees a half-written file.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from keepsake.archive.collector import Collection
from keepsake.archive.errors import (
    ArchiveFormatError,
    ArchiveReadError,
    ArchiveRenameError,
    ArchiveSerializationError,
    ArchiveWriteError,
    OutputExistsError,
    SchemaVersionError,
)
from keepsake.db.models import ConversationEntry, Link, Memory, Task
from keepsake.logging_config import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = "1.0"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ArchiveFilters(BaseModel):
    older_than_days: Optional[int] = None
    project: Optional[str] = None
    category: Optional[str] = None


class ArchiveCounts(BaseModel):
    memories: int = 0
    conversations: int = 0
    tasks: int = 0
    task_deps: int = 0
    links: int = 0

    @property
    def total(self) -> int:
        return self.memories + self.conversations + self.tasks + self.task_deps + self.links

    def nonzero(self) -> dict[str, int]:
        return {k: v for k, v in self.model_dump().items() if v}


class ArchiveData(BaseModel):
    memories: list[Memory] = Field(default_factory=list)
    conversations: list[ConversationEntry] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    task_deps: list[tuple[int, int]] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)


class ArchiveEnvelope(BaseModel):
    schema_version: str
    created_at: str
    source_db: str
    entity_types: list[str] = Field(default_factory=list)
    filters: ArchiveFilters = Field(default_factory=ArchiveFilters)
    counts: ArchiveCounts = Field(default_factory=ArchiveCounts)
    data: ArchiveData = Field(default_factory=ArchiveData)

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-ready dict, omitting unset and empty sections."""
        doc = self.model_dump(mode="json")
        doc["filters"] = {k: v for k, v in doc["filters"].items() if v is not None}
        doc["counts"] = {k: v for k, v in doc["counts"].items() if v}
        doc["data"] = {k: v for k, v in doc["data"].items() if v}
        return doc


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------

def build_envelope(
    collection: Collection,
    source_db: Union[str, Path],
    filters: ArchiveFilters,
) -> ArchiveEnvelope:
    """Wrap *collection* in a versioned envelope stamped with the current time."""
    return ArchiveEnvelope(
        schema_version=SCHEMA_VERSION,
        created_at=datetime.now(timezone.utc).isoformat(),
        source_db=str(source_db),
        entity_types=list(collection.entity_types),
        filters=filters,
        counts=ArchiveCounts(**collection.counts()),
        data=ArchiveData(
            memories=collection.memories,
            conversations=collection.conversations,
            tasks=collection.tasks,
            task_deps=collection.task_deps,
            links=collection.links,
        ),
    )


# ---------------------------------------------------------------------------
# Atomic write
# ---------------------------------------------------------------------------

def _discard(tmp_path: Optional[Path]) -> None:
    if tmp_path is None:
        return
    try:
        tmp_path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("could not remove temporary file %s: %s", tmp_path, exc)


def write_envelope(
    envelope: ArchiveEnvelope,
    path: Union[str, Path],
    force: bool = False,
) -> int:
    """Serialise *envelope* to *path* atomically.

    The parent directory is created if needed.  Without *force* an existing
    *path* is left untouched and :class:`OutputExistsError` is raised.

    Returns:
        Size of the written file in bytes.

    Raises:
        OutputExistsError: *path* exists and *force* is false.
        ArchiveSerializationError: The envelope could not be encoded.
        ArchiveWriteError: The directory or temporary file could not be written.
        ArchiveRenameError: The temporary file could not be moved into place.
    """
    path = Path(path)
    if path.exists() and not force:
        raise OutputExistsError(path)

    try:
        payload = json.dumps(envelope.to_document(), indent=2, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as exc:
        raise ArchiveSerializationError(exc) from exc
    data = payload.encode("utf-8")

    tmp_path: Optional[Path] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            delete=False,
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        ) as fh:
            tmp_path = Path(fh.name)
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
    except OSError as exc:
        _discard(tmp_path)
        raise ArchiveWriteError(path, exc) from exc

    if path.exists() and not force:
        # Someone else created the destination while we were writing.
        _discard(tmp_path)
        raise OutputExistsError(path)

    try:
        os.replace(tmp_path, path)
    except OSError as exc:
        _discard(tmp_path)
        raise ArchiveRenameError(path, exc) from exc

    logger.info("archive written to %s (%d bytes)", path, len(data))
    return len(data)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_envelope(path: Union[str, Path]) -> ArchiveEnvelope:
    """Read and validate the snapshot at *path*.

    The schema version is checked before the payload is validated, so a
    snapshot from another format version always fails with
    :class:`SchemaVersionError`.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ArchiveReadError(path, exc) from exc

    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ArchiveFormatError(path, exc) from exc
    if not isinstance(doc, dict):
        raise ArchiveFormatError(path, "top-level value is not an object")

    found = doc.get("schema_version")
    if found != SCHEMA_VERSION:
        raise SchemaVersionError(found, SCHEMA_VERSION)

    try:
        return ArchiveEnvelope.model_validate(doc)
    except ValidationError as exc:
        raise ArchiveFormatError(path, exc) from exc
