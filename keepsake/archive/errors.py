"""Errors raised by the archive subsystem.

Every error is terminal for the invocation that raised it; nothing is
retried.  A restore row that already exists is *not* an error.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from keepsake.archive.create import ArchiveResult


class ArchiveError(Exception):
    """Base class for archive create/restore failures."""


# ---------------------------------------------------------------------------
# Input validation: raised before any side effect
# ---------------------------------------------------------------------------

class InvalidSelectorError(ArchiveError, ValueError):
    def __init__(self, selector: str) -> None:
        self.selector = selector
        super().__init__(
            f"Unknown entity type {selector!r}. "
            "Must be one of: memories, conversations, tasks, all"
        )


class InvalidFilterError(ArchiveError, ValueError):
    def __init__(self, name: str, value: Any, rule: str) -> None:
        self.name = name
        self.value = value
        super().__init__(f"Invalid {name} {value!r}: {rule}")


class OutputExistsError(ArchiveError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Output file already exists: {path}. Use --force to overwrite.")


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

class CollectError(ArchiveError):
    """A store query failed while expanding the cascade."""

    def __init__(self, kind: str, cause: BaseException) -> None:
        self.kind = kind
        super().__init__(f"Failed to query {kind}: {cause}")


# ---------------------------------------------------------------------------
# Envelope write: raised before any purge
# ---------------------------------------------------------------------------

class ArchiveSerializationError(ArchiveError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed to serialize archive: {cause}")


class ArchiveWriteError(ArchiveError):
    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        super().__init__(f"Failed to write archive {path}: {cause}")


class ArchiveRenameError(ArchiveError):
    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        super().__init__(f"Failed to move archive into place at {path}: {cause}")


# ---------------------------------------------------------------------------
# Purge: the archive file is valid, the live store is partially purged
# ---------------------------------------------------------------------------

class PurgeError(ArchiveError):
    """A purge phase failed.  ``kind`` names the phase."""

    def __init__(self, kind: str, cause: BaseException) -> None:
        self.kind = kind
        super().__init__(f"Failed to delete archived {kind}: {cause}")


class PartialPurgeError(ArchiveError):
    """The archive was written but purging the live store did not finish.

    ``result`` describes the archive that *was* written; re-running the
    purge against it is safe.
    """

    def __init__(self, result: "ArchiveResult", cause: PurgeError) -> None:
        self.result = result
        self.kind = cause.kind
        super().__init__(
            f"Archive written to {result.path}, but purge stopped at {cause.kind}: "
            f"{cause.__cause__ or cause}"
        )


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------

class ArchiveReadError(ArchiveError):
    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        super().__init__(f"Failed to read archive file {path}: {cause}")


class ArchiveFormatError(ArchiveError):
    def __init__(self, path: Path, detail: Any) -> None:
        self.path = path
        super().__init__(f"Failed to parse archive file {path}: {detail}")


class SchemaVersionError(ArchiveError):
    def __init__(self, found: Optional[str], expected: str) -> None:
        self.found = found
        self.expected = expected
        super().__init__(
            f"Incompatible archive schema version: found {found!r}, expected {expected!r}"
        )


class RestoreError(ArchiveError):
    """A row could not be inserted for a reason other than "already exists"."""

    def __init__(self, kind: str, row_id: Any, cause: BaseException) -> None:
        self.kind = kind
        self.row_id = row_id
        super().__init__(f"Failed to restore {kind} {row_id}: {cause}")
