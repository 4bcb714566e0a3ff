"""Cold-storage archive and restore of the entity graph.

Typical use::

    from keepsake.archive import create_archive, restore_archive

    create_archive(conn, "old.json", "tasks", older_than_days=90, purge=True)
    restore_archive(other_conn, "old.json")
"""

from keepsake.archive.collector import Collection, EntitySelector, collect
from keepsake.archive.create import ArchiveResult, create_archive
from keepsake.archive.envelope import SCHEMA_VERSION, ArchiveEnvelope, load_envelope
from keepsake.archive.errors import ArchiveError, PartialPurgeError
from keepsake.archive.restore import RestoreReport, restore_archive

__all__ = [
    "SCHEMA_VERSION",
    "ArchiveEnvelope",
    "ArchiveError",
    "ArchiveResult",
    "Collection",
    "EntitySelector",
    "PartialPurgeError",
    "RestoreReport",
    "collect",
    "create_archive",
    "load_envelope",
    "restore_archive",
]
