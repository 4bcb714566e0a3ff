"""Formatting helpers for human-readable CLI output."""

from __future__ import annotations

from keepsake.archive.envelope import ArchiveCounts
from keepsake.db.models import Memory, Task


def format_size(num_bytes: int) -> str:
    """Render a byte count as ``"812 bytes"``, ``"3.4 KB"`` or ``"1.2 MB"``."""
    if num_bytes < 1024:
        return f"{num_bytes} bytes"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def count_lines(counts: ArchiveCounts, indent: str = "    ") -> list[str]:
    """One ``"<kind>: <n>"`` line per kind with a non-zero count."""
    return [f"{indent}{kind}: {n}" for kind, n in counts.nonzero().items()]


def restore_lines(
    present: ArchiveCounts,
    restored: ArchiveCounts,
    skipped: ArchiveCounts,
    indent: str = "    ",
) -> list[str]:
    """Per-kind ``"N restored, M skipped"`` lines for kinds in the snapshot."""
    return [
        f"{indent}{kind}: {getattr(restored, kind)} restored, {getattr(skipped, kind)} skipped"
        for kind in present.nonzero()
    ]


def memory_line(m: Memory) -> str:
    tags = f"  #{' #'.join(m.tags)}" if m.tags else ""
    return f"  [{m.category}] {m.key} = {m.value!r}{tags}"


def task_line(t: Task) -> str:
    parent = f"  (parent {t.parent_id})" if t.parent_id is not None else ""
    return f"  {t.id:>4}  [{t.status}/{t.priority}]  {t.project}: {t.subject}{parent}"
