"""Cascade collection: decide which rows an archive contains.

Root rows come from filtered scans of the selected kinds.  Tasks then pull
in their whole subtask tree, every dependency edge touching the resulting
task set, and every link touching any collected memory, conversation or
task.  Links and dependency edges are never roots on their own.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Sequence, Union

from keepsake.archive.errors import CollectError, InvalidFilterError, InvalidSelectorError
from keepsake.db import conversations as conversations_db
from keepsake.db import links as links_db
from keepsake.db import memories as memories_db
from keepsake.db import tasks as tasks_db
from keepsake.db.models import ConversationEntry, EntityKind, Link, Memory, Task
from keepsake.logging_config import get_logger

logger = get_logger(__name__)


class EntitySelector(str, Enum):
    MEMORIES = "memories"
    CONVERSATIONS = "conversations"
    TASKS = "tasks"
    ALL = "all"

    def includes(self, kind: "EntitySelector") -> bool:
        return self is EntitySelector.ALL or self is kind


def parse_selector(value: Union[str, EntitySelector]) -> EntitySelector:
    """Coerce *value* to an :class:`EntitySelector`.

    Raises:
        InvalidSelectorError: For anything outside the four known values.
    """
    if isinstance(value, EntitySelector):
        return value
    try:
        return EntitySelector(value)
    except ValueError:
        raise InvalidSelectorError(value) from None


def check_filters(older_than_days: Optional[int] = None, limit: Optional[int] = None) -> None:
    """Reject filter values the store scans cannot express.

    Raises:
        InvalidFilterError: *older_than_days* is negative or *limit* is below 1.
    """
    if older_than_days is not None and older_than_days < 0:
        raise InvalidFilterError("older_than_days", older_than_days, "must be 0 or greater")
    if limit is not None and limit < 1:
        raise InvalidFilterError("limit", limit, "must be 1 or greater")


@dataclass
class Collection:
    """The closed set of rows selected for one archive."""

    memories: list[Memory] = field(default_factory=list)
    conversations: list[ConversationEntry] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    task_deps: list[tuple[int, int]] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    # Root kinds that contributed at least one row, in collection order.
    entity_types: list[str] = field(default_factory=list)

    @property
    def root_total(self) -> int:
        """Number of root-kind rows (cascaded links/deps not counted)."""
        return len(self.memories) + len(self.conversations) + len(self.tasks)

    def is_empty(self) -> bool:
        return self.root_total == 0

    def counts(self) -> dict[str, int]:
        return {
            "memories": len(self.memories),
            "conversations": len(self.conversations),
            "tasks": len(self.tasks),
            "task_deps": len(self.task_deps),
            "links": len(self.links),
        }


@contextmanager
def _querying(kind: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise CollectError(kind, exc) from exc


def descendant_ids(conn: sqlite3.Connection, root_ids: Sequence[int]) -> list[int]:
    """Return every transitive subtask of *root_ids*, excluding the roots.

    Expansion is breadth-first, one ``parent_id IN (…)`` query per level.
    An id is expanded at most once, which also bounds the walk if a
    ``parent_id`` cycle ever exists.
    """
    seen = set(root_ids)
    found: list[int] = []
    frontier = list(root_ids)
    depth = 0
    while frontier:
        fresh: list[int] = []
        for child_id in tasks_db.child_task_ids(conn, frontier):
            if child_id in seen:
                logger.debug("task %d already collected, not expanding again", child_id)
                continue
            seen.add(child_id)
            fresh.append(child_id)
        found.extend(fresh)
        frontier = fresh
        depth += 1
    logger.debug("subtask closure: %d descendants over %d levels", len(found), depth)
    return found


def collect(
    conn: sqlite3.Connection,
    selector: Union[str, EntitySelector],
    *,
    older_than_days: Optional[int] = None,
    project: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
) -> Collection:
    """Compute the rows to archive for *selector* and the given filters.

    ``category`` narrows memories, ``project`` narrows conversations and
    tasks, ``older_than_days`` and ``limit`` apply to every root scan.

    Raises:
        InvalidSelectorError: If *selector* is not a known value.
        InvalidFilterError: If *older_than_days* or *limit* is out of range.
        CollectError: If any store query fails; ``kind`` names the step.
    """
    selector = parse_selector(selector)
    check_filters(older_than_days, limit)
    result = Collection()
    links: list[Link] = []

    if selector.includes(EntitySelector.MEMORIES):
        with _querying("memories"):
            result.memories = memories_db.scan_memories(
                conn, category=category, older_than_days=older_than_days, limit=limit
            )
        if result.memories:
            result.entity_types.append(EntitySelector.MEMORIES.value)
            with _querying("links for memories"):
                links.extend(
                    links_db.links_for_ids(
                        conn, EntityKind.MEMORY.value, [m.id for m in result.memories]
                    )
                )

    if selector.includes(EntitySelector.CONVERSATIONS):
        with _querying("conversations"):
            result.conversations = conversations_db.scan_conversations(
                conn, project=project, older_than_days=older_than_days, limit=limit
            )
        if result.conversations:
            result.entity_types.append(EntitySelector.CONVERSATIONS.value)
            with _querying("links for conversations"):
                links.extend(
                    links_db.links_for_ids(
                        conn,
                        EntityKind.CONVERSATION.value,
                        [c.id for c in result.conversations],
                    )
                )

    if selector.includes(EntitySelector.TASKS):
        with _querying("tasks"):
            tasks = tasks_db.scan_tasks(
                conn, project=project, older_than_days=older_than_days, limit=limit
            )
        if tasks:
            result.entity_types.append(EntitySelector.TASKS.value)
            root_ids = [t.id for t in tasks]
            with _querying("subtasks"):
                extra_ids = descendant_ids(conn, root_ids)
                tasks.extend(tasks_db.get_tasks_by_ids(conn, extra_ids))
            task_ids = [t.id for t in tasks]
            with _querying("task dependencies"):
                result.task_deps = tasks_db.deps_for_task_ids(conn, task_ids)
            with _querying("links for tasks"):
                links.extend(links_db.links_for_ids(conn, EntityKind.TASK.value, task_ids))
            result.tasks = tasks

    # A link can be reached from both ends or from two root kinds.
    seen_links: set[int] = set()
    for link in links:
        if link.id not in seen_links:
            seen_links.add(link.id)
            result.links.append(link)

    logger.info("collected for archive: %s", result.counts())
    return result
