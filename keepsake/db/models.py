"""Dataclass models representing DB rows, plus the enumerations the store
validates against.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.  Fields that may be ``NULL`` in the
database default to ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    # Soft-delete marker; the row stays in the table.
    DELETED = "deleted"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskType(str, Enum):
    CLAUDE = "claude"
    HUMAN = "human"
    HYBRID = "hybrid"


class EntryType(str, Enum):
    SUMMARY = "summary"
    RAW_USER = "raw_user"
    RAW_ASSISTANT = "raw_assistant"
    PRE_COMPACT = "pre_compact"


class EntityKind(str, Enum):
    """Kinds a :class:`Link` endpoint may address."""

    MEMORY = "memory"
    CONVERSATION = "conversation"
    TASK = "task"


def check_choice(enum_cls: type[Enum], value: str, field_name: str) -> str:
    """Return *value* unchanged if it is a member of *enum_cls*.

    Raises:
        ValueError: listing the accepted values.
    """
    allowed = [m.value for m in enum_cls]  # type: ignore[attr-defined]
    if value not in allowed:
        raise ValueError(
            f"Invalid {field_name} {value!r}. Must be one of: {', '.join(allowed)}"
        )
    return value


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

@dataclass
class Memory:
    id: int
    category: str
    key: str
    value: str
    created_at: str
    updated_at: str
    tags: Optional[list[str]] = None


@dataclass
class ConversationEntry:
    id: int
    session_id: str
    role: str
    content: str
    created_at: str
    project: Optional[str] = None
    entry_type: Optional[str] = None
    raw_id: Optional[int] = None
    model: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    cache_creation_tokens: Optional[int] = None
    cache_read_tokens: Optional[int] = None
    message_timestamp: Optional[str] = None


@dataclass
class Task:
    id: int
    project: str
    subject: str
    status: str
    created_at: str
    updated_at: str
    description: Optional[str] = None
    priority: Optional[str] = None
    task_type: Optional[str] = None
    parent_id: Optional[int] = None
    due_date: Optional[str] = None
    created_by: Optional[str] = None
    assignee: Optional[str] = None
    owner: Optional[str] = None
    session_id: Optional[str] = None


@dataclass
class Link:
    id: int
    source_type: str
    source_id: int
    target_type: str
    target_id: int
    created_at: str
    relation: Optional[str] = None
