"""Database layer package.

Public re-exports so callers can write::

    from keepsake.db import get_connection, init_db
    from keepsake.db import memories, tasks
"""

from keepsake.db.connection import get_connection
from keepsake.db.migrations import init_db
from keepsake.db import conversations, links, memories, tasks

__all__ = ["get_connection", "init_db", "conversations", "links", "memories", "tasks"]
