"""keepsake: a persistent memory, conversation and task store.

The live store lives in :mod:`keepsake.db`; cold-storage archival and
restore live in :mod:`keepsake.archive`.
"""

__version__ = "0.3.0"
