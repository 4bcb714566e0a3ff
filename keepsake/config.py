"""Centralised settings for keepsake.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("KEEPSAKE_HOME", Path.home() / ".keepsake")
        )
    )
    database_file: Optional[str] = field(
        default_factory=lambda: os.environ.get("KEEPSAKE_DB")
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file.

        ``KEEPSAKE_DB`` wins over the workspace default.
        """
        if self.database_file:
            return Path(self.database_file)
        return self.workspace_dir / "memory.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("KEEPSAKE_LOG_LEVEL", "WARNING")
    )

    # ------------------------------------------------------------------
    # CLI listing
    # ------------------------------------------------------------------
    default_list_limit: int = field(
        default_factory=lambda: int(os.environ.get("KEEPSAKE_LIST_LIMIT", "50"))
    )


# Module-level singleton: import this everywhere:
#   from keepsake.config import settings
settings = Settings()
