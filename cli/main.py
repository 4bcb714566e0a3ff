"""keepsake CLI: entry-point for the memory store and its archives.

Usage:
    keepsake --help
    python cli/main.py --help

Command groups:
    db        schema setup and row counts
    store / list / delete
              key-value memories
    log       conversation transcript entries
    task      tasks, subtasks and dependencies
    link      cross-entity links
    archive   cold-storage snapshots (create / restore)
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from keepsake.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import typer

from cli.commands.archive import archive_app
from cli.commands.link import link_app
from cli.commands.log import log_app
from cli.commands.task import task_app
from cli.rendering import memory_line
from keepsake.config import settings
from keepsake.db import get_connection, init_db
from keepsake.db import memories as memories_db
from keepsake.db.bulk import table_counts
from keepsake.logging_config import setup_logging

app = typer.Typer(
    name="keepsake",
    help="Persistent memory, tasks and transcripts, with cold-storage archives.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level to stderr."),
) -> None:
    setup_logging("INFO" if verbose else None)


# ---------------------------------------------------------------------------
# db
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"Database ready at {settings.db_path}")


@db_app.command("stats")
def db_stats() -> None:
    """Show the number of rows in every entity table."""
    conn = get_connection()
    init_db(conn)
    try:
        counts = table_counts(conn)
    finally:
        conn.close()
    typer.echo(f"Database: {settings.db_path}")
    for table, n in counts.items():
        typer.echo(f"  {table}: {n}")


# ---------------------------------------------------------------------------
# Memories
# ---------------------------------------------------------------------------
@app.command("store")
def store(
    category: str = typer.Argument(..., help="Memory category."),
    key: str = typer.Argument(..., help="Key, unique within the category."),
    value: str = typer.Argument(..., help="Value to remember."),
    tags: Optional[str] = typer.Option(None, help="Comma-separated tags."),
) -> None:
    """Store a memory, replacing the value if the key already exists."""
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    conn = get_connection()
    init_db(conn)
    try:
        memory = memories_db.store_memory(conn, category, key, value, tags=tag_list)
    finally:
        conn.close()
    typer.echo(f"✅ Stored [{memory.category}] {memory.key} (id {memory.id})")


@app.command("list")
def list_cmd(
    category: Optional[str] = typer.Option(None, help="Only this category."),
    limit: Optional[int] = typer.Option(None, min=1, help="Maximum number of memories."),
) -> None:
    """List memories, most recently updated first."""
    if limit is None:
        limit = settings.default_list_limit
    conn = get_connection()
    init_db(conn)
    try:
        found = memories_db.list_memories(conn, category=category, limit=limit)
    finally:
        conn.close()
    if not found:
        typer.echo("No memories found.")
        return
    for m in found:
        typer.echo(memory_line(m))
    typer.echo(f"({len(found)} memories)")


@app.command("delete")
def delete(
    category: str = typer.Argument(...),
    key: str = typer.Argument(...),
) -> None:
    """Delete a memory by category and key."""
    conn = get_connection()
    init_db(conn)
    try:
        removed = memories_db.delete_memory(conn, category, key)
    finally:
        conn.close()
    if not removed:
        typer.echo(f"❌ Memory [{category}] {key} not found.")
        raise typer.Exit(code=1)
    typer.echo(f"🗑️  Deleted [{category}] {key}")


app.add_typer(log_app, name="log")
app.add_typer(task_app, name="task")
app.add_typer(link_app, name="link")
app.add_typer(archive_app, name="archive")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
