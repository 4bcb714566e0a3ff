"""Conversation log commands."""

from typing import Optional

import typer

from keepsake.db import conversations as conversations_db
from keepsake.db import get_connection, init_db

log_app = typer.Typer(help="Record and browse conversation transcripts.", no_args_is_help=True)


@log_app.command("add")
def log_add(
    session: str = typer.Argument(..., help="Session identifier."),
    role: str = typer.Argument(..., help="Speaker role (user, assistant, …)."),
    content: str = typer.Argument(..., help="Message text."),
    project: Optional[str] = typer.Option(None, help="Project the session belongs to."),
    entry_type: Optional[str] = typer.Option(
        None, "--entry-type", help="summary | raw_user | raw_assistant | pre_compact"
    ),
) -> None:
    """Append an entry to the conversation log."""
    conn = get_connection()
    init_db(conn)
    try:
        entry = conversations_db.log_conversation(
            conn, session, role, content, project=project, entry_type=entry_type
        )
    except ValueError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()
    typer.echo(f"✅ Logged entry {entry.id} in session {entry.session_id}")


@log_app.command("list")
def log_list(
    session: Optional[str] = typer.Option(None, help="Only this session."),
    limit: int = typer.Option(20, min=1, help="Maximum number of entries."),
) -> None:
    """Show recent entries, newest first."""
    conn = get_connection()
    init_db(conn)
    try:
        entries = conversations_db.list_conversations(conn, session_id=session, limit=limit)
    finally:
        conn.close()
    if not entries:
        typer.echo("No conversation entries found.")
        return
    for e in entries:
        kind = f" ({e.entry_type})" if e.entry_type else ""
        typer.echo(f"  {e.id:>4}  {e.created_at}  [{e.session_id}] {e.role}{kind}: {e.content}")


@log_app.command("prune")
def log_prune(
    older_than_days: int = typer.Option(
        ..., "--older-than-days", min=0, help="Delete entries older than N days."
    ),
    entry_type: Optional[str] = typer.Option(None, "--entry-type", help="Only entries of this type."),
) -> None:
    """Permanently delete old conversation entries (archive them first to keep a copy)."""
    conn = get_connection()
    init_db(conn)
    try:
        removed = conversations_db.prune_conversations(
            conn, older_than_days=older_than_days, entry_type=entry_type
        )
    finally:
        conn.close()
    typer.echo(f"🗑️  Pruned {removed} conversation entries")
