"""Cross-entity link commands."""

from typing import Optional

import typer

from keepsake.db import get_connection, init_db
from keepsake.db import links as links_db

link_app = typer.Typer(help="Link memories, conversations and tasks.", no_args_is_help=True)


@link_app.command("add")
def link_add(
    source_type: str = typer.Argument(..., help="memory | conversation | task"),
    source_id: int = typer.Argument(...),
    target_type: str = typer.Argument(..., help="memory | conversation | task"),
    target_id: int = typer.Argument(...),
    relation: Optional[str] = typer.Option(None, help="Free-form label for the edge."),
) -> None:
    """Link two entities (relabels the link if it already exists)."""
    conn = get_connection()
    init_db(conn)
    try:
        link = links_db.create_link(
            conn, source_type, source_id, target_type, target_id, relation=relation
        )
    except ValueError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()
    typer.echo(
        f"🔗 Link {link.id}: {link.source_type}:{link.source_id} "
        f"→ {link.target_type}:{link.target_id}"
    )


@link_app.command("list")
def link_list(
    kind: str = typer.Argument(..., help="memory | conversation | task"),
    entity_id: int = typer.Argument(...),
) -> None:
    """Show every link touching one entity."""
    conn = get_connection()
    init_db(conn)
    try:
        found = links_db.get_links(conn, kind, entity_id)
    finally:
        conn.close()
    if not found:
        typer.echo("No links found.")
        return
    for link in found:
        label = f"  [{link.relation}]" if link.relation else ""
        typer.echo(
            f"  {link.id:>4}  {link.source_type}:{link.source_id} "
            f"→ {link.target_type}:{link.target_id}{label}"
        )


@link_app.command("delete")
def link_delete(link_id: int = typer.Argument(...)) -> None:
    """Delete a link by id."""
    conn = get_connection()
    init_db(conn)
    try:
        removed = links_db.delete_link(conn, link_id)
    finally:
        conn.close()
    if not removed:
        typer.echo(f"❌ Link {link_id} not found.")
        raise typer.Exit(code=1)
    typer.echo(f"🗑️  Deleted link {link_id}")
