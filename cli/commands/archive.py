"""Archive commands: move old entities to a JSON snapshot and back."""

from pathlib import Path
from typing import Optional

import typer

from cli.rendering import count_lines, format_size, restore_lines
from keepsake.archive import create_archive, restore_archive
from keepsake.archive.errors import ArchiveError, PartialPurgeError
from keepsake.config import settings
from keepsake.db import get_connection, init_db

archive_app = typer.Typer(help="Create and restore cold-storage archives.", no_args_is_help=True)


@archive_app.command("create")
def archive_create(
    output: Path = typer.Argument(..., help="Destination JSON file."),
    entity_type: str = typer.Option(
        "all", "--entity-type", help="memories | conversations | tasks | all"
    ),
    older_than_days: Optional[int] = typer.Option(
        None, "--older-than-days", min=0, help="Only entities older than N days."
    ),
    project: Optional[str] = typer.Option(None, help="Conversations and tasks of this project."),
    category: Optional[str] = typer.Option(None, help="Memories of this category."),
    limit: Optional[int] = typer.Option(None, min=1, help="At most N root rows per kind."),
    purge: bool = typer.Option(
        False, "--purge/--keep", help="Delete archived rows from the database afterwards."
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite OUTPUT if it exists."),
) -> None:
    """Write matching entities (with their subtasks, dependencies and links) to OUTPUT."""
    conn = get_connection()
    init_db(conn)
    try:
        result = create_archive(
            conn,
            output,
            entity_type,
            older_than_days=older_than_days,
            project=project,
            category=category,
            limit=limit,
            purge=purge,
            force=force,
            source_db=str(settings.db_path),
        )
    except PartialPurgeError as exc:
        typer.echo(f"⚠️  {exc}")
        typer.echo(f"   The archive at {exc.result.path} is complete; re-run the purge to finish.")
        raise typer.Exit(code=2)
    except ArchiveError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    if result is None:
        typer.echo("No entities match the given filters. No archive file created.")
        return

    typer.echo(f"Archive created: {result.path}")
    typer.echo(f"  Size: {format_size(result.size_bytes)}")
    typer.echo("  Entities:")
    for line in count_lines(result.counts):
        typer.echo(line)
    if result.purged:
        typer.echo("  Source data removed from database.")
    else:
        typer.echo("  Source data retained (--keep).")


@archive_app.command("restore")
def archive_restore(
    input_path: Path = typer.Argument(..., metavar="INPUT", help="Archive JSON file."),
) -> None:
    """Re-insert an archive's entities; rows that already exist are skipped."""
    conn = get_connection()
    init_db(conn)
    try:
        report = restore_archive(conn, input_path)
    except ArchiveError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    typer.echo(f"Restored from: {report.path}")
    for line in restore_lines(report.present, report.restored, report.skipped):
        typer.echo(line)
    typer.echo(f"  Total: {report.total_restored} restored, {report.total_skipped} skipped")
