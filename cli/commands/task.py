"""Task management commands."""

from typing import Optional

import typer

from cli.rendering import task_line
from keepsake.config import settings
from keepsake.db import get_connection, init_db
from keepsake.db import tasks as tasks_db

task_app = typer.Typer(help="Track tasks, subtasks and dependencies.", no_args_is_help=True)


@task_app.command("add")
def task_add(
    project: str = typer.Argument(..., help="Project the task belongs to."),
    subject: str = typer.Argument(..., help="Short title."),
    description: Optional[str] = typer.Option(None, help="Longer description."),
    priority: Optional[str] = typer.Option(None, help="low | medium | high"),
    task_type: Optional[str] = typer.Option(None, "--type", help="claude | human | hybrid"),
    parent: Optional[int] = typer.Option(None, help="Parent task id (makes this a subtask)."),
) -> None:
    """Create a task."""
    conn = get_connection()
    init_db(conn)
    try:
        task = tasks_db.create_task(
            conn,
            project,
            subject,
            description=description,
            priority=priority,
            task_type=task_type,
            parent_id=parent,
        )
    except ValueError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()
    typer.echo(f"✅ Task created: {task.id}  {task.subject!r}")


@task_app.command("list")
def task_list(
    project: Optional[str] = typer.Option(None, help="Only this project."),
    status: Optional[str] = typer.Option(None, help="Only this status (shows deleted tasks too)."),
    limit: Optional[int] = typer.Option(None, min=1, help="Maximum number of tasks."),
) -> None:
    """List tasks, most recently updated first."""
    if limit is None:
        limit = settings.default_list_limit
    conn = get_connection()
    init_db(conn)
    try:
        found = tasks_db.list_tasks(conn, project=project, status=status, limit=limit)
    finally:
        conn.close()
    if not found:
        typer.echo("No tasks found.")
        return
    for t in found:
        typer.echo(task_line(t))


@task_app.command("update")
def task_update(
    task_id: int = typer.Argument(...),
    status: Optional[str] = typer.Option(None),
    priority: Optional[str] = typer.Option(None),
    subject: Optional[str] = typer.Option(None),
    assignee: Optional[str] = typer.Option(None),
) -> None:
    """Change fields of an existing task."""
    changes = {
        k: v
        for k, v in (
            ("status", status),
            ("priority", priority),
            ("subject", subject),
            ("assignee", assignee),
        )
        if v is not None
    }
    if not changes:
        typer.echo("Nothing to update.")
        return

    conn = get_connection()
    init_db(conn)
    try:
        task = tasks_db.update_task(conn, task_id, **changes)
    except ValueError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()
    typer.echo(f"✅ Updated:{task_line(task)}")


@task_app.command("dep")
def task_dep(
    blocker_id: int = typer.Argument(..., help="Task that must finish first."),
    blocked_id: int = typer.Argument(..., help="Task that waits."),
) -> None:
    """Record that one task blocks another."""
    if blocker_id == blocked_id:
        typer.echo("❌ A task cannot block itself.")
        raise typer.Exit(code=1)
    conn = get_connection()
    init_db(conn)
    try:
        tasks_db.add_task_dep(conn, blocker_id, blocked_id)
    finally:
        conn.close()
    typer.echo(f"🔗 Task {blocker_id} now blocks task {blocked_id}")


@task_app.command("undep")
def task_undep(
    blocker_id: int = typer.Argument(...),
    blocked_id: int = typer.Argument(...),
) -> None:
    """Remove a dependency between two tasks."""
    conn = get_connection()
    init_db(conn)
    try:
        removed = tasks_db.remove_task_dep(conn, blocker_id, blocked_id)
    finally:
        conn.close()
    if not removed:
        typer.echo(f"❌ Task {blocker_id} does not block task {blocked_id}.")
        raise typer.Exit(code=1)
    typer.echo(f"✂️  Task {blocker_id} no longer blocks task {blocked_id}")


@task_app.command("deps")
def task_deps(task_id: int = typer.Argument(...)) -> None:
    """Show what blocks a task and what it blocks."""
    conn = get_connection()
    init_db(conn)
    try:
        blockers, blocked = tasks_db.get_task_deps(conn, task_id)
    finally:
        conn.close()
    typer.echo(f"Blocked by ({len(blockers)}):")
    for t in blockers:
        typer.echo(task_line(t))
    typer.echo(f"Blocks ({len(blocked)}):")
    for t in blocked:
        typer.echo(task_line(t))
