import logging

import click

from paperclip import __version__
from paperclip.models import Recurrence, RecurrenceKind, Task, TaskStatus
from paperclip.session import Session
from paperclip.storage.json_storage import WorkspaceStorage
from paperclip.todo_list import DueDateFilter, TodoList
from paperclip.utils.log import setup_logging

storage = WorkspaceStorage()

STATUS_MARKERS = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
}


def _load_session() -> Session:
    manager, history = storage.load()
    return Session(manager, history)


def _save_session(session: Session):
    storage.save(session.manager, session.history)


def _require_text(text: str) -> str:
    if not text or not text.strip():
        raise click.ClickException("Task text cannot be empty")
    return text.strip()


def _require_task(session: Session, task_id: int) -> Task:
    task = session.todo_list.get(task_id)
    if task is None:
        raise click.ClickException(f"Task #{task_id} not found")
    return task


def format_row(task: Task, depth: int, todo_list: TodoList) -> str:
    """One line of the task tree"""
    fold = "+" if todo_list.has_children(task.id) and not task.expanded else " "
    parts = [f"{'  ' * depth}{fold}{STATUS_MARKERS[task.status]} #{task.id} {task.description}"]
    if task.priority:
        parts.append(f"!{task.priority}")
    if task.due_at:
        parts.append(f"due {task.due_at:%Y-%m-%d}")
    if task.contexts:
        parts.append(" ".join(f"@{c}" for c in sorted(task.contexts)))
    if task.is_recurring:
        parts.append(f"({task.recurrence.label})")
    if task.is_timer_running or task.time_tracker.total_seconds:
        parts.append(f"[{task.total_time_formatted()}]")
    return "  ".join(parts)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def cli(verbose):
    """PAPERCLIP - hierarchical task lists with workspaces and undo"""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@click.argument('text')
@click.option('--parent', '-P', type=int, help='Add as a subtask of this task')
def add(text, parent):
    """Add a task; #tags, @contexts and due:<date> are parsed from TEXT"""
    text = _require_text(text)
    session = _load_session()
    if parent is None:
        task_id = session.add(text)
    else:
        task_id = session.add_child(parent, text)
        if task_id is None:
            raise click.ClickException(f"Task #{parent} not found")
    _save_session(session)
    task = session.todo_list.get(task_id)
    click.echo(f"Added task #{task_id}: {task.description}")


@cli.command(name='ls')
@click.option('--pending', 'view', flag_value='pending', help='Only unfinished tasks')
@click.option('--completed', 'view', flag_value='completed', help='Only completed tasks')
@click.option('--tag', '-t', help='Filter by tag')
@click.option('--context', '-c', help='Filter by context')
@click.option('--due', type=click.Choice([f.value for f in DueDateFilter]), help='Filter by due date')
@click.option('--search', '-s', help='Search descriptions, tags and contexts')
@click.option('--all-workspaces', '-a', is_flag=True, help='Search every workspace')
def ls(view, tag, context, due, search, all_workspaces):
    """List tasks of the current workspace as a tree"""
    session = _load_session()
    todo_list = session.todo_list

    if search and all_workspaces:
        results = session.manager.search_all(search)
        if not results:
            click.echo("No tasks found")
            return
        for workspace_id, rows in results.items():
            click.echo(f"== {session.manager.workspaces[workspace_id].name}")
            workspace_list = session.manager.get_list(workspace_id)
            for task, depth in rows:
                click.echo(format_row(task, depth, workspace_list))
        return

    if search:
        rows = todo_list.search(search)
    elif tag:
        rows = todo_list.by_tag(tag)
    elif context:
        rows = todo_list.by_context(context)
    elif due:
        rows = todo_list.by_due_date(DueDateFilter(due))
    elif view == 'pending':
        rows = todo_list.pending()
    elif view == 'completed':
        rows = todo_list.completed()
    else:
        rows = todo_list.flatten()

    if not rows:
        click.echo("No tasks found")
        return
    for task, depth in rows:
        click.echo(format_row(task, depth, todo_list))

    overdue = todo_list.overdue_count()
    if overdue:
        click.echo(f"\n{overdue} overdue")


@cli.command()
@click.argument('task_id', type=int)
def done(task_id):
    """Toggle a task between completed and pending"""
    session = _load_session()
    task = _require_task(session, task_id)
    session.toggle_complete(task_id)
    _save_session(session)
    verb = "Completed" if task.is_completed else "Reopened"
    click.echo(f"{verb} task #{task_id}: {task.description}")


@cli.command()
@click.argument('task_id', type=int)
@click.option('--cascade', '-r', is_flag=True, help='Also delete all subtasks')
def rm(task_id, cascade):
    """Delete a task"""
    session = _load_session()
    _require_task(session, task_id)
    if cascade:
        count = session.delete_with_children(task_id)
        message = f"Deleted task #{task_id} and {count - 1} subtasks"
    else:
        session.delete(task_id)
        message = f"Deleted task #{task_id}"
    _save_session(session)
    click.echo(message)


@cli.command()
@click.argument('task_id', type=int)
@click.argument('text')
def edit(task_id, text):
    """Replace a task's text; annotations are parsed again"""
    text = _require_text(text)
    session = _load_session()
    task = _require_task(session, task_id)
    session.edit(task_id, text)
    _save_session(session)
    click.echo(f"Updated task #{task_id}: {task.description}")


@cli.command()
@click.argument('task_id', type=int)
@click.argument('level', type=int)
def priority(task_id, level):
    """Set priority (0-5, out-of-range values are clamped)"""
    session = _load_session()
    task = _require_task(session, task_id)
    session.set_priority(task_id, level)
    _save_session(session)
    click.echo(f"Priority of task #{task_id} is {task.priority}")


@cli.command()
@click.argument('task_id', type=int)
def toggle(task_id):
    """Expand or collapse a task's subtasks"""
    session = _load_session()
    task = _require_task(session, task_id)
    session.todo_list.toggle_expanded(task_id)
    _save_session(session)
    click.echo(f"Task #{task_id} {'expanded' if task.expanded else 'collapsed'}")


@cli.command()
@click.argument('task_id', type=int)
@click.argument('text', required=False)
@click.option('--clear', is_flag=True, help='Remove the notes')
def notes(task_id, text, clear):
    """Show or set a task's notes"""
    session = _load_session()
    task = _require_task(session, task_id)
    if clear or text is not None:
        session.todo_list.set_notes(task_id, None if clear else text)
        _save_session(session)
        click.echo(f"Notes {'cleared' if clear else 'saved'} for task #{task_id}")
    elif task.has_notes:
        click.echo(task.notes)
    else:
        click.echo(f"Task #{task_id} has no notes")


@cli.command()
@click.argument('task_id', type=int)
@click.argument('pattern', type=click.Choice([k.value for k in RecurrenceKind]))
@click.option('--days', type=click.IntRange(min=1), help='Interval for the custom pattern')
def recur(task_id, pattern, days):
    """Set how a task repeats after completion"""
    kind = RecurrenceKind(pattern)
    if kind is RecurrenceKind.CUSTOM and not days:
        raise click.ClickException("--days is required for a custom pattern")
    recurrence = Recurrence.custom(days) if kind is RecurrenceKind.CUSTOM else Recurrence(kind)
    session = _load_session()
    _require_task(session, task_id)
    session.todo_list.set_recurrence(task_id, recurrence)
    _save_session(session)
    click.echo(f"Recurrence of task #{task_id} set to {recurrence.label}")


@cli.command()
def recurring():
    """Create follow-ups for completed recurring tasks"""
    session = _load_session()
    new_ids = session.todo_list.process_recurring()
    _save_session(session)
    click.echo(f"Generated {len(new_ids)} recurring tasks")


@cli.command()
@click.argument('action', type=click.Choice(['start', 'stop']))
@click.argument('task_id', type=int)
def timer(action, task_id):
    """Start or stop time tracking on a task"""
    session = _load_session()
    task = _require_task(session, task_id)
    if action == 'start':
        changed = session.todo_list.start_timer(task_id)
        message = "Timer started" if changed else "Timer already running"
    else:
        changed = session.todo_list.stop_timer(task_id)
        message = f"Timer stopped, total {task.total_time_formatted()}" if changed else "No timer running"
    if changed:
        _save_session(session)
    click.echo(f"{message} for task #{task_id}")


@cli.command()
def undo():
    """Undo the last change"""
    session = _load_session()
    command = session.undo()
    if command is None:
        raise click.ClickException("Nothing to undo")
    _save_session(session)
    click.echo(f"Undid {command.kind}")


@cli.command()
def redo():
    """Redo the last undone change"""
    session = _load_session()
    command = session.redo()
    if command is None:
        raise click.ClickException("Nothing to redo")
    _save_session(session)
    click.echo(f"Redid {command.kind}")


@cli.command()
def tags():
    """List tags by how often they are used"""
    counts = _load_session().todo_list.tag_counts()
    if not counts:
        click.echo("No tags")
    for name, count in counts:
        click.echo(f"#{name}  {count}")


@cli.command()
def contexts():
    """List contexts by how often they are used"""
    counts = _load_session().todo_list.context_counts()
    if not counts:
        click.echo("No contexts")
    for name, count in counts:
        click.echo(f"@{name}  {count}")


@cli.group()
def ws():
    """Manage workspaces"""


@ws.command(name='ls')
def ws_list():
    """List workspaces"""
    session = _load_session()
    for workspace_id, name, count in session.manager.workspace_counts():
        marker = "*" if workspace_id == session.manager.current else " "
        click.echo(f"{marker} {workspace_id}  {name}  ({count} tasks)")


@ws.command(name='create')
@click.argument('name')
@click.option('--description', '-d', help='Optional description')
def ws_create(name, description):
    """Create a workspace"""
    session = _load_session()
    workspace_id = session.manager.create(name, description)
    _save_session(session)
    click.echo(f"Created workspace {name} ({workspace_id})")


@ws.command(name='switch')
@click.argument('ref')
def ws_switch(ref):
    """Switch to a workspace by id or name"""
    session = _load_session()
    if not session.manager.switch(ref):
        raise click.ClickException(f"Workspace '{ref}' not found")
    _save_session(session)
    click.echo(f"Switched to workspace {session.manager.current_workspace.name}")


@ws.command(name='delete')
@click.argument('ref')
def ws_delete(ref):
    """Delete a workspace and all of its tasks"""
    session = _load_session()
    if session.manager.resolve(ref) is None:
        raise click.ClickException(f"Workspace '{ref}' not found")
    if not session.manager.delete(ref):
        raise click.ClickException("Cannot delete the last remaining workspace")
    _save_session(session)
    click.echo(f"Deleted workspace {ref}")


@ws.command(name='rename')
@click.argument('ref')
@click.argument('new_name')
def ws_rename(ref, new_name):
    """Rename a workspace"""
    session = _load_session()
    if not session.manager.rename(ref, new_name):
        raise click.ClickException(f"Workspace '{ref}' not found")
    _save_session(session)
    click.echo(f"Renamed workspace to {new_name}")


if __name__ == '__main__':
    cli()
