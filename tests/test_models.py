from datetime import datetime, timedelta

from paperclip.models import Recurrence, RecurrenceKind, Task, TaskStatus, Workspace

NOW = datetime(2024, 1, 10, 9, 30)


def test_create_parses_raw_text():
    task = Task.create(1, "Write report #work @desk due:2024-01-12", now=NOW)
    assert task.description == "Write report work desk"
    assert task.tags == {"work"}
    assert task.contexts == {"desk"}
    assert task.due_at == datetime(2024, 1, 12, 23, 59, 59)
    assert task.status is TaskStatus.PENDING
    assert task.created_at == NOW
    assert task.expanded is True
    assert task.children == []


def test_update_description_clears_old_annotations():
    task = Task.create(1, "Old #a @b due:today", now=NOW)
    task.update_description("New text", now=NOW)
    assert task.raw_text == "New text"
    assert task.description == "New text"
    assert task.tags == set()
    assert task.contexts == set()
    assert task.due_at is None


def test_toggle_complete_keeps_completed_at_in_sync():
    task = Task.create(1, "Task", now=NOW)
    task.toggle_complete(now=NOW)
    assert task.status is TaskStatus.COMPLETED
    assert task.completed_at == NOW

    task.toggle_complete()
    assert task.status is TaskStatus.PENDING
    assert task.completed_at is None


def test_priority_is_clamped():
    task = Task.create(1, "Task")
    task.set_priority(9)
    assert task.priority == 5
    task.set_priority(-3)
    assert task.priority == 0


def test_timer_session_accumulates_seconds():
    task = Task.create(1, "Task", now=NOW)
    assert task.start_timer(now=NOW) is True
    assert task.status is TaskStatus.IN_PROGRESS
    assert task.start_timer(now=NOW + timedelta(minutes=5)) is False
    assert task.total_seconds(now=NOW + timedelta(minutes=10)) == 600

    assert task.stop_timer(now=NOW + timedelta(minutes=90)) is True
    assert task.time_tracker.total_seconds == 5400
    assert len(task.time_tracker.entries) == 1
    assert task.time_tracker.entries[0].start == NOW
    assert task.total_time_formatted() == "1h 30m"
    assert task.stop_timer(now=NOW + timedelta(hours=3)) is False


def test_current_session_seconds():
    task = Task.create(1, "Task", now=NOW)
    assert task.current_session_seconds(now=NOW) is None

    task.start_timer(now=NOW)
    assert task.current_session_seconds(now=NOW + timedelta(seconds=42)) == 42

    task.stop_timer(now=NOW + timedelta(minutes=1))
    assert task.current_session_seconds(now=NOW + timedelta(minutes=2)) is None


def test_start_timer_keeps_completed_status():
    task = Task.create(1, "Task", now=NOW)
    task.mark_done(now=NOW)
    task.start_timer(now=NOW)
    assert task.status is TaskStatus.COMPLETED


def test_recurrence_next_due_dates():
    due = datetime(2024, 1, 15, 23, 59, 59)
    assert Recurrence(RecurrenceKind.DAILY).next_due(due) == datetime(2024, 1, 16, 23, 59, 59)
    assert Recurrence(RecurrenceKind.WEEKLY).next_due(due) == datetime(2024, 1, 22, 23, 59, 59)
    assert Recurrence(RecurrenceKind.MONTHLY).next_due(due) == datetime(2024, 2, 15, 23, 59, 59)
    assert Recurrence(RecurrenceKind.YEARLY).next_due(due) == datetime(2025, 1, 15, 23, 59, 59)
    assert Recurrence.custom(3).next_due(due) == datetime(2024, 1, 18, 23, 59, 59)
    assert Recurrence().next_due(due) is None


def test_monthly_recurrence_rolls_over_year():
    due = datetime(2024, 12, 5, 23, 59, 59)
    assert Recurrence(RecurrenceKind.MONTHLY).next_due(due) == datetime(2025, 1, 5, 23, 59, 59)


def test_recurrence_without_matching_day():
    assert Recurrence(RecurrenceKind.MONTHLY).next_due(datetime(2024, 1, 31)) is None
    assert Recurrence(RecurrenceKind.YEARLY).next_due(datetime(2024, 2, 29)) is None


def test_task_dict_keeps_every_field():
    task = Task.create(7, "Serialize me #test @dev due:2024-01-12", now=NOW)
    task.set_notes("Line one\nLine two")
    task.set_recurrence(Recurrence.custom(4))
    task.start_timer(now=NOW)
    task.stop_timer(now=NOW + timedelta(seconds=75))
    task.parent_id = 3
    task.children = [9, 8]
    task.expanded = False
    task.template_origin = "builtin-work-task"

    restored = Task.from_dict(task.to_dict())
    assert restored == task


def test_from_dict_fills_missing_fields():
    task = Task.from_dict({"id": 2, "raw_text": "Legacy"})
    assert task.description == "Legacy"
    assert task.status is TaskStatus.PENDING
    assert task.recurrence == Recurrence()
    assert task.time_tracker.total_seconds == 0


def test_workspace_dict():
    workspace = Workspace(id="ws_1", name="Home", created_at=NOW, description="Chores")
    assert Workspace.from_dict(workspace.to_dict()) == workspace
