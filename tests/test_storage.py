import json

import pytest

from paperclip.history import CommandHistory
from paperclip.models import Recurrence, RecurrenceKind, TaskStatus
from paperclip.session import Session
from paperclip.storage.json_storage import DATA_DIR_ENV, WorkspaceStorage, default_data_dir


@pytest.fixture
def temp_storage(tmp_path):
    """Create temporary storage for tests"""
    return WorkspaceStorage(tmp_path / "workspaces.json")


def test_load_without_files_creates_personal_workspace(temp_storage):
    manager, history = temp_storage.load()
    assert [ws.name for ws in manager.all_workspaces()] == ["Personal"]
    assert manager.current == "ws_1"
    assert len(history) == 0


def test_save_and_load(temp_storage):
    """Tasks, hierarchy, current workspace and history survive a save"""
    session = Session(*temp_storage.load())
    parent = session.add("Plan trip #travel due:2024-05-01")
    session.add_child(parent, "Book hotel @phone")
    work = session.manager.create("Work")
    session.manager.switch(work)
    session.add("Quarterly report")
    temp_storage.save(session.manager, session.history)

    manager, history = temp_storage.load()
    assert manager.current == work
    personal = manager.get_list("ws_1")
    assert [(t.description, d) for t, d in personal.flatten()] == [
        ("Plan trip travel", 0),
        ("Book hotel phone", 1),
    ]
    assert len(history) == 3

    restored = Session(manager, history)
    restored.undo()
    assert manager.get_list(work).total_count == 0


def test_saved_file_is_versioned_json(temp_storage):
    manager, _ = temp_storage.load()
    temp_storage.save(manager)
    data = json.loads(temp_storage.storage_path.read_text())
    assert data["version"] == 1
    assert "manager" in data
    assert data["history"]["undo"] == []


def test_corrupt_file_falls_back(temp_storage):
    temp_storage.storage_path.write_text("{not json")
    manager, history = temp_storage.load()
    assert not manager.is_empty
    assert isinstance(history, CommandHistory)


def legacy_task(task_id, description, raw, **fields):
    task = {
        "id": task_id,
        "description": description,
        "raw_description": raw,
        "tags": [],
        "contexts": [],
        "status": "Pending",
        "created_at": "2024-01-15T10:30:00.123456789+00:00",
        "completed_at": None,
        "due_date": None,
        "priority": 0,
        "parent_id": None,
        "children": [],
        "expanded": True,
        "notes": None,
        "time_tracker": {"total_seconds": 0, "entries": [], "current_session": None},
        "recurrence": "None",
        "template_id": None,
    }
    task.update(fields)
    return task


def test_legacy_todo_list_is_migrated(tmp_path):
    """A single-list todos.json becomes the Personal workspace"""
    legacy = {
        "todos": {
            "1": legacy_task(
                1, "Old task legacy", "Old task #legacy",
                tags=["legacy"], status="Completed",
                completed_at="2024-01-16T09:00:00Z",
                priority=2, children=[3], notes="keep me",
                recurrence={"Custom": 3}, template_id="builtin-work-task",
                time_tracker={
                    "total_seconds": 120,
                    "entries": [{"start": "2024-01-15T11:00:00+01:00", "end": "2024-01-15T11:02:00+01:00",
                                 "description": None}],
                    "current_session": None,
                },
            ),
            "3": legacy_task(3, "Subtask", "Subtask", parent_id=1, recurrence="Weekly", status="InProgress"),
        },
        "next_id": 4,
    }
    (tmp_path / "todos.json").write_text(json.dumps(legacy))
    storage = WorkspaceStorage(tmp_path / "workspaces.json")

    manager, _ = storage.load()
    todo_list = manager.current_list
    assert manager.current_workspace.description == "Migrated from legacy todos"
    assert todo_list.total_count == 2

    old = todo_list.get(1)
    assert old.raw_text == "Old task #legacy"
    assert old.tags == {"legacy"}
    assert old.status is TaskStatus.COMPLETED
    assert old.completed_at is not None and old.completed_at.tzinfo is None
    assert old.created_at.tzinfo is None
    assert old.recurrence == Recurrence.custom(3)
    assert old.notes == "keep me"
    assert old.template_origin == "builtin-work-task"
    assert old.time_tracker.total_seconds == 120
    assert len(old.time_tracker.entries) == 1

    sub = todo_list.get(3)
    assert sub.status is TaskStatus.IN_PROGRESS
    assert sub.recurrence.kind is RecurrenceKind.WEEKLY
    assert [(t.id, d) for t, d in todo_list.flatten()] == [(1, 0), (3, 1)]
    assert todo_list.add("new") == 4


def test_unrecognised_legacy_file_is_left_alone(tmp_path):
    legacy_file = tmp_path / "todos.json"
    legacy_file.write_text(json.dumps({"items": [{"title": "?"}]}))
    storage = WorkspaceStorage(tmp_path / "workspaces.json")

    manager, _ = storage.load()
    assert manager.current_list.total_count == 0
    assert json.loads(legacy_file.read_text()) == {"items": [{"title": "?"}]}


def test_data_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "custom"))
    assert default_data_dir() == tmp_path / "custom"
    storage = WorkspaceStorage()
    assert storage.storage_path == tmp_path / "custom" / "workspaces.json"
    assert storage.storage_path.parent.exists()
