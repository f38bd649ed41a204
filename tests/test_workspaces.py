from datetime import datetime, timedelta

import pytest

from paperclip.workspaces import WorkspaceManager

NOW = datetime(2024, 1, 10, 9, 30)


@pytest.fixture
def manager():
    manager = WorkspaceManager()
    manager.create("Personal", now=NOW)
    manager.create("Work", "Day job", now=NOW + timedelta(minutes=1))
    return manager


def test_first_workspace_becomes_current():
    manager = WorkspaceManager()
    assert manager.current is None
    first = manager.create("Personal")
    second = manager.create("Work")
    assert manager.current == first
    assert first == "ws_1"
    assert second == "ws_2"
    assert manager.get_list(second) is not None


def test_switch_by_id_or_name(manager):
    assert manager.switch("Work") is True
    assert manager.current == "ws_2"
    assert manager.switch("ws_1") is True
    assert manager.current_workspace.name == "Personal"


def test_switch_to_unknown_keeps_current(manager):
    assert manager.switch("Nope") is False
    assert manager.current == "ws_1"


def test_workspaces_have_separate_lists(manager):
    manager.current_list.add("home task")
    manager.switch("Work")
    assert manager.current_list.total_count == 0


def test_cannot_delete_last_workspace():
    manager = WorkspaceManager()
    only = manager.create("Only")
    assert manager.delete(only) is False
    assert list(manager.workspaces) == [only]
    assert manager.current == only


def test_delete_current_selects_lowest_remaining(manager):
    manager.create("Side")
    manager.switch("ws_1")
    assert manager.delete("Personal") is True
    assert manager.current == "ws_2"
    assert manager.get_list("ws_1") is None


def test_delete_other_keeps_current(manager):
    assert manager.delete("ws_2") is True
    assert manager.current == "ws_1"
    assert manager.delete("missing") is False


def test_rename(manager):
    assert manager.rename("ws_2", "Office") is True
    assert manager.get("Office").id == "ws_2"
    assert manager.rename("missing", "x") is False


def test_all_workspaces_and_counts(manager):
    manager.get_list("ws_2").add("ship it")
    assert [ws.name for ws in manager.all_workspaces()] == ["Personal", "Work"]
    assert manager.workspace_counts() == [("ws_1", "Personal", 0), ("ws_2", "Work", 1)]


def test_search_all_omits_workspaces_without_hits(manager):
    manager.get_list("ws_1").add("Buy milk #groceries")
    manager.get_list("ws_2").add("Review budget")
    results = manager.search_all("milk")
    assert list(results) == ["ws_1"]
    assert results["ws_1"][0][0].description == "Buy milk groceries"


def test_ensure_workspace():
    manager = WorkspaceManager()
    workspace_id = manager.ensure_workspace()
    assert manager.current == workspace_id
    assert manager.current_workspace.name == "Personal"
    assert manager.ensure_workspace() == workspace_id


def test_manager_dict_round_trip(manager):
    manager.switch("Work")
    manager.current_list.add("task in work")
    restored = WorkspaceManager.from_dict(manager.to_dict())
    assert restored.current == "ws_2"
    assert restored.next_workspace_id == 3
    assert [ws.name for ws in restored.all_workspaces()] == ["Personal", "Work"]
    assert restored.current_list.get(1).description == "task in work"


def test_next_workspace_id_skips_existing_ids(manager):
    manager.create("Errands")
    manager.delete("Work")
    data = manager.to_dict()
    del data["next_workspace_id"]

    restored = WorkspaceManager.from_dict(data)
    assert restored.next_workspace_id == 4
    assert restored.create("Fresh") == "ws_4"
