import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from paperclip.history import CommandHistory
from paperclip.models import RecurrenceKind, TaskStatus
from paperclip.todo_list import TodoList
from paperclip.utils.utils import format_timestamp
from paperclip.workspaces import DEFAULT_WORKSPACE_NAME, WorkspaceManager

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "PAPERCLIP_DATA_DIR"
WORKSPACE_FILE = "workspaces.json"
LEGACY_FILE = "todos.json"
FORMAT_VERSION = 1

LEGACY_STATUS = {
    "Pending": TaskStatus.PENDING,
    "InProgress": TaskStatus.IN_PROGRESS,
    "Completed": TaskStatus.COMPLETED,
}
LEGACY_FRACTION_RE = re.compile(r"\.(\d+)")


def default_data_dir() -> Path:
    """$PAPERCLIP_DATA_DIR if set, else ~/.paperclip"""
    override = os.getenv(DATA_DIR_ENV)
    if override:
        return Path(override)
    return Path.home() / ".paperclip"


def _legacy_timestamp(value: Optional[str]) -> Optional[str]:
    """RFC 3339 text with offset and nanoseconds as a naive local ISO timestamp"""
    if not value:
        return None
    text = LEGACY_FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.replace("Z", "+00:00"))
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return format_timestamp(moment)


def _legacy_recurrence(value) -> dict:
    """Variant names such as Weekly, or a Custom mapping holding the interval in days"""
    if isinstance(value, dict):
        return {"kind": RecurrenceKind.CUSTOM.value, "days": int(value["Custom"])}
    return {"kind": RecurrenceKind(str(value or "None").lower()).value}


def _legacy_time_tracker(data: Optional[dict]) -> dict:
    data = data or {}
    return {
        "total_seconds": int(data.get("total_seconds", 0)),
        "entries": [
            {
                "start": _legacy_timestamp(entry["start"]),
                "end": _legacy_timestamp(entry.get("end")),
                "description": entry.get("description"),
            }
            for entry in data.get("entries", [])
        ],
        "current_session": _legacy_timestamp(data.get("current_session")),
    }


def legacy_task_to_dict(item: dict) -> dict:
    """Map one task of the single-list file onto Task.from_dict keys"""
    return {
        "id": int(item["id"]),
        "raw_text": item.get("raw_description", item.get("description", "")),
        "description": item.get("description", ""),
        "tags": item.get("tags", []),
        "contexts": item.get("contexts", []),
        "status": LEGACY_STATUS[item.get("status", "Pending")].value,
        "created_at": _legacy_timestamp(item.get("created_at")),
        "completed_at": _legacy_timestamp(item.get("completed_at")),
        "due_at": _legacy_timestamp(item.get("due_date")),
        "priority": item.get("priority", 0),
        "parent_id": item.get("parent_id"),
        "children": item.get("children", []),
        "expanded": item.get("expanded", True),
        "notes": item.get("notes"),
        "time_tracker": _legacy_time_tracker(item.get("time_tracker")),
        "recurrence": _legacy_recurrence(item.get("recurrence")),
        "template_origin": item.get("template_id"),
    }


def legacy_list_to_dict(data: dict) -> dict:
    """Map the single-list file ({"todos": {id: task}, "next_id": n}) onto TodoList.from_dict keys"""
    todos = data["todos"]
    if not isinstance(todos, dict):
        raise TypeError("'todos' must be an object keyed by task id")
    return {
        "next_id": int(data.get("next_id", 1)),
        "tasks": [legacy_task_to_dict(item) for item in todos.values()],
    }


class WorkspaceStorage:
    """JSON file holding every workspace, its tasks, and the undo history.

    The whole file is rewritten on every save.
    """

    def __init__(self, storage_path: Path = None, legacy_path: Path = None):
        """Initialize storage with default or custom path"""
        self.storage_path = storage_path or (default_data_dir() / WORKSPACE_FILE)
        self.legacy_path = legacy_path or (self.storage_path.parent / LEGACY_FILE)
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

    def _read_json(self, path: Path) -> Optional[dict]:
        """Read a JSON object from path, None if missing or unreadable"""
        try:
            raw = json.loads(path.read_text())
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("ignoring unreadable file %s: %s", path, e)
            return None
        if not isinstance(raw, dict):
            logger.warning("ignoring %s: expected a JSON object", path)
            return None
        return raw

    def _write_data(self, data: dict):
        """Write raw data to storage"""
        self.storage_path.write_text(json.dumps(data, indent=2))

    def _migrate_legacy(self) -> WorkspaceManager:
        """Build a manager from the single-list file, if there is one"""
        manager = WorkspaceManager()
        legacy = self._read_json(self.legacy_path)
        if legacy is None:
            manager.create(DEFAULT_WORKSPACE_NAME, "Your personal todos")
            return manager

        workspace_id = manager.create(DEFAULT_WORKSPACE_NAME, "Migrated from legacy todos")
        if "todos" not in legacy:
            logger.warning("not migrating %s: unrecognised layout, file left in place", self.legacy_path)
            return manager
        try:
            todo_list = TodoList.from_dict(legacy_list_to_dict(legacy))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("could not migrate %s: %s", self.legacy_path, e)
        else:
            manager.workspace_todos[workspace_id] = todo_list
            logger.info("migrated %d tasks from %s into workspace %s", len(todo_list), self.legacy_path, workspace_id)
        return manager

    def load(self) -> Tuple[WorkspaceManager, CommandHistory]:
        """Load manager and history; fall back to a fresh state"""
        data = self._read_json(self.storage_path)
        if data is None:
            return self._migrate_legacy(), CommandHistory()

        try:
            manager = WorkspaceManager.from_dict(data.get("manager", {}))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("corrupt workspace data in %s: %s", self.storage_path, e)
            manager = WorkspaceManager()
        manager.ensure_workspace()

        try:
            history = CommandHistory.from_dict(data.get("history", {}))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("dropping unreadable undo history: %s", e)
            history = CommandHistory()
        return manager, history

    def save(self, manager: WorkspaceManager, history: Optional[CommandHistory] = None):
        """Persist manager and history as one document"""
        data = {
            "version": FORMAT_VERSION,
            "manager": manager.to_dict(),
            "history": (history or CommandHistory()).to_dict(),
        }
        self._write_data(data)
        logger.debug("saved %d workspaces to %s", len(manager.workspaces), self.storage_path)
