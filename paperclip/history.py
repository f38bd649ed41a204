"""
Undo/redo history.

Each command variant is a small immutable record carrying the workspace id
it was recorded against and just enough prior state to reverse the
mutation. ``Command`` is the union of the variants; the history itself
only stores and moves commands between its two stacks. Applying them is
the job of :mod:`paperclip.session`.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple, Type, Union

from paperclip.models import Task, TaskStatus
from paperclip.utils.utils import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


@dataclass(frozen=True)
class AddTask:
    workspace_id: str
    task: Task

    kind = "add"


@dataclass(frozen=True)
class AddChild:
    workspace_id: str
    parent_id: int
    task: Task

    kind = "add_child"


@dataclass(frozen=True)
class DeleteTask:
    workspace_id: str
    task: Task

    kind = "delete"


@dataclass(frozen=True)
class DeleteSubtree:
    """Cascading delete; tasks are in pre-order, root first"""
    workspace_id: str
    tasks: Tuple[Task, ...]

    kind = "delete_subtree"

    @property
    def root_id(self) -> int:
        return self.tasks[0].id


@dataclass(frozen=True)
class ToggleComplete:
    workspace_id: str
    task_id: int
    prior_status: TaskStatus
    prior_completed_at: Optional[datetime] = None

    kind = "toggle_complete"


@dataclass(frozen=True)
class ChangePriority:
    workspace_id: str
    task_id: int
    prior_priority: int
    new_priority: int

    kind = "priority"


@dataclass(frozen=True)
class EditDescription:
    workspace_id: str
    task_id: int
    prior_raw_text: str
    prior_description: str
    new_raw_text: str

    kind = "edit"


Command = Union[AddTask, AddChild, DeleteTask, DeleteSubtree, ToggleComplete, ChangePriority, EditDescription]

COMMAND_TYPES: Dict[str, Type] = {
    cls.kind: cls
    for cls in (AddTask, AddChild, DeleteTask, DeleteSubtree, ToggleComplete, ChangePriority, EditDescription)
}


def command_to_dict(command: Command) -> dict:
    """Tagged dictionary form of a command"""
    data = {"kind": command.kind, "workspace_id": command.workspace_id}
    if isinstance(command, (AddTask, DeleteTask)):
        data["task"] = command.task.to_dict()
    elif isinstance(command, AddChild):
        data["parent_id"] = command.parent_id
        data["task"] = command.task.to_dict()
    elif isinstance(command, DeleteSubtree):
        data["tasks"] = [task.to_dict() for task in command.tasks]
    elif isinstance(command, ToggleComplete):
        data["task_id"] = command.task_id
        data["prior_status"] = command.prior_status.value
        data["prior_completed_at"] = format_timestamp(command.prior_completed_at)
    elif isinstance(command, ChangePriority):
        data["task_id"] = command.task_id
        data["prior_priority"] = command.prior_priority
        data["new_priority"] = command.new_priority
    elif isinstance(command, EditDescription):
        data["task_id"] = command.task_id
        data["prior_raw_text"] = command.prior_raw_text
        data["prior_description"] = command.prior_description
        data["new_raw_text"] = command.new_raw_text
    return data


def command_from_dict(data: dict) -> Command:
    """Rebuild a command; raises ValueError for an unknown kind"""
    kind = data.get("kind")
    if kind not in COMMAND_TYPES:
        raise ValueError(f"Unknown command kind: {kind!r}")

    workspace_id = data["workspace_id"]
    if kind in (AddTask.kind, DeleteTask.kind):
        return COMMAND_TYPES[kind](workspace_id, Task.from_dict(data["task"]))
    if kind == AddChild.kind:
        return AddChild(workspace_id, int(data["parent_id"]), Task.from_dict(data["task"]))
    if kind == DeleteSubtree.kind:
        return DeleteSubtree(workspace_id, tuple(Task.from_dict(item) for item in data["tasks"]))
    if kind == ToggleComplete.kind:
        return ToggleComplete(
            workspace_id,
            int(data["task_id"]),
            TaskStatus(data["prior_status"]),
            parse_timestamp(data.get("prior_completed_at")),
        )
    if kind == ChangePriority.kind:
        return ChangePriority(
            workspace_id, int(data["task_id"]), int(data["prior_priority"]), int(data["new_priority"])
        )
    return EditDescription(
        workspace_id,
        int(data["task_id"]),
        data["prior_raw_text"],
        data["prior_description"],
        data["new_raw_text"],
    )


class CommandHistory:
    """Bounded undo and redo stacks; the oldest undo entry is evicted first"""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._undo = deque(maxlen=capacity)
        self._redo = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._undo)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def push(self, command: Command):
        """Record a new command; any pending redo chain is discarded"""
        self._undo.append(command)
        self._redo.clear()
        logger.debug("recorded %s in %s", command.kind, command.workspace_id)

    def undo(self) -> Optional[Command]:
        if not self._undo:
            return None
        command = self._undo.pop()
        self._redo.append(command)
        return command

    def redo(self) -> Optional[Command]:
        if not self._redo:
            return None
        command = self._redo.pop()
        self._undo.append(command)
        return command

    def amend_redo(self, command: Command):
        """Replace the most recently undone command"""
        if self._redo:
            self._redo[-1] = command

    def to_dict(self) -> dict:
        return {
            "capacity": self.capacity,
            "undo": [command_to_dict(c) for c in self._undo],
            "redo": [command_to_dict(c) for c in self._redo],
        }

    @classmethod
    def from_dict(cls, data: dict):
        history = cls(int(data.get("capacity", DEFAULT_CAPACITY)))
        history._undo.extend(command_from_dict(item) for item in data.get("undo", []))
        history._redo.extend(command_from_dict(item) for item in data.get("redo", []))
        return history
