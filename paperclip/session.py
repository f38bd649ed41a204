"""
Recorded task actions.

A Session routes user actions to the current workspace's TodoList and
records one command per undoable mutation. Undo and redo look up the
workspace the command was recorded in, so they still land in the right
tree after the user switches workspaces.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from paperclip.history import (
    AddChild,
    AddTask,
    ChangePriority,
    Command,
    CommandHistory,
    DeleteSubtree,
    DeleteTask,
    EditDescription,
    ToggleComplete,
)
from paperclip.todo_list import TodoList
from paperclip.workspaces import WorkspaceManager

logger = logging.getLogger(__name__)


def _undo_add(todo_list: TodoList, command):
    """Remove the added task; redo gets its state as of this undo"""
    removed = todo_list.remove(command.task.id)
    if removed is not None:
        return replace(command, task=removed.snapshot())
    return None


def _redo_add(todo_list: TodoList, command):
    todo_list.restore([command.task])


def _undo_delete(todo_list: TodoList, command: DeleteTask):
    todo_list.restore([command.task])


def _redo_delete(todo_list: TodoList, command: DeleteTask):
    todo_list.remove(command.task.id)


def _undo_delete_subtree(todo_list: TodoList, command: DeleteSubtree):
    todo_list.restore(command.tasks)


def _redo_delete_subtree(todo_list: TodoList, command: DeleteSubtree):
    todo_list.remove_with_descendants(command.root_id)


def _undo_toggle(todo_list: TodoList, command: ToggleComplete):
    task = todo_list.get(command.task_id)
    if task is not None:
        task.status = command.prior_status
        task.completed_at = command.prior_completed_at


def _redo_toggle(todo_list: TodoList, command: ToggleComplete):
    todo_list.toggle_complete(command.task_id)


def _undo_priority(todo_list: TodoList, command: ChangePriority):
    todo_list.set_priority(command.task_id, command.prior_priority)


def _redo_priority(todo_list: TodoList, command: ChangePriority):
    todo_list.set_priority(command.task_id, command.new_priority)


def _undo_edit(todo_list: TodoList, command: EditDescription):
    todo_list.update_description(command.task_id, command.prior_raw_text)


def _redo_edit(todo_list: TodoList, command: EditDescription):
    todo_list.update_description(command.task_id, command.new_raw_text)


UNDO_HANDLERS = {
    AddTask: _undo_add,
    AddChild: _undo_add,
    DeleteTask: _undo_delete,
    DeleteSubtree: _undo_delete_subtree,
    ToggleComplete: _undo_toggle,
    ChangePriority: _undo_priority,
    EditDescription: _undo_edit,
}

REDO_HANDLERS = {
    AddTask: _redo_add,
    AddChild: _redo_add,
    DeleteTask: _redo_delete,
    DeleteSubtree: _redo_delete_subtree,
    ToggleComplete: _redo_toggle,
    ChangePriority: _redo_priority,
    EditDescription: _redo_edit,
}


def apply_undo(manager: WorkspaceManager, command: Command) -> Optional[Command]:
    """Reverse a command in its own workspace.

    Returns the command to keep for redo, possibly carrying a fresher
    snapshot, or None if the workspace is gone.
    """
    todo_list = manager.get_list(command.workspace_id)
    if todo_list is None:
        logger.info("cannot undo %s: workspace %s no longer exists", command.kind, command.workspace_id)
        return None
    return UNDO_HANDLERS[type(command)](todo_list, command) or command


def apply_redo(manager: WorkspaceManager, command: Command) -> bool:
    """Re-apply a command in its own workspace; False if that workspace is gone"""
    todo_list = manager.get_list(command.workspace_id)
    if todo_list is None:
        logger.info("cannot redo %s: workspace %s no longer exists", command.kind, command.workspace_id)
        return False
    REDO_HANDLERS[type(command)](todo_list, command)
    return True


class Session:
    """Workspace manager plus command history, as driven by a front end"""

    def __init__(self, manager: Optional[WorkspaceManager] = None, history: Optional[CommandHistory] = None):
        self.manager = manager if manager is not None else WorkspaceManager()
        self.history = history if history is not None else CommandHistory()
        self.manager.ensure_workspace()

    @property
    def todo_list(self) -> Optional[TodoList]:
        return self.manager.current_list

    @property
    def workspace_id(self) -> Optional[str]:
        return self.manager.current

    def add(self, text: str, now: Optional[datetime] = None) -> Optional[int]:
        todo_list = self.todo_list
        if todo_list is None:
            return None
        task_id = todo_list.add(text, now=now)
        self.history.push(AddTask(self.workspace_id, todo_list.get(task_id).snapshot()))
        return task_id

    def add_child(self, parent_id: int, text: str, now: Optional[datetime] = None) -> Optional[int]:
        todo_list = self.todo_list
        if todo_list is None:
            return None
        task_id = todo_list.add_child(parent_id, text, now=now)
        if task_id is None:
            return None
        self.history.push(AddChild(self.workspace_id, parent_id, todo_list.get(task_id).snapshot()))
        return task_id

    def delete(self, task_id: int) -> bool:
        todo_list = self.todo_list
        if todo_list is None:
            return False
        task = todo_list.remove(task_id)
        if task is None:
            return False
        self.history.push(DeleteTask(self.workspace_id, task.snapshot()))
        return True

    def delete_with_children(self, task_id: int) -> int:
        """Cascading delete; returns how many tasks were removed"""
        todo_list = self.todo_list
        if todo_list is None:
            return 0
        removed = todo_list.remove_with_descendants(task_id)
        if removed:
            self.history.push(DeleteSubtree(self.workspace_id, tuple(t.snapshot() for t in removed)))
        return len(removed)

    def toggle_complete(self, task_id: int, now: Optional[datetime] = None) -> bool:
        todo_list = self.todo_list
        task = todo_list.get(task_id) if todo_list is not None else None
        if task is None:
            return False
        command = ToggleComplete(self.workspace_id, task_id, task.status, task.completed_at)
        task.toggle_complete(now)
        self.history.push(command)
        return True

    def set_priority(self, task_id: int, priority: int) -> bool:
        """Change priority; a change that clamps to the same value is not recorded"""
        todo_list = self.todo_list
        task = todo_list.get(task_id) if todo_list is not None else None
        if task is None:
            return False
        prior = task.priority
        task.set_priority(priority)
        if task.priority == prior:
            return False
        self.history.push(ChangePriority(self.workspace_id, task_id, prior, task.priority))
        return True

    def increase_priority(self, task_id: int) -> bool:
        task = self.todo_list.get(task_id) if self.todo_list is not None else None
        return self.set_priority(task_id, task.priority + 1) if task else False

    def decrease_priority(self, task_id: int) -> bool:
        task = self.todo_list.get(task_id) if self.todo_list is not None else None
        return self.set_priority(task_id, task.priority - 1) if task else False

    def edit(self, task_id: int, text: str, now: Optional[datetime] = None) -> bool:
        todo_list = self.todo_list
        task = todo_list.get(task_id) if todo_list is not None else None
        if task is None:
            return False
        command = EditDescription(self.workspace_id, task_id, task.raw_text, task.description, text)
        task.update_description(text, now=now)
        self.history.push(command)
        return True

    def undo(self) -> Optional[Command]:
        command = self.history.undo()
        if command is not None:
            kept = apply_undo(self.manager, command)
            if kept is not None and kept is not command:
                self.history.amend_redo(kept)
        return command

    def redo(self) -> Optional[Command]:
        command = self.history.redo()
        if command is not None:
            apply_redo(self.manager, command)
        return command
