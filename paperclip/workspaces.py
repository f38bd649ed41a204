"""
Workspace manager: several named task trees and one current selection.

The manager is passed explicitly to whoever needs it; there is no
module-level "current workspace".
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from paperclip.models import Workspace
from paperclip.todo_list import Row, TodoList

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE_NAME = "Personal"
WORKSPACE_ID_PREFIX = "ws_"


def _id_number(workspace_id: str) -> int:
    """Numeric suffix of a ws_<n> id, 0 for any other id"""
    suffix = workspace_id[len(WORKSPACE_ID_PREFIX):] if workspace_id.startswith(WORKSPACE_ID_PREFIX) else ""
    return int(suffix) if suffix.isdigit() else 0


class WorkspaceManager:
    """Owns one TodoList per workspace id plus the current pointer"""

    def __init__(self):
        self.workspaces: Dict[str, Workspace] = {}
        self.workspace_todos: Dict[str, TodoList] = {}
        self.current: Optional[str] = None
        self.next_workspace_id: int = 1

    @property
    def is_empty(self) -> bool:
        return not self.workspaces

    def resolve(self, ref: str) -> Optional[str]:
        """Map a workspace id or name to its id (first match by creation order)"""
        if ref in self.workspaces:
            return ref
        for workspace_id, workspace in self.workspaces.items():
            if workspace.name == ref:
                return workspace_id
        return None

    def get(self, ref: str) -> Optional[Workspace]:
        workspace_id = self.resolve(ref)
        return self.workspaces.get(workspace_id) if workspace_id else None

    def get_list(self, workspace_id: str) -> Optional[TodoList]:
        return self.workspace_todos.get(workspace_id)

    @property
    def current_workspace(self) -> Optional[Workspace]:
        if self.current is None:
            return None
        return self.workspaces.get(self.current)

    @property
    def current_list(self) -> Optional[TodoList]:
        if self.current is None:
            return None
        return self.workspace_todos.get(self.current)

    def create(self, name: str, description: Optional[str] = None, now: Optional[datetime] = None) -> str:
        """Create an empty workspace; it becomes current only if none is selected"""
        workspace_id = f"{WORKSPACE_ID_PREFIX}{self.next_workspace_id}"
        self.next_workspace_id += 1

        self.workspaces[workspace_id] = Workspace(
            id=workspace_id,
            name=name,
            created_at=now or datetime.now(),
            description=description,
        )
        self.workspace_todos[workspace_id] = TodoList()

        if self.current is None:
            self.current = workspace_id
        logger.debug("created workspace %s (%s)", workspace_id, name)
        return workspace_id

    def switch(self, ref: str) -> bool:
        workspace_id = self.resolve(ref)
        if workspace_id is None:
            logger.debug("switch: unknown workspace %r", ref)
            return False
        self.current = workspace_id
        return True

    def delete(self, ref: str) -> bool:
        """Delete a workspace and its tasks; the last one can never be deleted.

        If the deleted workspace was current, the oldest remaining one
        (lowest id) becomes current.
        """
        if len(self.workspaces) <= 1:
            logger.info("refusing to delete the last remaining workspace")
            return False

        workspace_id = self.resolve(ref)
        if workspace_id is None:
            return False

        del self.workspaces[workspace_id]
        self.workspace_todos.pop(workspace_id, None)

        if self.current == workspace_id:
            self.current = next(iter(self.workspaces))
        logger.debug("deleted workspace %s", workspace_id)
        return True

    def rename(self, ref: str, new_name: str) -> bool:
        workspace = self.get(ref)
        if workspace is None:
            return False
        workspace.name = new_name
        return True

    def all_workspaces(self) -> List[Workspace]:
        """Workspaces oldest first"""
        order = {workspace_id: i for i, workspace_id in enumerate(self.workspaces)}
        return sorted(self.workspaces.values(), key=lambda ws: (ws.created_at, order[ws.id]))

    def workspace_counts(self) -> List[Tuple[str, str, int]]:
        """(id, name, task count) per workspace, oldest first"""
        return [
            (ws.id, ws.name, self.workspace_todos[ws.id].total_count if ws.id in self.workspace_todos else 0)
            for ws in self.all_workspaces()
        ]

    def ensure_workspace(self) -> str:
        """Guarantee at least one workspace and a current selection"""
        if self.is_empty:
            return self.create(DEFAULT_WORKSPACE_NAME, "Default workspace")
        if self.current is None or self.current not in self.workspaces:
            self.current = next(iter(self.workspaces))
        return self.current

    def search_all(self, query: str) -> Dict[str, List[Row]]:
        """Search every workspace; workspaces without matches are omitted"""
        results = {}
        for workspace_id, todo_list in self.workspace_todos.items():
            rows = todo_list.search(query)
            if rows:
                results[workspace_id] = rows
        return results

    def to_dict(self) -> dict:
        return {
            "workspaces": [ws.to_dict() for ws in self.workspaces.values()],
            "workspace_todos": {
                workspace_id: todo_list.to_dict()
                for workspace_id, todo_list in self.workspace_todos.items()
            },
            "current_workspace": self.current,
            "next_workspace_id": self.next_workspace_id,
        }

    @classmethod
    def from_dict(cls, data: dict):
        manager = cls()
        for item in data.get("workspaces", []):
            workspace = Workspace.from_dict(item)
            manager.workspaces[workspace.id] = workspace
            manager.workspace_todos[workspace.id] = TodoList.from_dict(
                data.get("workspace_todos", {}).get(workspace.id, {})
            )
        manager.current = data.get("current_workspace")
        if manager.current not in manager.workspaces:
            manager.current = next(iter(manager.workspaces), None)
        highest = max((_id_number(workspace_id) for workspace_id in manager.workspaces), default=0)
        manager.next_workspace_id = max(int(data.get("next_workspace_id", 1)), highest + 1)
        return manager
