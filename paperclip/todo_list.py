"""
Id-addressed task tree store.

Tasks live in a single ``id -> Task`` table. Parent/child structure is kept
as ``parent_id`` back-references plus ordered ``children`` id lists, and
every traversal goes through table lookups. Unknown or stale ids never
raise: lookups return None and mutations do nothing.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from paperclip.models import Recurrence, Task

logger = logging.getLogger(__name__)

Row = Tuple[Task, int]


class DueDateFilter(str, Enum):
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    NO_DUE_DATE = "no_due_date"


def sort_key(task: Task):
    """Display order among siblings: priority high to low, then oldest first"""
    return (-task.priority, task.created_at, task.id)


def _matches_due_filter(task: Task, bucket: DueDateFilter, now: datetime) -> bool:
    due = task.due_at
    if due is None:
        return bucket is DueDateFilter.NO_DUE_DATE

    today = now.date()
    if bucket is DueDateFilter.OVERDUE:
        return due < now and not task.is_completed
    if bucket is DueDateFilter.TODAY:
        return due.date() == today
    if bucket is DueDateFilter.TOMORROW:
        return due.date() == today + timedelta(days=1)
    if bucket is DueDateFilter.THIS_WEEK:
        return now <= due <= now + timedelta(days=7)
    return False


def _frequency(values: Iterable[str]) -> List[Tuple[str, int]]:
    counts = Counter(values)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


class TodoList:
    """Task tree for one workspace"""

    def __init__(self):
        self._index: Dict[int, Task] = {}
        self._next_id: int = 1

    @property
    def next_id(self) -> int:
        return self._next_id

    def __len__(self) -> int:
        return len(self._index)

    def _allocate(self, raw_text: str, now: Optional[datetime]) -> Task:
        task = Task.create(self._next_id, raw_text, now=now)
        self._next_id += 1
        self._index[task.id] = task
        return task

    # -----------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------

    def get(self, task_id: int) -> Optional[Task]:
        """Get a specific task by ID"""
        return self._index.get(task_id)

    def tasks(self) -> List[Task]:
        """All tasks in display order, ignoring hierarchy"""
        return sorted(self._index.values(), key=sort_key)

    def roots(self) -> List[Task]:
        return sorted(
            (t for t in self._index.values() if t.parent_id is None),
            key=sort_key,
        )

    def children_of(self, task_id: int) -> List[Task]:
        parent = self._index.get(task_id)
        if parent is None:
            return []
        found = (self._index.get(child_id) for child_id in parent.children)
        return sorted((t for t in found if t is not None), key=sort_key)

    def has_children(self, task_id: int) -> bool:
        task = self._index.get(task_id)
        return bool(task and task.children)

    def depth(self, task_id: int) -> int:
        """Number of parent hops; stops at a missing parent"""
        depth = 0
        seen = {task_id}
        task = self._index.get(task_id)
        while task is not None and task.parent_id is not None:
            parent = self._index.get(task.parent_id)
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            depth += 1
            task = parent
        return depth

    # -----------------------------------------------------------------
    # Insertion and removal
    # -----------------------------------------------------------------

    def add(self, description: str, now: Optional[datetime] = None) -> int:
        """Add a root task and return its id"""
        task = self._allocate(description, now)
        logger.debug("added task %s", task.id)
        return task.id

    def add_child(self, parent_id: int, description: str, now: Optional[datetime] = None) -> Optional[int]:
        """Add a task under parent_id; None (and no id consumed) if the parent is missing"""
        parent = self._index.get(parent_id)
        if parent is None:
            logger.debug("add_child: parent %s not found", parent_id)
            return None
        child = self._allocate(description, now)
        child.parent_id = parent_id
        parent.children.append(child.id)
        logger.debug("added task %s under %s", child.id, parent_id)
        return child.id

    def _detach(self, task: Task):
        if task.parent_id is None:
            return
        parent = self._index.get(task.parent_id)
        if parent is not None and task.id in parent.children:
            parent.children.remove(task.id)

    def remove(self, task_id: int) -> Optional[Task]:
        """Remove one task; its children keep a now-stale parent_id"""
        task = self._index.get(task_id)
        if task is None:
            return None
        self._detach(task)
        del self._index[task_id]
        logger.debug("removed task %s", task_id)
        return task

    def collect_subtree(self, task_id: int) -> List[int]:
        """Pre-order ids of task_id and all of its descendants"""
        if task_id not in self._index:
            return []
        collected: List[int] = []
        seen = set()
        stack = [task_id]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            collected.append(current)
            task = self._index.get(current)
            if task is not None:
                stack.extend(reversed(task.children))
        return [i for i in collected if i in self._index]

    def remove_with_descendants(self, task_id: int) -> List[Task]:
        """Remove a task and its whole subtree, root first in the result"""
        ids = self.collect_subtree(task_id)
        if not ids:
            return []
        self._detach(self._index[task_id])
        removed = [self._index.pop(i) for i in ids]
        logger.debug("removed subtree of %s (%d tasks)", task_id, len(removed))
        return removed

    def restore(self, tasks: Iterable[Task]) -> List[int]:
        """Re-insert previously removed tasks, re-linking parent/child edges.

        Snapshots are copied so the caller may restore the same ones again.
        """
        restored = [task.snapshot() for task in tasks]
        for task in restored:
            self._index[task.id] = task
            self._next_id = max(self._next_id, task.id + 1)
        for task in restored:
            if task.parent_id is None:
                continue
            parent = self._index.get(task.parent_id)
            if parent is not None and task.id not in parent.children:
                parent.children.append(task.id)
        logger.debug("restored tasks %s", [t.id for t in restored])
        return [t.id for t in restored]

    def clear_completed(self) -> List[Task]:
        """Remove every completed task; returns the removed tasks"""
        done_ids = [t.id for t in self.tasks() if t.is_completed]
        return [task for task in map(self.remove, done_ids) if task is not None]

    # -----------------------------------------------------------------
    # Mutation by id
    # -----------------------------------------------------------------

    def toggle_expanded(self, task_id: int):
        task = self._index.get(task_id)
        if task is not None:
            task.expanded = not task.expanded

    def toggle_complete(self, task_id: int, now: Optional[datetime] = None) -> bool:
        task = self._index.get(task_id)
        if task is None:
            return False
        task.toggle_complete(now)
        return True

    def set_priority(self, task_id: int, priority: int) -> bool:
        task = self._index.get(task_id)
        if task is None:
            return False
        task.set_priority(priority)
        return True

    def increase_priority(self, task_id: int) -> bool:
        task = self._index.get(task_id)
        return self.set_priority(task_id, task.priority + 1) if task else False

    def decrease_priority(self, task_id: int) -> bool:
        task = self._index.get(task_id)
        return self.set_priority(task_id, task.priority - 1) if task else False

    def set_notes(self, task_id: int, notes: Optional[str]) -> bool:
        task = self._index.get(task_id)
        if task is None:
            return False
        task.set_notes(notes)
        return True

    def set_recurrence(self, task_id: int, recurrence: Recurrence) -> bool:
        task = self._index.get(task_id)
        if task is None:
            return False
        task.set_recurrence(recurrence)
        return True

    def update_description(self, task_id: int, raw_text: str, now: Optional[datetime] = None) -> bool:
        task = self._index.get(task_id)
        if task is None:
            return False
        task.update_description(raw_text, now=now)
        return True

    def start_timer(self, task_id: int, now: Optional[datetime] = None) -> bool:
        task = self._index.get(task_id)
        return task.start_timer(now) if task else False

    def stop_timer(self, task_id: int, now: Optional[datetime] = None) -> bool:
        task = self._index.get(task_id)
        return task.stop_timer(now) if task else False

    def active_timers(self) -> List[Task]:
        return [t for t in self.tasks() if t.is_timer_running]

    # -----------------------------------------------------------------
    # Views
    # -----------------------------------------------------------------

    def flatten(
        self,
        predicate: Optional[Callable[[Task], bool]] = None,
        include_collapsed: bool = False,
    ) -> List[Row]:
        """Depth-first pre-order rows (task, depth) from the root tasks.

        Children are visited only under expanded tasks unless
        include_collapsed is set. The optional predicate filters the
        finished sequence without changing depths.
        """
        rows: List[Row] = []
        visited = set()
        stack = [(task, 0) for task in reversed(self.roots())]
        while stack:
            task, depth = stack.pop()
            if task.id in visited:
                continue
            visited.add(task.id)
            rows.append((task, depth))
            if task.expanded or include_collapsed:
                for child in reversed(self.children_of(task.id)):
                    stack.append((child, depth + 1))
        if predicate is None:
            return rows
        return [row for row in rows if predicate(row[0])]

    def pending(self) -> List[Row]:
        return self.flatten(lambda t: not t.is_completed)

    def completed(self) -> List[Row]:
        return self.flatten(lambda t: t.is_completed)

    def by_tag(self, tag: str) -> List[Row]:
        tag = tag.lower()
        return self.flatten(lambda t: tag in t.tags)

    def by_context(self, context: str) -> List[Row]:
        context = context.lower()
        return self.flatten(lambda t: context in t.contexts)

    def by_due_date(self, bucket: DueDateFilter, now: Optional[datetime] = None) -> List[Row]:
        now = now or datetime.now()
        return self.flatten(lambda t: _matches_due_filter(t, bucket, now))

    def search(self, query: str) -> List[Row]:
        """Case-insensitive match on description, substring match on tags/contexts.

        Collapsed subtrees are searched too.
        """
        query = query.lower()

        def matches(task: Task) -> bool:
            return (
                query in task.description.lower()
                or any(query in tag for tag in task.tags)
                or any(query in context for context in task.contexts)
            )

        return self.flatten(matches, include_collapsed=True)

    # -----------------------------------------------------------------
    # Statistics
    # -----------------------------------------------------------------

    @property
    def total_count(self) -> int:
        return len(self._index)

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self._index.values() if not t.is_completed)

    @property
    def completed_count(self) -> int:
        return sum(1 for t in self._index.values() if t.is_completed)

    def all_tags(self) -> List[str]:
        return sorted({tag for t in self._index.values() for tag in t.tags})

    def all_contexts(self) -> List[str]:
        return sorted({ctx for t in self._index.values() for ctx in t.contexts})

    def tag_counts(self) -> List[Tuple[str, int]]:
        """(tag, count) sorted by count desc, then name asc"""
        return _frequency(tag for t in self._index.values() for tag in t.tags)

    def context_counts(self) -> List[Tuple[str, int]]:
        return _frequency(ctx for t in self._index.values() for ctx in t.contexts)

    def overdue_count(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now()
        return sum(1 for t in self._index.values() if t.is_overdue(now))

    def due_today_count(self, now: Optional[datetime] = None) -> int:
        today = (now or datetime.now()).date()
        return sum(
            1 for t in self._index.values()
            if t.due_at is not None and t.due_at.date() == today and not t.is_completed
        )

    # -----------------------------------------------------------------
    # Recurrence
    # -----------------------------------------------------------------

    def process_recurring(self, now: Optional[datetime] = None) -> List[int]:
        """Create a follow-up root task for every completed recurring task.

        Source tasks are left untouched. Returns the new ids.
        """
        new_ids = []
        for source in sorted(self._index.values(), key=lambda t: t.id):
            if not source.should_generate_next:
                continue
            next_due = source.next_due_date()
            if next_due is None:
                logger.debug("task %s has no next due date, skipping", source.id)
                continue
            task = self._allocate(source.raw_text, now)
            task.due_at = next_due
            task.recurrence = source.recurrence
            task.notes = source.notes
            task.priority = source.priority
            task.tags = set(source.tags)
            task.contexts = set(source.contexts)
            new_ids.append(task.id)
        if new_ids:
            logger.info("generated %d recurring tasks", len(new_ids))
        return new_ids

    # -----------------------------------------------------------------
    # Serialization
    # -----------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "next_id": self._next_id,
            "tasks": [t.to_dict() for t in sorted(self._index.values(), key=lambda t: t.id)],
        }

    @classmethod
    def from_dict(cls, data: dict):
        todo_list = cls()
        todo_list._index = {t.id: t for t in (Task.from_dict(item) for item in data.get("tasks", []))}
        max_id = max(todo_list._index, default=0)
        todo_list._next_id = max(int(data.get("next_id", 1)), max_id + 1)
        return todo_list
