import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Set

from paperclip.parser import parse_description
from paperclip.utils.utils import (
    add_months,
    add_years,
    format_duration,
    format_timestamp,
    parse_timestamp,
)

MIN_PRIORITY = 0
MAX_PRIORITY = 5


def clamp_priority(value: int) -> int:
    """Clamp a priority into the 0-5 range"""
    return max(MIN_PRIORITY, min(MAX_PRIORITY, int(value)))


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RecurrenceKind(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Recurrence:
    """Rule for generating a follow-up task once a task is completed"""
    kind: RecurrenceKind = RecurrenceKind.NONE
    days: int = 0  # only meaningful for CUSTOM

    @classmethod
    def custom(cls, days: int) -> "Recurrence":
        return cls(RecurrenceKind.CUSTOM, days)

    @property
    def is_none(self) -> bool:
        return self.kind is RecurrenceKind.NONE

    @property
    def label(self) -> str:
        if self.kind is RecurrenceKind.CUSTOM:
            return f"every {self.days} days"
        return self.kind.value

    def next_due(self, due: datetime) -> Optional[datetime]:
        """Advance a due date by one interval; None if there is no valid next date"""
        if self.kind is RecurrenceKind.DAILY:
            return due + timedelta(days=1)
        if self.kind is RecurrenceKind.WEEKLY:
            return due + timedelta(weeks=1)
        if self.kind is RecurrenceKind.MONTHLY:
            return add_months(due, 1)
        if self.kind is RecurrenceKind.YEARLY:
            return add_years(due, 1)
        if self.kind is RecurrenceKind.CUSTOM:
            return due + timedelta(days=self.days)
        return None

    def to_dict(self) -> dict:
        data = {'kind': self.kind.value}
        if self.kind is RecurrenceKind.CUSTOM:
            data['days'] = self.days
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]):
        if not data:
            return cls()
        return cls(RecurrenceKind(data.get('kind', 'none')), int(data.get('days', 0)))


@dataclass
class TimeEntry:
    """One closed time-tracking session"""
    start: datetime
    end: Optional[datetime] = None
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'start': format_timestamp(self.start),
            'end': format_timestamp(self.end),
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            start=parse_timestamp(data['start']),
            end=parse_timestamp(data.get('end')),
            description=data.get('description'),
        )


@dataclass
class TimeTracker:
    """Accumulated seconds, closed sessions and at most one open session"""
    total_seconds: int = 0
    entries: List[TimeEntry] = field(default_factory=list)
    current_session: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.current_session is not None

    def start(self, now: datetime) -> bool:
        if self.current_session is not None:
            return False
        self.current_session = now
        return True

    def stop(self, now: datetime) -> bool:
        if self.current_session is None:
            return False
        start, self.current_session = self.current_session, None
        self.total_seconds += max(0, int((now - start).total_seconds()))
        self.entries.append(TimeEntry(start=start, end=now))
        return True

    def session_seconds(self, now: datetime) -> Optional[int]:
        if self.current_session is None:
            return None
        return max(0, int((now - self.current_session).total_seconds()))

    def to_dict(self) -> dict:
        return {
            'total_seconds': self.total_seconds,
            'entries': [entry.to_dict() for entry in self.entries],
            'current_session': format_timestamp(self.current_session),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]):
        if not data:
            return cls()
        return cls(
            total_seconds=int(data.get('total_seconds', 0)),
            entries=[TimeEntry.from_dict(item) for item in data.get('entries', [])],
            current_session=parse_timestamp(data.get('current_session')),
        )


@dataclass
class Task:
    """A single task; hierarchy is expressed through ids only"""
    id: int
    raw_text: str
    description: str = ""
    tags: Set[str] = field(default_factory=set)
    contexts: Set[str] = field(default_factory=set)
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    priority: int = 0
    parent_id: Optional[int] = None  # weak back-reference, may go stale
    children: List[int] = field(default_factory=list)
    expanded: bool = True
    notes: Optional[str] = None
    time_tracker: TimeTracker = field(default_factory=TimeTracker)
    recurrence: Recurrence = field(default_factory=Recurrence)
    template_origin: Optional[str] = None

    @classmethod
    def create(cls, task_id: int, raw_text: str, now: Optional[datetime] = None):
        """Build a task by parsing its raw text"""
        task = cls(id=task_id, raw_text=raw_text, created_at=now or datetime.now())
        task.update_description(raw_text, now=now)
        return task

    def to_dict(self) -> dict:
        """Convert task to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'raw_text': self.raw_text,
            'description': self.description,
            'tags': sorted(self.tags),
            'contexts': sorted(self.contexts),
            'status': self.status.value,
            'created_at': format_timestamp(self.created_at),
            'completed_at': format_timestamp(self.completed_at),
            'due_at': format_timestamp(self.due_at),
            'priority': self.priority,
            'parent_id': self.parent_id,
            'children': list(self.children),
            'expanded': self.expanded,
            'notes': self.notes,
            'time_tracker': self.time_tracker.to_dict(),
            'recurrence': self.recurrence.to_dict(),
            'template_origin': self.template_origin,
        }

    @classmethod
    def from_dict(cls, data: dict):
        """Create task from dictionary (missing fields take their defaults)"""
        raw_text = data.get('raw_text', data.get('description', ''))
        return cls(
            id=int(data['id']),
            raw_text=raw_text,
            description=data.get('description', raw_text),
            tags=set(data.get('tags', [])),
            contexts=set(data.get('contexts', [])),
            status=TaskStatus(data.get('status', TaskStatus.PENDING.value)),
            created_at=parse_timestamp(data.get('created_at')) or datetime.now(),
            completed_at=parse_timestamp(data.get('completed_at')),
            due_at=parse_timestamp(data.get('due_at')),
            priority=clamp_priority(data.get('priority', 0)),
            parent_id=data.get('parent_id'),
            children=list(data.get('children', [])),
            expanded=data.get('expanded', True),
            notes=data.get('notes'),
            time_tracker=TimeTracker.from_dict(data.get('time_tracker')),
            recurrence=Recurrence.from_dict(data.get('recurrence')),
            template_origin=data.get('template_origin'),
        )

    def snapshot(self) -> "Task":
        """Deep copy, detached from the owning store"""
        return copy.deepcopy(self)

    def update_description(self, raw_text: str, now: Optional[datetime] = None):
        """Re-parse raw text; tags, contexts and due date are fully recomputed"""
        parsed = parse_description(raw_text, now=now)
        self.raw_text = raw_text
        self.description = parsed.description
        self.tags = set(parsed.tags)
        self.contexts = set(parsed.contexts)
        self.due_at = parsed.due_date

    def mark_done(self, now: Optional[datetime] = None):
        """Mark task as completed with timestamp"""
        self.status = TaskStatus.COMPLETED
        self.completed_at = now or datetime.now()

    def mark_pending(self):
        self.status = TaskStatus.PENDING
        self.completed_at = None

    def toggle_complete(self, now: Optional[datetime] = None):
        if self.is_completed:
            self.mark_pending()
        else:
            self.mark_done(now)

    def set_priority(self, priority: int):
        self.priority = clamp_priority(priority)

    def set_notes(self, notes: Optional[str]):
        self.notes = notes

    def set_recurrence(self, recurrence: Recurrence):
        self.recurrence = recurrence

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.due_at is None:
            return False
        return self.due_at < (now or datetime.now()) and not self.is_completed

    @property
    def has_notes(self) -> bool:
        return bool(self.notes and self.notes.strip())

    @property
    def is_recurring(self) -> bool:
        return not self.recurrence.is_none

    @property
    def should_generate_next(self) -> bool:
        return self.is_completed and self.is_recurring

    def next_due_date(self) -> Optional[datetime]:
        if self.due_at is None:
            return None
        return self.recurrence.next_due(self.due_at)

    # Time tracking

    def start_timer(self, now: Optional[datetime] = None) -> bool:
        """Open a session; a Pending task moves to InProgress"""
        if not self.time_tracker.start(now or datetime.now()):
            return False
        if self.status is TaskStatus.PENDING:
            self.status = TaskStatus.IN_PROGRESS
        return True

    def stop_timer(self, now: Optional[datetime] = None) -> bool:
        return self.time_tracker.stop(now or datetime.now())

    @property
    def is_timer_running(self) -> bool:
        return self.time_tracker.is_running

    def current_session_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        """Seconds in the open session, None when no timer is running"""
        return self.time_tracker.session_seconds(now or datetime.now())

    def total_seconds(self, now: Optional[datetime] = None) -> int:
        """Tracked seconds including the open session, if any"""
        running = self.current_session_seconds(now) or 0
        return self.time_tracker.total_seconds + running

    def total_time_formatted(self, now: Optional[datetime] = None) -> str:
        return format_duration(self.total_seconds(now))


@dataclass
class Workspace:
    """Named, isolated namespace holding one task tree"""
    id: str
    name: str
    created_at: datetime = field(default_factory=datetime.now)
    description: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert workspace to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'name': self.name,
            'created_at': format_timestamp(self.created_at),
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: dict):
        """Create workspace from dictionary"""
        return cls(
            id=data['id'],
            name=data['name'],
            created_at=parse_timestamp(data.get('created_at')) or datetime.now(),
            description=data.get('description'),
        )
