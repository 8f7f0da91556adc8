"""
tasks/models.py -- Domain dataclasses for to-do items.

These are pure data containers with zero logic. Ownership checks and
aggregation live in tasks/store.py; orchestration in tasks/workflow.py.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Task:
    """A single to-do item, owned by exactly one user and never shared.

    id is None before the record is written to the database.
    """

    title: str
    owner_id: int
    description: str = ""
    status: str = TaskStatus.TODO.value
    priority: str = TaskPriority.MEDIUM.value
    due_date: Optional[str] = None  # ISO 8601
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class TaskStats:
    """Per-owner counts. overdue = not done and due_date in the past."""

    total: int = 0
    todo: int = 0
    in_progress: int = 0
    done: int = 0
    overdue: int = 0
