"""
tasks/workflow.py -- Owner-scoped task operations.

Every function takes the authenticated Principal and passes its user_id to
the store. There is no code path that reads or writes a task without an
owner filter, so a task belonging to another user is simply "not found".

Inputs are already shape-validated by the request schemas in api/models.py;
this layer normalizes values (trimmed strings, UTC due dates) and turns store
misses into NotFoundError.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from auth.models import Principal
from core.errors import NotFoundError
from tasks.models import Task, TaskPriority, TaskStats, TaskStatus
from tasks.store import TaskStore

logger = logging.getLogger("taskflow.tasks")

TASK_NOT_FOUND = "Task not found"


def _normalize_due_date(value: Optional[datetime]) -> Optional[str]:
    """Store due dates as UTC ISO strings. Naive datetimes are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def list_tasks(
    store: TaskStore,
    principal: Principal,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
) -> list[Task]:
    return store.list_tasks(
        principal.user_id,
        status=status.value if status else None,
        priority=priority.value if priority else None,
        search=search.strip() if search else None,
    )


def get_task(store: TaskStore, principal: Principal, task_id: int) -> Task:
    task = store.get_task(task_id, principal.user_id)
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    return task


def create_task(
    store: TaskStore,
    principal: Principal,
    title: str,
    description: str = "",
    status: TaskStatus = TaskStatus.TODO,
    priority: TaskPriority = TaskPriority.MEDIUM,
    due_date: Optional[datetime] = None,
) -> Task:
    task_id = store.create_task(
        Task(
            title=title.strip(),
            owner_id=principal.user_id,
            description=(description or "").strip(),
            status=status.value,
            priority=priority.value,
            due_date=_normalize_due_date(due_date),
        )
    )
    logger.info("Task %d created by user %d", task_id, principal.user_id)
    return get_task(store, principal, task_id)


def update_task(store: TaskStore, principal: Principal, task_id: int, changes: dict[str, Any]) -> Task:
    """Apply a partial update.

    changes holds only the fields the client actually sent. A due_date of
    None clears the due date; an absent key leaves it untouched.
    """
    fields: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "due_date":
            fields[key] = _normalize_due_date(value)
        elif key in ("status", "priority"):
            fields[key] = value.value if hasattr(value, "value") else value
        elif key in ("title", "description"):
            fields[key] = (value or "").strip()

    if not fields:
        # Nothing to write, but ownership must still be enforced.
        return get_task(store, principal, task_id)

    if not store.update_task(task_id, principal.user_id, **fields):
        raise NotFoundError(TASK_NOT_FOUND)
    return get_task(store, principal, task_id)


def delete_task(store: TaskStore, principal: Principal, task_id: int) -> None:
    if not store.delete_task(task_id, principal.user_id):
        raise NotFoundError(TASK_NOT_FOUND)
    logger.info("Task %d deleted by user %d", task_id, principal.user_id)


def task_stats(store: TaskStore, principal: Principal) -> TaskStats:
    return store.get_stats(principal.user_id)
