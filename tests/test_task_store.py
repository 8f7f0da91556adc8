"""Unit tests for tasks/store.py and tasks/workflow.py.

Covers:
- CRUD round trip with store-assigned timestamps
- Owner scoping: another owner's task is invisible to get/update/delete
- Filters: status, priority, case-insensitive search with LIKE wildcards escaped
- Newest-first ordering
- Stats per status plus overdue (not done, due in the past)
- Workflow: due-date normalization, partial update, clearing due date, NotFoundError
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import Principal
from core.errors import NotFoundError
from tasks import workflow
from tasks.models import Task, TaskPriority, TaskStatus
from tasks.store import TaskStore

ALICE = Principal(user_id=1, email="alice@example.com")
BOB = Principal(user_id=2, email="bob@example.com")


def _add(store: TaskStore, title: str, owner_id: int = 1, **kwargs) -> int:
    return store.create_task(Task(title=title, owner_id=owner_id, **kwargs))


class TestTaskStoreCrud:
    def test_create_and_get(self, task_store: TaskStore) -> None:
        task_id = _add(task_store, "Write report", description="Q3 numbers", priority="high")
        task = task_store.get_task(task_id, 1)
        assert task is not None
        assert task.id == task_id
        assert task.title == "Write report"
        assert task.description == "Q3 numbers"
        assert task.status == "todo"
        assert task.priority == "high"
        assert task.due_date is None
        assert task.created_at and task.created_at == task.updated_at

    def test_update(self, task_store: TaskStore) -> None:
        task_id = _add(task_store, "Write report")
        assert task_store.update_task(task_id, 1, status="done", title="Report written")
        task = task_store.get_task(task_id, 1)
        assert task.status == "done"
        assert task.title == "Report written"
        assert task.updated_at >= task.created_at

    def test_update_unknown_field_raises(self, task_store: TaskStore) -> None:
        task_id = _add(task_store, "Write report")
        with pytest.raises(ValueError, match="owner_id"):
            task_store.update_task(task_id, 1, owner_id=2)

    def test_delete(self, task_store: TaskStore) -> None:
        task_id = _add(task_store, "Write report")
        assert task_store.delete_task(task_id, 1)
        assert task_store.get_task(task_id, 1) is None
        assert not task_store.delete_task(task_id, 1)


class TestOwnership:
    def test_other_owner_cannot_read(self, task_store: TaskStore) -> None:
        task_id = _add(task_store, "Private", owner_id=1)
        assert task_store.get_task(task_id, 2) is None

    def test_other_owner_cannot_update(self, task_store: TaskStore) -> None:
        task_id = _add(task_store, "Private", owner_id=1)
        assert not task_store.update_task(task_id, 2, title="Hijacked")
        assert task_store.get_task(task_id, 1).title == "Private"

    def test_other_owner_cannot_delete(self, task_store: TaskStore) -> None:
        task_id = _add(task_store, "Private", owner_id=1)
        assert not task_store.delete_task(task_id, 2)
        assert task_store.get_task(task_id, 1) is not None

    def test_list_is_owner_scoped(self, task_store: TaskStore) -> None:
        _add(task_store, "Mine", owner_id=1)
        _add(task_store, "Theirs", owner_id=2)
        assert [t.title for t in task_store.list_tasks(1)] == ["Mine"]


class TestListFilters:
    @pytest.fixture
    def populated(self, task_store: TaskStore) -> TaskStore:
        _add(task_store, "Buy milk", status="todo", priority="low")
        _add(task_store, "Fix BUG in parser", status="in_progress", priority="high")
        _add(task_store, "Ship release", status="done", priority="high")
        _add(task_store, "100% coverage", status="todo", priority="medium")
        return task_store

    def test_newest_first(self, populated: TaskStore) -> None:
        titles = [t.title for t in populated.list_tasks(1)]
        assert titles == ["100% coverage", "Ship release", "Fix BUG in parser", "Buy milk"]

    def test_status_filter(self, populated: TaskStore) -> None:
        assert [t.title for t in populated.list_tasks(1, status="todo")] == ["100% coverage", "Buy milk"]

    def test_priority_filter(self, populated: TaskStore) -> None:
        titles = [t.title for t in populated.list_tasks(1, priority="high")]
        assert titles == ["Ship release", "Fix BUG in parser"]

    def test_combined_filters(self, populated: TaskStore) -> None:
        titles = [t.title for t in populated.list_tasks(1, status="done", priority="high")]
        assert titles == ["Ship release"]

    def test_search_is_case_insensitive(self, populated: TaskStore) -> None:
        assert [t.title for t in populated.list_tasks(1, search="bug")] == ["Fix BUG in parser"]

    def test_search_escapes_wildcards(self, populated: TaskStore) -> None:
        assert [t.title for t in populated.list_tasks(1, search="100%")] == ["100% coverage"]
        assert populated.list_tasks(1, search="_") == []


class TestStats:
    def test_empty(self, task_store: TaskStore) -> None:
        stats = task_store.get_stats(1)
        assert (stats.total, stats.todo, stats.in_progress, stats.done, stats.overdue) == (0, 0, 0, 0, 0)

    def test_counts_per_status(self, task_store: TaskStore) -> None:
        _add(task_store, "a1", status="todo")
        _add(task_store, "a2", status="todo")
        _add(task_store, "b1", status="in_progress")
        _add(task_store, "c1", status="done")
        _add(task_store, "other", owner_id=2, status="done")
        stats = task_store.get_stats(1)
        assert stats.total == 4
        assert stats.todo == 2
        assert stats.in_progress == 1
        assert stats.done == 1

    def test_overdue_ignores_done_and_future(self, task_store: TaskStore) -> None:
        now = "2026-06-01T12:00:00+00:00"
        _add(task_store, "late", due_date="2026-05-01T00:00:00+00:00")
        _add(task_store, "late but done", status="done", due_date="2026-05-01T00:00:00+00:00")
        _add(task_store, "future", due_date="2026-07-01T00:00:00+00:00")
        _add(task_store, "undated")
        assert task_store.get_stats(1, now=now).overdue == 1


class TestTaskWorkflow:
    def test_create_normalizes_due_date_to_utc(self, task_store: TaskStore) -> None:
        due = datetime(2026, 3, 1, 9, 0, tzinfo=timezone(timedelta(hours=2)))
        task = workflow.create_task(task_store, ALICE, "  Plan sprint  ", due_date=due)
        assert task.title == "Plan sprint"
        assert task.due_date == "2026-03-01T07:00:00+00:00"
        assert task.owner_id == ALICE.user_id

    def test_create_naive_due_date_is_utc(self, task_store: TaskStore) -> None:
        task = workflow.create_task(task_store, ALICE, "Plan sprint", due_date=datetime(2026, 3, 1, 9, 0))
        assert task.due_date == "2026-03-01T09:00:00+00:00"

    def test_create_defaults(self, task_store: TaskStore) -> None:
        task = workflow.create_task(task_store, ALICE, "Plan sprint")
        assert task.status == TaskStatus.TODO.value
        assert task.priority == TaskPriority.MEDIUM.value
        assert task.description == ""

    def test_partial_update_keeps_other_fields(self, task_store: TaskStore) -> None:
        task = workflow.create_task(task_store, ALICE, "Plan sprint", description="notes", priority=TaskPriority.HIGH)
        updated = workflow.update_task(task_store, ALICE, task.id, {"status": TaskStatus.IN_PROGRESS})
        assert updated.status == "in_progress"
        assert updated.description == "notes"
        assert updated.priority == "high"

    def test_update_clears_due_date(self, task_store: TaskStore) -> None:
        task = workflow.create_task(task_store, ALICE, "Plan sprint", due_date=datetime(2026, 3, 1))
        updated = workflow.update_task(task_store, ALICE, task.id, {"due_date": None})
        assert updated.due_date is None

    def test_empty_update_still_checks_owner(self, task_store: TaskStore) -> None:
        task = workflow.create_task(task_store, ALICE, "Plan sprint")
        assert workflow.update_task(task_store, ALICE, task.id, {}).id == task.id
        with pytest.raises(NotFoundError):
            workflow.update_task(task_store, BOB, task.id, {})

    def test_foreign_task_is_not_found(self, task_store: TaskStore) -> None:
        task = workflow.create_task(task_store, ALICE, "Plan sprint")
        with pytest.raises(NotFoundError, match="Task not found"):
            workflow.get_task(task_store, BOB, task.id)
        with pytest.raises(NotFoundError):
            workflow.update_task(task_store, BOB, task.id, {"title": "Mine now"})
        with pytest.raises(NotFoundError):
            workflow.delete_task(task_store, BOB, task.id)
        assert workflow.get_task(task_store, ALICE, task.id).title == "Plan sprint"

    def test_list_filters_pass_through(self, task_store: TaskStore) -> None:
        workflow.create_task(task_store, ALICE, "Alpha", status=TaskStatus.DONE)
        workflow.create_task(task_store, ALICE, "Beta")
        done = workflow.list_tasks(task_store, ALICE, status=TaskStatus.DONE)
        assert [t.title for t in done] == ["Alpha"]
        assert [t.title for t in workflow.list_tasks(task_store, ALICE, search="  bet ")] == ["Beta"]

    def test_stats(self, task_store: TaskStore) -> None:
        workflow.create_task(task_store, ALICE, "Alpha", status=TaskStatus.DONE)
        workflow.create_task(task_store, ALICE, "Beta")
        stats = workflow.task_stats(task_store, ALICE)
        assert stats.total == 2
        assert stats.done == 1
        assert stats.todo == 1
