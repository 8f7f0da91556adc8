"""
api/routes/v1/tasks.py -- Task CRUD and statistics routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /tasks          -- list caller's tasks (?status=&priority=&search=)
  POST   /tasks          -- create task; 201
  GET    /tasks/stats    -- per-status counts (must be before /tasks/{task_id})
  GET    /tasks/{task_id}
  PUT    /tasks/{task_id} -- partial update
  DELETE /tasks/{task_id}

Every route passes the API rate limit first, then require_principal. Both are
router-level dependencies, so no handler can forget either. All reads and
writes are scoped to the principal; someone else's task answers 404, never
403.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import limit_api_requests
from api.models import (
    MessagePayload,
    StatsPayload,
    SuccessResponse,
    TaskCreate,
    TaskListPayload,
    TaskOut,
    TaskPayload,
    TaskStatsOut,
    TaskUpdate,
)
from api.responses import success_response
from auth.dependencies import require_principal
from auth.models import Principal
from tasks import workflow
from tasks.models import TaskPriority, TaskStatus
from tasks.store import TaskStore

# Order matters: rate limit before authentication.
router = APIRouter(dependencies=[Depends(limit_api_requests), Depends(require_principal)])


@router.get("/tasks", response_model=SuccessResponse[TaskListPayload])
def list_tasks(
    request: Request,
    principal: Principal = Depends(require_principal),
    status: Optional[TaskStatus] = Query(default=None),
    priority: Optional[TaskPriority] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
) -> JSONResponse:
    """Return the caller's tasks, newest first, with optional filters."""
    store: TaskStore = request.app.state.task_store
    tasks = workflow.list_tasks(store, principal, status=status, priority=priority, search=search)
    return success_response(TaskListPayload(tasks=[TaskOut.from_task(t) for t in tasks]))


@router.post("/tasks", response_model=SuccessResponse[TaskPayload], status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    principal: Principal = Depends(require_principal),
) -> JSONResponse:
    store: TaskStore = request.app.state.task_store
    task = workflow.create_task(
        store,
        principal,
        title=body.title,
        description=body.description,
        status=body.status,
        priority=body.priority,
        due_date=body.due_date,
    )
    return success_response(TaskPayload(task=TaskOut.from_task(task)), status_code=201)


@router.get("/tasks/stats", response_model=SuccessResponse[StatsPayload])
def task_stats(request: Request, principal: Principal = Depends(require_principal)) -> JSONResponse:
    """Aggregate counts for the caller: total, todo, inProgress, done, overdue."""
    store: TaskStore = request.app.state.task_store
    stats = workflow.task_stats(store, principal)
    return success_response(StatsPayload(stats=TaskStatsOut.from_stats(stats)))


@router.get("/tasks/{task_id}", response_model=SuccessResponse[TaskPayload])
def get_task(request: Request, task_id: int, principal: Principal = Depends(require_principal)) -> JSONResponse:
    store: TaskStore = request.app.state.task_store
    task = workflow.get_task(store, principal, task_id)
    return success_response(TaskPayload(task=TaskOut.from_task(task)))


@router.put("/tasks/{task_id}", response_model=SuccessResponse[TaskPayload])
def update_task(
    request: Request,
    task_id: int,
    body: TaskUpdate,
    principal: Principal = Depends(require_principal),
) -> JSONResponse:
    store: TaskStore = request.app.state.task_store
    task = workflow.update_task(store, principal, task_id, body.changes())
    return success_response(TaskPayload(task=TaskOut.from_task(task)))


@router.delete("/tasks/{task_id}", response_model=SuccessResponse[MessagePayload])
def delete_task(request: Request, task_id: int, principal: Principal = Depends(require_principal)) -> JSONResponse:
    store: TaskStore = request.app.state.task_store
    workflow.delete_task(store, principal, task_id)
    return success_response(MessagePayload(message="Task deleted successfully"))
