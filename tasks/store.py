"""
tasks/store.py -- SQLAlchemy-backed persistence layer for tasks.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in tasks/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Workflow code never touches SQL directly.

Ownership: every by-id query carries `owner_id` in its WHERE clause. A task
that exists but belongs to someone else produces exactly the same result as a
task that does not exist (None / False) -- callers cannot tell them apart.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TaskStore()                                # DATABASE_URL default
    store = TaskStore("postgresql://user:pw@host/db")  # PostgreSQL
    task_id = store.create_task(Task(title="Write tests", owner_id=1))
    store.update_task(task_id, 1, status="done")
    stats = store.get_stats(1)
    store.close()
"""

from typing import Optional

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from core.config import get_settings, now_iso
from tasks.models import Task, TaskStats, TaskStatus

# Columns a caller may change through update_task(). Anything else
# (id, owner_id, created_at) is fixed at insert time.
_MUTABLE_FIELDS = frozenset({"title", "description", "status", "priority", "due_date"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False),
    Column("title", String(100), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("status", String(20), nullable=False, server_default="todo"),
    Column("priority", String(10), nullable=False, server_default="medium"),
    Column("due_date", String(40)),  # ISO 8601 UTC
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_tasks_owner_created", "owner_id", "created_at"),
    Index("ix_tasks_owner_status", "owner_id", "status"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    """Repository for Task entities, always scoped by owner."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> int:
        """Insert a task and return its assigned ID."""
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.insert().values(
                    owner_id=task.owner_id,
                    title=task.title,
                    description=task.description,
                    status=task.status,
                    priority=task.priority,
                    due_date=task.due_date,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_task(self, task_id: int, owner_id: int, **fields) -> bool:
        """Apply a partial update to a task the caller owns.

        Accepted fields: title, description, status, priority, due_date.
        Unknown fields raise ValueError rather than being silently ignored.

        Returns True if the task was found for this owner, False otherwise.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)!r}")
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.update().where((_tasks.c.id == task_id) & (_tasks.c.owner_id == owner_id)).values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_task(self, task_id: int, owner_id: int) -> bool:
        """Delete a task the caller owns. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.delete().where((_tasks.c.id == task_id) & (_tasks.c.owner_id == owner_id))
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_task(self, task_id: int, owner_id: int) -> Optional[Task]:
        """Return the task if it exists AND belongs to owner_id, else None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _tasks.select().where((_tasks.c.id == task_id) & (_tasks.c.owner_id == owner_id))
            ).fetchone()
        return _row_to_task(row) if row is not None else None

    def list_tasks(
        self,
        owner_id: int,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Task]:
        """Return the owner's tasks, newest first, optionally filtered.

        search is a case-insensitive substring match on the title. LIKE
        wildcards in the search text are escaped, not interpreted.
        """
        query = _tasks.select().where(_tasks.c.owner_id == owner_id)
        if status:
            query = query.where(_tasks.c.status == status)
        if priority:
            query = query.where(_tasks.c.priority == priority)
        if search:
            query = query.where(func.lower(_tasks.c.title).contains(search.lower(), autoescape=True))
        query = query.order_by(_tasks.c.created_at.desc(), _tasks.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_task(r) for r in rows]

    def get_stats(self, owner_id: int, now: Optional[str] = None) -> TaskStats:
        """Return per-status counts for one owner.

        One GROUP BY for the status breakdown plus one COUNT for overdue
        tasks. Due dates are stored as normalized UTC ISO strings, so string
        comparison against `now` orders them correctly.
        """
        now = now or now_iso()
        stats = TaskStats()
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_tasks.c.status, func.count().label("n"))
                .where(_tasks.c.owner_id == owner_id)
                .group_by(_tasks.c.status)
            ).fetchall()
            overdue = conn.execute(
                select(func.count())
                .select_from(_tasks)
                .where(
                    (_tasks.c.owner_id == owner_id)
                    & (_tasks.c.status != TaskStatus.DONE.value)
                    & (_tasks.c.due_date.is_not(None))
                    & (_tasks.c.due_date < now)
                )
            ).scalar()

        for status, count in rows:
            stats.total += count
            if status == TaskStatus.TODO.value:
                stats.todo = count
            elif status == TaskStatus.IN_PROGRESS.value:
                stats.in_progress = count
            elif status == TaskStatus.DONE.value:
                stats.done = count
        stats.overdue = overdue or 0
        return stats

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description or "",
        status=row.status,
        priority=row.priority,
        due_date=row.due_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
