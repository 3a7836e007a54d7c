from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from time import perf_counter

from sqlalchemy import delete, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from taskhub.db.models import DEFAULT_PRIORITY, Task
from taskhub.db.session import make_session_factory
from taskhub.errors import NotFoundError, StorageUnavailable, UnknownError, ValidationError
from taskhub.models.schemas import TaskOut
from taskhub.observability.metrics import MetricsRegistry

logger = logging.getLogger(__name__)


def _to_task_out(task: Task) -> TaskOut:
    return TaskOut(
        id=task.id,
        title=task.title,
        priority=task.priority,
        completed=task.completed,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def _is_connectivity_error(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class TaskGateway:
    """Typed CRUD over the `tasks` table; the only writer of Task rows.

    Every storage round trip is timed into `db_query_duration_seconds{operation}`,
    failures included.
    """

    def __init__(self, engine: Engine, metrics: MetricsRegistry) -> None:
        self.engine = engine
        self._metrics = metrics
        self._session_factory = make_session_factory(engine)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        start = perf_counter()
        try:
            with self._session_factory() as db:
                yield db
        except SQLAlchemyError as exc:
            if _is_connectivity_error(exc):
                logger.error("storage.unavailable", extra={"operation": operation, "error": str(exc)})
                raise StorageUnavailable(str(exc)) from exc
            logger.exception("storage.failed", extra={"operation": operation})
            raise UnknownError(str(exc)) from exc
        finally:
            self._metrics.observe_db_query(operation, perf_counter() - start)

    def list(self) -> list[TaskOut]:
        with self._session("select") as db:
            rows = db.execute(select(Task).order_by(Task.created_at.desc(), Task.id.desc())).scalars().all()
            return [_to_task_out(t) for t in rows]

    def create(self, title: str | None, priority: str | None = None) -> TaskOut:
        if not title:
            raise ValidationError("Title is required")

        now = datetime.now(timezone.utc)
        task = Task(
            title=title,
            priority=priority or DEFAULT_PRIORITY,
            completed=False,
            created_at=now,
            updated_at=now,
        )
        with self._session("insert") as db:
            db.add(task)
            db.commit()
            logger.info("task.created", extra={"task_id": task.id})
            return _to_task_out(task)

    def update(self, task_id: int, completed: bool) -> TaskOut:
        with self._session("update") as db:
            task = db.get(Task, task_id)
            if task is None:
                raise NotFoundError()
            task.completed = completed
            task.updated_at = datetime.now(timezone.utc)
            db.commit()
            return _to_task_out(task)

    def delete(self, task_id: int) -> None:
        with self._session("delete") as db:
            result = db.execute(delete(Task).where(Task.id == task_id))
            if result.rowcount == 0:
                raise NotFoundError()
            db.commit()
            logger.info("task.deleted", extra={"task_id": task_id})

    def count_total(self) -> int:
        with self._session("select") as db:
            return int(db.execute(select(func.count()).select_from(Task)).scalar_one())

    def count_completed(self) -> int:
        with self._session("select") as db:
            stmt = select(func.count()).select_from(Task).where(Task.completed.is_(True))
            return int(db.execute(stmt).scalar_one())

    def ping(self) -> None:
        """Trivial round trip behind the readiness check; raises on failure."""

        with self._session("select") as db:
            db.execute(text("SELECT 1"))
