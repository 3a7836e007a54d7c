from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, status

from taskhub.api.dependencies import get_aggregator, get_gateway
from taskhub.db.gateway import TaskGateway
from taskhub.models.schemas import (
    ErrorResponse,
    MessageResponse,
    TaskCreate,
    TaskOut,
    TaskStats,
    TaskUpdate,
)
from taskhub.services.aggregator import GaugeAggregator

router = APIRouter(prefix="/api", tags=["tasks"])

_NOT_FOUND = {404: {"model": ErrorResponse}}

# Plain `def` handlers: FastAPI runs them on its threadpool, so blocking storage
# calls never stall the event loop.


@router.get("/tasks", response_model=list[TaskOut])
def list_tasks(gateway: TaskGateway = Depends(get_gateway)) -> list[TaskOut]:
    return gateway.list()


@router.post(
    "/tasks",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def create_task(
    background_tasks: BackgroundTasks,
    payload: TaskCreate | None = None,
    gateway: TaskGateway = Depends(get_gateway),
    aggregator: GaugeAggregator = Depends(get_aggregator),
) -> TaskOut:
    # No body at all is just a task without a title.
    payload = payload or TaskCreate()
    task = gateway.create(title=payload.title, priority=payload.priority)
    aggregator.trigger(background_tasks)
    return task


@router.put("/tasks/{task_id}", response_model=TaskOut, responses=_NOT_FOUND)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    background_tasks: BackgroundTasks,
    gateway: TaskGateway = Depends(get_gateway),
    aggregator: GaugeAggregator = Depends(get_aggregator),
) -> TaskOut:
    task = gateway.update(task_id=task_id, completed=payload.completed)
    aggregator.trigger(background_tasks)
    return task


@router.delete("/tasks/{task_id}", response_model=MessageResponse, responses=_NOT_FOUND)
def delete_task(
    task_id: int,
    background_tasks: BackgroundTasks,
    gateway: TaskGateway = Depends(get_gateway),
    aggregator: GaugeAggregator = Depends(get_aggregator),
) -> MessageResponse:
    gateway.delete(task_id=task_id)
    aggregator.trigger(background_tasks)
    return MessageResponse(message="Task deleted successfully")


@router.get("/stats", response_model=TaskStats)
def task_stats(gateway: TaskGateway = Depends(get_gateway)) -> TaskStats:
    total = gateway.count_total()
    completed = gateway.count_completed()
    return TaskStats(total=total, completed=completed, pending=total - completed)
