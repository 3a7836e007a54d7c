from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class TaskCreate(BaseModel):
    # Optional here so a missing title maps to the 400 "Title is required" contract.
    title: str | None = None
    priority: str | None = None


class TaskUpdate(BaseModel):
    completed: bool


class TaskOut(BaseModel):
    id: int
    title: str
    priority: str
    completed: bool
    created_at: datetime
    updated_at: datetime


class TaskStats(BaseModel):
    total: int
    completed: int
    pending: int


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


class LivenessStatus(BaseModel):
    status: Literal["OK"] = "OK"
    message: str = "Server is running"


class ReadinessStatus(BaseModel):
    status: Literal["healthy", "unhealthy"]
    database: Literal["connected", "disconnected"]
    timestamp: datetime
    error: str | None = None
