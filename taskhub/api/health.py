from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from taskhub.api.dependencies import get_gateway
from taskhub.db.gateway import TaskGateway
from taskhub.models.schemas import LivenessStatus, ReadinessStatus


router = APIRouter(tags=["health"])
logger = structlog.get_logger("health")


@router.get("/api/health", response_model=LivenessStatus)
async def liveness() -> LivenessStatus:
    return LivenessStatus()


@router.get("/health", response_model=ReadinessStatus, responses={503: {"model": ReadinessStatus}})
async def readiness(gateway: TaskGateway = Depends(get_gateway)) -> JSONResponse:
    """Round-trips to storage on every call; the error text is surfaced for operators."""

    try:
        await run_in_threadpool(gateway.ping)
    except Exception as exc:
        # Any failure at all means "not ready".
        logger.warning("readiness_failed", error=str(exc))
        body = ReadinessStatus(
            status="unhealthy",
            database="disconnected",
            error=str(exc),
            timestamp=datetime.now(timezone.utc),
        )
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))

    body = ReadinessStatus(status="healthy", database="connected", timestamp=datetime.now(timezone.utc))
    return JSONResponse(status_code=200, content=body.model_dump(mode="json", exclude={"error"}))
