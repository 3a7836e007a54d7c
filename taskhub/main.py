from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from taskhub.api.health import router as health_router
from taskhub.api.metrics import router as metrics_router
from taskhub.api.tasks import router as tasks_router
from taskhub.config import Settings, get_settings
from taskhub.db.gateway import TaskGateway
from taskhub.db.session import create_tables, get_engine
from taskhub.errors import TaskServiceError
from taskhub.observability.logging import configure_logging
from taskhub.observability.metrics import MetricsRegistry
from taskhub.observability.middleware import RequestContextMiddleware
from taskhub.services.aggregator import GaugeAggregator


logger = structlog.get_logger("taskhub")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    if settings.db_auto_create:
        try:
            await run_in_threadpool(create_tables, app.state.engine)
        except SQLAlchemyError:
            # Stay up: liveness keeps answering and readiness reports the outage.
            logger.exception("schema_bootstrap_failed")

    await app.state.aggregator.start()
    try:
        yield
    finally:
        await app.state.aggregator.stop()
        app.state.metrics.close()
        app.state.engine.dispose()
        logger.info("shutdown_complete")


async def _task_service_error_handler(request: Request, exc: TaskServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        # Full detail stays in the logs; clients get the generic message.
        logger.error("request_failed", error_type=type(exc).__name__, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


async def _request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    engine = engine or get_engine(settings)
    metrics = MetricsRegistry(process_prefix=settings.metrics_process_prefix)
    gateway = TaskGateway(engine=engine, metrics=metrics)
    aggregator = GaugeAggregator(gateway=gateway, metrics=metrics, interval_seconds=settings.aggregator_interval_seconds)

    app = FastAPI(title="Task Hub", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.metrics = metrics
    app.state.gateway = gateway
    app.state.aggregator = aggregator

    app.include_router(health_router)
    app.include_router(tasks_router)
    app.include_router(metrics_router)

    app.add_exception_handler(TaskServiceError, _task_service_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it wraps everything else, CORS preflights included.
    app.add_middleware(RequestContextMiddleware, metrics=metrics)

    return app
