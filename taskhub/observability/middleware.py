from __future__ import annotations

import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import MutableHeaders
from starlette.routing import Match

from taskhub.observability.metrics import MetricsRegistry


logger = structlog.get_logger("access")


def resolve_route_label(scope: dict[str, Any]) -> str:
    """Route template for metric labels, falling back to the raw path."""

    # FastAPI stores the matched APIRoute in the scope during routing.
    route = scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if template:
        return template

    app = scope.get("app")
    for candidate in getattr(app, "routes", None) or []:
        match, _ = candidate.matches(scope)
        if match == Match.FULL:
            return getattr(candidate, "path_format", None) or candidate.path

    return scope.get("path") or ""


class RequestContextMiddleware:
    """Adds request_id context, access logs, and per-route HTTP metrics."""

    def __init__(self, app: Callable[..., Any], metrics: MetricsRegistry) -> None:
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        path = scope.get("path")
        method = scope.get("method")

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=path,
            method=method,
        )

        start = perf_counter()
        status_code: int = 500
        recorded = False

        def record(final_status: int) -> None:
            nonlocal recorded
            if recorded:
                return
            recorded = True
            elapsed_s = perf_counter() - start
            route = path or ""

            # Recording is best-effort: it must never fail the response.
            try:
                route = resolve_route_label(scope)
                self.metrics.observe_http_request(
                    method=method or "",
                    route=route,
                    status_code=final_status,
                    elapsed_s=elapsed_s,
                )
            except Exception:
                logger.warning("metrics_record_failed", exc_info=True)

            logger.info(
                "http_request",
                route=route,
                status_code=final_status,
                elapsed_ms=round(elapsed_s * 1000.0, 2),
            )

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id

            await send(message)

            # Background tasks run after the last body chunk; they are not request latency.
            if message.get("type") == "http.response.body" and not message.get("more_body", False):
                record(status_code)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            # Raised before the body completed.
            record(500)
            structlog.contextvars.clear_contextvars()
