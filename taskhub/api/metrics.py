from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from taskhub.api.dependencies import get_metrics
from taskhub.observability.metrics import MetricsRegistry


router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
def metrics(registry: MetricsRegistry = Depends(get_metrics)) -> Response:
    return Response(content=registry.render(), media_type=registry.content_type)
