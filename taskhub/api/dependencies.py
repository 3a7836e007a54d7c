from __future__ import annotations

from fastapi import Request

from taskhub.db.gateway import TaskGateway
from taskhub.observability.metrics import MetricsRegistry
from taskhub.services.aggregator import GaugeAggregator


def get_gateway(request: Request) -> TaskGateway:
    return request.app.state.gateway


def get_metrics(request: Request) -> MetricsRegistry:
    return request.app.state.metrics


def get_aggregator(request: Request) -> GaugeAggregator:
    return request.app.state.aggregator
