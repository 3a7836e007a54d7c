"""Observability helpers: request IDs + structlog contextvars, and the
Prometheus registry scraped at /metrics.
"""
