from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client.parser import text_string_to_metric_families
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from taskhub.config import Settings, get_settings
from taskhub.db.gateway import TaskGateway
from taskhub.db.session import create_tables, get_engine
from taskhub.main import create_app
from taskhub.observability.metrics import MetricsRegistry


def sample(metrics: MetricsRegistry, name: str, labels: dict[str, str] | None = None) -> float | None:
    """Current value of one sample, or None if it was never exported."""

    return metrics.registry.get_sample_value(name, labels or {})


def parse_samples(text: str) -> dict[tuple[str, frozenset], float]:
    """Flatten exposition text into {(sample_name, labels): value}; raises if unparseable."""

    samples: dict[tuple[str, frozenset], float] = {}
    for family in text_string_to_metric_families(text):
        for item in family.samples:
            samples[(item.name, frozenset(item.labels.items()))] = item.value
    return samples


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'tasks.db'}")
    monkeypatch.setenv("AGGREGATOR_INTERVAL_SECONDS", "0.05")
    monkeypatch.setenv("METRICS_PROCESS_PREFIX", "test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def engine(settings: Settings) -> Iterator[Engine]:
    engine = get_engine(settings)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def broken_engine(tmp_path) -> Iterator[Engine]:
    # The parent directory does not exist, so every connect attempt fails.
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'tasks.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def metrics() -> Iterator[MetricsRegistry]:
    registry = MetricsRegistry(process_prefix="test")
    yield registry
    registry.close()


@pytest.fixture
def gateway(engine: Engine, metrics: MetricsRegistry) -> TaskGateway:
    return TaskGateway(engine=engine, metrics=metrics)


@pytest.fixture
def app(settings: Settings, engine: Engine) -> FastAPI:
    return create_app(settings=settings, engine=engine)


@pytest.fixture
def broken_app(settings: Settings, broken_engine: Engine) -> FastAPI:
    return create_app(settings=settings, engine=broken_engine)


async def _client_for(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async for client in _client_for(app):
        yield client


@pytest.fixture
async def broken_client(broken_app: FastAPI) -> AsyncIterator[AsyncClient]:
    async for client in _client_for(broken_app):
        yield client
