import time

from httpx import ASGITransport, AsyncClient

from conftest import sample
from taskhub.observability.middleware import resolve_route_label


def _requests(app, method: str, route: str, status_code: int) -> float | None:
    return sample(
        app.state.metrics,
        "http_requests_total",
        {"method": method, "route": route, "status_code": str(status_code)},
    )


async def test_responses_include_x_request_id(api_client) -> None:
    resp = await api_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.headers.get("x-request-id")


async def test_requests_are_labeled_by_route_template(app, api_client) -> None:
    await api_client.put("/api/tasks/41", json={"completed": True})
    await api_client.put("/api/tasks/42", json={"completed": True})

    assert _requests(app, "PUT", "/api/tasks/{task_id}", 404) == 2
    assert _requests(app, "PUT", "/api/tasks/41", 404) is None
    labels = {"method": "PUT", "route": "/api/tasks/{task_id}", "status_code": "404"}
    assert sample(app.state.metrics, "http_request_duration_seconds_count", labels) == 2


async def test_unmatched_requests_fall_back_to_raw_path(app, api_client) -> None:
    resp = await api_client.get("/does/not/exist")
    assert resp.status_code == 404
    assert _requests(app, "GET", "/does/not/exist", 404) == 1


async def test_every_request_is_counted_including_scrapes(app, api_client) -> None:
    await api_client.post("/api/tasks", json={"title": "count me"})
    await api_client.get("/metrics")

    assert _requests(app, "POST", "/api/tasks", 201) == 1
    assert _requests(app, "GET", "/metrics", 200) == 1


async def test_recording_failures_never_fail_the_response(app, api_client, monkeypatch) -> None:
    def _boom(**_kwargs) -> None:
        raise RuntimeError("registry exploded")

    monkeypatch.setattr(app.state.metrics, "observe_http_request", _boom)

    resp = await api_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"


async def test_latency_stops_at_the_last_body_chunk(app, api_client, monkeypatch) -> None:
    aggregator = app.state.aggregator
    refresh = aggregator.refresh

    def slow_refresh() -> bool:
        time.sleep(0.6)
        return refresh()

    monkeypatch.setattr(aggregator, "refresh", slow_refresh)

    resp = await api_client.post("/api/tasks", json={"title": "slow gauges"})
    assert resp.status_code == 201

    labels = {"method": "POST", "route": "/api/tasks", "status_code": "201"}
    assert sample(app.state.metrics, "http_request_duration_seconds_count", labels) == 1
    assert sample(app.state.metrics, "http_request_duration_seconds_sum", labels) < 0.5
    # The background refresh still ran once the response was out.
    assert sample(app.state.metrics, "tasks_total") == 1


async def test_unhandled_handler_errors_are_recorded_as_500(app, monkeypatch) -> None:
    def _explode():
        raise RuntimeError("storage driver bug")

    monkeypatch.setattr(app.state.gateway, "list", _explode)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/tasks")

    assert resp.status_code == 500
    assert _requests(app, "GET", "/api/tasks", 500) == 1
    assert _requests(app, "GET", "/api/tasks", 200) is None


def test_resolve_route_label_without_router_uses_path() -> None:
    assert resolve_route_label({"type": "http", "path": "/raw/7"}) == "/raw/7"
