"""Tests for Prometheus metrics.

Counters live in the global registry and cannot be reset between tests,
so every assertion is on the DELTA around an action.
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from assessment_service.api.dependencies import memory_store
from tests.conftest import auth, seed_assessment


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before >= 1


def test_endpoint_label_uses_route_template(client: TestClient, token: str) -> None:
    labels = {
        "method": "GET",
        "endpoint": "/v1/assignments/{assignment_id}/flow",
        "status_code": "404",
    }
    before = _get_sample("http_requests_total", labels)
    client.get("/v1/assignments/abc/flow", headers=auth(token))
    client.get("/v1/assignments/def/flow", headers=auth(token))
    assert _get_sample("http_requests_total", labels) - before == 2


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before >= 1


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_flow_counters(client: TestClient, token: str) -> None:
    seeded = asyncio.run(seed_assessment(memory_store, [1]))
    q1 = seeded.question_ids[0][0]
    recorded = {"question_type": "multiple_choice"}
    completed = {"outcome": "completed"}
    incomplete = {"outcome": "incomplete"}
    before = (
        _get_sample("assessment_answers_recorded_total", recorded),
        _get_sample("assessment_completions_total", completed),
        _get_sample("assessment_completions_total", incomplete),
    )

    client.post(f"/v1/assignments/{seeded.assignment_id}/complete", headers=auth(token))
    client.put(
        f"/v1/assignments/{seeded.assignment_id}/answers/{q1}",
        json={"selected_option_id": seeded.option_ids[q1][0]},
        headers=auth(token),
    )
    client.post(f"/v1/assignments/{seeded.assignment_id}/complete", headers=auth(token))

    after = (
        _get_sample("assessment_answers_recorded_total", recorded),
        _get_sample("assessment_completions_total", completed),
        _get_sample("assessment_completions_total", incomplete),
    )
    assert [a - b for a, b in zip(after, before, strict=True)] == [1, 1, 1]


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "assessment_completions_total" in resp.text
