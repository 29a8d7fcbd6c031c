from __future__ import annotations

from fastapi.testclient import TestClient

from assessment_service.api.dependencies import get_data_store
from assessment_service.main import app
from assessment_service.repos.data_store import DataStoreError, InMemoryDataStore


class _DownStore(InMemoryDataStore):
    async def count_where(self, collection, filters):
        raise DataStoreError("connection refused")


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # No DATABASE_URL in tests: the in-memory store backs the service.
    assert data["data_store_mode"] == "memory"
    assert data["checks"]["data_store"] == "ok"


def test_health_degraded_when_store_unreachable(client: TestClient) -> None:
    app.dependency_overrides[get_data_store] = _DownStore
    try:
        resp = client.get("/health")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"]["data_store"] == "degraded"
