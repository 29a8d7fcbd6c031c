from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from assessment_service.api.dependencies import memory_store
from assessment_service.services.authoring import add_assessment
from tests.conftest import auth, mint_token


def _assessment_id() -> str:
    record = asyncio.run(add_assessment(memory_store, title="Forklift basics"))
    return record["id"]


def _assign(client: TestClient, token: str | None, assessment_id: str, user_id: str):
    return client.post(
        "/v1/assignments",
        json={"assessment_id": assessment_id, "user_id": user_id},
        headers=auth(token),
    )


@pytest.mark.parametrize(
    ("roles", "expected"),
    [(["admin"], 201), (["user"], 403), (None, 401)],
)
def test_assign_requires_admin(roles, expected, client: TestClient) -> None:
    token = mint_token("someone", roles=roles) if roles is not None else None
    resp = _assign(client, token, _assessment_id(), "test-user")
    assert resp.status_code == expected


def test_assign_then_list_and_start(
    client: TestClient, admin_token: str, token: str
) -> None:
    created = _assign(client, admin_token, _assessment_id(), "test-user")
    assert created.status_code == 201
    assignment = created.json()
    assert assignment["status"] == "assigned"

    listed = client.get("/v1/assignments", headers=auth(token))
    assert listed.status_code == 200
    assert [a["id"] for a in listed.json()] == [assignment["id"]]

    started = client.post(
        f"/v1/assignments/{assignment['id']}/start", headers=auth(token)
    )
    assert started.status_code == 200
    assert started.json()["status"] == "started"


def test_duplicate_assignment_conflicts(client: TestClient, admin_token: str) -> None:
    assessment_id = _assessment_id()
    assert _assign(client, admin_token, assessment_id, "u1").status_code == 201
    assert _assign(client, admin_token, assessment_id, "u1").status_code == 409


def test_assign_unknown_assessment(client: TestClient, admin_token: str) -> None:
    assert _assign(client, admin_token, "missing", "u1").status_code == 404


def test_start_someone_elses_assignment(client: TestClient, admin_token: str) -> None:
    assignment = _assign(client, admin_token, _assessment_id(), "owner").json()
    resp = client.post(
        f"/v1/assignments/{assignment['id']}/start",
        headers=auth(mint_token("intruder")),
    )
    assert resp.status_code == 403


def test_list_only_returns_own_assignments(
    client: TestClient, admin_token: str
) -> None:
    _assign(client, admin_token, _assessment_id(), "alice")
    resp = client.get("/v1/assignments", headers=auth(mint_token("bob")))
    assert resp.status_code == 200
    assert resp.json() == []
