from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from assessment_service.api import flow as flow_api
from assessment_service.api.dependencies import get_data_store, memory_store
from assessment_service.core.config import SETTINGS
from assessment_service.main import app
from assessment_service.repos.data_store import Collection
from tests.conftest import (
    FlakyStore,
    Seeded,
    auth,
    mint_token,
    seed_assessment,
)


def _seed(layout: list[int], **kwargs) -> Seeded:
    return asyncio.run(seed_assessment(memory_store, layout, **kwargs))


def _answer(client: TestClient, token: str, seeded: Seeded, qid: str, index: int = 0):
    return client.put(
        f"/v1/assignments/{seeded.assignment_id}/answers/{qid}",
        json={"selected_option_id": seeded.option_ids[qid][index]},
        headers=auth(token),
    )


def _answer_all(client: TestClient, token: str, seeded: Seeded) -> None:
    for qids in seeded.question_ids:
        for qid in qids:
            assert _answer(client, token, seeded, qid).status_code == 200


def test_get_flow_overview(client: TestClient, token: str) -> None:
    seeded = _seed([2, 1])
    resp = client.get(
        f"/v1/assignments/{seeded.assignment_id}/flow", headers=auth(token)
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["state"] == {
        "kind": "topics_overview",
        "topic_index": None,
        "question_index": None,
    }
    assert body["progress"] == {"completed": 0, "total": 3, "percentage": 0.0}
    assert body["submission_id"] is None
    assert [t["id"] for t in body["topics"]] == seeded.topic_ids
    first_question = body["topics"][0]["questions"][0]
    assert first_question["answer"] is None
    # marks stay server-side
    assert set(first_question["options"][0]) == {"id", "text"}


def test_get_flow_with_topic_index(client: TestClient, token: str) -> None:
    seeded = _seed([2, 1])
    resp = client.get(
        f"/v1/assignments/{seeded.assignment_id}/flow?topic_index=1",
        headers=auth(token),
    )
    assert resp.status_code == 200
    assert resp.json()["state"]["kind"] == "answering"
    assert resp.json()["state"]["topic_index"] == 1

    resp = client.get(
        f"/v1/assignments/{seeded.assignment_id}/flow?topic_index=9",
        headers=auth(token),
    )
    assert resp.status_code == 422


def test_record_answer_updates_progress(client: TestClient, token: str) -> None:
    seeded = _seed([2, 1])
    q1 = seeded.question_ids[0][0]

    resp = _answer(client, token, seeded, q1)

    assert resp.status_code == 200
    body = resp.json()
    assert body["synced"] is True
    assert body["warning"] is None
    assert body["topic"] == {
        "answered": 1,
        "total": 2,
        "percentage": 50.0,
        "status": "in_progress",
    }
    assert body["progress"]["completed"] == 1

    flow = client.get(
        f"/v1/assignments/{seeded.assignment_id}/flow", headers=auth(token)
    ).json()
    assert flow["submission_id"] is not None
    assert flow["assignment_status"] == "started"
    restored = flow["topics"][0]["questions"][0]["answer"]
    assert restored["selected_option_id"] == seeded.option_ids[q1][0]


def test_record_answer_rejections(client: TestClient, token: str) -> None:
    seeded = _seed([1])
    q1 = seeded.question_ids[0][0]
    base = f"/v1/assignments/{seeded.assignment_id}/answers"

    resp = client.put(f"{base}/{q1}", json={"text_value": "  "}, headers=auth(token))
    assert resp.status_code == 422

    resp = client.put(f"{base}/unknown", json={"text_value": "x"}, headers=auth(token))
    assert resp.status_code == 422


def test_complete_rejected_when_incomplete(client: TestClient, token: str) -> None:
    seeded = _seed([2, 1])
    _answer(client, token, seeded, seeded.question_ids[0][0])

    resp = client.post(
        f"/v1/assignments/{seeded.assignment_id}/complete", headers=auth(token)
    )

    assert resp.status_code == 409
    assert resp.json()["detail"]["incomplete_topic_ids"] == seeded.topic_ids


def test_complete_flow_end_to_end(client: TestClient, token: str) -> None:
    seeded = _seed([2, 1])
    _answer_all(client, token, seeded)

    resp = client.post(
        f"/v1/assignments/{seeded.assignment_id}/complete", headers=auth(token)
    )
    assert resp.status_code == 200
    result = resp.json()
    assert (result["score"], result["max_score"]) == (3, 3)

    again = client.post(
        f"/v1/assignments/{seeded.assignment_id}/complete", headers=auth(token)
    )
    assert again.status_code == 200
    assert again.json() == result

    flow = client.get(
        f"/v1/assignments/{seeded.assignment_id}/flow", headers=auth(token)
    ).json()
    assert flow["state"]["kind"] == "completed"
    assert flow["assignment_status"] == "completed"
    assert flow["score"] == 3

    late = _answer(client, token, seeded, seeded.question_ids[0][0], 1)
    assert late.status_code == 422


def test_flow_requires_owner(client: TestClient) -> None:
    seeded = _seed([1], user_id="owner")
    resp = client.get(
        f"/v1/assignments/{seeded.assignment_id}/flow",
        headers=auth(mint_token("someone-else")),
    )
    assert resp.status_code == 403


def test_flow_missing_assignment(client: TestClient, token: str) -> None:
    resp = client.get("/v1/assignments/nope/flow", headers=auth(token))
    assert resp.status_code == 404


def test_flow_requires_token(client: TestClient) -> None:
    seeded = _seed([1])
    resp = client.get(f"/v1/assignments/{seeded.assignment_id}/flow")
    assert resp.status_code == 401


# ---- failed answer writes ----


def _flaky_app(monkeypatch: pytest.MonkeyPatch, store: FlakyStore) -> None:
    monkeypatch.setattr(
        flow_api, "SETTINGS", replace(SETTINGS, sync_backoff_seconds=0)
    )
    monkeypatch.setitem(app.dependency_overrides, get_data_store, lambda: store)


def test_answer_write_retried_within_request(
    client: TestClient, token: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = FlakyStore()
    seeded = asyncio.run(seed_assessment(store, [2]))
    _flaky_app(monkeypatch, store)
    q1 = seeded.question_ids[0][0]
    store.failing_upserts[Collection.SUBMITTED_ANSWERS] = 1

    resp = _answer(client, token, seeded, q1)

    assert resp.status_code == 200
    body = resp.json()
    assert body["synced"] is True
    assert body["warning"] is None
    assert body["unsynced_question_ids"] == []
    saved = asyncio.run(
        store.query_one(Collection.SUBMITTED_ANSWERS, {"question_id": q1})
    )
    assert saved["answer_id"] == seeded.option_ids[q1][0]


def test_answer_reported_unsaved_when_retries_fail(
    client: TestClient, token: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = FlakyStore()
    seeded = asyncio.run(seed_assessment(store, [2]))
    _flaky_app(monkeypatch, store)
    q1 = seeded.question_ids[0][0]
    store.failing_upserts[Collection.SUBMITTED_ANSWERS] = 10

    resp = _answer(client, token, seeded, q1)

    assert resp.status_code == 200
    body = resp.json()
    assert body["synced"] is False
    assert body["unsynced_question_ids"] == [q1]
    assert "not saved" in body["warning"]

    # Nothing was persisted, so a reload does not show the answer.
    store.failing_upserts.clear()
    flow = client.get(
        f"/v1/assignments/{seeded.assignment_id}/flow", headers=auth(token)
    ).json()
    assert flow["progress"]["completed"] == 0
