"""Demo: take an assessment end to end using FastAPI TestClient.

Runs against the in-memory data store (leave DATABASE_URL unset).

Run with:
    python scripts/demo_assessment_flow.py
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from assessment_service.api.dependencies import memory_store
from assessment_service.main import app
from assessment_service.models.assessment import QuestionType
from assessment_service.repos.data_store import Collection
from assessment_service.services import token_service
from assessment_service.services.authoring import (
    OptionDraft,
    add_assessment,
    add_question,
    add_topic,
)

LEARNER = "demo-learner"


async def _seed() -> str:
    assessment = await add_assessment(memory_store, title="Warehouse safety")
    ppe = await add_topic(
        memory_store, assessment_id=assessment["id"], title="PPE", sequence_number=1
    )
    await add_question(
        memory_store,
        topic_id=ppe["id"],
        text="Are safety boots required on the floor?",
        qtype=QuestionType.YES_NO,
        sequence_number=1,
    )
    await add_question(
        memory_store,
        topic_id=ppe["id"],
        text="How confident are you fitting a harness?",
        qtype=QuestionType.MULTIPLE_CHOICE,
        options=[OptionDraft(f"Level {n}", marks=str(n)) for n in range(1, 6)],
        sequence_number=2,
    )
    fire = await add_topic(
        memory_store, assessment_id=assessment["id"], title="Fire", sequence_number=2
    )
    await add_question(
        memory_store,
        topic_id=fire["id"],
        text="Describe the evacuation route from bay 3.",
        qtype=QuestionType.FREE_TEXT,
    )
    assignment = await memory_store.insert(
        Collection.ASSIGNMENTS,
        {
            "assessment_id": assessment["id"],
            "user_id": LEARNER,
            "status": "assigned",
            "scope": "",
            "assigned_at": None,
            "due_date": None,
        },
    )
    return assignment["id"]


def main() -> None:
    client = TestClient(app)
    assignment_id = asyncio.run(_seed())
    headers = {
        "Authorization": f"Bearer {token_service.create_access_token(sub=LEARNER)}"
    }
    base = f"/v1/assignments/{assignment_id}"

    # Step 1: open the flow
    flow = client.get(f"{base}/flow", headers=headers).json()
    print(f"1. GET  flow        -> {flow['progress']}")

    # Step 2: answer everything but the last question
    questions = [q for t in flow["topics"] for q in t["questions"]]
    for q in questions[:-1]:
        option = q["options"][-1]
        r = client.put(
            f"{base}/answers/{q['id']}",
            json={"selected_option_id": option["id"]},
            headers=headers,
        )
        print(f"2. PUT  answer      -> {r.status_code}  {option['text']!r}")

    # Step 3: completion is refused while a topic is unfinished
    r = client.post(f"{base}/complete", headers=headers)
    print(f"3. POST complete    -> {r.status_code}  {r.json()['detail']['message']}")

    # Step 4: answer the free-text question, then complete
    r = client.put(
        f"{base}/answers/{questions[-1]['id']}",
        json={"text_value": "Out the east door, assemble at the car park."},
        headers=headers,
    )
    print(f"4. PUT  free text   -> {r.status_code}  {r.json()['progress']}")
    r = client.post(f"{base}/complete", headers=headers)
    print(f"5. POST complete    -> {r.status_code}  {r.json()}")


if __name__ == "__main__":
    main()
