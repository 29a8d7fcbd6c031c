from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from assessment_service.api.dependencies import memory_store
from assessment_service.main import app
from assessment_service.models.assessment import QuestionType
from assessment_service.repos.data_store import (
    Collection,
    DataStore,
    DataStoreError,
    InMemoryDataStore,
)
from assessment_service.services import token_service
from assessment_service.services.authoring import (
    OptionDraft,
    add_assessment,
    add_question,
    add_topic,
)

# Ensure repo root is on sys.path so `import assessment_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_memory_store() -> None:
    """Clear the shared in-memory data store between tests."""
    memory_store.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid HS256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


@dataclass
class Seeded:
    assessment_id: str
    assignment_id: str
    topic_ids: list[str] = field(default_factory=list)
    # question_ids[i] lists topic i's questions in presentation order
    question_ids: list[list[str]] = field(default_factory=list)
    # option ids per question id, in insertion order
    option_ids: dict[str, list[str]] = field(default_factory=dict)


MARKS_1_TO_5 = [OptionDraft(f"Level {n}", marks=str(n)) for n in range(1, 6)]


async def seed_assessment(
    store: DataStore,
    layout: list[int],
    *,
    user_id: str = "test-user",
    qtype: QuestionType = QuestionType.MULTIPLE_CHOICE,
    options: list[OptionDraft] | None = None,
) -> Seeded:
    """Create an assessment with ``layout[i]`` questions in topic ``i``.

    Also assigns it to ``user_id``.
    """
    assessment = await add_assessment(store, title="Safety basics")
    seeded = Seeded(assessment_id=assessment["id"], assignment_id="")
    for t, count in enumerate(layout):
        topic = await add_topic(
            store,
            assessment_id=assessment["id"],
            title=f"Topic {t + 1}",
            sequence_number=t + 1,
        )
        seeded.topic_ids.append(topic["id"])
        ids = []
        for q in range(count):
            question = await add_question(
                store,
                topic_id=topic["id"],
                text=f"Question {t + 1}.{q + 1}?",
                qtype=qtype,
                options=options,
                sequence_number=q + 1,
            )
            ids.append(question["id"])
            option_records = await store.query_ordered(
                Collection.ANSWERS, {"question_id": question["id"]}
            )
            seeded.option_ids[question["id"]] = [o["id"] for o in option_records]
        seeded.question_ids.append(ids)

    assignment = await store.insert(
        Collection.ASSIGNMENTS,
        {
            "assessment_id": assessment["id"],
            "user_id": user_id,
            "status": "assigned",
            "scope": "",
            "assigned_at": 1_700_000_000,
            "due_date": None,
        },
    )
    seeded.assignment_id = assignment["id"]
    return seeded


class FlakyStore(InMemoryDataStore):
    """Fails the next N writes to selected collections."""

    def __init__(self) -> None:
        super().__init__()
        self.failing_upserts: dict[str, int] = {}
        self.failing_updates: dict[str, int] = {}
        self.failing_queries: set[str] = set()

    @staticmethod
    def _take(counter: dict[str, int], collection: str) -> bool:
        left = counter.get(str(collection), 0)
        if left > 0:
            counter[str(collection)] = left - 1
            return True
        return False

    async def upsert(self, collection, record, conflict_keys):
        if self._take(self.failing_upserts, collection):
            raise DataStoreError(f"{collection}: upsert failed")
        return await super().upsert(collection, record, conflict_keys)

    async def update(self, collection, record_id, patch):
        if self._take(self.failing_updates, collection):
            raise DataStoreError(f"{collection}: update failed")
        return await super().update(collection, record_id, patch)

    async def query_ordered(self, collection, filters, order_by=()):
        if str(collection) in self.failing_queries:
            raise DataStoreError(f"{collection}: query failed")
        return await super().query_ordered(collection, filters, order_by)
