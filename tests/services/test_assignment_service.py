from __future__ import annotations

import asyncio

import pytest

from assessment_service.models.assignment import AssignmentStatus
from assessment_service.repos.data_store import Collection, InMemoryDataStore
from assessment_service.services.assignments import (
    assign_assessment,
    get_assignment,
    list_assignments,
    start_assignment,
    update_assignment_status,
)
from assessment_service.services.authoring import add_assessment
from assessment_service.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
)


def test_assign_and_list() -> None:
    async def scenario():
        store = InMemoryDataStore()
        a = await add_assessment(store, title="Onboarding")
        assignment = await assign_assessment(
            store, assessment_id=a["id"], user_id="u1", scope="warehouse"
        )
        assert assignment.status is AssignmentStatus.ASSIGNED
        assert assignment.scope == "warehouse"

        mine = await list_assignments(store, "u1")
        assert [x.id for x in mine] == [assignment.id]
        assert await list_assignments(store, "u2") == []

    asyncio.run(scenario())


def test_duplicate_assignment_conflicts() -> None:
    async def scenario():
        store = InMemoryDataStore()
        a = await add_assessment(store, title="Onboarding")
        await assign_assessment(store, assessment_id=a["id"], user_id="u1")
        with pytest.raises(ConflictError):
            await assign_assessment(store, assessment_id=a["id"], user_id="u1")

    asyncio.run(scenario())


def test_assign_inactive_assessment_not_found() -> None:
    async def scenario():
        store = InMemoryDataStore()
        a = await add_assessment(store, title="Old")
        await store.update(Collection.ASSESSMENTS, a["id"], {"is_active": False})
        with pytest.raises(NotFoundError):
            await assign_assessment(store, assessment_id=a["id"], user_id="u1")

    asyncio.run(scenario())


def test_start_is_idempotent_and_owner_only() -> None:
    async def scenario():
        store = InMemoryDataStore()
        a = await add_assessment(store, title="Onboarding")
        created = await assign_assessment(store, assessment_id=a["id"], user_id="u1")

        with pytest.raises(ForbiddenError):
            await start_assignment(store, assignment_id=created.id, user_id="u2")

        started = await start_assignment(store, assignment_id=created.id, user_id="u1")
        assert started.status is AssignmentStatus.STARTED
        again = await start_assignment(store, assignment_id=created.id, user_id="u1")
        assert again.status is AssignmentStatus.STARTED

    asyncio.run(scenario())


def test_completed_assignment_cannot_restart() -> None:
    async def scenario():
        store = InMemoryDataStore()
        a = await add_assessment(store, title="Onboarding")
        created = await assign_assessment(store, assessment_id=a["id"], user_id="u1")
        await update_assignment_status(store, created.id, AssignmentStatus.COMPLETED)
        with pytest.raises(ConflictError):
            await start_assignment(store, assignment_id=created.id, user_id="u1")

    asyncio.run(scenario())


def test_legacy_upper_case_status_is_parsed() -> None:
    async def scenario():
        store = InMemoryDataStore()
        record = await store.insert(
            Collection.ASSIGNMENTS,
            {"assessment_id": "a", "user_id": "u1", "status": "STARTED"},
        )
        assignment = await get_assignment(store, record["id"])
        assert assignment.status is AssignmentStatus.STARTED

    asyncio.run(scenario())


def test_update_status_of_missing_assignment() -> None:
    async def scenario():
        with pytest.raises(NotFoundError):
            await update_assignment_status(
                InMemoryDataStore(), "nope", AssignmentStatus.STARTED
            )

    asyncio.run(scenario())
