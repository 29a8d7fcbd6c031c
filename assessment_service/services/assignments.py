"""Assignment lookups and status changes.

An assignment links one user to one assessment; the pair is unique, so
assigning twice raises ConflictError. Status moves forward only:

  assigned -> started -> completed

``start_assignment`` is idempotent for an already started assignment and
refuses a completed one. The flow controller moves ``assigned`` to
``started`` itself on the first recorded answer, and to ``completed``
as the last completion step.

Ownership is checked here, not in the routers: ``get_assignment`` with a
``user_id`` raises ForbiddenError when the assignment belongs to
someone else.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from assessment_service.models.assignment import Assignment, AssignmentStatus
from assessment_service.repos.data_store import (
    Collection,
    DataStore,
    DataStoreError,
    DuplicateRecordError,
    RecordNotFoundError,
)
from assessment_service.services.errors import (
    ConflictError,
    DataLoadError,
    ForbiddenError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


def assignment_from_record(record: Mapping[str, Any]) -> Assignment:
    return Assignment(
        id=record["id"],
        assessment_id=record["assessment_id"],
        user_id=record["user_id"],
        status=AssignmentStatus.parse(record.get("status") or "assigned"),
        scope=record.get("scope") or "",
        assigned_at=record.get("assigned_at"),
        due_date=record.get("due_date"),
    )


async def get_assignment(
    store: DataStore, assignment_id: str, *, user_id: str | None = None
) -> Assignment:
    """Fetch one assignment; when user_id is given, it must own it."""
    try:
        record = await store.query_one(Collection.ASSIGNMENTS, {"id": assignment_id})
    except DataStoreError as e:
        raise DataLoadError("failed to load assignment") from e
    if record is None:
        raise NotFoundError("assignment not found")

    assignment = assignment_from_record(record)
    if user_id is not None and assignment.user_id != user_id:
        logger.warning(
            "Access denied: user=%s does not own assignment=%s",
            user_id,
            assignment_id,
        )
        raise ForbiddenError("assignment belongs to another user")
    return assignment


async def list_assignments(store: DataStore, user_id: str) -> list[Assignment]:
    try:
        records = await store.query_ordered(
            Collection.ASSIGNMENTS, {"user_id": user_id}, order_by=("-assigned_at",)
        )
    except DataStoreError as e:
        raise DataLoadError("failed to load assignments") from e
    return [assignment_from_record(r) for r in records]


async def assign_assessment(
    store: DataStore,
    *,
    assessment_id: str,
    user_id: str,
    scope: str = "",
    due_date: int | None = None,
) -> Assignment:
    """Grant a user access to an active assessment. One per (user, assessment)."""
    assessment = await store.query_one(Collection.ASSESSMENTS, {"id": assessment_id})
    if assessment is None or not assessment.get("is_active", True):
        raise NotFoundError("assessment not found or inactive")

    try:
        record = await store.insert(
            Collection.ASSIGNMENTS,
            {
                "assessment_id": assessment_id,
                "user_id": user_id,
                "status": AssignmentStatus.ASSIGNED.value,
                "scope": scope,
                "assigned_at": int(time.time()),
                "due_date": due_date,
            },
        )
    except DuplicateRecordError:
        logger.warning(
            "Rejected duplicate assignment user=%s assessment=%s",
            user_id,
            assessment_id,
        )
        raise ConflictError("assessment already assigned to this user") from None

    logger.info(
        "Assigned assessment=%s to user=%s",
        assessment_id,
        user_id,
        extra={"assignment_id": record["id"]},
    )
    return assignment_from_record(record)


async def update_assignment_status(
    store: DataStore, assignment_id: str, status: AssignmentStatus
) -> None:
    try:
        await store.update(
            Collection.ASSIGNMENTS, assignment_id, {"status": status.value}
        )
    except RecordNotFoundError:
        raise NotFoundError("assignment not found") from None
    logger.info(
        "Assignment status -> %s", status.value, extra={"assignment_id": assignment_id}
    )


async def start_assignment(
    store: DataStore, *, assignment_id: str, user_id: str
) -> Assignment:
    """Move an assignment from assigned to started.

    Starting an already-started assignment returns it unchanged; a
    completed one cannot be restarted.
    """
    assignment = await get_assignment(store, assignment_id, user_id=user_id)
    if assignment.status is AssignmentStatus.STARTED:
        return assignment
    if assignment.status is AssignmentStatus.COMPLETED:
        raise ConflictError("assignment already completed")

    await update_assignment_status(store, assignment_id, AssignmentStatus.STARTED)
    return await get_assignment(store, assignment_id)
