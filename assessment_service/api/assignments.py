"""Assignment endpoints: list mine, assign (admin), start."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from assessment_service.api.dependencies import (
    get_data_store,
    require_role,
    require_user,
)
from assessment_service.api.errors import to_http_error
from assessment_service.models.assignment import Assignment
from assessment_service.models.principal import Principal
from assessment_service.repos.data_store import DataStore, DataStoreError
from assessment_service.services import assignments as assignment_service
from assessment_service.services.errors import FlowError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/assignments", tags=["assignments"])


class AssignIn(BaseModel):
    assessment_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    scope: str = ""
    due_date: int | None = None


class AssignmentOut(BaseModel):
    id: str
    assessment_id: str
    user_id: str
    status: str
    scope: str
    assigned_at: int | None
    due_date: int | None

    @classmethod
    def from_domain(cls, assignment: Assignment) -> AssignmentOut:
        return cls(
            id=assignment.id,
            assessment_id=assignment.assessment_id,
            user_id=assignment.user_id,
            status=assignment.status.value,
            scope=assignment.scope,
            assigned_at=assignment.assigned_at,
            due_date=assignment.due_date,
        )


@router.get("", response_model=list[AssignmentOut])
async def list_my_assignments(
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[DataStore, Depends(get_data_store)],
) -> list[AssignmentOut]:
    try:
        found = await assignment_service.list_assignments(store, principal.user_id)
    except FlowError as e:
        raise to_http_error(e) from None
    return [AssignmentOut.from_domain(a) for a in found]


@router.post(
    "", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED
)
async def assign(
    body: AssignIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    store: Annotated[DataStore, Depends(get_data_store)],
) -> AssignmentOut:
    try:
        assignment = await assignment_service.assign_assessment(
            store,
            assessment_id=body.assessment_id,
            user_id=body.user_id,
            scope=body.scope,
            due_date=body.due_date,
        )
    except (FlowError, DataStoreError) as e:
        raise to_http_error(e) from None
    logger.info(
        "Admin %s assigned assessment=%s to user=%s",
        principal.user_id,
        body.assessment_id,
        body.user_id,
    )
    return AssignmentOut.from_domain(assignment)


@router.post("/{assignment_id}/start", response_model=AssignmentOut)
async def start(
    assignment_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[DataStore, Depends(get_data_store)],
) -> AssignmentOut:
    try:
        assignment = await assignment_service.start_assignment(
            store, assignment_id=assignment_id, user_id=principal.user_id
        )
    except (FlowError, DataStoreError) as e:
        raise to_http_error(e) from None
    return AssignmentOut.from_domain(assignment)
