"""Admin endpoints for building assessments.

    POST /v1/assessments                                   create an assessment
    POST /v1/assessments/{id}/topics                       add a topic
    POST /v1/assessments/{id}/topics/{topic_id}/questions  add a question

Questions are validated before anything is written: text length, option
count per type, and marks given for every option or for none. A rejected
question returns 422 with the validation message. When ``options`` is
omitted the type's default option set is stored.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from assessment_service.api.dependencies import get_data_store, require_role
from assessment_service.api.errors import to_http_error
from assessment_service.models.assessment import QuestionType
from assessment_service.models.principal import Principal
from assessment_service.repos.data_store import DataStore, DataStoreError
from assessment_service.services import authoring
from assessment_service.services.catalog import load_assessment
from assessment_service.services.errors import FlowError, QuestionValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/assessments", tags=["authoring"])

Admin = Annotated[Principal, Depends(require_role("admin"))]
Store = Annotated[DataStore, Depends(get_data_store)]


class AssessmentIn(BaseModel):
    title: str
    description: str = ""


class AssessmentOut(BaseModel):
    id: str
    title: str
    description: str
    is_active: bool


class TopicIn(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    sequence_number: int | None = None


class TopicOut(BaseModel):
    id: str
    assessment_id: str
    title: str
    description: str
    sequence_number: int | None


class OptionIn(BaseModel):
    text: str
    marks: str | None = None
    is_correct: bool | None = None
    comment: str | None = None


class QuestionIn(BaseModel):
    text: str
    type: QuestionType
    options: list[OptionIn] | None = None
    sequence_number: int | None = None


class QuestionOut(BaseModel):
    id: str
    topic_id: str
    text: str
    type: QuestionType
    sequence_number: int | None


@router.post("", response_model=AssessmentOut, status_code=status.HTTP_201_CREATED)
async def create_assessment(
    body: AssessmentIn, principal: Admin, store: Store
) -> AssessmentOut:
    try:
        record = await authoring.add_assessment(
            store,
            title=body.title,
            description=body.description,
            created_by=principal.user_id,
        )
    except (QuestionValidationError, DataStoreError) as e:
        raise to_http_error(e) from None
    return AssessmentOut(
        id=record["id"],
        title=record["title"],
        description=record["description"],
        is_active=record["is_active"],
    )


@router.post(
    "/{assessment_id}/topics",
    response_model=TopicOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_topic(
    assessment_id: str, body: TopicIn, principal: Admin, store: Store
) -> TopicOut:
    try:
        await load_assessment(store, assessment_id)
        record = await authoring.add_topic(
            store,
            assessment_id=assessment_id,
            title=body.title.strip(),
            description=body.description,
            sequence_number=body.sequence_number,
        )
    except (FlowError, DataStoreError) as e:
        raise to_http_error(e) from None
    logger.info(
        "Admin %s added topic=%s to assessment=%s",
        principal.user_id,
        record["id"],
        assessment_id,
    )
    return TopicOut(
        id=record["id"],
        assessment_id=assessment_id,
        title=record["title"],
        description=record["description"],
        sequence_number=record["sequence_number"],
    )


@router.post(
    "/{assessment_id}/topics/{topic_id}/questions",
    response_model=QuestionOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_question(
    assessment_id: str, topic_id: str, body: QuestionIn, _: Admin, store: Store
) -> QuestionOut:
    drafts = (
        [
            authoring.OptionDraft(
                text=o.text, marks=o.marks, is_correct=o.is_correct, comment=o.comment
            )
            for o in body.options
        ]
        if body.options is not None
        else None
    )
    try:
        await authoring.get_topic(
            store, assessment_id=assessment_id, topic_id=topic_id
        )
        record = await authoring.add_question(
            store,
            topic_id=topic_id,
            text=body.text,
            qtype=body.type,
            options=drafts,
            sequence_number=body.sequence_number,
        )
    except QuestionValidationError as e:
        logger.warning("Rejected question for topic=%s: %s", topic_id, e)
        raise to_http_error(e) from None
    except (FlowError, DataStoreError) as e:
        raise to_http_error(e) from None
    return QuestionOut(
        id=record["id"],
        topic_id=topic_id,
        text=record["question"],
        type=body.type,
        sequence_number=record["sequence_number"],
    )
