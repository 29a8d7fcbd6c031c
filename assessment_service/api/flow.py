"""Assessment-taking endpoints.

Each request opens a fresh AssessmentFlowController for the caller's
assignment, restoring recorded answers from the data store, and closes
it before responding. Answers whose write fails are retried with backoff
before the response goes out; whatever is still unsynced is listed in
the response and is not kept, so the client has to resubmit it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from assessment_service.api.dependencies import get_data_store, require_user
from assessment_service.api.errors import to_http_error
from assessment_service.core.config import SETTINGS
from assessment_service.models.principal import Principal
from assessment_service.models.submission import AnswerSelection
from assessment_service.repos.data_store import DataStore
from assessment_service.services.errors import FlowError
from assessment_service.services.flow import (
    Answering,
    AssessmentFlowController,
    Completed,
    FlowSession,
    FlowState,
)
from assessment_service.services.progress import OverallProgress, TopicProgress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/assignments", tags=["flow"])


class StateOut(BaseModel):
    kind: str
    topic_index: int | None = None
    question_index: int | None = None

    @classmethod
    def from_state(cls, state: FlowState) -> StateOut:
        match state:
            case Answering(topic_index=t, question_index=q):
                return cls(kind="answering", topic_index=t, question_index=q)
            case Completed():
                return cls(kind="completed")
            case _:
                return cls(kind="topics_overview")


class ProgressOut(BaseModel):
    completed: int
    total: int
    percentage: float

    @classmethod
    def from_overall(cls, progress: OverallProgress) -> ProgressOut:
        return cls(
            completed=progress.completed,
            total=progress.total,
            percentage=progress.percentage,
        )


class TopicProgressOut(BaseModel):
    answered: int
    total: int
    percentage: float
    status: str

    @classmethod
    def from_topic(cls, progress: TopicProgress) -> TopicProgressOut:
        return cls(
            answered=progress.answered,
            total=progress.total,
            percentage=progress.percentage,
            status=progress.status.value,
        )


class OptionOut(BaseModel):
    id: str
    text: str


class AnswerIn(BaseModel):
    selected_option_id: str | None = None
    text_value: str | None = None


class QuestionOut(BaseModel):
    id: str
    text: str
    type: str
    options: list[OptionOut]
    answer: AnswerIn | None = None


class TopicOut(BaseModel):
    id: str
    title: str
    description: str
    progress: TopicProgressOut
    questions: list[QuestionOut]


class FlowOut(BaseModel):
    assignment_id: str
    assessment_id: str
    title: str
    assignment_status: str
    submission_id: str | None
    state: StateOut
    progress: ProgressOut
    all_topics_completed: bool
    score: float | None = None
    max_score: float | None = None
    topics: list[TopicOut]


class AnswerRecordedOut(BaseModel):
    question_id: str
    synced: bool
    warning: str | None = None
    unsynced_question_ids: list[str] = []
    topic: TopicProgressOut
    progress: ProgressOut


class CompletionOut(BaseModel):
    submission_id: str
    score: float
    max_score: float


def _flow_out(controller: AssessmentFlowController) -> FlowOut:
    topics = []
    for index, topic in enumerate(controller.topics):
        questions = []
        for question in topic.questions:
            recorded = controller.recorded_answer(question.id)
            questions.append(
                QuestionOut(
                    id=question.id,
                    text=question.text,
                    type=question.type.value,
                    options=[OptionOut(id=o.id, text=o.text) for o in question.options],
                    answer=AnswerIn(
                        selected_option_id=recorded.selected_option_id,
                        text_value=recorded.text_value,
                    )
                    if recorded is not None
                    else None,
                )
            )
        topics.append(
            TopicOut(
                id=topic.id,
                title=topic.title,
                description=topic.description,
                progress=TopicProgressOut.from_topic(controller.topic_progress(index)),
                questions=questions,
            )
        )

    result = controller.result
    submission = controller.submission
    return FlowOut(
        assignment_id=controller.assignment.id,
        assessment_id=controller.assessment.id,
        title=controller.assessment.title,
        assignment_status=controller.assignment.status.value,
        submission_id=submission.id if submission is not None else None,
        state=StateOut.from_state(controller.state),
        progress=ProgressOut.from_overall(controller.progress()),
        all_topics_completed=controller.all_topics_completed(),
        score=result.score if result is not None else None,
        max_score=result.max_score if result is not None else None,
        topics=topics,
    )


async def flow_controller(
    assignment_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[DataStore, Depends(get_data_store)],
    topic_index: Annotated[int | None, Query(ge=0)] = None,
) -> AsyncIterator[AssessmentFlowController]:
    try:
        controller = await AssessmentFlowController.open(
            store,
            FlowSession(user_id=principal.user_id, assignment_id=assignment_id),
            topic_index=topic_index,
            settings=SETTINGS,
        )
    except FlowError as e:
        raise to_http_error(e) from None
    try:
        yield controller
    finally:
        controller.close()


FlowController = Annotated[AssessmentFlowController, Depends(flow_controller)]


@router.get("/{assignment_id}/flow", response_model=FlowOut)
async def get_flow(controller: FlowController) -> FlowOut:
    """Topics overview with per-topic progress and restored answers.

    ``?topic_index=i`` opens the flow directly inside topic ``i``.
    """
    return _flow_out(controller)


@router.put(
    "/{assignment_id}/answers/{question_id}", response_model=AnswerRecordedOut
)
async def record_answer(
    question_id: str, body: AnswerIn, controller: FlowController
) -> AnswerRecordedOut:
    try:
        warning = await controller.record_answer(
            question_id,
            AnswerSelection(
                selected_option_id=body.selected_option_id,
                text_value=body.text_value,
            ),
        )
    except FlowError as e:
        raise to_http_error(e) from None

    unsynced: list[str] = []
    message = None
    if warning is not None:
        # The controller is closed once this request ends, so retry now.
        unsynced = await controller.sync_pending()
        if question_id in unsynced:
            message = "answer was not saved, please submit it again"
            logger.warning(
                "Answer not saved after retries",
                extra={"question_id": question_id},
            )

    topic_index = next(
        i
        for i, t in enumerate(controller.topics)
        if any(q.id == question_id for q in t.questions)
    )
    return AnswerRecordedOut(
        question_id=question_id,
        synced=question_id not in unsynced,
        warning=message,
        unsynced_question_ids=unsynced,
        topic=TopicProgressOut.from_topic(controller.topic_progress(topic_index)),
        progress=ProgressOut.from_overall(controller.progress()),
    )


@router.post("/{assignment_id}/complete", response_model=CompletionOut)
async def complete(controller: FlowController) -> CompletionOut:
    try:
        result = await controller.complete_assessment()
    except FlowError as e:
        raise to_http_error(e) from None
    return CompletionOut(
        submission_id=result.submission_id,
        score=result.score,
        max_score=result.max_score,
    )
